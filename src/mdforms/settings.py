"""Runtime settings loaded from `.env` and environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mdforms.exceptions import SettingsError

SPEC_VERSION = "MDF/0.1"


class Settings(BaseSettings):
    """Package settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "mdforms"
    app_env: str = Field(
        default="dev",
        validation_alias="APP_ENV",
        description="Application environment, e.g. 'dev', 'prod'.",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level, e.g. 'INFO', 'DEBUG'.",
    )
    log_json: bool = Field(
        default=True,
        validation_alias="LOG_JSON",
        description="Enable JSON formatted logs.",
    )
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="File path for log output.",
    )

    target_roles: str = Field(
        default="*",
        validation_alias="MDFORMS_TARGET_ROLES",
        description="Comma-separated roles considered by inspect, '*' for all.",
    )
    max_issues: int | None = Field(
        default=None,
        validation_alias="MDFORMS_MAX_ISSUES",
        description="Maximum number of issues reported by inspect.",
    )
    spec_version: str = Field(
        default=SPEC_VERSION,
        validation_alias="MDFORMS_SPEC_VERSION",
        description="Spec version marker written to serialized forms.",
    )

    @field_validator("max_issues")
    @classmethod
    def _validate_max_issues(cls, value: int | None) -> int | None:
        """Reject negative issue limits.

        Args:
            value (int | None): Configured limit.

        Raises:
            ValueError: If the limit is negative.

        Returns:
            int | None: Validated limit.
        """
        if value is not None and value < 0:
            raise ValueError("max_issues must be >= 0")  # noqa: TRY003
        return value

    @property
    def target_role_list(self) -> list[str]:
        """Return target roles as a list."""
        roles = [role.strip() for role in self.target_roles.split(",") if role.strip()]
        return roles or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance.

    Raises:
        SettingsError: If settings cannot be loaded or validated.

    Returns:
        Settings: The loaded settings instance.
    """
    try:
        return Settings()
    except Exception as exc:
        raise SettingsError(exc=exc) from exc
