"""Skip/abort sentinel tokens used inside values and table cells."""

from __future__ import annotations

import re
from dataclasses import dataclass

from mdforms.typing.enums import AnswerState

SENTINEL_SKIP = "%SKIP%"
SENTINEL_ABORT = "%ABORT%"

_TOKENS = {AnswerState.SKIPPED: SENTINEL_SKIP, AnswerState.ABORTED: SENTINEL_ABORT}
_STRICT_RE = re.compile(r"(%SKIP%|%ABORT%)(?:\s*\((?P<reason>.+)\))?", re.DOTALL)
_COMPACT_RE = re.compile(r"%(?P<kind>SKIP|ABORT)(?:[:(](?P<reason>.*?))?\)?%", re.IGNORECASE | re.DOTALL)
_REASON_RE = re.compile(r"\((?P<reason>.+)\)", re.DOTALL)


@dataclass(frozen=True)
class Sentinel:
    """Decoded sentinel: the terminal state plus an optional reason."""

    state: AnswerState
    reason: str | None = None


def _state_for(token: str) -> AnswerState:
    return AnswerState.SKIPPED if token.upper().startswith("%SKIP") else AnswerState.ABORTED


def parse_sentinel(text: str | None) -> Sentinel | None:
    """Parse the canonical sentinel forms `%SKIP%` and `%SKIP% (reason)`.

    Matching is case-sensitive; anything else is treated as an ordinary value.

    Args:
        text (str | None): Raw value or cell text.

    Returns:
        Sentinel | None: Decoded sentinel, or None.
    """
    if not text:
        return None
    match = _STRICT_RE.fullmatch(text.strip())
    if match is None:
        return None
    reason = match.group("reason")
    return Sentinel(state=_state_for(match.group(1)), reason=reason.strip() if reason else None)


def detect_sentinel(value: object) -> Sentinel | None:
    """Detect a sentinel written in any of the loose forms callers produce.

    Accepts any letter case, the canonical form with trailing text, and the
    compact forms `%SKIP:reason%` and `%SKIP(reason)%`.

    Args:
        value (object): Candidate value; non-strings never match.

    Returns:
        Sentinel | None: Decoded sentinel, or None.
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    compact = _COMPACT_RE.fullmatch(trimmed)
    if compact:
        reason = (compact.group("reason") or "").strip()
        return Sentinel(state=_state_for("%" + compact.group("kind")), reason=reason or None)
    upper = trimmed.upper()
    for token in (SENTINEL_SKIP, SENTINEL_ABORT):
        if upper.startswith(token):
            rest = trimmed[len(token) :].strip()
            match = _REASON_RE.fullmatch(rest)
            reason = match.group("reason").strip() if match else None
            return Sentinel(state=_state_for(token), reason=reason or None)
    return None


def format_sentinel(state: AnswerState, reason: str | None = None) -> str:
    """Render the canonical sentinel for a skipped or aborted state.

    Args:
        state (AnswerState): `skipped` or `aborted`.
        reason (str | None): Optional reason text.

    Raises:
        ValueError: If the state has no sentinel form.

    Returns:
        str: Sentinel text.
    """
    token = _TOKENS.get(state)
    if token is None:
        raise ValueError(f"No sentinel for state '{state}'")  # noqa: TRY003
    return f"{token} ({reason})" if reason else token
