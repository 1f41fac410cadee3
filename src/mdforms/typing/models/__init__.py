"""Core domain model exports."""

from mdforms.typing.models.fields import (
    IMPLICIT_CHECKBOXES_ID,
    IMPLICIT_GROUP_ID,
    CheckboxesField,
    DateField,
    FieldGroup,
    FormField,
    FormSchema,
    MultiSelectField,
    NumberField,
    Option,
    SingleSelectField,
    StringField,
    StringListField,
    TableColumn,
    TableField,
    UrlField,
    UrlListField,
    ValidatorRef,
    YearField,
)
from mdforms.typing.models.form import DocumentationBlock, FormMetadata, IdIndexEntry, Note, ParsedForm
from mdforms.typing.models.issues import InspectIssue, ValidationIssue, ValidatorContext
from mdforms.typing.models.patches import (
    PATCH_ADAPTER,
    AbortFieldPatch,
    AddNotePatch,
    ClearFieldPatch,
    Patch,
    PatchRejection,
    PatchWarning,
    RemoveNotePatch,
    SetCheckboxesPatch,
    SetDatePatch,
    SetMultiSelectPatch,
    SetNumberPatch,
    SetSingleSelectPatch,
    SetStringListPatch,
    SetStringPatch,
    SetTablePatch,
    SetUrlListPatch,
    SetUrlPatch,
    SetYearPatch,
    SkipFieldPatch,
)
from mdforms.typing.models.summaries import (
    ApplyResult,
    CheckboxProgressCounts,
    FieldProgress,
    InspectResult,
    ProgressCounts,
    ProgressSummary,
    StructureSummary,
)
from mdforms.typing.models.values import (
    CellResponse,
    CheckboxesValue,
    DateValue,
    FieldResponse,
    FieldValue,
    MultiSelectValue,
    NumberValue,
    SingleSelectValue,
    StringListValue,
    StringValue,
    TableValue,
    UrlListValue,
    UrlValue,
    YearValue,
)

__all__ = [
    "IMPLICIT_CHECKBOXES_ID",
    "IMPLICIT_GROUP_ID",
    "PATCH_ADAPTER",
    "AbortFieldPatch",
    "AddNotePatch",
    "ApplyResult",
    "CellResponse",
    "CheckboxProgressCounts",
    "CheckboxesField",
    "CheckboxesValue",
    "ClearFieldPatch",
    "DateField",
    "DateValue",
    "DocumentationBlock",
    "FieldGroup",
    "FieldProgress",
    "FieldResponse",
    "FieldValue",
    "FormField",
    "FormMetadata",
    "FormSchema",
    "IdIndexEntry",
    "InspectIssue",
    "InspectResult",
    "MultiSelectField",
    "MultiSelectValue",
    "Note",
    "NumberField",
    "NumberValue",
    "Option",
    "ParsedForm",
    "Patch",
    "PatchRejection",
    "PatchWarning",
    "ProgressCounts",
    "ProgressSummary",
    "RemoveNotePatch",
    "SetCheckboxesPatch",
    "SetDatePatch",
    "SetMultiSelectPatch",
    "SetNumberPatch",
    "SetSingleSelectPatch",
    "SetStringListPatch",
    "SetStringPatch",
    "SetTablePatch",
    "SetUrlListPatch",
    "SetUrlPatch",
    "SetYearPatch",
    "SingleSelectField",
    "SkipFieldPatch",
    "StringField",
    "StringListField",
    "StringListValue",
    "StringValue",
    "StructureSummary",
    "TableColumn",
    "TableField",
    "TableValue",
    "UrlField",
    "UrlListField",
    "UrlListValue",
    "UrlValue",
    "ValidationIssue",
    "ValidatorContext",
    "ValidatorRef",
    "YearField",
    "YearValue",
]
