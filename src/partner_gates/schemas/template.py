"""Pydantic models for questionnaire templates and their version snapshots.

A template is the editable definition of a questionnaire: ordered sections,
each holding ordered fields and optional pass/fail criteria. Every save bumps
``version``; the previous definition is kept as an immutable
:class:`TemplateVersion` so submissions made against it can still be
rendered and re-scored exactly as they were.

Rule operands are resolved into a tagged union when a rule is loaded, so the
evaluator dispatches on a known operand kind rather than sniffing types.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from partner_gates.utils.timestamps import utcnow


# ── Enums ────────────────────────────────────────────────────────────

class FieldType(str, Enum):
    """Input type of a question."""

    TEXT = "text"
    EMAIL = "email"
    DATE = "date"
    NUMBER = "number"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    TEXTAREA = "textarea"


SELECTION_FIELD_TYPES = {FieldType.SELECT, FieldType.CHECKBOX, FieldType.RADIO}


class RuleOperator(str, Enum):
    """Comparison operator of an automatic rule."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    IN = "in"

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_OPERATORS


NUMERIC_OPERATORS = {
    RuleOperator.GREATER_THAN,
    RuleOperator.LESS_THAN,
    RuleOperator.GREATER_THAN_OR_EQUAL,
    RuleOperator.LESS_THAN_OR_EQUAL,
}


class CriteriaType(str, Enum):
    """How a section is adjudicated."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


# ── Operands ─────────────────────────────────────────────────────────

ScalarValue = Union[bool, int, float, str]


class NumberOperand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: float


class StringOperand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["string"] = "string"
    value: str


class BooleanOperand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["boolean"] = "boolean"
    value: bool


class ListOperand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["list"] = "list"
    value: List[ScalarValue] = Field(default_factory=list)


Operand = Annotated[
    Union[NumberOperand, StringOperand, BooleanOperand, ListOperand],
    Field(discriminator="kind"),
]

_OPERAND_TYPES = (NumberOperand, StringOperand, BooleanOperand, ListOperand)


def resolve_operand(raw: Any, operator: Any = None) -> Any:
    """Wrap a raw config value into its operand kind.

    Already-tagged values (model instances or dicts carrying ``kind``) pass
    through untouched. A numeric string authored for a numeric operator is
    resolved to a number; any other string stays a string, and the evaluator
    reports it as unevaluable.

    Raises:
        ValueError: If the value cannot be represented as an operand.
    """
    if isinstance(raw, _OPERAND_TYPES):
        return raw
    if isinstance(raw, dict) and "kind" in raw:
        return raw
    if isinstance(raw, bool):
        return BooleanOperand(value=raw)
    if isinstance(raw, (int, float)):
        return NumberOperand(value=raw)
    if isinstance(raw, str):
        if _is_numeric_operator(operator):
            try:
                return NumberOperand(value=float(raw.strip()))
            except ValueError:
                pass
        return StringOperand(value=raw)
    if isinstance(raw, (list, tuple)):
        return ListOperand(value=list(raw))
    raise ValueError(f"Unsupported rule operand: {raw!r}")


def _is_numeric_operator(operator: Any) -> bool:
    try:
        return RuleOperator(operator).is_numeric
    except ValueError:
        return False


# ── Rules and criteria ───────────────────────────────────────────────

class Rule(BaseModel):
    """Automatic pass/fail rule bound to one field of a section."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field_id: str = Field(..., alias="fieldId", min_length=1)
    operator: RuleOperator
    value: Operand
    failure_message: Optional[str] = Field(default=None, alias="failureMessage")

    @model_validator(mode="before")
    @classmethod
    def _normalise_raw_rule(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Older configs name the field reference "field"
        if "field" in data and "fieldId" not in data and "field_id" not in data:
            data["fieldId"] = data.pop("field")
        if "value" not in data or data["value"] is None:
            raise ValueError("Rule requires a comparison value")
        data["value"] = resolve_operand(data["value"], data.get("operator"))
        return data


class PassFailCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: CriteriaType = CriteriaType.MANUAL
    rules: List[Rule] = Field(default_factory=list)


# ── Fields and sections ──────────────────────────────────────────────

class QuestionField(BaseModel):
    """A single question."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique within the template")
    type: FieldType = FieldType.TEXT
    label: str = ""
    required: bool = False
    options: Optional[List[str]] = Field(
        default=None, description="Choices for select, radio and checkbox fields"
    )
    order: int = Field(default=0, description="Display and evaluation order")
    removed: bool = Field(
        default=False,
        description="Soft delete: hidden from new submissions, kept for history",
    )
    help_text: Optional[str] = Field(default=None, alias="helpText")
    placeholder: Optional[str] = None

    @property
    def is_selection(self) -> bool:
        return self.type in SELECTION_FIELD_TYPES


class Section(BaseModel):
    """Named, ordered group of fields scored as one unit."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    title: str = ""
    description: Optional[str] = None
    fields: List[QuestionField] = Field(default_factory=list)
    pass_fail_criteria: Optional[PassFailCriteria] = Field(
        default=None, alias="passFailCriteria"
    )

    def active_fields(self) -> List[QuestionField]:
        """Fields offered on new submissions, in display order."""
        return sorted((f for f in self.fields if not f.removed), key=lambda f: f.order)

    def all_fields_for_render(self) -> List[QuestionField]:
        """Every field including removed ones, in display order."""
        return sorted(self.fields, key=lambda f: f.order)

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]


# ── Templates ────────────────────────────────────────────────────────

class QuestionnaireTemplate(BaseModel):
    """Current, editable definition of a questionnaire."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="e.g. 'pre-contract', 'gate-0'")
    name: str = ""
    version: int = Field(default=1, ge=1, description="Incremented on each save")
    gate_id: Optional[str] = Field(default=None, alias="gateId")
    sections: List[Section] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    updated_by: str = Field(default="system", alias="updatedBy")

    @property
    def template_id(self) -> str:
        return self.id

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def to_snapshot(self) -> "TemplateVersion":
        """Freeze this definition as the snapshot for its current version."""
        return TemplateVersion(
            template_id=self.id,
            version=self.version,
            name=self.name,
            gate_id=self.gate_id,
            sections=[s.model_copy(deep=True) for s in self.sections],
            created_at=self.updated_at,
            created_by=self.updated_by,
        )


class TemplateVersion(BaseModel):
    """Immutable historical copy of a template definition."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    template_id: str = Field(..., alias="templateId")
    version: int = Field(..., ge=1)
    name: str = ""
    gate_id: Optional[str] = Field(default=None, alias="gateId")
    sections: List[Section] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    created_by: str = Field(default="system", alias="createdBy")

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


TemplateDefinition = Union[QuestionnaireTemplate, TemplateVersion]


def active_fields(template: TemplateDefinition) -> List[QuestionField]:
    """Fields that may appear on a newly created submission."""
    return [f for section in template.sections for f in section.active_fields()]


def all_fields_for_render(template: TemplateDefinition) -> List[QuestionField]:
    """Every field of the definition, removed ones included."""
    return [f for section in template.sections for f in section.all_fields_for_render()]


def validate_sections(sections: List[Section]) -> List[str]:
    """Collect every structural problem in a set of sections.

    Returns:
        List of human-readable violations; empty when the sections are valid.
    """
    errors: List[str] = []

    seen_sections: Dict[str, int] = {}
    for section in sections:
        seen_sections[section.id] = seen_sections.get(section.id, 0) + 1
    for section_id, count in seen_sections.items():
        if count > 1:
            errors.append(f"Duplicate section ID: {section_id}")

    seen_fields: Dict[str, int] = {}
    for section in sections:
        for field in section.fields:
            seen_fields[field.id] = seen_fields.get(field.id, 0) + 1
    for field_id, count in seen_fields.items():
        if count > 1:
            errors.append(f"Duplicate field ID: {field_id}")

    for section in sections:
        for field in section.fields:
            if not field.label.strip():
                errors.append(f"Field '{field.id}' must have a label")
            if field.is_selection and not field.options:
                label = field.label.strip() or field.id
                errors.append(f'Field "{label}" requires options')

    return errors
