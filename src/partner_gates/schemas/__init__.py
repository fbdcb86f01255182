"""Pydantic schemas for templates, submissions, partners and qualification."""

from partner_gates.schemas.partner import Approval, GateProgress, GateStatus, PartnerRecord
from partner_gates.schemas.qualification import QualificationPath, QualificationResult
from partner_gates.schemas.submission import (
    SectionData,
    SectionResult,
    SectionStatus,
    Signature,
    SignatureType,
    Submission,
    SubmissionStatus,
    UserRole,
)
from partner_gates.schemas.template import (
    BooleanOperand,
    CriteriaType,
    FieldType,
    ListOperand,
    NumberOperand,
    PassFailCriteria,
    QuestionField,
    QuestionnaireTemplate,
    Rule,
    RuleOperator,
    Section,
    StringOperand,
    TemplateDefinition,
    TemplateVersion,
    active_fields,
    all_fields_for_render,
    validate_sections,
)

__all__ = [
    # Templates
    "BooleanOperand",
    "CriteriaType",
    "FieldType",
    "ListOperand",
    "NumberOperand",
    "PassFailCriteria",
    "QuestionField",
    "QuestionnaireTemplate",
    "Rule",
    "RuleOperator",
    "Section",
    "StringOperand",
    "TemplateDefinition",
    "TemplateVersion",
    "active_fields",
    "all_fields_for_render",
    "validate_sections",
    # Submissions
    "SectionData",
    "SectionResult",
    "SectionStatus",
    "Signature",
    "SignatureType",
    "Submission",
    "SubmissionStatus",
    "UserRole",
    # Partners
    "Approval",
    "GateProgress",
    "GateStatus",
    "PartnerRecord",
    # Qualification
    "QualificationPath",
    "QualificationResult",
]
