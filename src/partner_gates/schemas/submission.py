"""Pydantic models for questionnaire submissions.

A submission records one partner's answers for one questionnaire attempt,
the per-section scoring, the overall outcome and the signature that
accompanied it. It is bound to the template version in force when it was
created; that binding never changes on later edits.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from partner_gates.schemas.qualification import QualificationResult

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ── Enums ────────────────────────────────────────────────────────────

class SectionResult(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    PENDING = "pending"


class SubmissionStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    PARTIAL = "partial"
    PENDING = "pending"


class UserRole(str, Enum):
    PAM = "PAM"
    PDM = "PDM"
    TPM = "TPM"
    PSM = "PSM"
    TAM = "TAM"
    ADMIN = "Admin"


class SignatureType(str, Enum):
    TYPED = "typed"
    DRAWN = "drawn"


# ── Models ───────────────────────────────────────────────────────────

class Signature(BaseModel):
    """Signature captured when the submission was made."""

    model_config = ConfigDict(populate_by_name=True)

    type: SignatureType
    data: str = Field(..., min_length=1, description="Typed name or base64 image")
    signer_name: str = Field(..., alias="signerName", min_length=1)
    signer_email: str = Field(..., alias="signerEmail")
    timestamp: Optional[datetime] = None
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")

    @field_validator("signer_email")
    @classmethod
    def validate_signer_email(cls, v: str) -> str:
        """Validate the signer email has an address shape."""
        if not _EMAIL_RE.match(v):
            raise ValueError("signerEmail must be a valid email address")
        return v


class SectionStatus(BaseModel):
    """Scoring outcome of one section."""

    model_config = ConfigDict(populate_by_name=True)

    result: SectionResult = SectionResult.PENDING
    failure_reasons: Optional[List[str]] = Field(
        default=None,
        alias="failureReasons",
        description="Populated only when result is fail",
    )
    notes: Optional[str] = None
    evaluated_at: Optional[datetime] = Field(default=None, alias="evaluatedAt")
    evaluated_by: Optional[str] = Field(
        default=None,
        alias="evaluatedBy",
        description="Reviewer identity for manually adjudicated sections",
    )


class SectionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    section_id: str = Field(..., alias="sectionId")
    fields: Dict[str, Any] = Field(default_factory=dict)
    status: SectionStatus = Field(default_factory=SectionStatus)


class Submission(BaseModel):
    """Persisted questionnaire submission."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    questionnaire_id: str = Field(..., alias="questionnaireId", min_length=1)
    partner_id: str = Field(..., alias="partnerId", min_length=1)
    gate_id: Optional[str] = Field(default=None, alias="gateId")
    template_version: Optional[int] = Field(
        default=None,
        alias="templateVersion",
        description="Template version active at creation; immutable",
    )
    sections: List[SectionData] = Field(default_factory=list)
    section_statuses: Dict[str, SectionStatus] = Field(
        default_factory=dict, alias="sectionStatuses"
    )
    overall_status: SubmissionStatus = Field(
        default=SubmissionStatus.PENDING, alias="overallStatus"
    )
    qualification: Optional[QualificationResult] = None
    signature: Optional[Signature] = None
    submitted_by: Optional[str] = Field(default=None, alias="submittedBy")
    submitted_by_role: Optional[UserRole] = Field(default=None, alias="submittedByRole")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def field_values(self) -> Dict[str, Any]:
        """All answers across sections, flattened by field id."""
        values: Dict[str, Any] = {}
        for section in self.sections:
            values.update(section.fields)
        return values

    def section_fields(self, section_id: str) -> Dict[str, Any]:
        for section in self.sections:
            if section.section_id == section_id:
                return section.fields
        return {}

    def to_record(self) -> Dict[str, Any]:
        """Serialise to the persisted JSON shape (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)
