"""Pydantic models for partner records and per-gate progress."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from partner_gates.schemas.submission import UserRole
from partner_gates.utils.timestamps import utcnow


class GateStatus(str, Enum):
    """Lifecycle state of one gate for one partner."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    PASSED = "passed"
    FAILED = "failed"
    BLOCKED = "blocked"

    def is_terminal(self) -> bool:
        """Only passed ends forward progress; failed can be resubmitted."""
        return self == GateStatus.PASSED


class Approval(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approved_by: str = Field(..., alias="approvedBy")
    approved_by_role: Optional[UserRole] = Field(default=None, alias="approvedByRole")
    approved_at: datetime = Field(default_factory=utcnow, alias="approvedAt")
    notes: Optional[str] = None


class GateProgress(BaseModel):
    """Progress of one partner through one gate."""

    model_config = ConfigDict(populate_by_name=True)

    gate_id: str = Field(..., alias="gateId")
    status: GateStatus = GateStatus.NOT_STARTED
    started_date: Optional[datetime] = Field(default=None, alias="startedDate")
    completed_date: Optional[datetime] = Field(default=None, alias="completedDate")
    questionnaires: Dict[str, str] = Field(
        default_factory=dict,
        description="questionnaireId -> submissionId",
    )
    approvals: List[Approval] = Field(default_factory=list)
    blockers: List[str] = Field(default_factory=list)


class PartnerRecord(BaseModel):
    """Partner being onboarded and its progress across gates."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    partner_name: str = Field(default="", alias="partnerName")
    tier: Optional[str] = None
    ccv: float = Field(default=0.0, description="Contractually committed value")
    lrp: float = Field(default=0.0, description="Launch revenue potential")
    current_gate: Optional[str] = Field(default=None, alias="currentGate")
    gates: Dict[str, GateProgress] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def gate(self, gate_id: str) -> Optional[GateProgress]:
        return self.gates.get(gate_id)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
