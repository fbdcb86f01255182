"""Gate qualification outcome."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QualificationPath(str, Enum):
    """Which rule produced the qualification decision."""

    ALL_SECTIONS = "all_sections"
    THRESHOLD = "threshold"
    OVERRIDE = "override"


class QualificationResult(BaseModel):
    """Gate-level decision derived from section results.

    ``reason`` feeds the gate's blockers when qualification fails.
    """

    model_config = ConfigDict(populate_by_name=True)

    qualifies: bool = Field(..., description="Whether the gate criteria are met")
    reason: str = Field(..., description="Human-readable explanation")
    passed_sections: int = Field(default=0, alias="passedSections", ge=0)
    total_sections: int = Field(default=0, alias="totalSections", ge=0)
    required_sections: int = Field(
        default=0,
        alias="requiredSections",
        ge=0,
        description="Passing sections needed without an override",
    )
    path: QualificationPath = Field(
        default=QualificationPath.ALL_SECTIONS,
        description="Decision route: all_sections, threshold or override",
    )
