"""Read-only view of a submission against the template version it was made on.

Every field of that version is shown, including fields soft-deleted then or
since, so a historical answer is never hidden. Removed fields are flagged.
"""

import logging
from typing import AbstractSet, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from partner_gates.schemas.submission import SectionStatus, Signature, Submission, SubmissionStatus
from partner_gates.schemas.template import FieldType, TemplateDefinition

logger = logging.getLogger(__name__)


class RenderedField(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    type: FieldType
    order: int = 0
    value: Any = None
    answered: bool = False
    removed: bool = False
    options: Optional[List[str]] = None


class RenderedSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: Optional[str] = None
    status: SectionStatus = Field(default_factory=SectionStatus)
    fields: List[RenderedField] = Field(default_factory=list)


class RenderedSubmission(BaseModel):
    """Submission as displayed to reviewers."""

    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(..., alias="submissionId")
    questionnaire_id: str = Field(..., alias="questionnaireId")
    partner_id: str = Field(..., alias="partnerId")
    template_name: str = Field(default="", alias="templateName")
    template_version: Optional[int] = Field(default=None, alias="templateVersion")
    rendered_version: int = Field(
        ...,
        alias="renderedVersion",
        description="Version actually used; differs from templateVersion after a fallback",
    )
    overall_status: SubmissionStatus = Field(..., alias="overallStatus")
    sections: List[RenderedSection] = Field(default_factory=list)
    signature: Optional[Signature] = None


def render_submission(
    submission: Submission,
    template: TemplateDefinition,
    removed_since: AbstractSet[str] = frozenset(),
) -> RenderedSubmission:
    """Lay out a submission's answers over its template definition.

    Args:
        submission: Stored submission.
        template: Definition resolved for the submission (snapshot or current).
        removed_since: Ids of fields the current template no longer offers.
            They keep their place from ``template`` but are flagged removed.

    Returns:
        RenderedSubmission with sections and fields in display order.
    """
    if submission.template_version is not None and template.version != submission.template_version:
        logger.warning(
            f"Rendering submission '{submission.id}' (v{submission.template_version}) "
            f"with template v{template.version}"
        )

    flat_values = submission.field_values()
    sections = []
    for section in template.sections:
        values = submission.section_fields(section.id)
        fields = []
        for field in section.all_fields_for_render():
            if field.id in values:
                value, answered = values[field.id], True
            elif field.id in flat_values:
                value, answered = flat_values[field.id], True
            else:
                value, answered = None, False
            fields.append(
                RenderedField(
                    id=field.id,
                    label=field.label,
                    type=field.type,
                    order=field.order,
                    value=value,
                    answered=answered,
                    removed=field.removed or field.id in removed_since,
                    options=field.options,
                )
            )
        status = submission.section_statuses.get(section.id) or SectionStatus()
        sections.append(
            RenderedSection(
                id=section.id,
                title=section.title,
                description=section.description,
                status=status,
                fields=fields,
            )
        )

    return RenderedSubmission(
        submission_id=submission.id,
        questionnaire_id=submission.questionnaire_id,
        partner_id=submission.partner_id,
        template_name=template.name,
        template_version=submission.template_version,
        rendered_version=template.version,
        overall_status=submission.overall_status,
        sections=sections,
        signature=submission.signature,
    )
