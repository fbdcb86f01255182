"""Turn section results into a gate qualification decision.

Most gates require every section to pass. A gate configured with
``mode: threshold`` qualifies once a minimum number of sections pass, and
may carry an override: a numeric field at or above a fixed threshold that
qualifies the gate regardless of section outcomes.
"""

import logging
from typing import Any, Mapping, Optional

from partner_gates.config.gates import GatesConfig, QualificationConfig, get_gate_config
from partner_gates.evaluation.rule_evaluator import coerce_number
from partner_gates.schemas.qualification import QualificationPath, QualificationResult
from partner_gates.schemas.submission import SectionResult, SectionStatus, SubmissionStatus

logger = logging.getLogger(__name__)


def _count(statuses: Mapping[str, SectionStatus], result: SectionResult) -> int:
    return sum(1 for status in statuses.values() if status.result == result)


def qualification_config_for(
    gate_id: str, config: Optional[GatesConfig] = None
) -> QualificationConfig:
    """Qualification settings of a gate, or the all-sections default."""
    config = config or get_gate_config()
    gate = config.get_gate(gate_id)
    if gate is None:
        logger.warning(f"Unknown gate '{gate_id}'; using all-sections qualification")
        return QualificationConfig()
    return gate.qualification


def qualify_gate(
    gate_id: str,
    section_statuses: Mapping[str, SectionStatus],
    raw_fields: Optional[Mapping[str, Any]] = None,
    *,
    config: Optional[GatesConfig] = None,
) -> QualificationResult:
    """Decide whether a questionnaire's sections qualify its gate.

    Args:
        gate_id: Gate whose qualification rule applies.
        section_statuses: Status of every section of the questionnaire.
        raw_fields: Submitted answers, consulted by override rules.
        config: Gate configuration; defaults to the cached active config.

    Returns:
        QualificationResult with reason, counts and the deciding path.
    """
    settings = qualification_config_for(gate_id, config)
    raw_fields = raw_fields or {}
    total = len(section_statuses)
    passed = _count(section_statuses, SectionResult.PASS)

    if settings.mode == "all_sections":
        qualifies = passed == total
        if qualifies:
            reason = f"All {total} sections passed"
        else:
            reason = f"Only {passed} of {total} sections passed. All sections must pass to qualify."
        return QualificationResult(
            qualifies=qualifies,
            reason=reason,
            passed_sections=passed,
            total_sections=total,
            required_sections=total,
            path=QualificationPath.ALL_SECTIONS,
        )

    minimum = settings.minimum_passing_sections or 0
    override = settings.override
    if override is not None:
        value = coerce_number(raw_fields.get(override.field_id))
        if value >= override.threshold:
            logger.info(
                f"Gate '{gate_id}' qualified by override: "
                f"{override.field_id}={value:,.0f} >= {override.threshold:,.0f}"
            )
            return QualificationResult(
                qualifies=True,
                reason=override.reason,
                passed_sections=passed,
                total_sections=total,
                required_sections=minimum,
                path=QualificationPath.OVERRIDE,
            )

    qualifies = passed >= minimum
    if qualifies:
        reason = f"Partner meets {passed} of {total} criteria (minimum {minimum} required)"
    else:
        reason = f"Partner only meets {passed} of {total} criteria. Minimum {minimum} required."
    return QualificationResult(
        qualifies=qualifies,
        reason=reason,
        passed_sections=passed,
        total_sections=total,
        required_sections=minimum,
        path=QualificationPath.THRESHOLD,
    )


def overall_status(
    result: QualificationResult, section_statuses: Mapping[str, SectionStatus]
) -> SubmissionStatus:
    """Submission-level outcome for a qualification result.

    ``partial`` means the gate is not qualified yet, but sections still
    awaiting manual review could make it qualify.
    """
    if result.qualifies:
        return SubmissionStatus.PASS
    pending = _count(section_statuses, SectionResult.PENDING)
    if pending and result.passed_sections + pending >= result.required_sections:
        return SubmissionStatus.PARTIAL
    return SubmissionStatus.FAIL
