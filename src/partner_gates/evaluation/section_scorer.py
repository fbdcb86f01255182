"""Score one questionnaire section from its submitted field values."""

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

from partner_gates.evaluation.rule_evaluator import rule_satisfied
from partner_gates.evaluation.section_checks import get_section_check
from partner_gates.schemas.submission import SectionResult, SectionStatus
from partner_gates.schemas.template import CriteriaType, Rule, Section
from partner_gates.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


def default_failure_message(section: Section) -> str:
    return f"{section.title}: Required criteria not met"


def _rule_passes(rule: Rule, section: Section, field_values: Mapping[str, Any]) -> bool:
    if rule.field_id not in section.field_ids():
        logger.warning(
            f"Rule in section '{section.id}' references unknown field "
            f"'{rule.field_id}'; treating as failed"
        )
        return False
    return rule_satisfied(rule, field_values.get(rule.field_id))


def score_section(
    section: Section,
    field_values: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
    extra_checks: Sequence[str] = (),
) -> SectionStatus:
    """Compute the pass/fail/pending status of a section.

    Manual sections, and sections without criteria, are always pending.
    Automatic sections pass only when every rule is satisfied; every rule is
    evaluated so that all failure reasons are reported together. Named
    ``extra_checks`` run after the rules of an automatic section.

    Args:
        section: Section definition from the template version in force.
        field_values: Submitted answers keyed by field id.
        now: Evaluation timestamp; defaults to the current UTC time.
        extra_checks: Names of section checks to apply.

    Returns:
        SectionStatus with failure reasons populated only on fail.
    """
    criteria = section.pass_fail_criteria
    if criteria is None or criteria.type == CriteriaType.MANUAL:
        return SectionStatus(result=SectionResult.PENDING)

    if not criteria.rules:
        logger.debug(f"Section '{section.id}' is automatic with no rules; passing")

    failure_reasons: List[str] = []
    for rule in criteria.rules:
        if not _rule_passes(rule, section, field_values):
            failure_reasons.append(rule.failure_message or default_failure_message(section))

    notes: List[str] = []
    for name in extra_checks:
        check = get_section_check(name)
        if check is None:
            failure_reasons.append(f"{section.title}: Unknown check '{name}'")
            continue
        outcome = check(section, field_values)
        notes.extend(outcome.notes)
        if not outcome.passed:
            failure_reasons.extend(outcome.failure_reasons)

    passed = not failure_reasons
    return SectionStatus(
        result=SectionResult.PASS if passed else SectionResult.FAIL,
        failure_reasons=None if passed else failure_reasons,
        notes="\n".join(notes) if notes else None,
        evaluated_at=now or utcnow(),
    )
