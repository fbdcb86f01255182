"""Named checks that run on a section after its rules.

Some sections need a cross-field judgement that a single-field rule cannot
express. Gates opt into these per section through ``sectionChecks`` in the
gate config.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from partner_gates.evaluation.rule_evaluator import coerce_number
from partner_gates.schemas.template import Section

logger = logging.getLogger(__name__)

TIER_0_MINIMUM_CCV = 50_000_000
TIER_1_MINIMUM_LRP_PERCENT = 10.0


@dataclass
class CheckOutcome:
    """Result of one section check.

    ``notes`` are advisory and never fail the section.
    """

    passed: bool = True
    failure_reasons: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


SectionCheck = Callable[[Section, Mapping[str, Any]], CheckOutcome]


def _number_or_zero(value: Any) -> float:
    number = coerce_number(value)
    return 0.0 if number != number else number


def strategic_tier(section: Section, field_values: Mapping[str, Any]) -> CheckOutcome:
    """Validate the partner tier against committed value.

    Tier 0 needs a CCV of at least $50M. Tier 1 needs a CCV of at least 10%
    of the country LRP. Tier 2 passes with an advisory note.
    """
    ccv = _number_or_zero(field_values.get("ccv-amount"))
    lrp = _number_or_zero(field_values.get("country-lrp"))
    ccv_percent = (ccv / lrp) * 100 if lrp > 0 else 0.0
    tier = field_values.get("partner-tier")

    outcome = CheckOutcome(notes=[f"CCV is {ccv_percent:.2f}% of Country LRP"])
    if tier == "Tier 0" and ccv < TIER_0_MINIMUM_CCV:
        outcome.passed = False
        outcome.failure_reasons.append("Tier 0 requires CCV ≥ $50M")
    elif tier == "Tier 1" and ccv_percent < TIER_1_MINIMUM_LRP_PERCENT:
        outcome.passed = False
        outcome.failure_reasons.append("Tier 1 requires CCV ≥ 10% of Country LRP")
    elif tier == "Tier 2":
        outcome.notes.append(
            "Tier 2 partners are below strategic threshold and may not qualify for PDM support"
        )
    return outcome


SECTION_CHECKS: Dict[str, SectionCheck] = {
    "strategic_tier": strategic_tier,
}


def get_section_check(name: str) -> Optional[SectionCheck]:
    check = SECTION_CHECKS.get(name)
    if check is None:
        logger.warning(f"Unknown section check '{name}'")
    return check
