"""Rule evaluation, section scoring and gate qualification."""

from partner_gates.evaluation.gate_qualifier import overall_status, qualify_gate
from partner_gates.evaluation.rule_evaluator import evaluate_rule, rule_satisfied
from partner_gates.evaluation.section_checks import SECTION_CHECKS, CheckOutcome
from partner_gates.evaluation.section_scorer import score_section

__all__ = [
    "SECTION_CHECKS",
    "CheckOutcome",
    "evaluate_rule",
    "overall_status",
    "qualify_gate",
    "rule_satisfied",
    "score_section",
]
