"""Evaluate a single automatic rule against a submitted field value.

Dispatch is a table keyed by :class:`RuleOperator`; the table is checked
for completeness at import time so a new operator cannot silently fall
through.

Comparison semantics:

- ``equals`` / ``notEquals`` use strict equality: a string never equals a
  number and a boolean never equals a number. Integers and floats of the
  same value are equal.
- Numeric operators coerce the submitted value to float. Anything that is
  not a real number (booleans, blank or non-numeric strings, lists, None)
  becomes NaN, which fails every comparison.
- ``contains`` / ``notContains`` test membership when the submitted value
  is a list (multi-select answers) and substring otherwise.
- ``in`` tests strict membership of the submitted value in a list operand.

An operand whose kind does not suit the operator makes the rule
unevaluable. :func:`evaluate_rule` raises :class:`UnevaluableRuleError`
for that case; :func:`rule_satisfied` logs it and reports the rule as not
satisfied.
"""

import logging
import math
from typing import Any, Callable, Dict

from partner_gates.errors import UnevaluableRuleError
from partner_gates.schemas.template import (
    BooleanOperand,
    ListOperand,
    NumberOperand,
    Rule,
    RuleOperator,
    StringOperand,
)

logger = logging.getLogger(__name__)

_SCALAR_OPERANDS = (NumberOperand, StringOperand, BooleanOperand)


# ── Coercion helpers ─────────────────────────────────────────────────

def coerce_number(value: Any) -> float:
    """Convert a submitted value to float, or NaN when it is not a number."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def strict_equal(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    left_is_number = isinstance(left, (int, float))
    right_is_number = isinstance(right, (int, float))
    if left_is_number or right_is_number:
        return left_is_number and right_is_number and left == right
    if type(left) is not type(right):
        return False
    return left == right


def as_text(value: Any) -> str:
    """Render a value for substring comparison."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ── Operator handlers ────────────────────────────────────────────────

def _scalar(rule: Rule) -> Any:
    if not isinstance(rule.value, _SCALAR_OPERANDS):
        raise UnevaluableRuleError(
            f"Operator '{rule.operator.value}' on field '{rule.field_id}' "
            f"needs a single value, got a {rule.value.kind}"
        )
    return rule.value.value


def _number(rule: Rule) -> float:
    if not isinstance(rule.value, NumberOperand):
        raise UnevaluableRuleError(
            f"Operator '{rule.operator.value}' on field '{rule.field_id}' "
            f"needs a numeric value, got {rule.value.value!r}"
        )
    return rule.value.value


def _equals(rule: Rule, value: Any) -> bool:
    return strict_equal(value, _scalar(rule))


def _not_equals(rule: Rule, value: Any) -> bool:
    return not strict_equal(value, _scalar(rule))


def _greater_than(rule: Rule, value: Any) -> bool:
    return coerce_number(value) > _number(rule)


def _less_than(rule: Rule, value: Any) -> bool:
    return coerce_number(value) < _number(rule)


def _greater_than_or_equal(rule: Rule, value: Any) -> bool:
    return coerce_number(value) >= _number(rule)


def _less_than_or_equal(rule: Rule, value: Any) -> bool:
    return coerce_number(value) <= _number(rule)


def _contains(rule: Rule, value: Any) -> bool:
    needle = _scalar(rule)
    if isinstance(value, (list, tuple)):
        return any(strict_equal(item, needle) for item in value)
    return as_text(needle) in as_text(value)


def _not_contains(rule: Rule, value: Any) -> bool:
    return not _contains(rule, value)


def _in(rule: Rule, value: Any) -> bool:
    if not isinstance(rule.value, ListOperand):
        raise UnevaluableRuleError(
            f"Operator 'in' on field '{rule.field_id}' needs a list of values"
        )
    return any(strict_equal(value, item) for item in rule.value.value)


_HANDLERS: Dict[RuleOperator, Callable[[Rule, Any], bool]] = {
    RuleOperator.EQUALS: _equals,
    RuleOperator.NOT_EQUALS: _not_equals,
    RuleOperator.GREATER_THAN: _greater_than,
    RuleOperator.LESS_THAN: _less_than,
    RuleOperator.GREATER_THAN_OR_EQUAL: _greater_than_or_equal,
    RuleOperator.LESS_THAN_OR_EQUAL: _less_than_or_equal,
    RuleOperator.CONTAINS: _contains,
    RuleOperator.NOT_CONTAINS: _not_contains,
    RuleOperator.IN: _in,
}

_missing = set(RuleOperator) - set(_HANDLERS)
if _missing:
    raise RuntimeError(
        f"No evaluation handler for operators: {sorted(op.value for op in _missing)}"
    )


# ── Public API ───────────────────────────────────────────────────────

def evaluate_rule(rule: Rule, value: Any) -> bool:
    """Evaluate one rule against the submitted value of its field.

    Raises:
        UnevaluableRuleError: If the operand kind does not suit the operator.
    """
    return _HANDLERS[rule.operator](rule, value)


def rule_satisfied(rule: Rule, value: Any) -> bool:
    """Evaluate a rule, treating an unevaluable rule as not satisfied."""
    try:
        return evaluate_rule(rule, value)
    except UnevaluableRuleError as e:
        logger.warning(f"Unevaluable rule treated as failed: {e}")
        return False
