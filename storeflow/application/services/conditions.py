"""Condition evaluation for triggers and condition actions.

Pure functions: no I/O, same inputs give the same boolean. Equality is
coercive (``"100" equals 100``, ``True equals 1``); ordering compares
numbers only; ``contains`` compares string forms; ``in`` needs a list.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from storeflow.application.services.templates import get_path, to_display_string
from storeflow.domain.entities.workflow import TriggerCondition
from storeflow.domain.enums import ConditionOperator


def _to_number(value: Any) -> float | None:
    """Numeric view of a value for coercive equality, or None."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        if isinstance(value, int | float):
            return float(value)
        if isinstance(value, str):
            text = value.strip()
            return float(text) if text else 0.0
    except (ValueError, OverflowError):
        return None
    return None


def _ordering_number(value: Any) -> float | None:
    """Numeric operand for ordering operators; booleans and blanks are rejected."""
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, int | float | str):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return None if math.isnan(number) else number


def loose_equals(left: Any, right: Any) -> bool:
    """Coercive equality: None only equals None; numbers compare across types."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, dict | list) or isinstance(right, dict | list):
        return left == right
    left_num, right_num = _to_number(left), _to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return left == right


def _contains(haystack: Any, needle: Any) -> bool:
    if haystack is None:
        return False
    return to_display_string(needle) in to_display_string(haystack)


def _compare(left: Any, right: Any, operator: ConditionOperator) -> bool:
    left_num, right_num = _ordering_number(left), _ordering_number(right)
    if left_num is None or right_num is None:
        return False
    match operator:
        case ConditionOperator.GREATER_THAN:
            return left_num > right_num
        case ConditionOperator.LESS_THAN:
            return left_num < right_num
        case ConditionOperator.GREATER_OR_EQUAL:
            return left_num >= right_num
        case _:
            return left_num <= right_num


def _member_of(value: Any, target: Any) -> bool | None:
    """Membership by loose equality; None when target is not a list."""
    if not isinstance(target, list | tuple):
        return None
    return any(loose_equals(value, item) for item in target)


def evaluate(field_value: Any, operator: ConditionOperator | str, target: Any) -> bool:
    """Apply ``operator`` to ``(field_value, target)``.

    Unknown operators evaluate to False.
    """
    try:
        op = ConditionOperator(operator)
    except ValueError:
        return False

    match op:
        case ConditionOperator.EQUALS:
            return loose_equals(field_value, target)
        case ConditionOperator.NOT_EQUALS:
            return not loose_equals(field_value, target)
        case (
            ConditionOperator.GREATER_THAN
            | ConditionOperator.LESS_THAN
            | ConditionOperator.GREATER_OR_EQUAL
            | ConditionOperator.LESS_OR_EQUAL
        ):
            return _compare(field_value, target, op)
        case ConditionOperator.CONTAINS:
            return _contains(field_value, target)
        case ConditionOperator.NOT_CONTAINS:
            return not _contains(field_value, target)
        case ConditionOperator.IN:
            return bool(_member_of(field_value, target))
        case ConditionOperator.NOT_IN:
            member = _member_of(field_value, target)
            return member is False
    return False


def condition_holds(condition: TriggerCondition, payload: Any) -> bool:
    return evaluate(get_path(payload, condition.field), condition.operator, condition.value)


def conditions_hold(conditions: Iterable[TriggerCondition], payload: Any) -> bool:
    """AND over all conditions; an empty list always matches."""
    return all(condition_holds(condition, payload) for condition in conditions)
