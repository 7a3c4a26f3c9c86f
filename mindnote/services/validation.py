"""
Parameter validation with declarative rule descriptors.

A rule table maps a field name to a list of rules. validate_params() walks
the table and raises a single ValidationError listing every problem.

    rules = {
        "title": [Required(), TypeRule(str), LengthRule(1, 255)],
        "limit": [TypeRule(int), RangeRule(1, 100)],
    }
    validate_params(params, rules)
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from mindnote.services.errors import ValidationError


@dataclass(frozen=True)
class Required:
    pass


@dataclass(frozen=True)
class TypeRule:
    expected: type | tuple[type, ...]


@dataclass(frozen=True)
class LengthRule:
    """String length bounds."""

    min_length: int | None = None
    max_length: int | None = None


@dataclass(frozen=True)
class RangeRule:
    """Numeric bounds, inclusive."""

    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class PatternRule:
    pattern: str


@dataclass(frozen=True)
class ItemsRule:
    """Sequence length bounds."""

    min_items: int | None = None
    max_items: int | None = None


@dataclass(frozen=True)
class ChoiceRule:
    choices: frozenset[Any]


@dataclass(frozen=True)
class CustomRule:
    """Predicate returning an error message, or None when the value is fine."""

    check: Callable[[Any], str | None]


Rule = (
    Required
    | TypeRule
    | LengthRule
    | RangeRule
    | PatternRule
    | ItemsRule
    | ChoiceRule
    | CustomRule
)


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _check(field: str, value: Any, rule: Rule) -> str | None:
    if isinstance(rule, TypeRule):
        # bool is an int subclass but never a valid number here
        if isinstance(value, bool) and rule.expected in (int, float, (int, float)):
            return f"{field} must be of type {_type_name(rule.expected)}"
        if not isinstance(value, rule.expected):
            return f"{field} must be of type {_type_name(rule.expected)}"
    elif isinstance(rule, LengthRule) and isinstance(value, str):
        if rule.min_length is not None and len(value) < rule.min_length:
            return f"{field} must be at least {rule.min_length} characters"
        if rule.max_length is not None and len(value) > rule.max_length:
            return f"{field} must not exceed {rule.max_length} characters"
    elif isinstance(rule, RangeRule) and isinstance(value, (int, float)):
        if rule.min is not None and value < rule.min:
            return f"{field} must be at least {rule.min}"
        if rule.max is not None and value > rule.max:
            return f"{field} must not exceed {rule.max}"
    elif isinstance(rule, PatternRule) and isinstance(value, str):
        if not re.fullmatch(rule.pattern, value):
            return f"{field} format is invalid"
    elif isinstance(rule, ItemsRule) and isinstance(value, (list, tuple)):
        if rule.min_items is not None and len(value) < rule.min_items:
            return f"{field} must contain at least {rule.min_items} items"
        if rule.max_items is not None and len(value) > rule.max_items:
            return f"{field} must not contain more than {rule.max_items} items"
    elif isinstance(rule, ChoiceRule):
        if value not in rule.choices:
            return f"{field} must be one of {', '.join(sorted(map(str, rule.choices)))}"
    elif isinstance(rule, CustomRule):
        return rule.check(value)
    return None


def collect_errors(
    params: Mapping[str, Any],
    rules: Mapping[str, Sequence[Rule]],
) -> list[str]:
    """Evaluate a rule table and return every error message."""
    errors: list[str] = []

    for field, field_rules in rules.items():
        value = params.get(field)

        if _is_missing(value):
            if any(isinstance(rule, Required) for rule in field_rules):
                errors.append(f"{field} is required")
            continue

        for rule in field_rules:
            if isinstance(rule, Required):
                continue
            message = _check(field, value, rule)
            if message:
                errors.append(message)
                # A wrong type makes the remaining rules meaningless
                if isinstance(rule, TypeRule):
                    break

    return errors


def validate_params(
    params: Mapping[str, Any],
    rules: Mapping[str, Sequence[Rule]],
) -> None:
    """Raise ValidationError if any rule in the table fails."""
    errors = collect_errors(params, rules)
    if errors:
        raise ValidationError("Validation failed", details={"errors": errors})
