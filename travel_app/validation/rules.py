"""
Per-field validation rules.

A ruleset maps a (snake_case) field name to an ordered list of ``Rule``
objects. Every field is checked independently; within one field the first
failing rule wins. Failures are collected into a single ``{camelCaseField:
message}`` map so the client gets every problem in one response.

Rules receive the value and a context dict holding the full record being
validated (on updates: the stored values overlaid with the changes), so
cross-field and store-reading predicates can be expressed as ``custom`` rules.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic.alias_generators import to_camel

from travel_app.core.errors import ValidationError


def is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


@dataclass(frozen=True)
class Rule:
    check: Callable[[Any, dict], bool]
    message: str
    # Only `required` looks at missing values; everything else skips them
    applies_to_empty: bool = False

    def __call__(self, value, context: dict) -> str | None:
        if is_empty(value) and not self.applies_to_empty:
            return None
        return None if self.check(value, context) else self.message


# ---------- RULE FACTORIES ----------
def required(message: str = "This field is required") -> Rule:
    return Rule(lambda value, _: not is_empty(value), message, applies_to_empty=True)


def length(min: int | None = None, max: int | None = None, message: str | None = None) -> Rule:
    if message is None:
        if min is not None and max is not None:
            message = f"Must be between {min} and {max} characters"
        elif min is not None:
            message = f"Must be at least {min} characters"
        else:
            message = f"Must not exceed {max} characters"

    def check(value, _):
        size = len(value.strip()) if isinstance(value, str) else len(value)
        if min is not None and size < min:
            return False
        if max is not None and size > max:
            return False
        return True

    return Rule(check, message)


def number(
    min: float | None = None,
    max: float | None = None,
    integer: bool = False,
    message: str | None = None,
) -> Rule:
    if message is None:
        kind = "a whole number" if integer else "a number"
        if min is not None and max is not None:
            message = f"Must be {kind} between {min} and {max}"
        elif min is not None:
            message = f"Must be {kind} of at least {min}"
        elif max is not None:
            message = f"Must be {kind} of at most {max}"
        else:
            message = f"Must be {kind}"

    def check(value, _):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if integer and not float(value).is_integer():
            return False
        if min is not None and value < min:
            return False
        if max is not None and value > max:
            return False
        return True

    return Rule(check, message)


def pattern(regex: str, message: str) -> Rule:
    compiled = re.compile(regex)
    return Rule(lambda value, _: isinstance(value, str) and compiled.fullmatch(value) is not None, message)


def one_of(choices, message: str | None = None) -> Rule:
    if isinstance(choices, type) and issubclass(choices, Enum):
        allowed = {member.value for member in choices}
    else:
        allowed = set(choices)
    message = message or f"Must be one of: {', '.join(sorted(str(c) for c in allowed))}"

    def check(value, _):
        if isinstance(value, Enum):
            value = value.value
        return value in allowed

    return Rule(check, message)


def custom(predicate: Callable[[Any, dict], bool], message: str) -> Rule:
    """Arbitrary predicate, possibly a bounded store read (uniqueness, existence)."""
    return Rule(predicate, message)


# ---------- PIPELINE ----------
def validate_field(value, rules: list[Rule], context: dict) -> str | None:
    for rule in rules:
        message = rule(value, context)
        if message:
            return message
    return None


def validate_fields(
    data: dict,
    ruleset: dict[str, list[Rule]],
    partial: bool = False,
    context: dict | None = None,
) -> dict[str, str]:
    """
    Run every field's rules and return the error map (empty when valid).

    With ``partial=True`` (updates) only fields present in ``data`` are checked.
    """
    context = context if context is not None else data
    errors = {}
    for field, rules in ruleset.items():
        if partial and field not in data:
            continue
        message = validate_field(data.get(field), rules, context)
        if message:
            errors[to_camel(field)] = message
    return errors


def run_validation(
    data: dict,
    ruleset: dict[str, list[Rule]],
    partial: bool = False,
    context: dict | None = None,
):
    errors = validate_fields(data, ruleset, partial=partial, context=context)
    if errors:
        raise ValidationError(errors)
