"""Section validators for the consultation form."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Callable

from consultflow.core.types import FormSection
from consultflow.form.definition import FieldRule, FormDefinition

# Registry of validator functions: name -> callable(value, label) -> str | None
# Returns an error message string on failure, None on success.
VALIDATORS: dict[str, Callable[..., str | None]] = {}


def register(name: str):
    """Decorator to register a validator function."""
    def decorator(fn):
        VALIDATORS[name] = fn
        return fn
    return decorator


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


@register("required")
def validate_required(value: Any, label: str = "This field", **_kwargs: Any) -> str | None:
    if _is_blank(value):
        return f"{label} is required"
    return None


@register("non_empty_list")
def validate_non_empty_list(value: Any, label: str = "This field", **_kwargs: Any) -> str | None:
    if not isinstance(value, list) or not any(not _is_blank(v) for v in value):
        return f"At least one {label.lower()} is required"
    return None


@register("email")
def validate_email(value: Any, **_kwargs: Any) -> str | None:
    if _is_blank(value):
        return None
    pattern = r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}"
    if not isinstance(value, str) or not re.fullmatch(pattern, value.strip()):
        return "Please enter a valid email address"
    return None


@register("url")
def validate_url(value: Any, **_kwargs: Any) -> str | None:
    if _is_blank(value):
        return None
    if not isinstance(value, str) or not re.fullmatch(r"https?://[^\s/$.?#].[^\s]*", value.strip()):
        return "Please enter a valid URL starting with http:// or https://"
    return None


@register("positive_int")
def validate_positive_int(value: Any, label: str = "Value", **_kwargs: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return f"{label} must be a positive whole number"
    return None


def is_section_filled(data: Mapping[str, Any] | None) -> bool:
    """Coarse completion predicate: the section has at least one non-empty value."""
    if not data:
        return False
    return any(not _is_blank(value) for value in data.values())


class SectionValidator:
    """Runs the human-authored rules of a form definition against section data."""

    def __init__(self, definition: FormDefinition) -> None:
        self._definition = definition
        self._validators: dict[str, Callable[..., str | None]] = dict(VALIDATORS)

    def register(self, name: str, fn: Callable[..., str | None]) -> None:
        self._validators[name] = fn

    def validate(self, section: FormSection, data: Mapping[str, Any] | None) -> list[str]:
        """Return error messages for ``section``, in rule order. Empty means valid."""
        data = data or {}
        errors: list[str] = []
        for rule in self._definition.step(section).rules:
            errors.extend(self._check_rule(rule, data.get(rule.field)))
        return errors

    def _check_rule(self, rule: FieldRule, value: Any) -> list[str]:
        errors: list[str] = []
        for name in rule.validators:
            fn = self._validators.get(name)
            if fn is None:
                continue
            err = fn(value, label=rule.label)
            if err:
                errors.append(rule.message or err)
                if name in ("required", "non_empty_list"):
                    # Nothing else to check on a missing value
                    break
        return errors
