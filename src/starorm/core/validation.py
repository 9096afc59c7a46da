"""
Validation Pipeline

✅ Attribute validation for model instances:
Validators are plain callables ``validator(model, failures)`` that inspect
the instance against its attribute specs and append :class:`FieldError`
records to the shared ``failures`` accumulator. Every model type starts
with the built-in ``required``, ``type`` and ``format`` validators, in that
order, and plugins may append their own.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Pattern

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..utils import type_of


@dataclass
class FieldError:
    """Represents a validation or runtime failure recorded on a model"""
    message: str
    attribute: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


Validator = Callable[[Any, List[FieldError]], None]


FORMATS: Dict[str, Pattern[str]] = {
    "email": re.compile(
        r"^(?:[\w\!\#\$\%\&\'\*\+\-\/\=\?\^\`\{\|\}\~]+\.)*[\w\!\#\$\%\&\'\*\+\-\/\=\?\^\`\{\|\}\~]+@"
        r"(?:(?:(?:[a-zA-Z0-9](?:[a-zA-Z0-9\-](?!\.)){0,61}[a-zA-Z0-9]?\.)+[a-zA-Z0-9]"
        r"(?:[a-zA-Z0-9\-](?!$)){0,61}[a-zA-Z0-9]?)"
        r"|(?:\[(?:(?:[01]?\d{1,2}|2[0-4]\d|25[0-5])\.){3}(?:[01]?\d{1,2}|2[0-4]\d|25[0-5])\]))$"
    ),
    "url": re.compile(
        r"^(?:(?:ht|f)tp(?:s?)\:\/\/|~\/|\/)?(?:\w+:\w+@)?"
        r"((?:(?:[-\w\d{1-3}]+\.)+(?:com|org|net|gov|mil|biz|info|mobi|name|aero|jobs|edu|co\.uk|ac\.uk"
        r"|it|fr|tv|museum|asia|local|travel|[a-z]{2}))"
        r"|((\b25[0-5]\b|\b[2][0-4][0-9]\b|\b[0-1]?[0-9]?[0-9]\b)"
        r"(\.(\b25[0-5]\b|\b[2][0-4][0-9]\b|\b[0-1]?[0-9]?[0-9]\b)){3}))"
        r"(?::[\d]{1,5})?(?:(?:(?:\/(?:[-\w~!$+|.,=]|%[a-f\d]{2})+)+|\/)+|\?|#)?"
        r"(?:(?:\?(?:[-\w~!$+|.,*:]|%[a-f\d{2}])+=?(?:[-\w~!$+|.,*:=]|%[a-f\d]{2})*)"
        r"(?:&(?:[-\w~!$+|.,*:]|%[a-f\d{2}])+=?(?:[-\w~!$+|.,*:=]|%[a-f\d]{2})*)*)*"
        r"(?:#(?:[-\w~!$ |\/.,*:;=]|%[a-f\d]{2})*)?$",
        re.IGNORECASE,
    ),
    "card": re.compile(
        r"^(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|6(?:011|5[0-9][0-9])[0-9]{12}"
        r"|3[47][0-9]{13}|3(?:0[0-5]|[68][0-9])[0-9]{11}|(?:2131|1800|35\d{3})\d{11})$"
    ),
    "phone": re.compile(
        r"^(?:(?:\+?1\s*(?:[.-]\s*)?)?(?:\(\s*([2-9]1[02-9]|[2-9][02-8]1|[2-9][02-8][02-9])\s*\)"
        r"|([2-9]1[02-9]|[2-9][02-8]1|[2-9][02-8][02-9]))\s*(?:[.-]\s*)?)?"
        r"([2-9]1[02-9]|[2-9][02-9]1|[2-9][02-9]{2})\s*(?:[.-]\s*)?([0-9]{4})"
        r"(?:\s*(?:#|x\.?|ext\.?|extension)\s*(\d+))?$"
    ),
}


@lru_cache(maxsize=None)
def _type_adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def matches_type(value: Any, expected: Any) -> bool:
    """
    Check ``value`` against a type tag or a Python annotation.

    String tags are compared with :func:`~starorm.utils.type_of`; anything
    else (``int``, ``list[str]``, ``Optional[datetime]``...) is validated by
    pydantic in strict mode, so no coercion takes place.
    """
    if isinstance(expected, str):
        return type_of(value) == expected.lower()

    try:
        _type_adapter(expected).validate_python(value, strict=True)
    except PydanticValidationError:
        return False
    return True


def _type_name(expected: Any) -> str:
    if isinstance(expected, str):
        return expected
    return getattr(expected, "__name__", None) or repr(expected)


def required(model, failures: List[FieldError]) -> None:
    for name, spec in model.attributes.items():
        if not spec.required:
            continue
        value = model.get(name)
        if value is None or value == "":
            failures.append(FieldError(f"{name} is required.", name))


def type_(model, failures: List[FieldError]) -> None:
    for name, spec in model.attributes.items():
        value = model.get(name)
        if value is None or spec.type is None:
            continue
        if not matches_type(value, spec.type):
            failures.append(
                FieldError(f"{name} is not of type {_type_name(spec.type)}.", name)
            )


def format_(model, failures: List[FieldError]) -> None:
    # Only attributes that also declare a type are format-checked
    for name, spec in model.attributes.items():
        value = model.get(name)
        if value is None or spec.type is None:
            continue
        pattern = FORMATS.get(spec.format) if spec.format else None
        if pattern is None:
            continue
        if not pattern.fullmatch(str(value)):
            failures.append(FieldError(f"{name} is not a valid {spec.format}", name))


BUILTIN_VALIDATORS: List[Validator] = [required, type_, format_]


def validate(model) -> List[FieldError]:
    """
    Run every validator registered on the model's type.

    Returns:
        Failures in validator order
    """
    failures: List[FieldError] = []
    for validator in model.validators:
        validator(model, failures)
    return failures


__all__ = [
    "FieldError",
    "Validator",
    "FORMATS",
    "BUILTIN_VALIDATORS",
    "matches_type",
    "required",
    "type_",
    "format_",
    "validate",
]
