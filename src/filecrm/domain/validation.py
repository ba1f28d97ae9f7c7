"""Field-level checks applied at the service boundary and by the models."""

from __future__ import annotations

import re
from typing import Final

from filecrm.domain.errors import ValidationError

EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
DATE_TIME_TEXT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$"
)


def check_not_empty(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(path, f"expected string, got {type(value).__name__}")
    if not value.strip():
        raise ValidationError(path, "must not be empty")
    return value


def check_email(value: object, path: str) -> str:
    text = check_not_empty(value, path)
    if EMAIL_PATTERN.fullmatch(text) is None:
        raise ValidationError(path, f"not a valid email address: {text!r}")
    return text


def check_date_time_text(value: object, path: str) -> str:
    """Accept ``yyyy-MM-dd HH:mm:ss`` shaped strings (shape only, not calendar)."""

    text = check_not_empty(value, path)
    if DATE_TIME_TEXT_PATTERN.fullmatch(text) is None:
        raise ValidationError(path, f"expected 'yyyy-MM-dd HH:mm:ss', got {text!r}")
    return text


__all__ = [
    "DATE_TIME_TEXT_PATTERN",
    "EMAIL_PATTERN",
    "check_date_time_text",
    "check_email",
    "check_not_empty",
]
