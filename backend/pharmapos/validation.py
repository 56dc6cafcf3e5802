from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pharmapos.time_utils import parse_iso_datetime


# Largest amount a Numeric(12, 2) column can hold
MAX_AMOUNT = Decimal("9999999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


def require_json(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("JSON object body required")
    return payload


def parse_int(value: Any, field: str, *, required: bool = False, minimum: int | None = None) -> int | None:
    """
    Strict integer parsing - rejects floats, bools, and scientific notation.
    """
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        result = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return result


def parse_decimal(value: Any, field: str, *, required: bool = False, default: Decimal | None = None) -> Decimal | None:
    """Money and percentages arrive as JSON numbers or strings."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} required")
        return default

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return result


def parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_choice(value: Any, field: str, choices, *, default: str | None = None) -> str | None:
    if value is None or value == "":
        return default
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value
