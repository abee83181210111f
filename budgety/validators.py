"""Validation helpers shared across Budgety services and forms."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .catalog import FREQUENCIES, INCOME_SOURCES, find_category
from .exceptions import ValidationError
from .models import parse_datetime

T = TypeVar("T")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 8

# Amount columns are Numeric(12, 2): at most ten integer digits.
MAX_AMOUNT = Decimal("9999999999.99")


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(
    raw: object,
    field: str,
    message: Optional[str] = None,
    *,
    allow_zero: bool = False,
) -> Decimal:
    """Convert raw input to a Decimal with exactly two fraction digits.

    Amounts must be positive unless ``allow_zero`` is set, in which case zero
    is accepted and only negatives are rejected.
    """
    if raw is None or isinstance(raw, bool) or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(message or f"{field} is required", field)
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{field} must be a numeric value", field) from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value", field)

    if amount < 0 or (amount == 0 and not allow_zero):
        bound = "0 or greater" if allow_zero else "greater than zero"
        raise ValidationError(message or f"{field} must be {bound}", field)

    try:
        amount = _quantize_two_decimals(amount)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be at most {MAX_AMOUNT}", field) from exc
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} must be at most {MAX_AMOUNT}", field)
    return amount


def validate_required_str(
    value: object, field: str, max_length: int, message: Optional[str] = None
) -> str:
    if value is None:
        raise ValidationError(message or f"{field} cannot be empty", field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(message or f"{field} cannot be empty", field)
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field)
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_required_str(value, field, max_length)


def validate_datetime(value: object, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 datetime", field) from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string", field)
    return dt.astimezone(timezone.utc)


def validate_enum(
    value: object, field: str, allowed: Iterable[str], message: Optional[str] = None
) -> str:
    allowed = set(allowed)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message or f"{field} must be one of: {', '.join(sorted(allowed))}", field)
    canonical = value.strip().lower()
    if canonical not in allowed:
        raise ValidationError(message or f"{field} must be one of: {', '.join(sorted(allowed))}", field)
    return canonical


def validate_category_id(value: object, field: str = "category_id") -> int:
    """Accept an int or numeric string naming a catalog category."""
    message = "Please select a category"
    if value is None or isinstance(value, bool):
        raise ValidationError(message, field)
    try:
        category_id = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(message, field) from exc
    if find_category(category_id) is None:
        raise ValidationError(message, field)
    return category_id


def validate_email(value: object, field: str = "email") -> str:
    if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value.strip()):
        raise ValidationError("Invalid email address", field)
    return value.strip().lower()


def validate_password(value: object, field: str = "password") -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field
        )
    return value


class FormValidator:
    """Runs field validators and gathers every failure before raising.

    Usage::

        form = FormValidator()
        amount = form.check(parse_amount, payload.get("amount"), "amount")
        form.raise_for_issues()
    """

    def __init__(self) -> None:
        self.issues: List[Dict[str, Optional[str]]] = []

    def check(self, validator: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return validator(*args, **kwargs)
        except ValidationError as exc:
            self.issues.extend(exc.issues)
            return None

    def add(self, field: str, message: str) -> None:
        self.issues.append({"path": field, "message": message})

    def raise_for_issues(self) -> None:
        if self.issues:
            raise ValidationError(self.issues[0]["message"] or "Invalid form data", issues=list(self.issues))


def validate_income_payload(payload: Dict[str, object]) -> Dict[str, Any]:
    """Validate an income form submission and return normalised fields."""
    form = FormValidator()
    data = {
        "amount": form.check(parse_amount, payload.get("amount"), "amount", "Amount must be greater than 0"),
        "source": form.check(
            validate_enum, payload.get("source"), "source", INCOME_SOURCES, "Please select an income source"
        ),
        "frequency": form.check(
            validate_enum, payload.get("frequency"), "frequency", FREQUENCIES, "Please select a frequency"
        ),
        "income_name": form.check(
            validate_required_str, payload.get("income_name"), "income_name", 100, "Income name is required"
        ),
    }
    form.raise_for_issues()
    return data
