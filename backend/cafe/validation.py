from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy import Integer, Numeric, String, Text


# Maximum price: 9,999,999,999.99 fits Numeric(12, 2)
MAX_PRICE = Decimal("9999999999.99")


class CafeError(Exception):
    """Base class for typed failures surfaced to API callers."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(CafeError, ValueError):
    """400-level input problem."""


class NotFoundError(CafeError, LookupError):
    """404-level missing (or soft-deleted) entity."""


class ConflictError(CafeError, ValueError):
    """409-level business rule conflict (e.g., phone claimed by the other identity table)."""


class AuthError(CafeError):
    """401-level credential or token problem."""


class PartialFailureError(CafeError):
    """
    A committed state change whose follow-up step failed.

    Carries the (truthful) entity that was committed so callers can report it
    alongside the failure.
    """
    def __init__(self, message: str, entity: Any = None, details: dict | None = None):
        super().__init__(message, details)
        self.entity = entity


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats with fractions, and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_money(value: Any, field: str) -> Decimal:
    """Money arrives as JSON number or numeric string; normalized to 2 decimal places."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")
    return amount.quantize(Decimal("0.01"))


def coerce_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    """Case-insensitive enum match; returns the canonical (upper-case) choice."""
    allowed = tuple(choices)
    if not isinstance(value, str) or value.strip().upper() not in allowed:
        raise ValidationError(f"{field} must be one of {', '.join(allowed)}")
    return value.strip().upper()


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


# =============================================================================
# PAYLOAD POLICIES (catalog writes)
# =============================================================================

@dataclass(frozen=True)
class PayloadPolicy:
    """
    What a client may send for one model.

    - writable: keys accepted at all (anything else is rejected)
    - required: keys that must be present on create
    - choices: enum-valued keys and their allowed values
    """
    writable: frozenset[str]
    required: frozenset[str] = frozenset()
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)


def _clean_value(column, key: str, raw: Any, policy: PayloadPolicy):
    if key in policy.choices:
        return coerce_choice(raw, key, policy.choices[key])

    coltype = column.type
    # Numeric before Integer: money columns
    if isinstance(coltype, Numeric) and not isinstance(coltype, Integer):
        return coerce_money(raw, key)
    if isinstance(coltype, Integer):
        return coerce_int(raw, key)
    if not isinstance(coltype, (String, Text)):
        return raw

    text = str(raw).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{key} cannot be blank")
    if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
        raise ValidationError(f"{key} exceeds max length {coltype.length}")
    return text


def clean_payload(model, payload: Any, policy: PayloadPolicy, *, partial: bool) -> dict:
    """
    Normalize a JSON body into a patch dict using the model's column metadata.

    partial=False (create) enforces policy.required; partial=True (patch)
    only checks the keys that were sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    columns = {c.key: c for c in model.__mapper__.columns}
    rejected = sorted(k for k in payload if k not in policy.writable or k not in columns)
    if rejected:
        raise ValidationError(f"Field not allowed: {', '.join(rejected)}")

    if not partial:
        missing = sorted(policy.required - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch: dict = {}
    for key, raw in payload.items():
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean_value(column, key, raw, policy)
    return patch
