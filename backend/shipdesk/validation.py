from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text

from .errors import ShipdeskError
from .time_utils import parse_iso_datetime


# Largest money value a Numeric(10, 2) column can hold
MAX_MONEY = Decimal("99999999.99")


class ValidationError(ShipdeskError):
    """400-level input problem. details holds one message per offending field."""

    def __init__(self, message: str = "Invalid payload", details: list[str] | None = None):
        super().__init__(message, details)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer for one endpoint:
    - writable_fields: wire key (camelCase, as the client sends it) -> model column key
    - required_on_create: wire keys required when partial=False
    - choices: wire key -> allowed values, for enum-like string columns
    """
    writable_fields: dict[str, str]
    required_on_create: frozenset[str] = frozenset()
    choices: dict[str, frozenset[str]] = field(default_factory=dict)


def _columns_by_key(model) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(wire_key: str, col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        if isinstance(value, bool):
            raise ValidationError(details=[f"{wire_key} must be an integer"])
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(details=[f"{wire_key} must be an integer"])

    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(details=[f"{wire_key} must be a number"])
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(details=[f"{wire_key} must be a number"])
        if not amount.is_finite():
            raise ValidationError(details=[f"{wire_key} must be a number"])
        if amount < 0:
            raise ValidationError(details=[f"{wire_key} must be >= 0"])
        if amount > MAX_MONEY:
            raise ValidationError(details=[f"{wire_key} cannot exceed {MAX_MONEY}"])
        return amount

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(details=[f"{wire_key} must be true or false"])

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is not None:
                return dt
        raise ValidationError(details=[f"{wire_key} must be an ISO-8601 date"])

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - the policy allowlist and enum choices
    - required_on_create (if partial=False)

    Returns a patch dict keyed by model column. All problems are collected and
    raised together as one ValidationError.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[str] = []

    if not partial:
        for wire_key in sorted(policy.required_on_create):
            if payload.get(wire_key) in (None, ""):
                errors.append(f"{wire_key} is required")

    cols = _columns_by_key(model)
    patch: dict = {}

    for wire_key, raw in payload.items():
        col_key = policy.writable_fields.get(wire_key)
        if col_key is None:
            errors.append(f"Field not allowed: {wire_key}")
            continue
        col = cols[col_key]

        if raw is None or raw == "":
            if not col.nullable and wire_key not in policy.required_on_create:
                errors.append(f"{wire_key} cannot be null")
            elif raw is None or isinstance(col.type, (String, Text)):
                patch[col_key] = None
            continue

        try:
            val = _coerce_value(wire_key, col, raw)
        except ValidationError as e:
            errors.extend(e.details)
            continue

        allowed = policy.choices.get(wire_key)
        if allowed is not None and val not in allowed:
            errors.append(f"{wire_key} must be one of: {', '.join(sorted(allowed))}")
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append(f"{wire_key} exceeds max length {col.type.length}")
                continue

        patch[col_key] = val

    if errors:
        raise ValidationError(details=errors)

    return patch


def require_positive_int(value: Any, name: str, *, allow_zero: bool = False) -> int:
    """Strict integer check for quantities that do not map onto a column."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(details=[f"{name} must be an integer"])
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValidationError(details=[f"{name} must be {bound}"])
    return value
