from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from stockroom.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem in an HTTP payload."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which payload keys a route accepts for a model.

    writable_fields is the allowlist; anything else is rejected before
    coercion. required_on_create applies only to POST (partial=False).
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _integer(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    # "1e3" and "12.5" parse elsewhere but are not ids or cents
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _number(key: str, value: Any) -> Decimal:
    """Quantities and rates: JSON numbers or numeric strings, kept exact."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ValidationError(f"{key} must be a number")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")
    if not number.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return number


def _timestamp(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a datetime")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        dt = None
    if dt is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return dt


def _coerce_value(col, value: Any):
    coltype = col.type
    if value is None:
        return None
    if isinstance(coltype, Integer):
        return _integer(col.key, value)
    if isinstance(coltype, Numeric):
        return _number(col.key, value)
    if isinstance(coltype, DateTime):
        return _timestamp(col.key, value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def _check_text(col, value) -> None:
    if not isinstance(value, str):
        return
    if not col.nullable and value == "":
        raise ValidationError(f"{col.key} cannot be blank")
    length = getattr(col.type, "length", None)
    if isinstance(col.type, String) and length and len(value) > length:
        raise ValidationError(f"{col.key} exceeds max length {length}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a JSON body against the model's column metadata.

    partial=False: create semantics, required_on_create enforced
    partial=True: patch semantics, only the keys present are checked

    Returns a dict holding only writable keys, each coerced to the
    column's Python type (int, Decimal, datetime, str).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(col.type, (String, Text)):
            _check_text(col, value)
        patch[key] = value

    return patch


def enforce_price_cents(patch: dict, *fields: str) -> None:
    """Range rules for money fields that column metadata cannot express."""
    for name in fields or ("unit_price_cents",):
        price = patch.get(name)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{name} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{name} cannot exceed {MAX_PRICE_CENTS}")


def require_json_object(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def optional_int_arg(args, name: str) -> int | None:
    """Query-string integer (?location_id=3); blank means absent."""
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def bool_arg(args, name: str) -> bool:
    return str(args.get(name, "")).strip().lower() in ("1", "true", "yes")
