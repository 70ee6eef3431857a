from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from orderdesk.errors import OrderValidationError
from orderdesk.money import AmountOutOfRange, to_money
from orderdesk.time_utils import parse_iso_date, parse_iso_datetime
from .models import Order, OrderItem, Payment
from .models.orders import PAYMENT_METHODS
from .models.order_state import ORDER_STATUSES


# Maximum money value accepted on any amount field
MAX_AMOUNT = to_money("9999999999.99")

MAX_VOID_REASON_LENGTH = 500


class ValidationError(OrderValidationError, ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "notes", "preferred_pickup_date"},
    required_on_create=set(),
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "notes", "preferred_pickup_date", "status", "service_type"},
)

ORDER_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "unit_price", "notes"},
    required_on_create={"product_id", "quantity", "unit_price"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"payment_method", "amount", "reference_number", "notes"},
    required_on_create={"payment_method", "amount"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Money
    if isinstance(coltype, Numeric):
        try:
            amount = to_money(value)
        except AmountOutOfRange:
            raise ValidationError(f"{col.key} cannot exceed {MAX_AMOUNT}")
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{col.key} cannot exceed {MAX_AMOUNT}")
        return amount

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_order_item(patch: dict) -> None:
    if patch.get("product_id") is None or patch["product_id"] <= 0:
        raise ValidationError("product_id must be a positive integer")
    if patch.get("quantity") is None or patch["quantity"] < 1:
        raise ValidationError("quantity must be at least 1")
    if patch.get("unit_price") is None or patch["unit_price"] < 0:
        raise ValidationError("unit_price must be >= 0")


def enforce_rules_payment(patch: dict) -> None:
    if patch.get("payment_method") not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if patch.get("amount") is None or patch["amount"] < 0:
        raise ValidationError("amount must be >= 0")


def enforce_rules_order_update(patch: dict) -> None:
    if "status" in patch and patch["status"] not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    if "service_type" in patch and not patch["service_type"]:
        raise ValidationError("service_type cannot be blank")


def clean_order_lines(order_items) -> list[dict]:
    """Validate the order_items array of a create/update request."""
    if not isinstance(order_items, list) or not order_items:
        raise ValidationError("order_items must contain at least one item")

    lines = []
    for index, raw in enumerate(order_items):
        try:
            patch = validate_payload(
                model=OrderItem,
                payload=raw,
                policy=ORDER_ITEM_POLICY,
                partial=False,
            )
            enforce_rules_order_item(patch)
        except ValidationError as e:
            raise ValidationError(f"order_items[{index}]: {e}", details={"index": index})
        patch.setdefault("notes", None)
        lines.append(patch)
    return lines


def clean_payment(payload) -> dict:
    patch = validate_payload(
        model=Payment,
        payload=payload,
        policy=PAYMENT_POLICY,
        partial=False,
    )
    enforce_rules_payment(patch)
    patch.setdefault("reference_number", None)
    patch.setdefault("notes", None)
    return patch


def clean_order_fields(payload: dict, *, partial: bool) -> dict:
    """Header fields of an order (everything except order_items/payment)."""
    policy = ORDER_UPDATE_POLICY if partial else ORDER_CREATE_POLICY
    patch = validate_payload(model=Order, payload=payload, policy=policy, partial=partial)
    if partial:
        enforce_rules_order_update(patch)
    return patch


def clean_void_reason(reason) -> str:
    if reason is None or not isinstance(reason, str) or not reason.strip():
        raise ValidationError("void_reason is required")
    reason = reason.strip()
    if len(reason) > MAX_VOID_REASON_LENGTH:
        raise ValidationError(f"void_reason exceeds max length {MAX_VOID_REASON_LENGTH}")
    return reason


def clean_positive_quantity(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        else:
            raise ValidationError(f"{field} must be an integer")
    if value < 1:
        raise ValidationError(f"{field} must be at least 1")
    return value
