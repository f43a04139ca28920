from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import ORDER_STATUSES, PAYMENT_STATUSES, PAYMENT_METHODS


# Upper bound for a single item price / order total (whole currency units)
MAX_AMOUNT = 999_999_999
MAX_ITEM_QUANTITY = 10_000


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: establishment or order does not exist (in this tenant)."""


class PersistenceError(Exception):
    """Storage operation failed (connectivity, timeout, constraint)."""


class ReconciliationConflict(PersistenceError):
    """Ledger entry for this order was inserted concurrently; already posted."""


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
    writable_fields={"customer_name", "phone", "delivery_address", "notes"},
    required_on_create={"customer_name", "phone"},
)

ORDER_STATUS_POLICY = ModelValidationPolicy(
    writable_fields={"status", "payment_status", "payment_method"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        # 1500.0 from a JS client is fine, 1500.5 is not
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
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
    Validates + normalizes incoming fields against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

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

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and k in required:
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def validate_order_items(items: Any) -> list[dict]:
    """
    Normalize order line items to [{"name", "price", "quantity"}].

    - list must be non-empty
    - name required, price >= 0, quantity >= 1 (integers)
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")

        name = raw.get("name")
        if name is None or str(name).strip() == "":
            raise ValidationError(f"items[{idx}].name is required")

        if raw.get("price") is None:
            raise ValidationError(f"items[{idx}].price is required")
        price = coerce_int(f"items[{idx}].price", raw.get("price"))
        if price < 0:
            raise ValidationError(f"items[{idx}].price must be >= 0")
        if price > MAX_AMOUNT:
            raise ValidationError(f"items[{idx}].price cannot exceed {MAX_AMOUNT}")

        quantity = coerce_int(f"items[{idx}].quantity", raw.get("quantity", 1))
        if quantity < 1:
            raise ValidationError(f"items[{idx}].quantity must be >= 1")
        if quantity > MAX_ITEM_QUANTITY:
            raise ValidationError(f"items[{idx}].quantity cannot exceed {MAX_ITEM_QUANTITY}")

        cleaned.append({"name": str(name).strip(), "price": price, "quantity": quantity})

    return cleaned


def enforce_rules_order_status(patch: dict) -> None:
    """
    Enum membership for status fields. Transitions themselves are not checked.
    """
    if not patch:
        raise ValidationError("At least one of status, payment_status, payment_method is required")

    if "status" in patch:
        if patch["status"] not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    if "payment_status" in patch:
        if patch["payment_status"] not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")

    if "payment_method" in patch and patch["payment_method"] is not None:
        if patch["payment_method"] not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
