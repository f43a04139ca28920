"""
Order Record Manager: order creation and status/payment transitions.

WHY: The order row is the primary record; daily sales are derived from it.
An order update succeeds or fails on its own terms, and only then is the
post-update state handed to reconciliation as an isolated side effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Order, OrderItem
from ..validation import (
    NotFoundError,
    PersistenceError,
    ORDER_CREATE_POLICY,
    ORDER_STATUS_POLICY,
    validate_payload,
    validate_order_items,
    enforce_rules_order_status,
)
from hospitality.time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_with_retry
from .establishment_service import get_establishment
from . import reconciliation_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderUpdateResult:
    order: Order
    reconciliation_attempted: bool
    reconciliation_outcome: str

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "reconciliation": {
                "attempted": self.reconciliation_attempted,
                "outcome": self.reconciliation_outcome,
            },
        }


def create_order(
    establishment_id: int,
    customer_name: str | None,
    phone: str | None,
    items,
    delivery_address: str | None = None,
    notes: str | None = None,
    actor: str | None = "customer",
) -> Order:
    """
    Create a pending, unpaid order. total is computed from the items.
    """
    fields = {"customer_name": customer_name, "phone": phone}
    if delivery_address is not None:
        fields["delivery_address"] = delivery_address
    if notes is not None:
        fields["notes"] = notes

    patch = validate_payload(model=Order, payload=fields, policy=ORDER_CREATE_POLICY, partial=False)
    lines = validate_order_items(items)

    establishment = get_establishment(establishment_id)

    now = utcnow()
    order = Order(
        establishment_id=establishment.id,
        customer_name=patch["customer_name"],
        phone=patch["phone"],
        delivery_address=patch.get("delivery_address", ""),
        notes=patch.get("notes", ""),
        total=sum(line["price"] * line["quantity"] for line in lines),
        status="pending",
        payment_status="pending",
        payment_method=None,
        created_at=now,
        updated_at=now,
    )
    for line in lines:
        order.items.append(
            OrderItem(
                name=line["name"],
                price=line["price"],
                quantity=line["quantity"],
                line_total=line["price"] * line["quantity"],
            )
        )

    try:
        db.session.add(order)
        db.session.flush()

        append_audit_event(
            establishment_id=establishment.id,
            event_type="order.created",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            occurred_at=now,
            note=f"Order created for {order.customer_name}"[:255],
            payload={"total": order.total, "items": len(lines)},
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError("Failed to create order") from exc

    logger.info("Created order %s for establishment %s (total=%s)", order.id, establishment.id, order.total)
    return order


def get_order(establishment_id: int, order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, establishment_id=establishment_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    establishment_id: int,
    status: str | None = None,
    payment_status: str | None = None,
) -> list[Order]:
    """Orders for an establishment, newest first."""
    get_establishment(establishment_id)

    q = db.session.query(Order).filter(Order.establishment_id == establishment_id)
    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_order_status(
    establishment_id: int,
    order_id: int,
    status: str | None = None,
    payment_status: str | None = None,
    payment_method: str | None = None,
    actor: str | None = None,
) -> OrderUpdateResult:
    """
    Partial update of status / payment_status / payment_method.

    Only the provided (non-None) fields change, plus updated_at. After the
    update commits, the post-update order is reconciled; a reconciliation
    failure is logged and reported in the result but never raised.
    """
    fields = {}
    if status is not None:
        fields["status"] = status
    if payment_status is not None:
        fields["payment_status"] = payment_status
    if payment_method is not None:
        fields["payment_method"] = payment_method

    patch = validate_payload(model=Order, payload=fields, policy=ORDER_STATUS_POLICY, partial=True)
    enforce_rules_order_status(patch)

    def _op():
        order = lock_for_update(
            db.session.query(Order).filter_by(id=order_id, establishment_id=establishment_id)
        ).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        previous = {k: getattr(order, k) for k in patch}
        for key, value in patch.items():
            setattr(order, key, value)
        order.updated_at = utcnow()

        append_audit_event(
            establishment_id=establishment_id,
            event_type="order.updated",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            occurred_at=order.updated_at,
            payload={"from": previous, "to": patch},
        )
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except NotFoundError:
        db.session.rollback()
        raise
    except (OperationalError, StaleDataError) as exc:
        raise PersistenceError(f"Order {order_id} could not be updated after retries") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to update order {order_id}") from exc

    outcome = reconciliation_service.reconcile_safely(order, actor=actor)
    return OrderUpdateResult(
        order=order,
        reconciliation_attempted=outcome != reconciliation_service.NOT_QUALIFIED,
        reconciliation_outcome=outcome,
    )
