"""
Sales Reconciliation: order state -> daily sales ledger

WHY: Several independent signals (kitchen marks an order served, a payment
callback marks it paid, an operator runs a backfill) can each be the one
that recognises revenue for an order. All of them go through reconcile()
so the decision and the write path exist exactly once.

INVARIANTS:
1. qualifies() is derived from the order's current fields, never from
   which field changed.
2. At most one daily_sales row per (establishment_id, order_id). The
   lookup below is only a fast path; uq_daily_sales_est_order is the guard.
   A duplicate insert is a ReconciliationConflict and means "already posted".
3. The ledger insert, the establishment counter increment and the
   sales.posted audit event commit together or not at all.
4. Ledger rows are never updated or deleted here.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DailySale, Establishment, Order
from ..validation import PersistenceError, ReconciliationConflict
from .audit_service import append_audit_event
from .establishment_service import increment_sales_counters, get_establishment, get_sales_counters
from hospitality.time_utils import business_day

logger = logging.getLogger(__name__)

# reconcile() outcomes
NOT_QUALIFIED = "not_qualified"
POSTED = "posted"
ALREADY_POSTED = "already_posted"
FAILED = "failed"

NON_REVENUE_STATUSES = frozenset({"pending", "cancelled"})
DEFAULT_PAYMENT_METHOD = "cash"


def qualifies(order: Order) -> bool:
    """
    Revenue recognition predicate.

    cancelled never qualifies, even when paid. Otherwise any progress past
    pending, or a paid payment status, qualifies.
    """
    if order.status == "cancelled":
        return False
    if order.status and order.status not in NON_REVENUE_STATUSES:
        return True
    return order.payment_status == "paid"


def find_ledger_entry(establishment_id: int, order_id: int) -> DailySale | None:
    return (
        db.session.query(DailySale)
        .filter_by(establishment_id=establishment_id, order_id=order_id)
        .first()
    )


def _insert_ledger_entry(
    establishment_id: int,
    order_id: int,
    amount: int,
    payment_method: str | None,
    sale_date: date,
) -> DailySale:
    """
    Flush a new ledger row. Raises ReconciliationConflict when another
    transaction already posted this order.

    Takes plain values: after a failed flush the session must be rolled back
    before any ORM attribute can be read again.
    """
    entry = DailySale(
        establishment_id=establishment_id,
        order_id=order_id,
        amount=amount,
        payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
        sale_date=sale_date,
        status="completed",
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ReconciliationConflict(
            f"Order {order_id} already posted for establishment {establishment_id}"
        ) from exc
    return entry


def reconcile(order: Order, *, actor: str | None = None) -> str:
    """
    Post order to the daily sales ledger if it qualifies and is not posted yet.

    Returns one of NOT_QUALIFIED, POSTED, ALREADY_POSTED.
    Raises PersistenceError on any other storage failure (session rolled back).
    """
    if not qualifies(order):
        logger.debug(
            "Order %s not eligible for sales (status=%s, payment_status=%s)",
            order.id, order.status, order.payment_status,
        )
        return NOT_QUALIFIED

    establishment_id = order.establishment_id
    order_id = order.id
    amount = order.total
    payment_method = order.payment_method

    try:
        if find_ledger_entry(establishment_id, order_id) is not None:
            logger.debug("Order %s already counted in sales", order_id)
            return ALREADY_POSTED

        tz_name = (
            db.session.query(Establishment.timezone)
            .filter(Establishment.id == establishment_id)
            .scalar()
        )
        entry = _insert_ledger_entry(
            establishment_id, order_id, amount, payment_method, business_day(tz_name),
        )

        if increment_sales_counters(establishment_id, amount) == 0:
            raise PersistenceError(f"Establishment {establishment_id} not found for sales update")

        append_audit_event(
            establishment_id=establishment_id,
            event_type="sales.posted",
            entity_type="order",
            entity_id=order_id,
            actor=actor,
            note=f"Order {order_id} posted to daily sales",
            payload={
                "daily_sale_id": entry.id,
                "amount": amount,
                "payment_method": entry.payment_method,
                "sale_date": entry.sale_date.isoformat(),
            },
        )
        db.session.commit()
    except ReconciliationConflict:
        db.session.rollback()
        logger.info("Order %s was posted concurrently; treating as already posted", order_id)
        return ALREADY_POSTED
    except PersistenceError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to post order {order_id} to daily sales") from exc

    logger.info(
        "Posted order %s to daily sales for establishment %s: %s",
        order_id, establishment_id, amount,
    )
    return POSTED


def reconcile_safely(order: Order, *, actor: str | None = None) -> str:
    """
    Isolated reconcile for side-effect callers (order status updates).

    Any failure is logged and reported as FAILED, never raised: the
    order change has already been committed and stays. The backfill tools
    pick up whatever was missed.
    """
    order_id = order.id
    try:
        return reconcile(order, actor=actor)
    except PersistenceError:
        logger.exception("Sales reconciliation failed for order %s", order_id)
        return FAILED
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected error reconciling order %s", order_id)
        return FAILED


def list_ledger_entries(
    establishment_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int | None = None,
) -> list[DailySale]:
    """
    Ledger read entrypoint. Day range is inclusive on both ends.
    """
    get_establishment(establishment_id)

    q = db.session.query(DailySale).filter(DailySale.establishment_id == establishment_id)
    if start_date is not None:
        q = q.filter(DailySale.sale_date >= start_date)
    if end_date is not None:
        q = q.filter(DailySale.sale_date <= end_date)

    q = q.order_by(DailySale.sale_date.desc(), DailySale.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def get_sales_summary(establishment_id: int) -> dict:
    """Stored aggregate counters for an establishment."""
    return get_sales_counters(establishment_id)
