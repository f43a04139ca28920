# Overview: Backfill and cross-check tools for daily sales; reuses reconciliation for every write.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import DailySale, Order
from ..validation import NotFoundError, PersistenceError, ValidationError
from .audit_service import append_audit_event
from .establishment_service import get_establishment, get_sales_counters
from . import reconciliation_service
from hospitality.time_utils import business_day, day_bounds_utc

logger = logging.getLogger(__name__)

BACKFILL_CRITERIA = ("paid", "served")


@dataclass
class BackfillResult:
    establishment_id: int
    criterion: str
    scanned: int = 0
    newly_posted: int = 0
    already_posted: int = 0
    not_qualified: int = 0
    failed: int = 0
    posted_order_ids: list[int] = field(default_factory=list)
    failed_order_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "establishment_id": self.establishment_id,
            "criterion": self.criterion,
            "scanned": self.scanned,
            "newlyPosted": self.newly_posted,
            "alreadyPosted": self.already_posted,
            "notQualified": self.not_qualified,
            "failed": self.failed,
            "posted_order_ids": list(self.posted_order_ids),
            "failed_order_ids": list(self.failed_order_ids),
        }


def _backfill(establishment_id: int, criterion: str, actor: str | None) -> BackfillResult:
    get_establishment(establishment_id)

    q = db.session.query(Order.id).filter(Order.establishment_id == establishment_id)
    if criterion == "paid":
        q = q.filter(Order.payment_status == "paid")
    else:
        q = q.filter(Order.status == "served")

    # ids first: reconcile() commits/rolls back per order, which expires loaded rows
    order_ids = [row.id for row in q.order_by(Order.id.asc()).all()]
    result = BackfillResult(establishment_id=establishment_id, criterion=criterion, scanned=len(order_ids))

    logger.info(
        "Backfill (%s) scanning %d orders for establishment %s",
        criterion, len(order_ids), establishment_id,
    )

    for order_id in order_ids:
        order = db.session.get(Order, order_id)
        if order is None:
            continue
        try:
            outcome = reconciliation_service.reconcile(order, actor=actor)
        except PersistenceError:
            logger.exception("Backfill failed to post order %s", order_id)
            result.failed += 1
            result.failed_order_ids.append(order_id)
            continue

        if outcome == reconciliation_service.POSTED:
            result.newly_posted += 1
            result.posted_order_ids.append(order_id)
        elif outcome == reconciliation_service.ALREADY_POSTED:
            result.already_posted += 1
        else:
            result.not_qualified += 1

    if result.newly_posted:
        # postings are already committed; a lost summary event must not fail the run
        try:
            append_audit_event(
                establishment_id=establishment_id,
                event_type="sales.backfilled",
                entity_type="establishment",
                entity_id=establishment_id,
                actor=actor,
                note=f"Backfill ({criterion}) posted {result.newly_posted} of {result.scanned} orders",
                payload=result.to_dict(),
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(
                "Backfill (%s) for establishment %s: summary audit event not saved",
                criterion, establishment_id,
            )

    logger.info(
        "Backfill (%s) for establishment %s: scanned=%d newly_posted=%d failed=%d",
        criterion, establishment_id, result.scanned, result.newly_posted, result.failed,
    )
    return result


def backfill_by_payment_status(establishment_id: int, actor: str | None = None) -> BackfillResult:
    """Post every paid order that has no ledger entry yet."""
    return _backfill(establishment_id, "paid", actor)


def backfill_by_served_status(establishment_id: int, actor: str | None = None) -> BackfillResult:
    """Post every served order that has no ledger entry yet."""
    return _backfill(establishment_id, "served", actor)


def run_backfill(establishment_id: int, criterion: str, actor: str | None = None) -> BackfillResult:
    if criterion not in BACKFILL_CRITERIA:
        raise ValidationError(f"by must be one of: {', '.join(BACKFILL_CRITERIA)}")
    return _backfill(establishment_id, criterion, actor)


def _order_totals(orders: list[Order]) -> dict:
    return {"count": len(orders), "total": sum(o.total or 0 for o in orders)}


def audit_sales(establishment_id: int, day: date | None = None) -> dict:
    """
    Read-only comparison of order-derived, ledger-derived and stored totals.

    Day-scoped figures use orders created on `day` and ledger rows with
    sale_date == `day` (establishment business day). The all-time section
    checks the counter invariant: stored revenue == SUM(daily_sales.amount).
    """
    establishment = get_establishment(establishment_id)
    day = day or business_day(establishment.timezone)
    start, end = day_bounds_utc(day, establishment.timezone)

    day_orders = (
        db.session.query(Order)
        .filter(
            Order.establishment_id == establishment_id,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    served = [o for o in day_orders if o.status == "served"]
    paid = [o for o in day_orders if o.payment_status == "paid"]
    qualifying = [o for o in day_orders if reconciliation_service.qualifies(o)]

    day_entries = (
        db.session.query(DailySale)
        .filter(DailySale.establishment_id == establishment_id, DailySale.sale_date == day)
        .order_by(DailySale.id.desc())
        .all()
    )

    ledger_count, ledger_total = (
        db.session.query(func.count(DailySale.id), func.coalesce(func.sum(DailySale.amount), 0))
        .filter(DailySale.establishment_id == establishment_id)
        .one()
    )
    stored = get_sales_counters(establishment_id)

    unposted = (
        db.session.query(Order)
        .outerjoin(
            DailySale,
            and_(DailySale.order_id == Order.id, DailySale.establishment_id == Order.establishment_id),
        )
        .filter(Order.establishment_id == establishment_id, DailySale.id.is_(None))
        .order_by(Order.id.asc())
        .all()
    )
    missing = [o.id for o in unposted if reconciliation_service.qualifies(o)]

    ledger_count = int(ledger_count or 0)
    ledger_total = int(ledger_total or 0)

    return {
        "establishment_id": establishment_id,
        "date": day.isoformat(),
        "orders": {
            "all": _order_totals(day_orders),
            "served": _order_totals(served),
            "paid": _order_totals(paid),
            "qualifying": _order_totals(qualifying),
        },
        "ledger": {
            "count": len(day_entries),
            "total": sum(e.amount for e in day_entries),
            "entries": [e.to_dict() for e in day_entries],
        },
        "all_time": {
            "ledger_count": ledger_count,
            "ledger_total": ledger_total,
            "stored_total_revenue": stored["total_revenue"],
            "stored_total_orders": stored["total_orders"],
            "consistent": (
                ledger_total == stored["total_revenue"] and ledger_count == stored["total_orders"]
            ),
            "unposted_qualifying_order_ids": missing,
        },
        "stored_aggregate": stored,
    }


def order_status_counts(establishment_id: int) -> dict:
    """Orders by status and by payment status, plus ledger row count."""
    get_establishment(establishment_id)

    by_status = dict(
        db.session.query(Order.status, func.count(Order.id))
        .filter(Order.establishment_id == establishment_id)
        .group_by(Order.status)
        .all()
    )
    by_payment = dict(
        db.session.query(Order.payment_status, func.count(Order.id))
        .filter(Order.establishment_id == establishment_id)
        .group_by(Order.payment_status)
        .all()
    )
    ledger_entries = (
        db.session.query(func.count(DailySale.id))
        .filter(DailySale.establishment_id == establishment_id)
        .scalar()
    )

    return {
        "establishment_id": establishment_id,
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "by_payment_status": by_payment,
        "ledger_entries": int(ledger_entries or 0),
    }


def get_order_sales_status(establishment_id: int, order_id: int) -> dict:
    """One order, its ledger entry (if any) and the establishment counters."""
    get_establishment(establishment_id)

    order = db.session.query(Order).filter_by(id=order_id, establishment_id=establishment_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")

    entry = reconciliation_service.find_ledger_entry(establishment_id, order_id)
    return {
        "order": order.to_dict(),
        "qualifies": reconciliation_service.qualifies(order),
        "daily_sale": entry.to_dict() if entry else None,
        "establishment_sales": get_sales_counters(establishment_id),
    }
