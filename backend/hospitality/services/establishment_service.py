"""
Establishment (tenant) lookups and the aggregate sales counters.

COUNTER INVARIANTS:
1. sales_total_revenue / sales_total_orders change only via
   increment_sales_counters().
2. The increment is a single UPDATE with column arithmetic so concurrent
   postings for different orders of the same establishment never lose an
   update (no read-modify-write in Python).
3. The increment runs in the same transaction as the daily_sales insert it
   accounts for; the caller commits.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Establishment, ESTABLISHMENT_TYPES
from ..validation import ValidationError, NotFoundError
from hospitality.time_utils import utcnow, to_utc_z, is_valid_timezone


def get_establishment(establishment_id: int) -> Establishment:
    """Resolve a tenant or raise NotFoundError."""
    establishment = db.session.query(Establishment).filter_by(id=establishment_id).first()
    if not establishment:
        raise NotFoundError(f"Establishment {establishment_id} not found")
    return establishment


def list_establishments() -> list[Establishment]:
    return db.session.query(Establishment).order_by(Establishment.id.asc()).all()


def create_establishment(name: str, establishment_type: str = "restaurant", timezone: str = "UTC") -> Establishment:
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    if establishment_type not in ESTABLISHMENT_TYPES:
        raise ValidationError(f"establishment_type must be one of: {', '.join(ESTABLISHMENT_TYPES)}")
    timezone = timezone or "UTC"
    if not is_valid_timezone(timezone):
        raise ValidationError(f"timezone must be an IANA zone name (e.g. Africa/Kigali), got {timezone!r}")

    establishment = Establishment(
        name=str(name).strip(),
        establishment_type=establishment_type,
        timezone=timezone,
        is_active=True,
    )
    db.session.add(establishment)
    db.session.commit()
    return establishment


def increment_sales_counters(establishment_id: int, amount: int, orders: int = 1) -> int:
    """
    Atomically add to the establishment's running sales totals.

    Adds amount to revenue and orders to the order count, stamps last_updated.
    Does not commit. Returns the number of matched rows (0 if the
    establishment vanished).
    """
    matched = (
        db.session.query(Establishment)
        .filter(Establishment.id == establishment_id)
        .update(
            {
                Establishment.sales_total_revenue: Establishment.sales_total_revenue + amount,
                Establishment.sales_total_orders: Establishment.sales_total_orders + orders,
                Establishment.sales_last_updated: utcnow(),
            },
            synchronize_session=False,
        )
    )
    return matched


def get_sales_counters(establishment_id: int) -> dict:
    """Stored aggregate counters, read fresh from the database."""
    row = (
        db.session.query(
            Establishment.sales_total_revenue,
            Establishment.sales_total_orders,
            Establishment.sales_last_updated,
        )
        .filter(Establishment.id == establishment_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Establishment {establishment_id} not found")

    return {
        "total_revenue": int(row.sales_total_revenue or 0),
        "total_orders": int(row.sales_total_orders or 0),
        "last_updated": to_utc_z(row.sales_last_updated),
    }
