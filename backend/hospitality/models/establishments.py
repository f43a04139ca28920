from __future__ import annotations

from ..extensions import db
from hospitality.time_utils import to_utc_z


ESTABLISHMENT_TYPES = ("restaurant", "hotel", "cafe", "bakery")


class Establishment(db.Model):
    """
    Multi-tenant root: every tenant is an Establishment.

    WHY: Orders, daily sales and audit events are all scoped by
    establishment_id. No data may cross establishment boundaries.

    SALES COUNTERS:
    - sales_total_revenue / sales_total_orders are running aggregates of the
      daily_sales ledger for this establishment.
    - They are only ever changed through a single atomic
      UPDATE ... SET col = col + :delta (see establishment_service).
    - Invariant: sales_total_revenue == SUM(daily_sales.amount).
    """
    __tablename__ = "establishments"
    __table_args__ = (
        db.Index("ix_establishments_type", "establishment_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    establishment_type = db.Column(db.String(32), nullable=False, default="restaurant")

    # Business day boundaries for daily sales
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Embedded aggregate counters
    sales_total_revenue = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    sales_total_orders = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    sales_last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Establishment id={self.id} name={self.name!r} type={self.establishment_type}>"

    def sales_dict(self) -> dict:
        return {
            "total_revenue": self.sales_total_revenue,
            "total_orders": self.sales_total_orders,
            "last_updated": to_utc_z(self.sales_last_updated),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "establishment_type": self.establishment_type,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "sales": self.sales_dict(),
            "created_at": to_utc_z(self.created_at),
        }
