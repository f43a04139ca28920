from __future__ import annotations

from ..extensions import db
from hospitality.time_utils import to_utc_z


class DailySale(db.Model):
    """
    Sales ledger entry: recognised revenue for exactly one order.

    INVARIANTS:
    - At most one row per (establishment_id, order_id), enforced by
      uq_daily_sales_est_order. A concurrent second insert fails with
      IntegrityError and is treated as "already posted".
    - Append-only: rows are never updated or deleted.
    - sale_date is the establishment's business day at posting time.
    """
    __tablename__ = "daily_sales"
    __table_args__ = (
        db.UniqueConstraint("establishment_id", "order_id", name="uq_daily_sales_est_order"),
        db.Index("ix_daily_sales_est_date", "establishment_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    establishment_id = db.Column(db.Integer, db.ForeignKey("establishments.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    sale_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("daily_sale", uselist=False, lazy=True))

    def __repr__(self) -> str:
        return f"<DailySale id={self.id} order_id={self.order_id} amount={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "establishment_id": self.establishment_id,
            "order_id": self.order_id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "sale_date": self.sale_date.isoformat() if self.sale_date else None,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
