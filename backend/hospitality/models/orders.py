from __future__ import annotations

from ..extensions import db
from hospitality.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "preparing", "ready", "served", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid")
PAYMENT_METHODS = ("cash", "card", "mtn", "airtel", "room_charge")


class Order(db.Model):
    """
    Customer order placed with an establishment.

    LIFECYCLE:
    - Created as status=pending, payment_status=pending, payment_method=NULL.
    - status/payment_status are then moved by staff or payment callbacks.
      Transitions are not checked: any known status may follow any other.
    - cancelled is terminal for revenue purposes regardless of payment.
    - Orders are never deleted by this service.

    total is the sum of item price * quantity at creation; it is not
    recomputed on later updates.
    """
    __tablename__ = "orders"
    __table_args__ = (
        # Establishment-scoped listing and backfill scans
        db.Index("ix_orders_est_status", "establishment_id", "status"),
        db.Index("ix_orders_est_payment_status", "establishment_id", "payment_status"),
        db.Index("ix_orders_est_created", "establishment_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    establishment_id = db.Column(db.Integer, db.ForeignKey("establishments.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    delivery_address = db.Column(db.String(255), nullable=False, default="")
    notes = db.Column(db.Text, nullable=False, default="")

    total = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    establishment = db.relationship("Establishment", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} establishment_id={self.establishment_id} status={self.status}/{self.payment_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "establishment_id": self.establishment_id,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line item on an order (name/price captured at order time)."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }
