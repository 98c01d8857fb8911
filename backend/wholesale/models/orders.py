from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_FULFILLED = "fulfilled"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)

PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_REFUNDED = "refunded"


class Order(db.Model):
    """
    Wholesale order aggregate.

    LIFECYCLE (see services.order_service.ALLOWED_TRANSITIONS):
        pending -> fulfilled -> completed
        pending/fulfilled -> cancelled
    completed and cancelled are terminal.

    payment_status is orthogonal to status; a refund flips it to 'refunded'
    without moving the fulfillment status.

    inventory_released_at is set by whichever path (cancel or refund) first
    returns the reserved stock, so stock is never restored twice.
    """
    __tablename__ = "wholesale_orders"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "order_number", name="uq_wholesale_orders_restaurant_number"),
        db.Index("ix_wholesale_orders_restaurant_status_created", "restaurant_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    order_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_UNPAID, index=True)

    # Always equals sum(quantity * price_cents) over order_items
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    status_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    inventory_released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    restaurant = db.relationship("Restaurant", backref=db.backref("orders", lazy=True))
    order_items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self.order_items)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.order_items)

    def recalculate_total(self) -> int:
        self.total_cents = self.subtotal_cents
        return self.total_cents

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "notes": self.notes,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_cents": self.total_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "status_changed_at": to_utc_z(self.status_changed_at),
            "inventory_released_at": to_utc_z(self.inventory_released_at),
            "refunded_at": to_utc_z(self.refunded_at),
            "items": [line.to_dict() for line in self.order_items],
        }


class OrderItem(db.Model):
    """
    Order line. item_name and price_cents are snapshots taken at order time
    and are never recomputed from the live catalog.
    """
    __tablename__ = "wholesale_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_wholesale_order_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("wholesale_orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("wholesale_items.id"), nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    # {"<group_id>": [<option_id>, ...]}; empty for non-configurable items
    selected_options = db.Column(db.JSON, nullable=False, default=dict)

    # Snapshot of the variant row reserved against (variant tracking only)
    variant_key = db.Column(db.String(255), nullable=True)

    order = db.relationship("Order", back_populates="order_items")
    item = db.relationship("Item")

    @property
    def line_total_cents(self) -> int:
        return (self.quantity or 0) * (self.price_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
            "selected_options": self.selected_options or {},
            "variant_key": self.variant_key,
        }


class OrderSequence(db.Model):
    """Per-restaurant order counter backing order numbers."""
    __tablename__ = "wholesale_order_sequences"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", name="uq_wholesale_order_sequences_restaurant"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
