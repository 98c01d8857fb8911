"""
Append-only stock audit tables, one per ledger entity type.

Wholesale Stock Audit Invariants (authoritative)

- Every change to stock_quantity or damaged_quantity has exactly one audit row,
  written in the same DB transaction as the quantity it records.
- Rows are never updated or deleted. The ORM rejects both.
- previous_quantity/new_quantity describe stock_quantity, except for
  audit_type='damaged' where they describe damaged_quantity.
- Trail reconstruction orders by (created_at, id).
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


AUDIT_RESTOCK = "restock"
AUDIT_DAMAGED = "damaged"
AUDIT_MANUAL_ADJUSTMENT = "manual_adjustment"
AUDIT_ORDER_PLACED = "order_placed"
AUDIT_ORDER_CANCELLED = "order_cancelled"
AUDIT_STATUS_CHANGE = "status_change"

VALID_AUDIT_TYPES = {
    AUDIT_RESTOCK,
    AUDIT_DAMAGED,
    AUDIT_MANUAL_ADJUSTMENT,
    AUDIT_ORDER_PLACED,
    AUDIT_ORDER_CANCELLED,
    AUDIT_STATUS_CHANGE,
}


class AuditImmutableError(RuntimeError):
    """Raised when code attempts to update or delete an audit row."""


class StockAuditMixin:
    id = db.Column(db.Integer, primary_key=True)

    audit_type = db.Column(db.String(32), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    # Python-side default so rows written in one transaction still order deterministically
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    @declared_attr
    def actor_user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    @declared_attr
    def order_id(cls):
        return db.Column(db.Integer, db.ForeignKey("wholesale_orders.id"), nullable=True, index=True)

    @declared_attr
    def order(cls):
        return db.relationship("Order")

    entity_type = None

    @property
    def entity_id(self) -> int:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "audit_type": self.audit_type,
            "quantity_change": self.quantity_change,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reason": self.reason,
            "actor_user_id": self.actor_user_id,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }


class ItemStockAudit(StockAuditMixin, db.Model):
    __tablename__ = "wholesale_item_stock_audits"
    __table_args__ = (
        db.Index("ix_item_stock_audits_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "item"

    item_id = db.Column(db.Integer, db.ForeignKey("wholesale_items.id"), nullable=False, index=True)
    item = db.relationship("Item", backref=db.backref("stock_audits", lazy="dynamic"))

    @property
    def entity_id(self) -> int:
        return self.item_id


class OptionStockAudit(StockAuditMixin, db.Model):
    __tablename__ = "wholesale_option_stock_audits"
    __table_args__ = (
        db.Index("ix_option_stock_audits_option_created", "option_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "option"

    option_id = db.Column(db.Integer, db.ForeignKey("wholesale_options.id"), nullable=False, index=True)
    option = db.relationship("Option", backref=db.backref("stock_audits", lazy="dynamic"))

    @property
    def entity_id(self) -> int:
        return self.option_id


class VariantStockAudit(StockAuditMixin, db.Model):
    __tablename__ = "wholesale_variant_stock_audits"
    __table_args__ = (
        db.Index("ix_variant_stock_audits_variant_created", "variant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "variant"

    variant_id = db.Column(db.Integer, db.ForeignKey("wholesale_item_variants.id"), nullable=False, index=True)
    variant = db.relationship("ItemVariant", backref=db.backref("stock_audits", lazy="dynamic"))

    @property
    def entity_id(self) -> int:
        return self.variant_id


AUDIT_MODELS = (ItemStockAudit, OptionStockAudit, VariantStockAudit)


def _reject_update(mapper, connection, target):
    raise AuditImmutableError(f"{type(target).__name__} rows are append-only (id={target.id})")


def _reject_delete(mapper, connection, target):
    raise AuditImmutableError(f"{type(target).__name__} rows cannot be deleted (id={target.id})")


for _model in AUDIT_MODELS:
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)
