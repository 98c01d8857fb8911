"""
Shared stock columns for every ledger entity (Item, Option, ItemVariant).

The three entity types carry identical stock semantics, so the columns and
derived reads live here once. Mutation is NOT done here: quantities change
only through services.stock_ledger, which writes the audit row and the
recomputed status in the same transaction.
"""

from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db


STOCK_STATUS_UNLIMITED = "unlimited"
STOCK_STATUS_OUT = "out_of_stock"
STOCK_STATUS_LOW = "low_stock"
STOCK_STATUS_IN = "in_stock"


class StockLevelMixin:
    stock_quantity = db.Column(db.Integer, nullable=True)
    damaged_quantity = db.Column(db.Integer, nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    # Persisted projection of services.stock_status.derive_status; refreshed on every mutation
    stock_status = db.Column(db.String(16), nullable=False, default=STOCK_STATUS_UNLIMITED, index=True)

    # Optimistic lock: a concurrent lost update surfaces as StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.version_id}

    # Overridden per entity type
    audit_model = None
    entity_type = None

    @property
    def tracking_enabled(self) -> bool:
        raise NotImplementedError

    @property
    def allows_oversell(self) -> bool:
        return False

    @property
    def display_name(self) -> str:
        raise NotImplementedError

    @property
    def available_quantity(self) -> int:
        """max(stock - damaged, 0), derived at read time and never stored."""
        return max((self.stock_quantity or 0) - (self.damaged_quantity or 0), 0)

    def audit_fk(self) -> dict:
        """Keyword arguments pointing an audit row at this entity."""
        raise NotImplementedError
