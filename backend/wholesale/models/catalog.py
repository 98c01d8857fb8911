from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .stock import StockLevelMixin


class Item(StockLevelMixin, db.Model):
    """
    Sellable wholesale product (catalog item).

    TRACKING MODES (mutually exclusive, see services.tracking):
    - track_variants=True             -> stock lives on ItemVariant rows
    - one OptionGroup tracks inventory -> stock lives on that group's Options
    - track_inventory=True            -> stock lives on this row
    - none of the above               -> unlimited

    Item-level stock fields are NULL whenever track_inventory is False.
    """
    __tablename__ = "wholesale_items"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "sku", name="uq_wholesale_items_restaurant_sku"),
        db.Index("ix_wholesale_items_restaurant_active", "restaurant_id", "active"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "item"

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    active = db.Column(db.Boolean, nullable=False, default=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    track_inventory = db.Column(db.Boolean, nullable=False, default=False)
    track_variants = db.Column(db.Boolean, nullable=False, default=False)
    allow_sale_with_no_stock = db.Column(db.Boolean, nullable=False, default=False)

    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    restaurant = db.relationship("Restaurant", backref=db.backref("items", lazy=True))
    option_groups = db.relationship(
        "OptionGroup",
        back_populates="item",
        order_by="OptionGroup.position, OptionGroup.id",
        cascade="all, delete-orphan",
    )
    variants = db.relationship(
        "ItemVariant",
        back_populates="item",
        order_by="ItemVariant.id",
        cascade="all, delete-orphan",
    )

    @property
    def audit_model(self):
        from .audits import ItemStockAudit
        return ItemStockAudit

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.track_inventory)

    @property
    def allows_oversell(self) -> bool:
        return bool(self.allow_sale_with_no_stock)

    @property
    def display_name(self) -> str:
        return self.name

    def audit_fk(self) -> dict:
        return {"item_id": self.id}

    @property
    def inventory_tracking_group(self) -> "OptionGroup | None":
        for group in self.option_groups:
            if group.enable_inventory_tracking:
                return group
        return None

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} restaurant_id={self.restaurant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "active": self.active,
            "track_inventory": self.track_inventory,
            "track_variants": self.track_variants,
            "allow_sale_with_no_stock": self.allow_sale_with_no_stock,
            "stock_quantity": self.stock_quantity,
            "damaged_quantity": self.damaged_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "available_quantity": self.available_quantity if self.track_inventory else None,
            "stock_status": self.stock_status,
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "version_id": self.version_id,
        }


class OptionGroup(db.Model):
    """
    Named set of choices on an item (e.g. "Size").

    At most one group per item may have enable_inventory_tracking=True.
    That rule is enforced by services.catalog_service / services.tracking
    at write time.
    """
    __tablename__ = "wholesale_option_groups"
    __table_args__ = (
        db.CheckConstraint("min_select >= 0", name="ck_option_groups_min_select"),
        db.CheckConstraint("max_select >= 1", name="ck_option_groups_max_select"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("wholesale_items.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    min_select = db.Column(db.Integer, nullable=False, default=0)
    max_select = db.Column(db.Integer, nullable=False, default=1)
    required = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    enable_inventory_tracking = db.Column(db.Boolean, nullable=False, default=False)

    item = db.relationship("Item", back_populates="option_groups")
    options = db.relationship(
        "Option",
        back_populates="option_group",
        order_by="Option.position, Option.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<OptionGroup id={self.id} name={self.name!r} item_id={self.item_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "name": self.name,
            "min_select": self.min_select,
            "max_select": self.max_select,
            "required": self.required,
            "position": self.position,
            "enable_inventory_tracking": self.enable_inventory_tracking,
        }


class Option(StockLevelMixin, db.Model):
    """
    One selectable value within an OptionGroup.

    Stock fields are meaningful only while the owning group tracks inventory.
    Sales counters (total_ordered, total_revenue_cents) accumulate regardless
    of tracking and are reversed only by a refund.
    """
    __tablename__ = "wholesale_options"
    __table_args__ = (
        db.UniqueConstraint("option_group_id", "name", name="uq_wholesale_options_group_name"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "option"

    id = db.Column(db.Integer, primary_key=True)
    option_group_id = db.Column(
        db.Integer, db.ForeignKey("wholesale_option_groups.id"), nullable=False, index=True
    )

    name = db.Column(db.String(255), nullable=False)
    additional_price_cents = db.Column(db.Integer, nullable=False, default=0)
    available = db.Column(db.Boolean, nullable=False, default=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    total_ordered = db.Column(db.Integer, nullable=False, default=0)
    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)

    option_group = db.relationship("OptionGroup", back_populates="options")

    @property
    def audit_model(self):
        from .audits import OptionStockAudit
        return OptionStockAudit

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.option_group is not None and self.option_group.enable_inventory_tracking)

    @property
    def display_name(self) -> str:
        item_name = self.option_group.item.name if self.option_group and self.option_group.item else "Unknown Item"
        return f"{item_name} - {self.name}"

    def audit_fk(self) -> dict:
        return {"option_id": self.id}

    @property
    def item(self) -> Item | None:
        return self.option_group.item if self.option_group else None

    def __repr__(self) -> str:
        return f"<Option id={self.id} name={self.name!r} group_id={self.option_group_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "option_group_id": self.option_group_id,
            "name": self.name,
            "additional_price_cents": self.additional_price_cents,
            "available": self.available,
            "position": self.position,
            "stock_quantity": self.stock_quantity,
            "damaged_quantity": self.damaged_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "stock_status": self.stock_status,
            "total_ordered": self.total_ordered,
            "total_revenue_cents": self.total_revenue_cents,
        }


class ItemVariant(StockLevelMixin, db.Model):
    """
    Materialized stock row for one combination of option selections.

    variant_key is the canonical encoding from services.variant_keys and is
    unique within its item, so two orderings of the same selection always
    land on the same row.
    """
    __tablename__ = "wholesale_item_variants"
    __table_args__ = (
        db.UniqueConstraint("item_id", "variant_key", name="uq_wholesale_item_variants_item_key"),
        {"sqlite_autoincrement": True},
    )

    entity_type = "variant"

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("wholesale_items.id"), nullable=False, index=True)

    variant_key = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(255), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    total_ordered = db.Column(db.Integer, nullable=False, default=0)
    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", back_populates="variants")

    @property
    def audit_model(self):
        from .audits import VariantStockAudit
        return VariantStockAudit

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.item is not None and self.item.track_variants)

    @property
    def display_name(self) -> str:
        item_name = self.item.name if self.item else "Unknown Item"
        return f"{item_name} ({self.variant_name})"

    def audit_fk(self) -> dict:
        return {"variant_id": self.id}

    def __repr__(self) -> str:
        return f"<ItemVariant id={self.id} key={self.variant_key!r} item_id={self.item_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "variant_key": self.variant_key,
            "variant_name": self.variant_name,
            "active": self.active,
            "stock_quantity": self.stock_quantity,
            "damaged_quantity": self.damaged_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "available_quantity": self.available_quantity,
            "stock_status": self.stock_status,
            "total_ordered": self.total_ordered,
            "total_revenue_cents": self.total_revenue_cents,
        }
