# Overview: Service-layer operations for the stock ledger; encapsulates quantity mutation and audit emission.

# backend/wholesale/services/stock_ledger.py

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import (
    DamagedExceedsStockError,
    NegativeStockError,
    NotFoundError,
    TenantAccessError,
    TrackingConflictError,
)
from ..models import (
    Item,
    ItemStockAudit,
    ItemVariant,
    Option,
    OptionGroup,
    OptionStockAudit,
    VariantStockAudit,
)
from ..models.audits import (
    AUDIT_DAMAGED,
    AUDIT_MANUAL_ADJUSTMENT,
    AUDIT_RESTOCK,
    AUDIT_STATUS_CHANGE,
    VALID_AUDIT_TYPES,
)
from ..time_utils import utcnow
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .stock_status import refresh_status

"""
Wholesale Stock Ledger Invariants (authoritative)

Entities:
- Item, Option and ItemVariant share StockLevelMixin; this module never
  branches on the concrete type except to find its tenant.

Event log + projection:
- Audit rows are the event log; stock_quantity / damaged_quantity are the
  projection. Both are written in the same flush, so they commit or roll
  back together.
- stock_status is recomputed in that same flush.
- available = max(stock - damaged, 0), derived on read, never stored.

Guards:
- stock_quantity may not go negative, unless the entity allows oversell
  (item-level allow_sale_with_no_stock). Oversell still writes the audit row.
- damaged_quantity may not exceed stock_quantity.

Locking:
- apply_delta / mark_damaged assume the caller holds the entity's write lock
  (begin_immediate + load_locked). The public admin wrappers below take it.
"""


ENTITY_MODELS = {
    "item": Item,
    "option": Option,
    "variant": ItemVariant,
}


# -----------------------------------------------------------------------------
# Tenant-checked loaders
# -----------------------------------------------------------------------------

def load_locked(model, entity_id: int, *, lock: bool = True):
    """Re-read a row from the database (not the identity map), optionally FOR UPDATE."""
    query = db.session.query(model).filter_by(id=entity_id).populate_existing()
    if lock:
        query = lock_for_update(query)
    return query.first()


def entity_restaurant_id(entity) -> int | None:
    if isinstance(entity, Item):
        return entity.restaurant_id
    item = entity.item
    return item.restaurant_id if item is not None else None


def ensure_item_in_restaurant(restaurant_id: int, item_id: int, *, lock: bool = False) -> Item:
    item = load_locked(Item, item_id, lock=lock) if lock else db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found", {"item_id": item_id})
    if item.restaurant_id != restaurant_id:
        raise TenantAccessError(
            "Item does not belong to restaurant",
            {"item_id": item_id, "restaurant_id": restaurant_id},
        )
    return item


def ensure_entity_in_restaurant(restaurant_id: int, entity_type: str, entity_id: int, *, lock: bool = True):
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValueError(f"Unknown entity type: {entity_type!r}")

    entity = load_locked(model, entity_id, lock=lock)
    if entity is None:
        raise NotFoundError(f"{entity_type.capitalize()} not found", {"entity_type": entity_type, "entity_id": entity_id})
    if entity_restaurant_id(entity) != restaurant_id:
        raise TenantAccessError(
            f"{entity_type.capitalize()} does not belong to restaurant",
            {"entity_type": entity_type, "entity_id": entity_id, "restaurant_id": restaurant_id},
        )
    return entity


# -----------------------------------------------------------------------------
# Core ledger primitives (no locking, no commit)
# -----------------------------------------------------------------------------

def append_audit(entity, *, audit_type, quantity_change, previous_quantity, new_quantity,
                 reason=None, actor_user_id=None, order=None):
    if audit_type not in VALID_AUDIT_TYPES:
        raise ValueError(f"Invalid audit type: {audit_type!r}")

    audit = entity.audit_model(
        **entity.audit_fk(),
        audit_type=audit_type,
        quantity_change=quantity_change,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reason=reason,
        actor_user_id=actor_user_id,
        order=order,
    )
    db.session.add(audit)
    return audit


def apply_delta(
    entity,
    delta: int,
    audit_type: str,
    *,
    reason: str | None = None,
    actor_user_id: int | None = None,
    order=None,
) -> int:
    """
    Move stock_quantity by delta and record it.

    Returns the new stock_quantity. Raises NegativeStockError when the result
    would drop below zero and the entity does not allow oversell.
    """
    current = entity.stock_quantity or 0
    new_quantity = current + delta

    if new_quantity < 0:
        if not entity.allows_oversell:
            raise NegativeStockError(entity.display_name, current, delta)
        current_app.logger.warning(
            "Overselling %s: stock %s -> %s (%s)",
            entity.display_name, current, new_quantity, audit_type,
        )

    entity.stock_quantity = new_quantity
    if audit_type == AUDIT_RESTOCK and hasattr(entity, "last_restocked_at"):
        entity.last_restocked_at = utcnow()
    refresh_status(entity)

    append_audit(
        entity,
        audit_type=audit_type,
        quantity_change=delta,
        previous_quantity=current,
        new_quantity=new_quantity,
        reason=reason,
        actor_user_id=actor_user_id,
        order=order,
    )
    db.session.flush()
    return new_quantity


def mark_damaged(entity, quantity: int, *, reason: str | None = None, actor_user_id: int | None = None) -> int:
    """
    Raise damaged_quantity by quantity; stock_quantity is left alone.

    The audit row's previous/new quantities describe damaged_quantity.
    """
    if quantity <= 0:
        raise ValueError("damaged quantity must be positive")

    stock = entity.stock_quantity or 0
    current = entity.damaged_quantity or 0
    new_damaged = current + quantity
    if new_damaged > stock:
        raise DamagedExceedsStockError(entity.display_name, new_damaged, stock)

    entity.damaged_quantity = new_damaged
    refresh_status(entity)

    append_audit(
        entity,
        audit_type=AUDIT_DAMAGED,
        quantity_change=quantity,
        previous_quantity=current,
        new_quantity=new_damaged,
        reason=reason,
        actor_user_id=actor_user_id,
    )
    db.session.flush()
    return new_damaged


# -----------------------------------------------------------------------------
# Admin wrappers (lock, tenant check, retry, commit)
# -----------------------------------------------------------------------------

def _load_tracked(restaurant_id: int, entity_type: str, entity_id: int):
    entity = ensure_entity_in_restaurant(restaurant_id, entity_type, entity_id, lock=True)
    if not entity.tracking_enabled:
        raise TrackingConflictError(
            f"Inventory tracking is not enabled for {entity.display_name}",
            {"entity_type": entity_type, "entity_id": entity_id},
        )
    return entity


def _check_damaged_floor(entity, new_quantity: int) -> None:
    # stock may not drop below units already marked damaged
    damaged = entity.damaged_quantity or 0
    if new_quantity >= 0 and new_quantity < damaged:
        raise DamagedExceedsStockError(entity.display_name, damaged, new_quantity)


def restock(
    *,
    restaurant_id: int,
    entity_type: str,
    entity_id: int,
    quantity: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
):
    if quantity <= 0:
        raise ValueError("restock quantity must be positive")

    def _op():
        begin_immediate()
        entity = _load_tracked(restaurant_id, entity_type, entity_id)
        apply_delta(
            entity, quantity, AUDIT_RESTOCK,
            reason=reason or "Restock", actor_user_id=actor_user_id,
        )
        db.session.commit()
        current_app.logger.info("Restocked %s by %s", entity.display_name, quantity)
        return entity

    return run_with_retry(_op)


def adjust_stock(
    *,
    restaurant_id: int,
    entity_type: str,
    entity_id: int,
    delta: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
):
    if delta == 0:
        raise ValueError("adjustment delta must be non-zero")

    def _op():
        begin_immediate()
        entity = _load_tracked(restaurant_id, entity_type, entity_id)
        _check_damaged_floor(entity, (entity.stock_quantity or 0) + delta)
        apply_delta(
            entity, delta, AUDIT_MANUAL_ADJUSTMENT,
            reason=reason or "Manual adjustment", actor_user_id=actor_user_id,
        )
        db.session.commit()
        return entity

    return run_with_retry(_op)


def set_stock(
    *,
    restaurant_id: int,
    entity_type: str,
    entity_id: int,
    quantity: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
):
    """Set an absolute count (stock take). Audited as the implied delta."""
    if quantity < 0:
        raise ValueError("stock quantity cannot be negative")

    def _op():
        begin_immediate()
        entity = _load_tracked(restaurant_id, entity_type, entity_id)
        delta = quantity - (entity.stock_quantity or 0)
        _check_damaged_floor(entity, quantity)
        if delta != 0:
            apply_delta(
                entity, delta, AUDIT_MANUAL_ADJUSTMENT,
                reason=reason or f"Stock set to {quantity}", actor_user_id=actor_user_id,
            )
        db.session.commit()
        return entity

    return run_with_retry(_op)


def damage_stock(
    *,
    restaurant_id: int,
    entity_type: str,
    entity_id: int,
    quantity: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
):
    def _op():
        begin_immediate()
        entity = _load_tracked(restaurant_id, entity_type, entity_id)
        mark_damaged(entity, quantity, reason=reason or "Marked damaged", actor_user_id=actor_user_id)
        db.session.commit()
        return entity

    return run_with_retry(_op)


def set_low_stock_threshold(*, restaurant_id: int, entity_type: str, entity_id: int, threshold: int | None):
    if threshold is not None and threshold < 0:
        raise ValueError("low stock threshold cannot be negative")

    def _op():
        begin_immediate()
        entity = ensure_entity_in_restaurant(restaurant_id, entity_type, entity_id, lock=True)
        entity.low_stock_threshold = threshold
        refresh_status(entity)
        db.session.commit()
        return entity

    return run_with_retry(_op)


def set_variant_active(
    *,
    restaurant_id: int,
    variant_id: int,
    active: bool,
    actor_user_id: int | None = None,
) -> ItemVariant:
    """Toggle a variant on/off for sale. Writes a zero-quantity status_change audit row."""
    def _op():
        begin_immediate()
        variant = ensure_entity_in_restaurant(restaurant_id, "variant", variant_id, lock=True)
        if bool(variant.active) == bool(active):
            return variant

        variant.active = bool(active)
        quantity = variant.stock_quantity or 0
        append_audit(
            variant,
            audit_type=AUDIT_STATUS_CHANGE,
            quantity_change=0,
            previous_quantity=quantity,
            new_quantity=quantity,
            reason="Variant activated" if active else "Variant deactivated",
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return variant

    return run_with_retry(_op)


# -----------------------------------------------------------------------------
# Read side
# -----------------------------------------------------------------------------

def get_audit_trail(*, restaurant_id: int, item_id: int, limit: int = 200) -> list:
    """
    All stock audit rows touching an item, its options and its variants,
    newest first.
    """
    ensure_item_in_restaurant(restaurant_id, item_id)

    item_rows = (
        ItemStockAudit.query.filter_by(item_id=item_id)
        .order_by(ItemStockAudit.created_at.desc(), ItemStockAudit.id.desc())
        .limit(limit)
        .all()
    )
    option_rows = (
        OptionStockAudit.query.join(Option, OptionStockAudit.option_id == Option.id)
        .join(OptionGroup, Option.option_group_id == OptionGroup.id)
        .filter(OptionGroup.item_id == item_id)
        .order_by(OptionStockAudit.created_at.desc(), OptionStockAudit.id.desc())
        .limit(limit)
        .all()
    )
    variant_rows = (
        VariantStockAudit.query.join(ItemVariant, VariantStockAudit.variant_id == ItemVariant.id)
        .filter(ItemVariant.item_id == item_id)
        .order_by(VariantStockAudit.created_at.desc(), VariantStockAudit.id.desc())
        .limit(limit)
        .all()
    )

    rows = item_rows + option_rows + variant_rows
    rows.sort(key=lambda r: (r.created_at, r.entity_type, r.id), reverse=True)
    return rows[:limit]


def _stock_dict(entity) -> dict:
    return {
        "id": entity.id,
        "name": entity.display_name,
        "stock_quantity": entity.stock_quantity,
        "damaged_quantity": entity.damaged_quantity,
        "available_quantity": entity.available_quantity if entity.tracking_enabled else None,
        "low_stock_threshold": entity.low_stock_threshold,
        "stock_status": entity.stock_status,
    }


def get_item_inventory_summary(*, restaurant_id: int, item_id: int) -> dict:
    from .tracking import resolve_mode

    item = ensure_item_in_restaurant(restaurant_id, item_id)
    mode = resolve_mode(item)

    summary = {
        "restaurant_id": restaurant_id,
        "item_id": item.id,
        "item_name": item.name,
        "tracking_mode": mode.name,
        "allow_sale_with_no_stock": bool(item.allow_sale_with_no_stock),
        "item": _stock_dict(item),
        "options": [],
        "variants": [],
    }
    if mode.name == "option":
        summary["tracked_group_id"] = mode.group.id
        summary["options"] = [_stock_dict(o) for o in mode.group.options]
    elif mode.name == "variant":
        summary["variants"] = [
            dict(_stock_dict(v), variant_key=v.variant_key, active=bool(v.active))
            for v in item.variants
        ]
    return summary
