# Overview: Service-layer operations for reservations; all-or-nothing stock decrements for an order.

"""
Wholesale Reservation Engine

================================================================================
reserve(order): TWO PHASES, ONE TRANSACTION
================================================================================

PHASE 1 (read + check, no writes):
    for each line: resolve mode -> resolve targets -> re-read targets locked
    aggregate demand per entity (two lines on the same option add up)
    check available >= demand for every tracked entity

PHASE 2 (write):
    apply_delta(target, -quantity, 'order_placed') for every line/target
    bump sales counters on every selected option and on the variant

Any error in phase 1 means phase 2 never starts. Any error in phase 2 is
raised into the caller's transaction, which rolls back everything already
flushed. Either way no entity is left partially decremented.

The caller owns the transaction and the write lock (see
order_service.place_order); this module never commits.

restore(order) is the inverse. It replays the order's own audit rows rather
than re-resolving targets from the current catalog, so restoration is exact
even if tracking or options changed since the order was placed.
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStockError
from ..models import Item, ItemStockAudit, ItemVariant, Option, OptionStockAudit, VariantStockAudit
from ..models.audits import AUDIT_ORDER_CANCELLED, AUDIT_ORDER_PLACED
from ..time_utils import utcnow
from .catalog_service import selected_option_rows
from .stock_ledger import apply_delta, load_locked
from .tracking import VariantLevel, resolve_mode, resolve_targets


_AUDIT_SOURCES = (
    (ItemStockAudit, ItemStockAudit.item_id, Item),
    (OptionStockAudit, OptionStockAudit.option_id, Option),
    (VariantStockAudit, VariantStockAudit.variant_id, ItemVariant),
)


def _placed_reason(order) -> str:
    return f"Order placed: {order.order_number} by {order.customer_name}"


def reserve(order, *, actor_user_id: int | None = None) -> None:
    plans = []
    demand: dict[tuple[str, int], list] = {}

    # Phase 1
    for line in order.order_items:
        item = line.item
        mode = resolve_mode(item)
        targets = resolve_targets(item, line.selected_options, mode=mode, quantity=line.quantity)
        targets = [load_locked(type(t), t.id) for t in targets]
        plans.append((line, item, mode, targets))

        for target in targets:
            slot = demand.setdefault((target.entity_type, target.id), [target, 0])
            slot[1] += line.quantity

    for entity, requested in demand.values():
        if entity.allows_oversell:
            continue
        available = entity.available_quantity
        if available < requested:
            raise InsufficientStockError(entity.display_name, requested, available)

    # Phase 2
    reason = _placed_reason(order)
    for line, item, mode, targets in plans:
        for target in targets:
            apply_delta(
                target,
                -line.quantity,
                AUDIT_ORDER_PLACED,
                reason=reason,
                actor_user_id=actor_user_id,
                order=order,
            )

        revenue = line.quantity * line.price_cents
        for option in selected_option_rows(item, line.selected_options):
            option.total_ordered = (option.total_ordered or 0) + line.quantity
            option.total_revenue_cents = (option.total_revenue_cents or 0) + revenue
        if isinstance(mode, VariantLevel):
            variant = targets[0]
            variant.total_ordered = (variant.total_ordered or 0) + line.quantity
            variant.total_revenue_cents = (variant.total_revenue_cents or 0) + revenue

    db.session.flush()
    current_app.logger.info(
        "Reserved stock for order %s (%s lines, %s entities)",
        order.order_number, len(plans), len(demand),
    )


def outstanding_reservations(order) -> list[tuple[object, int]]:
    """
    (entity, quantity still held) for every entity the order decremented.

    Net of order_placed and order_cancelled rows, so a partially or fully
    restored order reports only what remains.
    """
    held = []
    for audit_model, fk_col, model in _AUDIT_SOURCES:
        rows = (
            db.session.query(fk_col, func.sum(audit_model.quantity_change))
            .filter(
                audit_model.order_id == order.id,
                audit_model.audit_type.in_((AUDIT_ORDER_PLACED, AUDIT_ORDER_CANCELLED)),
            )
            .group_by(fk_col)
            .order_by(fk_col)
            .all()
        )
        for entity_id, net in rows:
            if net and net < 0:
                held.append((load_locked(model, entity_id), -int(net)))
    return held


def restore(
    order,
    *,
    audit_type: str = AUDIT_ORDER_CANCELLED,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> int:
    """
    Put back every unit the order still holds. Returns the number of ledger
    entries written; 0 when the inventory was already released.

    Entities whose tracking was switched off after the order was placed are
    skipped; the mode flip already wrote their stock off.
    """
    if order.inventory_released_at is not None:
        return 0

    reason = reason or f"Order cancelled: {order.order_number}"
    written = 0
    for entity, quantity in outstanding_reservations(order):
        if not entity.tracking_enabled:
            current_app.logger.info(
                "Skipping restore of %s for order %s: tracking disabled",
                entity.display_name, order.order_number,
            )
            continue
        apply_delta(entity, quantity, audit_type, reason=reason, actor_user_id=actor_user_id, order=order)
        written += 1

    order.inventory_released_at = utcnow()
    db.session.flush()
    current_app.logger.info("Restored stock for order %s (%s entries)", order.order_number, written)
    return written


def reverse_sales_counters(order) -> None:
    """Undo the sales counters reserve() bumped. Only refunds call this."""
    for line in order.order_items:
        revenue = line.quantity * line.price_cents
        item = line.item
        if item is None:
            continue

        for option in selected_option_rows(item, line.selected_options):
            option.total_ordered = max((option.total_ordered or 0) - line.quantity, 0)
            option.total_revenue_cents = max((option.total_revenue_cents or 0) - revenue, 0)

        if line.variant_key:
            variant = ItemVariant.query.filter_by(item_id=item.id, variant_key=line.variant_key).first()
            if variant is not None:
                variant.total_ordered = max((variant.total_ordered or 0) - line.quantity, 0)
                variant.total_revenue_cents = max((variant.total_revenue_cents or 0) - revenue, 0)

    db.session.flush()
