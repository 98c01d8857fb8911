# Overview: Service-layer operations for wholesale orders; placement, lifecycle transitions and refunds.

"""
Wholesale Order Lifecycle

================================================================================
STATE MACHINE
================================================================================

    pending   -> fulfilled | completed | cancelled
    fulfilled -> completed | cancelled
    completed, cancelled: terminal (no outgoing transitions)

SIDE EFFECTS:
    -> cancelled            restore inventory (audit_type='order_cancelled')
    -> fulfilled/completed  order_status_changed signal, after commit

REFUND (orthogonal to status):
    payment_status -> 'refunded', inventory restored unless a cancellation
    already released it, sales counters reversed. The only path that
    reverses sales counters. A second refund is rejected.

RULES:
1. Illegal transitions raise IllegalTransitionError before any write.
2. Placement is all-or-nothing: order row, lines, number allocation and
   stock reservation commit together or not at all.
3. Inventory is released at most once per order (inventory_released_at).
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import IllegalTransitionError, NotFoundError, OrderError, TenantAccessError
from ..models import Order, OrderItem, OrderSequence, Restaurant
from ..models.audits import AUDIT_ORDER_CANCELLED
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_PENDING,
    ORDER_STATUSES,
    PAYMENT_STATUS_REFUNDED,
)
from ..time_utils import utcnow
from .catalog_service import price_for_selection, validate_selection
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .notifications import notify_refunded, notify_status_changed
from .reservation_service import restore, reserve, reverse_sales_counters
from .stock_ledger import ensure_item_in_restaurant
from .tracking import VariantLevel, resolve_mode
from .variant_keys import encode


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ORDER_STATUS_PENDING: frozenset({ORDER_STATUS_FULFILLED, ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_FULFILLED: frozenset({ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_COMPLETED: frozenset(),
    ORDER_STATUS_CANCELLED: frozenset(),
}

# Transitions that notify downstream collaborators
NOTIFY_STATUSES = {ORDER_STATUS_FULFILLED, ORDER_STATUS_COMPLETED}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def _load_order(restaurant_id: int, order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id).populate_existing()
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found", {"order_id": order_id})
    if order.restaurant_id != restaurant_id:
        raise TenantAccessError(
            "Order does not belong to restaurant",
            {"order_id": order_id, "restaurant_id": restaurant_id},
        )
    return order


def get_order(*, restaurant_id: int, order_id: int) -> Order:
    return _load_order(restaurant_id, order_id)


def next_order_number(restaurant_id: int) -> str:
    """
    Allocate "<CODE>-W-<NNN>" from the restaurant's OrderSequence.

    Must run inside the placing transaction so a rolled-back order also
    rolls back its number.
    """
    restaurant = db.session.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found", {"restaurant_id": restaurant_id})

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.restaurant_id == restaurant_id)
        .values(next_number=OrderSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(OrderSequence.next_number)
            .filter_by(restaurant_id=restaurant_id)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(OrderSequence(restaurant_id=restaurant_id, next_number=2))
        db.session.flush()
        number = 1

    code = (restaurant.code or f"R{restaurant.id}").upper()
    pad = int(current_app.config.get("ORDER_NUMBER_PAD", 3))
    return f"{code}-W-{number:0{pad}d}"


def _build_line(restaurant_id: int, raw: dict) -> OrderItem:
    item_id = raw.get("item_id")
    try:
        quantity = int(raw.get("quantity") or 0)
    except (TypeError, ValueError):
        raise OrderError("Quantity must be a whole number", {"item_id": item_id}) from None
    if quantity <= 0:
        raise OrderError("Quantity must be positive", {"item_id": item_id, "quantity": quantity})

    item = ensure_item_in_restaurant(restaurant_id, item_id)
    if not item.active:
        raise OrderError(f"{item.name} is not available", {"item_id": item.id})

    selection = validate_selection(item, raw.get("selected_options"))
    variant_key = encode(selection) if isinstance(resolve_mode(item), VariantLevel) else None

    return OrderItem(
        item=item,
        item_name=item.name,
        quantity=quantity,
        price_cents=price_for_selection(item, selection),
        selected_options=selection,
        variant_key=variant_key,
    )


def place_order(
    *,
    restaurant_id: int,
    lines: list[dict],
    customer_name: str,
    customer_email: str,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> Order:
    """
    Create an order and reserve its stock in one transaction.

    lines: [{"item_id": int, "quantity": int, "selected_options": {group_id: [option_id, ...]}}]

    Any error (validation, InsufficientStockError, ...) rolls the whole
    transaction back and is re-raised; nothing is persisted.
    """
    if not lines:
        raise OrderError("Order must contain at least one item")
    customer_name = (customer_name or "").strip()
    customer_email = (customer_email or "").strip()
    if not customer_name or not customer_email:
        raise OrderError("Customer name and email are required")

    def _op():
        begin_immediate()
        order = Order(
            restaurant_id=restaurant_id,
            order_number=next_order_number(restaurant_id),
            customer_name=customer_name,
            customer_email=customer_email,
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        for raw in lines:
            order.order_items.append(_build_line(restaurant_id, raw))
        order.recalculate_total()
        db.session.add(order)
        db.session.flush()

        reserve(order, actor_user_id=actor_user_id)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Placed order %s for restaurant %s (total_cents=%s)",
        order.order_number, restaurant_id, order.total_cents,
    )
    return order


def transition(
    *,
    restaurant_id: int,
    order_id: int,
    new_status: str,
    actor_user_id: int | None = None,
) -> Order:
    if new_status not in ORDER_STATUSES:
        raise OrderError(f"Unknown order status: {new_status!r}", {"status": new_status})

    def _op():
        begin_immediate()
        order = _load_order(restaurant_id, order_id, lock=True)
        from_status = order.status
        if not can_transition(from_status, new_status):
            raise IllegalTransitionError(from_status, new_status)

        order.status = new_status
        order.status_changed_at = utcnow()
        if new_status == ORDER_STATUS_CANCELLED:
            restore(
                order,
                audit_type=AUDIT_ORDER_CANCELLED,
                reason=f"Order cancelled: {order.order_number}",
                actor_user_id=actor_user_id,
            )
        db.session.commit()
        return order, from_status

    order, from_status = run_with_retry(_op)
    current_app.logger.info("Order %s: %s -> %s", order.order_number, from_status, new_status)

    if new_status in NOTIFY_STATUSES:
        notify_status_changed(order, from_status, new_status)
    return order


def refund_order(
    *,
    restaurant_id: int,
    order_id: int,
    actor_user_id: int | None = None,
    reason: str | None = None,
) -> Order:
    def _op():
        begin_immediate()
        order = _load_order(restaurant_id, order_id, lock=True)
        if order.payment_status == PAYMENT_STATUS_REFUNDED:
            raise OrderError(
                f"Order {order.order_number} has already been refunded",
                {"order_id": order.id},
            )

        restore(
            order,
            audit_type=AUDIT_ORDER_CANCELLED,
            reason=reason or f"Order refunded: {order.order_number}",
            actor_user_id=actor_user_id,
        )
        reverse_sales_counters(order)

        order.payment_status = PAYMENT_STATUS_REFUNDED
        order.refunded_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Refunded order %s", order.order_number)
    notify_refunded(order)
    return order


def list_orders(*, restaurant_id: int, status: str | None = None, limit: int = 100) -> list[Order]:
    query = Order.query.filter_by(restaurant_id=restaurant_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
