# Overview: Pytest coverage for order placement, lifecycle transitions, refunds and notifications.

import logging

import pytest

from wholesale.errors import (
    IllegalTransitionError,
    InsufficientStockError,
    NotFoundError,
    OrderError,
    TenantAccessError,
)
from wholesale.models import ItemStockAudit, Order, OptionStockAudit
from wholesale.services import catalog_service, order_service
from wholesale.services.notifications import order_refunded, order_status_changed


def _line(item, quantity, selection=None):
    return {"item_id": item.id, "quantity": quantity, "selected_options": selection or {}}


def _place(restaurant, *lines):
    return order_service.place_order(
        restaurant_id=restaurant.id,
        lines=list(lines),
        customer_name="Island Cafe",
        customer_email="buyer@islandcafe.test",
    )


def _transition(restaurant, order, status):
    return order_service.transition(restaurant_id=restaurant.id, order_id=order.id, new_status=status)


class TestPlaceOrder:
    def test_numbers_are_sequential_per_restaurant(self, db_session, restaurant, other_restaurant, untracked_item):
        first = _place(restaurant, _line(untracked_item, 1))
        second = _place(restaurant, _line(untracked_item, 1))
        assert first.order_number == "HAF-W-001"
        assert second.order_number == "HAF-W-002"

        other_item = catalog_service.create_item(restaurant_id=other_restaurant.id, name="Ice", price_cents=300)
        assert _place(other_restaurant, _line(other_item, 1)).order_number == "OTH-W-001"

    def test_number_falls_back_to_restaurant_id(self, db_session, restaurant, untracked_item):
        restaurant.code = None
        db_session.commit()
        order = _place(restaurant, _line(untracked_item, 1))
        assert order.order_number == f"R{restaurant.id}-W-001"

    def test_total_is_sum_of_lines(self, db_session, restaurant, tracked_item, option_item, select):
        order = _place(
            restaurant,
            _line(tracked_item, 2),
            _line(option_item, 1, select(option_item, "25 kg")),
        )
        assert [line.price_cents for line in order.order_items] == [1200, 4500]
        assert order.total_cents == 2 * 1200 + 4500
        assert order.total_cents == order.subtotal_cents
        assert order.item_count == 3
        assert order.status == "pending"
        assert order.payment_status == "unpaid"

    def test_line_snapshot_survives_catalog_changes(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, _line(tracked_item, 1))
        tracked_item.price_cents = 9999
        tracked_item.name = "Renamed"
        db_session.commit()

        line = db_session.get(Order, order.id).order_items[0]
        assert line.price_cents == 1200
        assert line.item_name == "Cases of Water"

    def test_variant_key_snapshot(self, db_session, restaurant, variant_item, select):
        order = _place(restaurant, _line(variant_item, 1, select(variant_item, "M", "White")))
        assert order.order_items[0].variant_key is not None

    @pytest.mark.parametrize("kwargs", [
        {"lines": []},
        {"customer_name": "  "},
        {"customer_email": ""},
    ])
    def test_order_level_validation(self, db_session, restaurant, untracked_item, kwargs):
        params = {
            "restaurant_id": restaurant.id,
            "lines": [_line(untracked_item, 1)],
            "customer_name": "Island Cafe",
            "customer_email": "buyer@islandcafe.test",
        }
        params.update(kwargs)
        with pytest.raises(OrderError):
            order_service.place_order(**params)

    @pytest.mark.parametrize("quantity", [0, -1, "many"])
    def test_bad_quantity(self, db_session, restaurant, untracked_item, quantity):
        with pytest.raises(OrderError):
            _place(restaurant, _line(untracked_item, quantity))
        assert Order.query.count() == 0

    def test_inactive_item(self, db_session, restaurant, untracked_item):
        untracked_item.active = False
        db_session.commit()
        with pytest.raises(OrderError):
            _place(restaurant, _line(untracked_item, 1))

    def test_other_tenants_item(self, db_session, other_restaurant, tracked_item):
        with pytest.raises(TenantAccessError):
            _place(other_restaurant, _line(tracked_item, 1))
        assert tracked_item.stock_quantity == 10

    def test_unknown_item(self, db_session, restaurant):
        with pytest.raises(NotFoundError):
            order_service.place_order(
                restaurant_id=restaurant.id,
                lines=[{"item_id": 999999, "quantity": 1}],
                customer_name="Island Cafe",
                customer_email="buyer@islandcafe.test",
            )


class TestTransitions:
    @pytest.mark.parametrize("from_status,to_status,allowed", [
        ("pending", "fulfilled", True),
        ("pending", "completed", True),
        ("pending", "cancelled", True),
        ("fulfilled", "completed", True),
        ("fulfilled", "cancelled", True),
        ("fulfilled", "pending", False),
        ("completed", "fulfilled", False),
        ("completed", "cancelled", False),
        ("cancelled", "pending", False),
        ("cancelled", "fulfilled", False),
        ("pending", "pending", False),
    ])
    def test_table(self, from_status, to_status, allowed):
        assert order_service.can_transition(from_status, to_status) is allowed

    def test_happy_path(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, _line(tracked_item, 2))
        _transition(restaurant, order, "fulfilled")
        _transition(restaurant, order, "completed")

        assert order.status == "completed"
        assert order.status_changed_at is not None
        # Fulfilment never touches stock
        assert tracked_item.stock_quantity == 8

    @pytest.mark.parametrize("path,illegal", [
        (["completed"], "fulfilled"),
        (["cancelled"], "pending"),
        (["cancelled"], "cancelled"),
        (["fulfilled", "completed"], "cancelled"),
    ])
    def test_illegal_has_no_side_effects(self, db_session, restaurant, tracked_item, path, illegal):
        order = _place(restaurant, _line(tracked_item, 3))
        for status in path:
            _transition(restaurant, order, status)
        stock_before = tracked_item.stock_quantity
        audits_before = ItemStockAudit.query.count()

        with pytest.raises(IllegalTransitionError) as exc:
            _transition(restaurant, order, illegal)

        assert exc.value.from_status == path[-1]
        assert exc.value.to_status == illegal
        assert db_session.get(Order, order.id).status == path[-1]
        assert tracked_item.stock_quantity == stock_before
        assert ItemStockAudit.query.count() == audits_before

    def test_unknown_status(self, db_session, restaurant, untracked_item):
        order = _place(restaurant, _line(untracked_item, 1))
        with pytest.raises(OrderError):
            _transition(restaurant, order, "shipped")

    def test_cancel_from_fulfilled_restores(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, _line(tracked_item, 4))
        _transition(restaurant, order, "fulfilled")
        _transition(restaurant, order, "cancelled")

        assert tracked_item.stock_quantity == 10
        restored = ItemStockAudit.query.filter_by(order_id=order.id, audit_type="order_cancelled").one()
        assert restored.quantity_change == 4
        assert restored.reason == f"Order cancelled: {order.order_number}"

    def test_cancel_keeps_sales_counters(self, db_session, restaurant, option_item, select, option_named):
        order = _place(restaurant, _line(option_item, 2, select(option_item, "10 kg")))
        _transition(restaurant, order, "cancelled")

        small = option_named(option_item, "10 kg")
        assert small.stock_quantity == 20
        assert small.total_ordered == 2
        assert small.total_revenue_cents == 5000

    def test_other_tenant_cannot_transition(self, db_session, restaurant, other_restaurant, untracked_item):
        order = _place(restaurant, _line(untracked_item, 1))
        with pytest.raises(TenantAccessError):
            _transition(other_restaurant, order, "cancelled")
        assert db_session.get(Order, order.id).status == "pending"


class TestNotifications:
    def test_fulfilled_and_completed_notify(self, db_session, restaurant, untracked_item):
        order = _place(restaurant, _line(untracked_item, 1))
        seen = []

        def receiver(sender, order, from_status, to_status, **extra):
            seen.append((order.order_number, from_status, to_status))

        with order_status_changed.connected_to(receiver):
            _transition(restaurant, order, "fulfilled")
            _transition(restaurant, order, "completed")

        assert seen == [
            ("HAF-W-001", "pending", "fulfilled"),
            ("HAF-W-001", "fulfilled", "completed"),
        ]

    def test_cancel_does_not_notify(self, db_session, restaurant, untracked_item):
        order = _place(restaurant, _line(untracked_item, 1))
        seen = []

        def receiver(sender, **kwargs):
            seen.append(kwargs)

        with order_status_changed.connected_to(receiver):
            _transition(restaurant, order, "cancelled")
        assert seen == []

    def test_failing_receiver_is_logged(self, db_session, restaurant, untracked_item, caplog):
        order = _place(restaurant, _line(untracked_item, 1))

        def broken(sender, **kwargs):
            raise RuntimeError("smtp down")

        with caplog.at_level(logging.ERROR):
            with order_status_changed.connected_to(broken):
                result = _transition(restaurant, order, "fulfilled")

        assert result.status == "fulfilled"
        assert db_session.get(Order, order.id).status == "fulfilled"
        assert any("failed" in r.getMessage() for r in caplog.records)


class TestRefund:
    def test_refund_pending_order(self, db_session, restaurant, tracked_item, option_item, select, option_named):
        order = _place(
            restaurant,
            _line(tracked_item, 3),
            _line(option_item, 2, select(option_item, "25 kg")),
        )
        seen = []

        def receiver(sender, order, **extra):
            seen.append(order.id)

        with order_refunded.connected_to(receiver):
            order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)

        assert order.payment_status == "refunded"
        assert order.refunded_at is not None
        # Refund is orthogonal to fulfilment status
        assert order.status == "pending"
        assert tracked_item.stock_quantity == 10

        large = option_named(option_item, "25 kg")
        assert large.stock_quantity == 5
        assert large.total_ordered == 0
        assert large.total_revenue_cents == 0
        assert seen == [order.id]

        restored = OptionStockAudit.query.filter_by(order_id=order.id, audit_type="order_cancelled").one()
        assert restored.reason == f"Order refunded: {order.order_number}"

    def test_refund_after_cancel_does_not_restore_twice(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, _line(tracked_item, 4))
        _transition(restaurant, order, "cancelled")
        order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)

        assert tracked_item.stock_quantity == 10
        assert ItemStockAudit.query.filter_by(order_id=order.id).count() == 2

    def test_refund_reverses_variant_counters(self, db_session, restaurant, variant_item, select):
        order = _place(restaurant, _line(variant_item, 2, select(variant_item, "M", "Black")))
        order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)

        variant = next(v for v in variant_item.variants if v.variant_name == "M / Black")
        assert variant.stock_quantity == 5
        assert variant.total_ordered == 0

    def test_counters_never_go_negative(self, db_session, restaurant, option_item, select, option_named):
        order = _place(restaurant, _line(option_item, 2, select(option_item, "10 kg")))
        small = option_named(option_item, "10 kg")
        small.total_ordered = 1
        small.total_revenue_cents = 100
        db_session.commit()

        order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)
        assert small.total_ordered == 0
        assert small.total_revenue_cents == 0

    def test_second_refund_rejected(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, _line(tracked_item, 1))
        order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)
        with pytest.raises(OrderError):
            order_service.refund_order(restaurant_id=restaurant.id, order_id=order.id)
        assert tracked_item.stock_quantity == 10


class TestQueries:
    def test_get_order_tenant_checked(self, db_session, restaurant, other_restaurant, untracked_item):
        order = _place(restaurant, _line(untracked_item, 1))
        assert order_service.get_order(restaurant_id=restaurant.id, order_id=order.id).id == order.id
        with pytest.raises(TenantAccessError):
            order_service.get_order(restaurant_id=other_restaurant.id, order_id=order.id)
        with pytest.raises(NotFoundError):
            order_service.get_order(restaurant_id=restaurant.id, order_id=999999)

    def test_list_orders_by_status(self, db_session, restaurant, untracked_item):
        first = _place(restaurant, _line(untracked_item, 1))
        second = _place(restaurant, _line(untracked_item, 1))
        _transition(restaurant, first, "cancelled")

        assert {o.id for o in order_service.list_orders(restaurant_id=restaurant.id)} == {first.id, second.id}
        pending = order_service.list_orders(restaurant_id=restaurant.id, status="pending")
        assert [o.id for o in pending] == [second.id]

    def test_insufficient_stock_leaves_no_order(self, db_session, restaurant, tracked_item):
        with pytest.raises(InsufficientStockError):
            _place(restaurant, _line(tracked_item, 100))
        assert order_service.list_orders(restaurant_id=restaurant.id) == []
