# Overview: Pytest coverage for order reservation (all-or-nothing) and restoration.

"""
Reservation Tests

- All-or-nothing: a failing line leaves every other line's stock untouched.
- Conservation: reserve -> cancel returns every entity to its starting count.
- Demand is aggregated per entity across lines.
"""

import pytest

from wholesale.errors import (
    InsufficientStockError,
    MissingRequiredSelectionError,
    UnavailableOptionError,
)
from wholesale.models import (
    ItemStockAudit,
    Order,
    OptionStockAudit,
    OrderSequence,
    VariantStockAudit,
)
from wholesale.services import order_service, tracking


def _place(restaurant, *lines, user=None):
    return order_service.place_order(
        restaurant_id=restaurant.id,
        lines=[
            {"item_id": item.id, "quantity": quantity, "selected_options": selection or {}}
            for item, quantity, selection in lines
        ],
        customer_name="Island Cafe",
        customer_email="buyer@islandcafe.test",
        actor_user_id=user.id if user else None,
    )


class TestReserve:
    def test_item_level_scenario(self, db_session, restaurant, tracked_item, user):
        """10 stock / 2 damaged / threshold 5: reserve 4 -> stock 6, available 4."""
        order = _place(restaurant, (tracked_item, 4, None), user=user)

        assert tracked_item.stock_quantity == 6
        assert tracked_item.available_quantity == 4
        assert tracked_item.stock_status == "low_stock"

        audit = ItemStockAudit.query.filter_by(order_id=order.id).one()
        assert audit.audit_type == "order_placed"
        assert audit.quantity_change == -4
        assert audit.actor_user_id == user.id
        assert audit.reason == f"Order placed: {order.order_number} by Island Cafe"

    def test_insufficient_reports_available(self, db_session, restaurant, tracked_item):
        with pytest.raises(InsufficientStockError) as exc:
            _place(restaurant, (tracked_item, 9, None))
        assert exc.value.requested == 9
        assert exc.value.available == 8
        assert "Only 8 available" in exc.value.message
        assert exc.value.details["entity"] == "Cases of Water"

    def test_damaged_units_are_not_sellable(self, db_session, restaurant, tracked_item):
        _place(restaurant, (tracked_item, 8, None))
        with pytest.raises(InsufficientStockError) as exc:
            _place(restaurant, (tracked_item, 1, None))
        assert "out of stock" in exc.value.message
        assert "(requested 1, 0 available)" in exc.value.message
        assert (exc.value.requested, exc.value.available) == (1, 0)

    def test_option_level_decrements_chosen_option(self, db_session, restaurant, option_item, select, option_named):
        _place(restaurant, (option_item, 3, select(option_item, "25 kg")))

        assert option_named(option_item, "25 kg").stock_quantity == 2
        assert option_named(option_item, "10 kg").stock_quantity == 20
        assert option_item.stock_quantity is None

    def test_option_level_missing_selection(self, db_session, restaurant, option_item):
        with pytest.raises(MissingRequiredSelectionError):
            _place(restaurant, (option_item, 1, None))
        assert Order.query.count() == 0

    def test_variant_level(self, db_session, restaurant, variant_item, select):
        order = _place(restaurant, (variant_item, 2, select(variant_item, "Black", "M")))

        line = order.order_items[0]
        variant = next(v for v in variant_item.variants if v.variant_key == line.variant_key)
        assert variant.variant_name == "M / Black"
        assert variant.stock_quantity == 3
        assert VariantStockAudit.query.filter_by(order_id=order.id).count() == 1
        others = [v.stock_quantity for v in variant_item.variants if v.id != variant.id]
        assert others == [5, 5, 5]

    def test_untracked_never_blocks(self, db_session, restaurant, untracked_item):
        order = _place(restaurant, (untracked_item, 1000, None))
        assert order.total_cents == 5_000_000
        assert ItemStockAudit.query.filter_by(order_id=order.id).count() == 0

    def test_oversell_allowed(self, db_session, restaurant, tracked_item):
        tracked_item.allow_sale_with_no_stock = True
        db_session.commit()

        order = _place(restaurant, (tracked_item, 15, None))
        assert tracked_item.stock_quantity == -5
        assert tracked_item.stock_status == "out_of_stock"
        audit = ItemStockAudit.query.filter_by(order_id=order.id).one()
        assert (audit.previous_quantity, audit.new_quantity) == (10, -5)

    def test_demand_aggregated_across_lines(self, db_session, restaurant, option_item, select, option_named):
        """Two lines of 3 against 5 in stock fail even though each fits alone."""
        large = select(option_item, "25 kg")
        with pytest.raises(InsufficientStockError) as exc:
            _place(restaurant, (option_item, 3, large), (option_item, 3, large))
        assert exc.value.requested == 6
        assert option_named(option_item, "25 kg").stock_quantity == 5

    def test_unavailable_option(self, db_session, restaurant, option_item, select, option_named):
        option_named(option_item, "10 kg").available = False
        db_session.commit()
        with pytest.raises(UnavailableOptionError):
            _place(restaurant, (option_item, 1, select(option_item, "10 kg")))

    def test_sales_counters(self, db_session, restaurant, variant_item, select, option_named):
        _place(restaurant, (variant_item, 2, select(variant_item, "S", "Black")))

        black = option_named(variant_item, "Black")
        small = option_named(variant_item, "S")
        # unit price 3900 + 500 surcharge
        assert (black.total_ordered, black.total_revenue_cents) == (2, 8800)
        assert (small.total_ordered, small.total_revenue_cents) == (2, 8800)
        variant = next(v for v in variant_item.variants if v.variant_name == "S / Black")
        assert (variant.total_ordered, variant.total_revenue_cents) == (2, 8800)


class TestAllOrNothing:
    def test_second_line_failure_leaves_first_untouched(
        self, db_session, restaurant, tracked_item, option_item, select, option_named,
    ):
        item_audits = ItemStockAudit.query.count()
        option_audits = OptionStockAudit.query.count()

        with pytest.raises(InsufficientStockError):
            _place(
                restaurant,
                (tracked_item, 2, None),
                (option_item, 99, select(option_item, "25 kg")),
            )

        assert tracked_item.stock_quantity == 10
        assert tracked_item.available_quantity == 8
        assert option_named(option_item, "25 kg").stock_quantity == 5
        assert ItemStockAudit.query.count() == item_audits
        assert OptionStockAudit.query.count() == option_audits
        assert Order.query.count() == 0

    def test_failed_order_does_not_consume_number(self, db_session, restaurant, tracked_item):
        with pytest.raises(InsufficientStockError):
            _place(restaurant, (tracked_item, 50, None))
        assert OrderSequence.query.count() == 0

        order = _place(restaurant, (tracked_item, 1, None))
        assert order.order_number == "HAF-W-001"

    def test_counters_untouched_on_failure(self, db_session, restaurant, variant_item, tracked_item, select, option_named):
        with pytest.raises(InsufficientStockError):
            _place(
                restaurant,
                (variant_item, 1, select(variant_item, "M", "White")),
                (tracked_item, 50, None),
            )
        assert option_named(variant_item, "M").total_ordered == 0


class TestRestore:
    def test_cancel_is_exact_inverse(self, db_session, restaurant, tracked_item, option_item, variant_item, select, option_named):
        order = _place(
            restaurant,
            (tracked_item, 4, None),
            (option_item, 2, select(option_item, "10 kg")),
            (option_item, 1, select(option_item, "10 kg")),
            (variant_item, 5, select(variant_item, "S", "White")),
        )
        order_service.transition(restaurant_id=restaurant.id, order_id=order.id, new_status="cancelled")

        assert tracked_item.stock_quantity == 10
        assert tracked_item.available_quantity == 8
        assert tracked_item.stock_status == "in_stock"
        assert option_named(option_item, "10 kg").stock_quantity == 20
        assert all(v.stock_quantity == 5 for v in variant_item.variants)

        for audit_model in (ItemStockAudit, OptionStockAudit, VariantStockAudit):
            rows = audit_model.query.filter_by(order_id=order.id).all()
            assert sum(r.quantity_change for r in rows) == 0

    def test_restore_skips_entities_no_longer_tracked(self, db_session, restaurant, tracked_item):
        order = _place(restaurant, (tracked_item, 3, None))
        tracking.set_item_tracking(restaurant_id=restaurant.id, item_id=tracked_item.id, enabled=False)

        order_service.transition(restaurant_id=restaurant.id, order_id=order.id, new_status="cancelled")

        assert tracked_item.stock_quantity is None
        assert tracked_item.stock_status == "unlimited"
        assert order.inventory_released_at is not None
