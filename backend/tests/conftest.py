"""
Pytest fixtures for wholesale backend tests.

Provides an in-memory database, tenant fixtures and one catalog item per
tracking mode.
"""

import pytest

from wholesale import create_app
from wholesale.extensions import db
from wholesale.models import Restaurant, User
from wholesale.services import catalog_service, stock_ledger, tracking


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOCK_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Core deletes bypass the audit immutability listeners
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expunge_all()


@pytest.fixture(scope='function')
def restaurant(db_session):
    """Restaurant A (first tenant)."""
    r = Restaurant(name="Hafa Wholesale", code="HAF", is_active=True)
    db_session.add(r)
    db_session.commit()
    return r


@pytest.fixture(scope='function')
def other_restaurant(db_session):
    """Restaurant B (second tenant)."""
    r = Restaurant(name="Other Kitchen", code="OTH", is_active=True)
    db_session.add(r)
    db_session.commit()
    return r


@pytest.fixture(scope='function')
def user(db_session, restaurant):
    u = User(restaurant_id=restaurant.id, name="Stock Manager", email="stock@hafa.test")
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture(scope='function')
def tracked_item(restaurant, user):
    """Item-level tracking: stock 10, damaged 2, threshold 5 (available 8)."""
    item = catalog_service.create_item(
        restaurant_id=restaurant.id, name="Cases of Water", price_cents=1200, sku="WATER",
    )
    tracking.set_item_tracking(
        restaurant_id=restaurant.id, item_id=item.id, enabled=True,
        quantity=10, low_stock_threshold=5, actor_user_id=user.id,
    )
    stock_ledger.damage_stock(
        restaurant_id=restaurant.id, entity_type="item", entity_id=item.id,
        quantity=2, reason="Crushed pallet", actor_user_id=user.id,
    )
    return item


@pytest.fixture(scope='function')
def untracked_item(restaurant):
    return catalog_service.create_item(
        restaurant_id=restaurant.id, name="Gift Card", price_cents=5000, sku="GIFT",
    )


@pytest.fixture(scope='function')
def option_item(restaurant, user):
    """Option-level tracking on "Weight": 10 kg x20, 25 kg (+2000) x5."""
    item = catalog_service.create_item(
        restaurant_id=restaurant.id, name="Flour Sack", price_cents=2500, sku="FLOUR",
    )
    weight = catalog_service.create_option_group(
        restaurant_id=restaurant.id, item_id=item.id, name="Weight",
        min_select=1, max_select=1, required=True,
    )
    small = catalog_service.add_option(restaurant_id=restaurant.id, option_group_id=weight.id, name="10 kg")
    large = catalog_service.add_option(
        restaurant_id=restaurant.id, option_group_id=weight.id, name="25 kg", additional_price_cents=2000,
    )
    tracking.enable_option_tracking(
        restaurant_id=restaurant.id, option_group_id=weight.id,
        initial_quantities={small.id: 20, large.id: 5}, actor_user_id=user.id,
    )
    return item


@pytest.fixture(scope='function')
def variant_item(restaurant, user):
    """Variant tracking over Size (S, M) x Color (White, Black +500); 5 of each."""
    item = catalog_service.create_item(
        restaurant_id=restaurant.id, name="Chef Jacket", price_cents=3900, sku="JACKET",
    )
    size = catalog_service.create_option_group(
        restaurant_id=restaurant.id, item_id=item.id, name="Size", min_select=1, required=True,
    )
    color = catalog_service.create_option_group(
        restaurant_id=restaurant.id, item_id=item.id, name="Color", min_select=1, required=True,
    )
    for name in ("S", "M"):
        catalog_service.add_option(restaurant_id=restaurant.id, option_group_id=size.id, name=name)
    catalog_service.add_option(restaurant_id=restaurant.id, option_group_id=color.id, name="White")
    catalog_service.add_option(
        restaurant_id=restaurant.id, option_group_id=color.id, name="Black", additional_price_cents=500,
    )
    tracking.enable_variant_tracking(restaurant_id=restaurant.id, item_id=item.id, actor_user_id=user.id)
    for variant in list(item.variants):
        stock_ledger.restock(
            restaurant_id=restaurant.id, entity_type="variant", entity_id=variant.id,
            quantity=5, actor_user_id=user.id,
        )
    return item


@pytest.fixture
def select():
    """Build a selection from option names: select(item, "M", "Black") -> {group_id: [option_id]}."""
    def _select(item, *names):
        selection = {}
        for name in names:
            for group in item.option_groups:
                match = [o for o in group.options if o.name == name]
                if match:
                    selection.setdefault(str(group.id), []).append(match[0].id)
                    break
            else:
                raise AssertionError(f"no option named {name!r} on {item.name}")
        return selection
    return _select


@pytest.fixture
def option_named():
    def _option_named(item, name):
        for group in item.option_groups:
            for option in group.options:
                if option.name == name:
                    return option
        raise AssertionError(f"no option named {name!r} on {item.name}")
    return _option_named
