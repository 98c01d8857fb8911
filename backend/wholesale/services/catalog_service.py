# Overview: Service-layer operations for the wholesale catalog; option groups, selections and variants.

from __future__ import annotations

from itertools import product

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    DuplicateVariantKeyError,
    InvalidSelectionError,
    MissingRequiredSelectionError,
    NotFoundError,
    TenantAccessError,
    UnavailableOptionError,
)
from ..models import Item, ItemVariant, Option, OptionGroup
from ..models.audits import AUDIT_RESTOCK
from .concurrency import begin_immediate, run_with_retry
from .stock_ledger import apply_delta, ensure_item_in_restaurant
from .stock_status import refresh_status
from .tracking import assert_can_track_options
from .variant_keys import display_name, encode, normalize_selection


def create_item(
    *,
    restaurant_id: int,
    name: str,
    price_cents: int,
    sku: str | None = None,
    description: str | None = None,
    allow_sale_with_no_stock: bool = False,
) -> Item:
    name = (name or "").strip()
    if not name:
        raise ValueError("name is required")
    if price_cents is None or int(price_cents) <= 0:
        raise ValueError("price_cents must be positive")

    item = Item(
        restaurant_id=restaurant_id,
        name=name,
        sku=sku,
        description=description,
        price_cents=int(price_cents),
        allow_sale_with_no_stock=bool(allow_sale_with_no_stock),
    )
    refresh_status(item)
    db.session.add(item)
    db.session.commit()
    return item


def _validate_bounds(min_select: int, max_select: int) -> None:
    if min_select < 0:
        raise ValueError("min_select cannot be negative")
    if max_select < 1:
        raise ValueError("max_select must be at least 1")
    if max_select < min_select:
        raise ValueError("max_select cannot be less than min_select")


def _load_group(restaurant_id: int, option_group_id: int) -> OptionGroup:
    group = db.session.get(OptionGroup, option_group_id)
    if group is None:
        raise NotFoundError("Option group not found", {"option_group_id": option_group_id})
    if group.item.restaurant_id != restaurant_id:
        raise TenantAccessError(
            "Option group does not belong to restaurant",
            {"option_group_id": option_group_id, "restaurant_id": restaurant_id},
        )
    return group


def create_option_group(
    *,
    restaurant_id: int,
    item_id: int,
    name: str,
    min_select: int = 0,
    max_select: int = 1,
    required: bool = False,
    position: int | None = None,
    enable_inventory_tracking: bool = False,
) -> OptionGroup:
    """
    Add an option group to an item.

    A group created with enable_inventory_tracking starts with no options, so
    there is no stock to fresh-start; the one-tracked-group rule still applies.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("name is required")
    _validate_bounds(min_select, max_select)

    item = ensure_item_in_restaurant(restaurant_id, item_id)
    if enable_inventory_tracking:
        assert_can_track_options(item)

    group = OptionGroup(
        name=name,
        min_select=min_select,
        max_select=max_select,
        required=bool(required),
        position=position if position is not None else len(item.option_groups),
        enable_inventory_tracking=bool(enable_inventory_tracking),
    )
    item.option_groups.append(group)
    db.session.commit()
    return group


def update_option_group(
    *,
    restaurant_id: int,
    option_group_id: int,
    name: str | None = None,
    min_select: int | None = None,
    max_select: int | None = None,
    required: bool | None = None,
    position: int | None = None,
) -> OptionGroup:
    """
    Edit group metadata. Tracking is switched on/off only through
    services.tracking so the fresh-start rule is applied.
    """
    group = _load_group(restaurant_id, option_group_id)

    new_min = group.min_select if min_select is None else min_select
    new_max = group.max_select if max_select is None else max_select
    _validate_bounds(new_min, new_max)

    if name is not None:
        name = name.strip()
        if not name:
            raise ValueError("name is required")
        group.name = name
    group.min_select = new_min
    group.max_select = new_max
    if required is not None:
        group.required = bool(required)
    if position is not None:
        group.position = position

    db.session.commit()
    return group


def add_option(
    *,
    restaurant_id: int,
    option_group_id: int,
    name: str,
    additional_price_cents: int = 0,
    available: bool = True,
    position: int | None = None,
    stock_quantity: int | None = None,
) -> Option:
    name = (name or "").strip()
    if not name:
        raise ValueError("name is required")
    if additional_price_cents < 0:
        raise ValueError("additional_price_cents cannot be negative")

    group = _load_group(restaurant_id, option_group_id)
    if any(o.name == name for o in group.options):
        raise ValueError(f"Option {name!r} already exists in {group.name}")

    option = Option(
        name=name,
        additional_price_cents=additional_price_cents,
        available=bool(available),
        position=position if position is not None else len(group.options),
    )
    group.options.append(option)
    if group.enable_inventory_tracking:
        option.stock_quantity = 0
        option.damaged_quantity = 0
    refresh_status(option)
    db.session.flush()

    if group.enable_inventory_tracking and stock_quantity:
        apply_delta(option, stock_quantity, AUDIT_RESTOCK, reason="Initial stock")

    db.session.commit()
    return option


# -----------------------------------------------------------------------------
# Selection validation & pricing
# -----------------------------------------------------------------------------

def validate_selection(item: Item, selected_options) -> dict[str, list[int]]:
    """
    Check a selection against the item's option groups.

    Returns the normalized selection. Raises InvalidSelectionError for ids that
    do not belong to the item or break min/max, MissingRequiredSelectionError
    for an unanswered required group and UnavailableOptionError for options
    switched off for sale.
    """
    selection = normalize_selection(selected_options)
    groups = {str(g.id): g for g in item.option_groups}

    unknown = [gid for gid in selection if gid not in groups]
    if unknown:
        raise InvalidSelectionError(
            f"Unknown option group for {item.name}",
            {"item_id": item.id, "option_group_ids": unknown},
        )

    for gid, group in groups.items():
        chosen = selection.get(gid, [])
        if not chosen:
            if group.required or group.min_select > 0:
                raise MissingRequiredSelectionError(
                    f"Please select {group.name} for {item.name}",
                    {"item_id": item.id, "option_group_id": group.id, "option_group": group.name},
                )
            continue

        if len(chosen) < group.min_select:
            raise InvalidSelectionError(
                f"Select at least {group.min_select} for {group.name}",
                {"option_group_id": group.id, "selected": len(chosen), "min_select": group.min_select},
            )
        if len(chosen) > group.max_select:
            raise InvalidSelectionError(
                f"Select at most {group.max_select} for {group.name}",
                {"option_group_id": group.id, "selected": len(chosen), "max_select": group.max_select},
            )

        options = {o.id: o for o in group.options}
        for option_id in chosen:
            option = options.get(option_id)
            if option is None:
                raise InvalidSelectionError(
                    f"Option {option_id} does not belong to {group.name}",
                    {"option_group_id": group.id, "option_id": option_id},
                )
            if not option.available:
                raise UnavailableOptionError(
                    f"{option.display_name} is not available",
                    {"option_id": option.id, "option": option.name},
                )

    return selection


def selected_option_rows(item: Item, selected_options) -> list[Option]:
    """Option rows for a (validated) selection, in group/option position order."""
    selection = normalize_selection(selected_options)
    rows = []
    for group in item.option_groups:
        chosen = set(selection.get(str(group.id), []))
        rows.extend(o for o in group.options if o.id in chosen)
    return rows


def price_for_selection(item: Item, selected_options) -> int:
    """Unit price in cents: item price plus every selected option's surcharge."""
    return int(item.price_cents) + sum(
        int(o.additional_price_cents or 0) for o in selected_option_rows(item, selected_options)
    )


# -----------------------------------------------------------------------------
# Variants
# -----------------------------------------------------------------------------

def _new_variant(item: Item, selection) -> ItemVariant:
    variant = ItemVariant(
        variant_key=encode(selection),
        variant_name=display_name(item, selection) or item.name,
        active=True,
    )
    if item.track_variants:
        variant.stock_quantity = 0
        variant.damaged_quantity = 0
    item.variants.append(variant)
    refresh_status(variant)
    return variant


def generate_missing_variants(item: Item) -> list[ItemVariant]:
    """One variant per cartesian combination of single options across all groups; existing keys kept."""
    groups = [g for g in item.option_groups if g.options]
    if not groups:
        return []

    existing = {v.variant_key for v in item.variants}
    created = []
    for combo in product(*[g.options for g in groups]):
        selection = {str(g.id): [o.id] for g, o in zip(groups, combo)}
        if encode(selection) in existing:
            continue
        created.append(_new_variant(item, selection))
        existing.add(created[-1].variant_key)
    db.session.flush()
    return created


def generate_variants(*, restaurant_id: int, item_id: int) -> list[ItemVariant]:
    def _op():
        begin_immediate()
        item = ensure_item_in_restaurant(restaurant_id, item_id, lock=True)
        created = generate_missing_variants(item)
        db.session.commit()
        current_app.logger.info("Generated %s variants for item %s", len(created), item.id)
        return created

    return run_with_retry(_op)


def create_variant(
    *,
    restaurant_id: int,
    item_id: int,
    selected_options,
    variant_name: str | None = None,
) -> ItemVariant:
    item = ensure_item_in_restaurant(restaurant_id, item_id)

    selection = normalize_selection(selected_options)
    groups = {str(g.id): g for g in item.option_groups}
    for gid, option_ids in selection.items():
        group = groups.get(gid)
        if group is None or not set(option_ids) <= {o.id for o in group.options}:
            raise InvalidSelectionError(
                f"Selection does not match the options of {item.name}",
                {"item_id": item.id, "option_group_id": gid},
            )

    variant_key = encode(selection)
    if ItemVariant.query.filter_by(item_id=item.id, variant_key=variant_key).first() is not None:
        raise DuplicateVariantKeyError(item.id, variant_key)

    variant = _new_variant(item, selection)
    if variant_name:
        variant.variant_name = variant_name
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same key
        db.session.rollback()
        raise DuplicateVariantKeyError(item.id, variant_key) from None
    return variant
