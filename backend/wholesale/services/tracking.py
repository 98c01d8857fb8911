# Overview: Service-layer operations for tracking modes; resolves where an item's stock lives.

"""
Wholesale Tracking Modes

================================================================================
An item's stock is counted at exactly ONE granularity:
================================================================================

    VariantLevel        item.track_variants -> one ItemVariant per combination
    OptionLevel(group)  the single OptionGroup with enable_inventory_tracking
    ItemLevel           item.track_inventory -> the item row itself
    Untracked           none of the above -> always available

PRIORITY (when data is inconsistent): variant > option > item > untracked.

The three flags live in three columns, but callers never read them directly:
resolve_mode() turns them into one TrackingMode value so every downstream
branch handles exactly one case.

FRESH START:
Switching a mode OFF zeroes its quantities through the ledger (so the trail
shows where the stock went) and then NULLs them. Switching a mode ON starts
from zero. Stale quantities never survive a mode flip.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from flask import current_app

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    InvalidSelectionError,
    MissingRequiredSelectionError,
    NotFoundError,
    TenantAccessError,
    TrackingConflictError,
    UnavailableOptionError,
)
from ..models import Item, ItemVariant, OptionGroup
from ..models.audits import AUDIT_DAMAGED, AUDIT_MANUAL_ADJUSTMENT, AUDIT_RESTOCK
from .concurrency import begin_immediate, run_with_retry
from .stock_ledger import append_audit, apply_delta, ensure_item_in_restaurant, load_locked
from .stock_status import refresh_status
from .variant_keys import display_name, encode, normalize_selection


@dataclass(frozen=True)
class ItemLevel:
    name: ClassVar[str] = "item"


@dataclass(frozen=True)
class OptionLevel:
    group: OptionGroup
    name: ClassVar[str] = "option"


@dataclass(frozen=True)
class VariantLevel:
    name: ClassVar[str] = "variant"


@dataclass(frozen=True)
class Untracked:
    name: ClassVar[str] = "untracked"


TrackingMode = Union[ItemLevel, OptionLevel, VariantLevel, Untracked]


def resolve_mode(item: Item) -> TrackingMode:
    if item.track_variants:
        return VariantLevel()
    group = item.inventory_tracking_group
    if group is not None:
        return OptionLevel(group)
    if item.track_inventory:
        return ItemLevel()
    return Untracked()


def resolve_targets(item: Item, selected_options, *, mode: TrackingMode | None = None, quantity: int = 0) -> list:
    """
    Ledger entities an order line for `item` with `selected_options` mutates.

    Never falls back to a coarser mode: a line missing the tracked selection
    fails with MissingRequiredSelectionError.
    """
    mode = mode or resolve_mode(item)
    selection = normalize_selection(selected_options)

    if isinstance(mode, Untracked):
        return []

    if isinstance(mode, ItemLevel):
        return [item]

    if isinstance(mode, OptionLevel):
        group = mode.group
        chosen = selection.get(str(group.id))
        if not chosen:
            raise MissingRequiredSelectionError(
                f"Please select {group.name} for {item.name}",
                {"item_id": item.id, "option_group_id": group.id, "option_group": group.name},
            )
        options_by_id = {o.id: o for o in group.options}
        targets = []
        for option_id in chosen:
            option = options_by_id.get(option_id)
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
            targets.append(option)
        return targets

    # VariantLevel: every group must be chosen to address a single combination
    for group in item.option_groups:
        if not selection.get(str(group.id)):
            raise MissingRequiredSelectionError(
                f"Please select {group.name} for {item.name}",
                {"item_id": item.id, "option_group_id": group.id, "option_group": group.name},
            )

    variant_key = encode(selection)
    variant = ItemVariant.query.filter_by(item_id=item.id, variant_key=variant_key).first()
    if variant is None:
        raise InsufficientStockError(f"{item.name} ({display_name(item, selection)})", quantity, 0)
    if not variant.active:
        raise UnavailableOptionError(
            f"{variant.display_name} is not available",
            {"variant_id": variant.id, "variant_key": variant.variant_key},
        )
    return [variant]


# -----------------------------------------------------------------------------
# Fresh-start helpers
# -----------------------------------------------------------------------------

def _reset_stock(entity, *, reason: str, actor_user_id: int | None) -> None:
    """Zero stock and damaged through the audit log, then NULL all stock fields."""
    if entity.stock_quantity:
        apply_delta(entity, -entity.stock_quantity, AUDIT_MANUAL_ADJUSTMENT, reason=reason, actor_user_id=actor_user_id)
    if entity.damaged_quantity:
        append_audit(
            entity,
            audit_type=AUDIT_DAMAGED,
            quantity_change=-entity.damaged_quantity,
            previous_quantity=entity.damaged_quantity,
            new_quantity=0,
            reason=reason,
            actor_user_id=actor_user_id,
        )
    entity.stock_quantity = None
    entity.damaged_quantity = None
    entity.low_stock_threshold = None


def _start_stock(entity, *, quantity: int | None, threshold: int | None, actor_user_id: int | None) -> None:
    entity.stock_quantity = 0
    entity.damaged_quantity = 0
    entity.low_stock_threshold = threshold
    if quantity:
        apply_delta(entity, quantity, AUDIT_RESTOCK, reason="Initial stock", actor_user_id=actor_user_id)


def _reset_option_stock(item: Item, *, reason: str, actor_user_id: int | None) -> None:
    for group in item.option_groups:
        for option in group.options:
            if option.stock_quantity is not None or option.damaged_quantity is not None:
                _reset_stock(option, reason=reason, actor_user_id=actor_user_id)
            refresh_status(option)


def _tracked_group_for(item: Item, *, exclude: OptionGroup | None = None) -> OptionGroup | None:
    for group in item.option_groups:
        if group is not exclude and group.enable_inventory_tracking:
            return group
    return None


def assert_can_track_options(item: Item, group: OptionGroup | None = None) -> None:
    """Raise TrackingConflictError unless `group` may become the item's tracked group."""
    if item.track_inventory:
        raise TrackingConflictError(
            f"{item.name} tracks inventory at item level; disable it before tracking options",
            {"item_id": item.id},
        )
    if item.track_variants:
        raise TrackingConflictError(
            f"{item.name} tracks inventory per variant; disable it before tracking options",
            {"item_id": item.id},
        )
    other = _tracked_group_for(item, exclude=group)
    if other is not None:
        raise TrackingConflictError(
            f"{item.name} already tracks inventory on option group {other.name}",
            {"item_id": item.id, "option_group_id": other.id},
        )


def _load_group(restaurant_id: int, group_id: int) -> OptionGroup:
    group = load_locked(OptionGroup, group_id)
    if group is None:
        raise NotFoundError("Option group not found", {"option_group_id": group_id})
    if group.item.restaurant_id != restaurant_id:
        raise TenantAccessError(
            "Option group does not belong to restaurant",
            {"option_group_id": group_id, "restaurant_id": restaurant_id},
        )
    return group


# -----------------------------------------------------------------------------
# Mode configuration
# -----------------------------------------------------------------------------

def set_item_tracking(
    *,
    restaurant_id: int,
    item_id: int,
    enabled: bool,
    quantity: int | None = None,
    low_stock_threshold: int | None = None,
    actor_user_id: int | None = None,
) -> Item:
    def _op():
        begin_immediate()
        item = ensure_item_in_restaurant(restaurant_id, item_id, lock=True)

        if enabled:
            if item.track_inventory:
                return item
            if item.track_variants or _tracked_group_for(item) is not None:
                raise TrackingConflictError(
                    f"{item.name} already tracks inventory on options or variants",
                    {"item_id": item.id},
                )
            item.track_inventory = True
            _start_stock(item, quantity=quantity, threshold=low_stock_threshold, actor_user_id=actor_user_id)
        else:
            if not item.track_inventory:
                return item
            _reset_stock(item, reason="Inventory tracking disabled", actor_user_id=actor_user_id)
            item.track_inventory = False
            _reset_option_stock(item, reason="Inventory tracking disabled", actor_user_id=actor_user_id)

        refresh_status(item)
        db.session.commit()
        current_app.logger.info("Item %s tracking %s", item.id, "enabled" if enabled else "disabled")
        return item

    return run_with_retry(_op)


def enable_option_tracking(
    *,
    restaurant_id: int,
    option_group_id: int,
    initial_quantities: dict | None = None,
    low_stock_threshold: int | None = None,
    actor_user_id: int | None = None,
) -> OptionGroup:
    """Make one option group the item's stock holder; every option starts from zero."""
    initial_quantities = {int(k): int(v) for k, v in (initial_quantities or {}).items()}

    def _op():
        begin_immediate()
        group = _load_group(restaurant_id, option_group_id)
        if group.enable_inventory_tracking:
            return group
        assert_can_track_options(group.item, group)

        group.enable_inventory_tracking = True
        for option in group.options:
            _start_stock(
                option,
                quantity=initial_quantities.get(option.id),
                threshold=low_stock_threshold,
                actor_user_id=actor_user_id,
            )
            refresh_status(option)

        db.session.commit()
        current_app.logger.info("Option tracking enabled on group %s (item %s)", group.id, group.item_id)
        return group

    return run_with_retry(_op)


def disable_option_tracking(
    *,
    restaurant_id: int,
    option_group_id: int,
    actor_user_id: int | None = None,
) -> OptionGroup:
    def _op():
        begin_immediate()
        group = _load_group(restaurant_id, option_group_id)
        if not group.enable_inventory_tracking:
            return group

        for option in group.options:
            _reset_stock(option, reason="Option tracking disabled", actor_user_id=actor_user_id)
        group.enable_inventory_tracking = False
        for option in group.options:
            refresh_status(option)

        db.session.commit()
        current_app.logger.info("Option tracking disabled on group %s (item %s)", group.id, group.item_id)
        return group

    return run_with_retry(_op)


def enable_variant_tracking(
    *,
    restaurant_id: int,
    item_id: int,
    low_stock_threshold: int | None = None,
    actor_user_id: int | None = None,
) -> Item:
    """
    Track stock per option combination. Materializes any missing variants and
    zeroes every variant's counts.
    """
    from .catalog_service import generate_missing_variants

    def _op():
        begin_immediate()
        item = ensure_item_in_restaurant(restaurant_id, item_id, lock=True)
        if item.track_variants:
            return item
        if item.track_inventory or _tracked_group_for(item) is not None:
            raise TrackingConflictError(
                f"{item.name} already tracks inventory at item or option level",
                {"item_id": item.id},
            )
        if not item.option_groups:
            raise TrackingConflictError(
                f"{item.name} has no option groups to build variants from",
                {"item_id": item.id},
            )

        item.track_variants = True
        generate_missing_variants(item)
        for variant in item.variants:
            _start_stock(variant, quantity=None, threshold=low_stock_threshold, actor_user_id=actor_user_id)
            refresh_status(variant)

        db.session.commit()
        current_app.logger.info("Variant tracking enabled on item %s (%s variants)", item.id, len(item.variants))
        return item

    return run_with_retry(_op)


def disable_variant_tracking(
    *,
    restaurant_id: int,
    item_id: int,
    actor_user_id: int | None = None,
) -> Item:
    def _op():
        begin_immediate()
        item = ensure_item_in_restaurant(restaurant_id, item_id, lock=True)
        if not item.track_variants:
            return item

        for variant in item.variants:
            _reset_stock(variant, reason="Variant tracking disabled", actor_user_id=actor_user_id)
        item.track_variants = False
        for variant in item.variants:
            refresh_status(variant)

        db.session.commit()
        current_app.logger.info("Variant tracking disabled on item %s", item.id)
        return item

    return run_with_retry(_op)
