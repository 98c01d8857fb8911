# Overview: Service-layer operations for stock status; pure derivation of the display status.

from __future__ import annotations

from flask import current_app, has_app_context

from ..models.stock import (
    STOCK_STATUS_IN,
    STOCK_STATUS_LOW,
    STOCK_STATUS_OUT,
    STOCK_STATUS_UNLIMITED,
)


FALLBACK_LOW_STOCK_THRESHOLD = 10


def default_threshold() -> int:
    if has_app_context():
        return int(current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", FALLBACK_LOW_STOCK_THRESHOLD))
    return FALLBACK_LOW_STOCK_THRESHOLD


def available_quantity(quantity: int | None, damaged_quantity: int | None) -> int:
    return max((quantity or 0) - (damaged_quantity or 0), 0)


def derive_status(
    quantity: int | None,
    damaged_quantity: int | None,
    threshold: int | None,
    tracking_enabled: bool,
) -> str:
    """
    Map stock numbers to unlimited / out_of_stock / low_stock / in_stock.

    - tracking disabled          -> unlimited (quantity ignored)
    - available <= 0             -> out_of_stock
    - 0 < available <= threshold -> low_stock
    - otherwise                  -> in_stock
    """
    if not tracking_enabled:
        return STOCK_STATUS_UNLIMITED

    available = available_quantity(quantity, damaged_quantity)
    if available <= 0:
        return STOCK_STATUS_OUT

    limit = threshold if threshold is not None else default_threshold()
    if available <= limit:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def refresh_status(entity) -> str:
    """Recompute and assign the persisted stock_status for a ledger entity."""
    entity.stock_status = derive_status(
        entity.stock_quantity,
        entity.damaged_quantity,
        entity.low_stock_threshold,
        entity.tracking_enabled,
    )
    return entity.stock_status
