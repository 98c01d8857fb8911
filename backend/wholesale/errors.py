# Overview: Domain error taxonomy for inventory, reservation and order lifecycle.

"""
Every error carries a human-readable message plus a `details` dict that
callers can surface verbatim (entity name, requested vs. available quantity).

Reservation-time errors abort order creation; the caller's transaction is
rolled back so no partial order or partial stock decrement is persisted.

NegativeStockError and DamagedExceedsStockError are ledger guards. Given
correct callers they never fire; when they do it is a logic error and must
not be retried.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for all domain errors raised by this package."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message, "details": self.details}


class NotFoundError(InventoryError):
    """Referenced row does not exist (or is not visible to the tenant)."""


class TenantAccessError(InventoryError):
    """Entity belongs to a different restaurant than the one supplied."""


# -----------------------------------------------------------------------------
# Reservation errors
# -----------------------------------------------------------------------------

class InsufficientStockError(InventoryError):
    def __init__(self, entity_name: str, requested: int, available: int):
        if available <= 0:
            message = (
                f"{entity_name} is out of stock "
                f"(requested {requested}, {max(available, 0)} available)"
            )
        else:
            message = (
                f"Insufficient stock for {entity_name}. "
                f"Only {available} available (requested {requested})"
            )
        super().__init__(
            message,
            details={"entity": entity_name, "requested": requested, "available": available},
        )
        self.entity_name = entity_name
        self.requested = requested
        self.available = available


class MissingRequiredSelectionError(InventoryError):
    """An order line lacks a selection for a group that must be chosen."""


class UnavailableOptionError(InventoryError):
    """A selected option (or variant) is switched off for sale."""


class InvalidSelectionError(InventoryError):
    """Selection references unknown ids or violates min/max select."""


# -----------------------------------------------------------------------------
# Ledger guards
# -----------------------------------------------------------------------------

class NegativeStockError(InventoryError):
    def __init__(self, entity_name: str, current: int, delta: int):
        super().__init__(
            f"Stock for {entity_name} would become negative ({current} {delta:+d})",
            details={"entity": entity_name, "current": current, "delta": delta},
        )


class DamagedExceedsStockError(InventoryError):
    def __init__(self, entity_name: str, damaged: int, stock: int):
        super().__init__(
            f"Damaged quantity for {entity_name} cannot exceed stock ({damaged} > {stock})",
            details={"entity": entity_name, "damaged": damaged, "stock": stock},
        )


class TrackingConflictError(InventoryError):
    """Tracking modes are mutually exclusive per item."""


class DuplicateVariantKeyError(InventoryError):
    def __init__(self, item_id: int, variant_key: str):
        super().__init__(
            f"Variant key {variant_key!r} already exists for item {item_id}",
            details={"item_id": item_id, "variant_key": variant_key},
        )


# -----------------------------------------------------------------------------
# Order lifecycle
# -----------------------------------------------------------------------------

class IllegalTransitionError(InventoryError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot transition order from {from_status} to {to_status}",
            details={"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class OrderError(InventoryError):
    """Order-level rule violation (empty cart, double refund, ...)."""
