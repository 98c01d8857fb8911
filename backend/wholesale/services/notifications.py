# Overview: Service-layer operations for notifications; order lifecycle signals for downstream delivery.

"""
Delivery (email, SMS, webhooks) is not done here. Other code connects
receivers to these signals:

    from wholesale.services.notifications import order_status_changed

    @order_status_changed.connect
    def _send_email(app, order, from_status, to_status, **extra):
        ...

Dispatch is fire-and-forget and happens after the owning transaction has
committed. A failing receiver is logged and never propagates to the caller
or blocks other receivers.
"""

from __future__ import annotations

from blinker import Namespace
from flask import current_app


_signals = Namespace()

order_status_changed = _signals.signal("order-status-changed")
order_refunded = _signals.signal("order-refunded")


def dispatch(signal, **kwargs) -> int:
    """Send `signal` with the app as sender; returns how many receivers succeeded."""
    app = current_app._get_current_object()
    delivered = 0
    for receiver in signal.receivers_for(app):
        try:
            receiver(app, **kwargs)
            delivered += 1
        except Exception:
            current_app.logger.exception("Notification receiver %r failed for %s", receiver, signal.name)
    return delivered


def notify_status_changed(order, from_status: str, to_status: str) -> int:
    return dispatch(order_status_changed, order=order, from_status=from_status, to_status=to_status)


def notify_refunded(order) -> int:
    return dispatch(order_refunded, order=order)
