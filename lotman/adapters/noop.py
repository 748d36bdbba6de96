"""
Noop adapters — Stub collaborators for development and testing.

- NoopAlertNotifier: logs the alert, delivers nothing
- NoopOrderBackend: every order exists, none is ever marked deducted

Usage in settings.py:
    LOTMAN = {
        "ALERT_NOTIFIER": "lotman.adapters.noop.NoopAlertNotifier",
        "ORDER_BACKEND": "lotman.adapters.noop.NoopOrderBackend",
    }

WARNING: Do NOT use NoopOrderBackend in production. Without a persisted
stock-deducted flag the order subsystem cannot tell whether an order
transition was already processed.
"""

from __future__ import annotations

import logging

from lotman.protocols.notifications import AlertNotification

logger = logging.getLogger('lotman')


class NoopAlertNotifier:
    """Log-only notifier. Implements the ``AlertNotifier`` protocol."""

    def notify(self, notification: AlertNotification) -> None:
        logger.info(
            "stock.alert.notify.noop",
            extra={
                "alert_id": notification.alert_id,
                "alert_type": notification.alert_type,
                "severity": notification.severity,
                "roles": list(notification.roles),
            },
        )


class NoopOrderBackend:
    """Stateless order backend. Implements the ``OrderBackend`` protocol."""

    def order_exists(self, order_id: str) -> bool:
        return True

    def is_stock_deducted(self, order_id: str) -> bool:
        return False

    def set_stock_deducted(self, order_id, deducted_at) -> None:
        logger.debug(
            "stock.order.flag.noop",
            extra={"order_id": order_id, "deducted_at": str(deducted_at)},
        )
