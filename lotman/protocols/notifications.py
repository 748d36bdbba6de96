"""
Alert Notification Protocol — Interface for delivering stock alerts.

Lotman defines this protocol, the notification subsystem implements it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class AlertNotification:
    """One notification per created alert."""

    alert_id: int
    alert_type: str
    severity: str
    message: str
    warehouse_code: str
    product_sku: str | None = None
    roles: tuple[str, ...] = ()

    @property
    def title(self) -> str:
        return f"Alerta de estoque: {self.alert_type}"


@runtime_checkable
class AlertNotifier(Protocol):
    """
    Protocol for alert delivery.

    Implementations fan the notification out to the users holding the
    given roles (in-app notification, e-mail, chat...). Failures may be
    raised freely: Lotman logs and ignores them.
    """

    def notify(self, notification: AlertNotification) -> None:
        """
        Deliver a notification.

        Args:
            notification: Alert type, severity, message and target roles
        """
        ...
