"""
Lotman configuration.

Usage in settings.py:
    LOTMAN = {
        "ALERT_NOTIFIER": "notifications.adapters.StockAlertNotifier",
        "ORDER_BACKEND": "orders.adapters.LotmanOrderBackend",
        "EXPIRY_WARNING_DAYS": 30,
        "CONTENTION_MAX_RETRIES": 3,
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


@dataclass
class LotmanSettings:
    """Lotman configuration settings."""

    # Notification backend for created alerts (dotted path)
    ALERT_NOTIFIER: str = "lotman.adapters.noop.NoopAlertNotifier"

    # Order subsystem backend (dotted path)
    ORDER_BACKEND: str = "lotman.adapters.noop.NoopOrderBackend"

    # Roles that receive alert notifications
    ALERT_NOTIFY_ROLES: tuple = ("admin", "team_manager", "stock_management_agent")

    # Defaults for products registered implicitly from order lines
    DEFAULT_PRODUCT_UNIT: str = "piece"
    DEFAULT_MIN_THRESHOLD: int = 100

    # Expiry sweep window and critical cutoff, in days
    EXPIRY_WARNING_DAYS: int = 30
    EXPIRY_CRITICAL_DAYS: int = 7

    # Retries for a unit of work hitting lock contention
    CONTENTION_MAX_RETRIES: int = 3
    CONTENTION_BACKOFF_MS: int = 50

    # Pagination for list queries
    PAGE_SIZE: int = 25
    MAX_PAGE_SIZE: int = 100

    # Carrier statuses (case-insensitive) driving DELIVERED / cancellation
    DELIVERED_SHIPPING_STATUSES: tuple = field(default=("delivered", "livré", "livre"))
    CANCELLED_SHIPPING_STATUSES: tuple = field(default=("cancelled", "canceled", "annulé", "annule"))


def get_lotman_settings() -> LotmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LOTMAN", {})
    return LotmanSettings(**{
        k: v for k, v in user_settings.items()
        if k in LotmanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_lotman_settings(), name)


lotman_settings = _LazySettings()
