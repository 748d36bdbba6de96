"""
Lotman adapter loader — collaborators configured by dotted path.

Usage:
    from lotman.adapters import get_alert_notifier, get_order_backend

    notifier = get_alert_notifier()
    notifier.notify(notification)

Settings:
    LOTMAN = {
        "ALERT_NOTIFIER": "notifications.adapters.StockAlertNotifier",
        "ORDER_BACKEND": "orders.adapters.LotmanOrderBackend",
    }

Both default to the no-op adapters in lotman.adapters.noop.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from lotman.conf import lotman_settings
from lotman.protocols.notifications import AlertNotifier
from lotman.protocols.orders import OrderBackend

logger = logging.getLogger(__name__)


# Cached adapter instances, keyed by setting name
_lock = threading.Lock()
_instances: dict[str, Any] = {}


def _load(setting: str) -> Any:
    instance = _instances.get(setting)

    if instance is None:
        with _lock:
            instance = _instances.get(setting)
            if instance is None:  # double-checked
                path = getattr(lotman_settings, setting)

                if not path:
                    raise ImproperlyConfigured(
                        f"LOTMAN['{setting}'] must be configured."
                    )

                try:
                    adapter_class = import_string(path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import LOTMAN['{setting}'] '{path}': {e}"
                    ) from e

                instance = adapter_class()
                _instances[setting] = instance
                logger.debug("Loaded %s: %s", setting, path)

    return instance


def get_alert_notifier() -> AlertNotifier:
    """
    Return the configured alert notifier.

    Raises:
        ImproperlyConfigured: If ALERT_NOTIFIER is empty or import fails
    """
    return _load("ALERT_NOTIFIER")


def get_order_backend() -> OrderBackend:
    """
    Return the configured order backend.

    Raises:
        ImproperlyConfigured: If ORDER_BACKEND is empty or import fails
    """
    return _load("ORDER_BACKEND")


def reset_adapters() -> None:
    """Reset the cached adapters. Useful for testing."""
    with _lock:
        _instances.clear()
