"""
Lotman Adapters.

Implementations of protocols for external systems.
"""

from lotman.adapters.loader import (
    get_alert_notifier,
    get_order_backend,
    reset_adapters,
)

__all__ = [
    "get_alert_notifier",
    "get_order_backend",
    "reset_adapters",
]
