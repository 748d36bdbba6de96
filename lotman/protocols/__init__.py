"""
Lotman Protocols.

Interfaces Lotman expects from its collaborators.
"""

from lotman.protocols.notifications import AlertNotification, AlertNotifier
from lotman.protocols.orders import OrderBackend, OrderLine, OrderStatusChange

__all__ = [
    "AlertNotification",
    "AlertNotifier",
    "OrderBackend",
    "OrderLine",
    "OrderStatusChange",
]
