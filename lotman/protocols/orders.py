"""
Order Protocol — Interface between Lotman and the order subsystem.

The order subsystem owns orders: it sends status changes in and persists
the "stock deducted" flag Lotman reports back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class OrderLine:
    """Line item of an order, as the order subsystem knows it."""

    id: str
    title: str
    quantity: int
    sku: str | None = None


@dataclass(frozen=True)
class OrderStatusChange:
    """
    An order transitioning from one status to another.

    Attributes:
        order_id: Order identifier in the order subsystem
        old_status / new_status: e.g. "CONFIRMED" → "SHIPPED"
        items: Order lines (processed in this order)
        shipping_status: Carrier status, e.g. "delivered", "cancelled"
        warehouse_hint: Warehouse pk or code (None = primary warehouse)
        actor: User performing the change (None = system)
    """

    order_id: str
    old_status: str
    new_status: str
    items: tuple[OrderLine, ...] = field(default_factory=tuple)
    shipping_status: str | None = None
    warehouse_hint: Any = None
    actor: Any = None


@runtime_checkable
class OrderBackend(Protocol):
    """
    Protocol for order bookkeeping.

    The stock-deducted flag makes order processing idempotent: a
    deduction only runs for orders not yet deducted, an add-back only for
    orders that were.
    """

    def order_exists(self, order_id: str) -> bool:
        """Does the order exist in the order subsystem?"""
        ...

    def is_stock_deducted(self, order_id: str) -> bool:
        """Has stock already been deducted for this order?"""
        ...

    def set_stock_deducted(self, order_id: str, deducted_at: datetime | None) -> None:
        """
        Persist the flag.

        Args:
            order_id: Order identifier
            deducted_at: When stock was deducted (None = clear the flag)
        """
        ...
