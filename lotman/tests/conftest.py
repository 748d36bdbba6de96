"""
Pytest fixtures for Lotman tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from lotman.adapters import reset_adapters
from lotman.protocols.orders import OrderLine, OrderStatusChange
from lotman.services.catalog import Catalog
from lotman.services.lots import LotLedger
from lotman.services.warehouses import Warehouses
from lotman.tests.backends import MemoryOrderBackend, RecordingNotifier


User = get_user_model()


@pytest.fixture(autouse=True)
def _adapters():
    """Fresh adapter instances and empty in-memory state per test."""
    reset_adapters()
    RecordingNotifier.sent.clear()
    MemoryOrderBackend.orders.clear()
    yield
    reset_adapters()


@pytest.fixture
def notifications():
    """Notifications delivered so far."""
    return RecordingNotifier.sent


@pytest.fixture
def orders():
    """Known orders: order_id -> stock_deducted_at (None = not deducted)."""
    return MemoryOrderBackend.orders


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='estoquista',
        password='testpass123'
    )


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def central(db):
    """Primary warehouse."""
    return Warehouses.create_warehouse(code='central', name='Depósito Central', is_primary=True)


@pytest.fixture
def filial(db):
    """Secondary warehouse."""
    return Warehouses.create_warehouse(code='filial', name='Filial Sul')


@pytest.fixture
def product(db):
    """Product with a threshold of 80 units."""
    return Catalog.create_product(sku='CAFE-500', name='Café 500g', category='Bebidas', min_threshold=80)


@pytest.fixture
def other_product(db):
    return Catalog.create_product(sku='ACUCAR-1K', name='Açúcar 1kg', category='Mercearia', min_threshold=10)


@pytest.fixture
def make_lot(db, today):
    """Factory: receive a lot through the ledger."""
    counter = {'n': 0}

    def _make(product, warehouse, quantity, expires_in=None, produced_ago=0,
              unit_cost=None, lot_number=None, **kwargs):
        counter['n'] += 1
        return LotLedger.create_lot(
            lot_number=lot_number or f"LOT-{counter['n']:04d}",
            product=product,
            warehouse=warehouse,
            initial_quantity=quantity,
            production_date=today - timedelta(days=produced_ago),
            expiry_date=today + timedelta(days=expires_in) if expires_in is not None else None,
            unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_event(orders):
    """Factory: an order status change for a registered order."""

    def _make(order_id='ORD-1', new_status='SHIPPED', items=(), old_status='CONFIRMED',
              shipping_status=None, warehouse_hint=None, actor=None, register=True):
        if register:
            orders.setdefault(order_id, None)
        return OrderStatusChange(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            items=tuple(
                item if isinstance(item, OrderLine) else OrderLine(**item)
                for item in items
            ),
            shipping_status=shipping_status,
            warehouse_hint=warehouse_hint,
            actor=actor,
        )

    return _make
