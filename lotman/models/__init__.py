"""
Lotman Models.

Core models for the inventory ledger:
- Warehouse: Where stock exists
- Product: Stock-keeping unit and its thresholds
- Lot: Received batch with quantity, dates and cost
- StockMovement: Immutable ledger of changes
- StockLevel: Running balance cache per product/warehouse
- StockAlert: Threshold and expiry conditions
"""

from lotman.models.alert import StockAlert
from lotman.models.enums import (
    AlertSeverity,
    AlertType,
    DeductionAction,
    MovementType,
    OutflowKind,
    QualityStatus,
)
from lotman.models.lot import Lot
from lotman.models.movement import StockMovement
from lotman.models.product import Product
from lotman.models.stock_level import StockLevel
from lotman.models.warehouse import Warehouse

__all__ = [
    'MovementType',
    'QualityStatus',
    'AlertType',
    'AlertSeverity',
    'OutflowKind',
    'DeductionAction',
    'Warehouse',
    'Product',
    'Lot',
    'StockMovement',
    'StockLevel',
    'StockAlert',
]
