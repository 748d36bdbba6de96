"""
Stock services — modular organization of stock operations.

    from lotman.services import Catalog, LotLedger, MovementLedger, StockLevels
"""

from lotman.services.catalog import Catalog
from lotman.services.levels import StockLevels
from lotman.services.lots import LotLedger
from lotman.services.movements import MovementLedger
from lotman.services.warehouses import Warehouses

__all__ = [
    'Catalog',
    'Warehouses',
    'LotLedger',
    'MovementLedger',
    'StockLevels',
]
