"""
Django Lotman — inventory ledger and FEFO allocation engine.

Uso:
    from lotman import inventory, StockError

    inventory.create_lot("LOT-0142", cafe, central, 50, expiry_date=friday)
    inventory.select_fefo(cafe, central, 30)
    inventory.process_status_change(event)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'inventory':
        from lotman.service import Inventory
        return Inventory
    elif name == 'StockError':
        from lotman.exceptions import StockError
        return StockError
    elif name == 'Warehouse':
        from lotman.models.warehouse import Warehouse
        return Warehouse
    elif name == 'Product':
        from lotman.models.product import Product
        return Product
    elif name == 'Lot':
        from lotman.models.lot import Lot
        return Lot
    elif name == 'StockMovement':
        from lotman.models.movement import StockMovement
        return StockMovement
    elif name == 'StockLevel':
        from lotman.models.stock_level import StockLevel
        return StockLevel
    elif name == 'StockAlert':
        from lotman.models.alert import StockAlert
        return StockAlert
    elif name == 'MovementType':
        from lotman.models.enums import MovementType
        return MovementType
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'inventory',
    'StockError',
    'Warehouse',
    'Product',
    'Lot',
    'StockMovement',
    'StockLevel',
    'StockAlert',
    'MovementType',
]

__version__ = '0.1.0'
