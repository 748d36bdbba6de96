"""
Inventory Service — The single public interface for stock operations.

Usage:
    from lotman import inventory, StockError

    lot = inventory.create_lot("LOT-0142", product, warehouse, 50, expiry_date=friday)
    inventory.select_fefo(product, warehouse, 30).lots
    inventory.process_status_change(event)
"""

from datetime import date
from decimal import Decimal

from lotman.models.enums import QualityStatus
from lotman.protocols.orders import OrderStatusChange
from lotman.services import alerts, reconciliation
from lotman.services.catalog import Catalog
from lotman.services.deduction import DeductionOrchestrator, DeductionResult, is_eligible
from lotman.services.levels import StockLevels
from lotman.services.lots import FefoSelection, LotLedger
from lotman.services.movements import MovementLedger
from lotman.services.warehouses import Warehouses


class Inventory:
    """
    Single interface for stock operations.

    Thin delegation to the services; every state-changing method runs in
    its own transaction with the rows it reads locked. See each service
    for details.
    """

    # ══════════════════════════════════════════════════════════════
    # CATALOG
    # ══════════════════════════════════════════════════════════════

    resolve_or_create_product = Catalog.resolve_or_create_product
    create_product = Catalog.create_product
    get_product = Catalog.get_product
    get_product_by_sku = Catalog.get_product_by_sku
    list_products = Catalog.list_products
    update_product = Catalog.update_product
    deactivate_product = Catalog.deactivate_product
    categories = Catalog.categories

    # ══════════════════════════════════════════════════════════════
    # WAREHOUSES
    # ══════════════════════════════════════════════════════════════

    primary_warehouse = Warehouses.get_primary
    get_warehouse = Warehouses.get_warehouse
    create_warehouse = Warehouses.create_warehouse
    update_warehouse = Warehouses.update_warehouse
    deactivate_warehouse = Warehouses.deactivate_warehouse
    list_warehouses = Warehouses.list_warehouses

    # ══════════════════════════════════════════════════════════════
    # LOTS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def create_lot(cls, lot_number: str, product, warehouse, initial_quantity: int,
                   production_date: date | None = None, expiry_date: date | None = None,
                   unit_cost: Decimal | None = None, supplier_info: str = '',
                   quality_status: str = QualityStatus.APPROVED, notes: str = '', user=None):
        """Receive stock as a new lot. See LotLedger.create_lot."""
        return LotLedger.create_lot(
            lot_number, product, warehouse, initial_quantity,
            production_date=production_date,
            expiry_date=expiry_date,
            unit_cost=unit_cost,
            supplier_info=supplier_info,
            quality_status=quality_status,
            notes=notes,
            user=user,
        )

    get_lot = LotLedger.get_lot
    get_lot_by_number = LotLedger.get_lot_by_number
    list_lots = LotLedger.list_lots
    update_lot = LotLedger.update_lot
    deactivate_lot = LotLedger.deactivate_lot

    @classmethod
    def select_fefo(cls, product, warehouse, required: int = 0) -> FefoSelection:
        """Lots to allocate from, soonest-to-expire first (no locking)."""
        return LotLedger.select_fefo(product, warehouse, required)

    # ══════════════════════════════════════════════════════════════
    # MOVEMENTS & LEVELS
    # ══════════════════════════════════════════════════════════════

    get_movement = MovementLedger.get_movement
    list_movements = MovementLedger.list_movements
    movement_summary = MovementLedger.summary
    lot_history = MovementLedger.lot_history

    stock_level = StockLevels.get
    list_levels = StockLevels.list_levels
    reconcile = StockLevels.reconcile
    dashboard_stats = StockLevels.dashboard_stats

    # ══════════════════════════════════════════════════════════════
    # ALERTS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def list_alerts(cls, **filters):
        return alerts.list_alerts(**filters)

    @classmethod
    def resolve_alert(cls, pk, user):
        return alerts.resolve_alert(pk, user)

    @classmethod
    def alert_summary(cls) -> dict:
        return alerts.alert_summary()

    @classmethod
    def check_alerts(cls, today: date | None = None) -> list:
        """Both sweeps: expiry, then stock levels."""
        return alerts.check_expiry_alerts(today) + alerts.check_stock_level_alerts()

    # ══════════════════════════════════════════════════════════════
    # ORDERS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def process_status_change(cls, event: OrderStatusChange, **collaborators) -> DeductionResult:
        """
        Apply an order status change to stock.

        Args:
            event: The status change with its line items
            **collaborators: using / notifier / orders for the orchestrator
        """
        return DeductionOrchestrator(**collaborators).process(event)

    @classmethod
    def is_eligible(cls, event: OrderStatusChange, stock_deducted: bool) -> bool:
        return is_eligible(event, stock_deducted)

    # ══════════════════════════════════════════════════════════════
    # RECONCILIATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def find_drift(cls, warehouse=None):
        return reconciliation.find_drift(warehouse)

    @classmethod
    def reconcile_all(cls, warehouse=None) -> int:
        return reconciliation.reconcile_all(warehouse)
