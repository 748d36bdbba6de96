"""
Lot ledger — receiving, editing and selecting lots.

Every change of a lot's current_quantity writes a movement and updates
the stock level in the same transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from lotman.exceptions import InvalidQuantity, LotHasStock, LotNotFound, LotNumberConflict
from lotman.models.enums import MovementType, QualityStatus
from lotman.models.lot import Lot
from lotman.models.product import Product
from lotman.models.warehouse import Warehouse
from lotman.pagination import PageResult, paginate
from lotman.services.catalog import Catalog
from lotman.services.levels import StockLevels
from lotman.services.movements import MovementLedger
from lotman.services.warehouses import Warehouses

logger = logging.getLogger('lotman')

# Fields update_lot() accepts
UPDATABLE_FIELDS = ('current_quantity', 'expiry_date', 'unit_cost', 'supplier_info', 'quality_status', 'notes')


@dataclass
class FefoSelection:
    """Lots eligible for allocation, in FEFO order, and what they hold."""

    lots: list = field(default_factory=list)
    total_available: int = 0
    required: int = 0

    @property
    def covers(self) -> bool:
        return self.total_available >= self.required

    @property
    def shortfall(self) -> int:
        return max(self.required - self.total_available, 0)


def _product(product) -> Product:
    return product if isinstance(product, Product) else Catalog.get_product(product)


def _warehouse(warehouse) -> Warehouse:
    return warehouse if isinstance(warehouse, Warehouse) else Warehouses.get_warehouse(warehouse)


class LotLedger:
    """Lot lifecycle and FEFO selection."""

    @classmethod
    def create_lot(cls, lot_number: str, product, warehouse, initial_quantity: int,
                   production_date: date | None = None, expiry_date: date | None = None,
                   unit_cost: Decimal | None = None, supplier_info: str = '',
                   quality_status: str = QualityStatus.APPROVED, notes: str = '',
                   user=None, reference: str = '') -> Lot:
        """
        Receive stock as a new lot.

        1. Validates product, warehouse and lot number uniqueness
        2. Creates the lot (total_cost = unit_cost * initial_quantity)
        3. Records an IN movement 0 → initial_quantity
        4. Updates the stock level (weighted average cost)

        Raises:
            ProductNotFound / WarehouseNotFound: If either doesn't exist
            LotNumberConflict: If the lot number is taken
            InvalidQuantity: If initial_quantity <= 0
        """
        product = _product(product)
        warehouse = _warehouse(warehouse)

        if initial_quantity <= 0:
            raise InvalidQuantity(requested=initial_quantity)

        if Lot.objects.filter(lot_number=lot_number).exists():
            raise LotNumberConflict(lot_number=lot_number)

        try:
            with transaction.atomic():
                lot = Lot.objects.create(
                    lot_number=lot_number,
                    product=product,
                    warehouse=warehouse,
                    initial_quantity=initial_quantity,
                    current_quantity=0,
                    production_date=production_date or timezone.localdate(),
                    expiry_date=expiry_date,
                    unit_cost=unit_cost,
                    total_cost=unit_cost * initial_quantity if unit_cost is not None else None,
                    supplier_info=supplier_info,
                    quality_status=quality_status,
                    notes=notes,
                )

                MovementLedger.record(
                    MovementType.IN,
                    product=product,
                    warehouse=warehouse,
                    lot=lot,
                    quantity=initial_quantity,
                    unit_cost=unit_cost,
                    user=user,
                    reference=reference or f"Lote {lot_number}",
                    reason='Recebimento',
                )
                lot.current_quantity = initial_quantity
                lot.save(update_fields=['current_quantity', 'updated_at'])

                StockLevels.apply_movement(product, warehouse, MovementType.IN, initial_quantity, unit_cost)
        except IntegrityError:
            raise LotNumberConflict(lot_number=lot_number) from None

        logger.info(
            "stock.lot.created",
            extra={
                "lot": lot_number,
                "sku": product.sku,
                "warehouse": warehouse.code,
                "qty": initial_quantity,
                "expiry_date": str(expiry_date) if expiry_date else None,
            },
        )
        return lot

    @classmethod
    def get_lot(cls, pk) -> Lot:
        try:
            return Lot.objects.select_related('product', 'warehouse').get(pk=pk)
        except Lot.DoesNotExist:
            raise LotNotFound(lot_id=pk) from None

    @classmethod
    def get_lot_by_number(cls, lot_number: str) -> Lot:
        try:
            return Lot.objects.select_related('product', 'warehouse').get(lot_number=lot_number)
        except Lot.DoesNotExist:
            raise LotNotFound(lot_number=lot_number) from None

    @classmethod
    def list_lots(cls, product=None, warehouse=None, is_active: bool | None = None,
                  expiring_before: date | None = None, search: str | None = None,
                  page: int | None = None, limit: int | None = None) -> PageResult:
        """
        List lots with filters, newest first.

        search matches lot number, product name or SKU (case-insensitive).
        expiring_before keeps lots expiring between today and that date.
        """
        qs = Lot.objects.select_related('product', 'warehouse')

        if product is not None:
            qs = qs.filter(product=product)
        if warehouse is not None:
            qs = qs.filter(warehouse=warehouse)
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        if expiring_before is not None:
            qs = qs.expiring_before(expiring_before)
        if search:
            qs = qs.filter(
                Q(lot_number__icontains=search)
                | Q(product__name__icontains=search)
                | Q(product__sku__icontains=search)
            )

        return paginate(qs.order_by('-created_at', '-pk'), page, limit)

    @classmethod
    def update_lot(cls, pk, user=None, reason: str = '', **changes) -> Lot:
        """
        Edit a lot.

        Accepts current_quantity, expiry_date, unit_cost, supplier_info,
        quality_status and notes. Total cost is recomputed when quantity
        or unit cost changes.

        A quantity change is a signed ADJUSTMENT movement plus the matching
        stock level update. A unit cost change reconciles the level's cost.

        Raises:
            LotNotFound: If the lot doesn't exist
            InvalidQuantity: If current_quantity would go below zero
            ValueError: If an unknown field is given
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Campos não atualizáveis: {', '.join(sorted(unknown))}")

        with transaction.atomic():
            try:
                lot = Lot.objects.select_for_update().select_related('product', 'warehouse').get(pk=pk)
            except Lot.DoesNotExist:
                raise LotNotFound(lot_id=pk) from None

            update_fields = ['updated_at']
            new_quantity = changes.pop('current_quantity', None)

            if new_quantity is not None and new_quantity != lot.current_quantity:
                if new_quantity < 0:
                    raise InvalidQuantity(requested=new_quantity, lot_number=lot.lot_number)

                delta = new_quantity - lot.current_quantity
                MovementLedger.record(
                    MovementType.ADJUSTMENT,
                    product=lot.product,
                    warehouse=lot.warehouse,
                    lot=lot,
                    quantity=delta,
                    unit_cost=lot.unit_cost,
                    user=user,
                    reference=f"Lote {lot.lot_number}",
                    reason=reason or 'Ajuste manual',
                )
                lot.current_quantity = new_quantity
                update_fields.append('current_quantity')
                StockLevels.apply_movement(lot.product, lot.warehouse, MovementType.ADJUSTMENT, delta)

            cost_changed = 'unit_cost' in changes and changes['unit_cost'] != lot.unit_cost

            for name, value in changes.items():
                setattr(lot, name, value)
                update_fields.append(name)

            if cost_changed or 'current_quantity' in update_fields:
                lot.total_cost = lot.compute_total_cost(lot.current_quantity)
                update_fields.append('total_cost')

            lot.save(update_fields=update_fields)

            if cost_changed:
                StockLevels.reconcile(lot.product, lot.warehouse)

        logger.info(
            "stock.lot.updated",
            extra={"lot": lot.lot_number, "fields": update_fields},
        )
        return lot

    @classmethod
    def deactivate_lot(cls, pk) -> Lot:
        """
        Deactivate an empty lot.

        Raises:
            LotNotFound: If the lot doesn't exist
            LotHasStock: If current_quantity > 0 (zero it out first)
        """
        with transaction.atomic():
            try:
                lot = Lot.objects.select_for_update().get(pk=pk)
            except Lot.DoesNotExist:
                raise LotNotFound(lot_id=pk) from None

            if lot.current_quantity > 0:
                raise LotHasStock(lot_number=lot.lot_number, current_quantity=lot.current_quantity)

            lot.is_active = False
            lot.save(update_fields=['is_active', 'updated_at'])

        logger.info("stock.lot.deactivated", extra={"lot": lot.lot_number})
        return lot

    @classmethod
    def select_fefo(cls, product, warehouse, required: int = 0, lock: bool = False) -> FefoSelection:
        """
        Lots to allocate from, soonest-to-expire first.

        Active approved lots with current_quantity > 0, ordered by expiry ascending
        (undated last), then production date ascending.

        Args:
            lock: Lock the rows (select_for_update) for the surrounding
                transaction, so the quantities read stay valid until commit
        """
        qs = Lot.objects.allocatable().at(product, warehouse)
        if lock:
            qs = qs.select_for_update()

        lots = list(qs.fefo())
        return FefoSelection(
            lots=lots,
            total_available=sum(lot.current_quantity for lot in lots),
            required=required,
        )

    @classmethod
    def newest_active_lot(cls, product, warehouse, lock: bool = False) -> Lot | None:
        """Most recently created active lot (restock target for add-backs)."""
        qs = Lot.objects.active().at(product, warehouse)
        if lock:
            qs = qs.select_for_update()
        return qs.order_by('-created_at', '-pk').first()
