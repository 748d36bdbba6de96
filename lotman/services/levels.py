"""
Stock levels — the running balance cache per (product, warehouse).

All writes lock the level row (select_for_update) inside
transaction.atomic(), so they compose with the caller's unit of work.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from lotman.exceptions import InvalidQuantity
from lotman.models.enums import MovementType, OutflowKind
from lotman.models.alert import StockAlert
from lotman.models.lot import Lot
from lotman.models.movement import INCREASING_TYPES, StockMovement
from lotman.models.product import Product
from lotman.models.stock_level import StockLevel

logger = logging.getLogger('lotman')

COST_QUANTUM = Decimal('0.0001')


def _signed_delta(movement_type: str, quantity: int) -> int:
    """Effect of a movement on the running balance."""
    if movement_type in INCREASING_TYPES:
        return quantity
    if movement_type == MovementType.OUT:
        return -quantity
    if movement_type == MovementType.ADJUSTMENT:
        return quantity
    return 0


def _value(average_cost: Decimal | None, total_quantity: int) -> Decimal | None:
    if average_cost is None:
        return None
    return (average_cost * total_quantity).quantize(COST_QUANTUM)


class StockLevels:
    """Stock level cache methods."""

    @classmethod
    def get(cls, product, warehouse) -> StockLevel | None:
        return StockLevel.objects.filter(product=product, warehouse=warehouse).first()

    @classmethod
    def get_or_create(cls, product, warehouse, lock: bool = False) -> StockLevel:
        """
        Get the (product, warehouse) row, creating it at zero if absent.

        Args:
            lock: Re-read the row with select_for_update (inside a transaction)
        """
        level, created = StockLevel.objects.get_or_create(product=product, warehouse=warehouse)
        if created:
            logger.debug(
                "stock.level.created",
                extra={"product_id": product.pk, "warehouse_id": warehouse.pk},
            )
        if lock:
            level = StockLevel.objects.select_for_update().get(pk=level.pk)
        return level

    @classmethod
    def apply_movement(cls, product, warehouse, movement_type, quantity: int,
                       unit_cost: Decimal | None = None) -> StockLevel:
        """
        Update the balance after a movement.

        IN/RETURN add, OUT subtracts, ADJUSTMENT applies its signed
        quantity, TRANSFER leaves totals untouched. When an increasing
        movement carries a unit cost the weighted average becomes:

            new_avg = (old_avg * old_total + unit_cost * qty) / (old_total + qty)

        Concurrency:
            - Runs under transaction.atomic()
            - Uses select_for_update() on the level row
        """
        movement_type = MovementType(movement_type)
        if movement_type != MovementType.ADJUSTMENT and quantity < 0:
            raise InvalidQuantity(requested=quantity, movement_type=movement_type.value)

        with transaction.atomic():
            level = cls.get_or_create(product, warehouse, lock=True)
            old_total = level.total_quantity
            delta = _signed_delta(movement_type, quantity)

            level.total_quantity = old_total + delta
            level.available_quantity += delta

            if unit_cost is not None and movement_type in INCREASING_TYPES:
                new_total = old_total + quantity
                if new_total > 0:
                    old_value = (level.average_cost or Decimal('0')) * old_total
                    level.average_cost = (
                        (old_value + unit_cost * quantity) / new_total
                    ).quantize(COST_QUANTUM)
                else:
                    level.average_cost = None

            level.total_value = _value(level.average_cost, level.total_quantity)
            level.last_movement_at = timezone.now()
            level.save()

        logger.info(
            "stock.level.updated",
            extra={
                "product_id": product.pk,
                "warehouse_id": warehouse.pk,
                "movement_type": movement_type.value,
                "delta": delta,
                "total": level.total_quantity,
                "available": level.available_quantity,
            },
        )
        return level

    @classmethod
    def record_outflow(cls, product, warehouse, kind, quantity: int) -> StockLevel:
        """
        Bump the cumulative shipped or sold counter.

        Independent of the running balance: apply_movement() moves the
        quantity, this only counts it.
        """
        kind = OutflowKind(kind)
        field = 'total_shipped' if kind == OutflowKind.SHIPPED else 'total_sold'

        with transaction.atomic():
            level = cls.get_or_create(product, warehouse, lock=True)
            StockLevel.objects.filter(pk=level.pk).update(
                **{field: F(field) + quantity},
                updated_at=timezone.now(),
            )
            level.refresh_from_db()

        return level

    @classmethod
    def reconcile(cls, product, warehouse) -> StockLevel:
        """
        Recompute the level from the active lots.

        Use for:
        - Drift correction after manual edits
        - Correction after detected inconsistency
        - Audit

        Cumulative shipped/sold counters are kept as they are.

        Concurrency:
            - Runs under transaction.atomic()
            - Locks the lots (FEFO order), then the level row, the same
              order a deduction takes them in
        """
        with transaction.atomic():
            lots = list(
                Lot.objects.select_for_update()
                .filter(product=product, warehouse=warehouse, is_active=True)
                .fefo()
            )
            level = cls.get_or_create(product, warehouse, lock=True)

            total = sum(lot.current_quantity for lot in lots)
            reserved = sum(lot.reserved_quantity for lot in lots)
            cost = sum(
                ((lot.unit_cost or Decimal('0')) * lot.current_quantity for lot in lots),
                Decimal('0'),
            )
            costed = any(lot.unit_cost is not None for lot in lots)
            average = (cost / total).quantize(COST_QUANTUM) if total > 0 and costed else None

            old_total = level.total_quantity
            level.total_quantity = total
            level.reserved_quantity = reserved
            level.available_quantity = total - reserved
            level.average_cost = average
            level.total_value = _value(average, total)
            level.save()

        if old_total != total:
            logger.warning(
                "stock.level.reconciled",
                extra={
                    "product_id": product.pk,
                    "warehouse_id": warehouse.pk,
                    "old_total": old_total,
                    "new_total": total,
                    "diff": total - old_total,
                },
            )
        return level

    @classmethod
    def list_levels(cls, product=None, warehouse=None, low_stock: bool = False):
        """
        Stock levels for reporting, most recently updated first.

        low_stock keeps rows whose available quantity is below the
        product's threshold.
        """
        qs = StockLevel.objects.select_related('product', 'warehouse')

        if product is not None:
            qs = qs.filter(product=product)
        if warehouse is not None:
            qs = qs.filter(warehouse=warehouse)
        if low_stock:
            qs = qs.filter(available_quantity__lt=F('product__min_threshold'))

        return qs.order_by('-updated_at', '-pk')

    @classmethod
    def dashboard_stats(cls, recent: int = 10) -> dict:
        """
        Roll-up for the stock dashboard.

        Counts cover active products only. low_stock_count leaves out empty
        levels, which are counted in out_of_stock_count instead.

        Returns:
            dict with total_products, total_stock_value, low_stock_count,
            out_of_stock_count, recent_movements and active_alerts (the
            `recent` newest of each)
        """
        levels = StockLevel.objects.filter(product__is_active=True)

        return {
            'total_products': Product.objects.active().count(),
            'total_stock_value': levels.aggregate(
                v=Coalesce(Sum('total_value'), Decimal('0'), output_field=DecimalField())
            )['v'],
            'low_stock_count': levels.filter(
                available_quantity__gt=0,
                available_quantity__lt=F('product__min_threshold'),
            ).count(),
            'out_of_stock_count': levels.filter(available_quantity__lte=0).count(),
            'recent_movements': list(
                StockMovement.objects.select_related('product', 'warehouse', 'lot')
                .order_by('-created_at', '-pk')[:recent]
            ),
            'active_alerts': list(
                StockAlert.objects.filter(is_resolved=False)
                .select_related('product', 'warehouse')
                .order_by('-created_at', '-pk')[:recent]
            ),
        }
