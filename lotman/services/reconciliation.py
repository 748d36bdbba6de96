"""
Reconciliation — find and correct stock level drift.

The lots are the truth: a level's total_quantity must equal the sum of
current_quantity over the active lots of its (product, warehouse).

Usage:
    from lotman.services.reconciliation import find_drift, reconcile_all

    # Run periodically (celery beat, cron) or after manual edits
    for drift in find_drift():
        print(drift.product.sku, drift.recorded, drift.actual)
    reconcile_all()
"""

import logging
from dataclasses import dataclass

from django.db.models import Sum

from lotman.exceptions import StoreContentionExceeded
from lotman.models.lot import Lot
from lotman.models.product import Product
from lotman.models.stock_level import StockLevel
from lotman.models.warehouse import Warehouse
from lotman.services.levels import StockLevels
from lotman.transactions import atomic_with_retry

logger = logging.getLogger('lotman')


@dataclass(frozen=True)
class Drift:
    product: Product
    warehouse: Warehouse
    recorded: int
    actual: int

    @property
    def diff(self) -> int:
        return self.actual - self.recorded


def _pairs(warehouse=None) -> set[tuple[int, int]]:
    """(product_id, warehouse_id) of every level row and every lot."""
    levels = StockLevel.objects.all()
    lots = Lot.objects.all()
    if warehouse is not None:
        levels = levels.filter(warehouse=warehouse)
        lots = lots.filter(warehouse=warehouse)

    pairs = set(levels.values_list('product_id', 'warehouse_id'))
    pairs.update(lots.order_by().values_list('product_id', 'warehouse_id').distinct())
    return pairs


def find_drift(warehouse=None) -> list[Drift]:
    """
    Levels whose total disagrees with their active lots.

    Read-only; a pair with lots but no level row counts as recorded 0.
    """
    levels = StockLevel.objects.all()
    lots = Lot.objects.active()
    if warehouse is not None:
        levels = levels.filter(warehouse=warehouse)
        lots = lots.filter(warehouse=warehouse)

    recorded = {
        (row['product_id'], row['warehouse_id']): row['total_quantity']
        for row in levels.values('product_id', 'warehouse_id', 'total_quantity')
    }
    actual = {
        (row['product_id'], row['warehouse_id']): row['total'] or 0
        for row in lots.order_by().values('product_id', 'warehouse_id').annotate(total=Sum('current_quantity'))
    }

    drifting = sorted(
        pair for pair in recorded.keys() | actual.keys()
        if recorded.get(pair, 0) != actual.get(pair, 0)
    )
    if not drifting:
        return []

    products = Product.objects.in_bulk({p for p, _ in drifting})
    warehouses = Warehouse.objects.in_bulk({w for _, w in drifting})
    return [
        Drift(
            product=products[p],
            warehouse=warehouses[w],
            recorded=recorded.get((p, w), 0),
            actual=actual.get((p, w), 0),
        )
        for p, w in drifting
    ]


def reconcile_all(warehouse=None) -> int:
    """
    Recompute every level from its lots.

    Each (product, warehouse) pair is reconciled in its own locked
    transaction, replayed on contention like a deduction line. A pair
    that stays contended is logged and left for the next run.

    Returns:
        Number of levels whose total changed.
    """
    pairs = sorted(_pairs(warehouse))
    products = Product.objects.in_bulk({p for p, _ in pairs})
    warehouses = Warehouse.objects.in_bulk({w for _, w in pairs})

    corrected = skipped = 0
    for product_id, warehouse_id in pairs:
        product = products[product_id]
        target = warehouses[warehouse_id]

        def work():
            before = StockLevels.get(product, target)
            old_total = before.total_quantity if before is not None else 0
            return StockLevels.reconcile(product, target).total_quantity != old_total

        try:
            changed = atomic_with_retry(
                work, label='reconcile', sku=product.sku, warehouse=target.code,
            )
        except StoreContentionExceeded:
            skipped += 1
            logger.warning(
                "stock.reconciliation.pair_skipped",
                extra={"sku": product.sku, "warehouse": target.code},
            )
            continue

        if changed:
            corrected += 1

    logger.info(
        "stock.reconciliation.completed",
        extra={"pairs": len(pairs), "corrected": corrected, "skipped": skipped},
    )
    return corrected
