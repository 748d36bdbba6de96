"""
StockLevel model — Running balance cache per (product, warehouse).
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class StockLevel(models.Model):
    """
    Cached totals of a product at a warehouse.

    Performance:
    - Totals are a cache updated by the same transaction that writes movements
    - Read is O(1), not a sum over lots
    - Use StockLevels.reconcile() for audit/correction

    Invariant (eventual): total_quantity equals the sum of current_quantity
    across the active lots of this product at this warehouse.
    """

    product = models.ForeignKey(
        'lotman.Product',
        on_delete=models.PROTECT,
        related_name='stock_levels',
        verbose_name=_('Produto'),
    )
    warehouse = models.ForeignKey(
        'lotman.Warehouse',
        on_delete=models.PROTECT,
        related_name='stock_levels',
        verbose_name=_('Depósito'),
    )

    total_quantity = models.IntegerField(default=0, verbose_name=_('Quantidade total'))
    available_quantity = models.IntegerField(default=0, verbose_name=_('Disponível'))
    reserved_quantity = models.IntegerField(default=0, verbose_name=_('Reservado'))

    # Cumulative counters, independent of the running balance
    total_shipped = models.PositiveIntegerField(default=0, verbose_name=_('Total enviado'))
    total_sold = models.PositiveIntegerField(default=0, verbose_name=_('Total vendido'))

    average_cost = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Custo médio'),
    )
    total_value = models.DecimalField(
        max_digits=16,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Valor total'),
    )

    last_movement_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Último movimento'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Saldo')
        verbose_name_plural = _('Saldos')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                name='unique_stock_level_per_product_warehouse',
            ),
        ]

    @property
    def is_low_stock(self) -> bool:
        return self.available_quantity < self.product.min_threshold

    def __str__(self) -> str:
        return f"{self.product.sku} @ {self.warehouse.code}: {self.total_quantity}"
