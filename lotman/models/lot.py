"""
Lot model — physical batch of a product at a warehouse.

First-class inventory solutions require lot-level tracking for:
- Products with shelf life (food, pharmaceuticals, cosmetics)
- Supplier traceability (which supplier delivered this lot?)
- Recall management (find all stock from a specific lot)
- FEFO picking: consume the soonest-to-expire stock first

Usage:
    lot = inventory.create_lot(
        lot_number="LOT-2026-0223-A",
        product=product, warehouse=central,
        initial_quantity=50,
        expiry_date=date.today() + timedelta(days=90),
        unit_cost=Decimal("12.50"),
    )
"""

from datetime import date
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from lotman.fefo import order_fefo
from lotman.models.enums import QualityStatus


class LotQuerySet(models.QuerySet):
    """Custom QuerySet for Lot with convenience filters."""

    def active(self):
        return self.filter(is_active=True)

    def allocatable(self):
        """Active, approved lots that still hold quantity."""
        return self.filter(
            is_active=True,
            current_quantity__gt=0,
            quality_status=QualityStatus.APPROVED,
        )

    def at(self, product, warehouse):
        return self.filter(product=product, warehouse=warehouse)

    def expiring_before(self, until: date, today: date | None = None):
        """Lots expiring between today and the given date (inclusive)."""
        today = today or timezone.localdate()
        return self.filter(expiry_date__isnull=False, expiry_date__gte=today, expiry_date__lte=until)

    def expired(self):
        """Lots past their expiry date."""
        return self.filter(expiry_date__lt=timezone.localdate())

    def fefo(self):
        """Order by expiry (nulls last), then production date."""
        return order_fefo(self)


class Lot(models.Model):
    """
    Received batch of a product, with its own quantity, dates and cost.

    Quantity rules:
    - current_quantity never goes below zero
    - A lot at zero stays queryable for audit, but is not allocated
    - Lots are deactivated, never deleted, and only once empty
    - Every change of current_quantity has a StockMovement next to it
    """

    lot_number = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_('Número do Lote'),
    )
    product = models.ForeignKey(
        'lotman.Product',
        on_delete=models.PROTECT,
        related_name='lots',
        verbose_name=_('Produto'),
    )
    warehouse = models.ForeignKey(
        'lotman.Warehouse',
        on_delete=models.PROTECT,
        related_name='lots',
        verbose_name=_('Depósito'),
    )

    # Quantities
    initial_quantity = models.PositiveIntegerField(verbose_name=_('Quantidade inicial'))
    current_quantity = models.PositiveIntegerField(verbose_name=_('Quantidade atual'))
    reserved_quantity = models.PositiveIntegerField(default=0, verbose_name=_('Quantidade reservada'))

    # Dates
    production_date = models.DateField(
        default=timezone.localdate,
        verbose_name=_('Data de Produção'),
    )
    expiry_date = models.DateField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Data de Validade'),
        help_text=_('Último dia em que o lote pode ser vendido/utilizado'),
    )

    # Cost
    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Custo unitário'),
    )
    total_cost = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Custo total'),
    )

    supplier_info = models.CharField(
        max_length=200,
        blank=True,
        default='',
        verbose_name=_('Fornecedor'),
    )
    quality_status = models.CharField(
        max_length=20,
        choices=QualityStatus.choices,
        default=QualityStatus.APPROVED,
        verbose_name=_('Status de qualidade'),
    )
    notes = models.TextField(
        blank=True,
        default='',
        verbose_name=_('Observações'),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_('Ativo'),
    )

    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Criado em'))
    updated_at = models.DateTimeField(auto_now=True)

    objects = LotQuerySet.as_manager()

    class Meta:
        verbose_name = _('Lote')
        verbose_name_plural = _('Lotes')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'warehouse', 'is_active'], name='lotman_lot_prod_wh_active_idx'),
            models.Index(fields=['is_active'], name='lotman_lot_active_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_quantity__gte=0),
                name='lotman_lot_current_quantity_gte_0',
            ),
        ]

    @property
    def is_expired(self) -> bool:
        """Is this lot past its expiry date?"""
        if self.expiry_date is None:
            return False
        return timezone.localdate() > self.expiry_date

    @property
    def days_until_expiry(self) -> int | None:
        if self.expiry_date is None:
            return None
        return (self.expiry_date - timezone.localdate()).days

    @property
    def available_quantity(self) -> int:
        return self.current_quantity - self.reserved_quantity

    def compute_total_cost(self, quantity: int) -> Decimal | None:
        if self.unit_cost is None:
            return None
        return self.unit_cost * quantity

    def __str__(self) -> str:
        expiry = f" (val:{self.expiry_date})" if self.expiry_date else ""
        return f"Lote {self.lot_number}{expiry}"
