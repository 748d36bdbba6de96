"""
StockMovement model — Immutable ledger of quantity changes.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from lotman.models.enums import MovementType

# Movement types that credit the lot with +quantity
INCREASING_TYPES = (MovementType.IN, MovementType.RETURN)


def apply_to_quantity(movement_type: str, before: int, quantity: int) -> int:
    """
    Quantity of the lot after a movement of this type.

    IN/RETURN add, OUT subtracts, ADJUSTMENT carries its own sign,
    TRANSFER leaves the lot as it was.
    """
    if movement_type in INCREASING_TYPES:
        return before + quantity
    if movement_type == MovementType.OUT:
        return before - quantity
    if movement_type == MovementType.ADJUSTMENT:
        return before + quantity
    return before


class StockMovementQuerySet(models.QuerySet):

    def for_lot(self, lot):
        return self.filter(lot=lot).order_by('created_at', 'pk')

    def between(self, start=None, end=None):
        qs = self
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lte=end)
        return qs


class StockMovement(models.Model):
    """
    Immutable record of a quantity change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new movements (ADJUSTMENT with signed quantity)
    - quantity_before/quantity_after snapshot the lot at the moment of the event

    This is the system of record; StockLevel is a cache derived from it.
    The movement only records: the lot and the stock level are mutated by
    the caller in the same transaction.
    """

    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True,
        verbose_name=_('Tipo'),
    )
    product = models.ForeignKey(
        'lotman.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Produto'),
    )
    lot = models.ForeignKey(
        'lotman.Lot',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Lote'),
    )
    warehouse = models.ForeignKey(
        'lotman.Warehouse',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Depósito'),
    )

    # External order reference (order subsystem id)
    order_ref = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Pedido'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Usuário'),
        help_text=_('Vazio = sistema'),
    )

    quantity = models.IntegerField(
        verbose_name=_('Quantidade'),
        help_text=_('ADJUSTMENT: positivo = entrada, negativo = saída'),
    )
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
    quantity_before = models.IntegerField(verbose_name=_('Quantidade antes'))
    quantity_after = models.IntegerField(verbose_name=_('Quantidade depois'))

    reference = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Referência'))
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Motivo'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))

    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Data/Hora'))

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movimento')
        verbose_name_plural = _('Movimentos')
        ordering = ['-created_at', '-pk']
        indexes = [
            models.Index(fields=['product', 'warehouse', 'created_at'], name='lotman_mov_prod_wh_created_idx'),
            models.Index(fields=['lot', 'created_at'], name='lotman_mov_lot_created_idx'),
        ]

    @property
    def actor(self) -> str:
        """Username of the actor, or 'system'."""
        if self.user_id is None:
            return 'system'
        return self.user.get_username()

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValueError(
                "Movimentos são imutáveis. "
                "Para corrigir, crie um novo movimento de ajuste."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(
            "Movimentos são imutáveis. "
            "Para estornar, crie um novo movimento de ajuste."
        )

    def __str__(self) -> str:
        return f"{self.movement_type} {self.quantity} | {self.quantity_before}→{self.quantity_after} | {self.reason}"
