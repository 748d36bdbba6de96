"""
Enums for Lotman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """
    Kind of quantity change recorded in the ledger.

    IN:         Stock received into a lot (+quantity)
    OUT:        Stock leaving a lot for an order (-quantity)
    ADJUSTMENT: Manual or cancellation correction (signed quantity)
    RETURN:     Customer return credited to a lot (+quantity)
    TRANSFER:   Recorded for audit only, totals unchanged
    """
    IN = 'IN', _('Entrada')
    OUT = 'OUT', _('Saída')
    ADJUSTMENT = 'ADJUSTMENT', _('Ajuste')
    RETURN = 'RETURN', _('Devolução')
    TRANSFER = 'TRANSFER', _('Transferência')


class QualityStatus(models.TextChoices):
    """Quality inspection status of a lot."""
    PENDING = 'PENDING', _('Pendente')
    APPROVED = 'APPROVED', _('Aprovado')
    QUARANTINE = 'QUARANTINE', _('Quarentena')
    REJECTED = 'REJECTED', _('Rejeitado')


class AlertType(models.TextChoices):
    """Condition that raised a stock alert."""
    LOW_STOCK = 'LOW_STOCK', _('Estoque baixo')
    OUT_OF_STOCK = 'OUT_OF_STOCK', _('Sem estoque')
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK', _('Estoque insuficiente')
    MISSING_SKU = 'MISSING_SKU', _('SKU ausente')
    EXPIRING_SOON = 'EXPIRING_SOON', _('Vencimento próximo')


class AlertSeverity(models.TextChoices):
    """Alert severity, lowest to highest."""
    INFO = 'INFO', _('Informativo')
    WARNING = 'WARNING', _('Atenção')
    CRITICAL = 'CRITICAL', _('Crítico')


class OutflowKind(models.TextChoices):
    """Which cumulative counter an outflow bumps."""
    SHIPPED = 'SHIPPED', _('Enviado')
    SOLD = 'SOLD', _('Vendido')


class DeductionAction(models.TextChoices):
    """What an order status change does to stock."""
    DEDUCT_SHIPPED = 'DEDUCT_SHIPPED', _('Baixa por envio')
    DEDUCT_SOLD = 'DEDUCT_SOLD', _('Baixa por venda')
    ADD_BACK = 'ADD_BACK', _('Reposição')
    NONE = 'NONE', _('Nenhuma')
