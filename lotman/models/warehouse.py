"""
Warehouse model — Where stock exists.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class WarehouseQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def primary(self):
        """The active primary warehouse, or None."""
        return self.active().filter(is_primary=True).order_by('pk').first()


class Warehouse(models.Model):
    """
    Physical place holding lots.

    Warehouses are stable entities, created during system setup.
    One active warehouse is flagged primary; order events without a
    warehouse hint are processed against it.

    Examples:
        Warehouse.objects.create(code='alger', name='Dépôt Alger', is_primary=True)
        Warehouse.objects.create(code='oran', name='Dépôt Oran')
    """

    code = models.SlugField(
        unique=True,
        max_length=50,
        verbose_name=_('Código'),
        help_text=_('Identificador único (ex: central, filial-sul)'),
    )
    name = models.CharField(
        max_length=100,
        verbose_name=_('Nome'),
    )
    address = models.TextField(
        blank=True,
        default='',
        verbose_name=_('Endereço'),
    )
    is_primary = models.BooleanField(
        default=False,
        verbose_name=_('Depósito principal'),
        help_text=_('Usado quando o pedido não indica o depósito.'),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_('Ativo'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WarehouseQuerySet.as_manager()

    class Meta:
        verbose_name = _('Depósito')
        verbose_name_plural = _('Depósitos')
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['is_primary'],
                condition=models.Q(is_primary=True),
                name='lotman_single_primary_warehouse',
            ),
        ]

    def __str__(self) -> str:
        return self.name
