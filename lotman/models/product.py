"""
Product model — identity and thresholds of a stock-keeping unit.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class ProductQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def search(self, term: str):
        """Case-insensitive match on SKU, name or description."""
        return self.filter(
            models.Q(sku__icontains=term)
            | models.Q(name__icontains=term)
            | models.Q(description__icontains=term)
        )


class Product(models.Model):
    """
    A stock-keeping unit.

    The SKU is the identity: it never changes after creation. Products
    referenced by an order line that are not registered yet are created
    on the fly with default thresholds (see Catalog.resolve_or_create_product).

    Products are never deleted, only deactivated once no stock remains.
    """

    sku = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_('SKU'),
    )
    name = models.CharField(
        max_length=255,
        verbose_name=_('Nome'),
    )
    description = models.TextField(
        blank=True,
        default='',
        verbose_name=_('Descrição'),
    )
    category = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Categoria'),
    )
    unit = models.CharField(
        max_length=20,
        default='piece',
        verbose_name=_('Unidade'),
        help_text=_('Ex: piece, kg, lt'),
    )
    min_threshold = models.PositiveIntegerField(
        default=100,
        verbose_name=_('Estoque mínimo'),
        help_text=_('Alerta dispara quando disponível < este valor'),
    )
    reorder_point = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_('Ponto de reposição'),
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name=_('Ativo'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        verbose_name = _('Produto')
        verbose_name_plural = _('Produtos')
        ordering = ['sku']

    def __str__(self) -> str:
        return f"{self.sku} — {self.name}"
