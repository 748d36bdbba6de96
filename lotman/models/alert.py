"""
StockAlert model — threshold and expiry conditions awaiting attention.

Alerts are upserted: while an alert of a given type is open for a
(product, warehouse), a repeated condition refreshes that row instead of
adding a new one.

Usage:
    from lotman.services.alerts import check_expiry_alerts, alert_summary

    # Run periodically (celery beat, cron)
    check_expiry_alerts()
    alert_summary()['unresolved_alerts']
"""

from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils.translation import gettext_lazy as _

from lotman.models.enums import AlertSeverity, AlertType


class StockAlertQuerySet(models.QuerySet):

    def open(self):
        return self.filter(is_resolved=False)

    def by_priority(self):
        """Unresolved first, then most severe, then newest."""
        rank = Case(
            When(severity=AlertSeverity.CRITICAL, then=Value(3)),
            When(severity=AlertSeverity.WARNING, then=Value(2)),
            default=Value(1),
            output_field=IntegerField(),
        )
        return self.annotate(_severity_rank=rank).order_by('is_resolved', '-_severity_rank', '-created_at', '-pk')


class StockAlert(models.Model):
    """
    Stock alert for a product at a warehouse.

    MISSING_SKU alerts have no product (the order line could not be
    tracked); they are identified by the order that raised them instead.
    """

    alert_type = models.CharField(
        max_length=30,
        choices=AlertType.choices,
        verbose_name=_('Tipo'),
    )
    severity = models.CharField(
        max_length=10,
        choices=AlertSeverity.choices,
        verbose_name=_('Severidade'),
    )
    product = models.ForeignKey(
        'lotman.Product',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='alerts',
        verbose_name=_('Produto'),
    )
    warehouse = models.ForeignKey(
        'lotman.Warehouse',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Depósito'),
    )
    order_ref = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Pedido'),
    )

    current_quantity = models.IntegerField(default=0, verbose_name=_('Quantidade atual'))
    threshold = models.IntegerField(default=0, verbose_name=_('Limite'))
    message = models.TextField(verbose_name=_('Mensagem'))

    # Resolution
    is_resolved = models.BooleanField(default=False, db_index=True, verbose_name=_('Resolvido'))
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Resolvido por'),
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Resolvido em'))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Criado em'))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_('Atualizado em'))

    objects = StockAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Alerta de Estoque')
        verbose_name_plural = _('Alertas de Estoque')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse', 'alert_type'],
                condition=Q(is_resolved=False, product__isnull=False),
                name='unique_open_alert_per_product_warehouse_type',
            ),
        ]
        indexes = [
            models.Index(fields=['alert_type', 'is_resolved'], name='lotman_alert_type_open_idx'),
            models.Index(fields=['severity', 'is_resolved'], name='lotman_alert_sev_open_idx'),
        ]

    def __str__(self) -> str:
        target = self.product.sku if self.product_id else self.order_ref or '?'
        return f"{self.alert_type} [{self.severity}] {target} @ {self.warehouse.code}"
