"""
Stock alerts — raise, refresh, resolve and sweep.

At most one open alert exists per (product, warehouse, type): a repeated
condition refreshes it. MISSING_SKU alerts carry no product and are
keyed on the order that raised them instead.

Usage:
    from lotman.services.alerts import check_expiry_alerts, check_stock_level_alerts

    # Run periodically (celery beat, cron)
    check_expiry_alerts()
    check_stock_level_alerts()
"""

import logging
from collections import Counter
from datetime import date, timedelta

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from lotman.adapters import get_alert_notifier
from lotman.conf import lotman_settings
from lotman.exceptions import AlertNotFound, AlreadyResolved, ResolverRequired
from lotman.models.alert import StockAlert
from lotman.models.enums import AlertSeverity, AlertType
from lotman.models.lot import Lot
from lotman.models.stock_level import StockLevel
from lotman.pagination import PageResult, paginate
from lotman.protocols.notifications import AlertNotification

logger = logging.getLogger('lotman')


def _open_alert(alert_type, warehouse, product, order_ref):
    qs = StockAlert.objects.select_for_update().filter(
        alert_type=alert_type, warehouse=warehouse, is_resolved=False,
    )
    if product is not None:
        return qs.filter(product=product).first()
    return qs.filter(product__isnull=True, order_ref=order_ref).first()


def _refresh(alert, current_quantity, threshold, message, severity, order_ref):
    alert.current_quantity = current_quantity
    alert.threshold = threshold
    alert.message = message
    alert.severity = severity
    if order_ref:
        alert.order_ref = order_ref
    alert.save(update_fields=['current_quantity', 'threshold', 'message', 'severity', 'order_ref', 'updated_at'])


def _notify(alert, notifier=None) -> None:
    """Deliver a notification for a new alert. Failures are logged only."""
    notification = AlertNotification(
        alert_id=alert.pk,
        alert_type=alert.alert_type,
        severity=alert.severity,
        message=alert.message,
        warehouse_code=alert.warehouse.code,
        product_sku=alert.product.sku if alert.product_id else None,
        roles=tuple(lotman_settings.ALERT_NOTIFY_ROLES),
    )
    try:
        (notifier or get_alert_notifier()).notify(notification)
    except Exception:
        logger.warning(
            "stock.alert.notify_failed",
            extra={"alert_id": alert.pk, "alert_type": alert.alert_type},
            exc_info=True,
        )


def raise_alert(alert_type, warehouse, product=None, current_quantity: int = 0,
                threshold: int = 0, message: str = '', severity=AlertSeverity.WARNING,
                order_ref: str = '', notifier=None) -> tuple[StockAlert, bool]:
    """
    Create or refresh an open alert.

    If an unresolved alert of this type already exists for the
    (product, warehouse) pair, its quantity, threshold, message and
    severity are updated in place. Otherwise a new alert is created and
    the configured notifier is called.

    Returns:
        (alert, created)
    """
    alert_type = AlertType(alert_type)
    severity = AlertSeverity(severity)

    with transaction.atomic():
        alert = _open_alert(alert_type, warehouse, product, order_ref)
        created = alert is None

        if created:
            try:
                with transaction.atomic():
                    alert = StockAlert.objects.create(
                        alert_type=alert_type,
                        severity=severity,
                        product=product,
                        warehouse=warehouse,
                        order_ref=order_ref or '',
                        current_quantity=current_quantity,
                        threshold=threshold,
                        message=message,
                    )
            except IntegrityError:
                # Lost the race for the open slot
                created = False
                alert = _open_alert(alert_type, warehouse, product, order_ref)
                _refresh(alert, current_quantity, threshold, message, severity, order_ref)
        else:
            _refresh(alert, current_quantity, threshold, message, severity, order_ref)

    logger.info(
        "stock.alert.created" if created else "stock.alert.refreshed",
        extra={
            "alert_id": alert.pk,
            "alert_type": alert_type.value,
            "severity": severity.value,
            "sku": product.sku if product is not None else None,
            "warehouse": warehouse.code,
            "qty": current_quantity,
        },
    )

    if created:
        _notify(alert, notifier)

    return alert, created


# ── Typed helpers ──


def raise_low_stock_alert(product, warehouse, available: int, notifier=None):
    """LOW_STOCK: CRITICAL when nothing is left, WARNING otherwise."""
    return raise_alert(
        AlertType.LOW_STOCK, warehouse, product,
        current_quantity=available,
        threshold=product.min_threshold,
        message=f"Estoque baixo: {available} unidades restantes (limite: {product.min_threshold})",
        severity=AlertSeverity.CRITICAL if available <= 0 else AlertSeverity.WARNING,
        notifier=notifier,
    )


def raise_out_of_stock_alert(product, warehouse, notifier=None):
    return raise_alert(
        AlertType.OUT_OF_STOCK, warehouse, product,
        current_quantity=0,
        threshold=product.min_threshold,
        message=f"Produto {product.sku} sem estoque",
        severity=AlertSeverity.CRITICAL,
        notifier=notifier,
    )


def raise_insufficient_stock_alert(product, warehouse, required: int, available: int,
                                   order_ref: str = '', notifier=None):
    return raise_alert(
        AlertType.INSUFFICIENT_STOCK, warehouse, product,
        current_quantity=available,
        threshold=required,
        message=f"Estoque insuficiente para {product.sku}: necessário {required}, disponível {available}",
        severity=AlertSeverity.CRITICAL,
        order_ref=order_ref,
        notifier=notifier,
    )


def raise_missing_sku_alert(warehouse, order_ref: str, title: str, quantity: int = 0, notifier=None):
    return raise_alert(
        AlertType.MISSING_SKU, warehouse, None,
        current_quantity=quantity,
        message=f'Pedido {order_ref}: produto "{title}" sem SKU; estoque não rastreável',
        severity=AlertSeverity.WARNING,
        order_ref=order_ref,
        notifier=notifier,
    )


def raise_expiring_soon_alert(lot, today: date | None = None, notifier=None):
    days = lot.days_until_expiry if today is None else (lot.expiry_date - today).days
    return raise_alert(
        AlertType.EXPIRING_SOON, lot.warehouse, lot.product,
        current_quantity=lot.current_quantity,
        threshold=days,
        message=(
            f"Lote {lot.lot_number} de {lot.product.sku} vence em {days} dias "
            f"({lot.current_quantity} unidades)"
        ),
        severity=(
            AlertSeverity.CRITICAL if days <= lotman_settings.EXPIRY_CRITICAL_DAYS
            else AlertSeverity.WARNING
        ),
        notifier=notifier,
    )


# ── Queries ──


def get_alert(pk) -> StockAlert:
    try:
        return StockAlert.objects.select_related('product', 'warehouse', 'resolved_by').get(pk=pk)
    except StockAlert.DoesNotExist:
        raise AlertNotFound(alert_id=pk) from None


def list_alerts(product=None, warehouse=None, alert_type=None, severity=None,
                is_resolved: bool | None = None, page: int | None = None,
                limit: int | None = None) -> PageResult:
    """List alerts: unresolved first, then most severe, then newest."""
    qs = StockAlert.objects.select_related('product', 'warehouse', 'resolved_by')

    if product is not None:
        qs = qs.filter(product=product)
    if warehouse is not None:
        qs = qs.filter(warehouse=warehouse)
    if alert_type:
        qs = qs.filter(alert_type=alert_type)
    if severity:
        qs = qs.filter(severity=severity)
    if is_resolved is not None:
        qs = qs.filter(is_resolved=is_resolved)

    return paginate(qs.by_priority(), page, limit)


def resolve_alert(pk, user) -> StockAlert:
    """
    Mark an alert resolved.

    Raises:
        ResolverRequired: If no user is given
        AlertNotFound: If the alert doesn't exist
        AlreadyResolved: If it was resolved before
    """
    if user is None:
        raise ResolverRequired(alert_id=pk)

    with transaction.atomic():
        try:
            alert = StockAlert.objects.select_for_update().get(pk=pk)
        except StockAlert.DoesNotExist:
            raise AlertNotFound(alert_id=pk) from None

        if alert.is_resolved:
            raise AlreadyResolved(alert_id=pk, resolved_at=str(alert.resolved_at))

        alert.is_resolved = True
        alert.resolved_by = user
        alert.resolved_at = timezone.now()
        alert.save(update_fields=['is_resolved', 'resolved_by', 'resolved_at', 'updated_at'])

    logger.info(
        "stock.alert.resolved",
        extra={"alert_id": alert.pk, "alert_type": alert.alert_type, "user_id": user.pk},
    )
    return alert


def alert_summary() -> dict:
    """
    Alert counts.

    Returns:
        {
            'total_alerts', 'unresolved_alerts',
            'critical_alerts', 'warning_alerts', 'info_alerts',  # unresolved only
            'by_type': {alert_type: unresolved count},
        }
    """
    by_severity = Counter(dict(
        StockAlert.objects.open()
        .order_by()
        .values_list('severity')
        .annotate(n=Count('pk'))
    ))
    by_type = dict(
        StockAlert.objects.open()
        .order_by()
        .values_list('alert_type')
        .annotate(n=Count('pk'))
    )
    return {
        'total_alerts': StockAlert.objects.count(),
        'unresolved_alerts': sum(by_severity.values()),
        'critical_alerts': by_severity[AlertSeverity.CRITICAL.value],
        'warning_alerts': by_severity[AlertSeverity.WARNING.value],
        'info_alerts': by_severity[AlertSeverity.INFO.value],
        'by_type': by_type,
    }


# ── Sweeps ──


def expiring_lots(today: date | None = None) -> list[Lot]:
    """
    Soonest-expiring lot per (product, warehouse) within the warning window.

    Already expired lots are left out.
    """
    today = today or timezone.localdate()
    until = today + timedelta(days=lotman_settings.EXPIRY_WARNING_DAYS)

    soonest = {}
    lots = (
        Lot.objects.allocatable()
        .filter(expiry_date__gte=today, expiry_date__lte=until)
        .select_related('product', 'warehouse')
        .order_by('expiry_date', 'pk')
    )
    for lot in lots:
        soonest.setdefault((lot.product_id, lot.warehouse_id), lot)
    return list(soonest.values())


def check_expiry_alerts(today: date | None = None, notifier=None) -> list[StockAlert]:
    """
    Raise or refresh EXPIRING_SOON alerts.

    Scans active lots with stock expiring in the next EXPIRY_WARNING_DAYS
    days. CRITICAL when EXPIRY_CRITICAL_DAYS or fewer remain.

    Returns:
        The alerts raised or refreshed.
    """
    today = today or timezone.localdate()
    alerts = []
    for lot in expiring_lots(today):
        alert, _ = raise_expiring_soon_alert(lot, today=today, notifier=notifier)
        alerts.append(alert)

    logger.info("stock.alert.expiry_sweep", extra={"alerts": len(alerts), "today": str(today)})
    return alerts


def low_levels() -> list[StockLevel]:
    """Stock levels of active products below their threshold or empty."""
    levels = (
        StockLevel.objects.filter(product__is_active=True)
        .select_related('product', 'warehouse')
        .order_by('product__sku', 'warehouse__code')
    )
    return [
        level for level in levels
        if level.available_quantity <= 0 or level.available_quantity < level.product.min_threshold
    ]


def check_stock_level_alerts(notifier=None) -> list[StockAlert]:
    """
    Raise or refresh OUT_OF_STOCK and LOW_STOCK alerts from stock levels.

    OUT_OF_STOCK when nothing is available, LOW_STOCK when available is
    below the product threshold.
    """
    alerts = []
    for level in low_levels():
        if level.available_quantity <= 0:
            alert, _ = raise_out_of_stock_alert(level.product, level.warehouse, notifier=notifier)
        else:
            alert, _ = raise_low_stock_alert(
                level.product, level.warehouse, level.available_quantity, notifier=notifier,
            )
        alerts.append(alert)

    logger.info("stock.alert.level_sweep", extra={"alerts": len(alerts)})
    return alerts
