"""
Tests for stock alerts.
"""

from datetime import timedelta

import pytest

from lotman.exceptions import AlertNotFound, AlreadyResolved, ResolverRequired
from lotman.models import AlertSeverity, AlertType, StockAlert
from lotman.services import alerts
from lotman.services.lots import LotLedger
from lotman.tests.backends import FailingNotifier


pytestmark = pytest.mark.django_db


class TestRaiseAlert:
    """Tests for alerts.raise_alert()."""

    def test_creates_and_notifies(self, product, central, notifications):
        alert, created = alerts.raise_low_stock_alert(product, central, 40)

        assert created is True
        assert alert.severity == AlertSeverity.WARNING
        assert alert.message == 'Estoque baixo: 40 unidades restantes (limite: 80)'

        notification = notifications[0]
        assert notification.alert_id == alert.pk
        assert notification.severity == AlertSeverity.WARNING
        assert notification.product_sku == 'CAFE-500'
        assert notification.warehouse_code == 'central'
        assert 'stock_management_agent' in notification.roles

    def test_repeat_refreshes_open_alert(self, product, central, notifications):
        first, _ = alerts.raise_low_stock_alert(product, central, 40)
        second, created = alerts.raise_low_stock_alert(product, central, 0)

        assert created is False
        assert second.pk == first.pk
        assert StockAlert.objects.count() == 1
        assert second.current_quantity == 0
        assert second.severity == AlertSeverity.CRITICAL
        assert len(notifications) == 1
        assert alerts.alert_summary()['unresolved_alerts'] == 1

    def test_other_type_or_place_is_new(self, product, central, filial):
        alerts.raise_low_stock_alert(product, central, 40)
        alerts.raise_out_of_stock_alert(product, central)
        alerts.raise_low_stock_alert(product, filial, 40)

        assert StockAlert.objects.count() == 3

    def test_resolved_alert_is_not_reused(self, product, central, user):
        first, _ = alerts.raise_low_stock_alert(product, central, 40)
        alerts.resolve_alert(first.pk, user)

        second, created = alerts.raise_low_stock_alert(product, central, 30)

        assert created is True
        assert second.pk != first.pk

    def test_missing_sku_keyed_by_order(self, central):
        alerts.raise_missing_sku_alert(central, 'ORD-1', 'Brinde')
        alerts.raise_missing_sku_alert(central, 'ORD-1', 'Brinde')
        alerts.raise_missing_sku_alert(central, 'ORD-2', 'Brinde')

        assert StockAlert.objects.filter(alert_type=AlertType.MISSING_SKU).count() == 2

    def test_notifier_failure_is_swallowed(self, product, central):
        alert, created = alerts.raise_low_stock_alert(product, central, 40, notifier=FailingNotifier())

        assert created is True
        assert StockAlert.objects.filter(pk=alert.pk).exists()


class TestResolveAlert:
    """Tests for alerts.resolve_alert()."""

    def test_resolves(self, product, central, user):
        alert, _ = alerts.raise_out_of_stock_alert(product, central)

        resolved = alerts.resolve_alert(alert.pk, user)

        assert resolved.is_resolved is True
        assert resolved.resolved_by == user
        assert resolved.resolved_at is not None

    def test_requires_resolver(self, product, central):
        alert, _ = alerts.raise_out_of_stock_alert(product, central)

        with pytest.raises(ResolverRequired):
            alerts.resolve_alert(alert.pk, None)

    def test_twice_fails(self, product, central, user):
        alert, _ = alerts.raise_out_of_stock_alert(product, central)
        alerts.resolve_alert(alert.pk, user)

        with pytest.raises(AlreadyResolved) as exc:
            alerts.resolve_alert(alert.pk, user)

        assert exc.value.code == 'ALREADY_RESOLVED'

    def test_unknown(self, user):
        with pytest.raises(AlertNotFound):
            alerts.resolve_alert(999, user)


class TestListAndSummary:
    """Tests for list_alerts() and alert_summary()."""

    def test_unresolved_and_severe_first(self, product, other_product, central, user):
        resolved, _ = alerts.raise_out_of_stock_alert(other_product, central)
        alerts.resolve_alert(resolved.pk, user)
        warning, _ = alerts.raise_low_stock_alert(product, central, 40)
        critical, _ = alerts.raise_out_of_stock_alert(product, central)

        page = alerts.list_alerts()

        assert [a.pk for a in page.items] == [critical.pk, warning.pk, resolved.pk]

    def test_filters(self, product, other_product, central):
        alerts.raise_low_stock_alert(product, central, 40)
        alerts.raise_out_of_stock_alert(other_product, central)

        assert alerts.list_alerts(alert_type=AlertType.OUT_OF_STOCK).total == 1
        assert alerts.list_alerts(product=product).total == 1
        assert alerts.list_alerts(is_resolved=True).total == 0

    def test_summary(self, product, other_product, central, user):
        alerts.raise_low_stock_alert(product, central, 40)
        critical, _ = alerts.raise_out_of_stock_alert(product, central)
        alerts.raise_out_of_stock_alert(other_product, central)
        alerts.resolve_alert(critical.pk, user)

        summary = alerts.alert_summary()

        assert summary['total_alerts'] == 3
        assert summary['unresolved_alerts'] == 2
        assert summary['critical_alerts'] == 1
        assert summary['warning_alerts'] == 1
        assert summary['info_alerts'] == 0
        assert summary['by_type'] == {'LOW_STOCK': 1, 'OUT_OF_STOCK': 1}


class TestExpirySweep:
    """Tests for check_expiry_alerts()."""

    def test_window_and_severity(self, product, other_product, central, make_lot, today):
        make_lot(product, central, 10, expires_in=3)
        make_lot(other_product, central, 10, expires_in=20)
        make_lot(other_product, central, 10, expires_in=45)

        raised = alerts.check_expiry_alerts(today)

        by_sku = {a.product.sku: a for a in raised}
        assert len(raised) == 2
        assert by_sku['CAFE-500'].severity == AlertSeverity.CRITICAL
        assert by_sku['ACUCAR-1K'].severity == AlertSeverity.WARNING
        assert by_sku['ACUCAR-1K'].threshold == 20

    def test_one_alert_per_product_warehouse(self, product, central, make_lot, today):
        soon = make_lot(product, central, 10, expires_in=10)
        make_lot(product, central, 10, expires_in=12)

        alerts.check_expiry_alerts(today)
        alerts.check_expiry_alerts(today)

        alert = StockAlert.objects.get(alert_type=AlertType.EXPIRING_SOON)
        assert soon.lot_number in alert.message
        assert 'vence em 10 dias' in alert.message

    def test_ignores_empty_and_expired(self, product, central, make_lot, today):
        empty = make_lot(product, central, 10, expires_in=3)
        LotLedger.update_lot(empty.pk, current_quantity=0)
        full = make_lot(product, central, 10, expires_in=5)

        assert [a.message for a in alerts.check_expiry_alerts(today)] == [
            f"Lote {full.lot_number} de CAFE-500 vence em 5 dias (10 unidades)",
        ]
        assert alerts.check_expiry_alerts(today + timedelta(days=10)) == []


class TestLevelSweep:
    """Tests for check_stock_level_alerts()."""

    def test_low_and_out(self, product, other_product, central, make_lot):
        make_lot(product, central, 50)
        lot = make_lot(other_product, central, 5)
        LotLedger.update_lot(lot.pk, current_quantity=0)

        raised = alerts.check_stock_level_alerts()

        assert {(a.product.sku, a.alert_type) for a in raised} == {
            ('CAFE-500', AlertType.LOW_STOCK),
            ('ACUCAR-1K', AlertType.OUT_OF_STOCK),
        }

    def test_inactive_products_skipped(self, product, central, make_lot):
        make_lot(product, central, 50)
        product.is_active = False
        product.save()

        assert alerts.check_stock_level_alerts() == []
