"""
Tests for the deduction orchestrator.
"""

import pytest
from django.db import DataError, OperationalError
from django.test import override_settings

from lotman.models import AlertSeverity, AlertType, DeductionAction, Lot, MovementType, StockAlert, StockMovement
from lotman.protocols.orders import OrderStatusChange
from lotman.services import alerts as alerts_module
from lotman.services import deduction as deduction_module
from lotman.services.deduction import DeductionOrchestrator, is_eligible, resolve_action
from lotman.services.levels import StockLevels
from lotman.services.lots import LotLedger
from lotman.tests.backends import FailingNotifier, MemoryOrderBackend


pytestmark = pytest.mark.django_db


def _item(quantity, sku='CAFE-500', item_id='1', title='Café 500g'):
    return {'id': item_id, 'sku': sku, 'title': title, 'quantity': quantity}


def _event(new_status, shipping_status=None):
    return OrderStatusChange('ORD-1', 'CONFIRMED', new_status, shipping_status=shipping_status)


class TestResolveAction:
    """Tests for resolve_action()."""

    @pytest.mark.parametrize('new_status, shipping_status, expected', [
        ('SHIPPED', None, DeductionAction.DEDUCT_SHIPPED),
        ('shipped', 'cancelled', DeductionAction.DEDUCT_SHIPPED),
        ('DELIVERED', 'delivered', DeductionAction.DEDUCT_SOLD),
        ('DELIVERED', 'LIVRÉ', DeductionAction.DEDUCT_SOLD),
        ('DELIVERED', None, DeductionAction.NONE),
        ('CANCELLED', None, DeductionAction.ADD_BACK),
        ('CONFIRMED', 'ANNULÉ', DeductionAction.ADD_BACK),
        ('RETURNED', None, DeductionAction.ADD_BACK),
        ('CONFIRMED', None, DeductionAction.NONE),
        ('PENDING', 'in transit', DeductionAction.NONE),
    ])
    def test_mapping(self, new_status, shipping_status, expected):
        assert resolve_action(_event(new_status, shipping_status)) == expected

    @override_settings(LOTMAN={'DELIVERED_SHIPPING_STATUSES': ('entregue',)})
    def test_carrier_statuses_are_configurable(self):
        assert resolve_action(_event('DELIVERED', 'Entregue')) == DeductionAction.DEDUCT_SOLD
        assert resolve_action(_event('DELIVERED', 'delivered')) == DeductionAction.NONE


class TestIsEligible:
    """Tests for is_eligible()."""

    def test_deduction_only_once(self):
        assert is_eligible(_event('SHIPPED'), stock_deducted=False) is True
        assert is_eligible(_event('SHIPPED'), stock_deducted=True) is False

    def test_add_back_only_after_deduction(self):
        assert is_eligible(_event('CANCELLED'), stock_deducted=True) is True
        assert is_eligible(_event('CANCELLED'), stock_deducted=False) is False

    def test_none_never(self):
        assert is_eligible(_event('CONFIRMED'), stock_deducted=False) is False


class TestSimpleDeduction:
    """One lot of 100, ship 30, threshold 80."""

    def test_shipped(self, product, central, make_lot, make_event, orders, notifications):
        lot = make_lot(product, central, 100)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(30)]))

        assert result.success
        assert result.action == DeductionAction.DEDUCT_SHIPPED
        assert result.items_processed == 1
        assert result.total_quantity_deducted == 30
        assert len(result.movements) == 1
        assert result.movements[0].movement_type == MovementType.OUT
        assert (result.movements[0].quantity_before, result.movements[0].quantity_after) == (100, 70)

        lot.refresh_from_db()
        assert lot.current_quantity == 70

        level = StockLevels.get(product, central)
        assert level.total_quantity == 70
        assert level.available_quantity == 70
        assert level.total_shipped == 30
        assert level.total_sold == 0

        alert = StockAlert.objects.get(alert_type=AlertType.LOW_STOCK)
        assert alert.severity == AlertSeverity.WARNING
        assert alert.current_quantity == 70
        assert alert.threshold == 80
        assert [n.alert_type for n in notifications] == [AlertType.LOW_STOCK]

        assert result.stock_deducted_at is not None
        assert orders['ORD-1'] == result.stock_deducted_at

    def test_no_alert_above_threshold(self, product, central, make_lot, make_event):
        make_lot(product, central, 200)

        DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(30)]))

        assert not StockAlert.objects.exists()

    def test_delivered_counts_as_sold(self, product, central, make_lot, make_event):
        make_lot(product, central, 100)

        result = DeductionOrchestrator().process(
            make_event('ORD-1', 'DELIVERED', [_item(10)], shipping_status='delivered')
        )

        level = StockLevels.get(product, central)
        assert result.action == DeductionAction.DEDUCT_SOLD
        assert level.total_sold == 10
        assert level.total_shipped == 0

    def test_emptied_stock_alert_is_critical(self, product, central, make_lot, make_event):
        make_lot(product, central, 30)

        DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(30)]))

        assert StockAlert.objects.get(alert_type=AlertType.LOW_STOCK).severity == AlertSeverity.CRITICAL


class TestFefoSplit:
    """Lot A (20, 5 days) and lot B (50, 30 days), ship 30."""

    def test_consumes_soonest_first(self, product, central, make_lot, make_event):
        lot_b = make_lot(product, central, 50, expires_in=30)
        lot_a = make_lot(product, central, 20, expires_in=5)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(30)]))

        assert [(m.lot_id, m.quantity) for m in result.movements] == [(lot_a.pk, 20), (lot_b.pk, 10)]
        lot_a.refresh_from_db()
        lot_b.refresh_from_db()
        assert lot_a.current_quantity == 0
        assert lot_b.current_quantity == 40
        assert StockMovement.objects.filter(movement_type=MovementType.OUT).count() == 2

    def test_items_of_one_order_see_each_other(self, product, central, make_lot, make_event):
        make_lot(product, central, 20, expires_in=5)
        make_lot(product, central, 50, expires_in=30)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [
            _item(15, item_id='1'),
            _item(15, item_id='2'),
        ]))

        assert result.success
        assert [m.quantity for m in result.movements] == [15, 5, 10]
        assert StockLevels.get(product, central).total_quantity == 40


class TestInsufficientStock:
    """Available 10, ship 15."""

    def test_nothing_deducted(self, product, central, make_lot, make_event, orders):
        lot_a = make_lot(product, central, 6, expires_in=5)
        lot_b = make_lot(product, central, 4, expires_in=9)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(15)]))

        assert not result.success
        assert result.items_processed == 0
        assert result.movements == ()
        assert [(e.item_id, e.sku, e.code) for e in result.errors] == [('1', 'CAFE-500', 'INSUFFICIENT_STOCK')]
        assert result.errors[0].error == 'Estoque insuficiente. Necessário: 15, disponível: 10'

        assert list(Lot.objects.filter(pk__in=[lot_a.pk, lot_b.pk]).values_list('current_quantity', flat=True).order_by('pk')) == [6, 4]
        assert not StockMovement.objects.filter(movement_type=MovementType.OUT).exists()
        assert StockLevels.get(product, central).total_quantity == 10

        alert = StockAlert.objects.get(alert_type=AlertType.INSUFFICIENT_STOCK)
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_quantity == 10
        assert alert.threshold == 15
        assert alert.order_ref == 'ORD-1'

        assert result.stock_deducted_at is None
        assert orders['ORD-1'] is None

    def test_other_items_still_processed(self, product, other_product, central, make_lot, make_event, orders):
        make_lot(product, central, 5)
        make_lot(other_product, central, 50)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [
            _item(15, item_id='1'),
            _item(3, sku='ACUCAR-1K', item_id='2', title='Açúcar'),
        ]))

        assert not result.success
        assert result.items_processed == 1
        assert result.total_quantity_deducted == 3
        assert [e.item_id for e in result.errors] == ['1']
        assert orders['ORD-1'] is not None


class TestMissingSku:
    """Line items without SKU."""

    def test_skipped_with_alert(self, central, make_event):
        result = DeductionOrchestrator().process(make_event('ORD-7', 'SHIPPED', [
            {'id': '1', 'sku': None, 'title': 'Brinde', 'quantity': 1},
        ]))

        assert not result.success
        assert result.items_skipped == 1
        assert result.errors[0].code == 'MISSING_SKU'
        assert result.errors[0].sku is None

        alert = StockAlert.objects.get(alert_type=AlertType.MISSING_SKU)
        assert alert.product is None
        assert alert.order_ref == 'ORD-7'
        assert 'Brinde' in alert.message

    def test_unknown_sku_registers_product(self, central, make_event):
        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [
            _item(1, sku='NOVO-1', title='Produto Novo'),
        ]))

        assert result.errors[0].code == 'INSUFFICIENT_STOCK'
        assert StockAlert.objects.filter(product__sku='NOVO-1').exists()


class TestAddBack:
    """Cancellations and returns credit the newest active lot."""

    def test_cancellation(self, product, central, make_lot, make_event, orders):
        lot_a = make_lot(product, central, 100, expires_in=5)
        orchestrator = DeductionOrchestrator()
        orchestrator.process(make_event('ORD-1', 'SHIPPED', [_item(10)]))
        newest = make_lot(product, central, 5, expires_in=60)
        before = StockLevels.get(product, central).total_quantity

        result = orchestrator.process(make_event('ORD-1', 'CANCELLED', [_item(10)]))

        assert result.success
        assert result.action == DeductionAction.ADD_BACK
        assert result.total_quantity_restored == 10
        assert result.movements[0].lot_id == newest.pk
        assert result.movements[0].movement_type == MovementType.ADJUSTMENT
        assert result.movements[0].quantity == 10
        newest.refresh_from_db()
        lot_a.refresh_from_db()
        assert newest.current_quantity == 15
        assert lot_a.current_quantity == 90
        assert StockLevels.get(product, central).total_quantity == before + 10
        assert orders['ORD-1'] is None

    def test_return_movement(self, product, central, make_lot, make_event):
        make_lot(product, central, 100)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'RETURNED', [_item(4)]))

        assert result.movements[0].movement_type == MovementType.RETURN
        assert StockLevels.get(product, central).total_quantity == 104

    def test_no_active_lot(self, product, central, make_event):
        result = DeductionOrchestrator().process(make_event('ORD-1', 'CANCELLED', [_item(4)]))

        assert result.errors[0].code == 'NO_ACTIVE_LOT_FOR_RESTOCK'
        assert result.items_processed == 0


class TestOrderLevel:
    """Whole-order outcomes."""

    def test_none_action_is_noop(self, product, central, make_lot, make_event):
        make_lot(product, central, 100)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'CONFIRMED', [_item(30)]))

        assert result.success
        assert result.action == DeductionAction.NONE
        assert result.items_processed == 0
        assert StockMovement.objects.filter(movement_type=MovementType.OUT).count() == 0

    def test_no_primary_warehouse(self, product, make_event):
        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(30)]))

        assert not result.success
        assert [(e.item_id, e.code) for e in result.errors] == [('ORD-1', 'WAREHOUSE_NOT_FOUND')]
        assert not StockMovement.objects.exists()

    def test_unknown_order(self, central, make_event):
        result = DeductionOrchestrator().process(
            make_event('ORD-404', 'SHIPPED', [_item(1)], register=False)
        )

        assert [(e.item_id, e.code) for e in result.errors] == [('ORD-404', 'ORDER_NOT_FOUND')]

    def test_warehouse_hint(self, product, central, filial, make_lot, make_event):
        make_lot(product, filial, 100)

        result = DeductionOrchestrator().process(
            make_event('ORD-1', 'SHIPPED', [_item(10)], warehouse_hint='filial')
        )

        assert result.success
        assert StockLevels.get(product, filial).total_quantity == 90

    def test_actor_recorded(self, product, central, make_lot, make_event, user):
        make_lot(product, central, 100)

        DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(1)], actor=user))

        assert StockMovement.objects.get(movement_type=MovementType.OUT).actor == 'estoquista'

    def test_process_if_eligible(self, product, central, make_lot, make_event):
        make_lot(product, central, 100)
        orchestrator = DeductionOrchestrator()
        event = make_event('ORD-1', 'SHIPPED', [_item(10)])

        assert orchestrator.process_if_eligible(event).success
        assert orchestrator.process_if_eligible(event) is None
        assert StockLevels.get(product, central).total_quantity == 90

    def test_injected_collaborators(self, product, central, make_lot, make_event):
        make_lot(product, central, 50)
        orders = MemoryOrderBackend()

        result = DeductionOrchestrator(notifier=FailingNotifier(), orders=orders).process(
            make_event('ORD-1', 'SHIPPED', [_item(10)])
        )

        # Notification failure doesn't fail the alert nor the deduction
        assert result.success
        assert StockAlert.objects.filter(alert_type=AlertType.LOW_STOCK).exists()


class TestContention:
    """Lock contention on a line item."""

    def test_retried_then_committed(self, product, central, make_lot, make_event, monkeypatch):
        make_lot(product, central, 100)
        real = deduction_module.LotLedger.select_fefo
        calls = {'n': 0}

        def flaky(*args, **kwargs):
            calls['n'] += 1
            if calls['n'] == 1:
                raise OperationalError('database is locked')
            return real(*args, **kwargs)

        monkeypatch.setattr(deduction_module.LotLedger, 'select_fefo', flaky)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(10)]))

        assert result.success
        assert calls['n'] == 2
        assert StockLevels.get(product, central).total_quantity == 90

    def test_exhausted_retries_become_item_error(self, product, central, make_lot, make_event, monkeypatch):
        make_lot(product, central, 100)

        def locked(*args, **kwargs):
            raise OperationalError('database is locked')

        monkeypatch.setattr(deduction_module.LotLedger, 'select_fefo', locked)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(10)]))

        assert [e.code for e in result.errors] == ['STORE_CONTENTION_EXCEEDED']
        assert StockLevels.get(product, central).total_quantity == 100


class TestInvalidQuantity:
    """Lines with a non-positive quantity."""

    @pytest.mark.parametrize('quantity', [0, -3])
    def test_rejected_without_writes(self, product, central, make_lot, make_event, orders, quantity):
        make_lot(product, central, 100)

        result = DeductionOrchestrator().process(make_event('ORD-1', 'SHIPPED', [_item(quantity)]))

        assert [(e.item_id, e.code) for e in result.errors] == [('1', 'INVALID_QUANTITY')]
        assert result.items_processed == 0
        assert result.items_skipped == 0
        assert not StockMovement.objects.filter(movement_type=MovementType.OUT).exists()
        assert StockLevels.get(product, central).total_quantity == 100
        assert orders['ORD-1'] is None


class TestUnexpectedFailures:
    """A line that blows up never hides the lines already committed."""

    def _two_lines(self, make_event):
        return make_event('ORD-1', 'SHIPPED', [
            _item(30, item_id='1'),
            _item(95, sku='ACUCAR-1K', item_id='2', title='Açúcar'),
        ])

    def test_failed_alert_keeps_the_line(self, product, other_product, central, make_lot,
                                         make_event, orders, monkeypatch):
        make_lot(product, central, 100)
        make_lot(other_product, central, 100)
        real = alerts_module.raise_low_stock_alert

        def flaky(target, warehouse, available, notifier=None):
            if target.sku == 'ACUCAR-1K':
                raise OperationalError('database is locked')
            return real(target, warehouse, available, notifier=notifier)

        monkeypatch.setattr(alerts_module, 'raise_low_stock_alert', flaky)
        event = self._two_lines(make_event)

        result = DeductionOrchestrator().process(event)

        assert result.success
        assert result.items_processed == 2
        assert orders['ORD-1'] is not None
        assert orders['ORD-1'] == result.stock_deducted_at

        # Replaying the same change deducts nothing
        assert DeductionOrchestrator().process_if_eligible(event) is None
        assert StockLevels.get(product, central).total_quantity == 70
        assert StockLevels.get(other_product, central).total_quantity == 5

    def test_crash_is_recorded_and_order_stamped(self, product, other_product, central, make_lot,
                                                 make_event, orders, monkeypatch):
        make_lot(product, central, 100)
        make_lot(other_product, central, 100)
        real = deduction_module.Catalog.resolve_or_create_product

        def broken(sku, name):
            if sku == 'ACUCAR-1K':
                raise DataError('value too long for type character varying(100)')
            return real(sku, name)

        monkeypatch.setattr(deduction_module.Catalog, 'resolve_or_create_product', broken)
        event = self._two_lines(make_event)

        result = DeductionOrchestrator().process(event)

        assert not result.success
        assert result.items_processed == 1
        assert [(e.item_id, e.code, e.sku) for e in result.errors] == [('2', 'ITEM_PROCESSING_FAILED', 'ACUCAR-1K')]
        assert 'DataError' in result.errors[0].error
        assert orders['ORD-1'] is not None

        assert DeductionOrchestrator().process_if_eligible(event) is None
        assert StockLevels.get(product, central).total_quantity == 70
        assert StockLevels.get(other_product, central).total_quantity == 100


class TestPartialAddBack:
    """An add-back with a failed line keeps the order flagged."""

    def test_flag_kept_until_every_line_restocked(self, product, other_product, central, make_lot,
                                                  make_event, orders):
        make_lot(product, central, 100)
        emptied = make_lot(other_product, central, 10)
        orchestrator = DeductionOrchestrator()
        lines = [
            _item(10, item_id='1'),
            _item(10, sku='ACUCAR-1K', item_id='2', title='Açúcar'),
        ]
        orchestrator.process(make_event('ORD-1', 'SHIPPED', lines))
        LotLedger.deactivate_lot(emptied.pk)
        cancel = make_event('ORD-1', 'CANCELLED', lines)

        result = orchestrator.process(cancel)

        assert result.items_processed == 1
        assert [e.code for e in result.errors] == ['NO_ACTIVE_LOT_FOR_RESTOCK']
        assert result.stock_deducted_at is None
        assert orders['ORD-1'] is not None
        assert is_eligible(cancel, stock_deducted=orders['ORD-1'] is not None) is True

    def test_skipped_lines_do_not_block_clearing(self, product, central, make_lot, make_event, orders):
        make_lot(product, central, 100)
        orchestrator = DeductionOrchestrator()
        lines = [
            _item(10, item_id='1'),
            {'id': '2', 'sku': '', 'title': 'Brinde', 'quantity': 1},
        ]
        orchestrator.process(make_event('ORD-1', 'SHIPPED', lines))

        result = orchestrator.process(make_event('ORD-1', 'CANCELLED', lines))

        assert result.items_skipped == 1
        assert orders['ORD-1'] is None
