"""
Deduction orchestrator — order status changes into stock movements.

Usage:
    from lotman.services.deduction import DeductionOrchestrator

    result = DeductionOrchestrator().process(OrderStatusChange(
        order_id="ORD-1042",
        old_status="CONFIRMED",
        new_status="SHIPPED",
        items=(OrderLine(id="L1", sku="CAFE-500", title="Café 500g", quantity=3),),
    ))
    if not result.success:
        for error in result.errors:
            print(error.item_id, error.code, error.error)

Each line item is its own unit of work: lots and the stock level are
locked, read, written and committed together, or not at all. A failed
line never stops the remaining ones.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from lotman.adapters import get_alert_notifier, get_order_backend
from lotman.conf import lotman_settings
from lotman.exceptions import (
    ITEM_ERRORS,
    InsufficientStock,
    InvalidQuantity,
    ItemProcessingFailed,
    MissingSKU,
    NoActiveLotForRestock,
    OrderNotFound,
    WarehouseNotFound,
)
from lotman.fefo import plan_allocation
from lotman.models.enums import DeductionAction, MovementType, OutflowKind
from lotman.protocols.orders import OrderLine, OrderStatusChange
from lotman.services import alerts
from lotman.services.catalog import Catalog
from lotman.services.levels import StockLevels
from lotman.services.lots import LotLedger
from lotman.services.movements import MovementLedger
from lotman.services.warehouses import Warehouses
from lotman.transactions import atomic_with_retry

logger = logging.getLogger('lotman')

DEDUCTIONS = (DeductionAction.DEDUCT_SHIPPED, DeductionAction.DEDUCT_SOLD)


@dataclass(frozen=True)
class ItemError:
    """Why one line item (or the whole order) was not processed."""

    item_id: str
    code: str
    error: str
    sku: str | None = None

    @classmethod
    def from_exception(cls, item_id: str, exc, sku: str | None = None) -> 'ItemError':
        return cls(item_id=item_id, code=exc.code, error=exc.message, sku=sku)


@dataclass(frozen=True)
class AllocatedMovement:
    """A movement written while processing an order."""

    movement_id: int
    movement_type: str
    lot_id: int
    lot_number: str
    sku: str
    quantity: int
    quantity_before: int
    quantity_after: int

    @classmethod
    def from_movement(cls, movement, lot) -> 'AllocatedMovement':
        return cls(
            movement_id=movement.pk,
            movement_type=movement.movement_type,
            lot_id=lot.pk,
            lot_number=lot.lot_number,
            sku=movement.product.sku,
            quantity=movement.quantity,
            quantity_before=movement.quantity_before,
            quantity_after=movement.quantity_after,
        )


@dataclass(frozen=True)
class DeductionResult:
    """
    Outcome of one order status change.

    Partial success is normal: every failed line is listed in errors,
    every written movement in movements.
    """

    order_id: str
    action: str
    items_processed: int = 0
    items_skipped: int = 0
    total_quantity_deducted: int = 0
    total_quantity_restored: int = 0
    errors: tuple[ItemError, ...] = ()
    movements: tuple[AllocatedMovement, ...] = ()
    stock_deducted_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.errors


def _in(status: str | None, choices) -> bool:
    if not status:
        return False
    return status.casefold() in {choice.casefold() for choice in choices}


def resolve_action(event: OrderStatusChange) -> DeductionAction:
    """
    Map a status change to a stock action. First match wins:

    - SHIPPED → DEDUCT_SHIPPED
    - DELIVERED with a delivered carrier status → DEDUCT_SOLD
    - CANCELLED, a cancelled carrier status, or RETURNED → ADD_BACK
    - anything else → NONE
    """
    new_status = (event.new_status or '').upper()

    if new_status == 'SHIPPED':
        return DeductionAction.DEDUCT_SHIPPED
    if new_status == 'DELIVERED' and _in(event.shipping_status, lotman_settings.DELIVERED_SHIPPING_STATUSES):
        return DeductionAction.DEDUCT_SOLD
    if (
        new_status in ('CANCELLED', 'RETURNED')
        or _in(event.shipping_status, lotman_settings.CANCELLED_SHIPPING_STATUSES)
    ):
        return DeductionAction.ADD_BACK
    return DeductionAction.NONE


def is_eligible(event: OrderStatusChange, stock_deducted: bool) -> bool:
    """
    Should the order subsystem hand this change to the orchestrator?

    Deductions run only for orders not yet deducted, add-backs only for
    orders that were. NONE is never eligible.
    """
    action = resolve_action(event)
    if action in DEDUCTIONS:
        return not stock_deducted
    if action == DeductionAction.ADD_BACK:
        return stock_deducted
    return False


class DeductionOrchestrator:
    """
    Applies order status changes to stock.

    Args:
        using: Database alias for the per-item units of work
        notifier: AlertNotifier (None = configured ALERT_NOTIFIER)
        orders: OrderBackend (None = configured ORDER_BACKEND)
    """

    def __init__(self, using: str | None = None, notifier=None, orders=None):
        self.using = using
        self._notifier = notifier
        self._orders = orders

    @property
    def notifier(self):
        return self._notifier or get_alert_notifier()

    @property
    def orders(self):
        return self._orders or get_order_backend()

    # ══════════════════════════════════════════════════════════════
    # ENTRY POINTS
    # ══════════════════════════════════════════════════════════════

    def process_if_eligible(self, event: OrderStatusChange) -> DeductionResult | None:
        """Check the stock-deducted flag first; None when not eligible."""
        if not is_eligible(event, self.orders.is_stock_deducted(event.order_id)):
            logger.debug(
                "stock.deduction.not_eligible",
                extra={"order_id": event.order_id, "new_status": event.new_status},
            )
            return None
        return self.process(event)

    def process(self, event: OrderStatusChange) -> DeductionResult:
        """
        Process every line item of a status change.

        Returns immediately with an empty successful result for NONE.
        An unknown order or a missing warehouse fails the whole call with a
        single error keyed by the order id; nothing is written.
        Any other failure stays with its line (ITEM_PROCESSING_FAILED for
        unexpected ones), and the order is still stamped for the lines
        that went through.
        """
        action = resolve_action(event)
        if action == DeductionAction.NONE:
            return DeductionResult(order_id=event.order_id, action=action)

        try:
            if not self.orders.order_exists(event.order_id):
                raise OrderNotFound(order_id=event.order_id)
            warehouse = Warehouses.resolve(event.warehouse_hint)
        except (OrderNotFound, WarehouseNotFound) as exc:
            logger.warning(
                "stock.deduction.aborted",
                extra={"order_id": event.order_id, "action": action.value, "code": exc.code},
            )
            return DeductionResult(
                order_id=event.order_id,
                action=action,
                errors=(ItemError.from_exception(event.order_id, exc),),
            )

        processed = skipped = deducted = restored = 0
        errors = []
        movements = []

        for line in event.items:
            try:
                if action == DeductionAction.ADD_BACK:
                    written = self._add_back_line(event, line, warehouse)
                    restored += line.quantity
                else:
                    written = self._deduct_line(event, line, warehouse, action)
                    deducted += line.quantity
            except ITEM_ERRORS as exc:
                if isinstance(exc, MissingSKU):
                    skipped += 1
                errors.append(ItemError.from_exception(line.id, exc, sku=line.sku or None))
                logger.info(
                    "stock.deduction.item_failed",
                    extra={
                        "order_id": event.order_id,
                        "item_id": line.id,
                        "sku": line.sku,
                        "code": exc.code,
                    },
                )
                continue
            except Exception as exc:
                # Earlier lines are already committed; keep going so the order is stamped.
                logger.exception(
                    "stock.deduction.item_crashed",
                    extra={"order_id": event.order_id, "item_id": line.id, "sku": line.sku},
                )
                failure = ItemProcessingFailed(
                    message=f"Falha inesperada ao processar o item: {type(exc).__name__}: {exc}",
                )
                errors.append(ItemError.from_exception(line.id, failure, sku=line.sku or None))
                continue

            processed += 1
            movements.extend(written)

        stock_deducted_at = self._bookkeep(event, action, processed, failed=len(errors) - skipped)

        result = DeductionResult(
            order_id=event.order_id,
            action=action,
            items_processed=processed,
            items_skipped=skipped,
            total_quantity_deducted=deducted,
            total_quantity_restored=restored,
            errors=tuple(errors),
            movements=tuple(movements),
            stock_deducted_at=stock_deducted_at,
        )
        logger.info(
            "stock.deduction.processed",
            extra={
                "order_id": event.order_id,
                "action": action.value,
                "processed": processed,
                "skipped": skipped,
                "errors": len(errors),
                "deducted": deducted,
                "restored": restored,
            },
        )
        return result

    # ══════════════════════════════════════════════════════════════
    # PER ITEM
    # ══════════════════════════════════════════════════════════════

    def _alert(self, raise_fn, *args, **kwargs) -> None:
        """Raise an alert without letting its failure touch the line's outcome."""
        try:
            raise_fn(*args, notifier=self.notifier, **kwargs)
        except Exception:
            logger.warning(
                "stock.deduction.alert_failed",
                extra={"alert": raise_fn.__name__, "order_id": kwargs.get('order_ref')},
                exc_info=True,
            )

    def _resolve_product(self, event: OrderStatusChange, line: OrderLine, warehouse):
        if not line.sku:
            self._alert(
                alerts.raise_missing_sku_alert,
                warehouse, order_ref=event.order_id, title=line.title, quantity=line.quantity,
            )
            raise MissingSKU(item_id=line.id, title=line.title)
        if line.quantity <= 0:
            raise InvalidQuantity(requested=line.quantity, item_id=line.id)

        product, _ = Catalog.resolve_or_create_product(line.sku, line.title)
        return product

    def _deduct_line(self, event, line, warehouse, action) -> list[AllocatedMovement]:
        """
        FEFO deduction of one line.

        Inside one locked transaction: select lots, refuse if they can't
        cover the line, write one OUT movement per lot touched, then update
        the level and the shipped/sold counter. Alerts follow the commit.
        """
        product = self._resolve_product(event, line, warehouse)
        required = line.quantity
        sold = action == DeductionAction.DEDUCT_SOLD
        reason = 'Pedido entregue' if sold else 'Pedido enviado'

        def work():
            selection = LotLedger.select_fefo(product, warehouse, required, lock=True)
            if not selection.covers:
                raise InsufficientStock(
                    'INSUFFICIENT_STOCK',
                    f"Estoque insuficiente. Necessário: {required}, disponível: {selection.total_available}",
                    sku=product.sku,
                    requested=required,
                    available=selection.total_available,
                )

            written = []
            for lot, take in plan_allocation(selection.lots, required):
                movement = MovementLedger.record(
                    MovementType.OUT,
                    product=product,
                    warehouse=warehouse,
                    lot=lot,
                    quantity=take,
                    unit_cost=lot.unit_cost,
                    order_ref=event.order_id,
                    user=event.actor,
                    reference=f"Pedido {event.order_id}",
                    reason=reason,
                )
                lot.current_quantity -= take
                lot.save(update_fields=['current_quantity', 'updated_at'])
                written.append(AllocatedMovement.from_movement(movement, lot))

            StockLevels.apply_movement(product, warehouse, MovementType.OUT, required)
            level = StockLevels.record_outflow(
                product, warehouse,
                OutflowKind.SOLD if sold else OutflowKind.SHIPPED,
                required,
            )
            return written, level

        try:
            written, level = atomic_with_retry(
                work, using=self.using, label='deduct_line',
                order_id=event.order_id, sku=product.sku,
            )
        except InsufficientStock as exc:
            self._alert(
                alerts.raise_insufficient_stock_alert,
                product, warehouse, exc.requested, exc.available, order_ref=event.order_id,
            )
            raise

        if level.available_quantity < product.min_threshold:
            self._alert(
                alerts.raise_low_stock_alert,
                product, warehouse, level.available_quantity,
            )

        return written

    def _add_back_line(self, event, line, warehouse) -> list[AllocatedMovement]:
        """
        Credit one line back into the newest active lot.

        RETURN for returned orders, a positive ADJUSTMENT for
        cancellations.
        """
        product = self._resolve_product(event, line, warehouse)
        returned = (event.new_status or '').upper() == 'RETURNED'
        movement_type = MovementType.RETURN if returned else MovementType.ADJUSTMENT

        def work():
            lot = LotLedger.newest_active_lot(product, warehouse, lock=True)
            if lot is None:
                raise NoActiveLotForRestock(sku=product.sku, warehouse=warehouse.code)

            movement = MovementLedger.record(
                movement_type,
                product=product,
                warehouse=warehouse,
                lot=lot,
                quantity=line.quantity,
                unit_cost=lot.unit_cost,
                order_ref=event.order_id,
                user=event.actor,
                reference=f"Pedido {event.order_id}",
                reason='Devolução do cliente' if returned else 'Pedido cancelado',
            )
            lot.current_quantity += line.quantity
            lot.save(update_fields=['current_quantity', 'updated_at'])

            StockLevels.apply_movement(
                product, warehouse, movement_type, line.quantity,
                unit_cost=lot.unit_cost if returned else None,
            )
            return [AllocatedMovement.from_movement(movement, lot)]

        return atomic_with_retry(
            work, using=self.using, label='add_back_line',
            order_id=event.order_id, sku=product.sku,
        )

    # ══════════════════════════════════════════════════════════════
    # ORDER BOOKKEEPING
    # ══════════════════════════════════════════════════════════════

    def _bookkeep(self, event, action, processed: int, failed: int = 0) -> datetime | None:
        """
        Stamp or clear the order's stock-deducted flag.

        A deduction stamps the order as soon as one line went through. An
        add-back clears it only when no line failed (skipped lines had
        nothing deducted), so failed restocks stay eligible for a retry.
        """
        if processed == 0:
            return None

        if action in DEDUCTIONS:
            deducted_at = timezone.now()
            self.orders.set_stock_deducted(event.order_id, deducted_at)
            return deducted_at

        if failed == 0:
            self.orders.set_stock_deducted(event.order_id, None)
        return None
