"""
Movement ledger — append-only record of every quantity change.

The ledger only records. Callers mutate the lot and the stock level in
the same transaction as the movement they write.
"""

import logging
from decimal import Decimal

from django.db.models import Count, DecimalField, Sum
from django.db.models.functions import Coalesce

from lotman.exceptions import InvalidQuantity, LotNotFound
from lotman.models.enums import MovementType
from lotman.models.lot import Lot
from lotman.models.movement import StockMovement, apply_to_quantity
from lotman.pagination import PageResult, paginate

logger = logging.getLogger('lotman')


class MovementLedger:
    """Write and read the movement ledger."""

    @classmethod
    def record(cls, movement_type, *, product, warehouse, quantity: int, lot: Lot | None = None,
               order_ref: str = '', user=None, unit_cost: Decimal | None = None,
               reference: str = '', reason: str = '', notes: str = '') -> StockMovement:
        """
        Append a movement.

        quantity_before is the lot's current_quantity as stored right now
        (read inside the caller's transaction, after its row lock);
        quantity_after follows from the movement type. Without a lot both
        snapshots are 0.

        Raises:
            InvalidQuantity: If quantity is not positive (zero for ADJUSTMENT)
            LotNotFound: If the lot doesn't exist
            ValueError: If the lot belongs to another product or warehouse
        """
        movement_type = MovementType(movement_type)

        if movement_type == MovementType.ADJUSTMENT:
            if quantity == 0:
                raise InvalidQuantity(requested=quantity, movement_type=movement_type.value)
        elif quantity <= 0:
            raise InvalidQuantity(requested=quantity, movement_type=movement_type.value)

        before = 0
        if lot is not None:
            if lot.product_id != product.pk or lot.warehouse_id != warehouse.pk:
                raise ValueError(
                    f"Lote {lot.lot_number} não pertence a {product.sku} @ {warehouse.code}"
                )
            before = Lot.objects.filter(pk=lot.pk).values_list('current_quantity', flat=True).first()
            if before is None:
                raise LotNotFound(lot_id=lot.pk)

        after = apply_to_quantity(movement_type, before, quantity) if lot is not None else 0
        total_cost = unit_cost * abs(quantity) if unit_cost is not None else None

        movement = StockMovement.objects.create(
            movement_type=movement_type,
            product=product,
            lot=lot,
            warehouse=warehouse,
            order_ref=order_ref or '',
            user=user,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=total_cost,
            quantity_before=before,
            quantity_after=after,
            reference=reference,
            reason=reason,
            notes=notes,
        )
        logger.info(
            "stock.movement.recorded",
            extra={
                "movement_id": movement.pk,
                "movement_type": movement_type.value,
                "sku": product.sku,
                "lot": lot.lot_number if lot else None,
                "qty": quantity,
                "before": before,
                "after": after,
                "order_ref": order_ref,
            },
        )
        return movement

    @classmethod
    def get_movement(cls, pk) -> StockMovement | None:
        return (
            StockMovement.objects
            .select_related('product', 'lot', 'warehouse', 'user')
            .filter(pk=pk)
            .first()
        )

    @classmethod
    def _filtered(cls, product=None, warehouse=None, order_ref=None, user=None,
                  movement_type=None, start=None, end=None):
        qs = StockMovement.objects.all()

        if product is not None:
            qs = qs.filter(product=product)
        if warehouse is not None:
            qs = qs.filter(warehouse=warehouse)
        if order_ref:
            qs = qs.filter(order_ref=order_ref)
        if user is not None:
            qs = qs.filter(user=user)
        if movement_type:
            qs = qs.filter(movement_type=movement_type)

        return qs.between(start, end)

    @classmethod
    def list_movements(cls, product=None, warehouse=None, order_ref=None, user=None,
                       movement_type=None, start=None, end=None,
                       page: int | None = None, limit: int | None = None) -> PageResult:
        """List movements, newest first, paginated."""
        qs = cls._filtered(product, warehouse, order_ref, user, movement_type, start, end)
        qs = qs.select_related('product', 'lot', 'warehouse', 'user').order_by('-created_at', '-pk')
        return paginate(qs, page, limit)

    @classmethod
    def summary(cls, product=None, warehouse=None, start=None, end=None) -> list[dict]:
        """
        Group movements by type.

        Returns:
            [{'movement_type', 'count', 'total_quantity', 'total_cost'}, ...]
            ordered by movement type
        """
        rows = (
            cls._filtered(product, warehouse, start=start, end=end)
            .order_by()
            .values('movement_type')
            .annotate(
                count=Count('pk'),
                total_quantity=Coalesce(Sum('quantity'), 0),
                total_cost=Coalesce(
                    Sum('total_cost'), Decimal('0'),
                    output_field=DecimalField(max_digits=16, decimal_places=2),
                ),
            )
            .order_by('movement_type')
        )
        return [dict(row) for row in rows]

    @classmethod
    def lot_history(cls, lot):
        """The lot's movements in commit order."""
        return StockMovement.objects.for_lot(lot)
