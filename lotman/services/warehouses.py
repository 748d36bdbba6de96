"""
Warehouses — lookup and the primary-warehouse rule.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from lotman.exceptions import WarehouseConflict, WarehouseHasStock, WarehouseNotFound
from lotman.models.lot import Lot
from lotman.models.warehouse import Warehouse

logger = logging.getLogger('lotman')

UPDATABLE_FIELDS = ('code', 'name', 'address', 'is_primary')


class Warehouses:
    """Warehouse lookup methods."""

    @classmethod
    def get_primary(cls) -> Warehouse:
        """
        The active primary warehouse.

        Raises:
            WarehouseNotFound: If none is configured (fatal, not retried)
        """
        warehouse = Warehouse.objects.primary()
        if warehouse is None:
            raise WarehouseNotFound('WAREHOUSE_NOT_FOUND', 'Nenhum depósito principal configurado', primary=True)
        return warehouse

    @classmethod
    def get_warehouse(cls, pk) -> Warehouse:
        try:
            return Warehouse.objects.get(pk=pk)
        except (Warehouse.DoesNotExist, ValueError, TypeError):
            raise WarehouseNotFound(warehouse_id=pk) from None

    @classmethod
    def resolve(cls, hint=None) -> Warehouse:
        """
        Resolve a warehouse hint.

        Args:
            hint: Warehouse instance, pk, code, or None for the primary one

        Raises:
            WarehouseNotFound: If the hint matches nothing active
        """
        if hint is None or hint == '':
            return cls.get_primary()

        if isinstance(hint, Warehouse):
            return hint

        qs = Warehouse.objects.active()
        warehouse = qs.filter(code=str(hint)).first()
        if warehouse is None and str(hint).isdigit():
            warehouse = qs.filter(pk=int(hint)).first()

        if warehouse is None:
            raise WarehouseNotFound(hint=str(hint))
        return warehouse

    @classmethod
    def create_warehouse(cls, code: str, name: str, address: str = '',
                         is_primary: bool = False) -> Warehouse:
        """
        Create a warehouse.

        Making it primary clears the flag on every other warehouse.

        Raises:
            WarehouseConflict: If the code is taken
        """
        try:
            with transaction.atomic():
                if is_primary:
                    Warehouse.objects.filter(is_primary=True).update(is_primary=False)
                warehouse = Warehouse.objects.create(
                    code=code, name=name, address=address, is_primary=is_primary,
                )
        except IntegrityError:
            raise WarehouseConflict(code=code) from None

        logger.info(
            "stock.warehouse.created",
            extra={"code": code, "warehouse_id": warehouse.pk, "is_primary": is_primary},
        )
        return warehouse

    @classmethod
    def update_warehouse(cls, pk, **fields) -> Warehouse:
        """
        Update warehouse attributes.

        Setting is_primary=True moves the flag here from whichever warehouse
        held it; is_primary=False just clears it.

        Raises:
            WarehouseNotFound: If the warehouse doesn't exist
            WarehouseConflict: If the new code is taken
            ValueError: If an unknown field is given
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Campos não atualizáveis: {', '.join(sorted(unknown))}")

        try:
            with transaction.atomic():
                try:
                    warehouse = Warehouse.objects.select_for_update().get(pk=pk)
                except Warehouse.DoesNotExist:
                    raise WarehouseNotFound(warehouse_id=pk) from None

                if fields.get('is_primary'):
                    Warehouse.objects.filter(is_primary=True).exclude(pk=pk).update(is_primary=False)

                for name, value in fields.items():
                    setattr(warehouse, name, value)
                warehouse.save(update_fields=[*fields, 'updated_at'])
        except IntegrityError:
            raise WarehouseConflict(code=fields.get('code')) from None

        logger.info(
            "stock.warehouse.updated",
            extra={"warehouse_id": warehouse.pk, "fields": sorted(fields)},
        )
        return warehouse

    @classmethod
    def deactivate_warehouse(cls, pk) -> Warehouse:
        """
        Deactivate a warehouse (warehouses are never deleted).

        A deactivated warehouse is no longer primary.

        Raises:
            WarehouseNotFound: If the warehouse doesn't exist
            WarehouseHasStock: If any active lot in it still holds quantity
        """
        with transaction.atomic():
            try:
                warehouse = Warehouse.objects.select_for_update().get(pk=pk)
            except Warehouse.DoesNotExist:
                raise WarehouseNotFound(warehouse_id=pk) from None

            remaining = Lot.objects.active().filter(warehouse=warehouse).aggregate(
                t=Coalesce(Sum('current_quantity'), 0)
            )['t']
            if remaining > 0:
                raise WarehouseHasStock(code=warehouse.code, total_quantity=remaining)

            warehouse.is_active = False
            warehouse.is_primary = False
            warehouse.save(update_fields=['is_active', 'is_primary', 'updated_at'])

        logger.info("stock.warehouse.deactivated", extra={"code": warehouse.code})
        return warehouse

    @classmethod
    def list_warehouses(cls):
        return Warehouse.objects.active().order_by('name')
