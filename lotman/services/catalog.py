"""
Product catalog — SKU identity and thresholds.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce

from lotman.conf import lotman_settings
from lotman.exceptions import ProductConflict, ProductHasStock, ProductNotFound
from lotman.models.product import Product
from lotman.pagination import PageResult, paginate

logger = logging.getLogger('lotman')

# Fields a product update may touch (SKU is immutable)
UPDATABLE_FIELDS = ('name', 'description', 'category', 'unit', 'min_threshold', 'reorder_point', 'is_active')


class Catalog:
    """Product registration and lookup."""

    @classmethod
    def resolve_or_create_product(cls, sku: str, name: str) -> tuple[Product, bool]:
        """
        Resolve a product by SKU, registering it if unknown.

        Idempotent. Two explicit branches:
        - SKU registered: returns (existing product, False), name untouched
        - SKU unknown: creates a minimal product with default unit and
          threshold, returns (new product, True)

        Concurrency:
            Two callers registering the same SKU race on the unique
            constraint; the loser re-reads the winner's row.
        """
        product = Product.objects.filter(sku=sku).first()
        if product is not None:
            return product, False

        try:
            with transaction.atomic():
                product = Product.objects.create(
                    sku=sku,
                    name=name or sku,
                    unit=lotman_settings.DEFAULT_PRODUCT_UNIT,
                    min_threshold=lotman_settings.DEFAULT_MIN_THRESHOLD,
                )
        except IntegrityError:
            return Product.objects.get(sku=sku), False

        logger.info(
            "stock.product.auto_created",
            extra={"sku": sku, "product_name": product.name, "product_id": product.pk},
        )
        return product, True

    @classmethod
    def create_product(cls, sku: str, name: str, description: str = '', category: str = '',
                       unit: str | None = None, min_threshold: int | None = None,
                       reorder_point: int | None = None) -> Product:
        """
        Register a product explicitly.

        Raises:
            ProductConflict: If the SKU already exists
        """
        if Product.objects.filter(sku=sku).exists():
            raise ProductConflict(sku=sku)

        try:
            with transaction.atomic():
                product = Product.objects.create(
                    sku=sku,
                    name=name,
                    description=description,
                    category=category,
                    unit=unit or lotman_settings.DEFAULT_PRODUCT_UNIT,
                    min_threshold=(
                        min_threshold if min_threshold is not None
                        else lotman_settings.DEFAULT_MIN_THRESHOLD
                    ),
                    reorder_point=reorder_point,
                )
        except IntegrityError:
            raise ProductConflict(sku=sku) from None

        logger.info("stock.product.created", extra={"sku": sku, "product_id": product.pk})
        return product

    @classmethod
    def get_product(cls, pk) -> Product:
        try:
            return Product.objects.get(pk=pk)
        except Product.DoesNotExist:
            raise ProductNotFound(product_id=pk) from None

    @classmethod
    def get_product_by_sku(cls, sku: str) -> Product:
        try:
            return Product.objects.get(sku=sku)
        except Product.DoesNotExist:
            raise ProductNotFound(sku=sku) from None

    @classmethod
    def list_products(cls, is_active: bool | None = None, category: str | None = None,
                      search: str | None = None, low_stock: bool = False,
                      page: int | None = None, limit: int | None = None) -> PageResult:
        """
        List products with filters.

        low_stock keeps products whose available quantity, summed over
        warehouses, is below their threshold.
        """
        qs = Product.objects.all()

        if is_active is not None:
            qs = qs.filter(is_active=is_active)

        if category:
            qs = qs.filter(category=category)

        if search:
            qs = qs.search(search)

        if low_stock:
            qs = qs.annotate(
                _available=Coalesce(Sum('stock_levels__available_quantity'), 0)
            ).filter(_available__lt=F('min_threshold'))

        return paginate(qs.order_by('-created_at', '-pk'), page, limit)

    @classmethod
    def update_product(cls, pk, **fields) -> Product:
        """
        Update product attributes.

        Raises:
            ProductNotFound: If the product doesn't exist
            ValueError: If an unknown or immutable field is given
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Campos não atualizáveis: {', '.join(sorted(unknown))}")

        product = cls.get_product(pk)
        for name, value in fields.items():
            setattr(product, name, value)
        product.save(update_fields=[*fields, 'updated_at'])
        return product

    @classmethod
    def deactivate_product(cls, pk) -> Product:
        """
        Deactivate a product (products are never deleted).

        Raises:
            ProductHasStock: If any warehouse still holds quantity
        """
        with transaction.atomic():
            try:
                product = Product.objects.select_for_update().get(pk=pk)
            except Product.DoesNotExist:
                raise ProductNotFound(product_id=pk) from None

            remaining = product.stock_levels.filter(total_quantity__gt=0).aggregate(
                t=Coalesce(Sum('total_quantity'), 0)
            )['t']
            if remaining > 0:
                raise ProductHasStock(sku=product.sku, total_quantity=remaining)

            product.is_active = False
            product.save(update_fields=['is_active', 'updated_at'])

        logger.info("stock.product.deactivated", extra={"sku": product.sku})
        return product

    @classmethod
    def categories(cls) -> list[str]:
        """Distinct categories of active products, sorted."""
        return list(
            Product.objects.active()
            .filter(~Q(category=''))
            .order_by('category')
            .values_list('category', flat=True)
            .distinct()
        )
