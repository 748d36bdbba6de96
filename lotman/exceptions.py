"""
Exceptions for Lotman.

All errors are StockError with a structured code for programmatic handling.
Each member of the taxonomy is a subclass that pins its code, so callers
can catch either the family or one specific failure:

    try:
        inventory.create_lot(...)
    except LotNumberConflict:
        ...
    except StockError as e:
        return JsonResponse(e.as_dict(), status=400)
"""

from decimal import Decimal
from typing import Any


class StockError(Exception):
    """
    Structured exception for stock operations.

    Usage:
        try:
            inventory.deactivate_lot(lot.pk)
        except StockError as e:
            if e.code == 'LOT_HAS_STOCK':
                print(f"Lote ainda tem {e.data['current_quantity']} unidades")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    code: str = 'STOCK_ERROR'

    _default_messages = {
        'STOCK_ERROR': 'Erro de estoque',
        'PRODUCT_NOT_FOUND': 'Produto não encontrado',
        'PRODUCT_CONFLICT': 'Já existe um produto com este SKU',
        'PRODUCT_HAS_STOCK': 'Produto ainda possui estoque',
        'WAREHOUSE_NOT_FOUND': 'Depósito não encontrado',
        'WAREHOUSE_HAS_STOCK': 'Depósito ainda possui estoque',
        'WAREHOUSE_CONFLICT': 'Já existe um depósito com este código',
        'LOT_NOT_FOUND': 'Lote não encontrado',
        'LOT_NUMBER_CONFLICT': 'Número de lote já existe',
        'LOT_HAS_STOCK': 'Lote ainda possui quantidade; zere o estoque antes',
        'INSUFFICIENT_STOCK': 'Estoque insuficiente nos lotes disponíveis',
        'MISSING_SKU': 'Item sem SKU; estoque não rastreável',
        'NO_ACTIVE_LOT_FOR_RESTOCK': 'Nenhum lote ativo para receber a devolução',
        'ORDER_NOT_FOUND': 'Pedido não encontrado',
        'ALERT_NOT_FOUND': 'Alerta não encontrado',
        'ALREADY_RESOLVED': 'Alerta já resolvido',
        'RESOLVER_REQUIRED': 'Informe quem resolveu o alerta',
        'INVALID_QUANTITY': 'Quantidade inválida',
        'STORE_CONTENTION_EXCEEDED': 'Transação não concluída após novas tentativas',
        'ITEM_PROCESSING_FAILED': 'Falha inesperada ao processar o item',
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        if code is not None:
            self.code = code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> Decimal:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, data={self.data!r})"


class ProductNotFound(StockError):
    code = 'PRODUCT_NOT_FOUND'


class ProductConflict(StockError):
    code = 'PRODUCT_CONFLICT'


class ProductHasStock(StockError):
    code = 'PRODUCT_HAS_STOCK'


class WarehouseNotFound(StockError):
    code = 'WAREHOUSE_NOT_FOUND'


class WarehouseHasStock(StockError):
    code = 'WAREHOUSE_HAS_STOCK'


class WarehouseConflict(StockError):
    code = 'WAREHOUSE_CONFLICT'


class LotNotFound(StockError):
    code = 'LOT_NOT_FOUND'


class LotNumberConflict(StockError):
    code = 'LOT_NUMBER_CONFLICT'


class LotHasStock(StockError):
    code = 'LOT_HAS_STOCK'


class InsufficientStock(StockError):
    """Required quantity exceeds what FEFO-eligible lots hold."""

    code = 'INSUFFICIENT_STOCK'


class MissingSKU(StockError):
    code = 'MISSING_SKU'


class NoActiveLotForRestock(StockError):
    code = 'NO_ACTIVE_LOT_FOR_RESTOCK'


class OrderNotFound(StockError):
    code = 'ORDER_NOT_FOUND'


class AlertNotFound(StockError):
    code = 'ALERT_NOT_FOUND'


class AlreadyResolved(StockError):
    code = 'ALREADY_RESOLVED'


class ResolverRequired(StockError):
    code = 'RESOLVER_REQUIRED'


class InvalidQuantity(StockError):
    code = 'INVALID_QUANTITY'


class StoreContentionExceeded(StockError):
    """Transaction could not commit after the configured retries."""

    code = 'STORE_CONTENTION_EXCEEDED'


class ItemProcessingFailed(StockError):
    """Unexpected failure on one order line."""

    code = 'ITEM_PROCESSING_FAILED'


# Errors that only invalidate one order line, never the whole order.
ITEM_ERRORS = (
    MissingSKU,
    InsufficientStock,
    InvalidQuantity,
    NoActiveLotForRestock,
    StoreContentionExceeded,
)
