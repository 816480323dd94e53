"""Error taxonomy for the inventory core.

Every failure aborts the requested operation with no partial effect. The
message is meant to be shown to the user as-is.
"""


class StockbookError(Exception):
    """Base class for errors raised by the store, engine and exporter."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StockbookError):
    """Malformed or missing input; the caller must correct the request."""


class InvalidLineItem(ValidationError):
    pass


class UniquenessViolation(StockbookError):
    pass


class DuplicateSku(UniquenessViolation):
    def __init__(self, sku: str):
        self.sku = sku
        super().__init__('SKU must be unique')


class ReferentialIntegrityViolation(StockbookError):
    pass


class UnknownProduct(ReferentialIntegrityViolation):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f'Unknown product {product_id}')


class ProductInUse(ReferentialIntegrityViolation):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f'Product {product_id} is referenced by existing transactions')


class InsufficientStock(StockbookError):
    def __init__(self, product_id, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__('Insufficient stock for sale')


class NotFound(StockbookError):
    pass


class ExportError(StockbookError):
    pass
