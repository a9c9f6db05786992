# Exceptions raised by the Kasir POS engine


class KasirError(Exception):
    """Base class for engine errors"""


class InvalidQuantity(KasirError, ValueError):
    """Quantity is not a positive whole number"""


class InsufficientStock(KasirError):
    """Requested quantity exceeds the product's available stock.

    ``max_addable`` is how many more units the caller could still put in the
    cart; the engine never clamps on its own.
    """

    def __init__(self, product_id: str, requested: int, available: int, max_addable: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.max_addable = max_addable
        super().__init__(
            f"Insufficient stock for {product_id}: requested {requested}, "
            f"available {available}, can add {max_addable}"
        )


class DuplicateVariantThreshold(KasirError, ValueError):
    """Two active price variants share the same minimum quantity"""

    def __init__(self, product_id: str, minimum_quantity: int):
        self.product_id = product_id
        self.minimum_quantity = minimum_quantity
        super().__init__(
            f"Product {product_id} has more than one active price variant "
            f"starting at quantity {minimum_quantity}"
        )


class EmptyCartError(KasirError):
    """Checkout attempted with no lines in the cart"""


class StorageError(KasirError):
    """Local key-value storage could not be written"""


class UnknownBasePrice(KasirError):
    """A tier-priced line has no base price to fall back on"""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Cannot re-price {product_id}: base selling price unknown")
