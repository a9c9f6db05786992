# Cart Engine - working sale for the Kasir POS engine
# Line items, tiered pricing, stock ceilings, totals and two-phase checkout

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .errors import (
    DuplicateVariantThreshold, EmptyCartError, InsufficientStock, InvalidQuantity, UnknownBasePrice,
)
from .models import (
    CREDIT_TERM_DAYS, PAYMENT_CASH, PAYMENT_CREDIT,
    CartLine, FinalizedTransaction, PriceVariant, Product,
    check_payment_type, unix_millis,
)

logger = logging.getLogger(__name__)


def select_price_variant(product: Product, quantity: int) -> Optional[PriceVariant]:
    """
    Pick the active variant with the greatest minimum_quantity <= quantity.
    Returns None when no variant qualifies (base selling price applies).
    """
    seen = set()
    best = None
    for variant in product.price_variants:
        if not variant.is_active:
            continue
        if variant.minimum_quantity in seen:
            raise DuplicateVariantThreshold(product.id, variant.minimum_quantity)
        seen.add(variant.minimum_quantity)
        if variant.minimum_quantity <= quantity:
            if best is None or variant.minimum_quantity > best.minimum_quantity:
                best = variant
    return best


def effective_price(product: Product, quantity: int) -> float:
    variant = select_price_variant(product, quantity)
    return variant.price if variant else product.selling_price


def _check_quantity(qty) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
        raise InvalidQuantity(f"Quantity must be a whole number >= 1, got {qty!r}")
    return qty


class Checkout:
    """Tentative checkout: the cart is already cleared, confirm or roll back once"""

    def __init__(self, engine: 'CartEngine', transaction: FinalizedTransaction,
                 lines: Dict[str, CartLine], products: Dict[str, Product], discount: float):
        self.engine = engine
        self.transaction = transaction
        self._lines = lines
        self._products = products
        self._discount = discount
        self.state = 'pending'

    @property
    def pending(self) -> bool:
        return self.state == 'pending'

    def confirm(self) -> FinalizedTransaction:
        self._resolve('confirmed')
        logger.info(f"Checkout {self.transaction.transaction_number} confirmed")
        return self.transaction

    def rollback(self):
        self._resolve('rolled_back')
        self.engine._restore(self._lines, self._products, self._discount)
        logger.info(f"Checkout {self.transaction.transaction_number} rolled back")

    def _resolve(self, state: str):
        if not self.pending:
            raise RuntimeError(f"Checkout {self.transaction.transaction_number} already {self.state}")
        self.state = state


class CartEngine:
    """In-memory cart with tier pricing and advisory stock ceilings"""

    def __init__(self, catalog, clock: Optional[Callable[[], datetime]] = None):
        self.catalog = catalog
        self.clock = clock or datetime.now
        self._lines: Dict[str, CartLine] = {}
        # Product as last seen per line; used when the catalog no longer has it
        self._products: Dict[str, Product] = {}
        self.discount_amount = 0.0

    # -- queries --

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def line_for(self, product_id: str) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def is_empty(self) -> bool:
        return not self._lines

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def totals(self) -> float:
        return sum(line.total_price for line in self._lines.values())

    def points_earned(self) -> int:
        return sum(line.points for line in self._lines.values())

    def change_due(self, paid_amount: float) -> float:
        return max(0.0, paid_amount - self.totals())

    def amount_due(self) -> float:
        return max(0.0, self.totals() - self.discount_amount)

    # -- mutations --

    def add_line(self, product: Product, qty: int = 1) -> CartLine:
        qty = _check_quantity(qty)
        existing = self._lines.get(product.id)
        existing_qty = existing.quantity if existing else 0
        merged = existing_qty + qty
        if merged > product.current_stock:
            raise InsufficientStock(
                product.id, merged, product.current_stock,
                max(0, product.current_stock - existing_qty),
            )
        line = self._build_line(product, merged)
        self._lines[product.id] = line
        self._products[product.id] = product
        logger.debug(f"Cart: {product.name} x{merged} @ {line.unit_price}")
        return line

    def update_quantity(self, product_id: str, qty: int) -> Optional[CartLine]:
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise InvalidQuantity(f"Quantity must be a whole number, got {qty!r}")
        if qty <= 0:
            self.remove_line(product_id)
            return None
        current = self._lines.get(product_id)
        if current is None:
            return None
        product = self.catalog.get_product(product_id) or self._products.get(product_id)
        if product is None:
            product = self._product_from_line(current)
        if qty > product.current_stock:
            raise InsufficientStock(
                product_id, qty, product.current_stock,
                max(0, product.current_stock - current.quantity),
            )
        line = self._build_line(product, qty)
        self._lines[product_id] = line
        self._products[product_id] = product
        return line

    def remove_line(self, product_id: str):
        self._lines.pop(product_id, None)
        self._products.pop(product_id, None)

    def set_discount(self, amount: float):
        if amount < 0:
            raise ValueError("Discount cannot be negative")
        self.discount_amount = float(amount)

    def clear(self):
        self._lines = {}
        self._products = {}
        self.discount_amount = 0.0

    def load_lines(self, lines: List[CartLine]):
        """Replace the cart with previously held lines, as they were held"""
        self.clear()
        for line in lines:
            self._lines[line.product_id] = line
            product = self.catalog.get_product(line.product_id)
            if product is not None:
                self._products[line.product_id] = product

    def stock_issues(self) -> List[Dict]:
        """Lines whose quantity exceeds the catalog's current stock (no clamping)"""
        issues = []
        for line in self._lines.values():
            product = self.catalog.get_product(line.product_id)
            available = product.current_stock if product else 0
            if line.quantity > available:
                issues.append({
                    'product_id': line.product_id,
                    'name': line.name,
                    'quantity': line.quantity,
                    'available': available,
                })
        return issues

    def checkout(self, customer: Optional[Dict] = None, payment_type: str = PAYMENT_CASH,
                 payment_amount: float = 0, transfer_reference: Optional[str] = None,
                 points_used: int = 0, cashier_id: Optional[str] = None,
                 terminal_id: Optional[str] = None) -> Checkout:
        """Build the finalized transaction and tentatively clear the cart"""
        check_payment_type(payment_type)
        if isinstance(points_used, bool) or not isinstance(points_used, int) or points_used < 0:
            raise ValueError(f"Points used must be a whole number >= 0, got {points_used!r}")
        if self.is_empty():
            raise EmptyCartError("Cart is empty")

        now = self.clock()
        total = self.amount_due()
        change = max(0.0, payment_amount - total) if payment_type == PAYMENT_CASH else 0.0
        due_date = None
        if payment_type == PAYMENT_CREDIT:
            due_date = (now + timedelta(days=CREDIT_TERM_DAYS)).date().isoformat()

        transaction = FinalizedTransaction(
            transaction_number=f"POS-{unix_millis(now)}",
            lines=self.lines,
            customer=customer,
            payment_type=payment_type,
            payment_amount=payment_amount,
            change_amount=change,
            subtotal=self.totals(),
            discount_amount=self.discount_amount,
            total=total,
            points_earned=self.points_earned() if customer else 0,
            created_at=now.isoformat(),
            transfer_reference=transfer_reference,
            due_date=due_date,
            points_used=points_used,
            cashier_id=cashier_id,
            terminal_id=terminal_id,
        )
        checkout = Checkout(self, transaction, dict(self._lines), dict(self._products),
                            self.discount_amount)
        self.clear()
        logger.info(f"Checkout {transaction.transaction_number}: {len(transaction.lines)} lines, total {total:.2f}")
        return checkout

    def _restore(self, lines: Dict[str, CartLine], products: Dict[str, Product], discount: float):
        self._lines = dict(lines)
        self._products = dict(products)
        self.discount_amount = discount

    @staticmethod
    def _product_from_line(line: CartLine) -> Product:
        # Recalled line for a product the catalog dropped; rebuild it from the line's price snapshot
        base_price = line.base_price
        if base_price is None:
            if line.applied_variant is not None:
                raise UnknownBasePrice(line.product_id)
            base_price = line.unit_price
        return Product(
            id=line.product_id,
            name=line.name,
            selling_price=base_price,
            current_stock=line.stock_ceiling,
            price_variants=list(line.price_variants),
            image_url=line.image_url,
            loyalty_points=line.loyalty_points_per_unit,
        )

    @staticmethod
    def _build_line(product: Product, quantity: int) -> CartLine:
        variant = select_price_variant(product, quantity)
        return CartLine(
            id=product.id,
            product_id=product.id,
            name=product.name,
            image_url=product.image_url,
            quantity=quantity,
            unit_price=variant.price if variant else product.selling_price,
            stock_ceiling=product.current_stock,
            applied_variant=variant,
            loyalty_points_per_unit=product.loyalty_points,
            base_price=product.selling_price,
            price_variants=tuple(product.price_variants),
        )
