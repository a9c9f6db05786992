# Data models for the Kasir POS engine
# Products, cart lines, held and pending transactions

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


PAYMENT_CASH = 'cash'
PAYMENT_CREDIT = 'credit'
PAYMENT_TRANSFER = 'transfer'
PAYMENT_TYPES = (PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_TRANSFER)

# Credit sales are due one week after the sale
CREDIT_TERM_DAYS = 7


def check_payment_type(payment_type: str) -> str:
    if payment_type not in PAYMENT_TYPES:
        raise ValueError(f"Unknown payment type: {payment_type!r}")
    return payment_type


def unix_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@dataclass
class PriceVariant:
    """Quantity-threshold price rule"""
    id: str
    minimum_quantity: int
    price: float
    is_active: bool = True
    name: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PriceVariant':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name') or '',
            minimum_quantity=int(data.get('minimum_quantity', 0)),
            price=float(data.get('price', 0)),
            is_active=bool(data.get('is_active', True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Product:
    """Catalog product record"""
    id: str
    name: str
    selling_price: float
    current_stock: int
    price_variants: List[PriceVariant] = field(default_factory=list)
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    loyalty_points: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            selling_price=float(data.get('selling_price', 0)),
            current_stock=int(data.get('current_stock', 0)),
            price_variants=[PriceVariant.from_dict(v) for v in data.get('price_variants') or []],
            barcode=data.get('barcode'),
            image_url=data.get('image_url'),
            loyalty_points=int(data.get('loyalty_points') or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CartLine:
    """A single product line in the working sale.

    Lines are immutable; the cart engine swaps in a new line whenever the
    quantity changes so the tier price is always recomputed.
    """
    id: str
    product_id: str
    name: str
    quantity: int
    unit_price: float
    stock_ceiling: int
    image_url: Optional[str] = None
    applied_variant: Optional[PriceVariant] = None
    loyalty_points_per_unit: int = 0
    # Product pricing as of the last mutation, so the line can be re-tiered offline
    base_price: Optional[float] = None
    price_variants: Tuple[PriceVariant, ...] = ()

    @property
    def total_price(self) -> float:
        return self.quantity * self.unit_price

    @property
    def points(self) -> int:
        return self.quantity * self.loyalty_points_per_unit

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'product_id': self.product_id,
            'name': self.name,
            'image_url': self.image_url,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
            'stock_ceiling': self.stock_ceiling,
            'applied_variant': self.applied_variant.to_dict() if self.applied_variant else None,
            'loyalty_points': self.loyalty_points_per_unit,
            'base_price': self.base_price,
            'price_variants': [v.to_dict() for v in self.price_variants],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        variant = data.get('applied_variant') or data.get('price_variant')
        base_price = data.get('base_price')
        return cls(
            id=str(data.get('id') or data['product_id']),
            product_id=str(data['product_id']),
            name=data.get('name') or '',
            image_url=data.get('image_url'),
            quantity=int(data['quantity']),
            unit_price=float(data['unit_price']),
            stock_ceiling=int(data.get('stock_ceiling', data['quantity'])),
            applied_variant=PriceVariant.from_dict(variant) if variant else None,
            loyalty_points_per_unit=int(data.get('loyalty_points') or 0),
            base_price=float(base_price) if base_price is not None else None,
            price_variants=tuple(PriceVariant.from_dict(v) for v in data.get('price_variants') or []),
        )


@dataclass
class HeldTransaction:
    """Suspended cart waiting to be recalled"""
    id: str
    lines: List[CartLine]
    customer: Optional[Dict[str, Any]]
    payment_type: str
    payment_amount: float
    transfer_reference: Optional[str]
    held_at: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'cart': [line.to_dict() for line in self.lines],
            'customer': self.customer,
            'payment_type': self.payment_type,
            'payment_amount': self.payment_amount,
            'transfer_reference': self.transfer_reference,
            'held_at': self.held_at,
            'note': self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HeldTransaction':
        return cls(
            id=data['id'],
            lines=[CartLine.from_dict(line) for line in data['cart']],
            customer=data.get('customer'),
            payment_type=data.get('payment_type', PAYMENT_CASH),
            payment_amount=float(data.get('payment_amount') or 0),
            transfer_reference=data.get('transfer_reference'),
            held_at=data['held_at'],
            note=data.get('note'),
        )


@dataclass
class PendingTransaction:
    """Finalized sale waiting for server acknowledgment"""
    id: str
    payload: Dict[str, Any]
    enqueued_at: str
    sync_attempts: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingTransaction':
        return cls(
            id=data['id'],
            payload=dict(data['payload']),
            enqueued_at=data['enqueued_at'],
            sync_attempts=int(data.get('sync_attempts') or 0),
            last_error=data.get('last_error'),
            last_attempt_at=data.get('last_attempt_at'),
        )


@dataclass(frozen=True)
class VoiceCommand:
    """Parsed spoken or typed product request"""
    quantity: int
    product_name: str
    original_text: str


@dataclass
class FinalizedTransaction:
    """Completed sale, ready for the transaction sink and receipt printing"""
    transaction_number: str
    lines: List[CartLine]
    customer: Optional[Dict[str, Any]]
    payment_type: str
    payment_amount: float
    change_amount: float
    subtotal: float
    discount_amount: float
    total: float
    points_earned: int
    created_at: str
    transfer_reference: Optional[str] = None
    due_date: Optional[str] = None
    points_used: int = 0
    cashier_id: Optional[str] = None
    terminal_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Shape accepted by the transaction sink"""
        return {
            'transaction_number': self.transaction_number,
            'lines': [line.to_dict() for line in self.lines],
            'customer': self.customer,
            'customer_id': (self.customer or {}).get('id'),
            'payment_type': self.payment_type,
            'payment_amount': self.payment_amount,
            'change_amount': self.change_amount,
            'transfer_reference': self.transfer_reference,
            'subtotal': self.subtotal,
            'discount_amount': self.discount_amount,
            'total': self.total,
            'points_earned': self.points_earned,
            'points_used': self.points_used,
            'cashier_id': self.cashier_id,
            'terminal_id': self.terminal_id,
            'is_credit': self.payment_type == PAYMENT_CREDIT,
            'due_date': self.due_date,
            'created_at': self.created_at,
        }
