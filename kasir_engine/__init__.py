# Kasir POS Engine
# Cart, hold/recall and offline-safe sync for a retail till

__version__ = '0.1.0'

from .models import (
    PriceVariant, Product, CartLine, HeldTransaction,
    PendingTransaction, VoiceCommand, FinalizedTransaction,
)
from .errors import (
    KasirError, InsufficientStock, InvalidQuantity,
    DuplicateVariantThreshold, EmptyCartError, StorageError, UnknownBasePrice,
)
from .catalog import Catalog
from .cart_engine import CartEngine, Checkout, select_price_variant, effective_price
from .storage import MemoryStore, SqliteStore
from .hold_queue import HoldQueue
from .offline_queue import OfflineQueue
from .sync_controller import SyncController, SyncState, SyncReport, RetryPolicy
from .sync_client import HttpTransactionSink, StubTransactionSink
from . import voice

__all__ = [
    'PriceVariant',
    'Product',
    'CartLine',
    'HeldTransaction',
    'PendingTransaction',
    'VoiceCommand',
    'FinalizedTransaction',
    'KasirError',
    'InsufficientStock',
    'InvalidQuantity',
    'DuplicateVariantThreshold',
    'EmptyCartError',
    'StorageError',
    'UnknownBasePrice',
    'Catalog',
    'CartEngine',
    'Checkout',
    'select_price_variant',
    'effective_price',
    'MemoryStore',
    'SqliteStore',
    'HoldQueue',
    'OfflineQueue',
    'SyncController',
    'SyncState',
    'SyncReport',
    'RetryPolicy',
    'HttpTransactionSink',
    'StubTransactionSink',
    'voice',
]
