# Hold Queue - suspended carts for the Kasir POS engine
# Lets the cashier park a sale and serve the next customer

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from .errors import StorageError
from .models import PAYMENT_CASH, CartLine, HeldTransaction, check_payment_type, unix_millis

logger = logging.getLogger(__name__)

HELD_STORAGE_KEY = 'pos_held_transactions'


class HoldQueue:
    """Persisted, append-only list of held transactions.

    The whole list is rewritten under a single key on every mutation. Entries
    are kept in the order they were held; callers sort for display.
    """

    def __init__(self, store, key: str = HELD_STORAGE_KEY,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.key = key
        self.clock = clock or datetime.now

    def _load(self) -> List[HeldTransaction]:
        raw = self.store.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning(f"Held transactions under {self.key} are not a list, ignoring")
            return []
        held = []
        for item in raw:
            try:
                entry = HeldTransaction.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable held entry: {e}")
                continue
            if not entry.lines:
                logger.warning(f"Dropping held entry {entry.id} with no lines")
                continue
            held.append(entry)
        return held

    def _save(self, held: List[HeldTransaction]):
        try:
            self.store.set(self.key, [h.to_dict() for h in held])
        except StorageError as e:
            logger.error(f"Could not persist held transactions: {e}")
            raise

    @property
    def held_transactions(self) -> List[HeldTransaction]:
        return self._load()

    @property
    def held_count(self) -> int:
        return len(self._load())

    def get(self, held_id: str) -> Optional[HeldTransaction]:
        return next((h for h in self._load() if h.id == held_id), None)

    def hold_transaction(self, lines: Sequence[CartLine], customer: Optional[Dict] = None,
                         payment_type: str = PAYMENT_CASH, payment_amount: float = 0,
                         transfer_reference: Optional[str] = None,
                         note: Optional[str] = None) -> Optional[HeldTransaction]:
        """Park the cart; an empty cart is silently ignored and returns None"""
        if not lines:
            return None
        check_payment_type(payment_type)

        held = self._load()
        now = self.clock()
        taken = {h.id for h in held}
        stamp = now
        held_id = f"HOLD-{unix_millis(stamp)}"
        while held_id in taken:
            stamp += timedelta(milliseconds=1)
            held_id = f"HOLD-{unix_millis(stamp)}"

        entry = HeldTransaction(
            id=held_id,
            lines=list(lines),
            customer=customer,
            payment_type=payment_type,
            payment_amount=payment_amount,
            transfer_reference=transfer_reference,
            held_at=now.isoformat(),
            note=note,
        )
        held.append(entry)
        self._save(held)
        logger.info(f"Held transaction {held_id} ({len(entry.lines)} lines)")
        return entry

    def recall_transaction(self, held_id: str) -> Optional[HeldTransaction]:
        """
        Remove and return a held transaction.
        Stock is not re-checked here; the caller decides before resuming.
        """
        held = self._load()
        match = next((h for h in held if h.id == held_id), None)
        if match is None:
            return None
        self._save([h for h in held if h.id != held_id])
        logger.info(f"Recalled transaction {held_id}")
        return match

    def delete_held_transaction(self, held_id: str) -> bool:
        held = self._load()
        remaining = [h for h in held if h.id != held_id]
        if len(remaining) == len(held):
            return False
        self._save(remaining)
        logger.info(f"Deleted held transaction {held_id}")
        return True

    def update_held_note(self, held_id: str, note: Optional[str]) -> bool:
        held = self._load()
        found = False
        for h in held:
            if h.id == held_id:
                h.note = note
                found = True
        if found:
            self._save(held)
        return found
