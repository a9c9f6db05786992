# Offline Queue - local buffer of finalized sales for the Kasir POS engine
# Entries leave the queue only after the transaction sink confirms them

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from .errors import StorageError
from .models import FinalizedTransaction, PendingTransaction, unix_millis

logger = logging.getLogger(__name__)

OFFLINE_STORAGE_KEY = 'pos_offline_transactions'


class OfflineQueue:
    """FIFO of pending transactions, persisted as one JSON array"""

    def __init__(self, store, key: str = OFFLINE_STORAGE_KEY,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.key = key
        self.clock = clock or datetime.now
        self._entries: List[PendingTransaction] = self._load()

    def _load(self) -> List[PendingTransaction]:
        raw = self.store.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning(f"Offline queue under {self.key} is not a list, starting empty")
            return []
        entries = []
        for item in raw:
            try:
                entries.append(PendingTransaction.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable offline entry: {e}")
        return entries

    def _save(self):
        # The in-memory list stays authoritative if the write fails
        try:
            self.store.set(self.key, [e.to_dict() for e in self._entries])
        except StorageError as e:
            logger.error(f"Could not persist offline queue ({len(self._entries)} pending): {e}")

    @property
    def entries(self) -> List[PendingTransaction]:
        return list(self._entries)

    @property
    def pending_count(self) -> int:
        return len(self._entries)

    def head(self) -> Optional[PendingTransaction]:
        return self._entries[0] if self._entries else None

    def enqueue(self, transaction) -> PendingTransaction:
        """Append a finalized sale with zero sync attempts; never raises on storage errors"""
        if isinstance(transaction, FinalizedTransaction):
            payload: Dict[str, Any] = transaction.to_payload()
        else:
            payload = dict(transaction)

        now = self.clock()
        entry = PendingTransaction(
            id=f"offline_{unix_millis(now)}_{uuid4().hex[:9]}",
            payload=payload,
            enqueued_at=now.isoformat(),
        )
        self._entries.append(entry)
        self._save()
        logger.info(f"Queued {payload.get('transaction_number', entry.id)} for sync ({len(self._entries)} pending)")
        return entry

    def remove_head(self, entry_id: str) -> bool:
        """Drop the head entry once the sink has confirmed it"""
        if not self._entries or self._entries[0].id != entry_id:
            return False
        self._entries.pop(0)
        self._save()
        return True

    def record_failure(self, entry_id: str, error: str) -> Optional[PendingTransaction]:
        for entry in self._entries:
            if entry.id == entry_id:
                entry.sync_attempts += 1
                entry.last_error = error
                entry.last_attempt_at = self.clock().isoformat()
                self._save()
                return entry
        return None
