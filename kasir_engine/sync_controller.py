# Sync Controller - connectivity state and ordered replay for the Kasir POS engine
# Flushes the offline queue to the transaction sink oldest-first

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .offline_queue import OfflineQueue
from .models import PendingTransaction


logger = logging.getLogger(__name__)


class SyncState(Enum):
    ONLINE_IDLE = 'online_idle'
    ONLINE_SYNCING = 'online_syncing'
    OFFLINE_BUFFERING = 'offline_buffering'


@dataclass(frozen=True)
class RetryPolicy:
    """Capped exponential backoff for automatic retries of the head entry"""
    base_delay: float = 5.0
    max_delay: float = 300.0

    def delay_for(self, attempts: int) -> float:
        if attempts <= 0:
            return 0.0
        return min(self.max_delay, self.base_delay * (2 ** (attempts - 1)))


@dataclass
class SyncReport:
    synced: int = 0
    failed: int = 0
    remaining: int = 0
    blocked_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def blocked(self) -> bool:
        return self.blocked_id is not None


class SyncController:
    """
    Owns connectivity state and replays pending sales in strict order.

    A failing head entry stops the run and blocks everything behind it until
    it succeeds; nothing is ever submitted out of order.
    """

    def __init__(self, queue: OfflineQueue, sink, retry_policy: RetryPolicy = None,
                 clock: Optional[Callable[[], datetime]] = None, online: bool = True):
        self.queue = queue
        self.sink = sink
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock or datetime.now
        self.state = SyncState.ONLINE_IDLE if online else SyncState.OFFLINE_BUFFERING
        self.last_report: Optional[SyncReport] = None

    @property
    def online(self) -> bool:
        return self.state != SyncState.OFFLINE_BUFFERING

    @property
    def pending_count(self) -> int:
        return self.queue.pending_count

    def enqueue(self, transaction) -> PendingTransaction:
        return self.queue.enqueue(transaction)

    def connectivity_lost(self):
        if self.state != SyncState.OFFLINE_BUFFERING:
            logger.warning(f"Connectivity lost, buffering sales locally ({self.pending_count} pending)")
        self.state = SyncState.OFFLINE_BUFFERING

    def connectivity_restored(self, auto_sync: bool = True) -> Optional[SyncReport]:
        was_offline = not self.online
        if was_offline:
            self.state = SyncState.ONLINE_IDLE
            logger.info(f"Connectivity restored, {self.pending_count} transactions pending")
        if auto_sync and self.pending_count:
            return self.sync()
        return None

    def sync(self) -> SyncReport:
        """Submit pending entries oldest-first, stopping at the first failure"""
        if not self.online or self.state == SyncState.ONLINE_SYNCING:
            return SyncReport(remaining=self.pending_count, skipped=True)

        self.state = SyncState.ONLINE_SYNCING
        report = SyncReport()
        try:
            while True:
                entry = self.queue.head()
                if entry is None:
                    break
                result = self._submit(entry)
                if result.get('success'):
                    self.queue.remove_head(entry.id)
                    report.synced += 1
                    continue

                error = result.get('error') or 'Unknown error'
                failed = self.queue.record_failure(entry.id, error)
                report.failed += 1
                report.blocked_id = entry.id
                report.error = error
                logger.warning(
                    f"Sync blocked on {entry.payload.get('transaction_number', entry.id)} "
                    f"(attempt {failed.sync_attempts}): {error}"
                )
                break
        finally:
            if self.state == SyncState.ONLINE_SYNCING:
                self.state = SyncState.ONLINE_IDLE

        report.remaining = self.pending_count
        self.last_report = report
        if report.synced:
            logger.info(f"Synced {report.synced} transactions, {report.remaining} remaining")
        return report

    def _submit(self, entry: PendingTransaction) -> Dict[str, Any]:
        try:
            return self.sink.submit(entry.payload)
        except Exception as e:
            logger.warning(f"Transaction sink raised for {entry.id}: {e}")
            return {'success': False, 'error': str(e)}

    def next_retry_at(self) -> Optional[datetime]:
        """When the blocked head becomes eligible for an automatic retry"""
        head = self.queue.head()
        if head is None:
            return None
        if head.sync_attempts == 0 or not head.last_attempt_at:
            return self.clock()
        last = datetime.fromisoformat(head.last_attempt_at)
        return last + timedelta(seconds=self.retry_policy.delay_for(head.sync_attempts))

    def tick(self) -> Optional[SyncReport]:
        """Periodic automatic sync; honours the backoff of a blocked head"""
        if not self.online or not self.pending_count:
            return None
        due = self.next_retry_at()
        if due is not None and self.clock() < due:
            return None
        return self.sync()

    def status(self) -> Dict[str, Any]:
        """Snapshot for the operator-facing pending indicator"""
        head = self.queue.head()
        blocked = head is not None and head.sync_attempts > 0
        next_retry = self.next_retry_at() if blocked else None
        return {
            'state': self.state.value,
            'online': self.online,
            'pending_count': self.pending_count,
            'blocked': blocked,
            'head_id': head.id if head else None,
            'head_attempts': head.sync_attempts if head else 0,
            'last_error': head.last_error if head else None,
            'next_retry_at': next_retry.isoformat() if next_retry else None,
        }

    def on_startup(self) -> Dict[str, Any]:
        """Report leftovers from the previous session and replay them when online"""
        report = {
            'started_at': self.clock().isoformat(),
            'pending_found': self.pending_count,
            'synced': 0,
            'remaining': self.pending_count,
        }
        if self.pending_count:
            logger.info(f"Found {self.pending_count} unsynced transactions to replay")
            if self.online:
                result = self.sync()
                report['synced'] = result.synced
                report['remaining'] = result.remaining
        return report

    def on_shutdown(self):
        if self.pending_count:
            logger.warning(f"Shutdown: {self.pending_count} transactions pending sync")
        else:
            logger.info("Shutdown: no transactions pending")
