# Tests for the Hold Queue

from datetime import datetime

from kasir_engine.hold_queue import HoldQueue, HELD_STORAGE_KEY
from kasir_engine.models import CartLine
from kasir_engine.storage import MemoryStore


def make_line(product_id='p1', quantity=2, unit_price=3500.0):
    return CartLine(
        id=product_id,
        product_id=product_id,
        name='Indomie Goreng',
        quantity=quantity,
        unit_price=unit_price,
        stock_ceiling=20,
        loyalty_points_per_unit=1,
    )


class TestHoldQueue:
    """Hold, recall, delete and note updates"""

    def setup_method(self):
        self.store = MemoryStore()
        self.queue = HoldQueue(self.store, clock=lambda: datetime(2026, 3, 1, 10, 0, 0))

    def test_empty_hold_is_noop(self):
        assert self.queue.hold_transaction([]) is None
        assert self.queue.held_count == 0
        assert self.store.get(HELD_STORAGE_KEY) is None

    def test_hold_persists_snapshot(self):
        held = self.queue.hold_transaction([make_line()], customer={'id': 'c1'},
                                           payment_type='transfer', payment_amount=7000,
                                           transfer_reference='TRF-9', note='ambil dompet')

        assert held.id.startswith('HOLD-')
        assert held.held_at == '2026-03-01T10:00:00'
        stored = self.store.get(HELD_STORAGE_KEY)
        assert len(stored) == 1
        assert stored[0]['cart'][0]['total_price'] == 7000.0
        assert stored[0]['transfer_reference'] == 'TRF-9'

    def test_ids_unique_within_same_millisecond(self):
        first = self.queue.hold_transaction([make_line()])
        second = self.queue.hold_transaction([make_line('p2')])

        assert first.id != second.id
        assert [h.id for h in self.queue.held_transactions] == [first.id, second.id]

    def test_recall_removes_exactly_one(self):
        first = self.queue.hold_transaction([make_line()])
        self.queue.hold_transaction([make_line('p2')])

        recalled = self.queue.recall_transaction(first.id)

        assert recalled.id == first.id
        assert recalled.lines[0].quantity == 2
        assert self.queue.held_count == 1
        assert self.queue.get(first.id) is None

    def test_recall_unknown_id(self):
        self.queue.hold_transaction([make_line()])
        assert self.queue.recall_transaction('HOLD-0') is None
        assert self.queue.held_count == 1

    def test_delete(self):
        held = self.queue.hold_transaction([make_line()])
        assert self.queue.delete_held_transaction(held.id) is True
        assert self.queue.delete_held_transaction(held.id) is False
        assert self.queue.held_count == 0

    def test_update_note_only(self):
        held = self.queue.hold_transaction([make_line()], payment_amount=5000, note='lama')

        assert self.queue.update_held_note(held.id, 'baru') is True
        updated = self.queue.get(held.id)
        assert updated.note == 'baru'
        assert updated.payment_amount == 5000
        assert updated.lines == held.lines
        assert self.queue.update_held_note('HOLD-0', 'x') is False

    def test_survives_new_instance(self):
        held = self.queue.hold_transaction([make_line()])
        reopened = HoldQueue(self.store)
        assert reopened.get(held.id) is not None

    def test_corrupt_storage_reads_empty(self):
        self.store.data[HELD_STORAGE_KEY] = '{not json'
        assert self.queue.held_transactions == []

        self.store.set(HELD_STORAGE_KEY, [{'unexpected': True}])
        assert self.queue.held_count == 0

    def test_bad_entry_does_not_cost_the_good_ones(self):
        """One unreadable entry is skipped; the next save keeps the readable holds"""
        good = self.queue.hold_transaction([make_line()], note='simpan')
        stored = self.store.get(HELD_STORAGE_KEY)
        stored.append({'id': 'HOLD-x', 'cart': []})
        stored.append({'id': 'HOLD-y', 'cart': [], 'held_at': '2026-03-01T09:00:00'})
        self.store.set(HELD_STORAGE_KEY, stored)

        later = HoldQueue(self.store, clock=lambda: datetime(2026, 3, 1, 10, 5, 0))
        assert [h.id for h in later.held_transactions] == [good.id]

        newer = later.hold_transaction([make_line('p2')])

        ids = [entry['id'] for entry in self.store.get(HELD_STORAGE_KEY)]
        assert ids == [good.id, newer.id]
        assert later.get(good.id).note == 'simpan'
