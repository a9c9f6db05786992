# Tests for the till wiring, config and logging setup

import json
import logging

from kasir_engine.catalog import Catalog
from kasir_engine.config import load_config, DEFAULT_CONFIG
from kasir_engine.logging_config import setup_logging
from kasir_engine.models import Product, PriceVariant
from kasir_engine.storage import MemoryStore
from main import POSTerminal


class FlakySink:
    def __init__(self):
        self.up = False
        self.received = []

    def submit(self, payload):
        if not self.up:
            return {'success': False, 'error': 'Connection error'}
        self.received.append(payload['transaction_number'])
        return {'success': True}


def make_terminal(sink):
    catalog = Catalog([
        Product('p1', 'Indomie Goreng', 3500.0, 10,
                price_variants=[PriceVariant('v5', 5, 3200.0)], loyalty_points=1),
        Product('p2', 'Aqua 600ml', 4000.0, 2),
    ])
    return POSTerminal(config=dict(DEFAULT_CONFIG), store=MemoryStore(), catalog=catalog, sink=sink)


class TestPOSTerminal:
    """End-to-end flows through the public engine surface"""

    def test_voice_add_and_finalize_offline(self):
        sink = FlakySink()
        till = make_terminal(sink)
        till.sync.connectivity_lost()

        result = till.add_by_voice("beli lima indomie")
        assert result['recognized'] is True
        assert result['line']['unit_price'] == 3200.0

        tx = till.finalize(payment_amount=20000)
        assert tx.total == 16000.0
        assert till.cart.is_empty()
        assert till.sync.pending_count == 1

        sink.up = True
        till.sync.connectivity_restored()
        assert till.sync.pending_count == 0
        assert sink.received == [tx.transaction_number]

    def test_voice_insufficient_stock(self):
        till = make_terminal(FlakySink())
        result = till.add_by_voice("tiga aqua")
        assert result['max_addable'] == 2
        assert till.cart.is_empty()

    def test_voice_unrecognized(self):
        till = make_terminal(FlakySink())
        assert till.add_by_voice("dua sabun")['recognized'] is False

    def test_hold_and_recall(self):
        till = make_terminal(FlakySink())
        assert till.hold() is None

        till.add_by_voice("dua aqua")
        held = till.hold(note='balik lagi')
        assert till.cart.is_empty()
        assert till.get_status()['held_count'] == 1

        recalled, issues = till.recall(held.id)
        assert recalled.note == 'balik lagi'
        assert issues == []
        assert till.cart.line_for('p2').quantity == 2
        assert till.recall(held.id) == (None, [])

    def test_finalize_stamps_terminal_and_cashier(self):
        sink = FlakySink()
        till = make_terminal(sink)
        till.sync.connectivity_lost()
        till.add_by_voice("dua indomie")

        tx = till.finalize(customer={'id': 'c1'}, payment_amount=10000,
                           points_used=5, cashier_id='kasir-01')

        payload = till.sync.queue.entries[0].payload
        assert payload['terminal_id'] == DEFAULT_CONFIG['terminal_id']
        assert payload['cashier_id'] == 'kasir-01'
        assert payload['points_used'] == 5
        assert tx.cashier_id == 'kasir-01'

    def test_voice_reports_bad_tier_data(self):
        """Duplicate active thresholds come back as an error, not an exception"""
        till = make_terminal(FlakySink())
        till.catalog.upsert(Product('p3', 'Gula Pasir', 15000.0, 10, price_variants=[
            PriceVariant('a', 5, 14000.0), PriceVariant('b', 5, 13500.0),
        ]))

        result = till.add_by_voice("satu gula")

        assert result['recognized'] is True
        assert 'error' in result
        assert till.cart.is_empty()


class TestConfig:
    def test_defaults_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv('KASIR_SERVER_URL', raising=False)
        cfg = load_config(tmp_path / 'nope.json')
        assert cfg['retry_base_delay'] == 5

    def test_file_and_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'terminal_id': 'till-9', 'server_url': 'http://a'}))
        monkeypatch.setenv('KASIR_SERVER_URL', 'http://b')

        cfg = load_config(path)

        assert cfg['terminal_id'] == 'till-9'
        assert cfg['server_url'] == 'http://b'

    def test_broken_file_falls_back(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{not json')
        assert load_config(path)['terminal_id'] == DEFAULT_CONFIG['terminal_id']


class TestLogging:
    def test_alert_callback_on_error(self, tmp_path):
        alerts = []
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        setup_logging(tmp_path / 'pos.log', console=False,
                      alert_callback=lambda msg, level: alerts.append(level))
        try:
            logging.getLogger('kasir_engine.test').warning('just a warning')
            logging.getLogger('kasir_engine.test').error('disk full')
            assert alerts == ['ERROR']
            assert (tmp_path / 'pos.log').exists()
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
                h.close()
            for h in saved_handlers:
                root.addHandler(h)
            root.setLevel(saved_level)


class TestCatalog:
    def test_load_json_rows(self, tmp_path):
        path = tmp_path / 'catalog.json'
        path.write_text(json.dumps([{
            'id': 7, 'name': 'Kopi Kapal Api', 'selling_price': 1500, 'current_stock': 40,
            'barcode': '8991002101630',
            'price_variants': [{'id': 'v', 'minimum_quantity': 10, 'price': 1400, 'is_active': True}],
        }]))

        catalog = Catalog.load_json(path)

        product = catalog.get_product('7')
        assert product.current_stock == 40
        assert product.price_variants[0].minimum_quantity == 10

    def test_missing_or_broken_file_is_empty(self, tmp_path):
        assert len(Catalog.load_json(tmp_path / 'none.json')) == 0
        broken = tmp_path / 'broken.json'
        broken.write_text('[{"id": ')
        assert len(Catalog.load_json(broken)) == 0
