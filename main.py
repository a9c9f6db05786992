#!/usr/bin/env python3
"""
Kasir POS Engine - till process with a local JSON control endpoint
"""

import json
import logging
from http.server import HTTPServer, BaseHTTPRequestHandler
from urllib.parse import urlparse, parse_qs

from kasir_engine.catalog import Catalog
from kasir_engine.cart_engine import CartEngine
from kasir_engine.config import load_config
from kasir_engine.errors import InsufficientStock, KasirError
from kasir_engine.hold_queue import HoldQueue
from kasir_engine.logging_config import setup_logging
from kasir_engine.offline_queue import OfflineQueue
from kasir_engine.storage import SqliteStore
from kasir_engine.sync_client import HttpTransactionSink, StubTransactionSink
from kasir_engine.sync_controller import RetryPolicy, SyncController
from kasir_engine import voice


logger = logging.getLogger(__name__)


class POSTerminal:
    """One till: cart, hold queue and offline-safe sync wired from config"""

    def __init__(self, config=None, store=None, catalog=None, sink=None):
        config = config or load_config()
        self.config = config
        self.terminal_id = config.get('terminal_id')
        self.store = store or SqliteStore(config.get('db_path'))
        self.catalog = catalog if catalog is not None else Catalog.load_json(config.get('catalog_path'))
        self.cart = CartEngine(self.catalog)
        self.holds = HoldQueue(self.store)

        server_url = config.get('server_url')
        if sink is None:
            if server_url:
                sink = HttpTransactionSink(
                    server_url,
                    api_key=config.get('api_key'),
                    timeout=config.get('sync_timeout', 30),
                    transactions_path=config.get('transactions_path', '/api/pos/transactions'),
                )
            else:
                sink = StubTransactionSink()
        self.sink = sink
        self.sync = SyncController(
            OfflineQueue(self.store),
            self.sink,
            retry_policy=RetryPolicy(
                base_delay=float(config.get('retry_base_delay', 5)),
                max_delay=float(config.get('retry_max_delay', 300)),
            ),
        )

    def start(self):
        report = self.sync.on_startup()
        logger.info(f"Till {self.terminal_id} ready: {report}")
        return report

    def stop(self):
        self.sync.on_shutdown()

    def add_by_voice(self, text: str):
        command, product = voice.resolve(text, self.catalog)
        result = {
            'text': text,
            'quantity': command.quantity,
            'product_name': command.product_name,
            'recognized': product is not None,
        }
        if product is None:
            return result
        result['product_id'] = product.id
        try:
            line = self.cart.add_line(product, command.quantity)
            result['line'] = line.to_dict()
        except InsufficientStock as e:
            result['error'] = str(e)
            result['max_addable'] = e.max_addable
        except KasirError as e:
            # Bad catalog data for this product, e.g. duplicate tier thresholds
            result['error'] = str(e)
        return result

    def finalize(self, customer=None, payment_type='cash', payment_amount=0, transfer_reference=None,
                 points_used=0, cashier_id=None):
        """Checkout, buffer locally, then try to sync. The sale is queued before the cart is gone."""
        checkout = self.cart.checkout(
            customer, payment_type, payment_amount, transfer_reference,
            points_used=points_used, cashier_id=cashier_id, terminal_id=self.terminal_id,
        )
        try:
            self.sync.enqueue(checkout.transaction)
        except Exception:
            checkout.rollback()
            raise
        transaction = checkout.confirm()
        if self.sync.online:
            self.sync.sync()
        return transaction

    def hold(self, customer=None, payment_type='cash', payment_amount=0,
             transfer_reference=None, note=None):
        held = self.holds.hold_transaction(
            self.cart.lines, customer, payment_type, payment_amount, transfer_reference, note
        )
        if held is not None:
            self.cart.clear()
        return held

    def recall(self, held_id: str):
        """Resume a held cart; returns the held record plus any stock warnings"""
        held = self.holds.recall_transaction(held_id)
        if held is None:
            return None, []
        self.cart.load_lines(held.lines)
        return held, self.cart.stock_issues()

    def get_status(self):
        return {
            'terminal_id': self.terminal_id,
            'cart': {
                'lines': [line.to_dict() for line in self.cart.lines],
                'total': self.cart.totals(),
                'points': self.cart.points_earned(),
            },
            'held_count': self.holds.held_count,
            'sync': self.sync.status(),
        }


terminal = None


class Handler(BaseHTTPRequestHandler):
    def _send_json(self, payload, status=200):
        body = json.dumps(payload, default=str).encode()
        self.send_response(status)
        self.send_header('Content-type', 'application/json')
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        url = urlparse(self.path)
        query = parse_qs(url.query)
        if url.path == '/status':
            self._send_json(terminal.get_status())
        elif url.path == '/sync':
            report = terminal.sync.sync()
            self._send_json({'synced': report.synced, 'remaining': report.remaining,
                             'blocked': report.blocked, 'error': report.error,
                             'skipped': report.skipped})
        elif url.path == '/online':
            terminal.sync.connectivity_restored()
            self._send_json(terminal.sync.status())
        elif url.path == '/offline':
            terminal.sync.connectivity_lost()
            self._send_json(terminal.sync.status())
        elif url.path == '/held':
            self._send_json([h.to_dict() for h in terminal.holds.held_transactions])
        elif url.path == '/voice':
            text = (query.get('text') or [''])[0]
            self._send_json(terminal.add_by_voice(text))
        elif url.path == '/finalize':
            try:
                tx = terminal.finalize(
                    payment_type=(query.get('payment_type') or ['cash'])[0],
                    payment_amount=float((query.get('paid') or ['0'])[0]),
                )
                self._send_json(tx.to_payload())
            except (KasirError, ValueError) as e:
                self._send_json({'error': str(e)}, status=400)
        else:
            self._send_json({'error': 'not found'}, status=404)

    def log_message(self, format, *args):
        pass


def main():
    global terminal
    setup_logging()
    config = load_config()
    terminal = POSTerminal(config)
    terminal.start()

    port = int(config.get('status_port', 8080))
    server = HTTPServer(('127.0.0.1', port), Handler)
    logger.info(f"Control endpoint on http://127.0.0.1:{port}/status")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Stopping...")
        server.shutdown()
    finally:
        terminal.stop()


if __name__ == '__main__':
    main()
