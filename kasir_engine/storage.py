# Local key-value storage for the Kasir POS engine
# Hold and offline queues persist one JSON blob per key through this interface

import sqlite3
import json
import threading
from datetime import datetime
from typing import Any, Dict

from .errors import StorageError


class MemoryStore:
    """Dict-backed store for tests and throwaway sessions"""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.data.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

    def set(self, key: str, value: Any):
        try:
            self.data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize value for {key}: {e}") from e


class SqliteStore:
    """SQLite-backed key-value store, durable across restarts"""

    DB_PATH = "kasir_pos.db"

    def __init__(self, db_path: str = None):
        self.db_path = db_path or self.DB_PATH
        self.lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        """Initialize database schema"""
        with self.lock:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS state (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TEXT
                    )
                ''')
                conn.commit()
            finally:
                conn.close()

    def get(self, key: str, default: Any = None) -> Any:
        """Load a value; unreadable rows read as ``default``"""
        with self.lock:
            try:
                conn = sqlite3.connect(self.db_path)
                try:
                    row = conn.execute('SELECT value FROM state WHERE key = ?', (key,)).fetchone()
                finally:
                    conn.close()
            except sqlite3.Error:
                return default

        if row is None or row[0] is None:
            return default
        try:
            return json.loads(row[0])
        except ValueError:
            return default

    def set(self, key: str, value: Any):
        """Overwrite the value stored under ``key``"""
        try:
            blob = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize value for {key}: {e}") from e

        with self.lock:
            try:
                conn = sqlite3.connect(self.db_path)
                try:
                    conn.execute('''
                        INSERT OR REPLACE INTO state (key, value, updated_at)
                        VALUES (?, ?, ?)
                    ''', (key, blob, datetime.now().isoformat()))
                    conn.commit()
                finally:
                    conn.close()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot write {key} to {self.db_path}: {e}") from e
