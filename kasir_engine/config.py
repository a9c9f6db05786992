# Configuration loading for the Kasir POS engine
# config.json next to main.py, with environment overrides for deployment

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config.json'

DEFAULT_CONFIG: Dict[str, Any] = {
    'terminal_id': 'till-1',
    'db_path': 'kasir_pos.db',
    'catalog_path': 'catalog.json',
    # Empty server_url runs against the stub sink
    'server_url': '',
    'api_key': None,
    'transactions_path': '/api/pos/transactions',
    'sync_timeout': 30,
    'retry_base_delay': 5,
    'retry_max_delay': 300,
    'status_port': 8080,
}

ENV_OVERRIDES = {
    'KASIR_SERVER_URL': 'server_url',
    'KASIR_API_KEY': 'api_key',
    'KASIR_DB_PATH': 'db_path',
}


def load_config(path=None) -> Dict[str, Any]:
    """Defaults, then config.json, then environment variables"""
    path = Path(path or os.environ.get('KASIR_CONFIG') or CONFIG_PATH)
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read config {path}, using defaults: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.warning(f"Config {path} is not an object, using defaults")
            data = {}

    cfg = {**DEFAULT_CONFIG, **data}
    for env_name, key in ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            cfg[key] = os.environ[env_name]
    return cfg
