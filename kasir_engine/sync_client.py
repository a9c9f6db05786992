# Sync Client - transaction sinks for the Kasir POS engine
# Delivers finalized sales to the store backend

import requests
import logging
from typing import Dict, Any


logger = logging.getLogger(__name__)


class HttpTransactionSink:
    """REST client posting finalized transactions to the backend.

    One attempt per call; retry and ordering belong to the sync controller.
    """

    def __init__(self, base_url: str, api_key: str = None, timeout: int = 30,
                 transactions_path: str = '/api/pos/transactions'):
        self.base_url = base_url.rstrip('/')
        self.transactions_path = transactions_path if transactions_path.startswith('/') else '/' + transactions_path
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()

        if api_key:
            self.session.headers.update({'Authorization': f'Bearer {api_key}'})

        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'Kasir-POS-Engine/1.0'
        })

    def submit(self, payload: Dict) -> Dict[str, Any]:
        """Post one transaction; failures come back as a result dict, never raised"""
        endpoint = f"{self.base_url}{self.transactions_path}"
        number = payload.get('transaction_number')

        try:
            response = self.session.post(endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Timeout posting {number}")
            return {'success': False, 'error': 'Timeout', 'status_code': 0}
        except requests.exceptions.ConnectionError:
            logger.warning(f"Connection error posting {number}")
            return {'success': False, 'error': 'Connection error', 'status_code': 0}
        except requests.exceptions.RequestException as e:
            logger.error(f"Unexpected error posting {number}: {e}")
            return {'success': False, 'error': str(e), 'status_code': 0}

        if 200 <= response.status_code < 300:
            logger.info(f"Transaction {number} synced successfully")
            return {'success': True, 'status_code': response.status_code}

        if response.status_code == 401:
            logger.error("Authentication failed - check API key")
            error = 'Authentication failed'
        elif response.status_code == 400:
            logger.error(f"Bad request for {number}: {response.text}")
            error = response.text or 'Bad request'
        else:
            logger.warning(f"Server error {response.status_code} for {number}")
            error = f"HTTP {response.status_code}"
        return {'success': False, 'error': error, 'status_code': response.status_code}

    def check_health(self) -> bool:
        """Check if server is reachable"""
        try:
            response = self.session.get(f"{self.base_url}/api/health", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False


class StubTransactionSink:
    """Always-succeeding sink for running without a server"""

    def __init__(self, *args, **kwargs):
        self.sync_count = 0
        self.submitted = []

    def submit(self, payload: Dict) -> Dict[str, Any]:
        self.sync_count += 1
        self.submitted.append(payload)
        logger.info(f"[STUB] Synced transaction {payload.get('transaction_number')}")
        return {'success': True, 'status_code': 200}

    def check_health(self) -> bool:
        return True
