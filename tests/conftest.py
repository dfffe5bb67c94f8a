import fnmatch
from datetime import datetime
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from bidding_aggregator.config.settings import AggregatorConfig
from bidding_aggregator.exceptions import ConcurrencyError
from bidding_aggregator.interfaces.bidding_store import BiddingStore
from bidding_aggregator.interfaces.procurement_data_source import NormalizedBiddingRecord


class FakeRedis:
    """Subconjunto do cliente redis usado pelo CacheService"""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def scan_iter(self, pattern):
        return [key for key in list(self.store) if fnmatch.fnmatch(key, pattern)]

    def info(self):
        return {'redis_version': '7.2.0', 'used_memory_human': '1.00M'}


class InMemoryBiddingStore(BiddingStore):

    def __init__(self, company: Optional[Dict[str, Any]] = None):
        self.company = company
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.updates: List[Dict[str, Any]] = []
        self._next_id = 1

    def find_default_company(self):
        return self.company

    def exists(self, bidding_number):
        return any(row['bidding_number'] == bidding_number for row in self.rows.values())

    def create(self, fields):
        row = dict(fields, id=self._next_id, updated_at=datetime(2024, 1, 1))
        self.rows[self._next_id] = row
        self._next_id += 1
        return row

    def update(self, bidding_id, fields, expected_updated_at=None):
        row = self.rows.get(bidding_id)
        if row is None:
            raise ConcurrencyError(f"Licitação {bidding_id} não encontrada")
        if expected_updated_at is not None and row.get('updated_at') != expected_updated_at:
            raise ConcurrencyError(f"Licitação {bidding_id} alterada")
        self.updates.append({'id': bidding_id, 'fields': dict(fields), 'expected': expected_updated_at})
        row.update(fields)
        return row


@pytest.fixture
def config():
    return AggregatorConfig(http_retry_delay=0, http_max_attempts=3)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store():
    return InMemoryBiddingStore(company={'id': 7, 'name': 'Empresa Padrão'})


@pytest.fixture
def make_record():
    def _make(number='001/2024', source='pncp', title='Aquisição de papel A4', opening_date=None, **fields):
        return NormalizedBiddingRecord(
            bidding_number=number,
            title=title,
            source=source,
            source_name=fields.pop('source_name', source.upper()),
            opening_date=opening_date,
            **fields
        )
    return _make


def mock_response(status_code=200, json_data=None, text='', content=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if content is None:
        content = b'{}' if json_data is not None else text.encode('utf-8')
    response.content = content
    response.headers = {'Content-Type': 'application/json'}
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError('No JSON')
    return response


@pytest.fixture
def http_client():
    """SourceHttpClient falso: os testes configuram get_json/post"""
    return MagicMock()
