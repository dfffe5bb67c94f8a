import json
from datetime import datetime
from unittest.mock import MagicMock

import redis

from bidding_aggregator.interfaces.procurement_data_source import BiddingStatus, Modality
from bidding_aggregator.services.cache_service import CACHE_KEY_PREFIX, CacheService, generate_cache_key


def test_cache_key_is_order_independent():
    key_a = generate_cache_key(['pncp', 'bec-sp'], {'limit': 100, 'segment': 'saude'})
    key_b = generate_cache_key(['bec-sp', 'pncp'], {'segment': 'saude', 'limit': 100})
    assert key_a == key_b
    assert key_a.startswith(CACHE_KEY_PREFIX)


def test_cache_key_changes_with_version_and_filters():
    base = generate_cache_key(['pncp'], {'limit': 100})
    assert generate_cache_key(['pncp'], {'limit': 100}, version='v2') != base
    assert generate_cache_key(['pncp'], {'limit': 50}) != base


def test_set_and_get_records_roundtrip(fake_redis, make_record):
    cache = CacheService(redis_client=fake_redis, ttl_seconds=600)
    record = make_record(
        '001/2024',
        opening_date=datetime(2024, 3, 15, 10, 0),
        modality=Modality.PREGAO_ELETRONICO,
        status=BiddingStatus.ACTIVE,
        estimated_value=1500.5,
    )

    assert cache.set_records('biddings_search_x', [record])
    assert fake_redis.ttls['biddings_search_x'] == 600
    assert cache.get_records('biddings_search_x') == [record]


def test_empty_list_is_a_hit(fake_redis):
    cache = CacheService(redis_client=fake_redis)
    cache.set_records('biddings_search_empty', [])
    assert cache.get_records('biddings_search_empty') == []


def test_miss_returns_none(fake_redis):
    assert CacheService(redis_client=fake_redis).get_records('biddings_search_nada') is None


def test_invalid_entry_is_evicted(fake_redis):
    fake_redis.store['biddings_search_bad'] = json.dumps([{'titulo': 'formato antigo'}])
    fake_redis.store['biddings_search_junk'] = 'não é json'
    cache = CacheService(redis_client=fake_redis)

    assert cache.get_records('biddings_search_bad') is None
    assert cache.get_records('biddings_search_junk') is None
    assert 'biddings_search_bad' not in fake_redis.store
    assert 'biddings_search_junk' not in fake_redis.store


def test_disabled_without_redis():
    cache = CacheService(redis_client=None, connect=False)
    assert not cache.enabled
    assert cache.get_records('k') is None
    assert cache.set_records('k', []) is False
    assert cache.clear_prefix() == 0
    assert cache.get_info() == {'status': 'indisponivel'}


def test_zero_ttl_disables_cache(fake_redis):
    cache = CacheService(redis_client=fake_redis, ttl_seconds=0)
    assert not cache.enabled
    assert cache.set_records('biddings_search_x', []) is False


def test_redis_errors_degrade_to_miss():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError('down')
    client.setex.side_effect = redis.ConnectionError('down')
    cache = CacheService(redis_client=client)

    assert cache.get_records('biddings_search_x') is None
    assert cache.set_records('biddings_search_x', []) is False


def test_clear_prefix_only_removes_search_keys(fake_redis):
    fake_redis.store.update({'biddings_search_a': '[]', 'biddings_search_b': '[]', 'outra_chave': '1'})
    cache = CacheService(redis_client=fake_redis)

    assert cache.clear_prefix() == 2
    assert list(fake_redis.store) == ['outra_chave']


def test_get_info(fake_redis):
    info = CacheService(redis_client=fake_redis, ttl_seconds=120).get_info()
    assert info['status'] == 'conectado'
    assert info['ttl'] == 120
    assert info['version'] == 'v1.2'
    assert info['redis_version'] == '7.2.0'
