import threading
import time
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from bidding_aggregator.adapters.http_client import SourceHttpClient
from bidding_aggregator.config.settings import AggregatorConfig
from bidding_aggregator.exceptions import FetchCancelledError, TransportError
from bidding_aggregator.factories.data_source_factory import DataSourceFactory
from bidding_aggregator.interfaces.procurement_data_source import DetailResult, SearchFilters, SearchResult
from bidding_aggregator.services.bidding_search_service import (
    MSG_ALL_FAILED,
    MSG_COMPLETE,
    MSG_FROM_CACHE,
    MSG_NO_SOURCES,
    MSG_PARTIAL,
    BiddingSearchService,
)
from bidding_aggregator.services.cache_service import CacheService
from bidding_aggregator.services.search.source_registry import SourceRegistry


def stub_fetcher(result=None, error=None):
    fetcher = MagicMock()
    if error is not None:
        fetcher.fetch.side_effect = error
    else:
        fetcher.fetch.return_value = result
    return fetcher


def build_service(config, fetchers, fake_redis=None, store=None):
    registry = SourceRegistry()
    factory = DataSourceFactory(config, registry, adapter_classes=(), fetchers=fetchers)
    cache = CacheService(redis_client=fake_redis, connect=False)
    return BiddingSearchService(config, registry=registry, factory=factory, cache=cache, store=store)


def test_search_merges_sources_and_sorts(config, make_record, fake_redis):
    pncp = stub_fetcher(SearchResult(True, 'ok', [
        make_record('P1', source='pncp', opening_date=datetime(2024, 3, 1)),
    ]))
    dados = stub_fetcher(SearchResult(True, 'ok', [
        make_record('D1', source='dados-abertos-compras', opening_date=datetime(2024, 4, 1)),
        make_record('D2', source='dados-abertos-compras'),
    ]))
    service = build_service(config, {'pncp': pncp, 'dados-abertos-compras': dados}, fake_redis)

    result = service.search(['dados-abertos-compras', 'pncp'])

    assert result.success
    assert result.message == MSG_COMPLETE
    assert [record.bidding_number for record in result.data] == ['D1', 'P1', 'D2']
    assert not result.from_cache
    assert not result.partial


def test_partial_failure(config, make_record, fake_redis):
    pncp = stub_fetcher(SearchResult(True, 'ok', [make_record('P1')]))
    bec = stub_fetcher(SearchResult(False, 'Erro HTTP 500 ao acessar BEC/SP (Bolsa Eletrônica de Compras).'))
    service = build_service(config, {'pncp': pncp, 'bec-sp': bec}, fake_redis)

    result = service.search(['pncp', 'bec-sp'])

    assert result.success
    assert result.partial
    assert result.message == MSG_PARTIAL + ' Fontes com falha: BEC/SP (Bolsa Eletrônica de Compras).'
    assert result.failed_sources == ['BEC/SP (Bolsa Eletrônica de Compras)']
    assert result.details == [
        'Falha em BEC/SP (Bolsa Eletrônica de Compras): '
        'Erro HTTP 500 ao acessar BEC/SP (Bolsa Eletrônica de Compras).'
    ]
    assert result.count == 1


def test_all_sources_failed(config):
    pncp = stub_fetcher(error=RuntimeError('boom'))
    service = build_service(config, {'pncp': pncp})

    result = service.search(['pncp', 'bec-sp'])

    assert not result.success
    assert result.message.startswith(MSG_ALL_FAILED)
    assert 'Erro interno ao buscar em PNCP (Portal Nacional de Contratações Públicas).' in result.details
    assert 'Falha em BEC/SP (Bolsa Eletrônica de Compras): ' \
           'Busca em BEC/SP (Bolsa Eletrônica de Compras) não implementada.' in result.details


def test_success_with_zero_records(config):
    service = build_service(config, {'pncp': stub_fetcher(SearchResult(True, 'nada', []))})

    result = service.search('pncp')
    assert result.success
    assert result.count == 0


def test_no_valid_sources(config):
    service = build_service(config, {})

    result = service.search(['comprasnet-scraping-legacy', 'xyz'])

    assert not result.success
    assert result.message == MSG_NO_SOURCES + ' Fontes puladas: ComprasNet (portal legado) (Motivo: requer captcha)'
    assert result.details == ['Fonte inválida: xyz']


def test_empty_source_list_fails_without_fetching(config, make_record):
    fetchers = {
        key: stub_fetcher(SearchResult(True, 'ok', [make_record('X1', source=key)]))
        for key in ('dados-abertos-compras', 'pncp', 'licitacoes-e', 'bec-sp')
    }
    service = build_service(config, fetchers)

    result = service.search([], SearchFilters())

    assert not result.success
    assert result.message == MSG_NO_SOURCES
    assert result.data == []
    for fetcher in fetchers.values():
        fetcher.fetch.assert_not_called()


def test_fragile_sources_skipped_by_config(make_record):
    config = AggregatorConfig(allow_fragile_sources=False, http_retry_delay=0)
    dados = stub_fetcher(SearchResult(True, 'ok', [make_record('D1', source='dados-abertos-compras')]))
    pncp = stub_fetcher(SearchResult(True, 'ok', []))
    service = build_service(config, {'dados-abertos-compras': dados, 'pncp': pncp})

    result = service.search('all')

    assert result.success
    pncp.fetch.assert_not_called()
    assert 'Fontes puladas:' in result.message
    assert len(result.skipped_sources) == 4


def test_cache_hit_skips_fetchers(config, make_record, fake_redis):
    pncp = stub_fetcher(SearchResult(True, 'ok', [make_record('P1', opening_date=datetime(2024, 3, 1, 10, 0))]))
    service = build_service(config, {'pncp': pncp}, fake_redis)
    filters = SearchFilters(segment=None, limit=20)

    first = service.search(['pncp'], filters)
    second = service.search(['pncp'], {'limit': 20})

    assert pncp.fetch.call_count == 1
    assert second.from_cache
    assert second.message == MSG_FROM_CACHE
    assert second.data == first.data


def test_empty_result_is_not_cached(config, fake_redis):
    pncp = stub_fetcher(SearchResult(True, 'ok', []))
    service = build_service(config, {'pncp': pncp}, fake_redis)

    service.search('pncp')
    service.search('pncp')

    assert pncp.fetch.call_count == 2
    assert fake_redis.store == {}


def test_parallel_fetch_preserves_source_order(make_record):
    config = AggregatorConfig(search_max_workers=4, http_retry_delay=0)
    release = threading.Event()

    def slow_fetch(filters):
        release.wait(2)
        return SearchResult(True, 'ok', [make_record('P1')])

    def fast_fetch(filters):
        release.set()
        return SearchResult(False, 'falhou')

    pncp = MagicMock()
    pncp.fetch.side_effect = slow_fetch
    dados = MagicMock()
    dados.fetch.side_effect = fast_fetch
    service = build_service(config, {'pncp': pncp, 'dados-abertos-compras': dados})

    result = service.search(['pncp', 'dados-abertos-compras'])

    assert result.partial
    assert result.failed_sources == ['Dados Abertos Compras.gov.br']
    assert result.details == ['Falha em Dados Abertos Compras.gov.br: falhou']


def test_search_timeout_marks_source_failed(make_record):
    config = AggregatorConfig(search_max_workers=2, search_timeout=0.2, http_retry_delay=0)
    hold = threading.Event()

    def stuck_fetch(filters):
        hold.wait(5)
        return SearchResult(True, 'ok', [])

    pncp = MagicMock()
    pncp.fetch.side_effect = stuck_fetch
    dados = stub_fetcher(SearchResult(True, 'ok', [make_record('D1', source='dados-abertos-compras')]))
    service = build_service(config, {'pncp': pncp, 'dados-abertos-compras': dados})

    try:
        result = service.search(['pncp', 'dados-abertos-compras'])
    finally:
        hold.set()

    assert result.success
    assert result.failed_sources == ['PNCP (Portal Nacional de Contratações Públicas)']
    assert 'Tempo limite da busca excedido' in result.details[0]


def test_search_timeout_stops_in_flight_fetch(make_record):
    config = AggregatorConfig(
        search_max_workers=2, search_timeout=0.2, http_max_attempts=50, http_retry_delay=0.05
    )
    session = MagicMock()
    session.headers = {}

    def refused(*args, **kwargs):
        time.sleep(0.02)
        raise requests.exceptions.ConnectionError('recusada')

    session.request.side_effect = refused
    client = SourceHttpClient('PNCP', config, session=session)
    finished = threading.Event()
    raised = []

    def retrying_fetch(filters):
        try:
            client.get('https://pncp.gov.br/api/consulta/v1/contratacoes/publicacao')
        except TransportError as e:
            raised.append(e)
        finally:
            finished.set()
        return SearchResult(False, 'falhou')

    pncp = MagicMock()
    pncp.fetch.side_effect = retrying_fetch
    dados = stub_fetcher(SearchResult(True, 'ok', [make_record('D1', source='dados-abertos-compras')]))
    service = build_service(config, {'pncp': pncp, 'dados-abertos-compras': dados})

    result = service.search(['pncp', 'dados-abertos-compras'])

    assert result.failed_sources == ['PNCP (Portal Nacional de Contratações Públicas)']
    assert finished.wait(2)
    assert isinstance(raised[0], FetchCancelledError)
    assert session.request.call_count < 50


def test_get_details(config):
    record = MagicMock()
    pncp = MagicMock()
    pncp.fetch_detail.return_value = DetailResult(True, 'Detalhes obtidos com sucesso.', record)
    service = build_service(config, {'pncp': pncp})

    detail = service.get_details('pncp', '17217985000104-1-000156/2025')

    assert detail.success
    assert detail.data is record


def test_get_details_rejects_unavailable_sources(config):
    service = build_service(config, {})

    assert service.get_details('xyz', '1').message == 'Não é possível buscar detalhes: Fonte inválida: xyz'
    assert service.get_details('comprasnet-scraping-legacy', '1').message == (
        'Não é possível buscar detalhes: Fonte ComprasNet (portal legado) indisponível: requer captcha.'
    )
    assert service.get_details('bec-sp', '1').message == (
        "Busca de detalhes para 'BEC/SP (Bolsa Eletrônica de Compras)' não implementada."
    )


def test_update_from_source_without_store(config):
    result = build_service(config, {}).update_from_source({'id': 1, 'source': 'pncp'})
    assert not result.success
    assert result.message == 'Armazenamento de licitações não configurado.'


def test_listing_sources_and_segments(config):
    service = build_service(config, {})
    assert len(service.get_sources()) == 5
    assert len(service.get_segments()) == 8


def test_clear_cache(config, fake_redis):
    fake_redis.store['biddings_search_1'] = '[]'
    assert build_service(config, {}, fake_redis).clear_cache() == 1


@pytest.mark.parametrize('filters', [None, {}, {'limit': 'abc'}])
def test_filters_from_loose_input(config, filters):
    service = build_service(config, {'pncp': stub_fetcher(SearchResult(True, 'ok', []))})
    assert service.search('pncp', filters).success


def test_segment_search_with_one_source_timing_out(make_record):
    config = AggregatorConfig(http_retry_delay=0)
    health = [make_record(f"S{i}", source='dados-abertos-compras', title=f"Aquisição de medicamentos lote {i}")
              for i in range(8)]
    unrelated = [make_record(f"U{i}", source='dados-abertos-compras', title='Compra de papel A4') for i in range(2)]
    dados = stub_fetcher(SearchResult(True, 'ok', health + unrelated))
    pncp = stub_fetcher(SearchResult(False, 'Erro de conexão ao acessar PNCP: Read timed out.'))
    service = build_service(config, {'dados-abertos-compras': dados, 'pncp': pncp})

    result = service.search('all', {'segment': 'saude', 'limit': 5})

    assert result.success
    assert result.count == 5
    assert all('medicamento' in record.title.lower() for record in result.data)
    assert 'PNCP (Portal Nacional de Contratações Públicas)' in result.message
