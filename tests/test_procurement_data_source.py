from datetime import date, datetime

from bidding_aggregator.interfaces.procurement_data_source import (
    BiddingStatus,
    Modality,
    NormalizedBiddingRecord,
    SearchFilters,
    SearchResult,
)


def test_search_filters_normalizes_input():
    filters = SearchFilters(bidding_number='  ', segment='', limit=0)
    assert filters.bidding_number is None
    assert filters.segment is None
    assert filters.limit == 1


def test_search_filters_offsets_are_read_only():
    offsets = {'pncp': 2}
    filters = SearchFilters(offsets=offsets)
    offsets['pncp'] = 5

    assert filters.offset_for('pncp') == 2
    assert filters.offset_for('bec-sp', 1) == 1


def test_cache_dict_is_canonical():
    filters = SearchFilters.from_dict({'start_date': date(2024, 3, 1), 'segment': 'saude'})
    assert filters.to_cache_dict() == {'limit': 100, 'segment': 'saude', 'start_date': '2024-03-01'}
    assert list(filters.to_cache_dict()) == ['limit', 'segment', 'start_date']


def test_record_to_dict_and_storage_fields():
    record = NormalizedBiddingRecord(
        bidding_number='1',
        title='Objeto',
        source='pncp',
        source_name='PNCP',
        opening_date=datetime(2024, 3, 15, 10, 0),
        modality=Modality.CONCORRENCIA,
        status=BiddingStatus.FINISHED,
    )

    data = record.to_dict()
    assert data['opening_date'] == '2024-03-15 10:00:00'
    assert data['modality'] == 'concorrencia'
    assert NormalizedBiddingRecord.from_dict(data) == record

    storage = record.to_storage_fields()
    assert 'source_name' not in storage
    assert storage['status'] == 'finished'
    assert storage['opening_date'] == datetime(2024, 3, 15, 10, 0)


def test_search_result_to_dict():
    result = SearchResult(True, 'ok', failed_sources=['BEC/SP'])
    data = result.to_dict()

    assert result.partial
    assert data['count'] == 0
    assert data['failed_sources'] == ['BEC/SP']
