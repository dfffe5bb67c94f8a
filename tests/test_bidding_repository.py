from contextlib import contextmanager
from datetime import datetime
from unittest.mock import MagicMock

import psycopg2
import pytest

from bidding_aggregator.exceptions import ConcurrencyError, PersistenceError
from bidding_aggregator.repositories.bidding_repository import BiddingRepository


def make_repository(rows=None, error=None):
    cursor = MagicMock()
    cursor.__enter__.return_value = cursor
    cursor.fetchall.return_value = rows or []
    if error is not None:
        cursor.execute.side_effect = error

    conn = MagicMock()
    conn.cursor.return_value = cursor

    db_manager = MagicMock()

    @contextmanager
    def get_connection():
        yield conn

    db_manager.get_connection = get_connection
    return BiddingRepository(db_manager), cursor


def test_exists_by_bidding_number():
    repository, cursor = make_repository(rows=[{'?column?': 1}])

    assert repository.exists('00012/2024')
    query, params = cursor.execute.call_args[0]
    assert 'FROM biddings WHERE bidding_number = %s' in query
    assert params == ('00012/2024',)


def test_find_default_company():
    repository, cursor = make_repository(rows=[{'id': 3, 'name': 'ACME'}])

    assert repository.find_default_company() == {'id': 3, 'name': 'ACME'}
    assert 'FROM companies ORDER BY id LIMIT 1' in cursor.execute.call_args[0][0]


def test_create_returns_inserted_row():
    repository, cursor = make_repository(rows=[{'id': 10, 'bidding_number': '1'}])

    created = repository.create({'bidding_number': '1', 'title': 'Objeto'})

    assert created['id'] == 10
    query, params = cursor.execute.call_args[0]
    assert 'INSERT INTO biddings (bidding_number, title, created_at, updated_at)' in query
    assert params[:2] == ('1', 'Objeto')


def test_conditional_update():
    repository, cursor = make_repository(rows=[{'id': 10, 'status': 'active'}])
    expected = datetime(2024, 5, 30, 8, 0)

    updated = repository.update(10, {'status': 'active'}, expected_updated_at=expected)

    assert updated['status'] == 'active'
    query, params = cursor.execute.call_args[0]
    assert 'WHERE id = %s AND updated_at = %s' in query
    assert params[0] == 'active'
    assert params[-2:] == (10, expected)


def test_conditional_update_conflict():
    repository, _ = make_repository(rows=[])

    with pytest.raises(ConcurrencyError):
        repository.update(10, {'status': 'active'}, expected_updated_at=datetime(2024, 5, 30))


def test_driver_errors_become_persistence_errors():
    repository, _ = make_repository(error=psycopg2.OperationalError('server closed the connection'))

    with pytest.raises(PersistenceError) as exc:
        repository.exists('1')
    assert isinstance(exc.value.original_error, psycopg2.OperationalError)
