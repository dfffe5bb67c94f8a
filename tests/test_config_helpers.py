import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from bidding_aggregator.config.database import DatabaseManager
from bidding_aggregator.config.env_loader import load_environment
from bidding_aggregator.config.logging_config import setup_logging


def test_load_environment_from_file(tmp_path, monkeypatch):
    monkeypatch.delenv('BIDDING_CACHE_TTL', raising=False)
    config_file = tmp_path / 'config.env'
    config_file.write_text('BIDDING_CACHE_TTL=900\n', encoding='utf-8')

    try:
        assert load_environment(config_file)
        assert os.environ['BIDDING_CACHE_TTL'] == '900'
    finally:
        os.environ.pop('BIDDING_CACHE_TTL', None)


def test_load_environment_missing_file(tmp_path):
    assert not load_environment(tmp_path / 'nao_existe.env')


def test_setup_logging_creates_log_file(tmp_path):
    root = logging.getLogger()
    previous = list(root.handlers)
    for handler in previous:
        root.removeHandler(handler)

    log_file = tmp_path / 'logs' / 'agregador.log'
    try:
        setup_logging(str(log_file))
        logging.getLogger('bidding_aggregator').warning('teste')
        assert log_file.exists()
        assert logging.getLogger('urllib3').level == logging.ERROR
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)
        for handler in previous:
            root.addHandler(handler)


def test_database_manager_commits_and_closes():
    conn = MagicMock()
    with patch('bidding_aggregator.config.database.get_db_connection', return_value=conn):
        with DatabaseManager('postgresql://localhost/teste').get_connection() as active:
            assert active is conn

    conn.commit.assert_called_once()
    conn.close.assert_called_once()


def test_database_manager_rolls_back_on_error():
    conn = MagicMock()
    with patch('bidding_aggregator.config.database.get_db_connection', return_value=conn):
        with pytest.raises(RuntimeError):
            with DatabaseManager().get_connection():
                raise RuntimeError('falha no meio da transação')

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()
