"""
Gerenciador de conexões PostgreSQL para o armazenamento de licitações
"""

import os
import logging
import psycopg2
from contextlib import contextmanager
from typing import Optional
from psycopg2.extras import DictCursor

logger = logging.getLogger(__name__)


def get_db_connection(database_url: Optional[str] = None):
    """Conecta ao PostgreSQL usando DATABASE_URL"""
    database_url = database_url or os.getenv('DATABASE_URL')
    if not database_url:
        host = os.getenv('DATABASE_HOST', 'localhost')
        port = os.getenv('DATABASE_PORT', '5432')
        name = os.getenv('DATABASE_NAME', 'postgres')
        user = os.getenv('DATABASE_USER', 'postgres')
        password = os.getenv('DATABASE_PASSWORD', '')
        database_url = f"postgresql://{user}:{password}@{host}:{port}/{name}"
        logger.info(f"🔄 Construindo DATABASE_URL a partir das variáveis: postgresql://{user}:***@{host}:{port}/{name}")

    try:
        return psycopg2.connect(database_url, cursor_factory=DictCursor)
    except psycopg2.Error as e:
        logger.error(f"❌ Erro ao conectar PostgreSQL: {e}")
        raise


class DatabaseManager:
    """
    Gerenciador simples de banco de dados.
    Cria uma conexão por unidade de trabalho (sem pool).
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url

    @contextmanager
    def get_connection(self):
        """Context manager com commit ao final e rollback em caso de erro"""
        conn = None
        try:
            conn = get_db_connection(self.database_url)
            conn.autocommit = False
            yield conn
            conn.commit()
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Erro na conexão: {e}")
            raise
        finally:
            if conn:
                conn.close()
