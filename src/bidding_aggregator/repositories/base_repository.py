"""
Repository base com operações CRUD padronizadas sobre PostgreSQL
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Union, Tuple
import logging
from datetime import datetime

import psycopg2

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """Repository base; erros do driver viram PersistenceError"""

    def __init__(self, db_manager):
        self.db_manager = db_manager

    @property
    @abstractmethod
    def table_name(self) -> str:
        """Nome da tabela principal"""
        pass

    @property
    @abstractmethod
    def primary_key(self) -> str:
        """Nome da chave primária"""
        pass

    def find_by_id(self, record_id: Union[str, int]) -> Optional[Dict[str, Any]]:
        query = f"SELECT * FROM {self.table_name} WHERE {self.primary_key} = %s"
        rows = self._fetch(query, (record_id,))
        return rows[0] if rows else None

    def exists_by(self, column: str, value: Any) -> bool:
        query = f"SELECT 1 FROM {self.table_name} WHERE {column} = %s LIMIT 1"
        return bool(self._fetch(query, (value,)))

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Criar novo registro"""
        data = dict(data)
        now = datetime.now()
        data.setdefault('created_at', now)
        data.setdefault('updated_at', now)

        columns = list(data.keys())
        placeholders = ', '.join(['%s'] * len(columns))
        query = f"""
            INSERT INTO {self.table_name} ({', '.join(columns)})
            VALUES ({placeholders})
            RETURNING *
        """
        rows = self._fetch(query, tuple(data.values()))
        return rows[0]

    def update(self, record_id: Union[str, int], data: Dict[str, Any],
               where_extra: Optional[Tuple[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Atualização parcial.

        ``where_extra`` = (coluna, valor) adiciona uma condição ao WHERE; sem
        linha afetada o retorno é None.
        """
        if not data:
            return self.find_by_id(record_id)

        data = dict(data)
        data['updated_at'] = datetime.now()

        set_clauses = ', '.join(f"{key} = %s" for key in data)
        params = list(data.values()) + [record_id]
        query = f"UPDATE {self.table_name} SET {set_clauses} WHERE {self.primary_key} = %s"

        if where_extra is not None:
            column, value = where_extra
            query += f" AND {column} = %s"
            params.append(value)

        rows = self._fetch(query + " RETURNING *", tuple(params))
        return rows[0] if rows else None

    def _fetch(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        try:
            with self.db_manager.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)
                    return [dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            raise PersistenceError(f"Erro em {self.table_name}: {e}", original_error=e) from e
