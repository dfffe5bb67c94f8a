import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from ..exceptions import ConcurrencyError
from ..interfaces.bidding_store import BiddingStore
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BiddingRepository(BaseRepository, BiddingStore):
    """Licitações persistidas (tabela ``biddings``) e empresa padrão (``companies``)"""

    @property
    def table_name(self) -> str:
        return 'biddings'

    @property
    def primary_key(self) -> str:
        return 'id'

    def find_default_company(self) -> Optional[Dict[str, Any]]:
        rows = self._fetch("SELECT * FROM companies ORDER BY id LIMIT 1")
        return rows[0] if rows else None

    def exists(self, bidding_number: str) -> bool:
        return self.exists_by('bidding_number', bidding_number)

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        created = super().create(fields)
        logger.info(f"💾 Licitação {created.get('bidding_number')} criada (id={created.get('id')})")
        return created

    def update(self, bidding_id: Union[str, int], fields: Dict[str, Any],
               expected_updated_at: Optional[datetime] = None) -> Dict[str, Any]:
        where_extra = ('updated_at', expected_updated_at) if expected_updated_at is not None else None
        updated = super().update(bidding_id, fields, where_extra=where_extra)

        if updated is None:
            if expected_updated_at is not None:
                raise ConcurrencyError(
                    f"Licitação {bidding_id} foi alterada desde {expected_updated_at}; atualização descartada"
                )
            raise ConcurrencyError(f"Licitação {bidding_id} não encontrada para atualização")
        return updated
