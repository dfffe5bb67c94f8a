from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, Optional, Union


class BiddingStore(ABC):
    """Fronteira de persistência das licitações importadas/reconciliadas"""

    @abstractmethod
    def find_default_company(self) -> Optional[Dict[str, Any]]:
        """Empresa padrão à qual licitações importadas são associadas"""
        pass

    @abstractmethod
    def exists(self, bidding_number: str) -> bool:
        pass

    @abstractmethod
    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update(self, bidding_id: Union[str, int], fields: Dict[str, Any],
               expected_updated_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Atualização parcial.

        Com ``expected_updated_at`` a escrita só acontece se o registro não
        mudou desde a leitura; caso contrário levanta ConcurrencyError.
        """
        pass
