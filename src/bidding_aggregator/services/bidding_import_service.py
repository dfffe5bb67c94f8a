"""
Importação de licitações encontradas na busca para o armazenamento local
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from ..interfaces.bidding_store import BiddingStore
from ..interfaces.procurement_data_source import NormalizedBiddingRecord, SearchFilters, SearchResult
from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    success: bool
    message: str
    found: int = 0
    imported: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'found': self.found,
            'imported': self.imported,
            'skipped': self.skipped,
            'errors': self.errors,
        }


class BiddingImportService:
    """Grava licitações novas (por número) associadas à empresa padrão"""

    def __init__(self, store: BiddingStore, search_service=None):
        self.store = store
        self.search_service = search_service

    def search_and_import(self, sources: Union[str, Iterable[str]] = 'all', days: int = 7,
                          filters: Optional[SearchFilters] = None) -> ImportSummary:
        """Busca as licitações publicadas nos últimos ``days`` dias e importa as novas"""
        if self.search_service is None:
            return ImportSummary(False, 'Serviço de busca não configurado para importação.')

        if filters is None:
            today = datetime.now().date()
            filters = SearchFilters(start_date=today - timedelta(days=days), end_date=today)

        logger.info(f"📥 Buscando licitações para importação ({sources}, últimos {days} dias)")
        result = self.search_service.search(sources, filters)
        return self.import_search_result(result)

    def import_search_result(self, result: SearchResult) -> ImportSummary:
        if not result.success:
            logger.error(f"❌ Busca para importação falhou: {result.message}")
            return ImportSummary(False, result.message)
        return self.import_records(result.data)

    def import_records(self, records: List[NormalizedBiddingRecord]) -> ImportSummary:
        try:
            company = self.store.find_default_company()
        except PersistenceError as e:
            return ImportSummary(False, f"Erro ao carregar empresa padrão: {e.message}", found=len(records))

        if not company:
            logger.error("❌ Nenhuma empresa cadastrada para associar às licitações.")
            return ImportSummary(False, 'Nenhuma empresa cadastrada para associar às licitações.', found=len(records))

        summary = ImportSummary(True, '', found=len(records))
        for record in records:
            try:
                if self.store.exists(record.bidding_number):
                    summary.skipped += 1
                    continue

                fields = record.to_storage_fields()
                fields['company_id'] = company['id']
                self.store.create(fields)
                summary.imported += 1
            except PersistenceError as e:
                summary.errors += 1
                summary.error_messages.append(f"Erro ao importar licitação {record.bidding_number}: {e.message}")

        summary.message = (
            f"Importação concluída: {summary.imported} licitações importadas, "
            f"{summary.skipped} já existentes, {summary.errors} erros."
        )
        logger.info(f"✅ {summary.message}")
        return summary
