import logging
from datetime import datetime
from typing import List, Optional

from ..interfaces.procurement_data_source import NormalizedBiddingRecord, SearchFilters
from .search.segment_classifier import SegmentClassifier

logger = logging.getLogger(__name__)

# Registros sem data de abertura ordenam como se fossem desta data (vão para o fim)
EPOCH = datetime(1970, 1, 1)


class ResultProcessor:
    """
    Pós-processamento da lista agregada, nesta ordem:
    deduplicação -> filtro de segmento -> ordenação -> limite.
    """

    def __init__(self, segment_classifier: Optional[SegmentClassifier] = None):
        self.segment_classifier = segment_classifier or SegmentClassifier()

    def process(self, records: List[NormalizedBiddingRecord],
                filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        unique = self.deduplicate(records)
        filtered = self.segment_classifier.filter_records(unique, filters.segment)
        ordered = self.sort_by_opening_date(filtered)
        limited = ordered[:filters.limit]

        logger.debug(
            f"Pós-processamento: {len(records)} -> {len(unique)} únicos -> "
            f"{len(filtered)} no segmento -> {len(limited)} retornados"
        )
        return limited

    @staticmethod
    def deduplicate(records: List[NormalizedBiddingRecord]) -> List[NormalizedBiddingRecord]:
        """Mantém a primeira ocorrência de cada (fonte, número)"""
        seen = set()
        unique = []
        for record in records:
            if not record.bidding_number:
                continue
            if record.dedup_key in seen:
                continue
            seen.add(record.dedup_key)
            unique.append(record)
        return unique

    @staticmethod
    def sort_by_opening_date(records: List[NormalizedBiddingRecord]) -> List[NormalizedBiddingRecord]:
        """Mais recentes primeiro; ordenação estável"""
        return sorted(records, key=lambda record: record.opening_date or EPOCH, reverse=True)
