"""
Adapter da BEC/SP (Bolsa Eletrônica de Compras do Estado de São Paulo)

O portal é ASP.NET; a listagem de ofertas de compra é lida do endpoint
XHR que alimenta a própria página (JSON com itens em ``registros``).
"""
import logging
from typing import Any, Dict, List

from ..interfaces.procurement_data_source import Modality, NormalizedBiddingRecord, SearchFilters
from ..utils.normalizers import (
    clean_bidding_number,
    first_present,
    map_status,
    parse_currency,
    parse_date_for_api,
    parse_datetime,
)
from .base_adapter import BaseBiddingAdapter

logger = logging.getLogger(__name__)

FILTER_DATE_FORMAT = '%d/%m/%Y'
MAX_PAGE_SIZE = 100

# Cabeçalhos da chamada XHR feita pela própria página da BEC
XHR_HEADERS = {
    'Accept': 'application/json, text/javascript, */*; q=0.01',
    'X-Requested-With': 'XMLHttpRequest',
}


class BecSpAdapter(BaseBiddingAdapter):

    source_key = 'bec-sp'
    browser = True
    max_attempts = 2

    def build_query(self, filters: SearchFilters) -> Dict[str, Any]:
        params = {
            'chave': filters.bidding_number or '',
            'paginaAtual': max(1, filters.offset_for(self.source_key, 1)),
            'tamanhoPagina': min(filters.limit, MAX_PAGE_SIZE),
            'orientacao': 'descendente',
            'colunaOrdenacao': 'DataPublicacao',
        }

        start = parse_date_for_api(filters.start_date, FILTER_DATE_FORMAT)
        end = parse_date_for_api(filters.end_date, FILTER_DATE_FORMAT)
        if start:
            params['dtPublicacaoInicio'] = start
        if end:
            params['dtPublicacaoFim'] = end
        return params

    def _fetch_records(self, filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        url = self.descriptor.url
        params = self.build_query(filters)
        logger.warning(f"⚠️ Executando busca frágil em {self.name}")
        logger.info(f"📡 Consultando BEC/SP: {url} params={params}")

        _, payload = self.http.get_json(url, params=params, headers=XHR_HEADERS)

        if not isinstance(payload, dict):
            raise self._shape_error('Formato de resposta inesperado da BEC/SP (layout mudou?).', url, params, payload)

        items = payload.get('registros')
        if not isinstance(items, list):
            if payload.get('total') == 0 or payload.get('totalRegistros') == 0:
                return []
            raise self._shape_error('Formato de resposta inesperado da BEC/SP (layout mudou?).', url, params, payload)

        return self._normalize_items(items, self.normalize_item)

    def normalize_item(self, item: Dict[str, Any]) -> NormalizedBiddingRecord:
        codigo = item.get('codigo')
        codigo = str(codigo).strip() if codigo is not None else None
        title = item.get('descricao')

        return self._build_record(
            bidding_number=clean_bidding_number(codigo, self.source_key),
            title=title or 'Título não extraído',
            description=self._compose_description(
                agency=first_present(item, 'orgao', 'unidadeCompradora'),
                uasg=item.get('uc'),
                title=title,
            ),
            opening_date=parse_datetime(item.get('dataAbertura')),
            publication_date=parse_datetime(item.get('dataPublicacao')),
            modality=Modality.PREGAO_ELETRONICO,
            status=map_status(item.get('situacao')),
            estimated_value=parse_currency(item.get('valorEstimado')),
            url_source=self.descriptor.detail_url_pattern.format(identifier=codigo) if codigo else None,
            source_identifier=codigo,
        )
