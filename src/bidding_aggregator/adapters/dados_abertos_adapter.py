"""
Adapter da API de Dados Abertos de Compras do Governo Federal
(compras.dados.gov.br, formato HAL com itens em ``_embedded.licitacoes``)
"""
import logging
from typing import Any, Dict, List, Optional

from ..interfaces.procurement_data_source import NormalizedBiddingRecord, SearchFilters
from ..utils.normalizers import (
    clean_bidding_number,
    first_present,
    map_modality,
    map_status,
    parse_date_for_api,
    parse_datetime,
    parse_number,
)
from .base_adapter import BaseBiddingAdapter

logger = logging.getLogger(__name__)

API_MAX_LIMIT = 500


class DadosAbertosComprasAdapter(BaseBiddingAdapter):

    source_key = 'dados-abertos-compras'
    supports_detail = True

    def build_query(self, filters: SearchFilters) -> Dict[str, Any]:
        params: Dict[str, Any] = {}

        # Número da licitação é exclusivo: a API ignora datas quando ele vem junto
        if filters.bidding_number:
            params['numero_licitacao'] = filters.bidding_number
        else:
            start = parse_date_for_api(filters.start_date)
            end = parse_date_for_api(filters.end_date)
            if start:
                params['data_publicacao_min'] = start
            if end:
                params['data_publicacao_max'] = end

        params['offset'] = filters.offset_for(self.source_key, 0)
        params['limit'] = min(filters.limit, API_MAX_LIMIT)
        return params

    def _fetch_records(self, filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        url = self.descriptor.url
        params = self.build_query(filters)
        logger.info(f"📡 Consultando API Dados Abertos: {url} params={params}")

        _, payload = self.http.get_json(url, params=params)

        if not isinstance(payload, dict):
            raise self._shape_error('Formato de resposta inesperado da API Dados Abertos.', url, params, payload)

        embedded = payload.get('_embedded')
        items = embedded.get('licitacoes') if isinstance(embedded, dict) else None
        if not isinstance(items, list):
            if payload.get('count') == 0:
                logger.info("📭 Nenhum resultado encontrado na API Dados Abertos para os filtros.")
                return []
            raise self._shape_error('Formato de resposta inesperado da API Dados Abertos.', url, params, payload)

        return self._normalize_items(items, self.normalize_item)

    def _fetch_detail_record(self, identifier: str) -> Optional[NormalizedBiddingRecord]:
        url = self._detail_url(identifier)
        _, payload = self.http.get_json(url)

        if not payload:
            raise self._shape_error('Resposta vazia da API de detalhes.', url, None, payload)
        if not isinstance(payload, dict):
            raise self._shape_error('Formato de resposta inesperado da API de detalhes.', url, None, payload)

        return self.normalize_item(payload)

    def normalize_item(self, item: Dict[str, Any]) -> NormalizedBiddingRecord:
        raw_number = first_present(item, 'numero_licitacao', 'numero_aviso', 'identificador')
        identifier = first_present(item, 'identificador', 'id')

        description_parts = [item.get('objeto'), item.get('informacoes_gerais'), item.get('descricao_objeto')]
        description = '\n'.join(str(part) for part in description_parts if part).strip()

        return self._build_record(
            bidding_number=clean_bidding_number(raw_number, self.source_key),
            title=item.get('objeto'),
            description=description or None,
            opening_date=parse_datetime(
                first_present(item, 'data_abertura_proposta', 'data_publicacao', 'data_entrega_proposta')
            ),
            closing_date=parse_datetime(item.get('data_encerramento')),
            publication_date=parse_datetime(item.get('data_publicacao')),
            modality=map_modality(first_present(item, 'modalidade', 'modalidade_licitacao')),
            status=map_status(first_present(item, 'situacao_aviso', 'situacao_licitacao')),
            estimated_value=parse_number(item.get('valor_estimado')),
            url_source=self._source_url(identifier, item),
            source_identifier=str(identifier) if identifier is not None else None,
        )

    def _source_url(self, identifier: Any, item: Dict[str, Any]) -> Optional[str]:
        if identifier is not None and self.descriptor.detail_url_pattern:
            return self.descriptor.detail_url_pattern.format(identifier=identifier)

        links = item.get('_links')
        if isinstance(links, dict) and isinstance(links.get('self'), dict):
            return links['self'].get('href') or None
        return None

    def _detail_url(self, identifier: str) -> str:
        if identifier.startswith(('http://', 'https://')):
            return identifier
        return self.descriptor.detail_url_pattern.format(identifier=identifier)

