"""
Adapter da API de consulta do PNCP (Portal Nacional de Contratações Públicas)

Listagem: /contratacoes/publicacao (janela de datas obrigatória, modalidade
obrigatória). Detalhe: /orgaos/{cnpj}/compras/{ano}/{sequencial}, derivado
do numeroControlePNCP (ex.: 17217985000104-1-000156/2025).
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import DataError
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

PNCP_DATE_FORMAT = '%Y%m%d'
DEFAULT_WINDOW_DAYS = 14
# Pregão eletrônico; a API não aceita consulta sem modalidade
DEFAULT_MODALITY_CODE = 8
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
EDITAL_URL = 'https://pncp.gov.br/app/editais/{cnpj}/{ano}/{sequencial}'

_CONTROL_NUMBER_RE = re.compile(r'^(\d{14})-\d+-(\d+)/(\d{4})$')
_EDITAL_URL_RE = re.compile(r'/editais/(\d{14})/(\d{4})/(\d+)')


def parse_control_number(numero_controle: Optional[str]) -> Optional[Tuple[str, str, int]]:
    """numeroControlePNCP -> (cnpj, ano, sequencial) ou None"""
    if not numero_controle:
        return None
    match = _CONTROL_NUMBER_RE.match(numero_controle.strip())
    if not match:
        return None
    cnpj, sequencial, ano = match.groups()
    return cnpj, ano, int(sequencial)


class PNCPAdapter(BaseBiddingAdapter):

    source_key = 'pncp'
    supports_detail = True

    def build_query(self, filters: SearchFilters) -> Dict[str, Any]:
        today = datetime.now()
        start = parse_date_for_api(filters.start_date, PNCP_DATE_FORMAT)
        end = parse_date_for_api(filters.end_date, PNCP_DATE_FORMAT)

        return {
            'dataInicial': start or (today - timedelta(days=DEFAULT_WINDOW_DAYS)).strftime(PNCP_DATE_FORMAT),
            'dataFinal': end or today.strftime(PNCP_DATE_FORMAT),
            'codigoModalidadeContratacao': DEFAULT_MODALITY_CODE,
            'pagina': max(1, filters.offset_for(self.source_key, 1)),
            'tamanhoPagina': max(MIN_PAGE_SIZE, min(filters.limit, MAX_PAGE_SIZE)),
        }

    def _fetch_records(self, filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        url = self.descriptor.url
        params = self.build_query(filters)
        logger.info(f"📡 Consultando API PNCP: {url} params={params}")

        response, payload = self.http.get_json(url, params=params)

        if response.status_code == 204 or payload is None:
            logger.info("📭 PNCP sem resultados para o período (HTTP 204)")
            return []
        if not isinstance(payload, dict):
            raise self._shape_error('Formato de resposta inesperado da API PNCP.', url, params, payload)

        items = payload.get('data')
        if not isinstance(items, list):
            if payload.get('totalRegistros') == 0:
                return []
            raise self._shape_error('Formato de resposta inesperado da API PNCP.', url, params, payload)

        # A API não filtra por número: o filtro é aplicado localmente
        if filters.bidding_number:
            items = [item for item in items if self._matches_number(item, filters.bidding_number)]

        return self._normalize_items(items, self.normalize_item)

    def _fetch_detail_record(self, identifier: str) -> Optional[NormalizedBiddingRecord]:
        url = self._detail_url(identifier)
        response, payload = self.http.get_json(url)

        if response.status_code == 204 or not payload:
            raise self._shape_error('Resposta vazia da API de detalhes PNCP.', url, None, payload)
        if not isinstance(payload, dict):
            raise self._shape_error('Formato de resposta inesperado da API de detalhes PNCP.', url, None, payload)

        return self.normalize_item(payload)

    def normalize_item(self, item: Dict[str, Any]) -> NormalizedBiddingRecord:
        numero_controle = item.get('numeroControlePNCP')

        title = first_present(item, 'objetoCompra', 'objetoContratacao')
        description_parts = [title, item.get('informacaoComplementar')]
        description = '\n'.join(str(part) for part in description_parts if part).strip()

        return self._build_record(
            bidding_number=clean_bidding_number(numero_controle, self.source_key),
            title=title,
            description=description or None,
            opening_date=parse_datetime(first_present(item, 'dataAberturaProposta', 'dataInicioRecebimento')),
            closing_date=parse_datetime(first_present(item, 'dataEncerramentoProposta', 'dataFimRecebimento')),
            publication_date=parse_datetime(first_present(item, 'dataPublicacaoPncp', 'dataInclusao')),
            modality=map_modality(item.get('modalidadeNome')),
            status=map_status(item.get('situacaoCompraNome')),
            estimated_value=parse_number(item.get('valorTotalEstimado')),
            url_source=self._source_url(numero_controle, item),
            source_identifier=numero_controle,
        )

    def _source_url(self, numero_controle: Optional[str], item: Dict[str, Any]) -> Optional[str]:
        parts = parse_control_number(numero_controle)
        if parts:
            cnpj, ano, sequencial = parts
            return EDITAL_URL.format(cnpj=cnpj, ano=ano, sequencial=sequencial)
        return item.get('linkSistemaOrigem') or None

    def _detail_url(self, identifier: str) -> str:
        parts = parse_control_number(identifier)
        if parts is None:
            match = _EDITAL_URL_RE.search(identifier)
            if match:
                cnpj, ano, sequencial = match.groups()
                parts = (cnpj, ano, int(sequencial))

        if parts:
            cnpj, ano, sequencial = parts
            return self.descriptor.detail_url_pattern.format(cnpj=cnpj, ano=ano, sequencial=sequencial)

        if identifier.startswith(('http://', 'https://')) and '/api/' in identifier:
            return identifier

        raise DataError(f"Identificador PNCP inválido: {identifier}")

    @staticmethod
    def _matches_number(item: Dict[str, Any], bidding_number: str) -> bool:
        wanted = bidding_number.strip()
        candidates = (item.get('numeroControlePNCP'), item.get('numeroCompra'), item.get('processo'))
        return any(str(value).strip() == wanted for value in candidates if value is not None)
