"""
Adapter de scraping do Licitações-e (Banco do Brasil)

Pesquisa via POST de formulário; resultados na tabela ``table#resultado``.
Fonte frágil: mudanças de layout aparecem como falha, nunca como lista vazia.
"""
import logging
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from ..exceptions import DataError
from ..interfaces.procurement_data_source import NormalizedBiddingRecord, SearchFilters
from ..utils.normalizers import (
    clean_bidding_number,
    clean_text,
    map_modality,
    map_status,
    parse_date_for_api,
    parse_datetime,
    resolve_url,
)
from .base_adapter import BaseBiddingAdapter

logger = logging.getLogger(__name__)

RESULT_ROWS_SELECTOR = 'table#resultado > tbody > tr'
NO_RESULTS_MARKER = 'nenhuma licitação encontrada'
MIN_COLUMNS = 5
FORM_DATE_FORMAT = '%d/%m/%Y'
SITE_URL = 'https://www.licitacoes-e.com.br'


class LicitacoesEAdapter(BaseBiddingAdapter):

    source_key = 'licitacoes-e'
    browser = True
    max_attempts = 2

    def build_query(self, filters: SearchFilters) -> Dict[str, Any]:
        form = {
            'numeroLicitacao': filters.bidding_number,
            'dataPublicacaoInicio': parse_date_for_api(filters.start_date, FORM_DATE_FORMAT),
            'dataPublicacaoFim': parse_date_for_api(filters.end_date, FORM_DATE_FORMAT),
        }
        return {key: value for key, value in form.items() if value}

    def _fetch_records(self, filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        url = self.descriptor.url
        form = self.build_query(filters)
        logger.warning(f"⚠️ Executando busca frágil por scraping em {self.name}")
        logger.debug(f"📤 POST {url} campos={list(form)}")

        response = self.http.post(url, data=form)
        html = response.text or ''

        soup = BeautifulSoup(html, 'html.parser')
        rows = soup.select(RESULT_ROWS_SELECTOR)

        if not rows:
            if NO_RESULTS_MARKER in html.lower():
                logger.info(f"📭 {self.name}: nenhuma licitação encontrada")
                return []
            raise self._shape_error(
                'Falha ao encontrar tabela de resultados (layout mudou?).',
                url,
                {'selector': RESULT_ROWS_SELECTOR, 'fields': list(form)},
            )

        return self._normalize_items(rows, self.normalize_row)

    def normalize_row(self, row) -> NormalizedBiddingRecord:
        cols = row.find_all('td')
        if len(cols) < MIN_COLUMNS:
            raise DataError(f"linha com {len(cols)} colunas (esperado >= {MIN_COLUMNS})")

        agency = clean_text(cols[1].get_text(' '))
        title = clean_text(cols[2].get_text(' '))
        modality_text = clean_text(cols[5].get_text(' ')) if len(cols) > 5 else None

        link = cols[0].find('a')
        href = link.get('href') if link else None

        return self._build_record(
            bidding_number=clean_bidding_number(cols[0].get_text(' '), self.source_key),
            title=title or 'Título não extraído',
            description=self._compose_description(agency=agency, title=title),
            opening_date=parse_datetime(clean_text(cols[3].get_text(' '))),
            modality=map_modality(modality_text),
            status=map_status(clean_text(cols[4].get_text(' '))),
            url_source=resolve_url(href, SITE_URL),
        )
