"""
Normalizadores de campos das fontes de licitação.

Funções puras e sem estado: datas, valores monetários, situação,
modalidade e número da licitação. Entradas inválidas resultam em None
(ou no valor ``unknown`` dos enums), nunca em exceção.
"""
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urljoin

from dateutil import parser as date_parser

from ..interfaces.procurement_data_source import BiddingStatus, Modality

logger = logging.getLogger(__name__)

# Ordem de prioridade: o primeiro formato que casar com a string inteira vence.
DATETIME_FORMATS: Tuple[str, ...] = (
    '%Y-%m-%dT%H:%M:%S%z',       # 2024-03-15T10:00:00-03:00 / ...Z
    '%Y-%m-%dT%H:%M:%S.%f%z',    # 2024-03-15T10:00:00.000-03:00
    '%Y-%m-%dT%H:%M:%S',         # 2024-03-15T10:00:00 (PNCP)
    '%Y-%m-%dT%H:%M:%S.%f',      # 2024-03-15T10:00:00.123
    '%Y-%m-%d %H:%M:%S',
    '%d/%m/%Y %H:%M:%S',
    '%d/%m/%Y %H:%M',
    '%Y-%m-%d',
    '%d/%m/%Y',
)

# Portais escrevem "15/03/2024 às 10:00"
_TIME_SEPARATOR_RE = re.compile(r'\s+(?:às|as)\s+', re.IGNORECASE)

# (termos, situação): casa se qualquer termo estiver contido no texto.
# Termos com "=" exigem igualdade com o texto inteiro.
STATUS_RULES: Tuple[Tuple[Tuple[str, ...], BiddingStatus], ...] = (
    (('em disputa', 'sessão pública', 'sessao publica', 'em acolhimento', 'aberto p/ lances'), BiddingStatus.ACTIVE),
    (('homologad', 'adjudicad', 'contrato assinado', '=concluída', '=concluida'), BiddingStatus.FINISHED),
    (('cancelad', 'anulad', 'revogad'), BiddingStatus.CANCELED),
    (('fracassad', 'desert'), BiddingStatus.CANCELED),
    (('suspens',), BiddingStatus.PENDING),
    (('publicad', 'divulgad', 'agendad', '=a realizar'), BiddingStatus.PENDING),
    (('abert', 'andamento', 'em análise', 'em analise', 'julgamento'), BiddingStatus.ACTIVE),
    (('encerrad', 'finaliza'), BiddingStatus.FINISHED),
)

# (grupos, modalidade): todos os grupos precisam casar, cada um com qualquer termo.
MODALITY_RULES: Tuple[Tuple[Tuple[Tuple[str, ...], ...], Modality], ...] = (
    ((('pregão', 'pregao'), ('eletrônico', 'eletronico')), Modality.PREGAO_ELETRONICO),
    ((('pregão', 'pregao'), ('presencial',)), Modality.PREGAO_PRESENCIAL),
    ((('concorrência', 'concorrencia'),), Modality.CONCORRENCIA),
    ((('tomada de preço', 'tomada de preco'),), Modality.TOMADA_PRECOS),
    ((('convite',),), Modality.CONVITE),
    ((('leilão', 'leilao'),), Modality.LEILAO),
    ((('concurso',),), Modality.CONCURSO),
    ((('dispensa',),), Modality.DISPENSA),
    ((('inexigibilidade',),), Modality.INEXIGIBILIDADE),
    ((('rdc', 'regime diferenciado'),), Modality.RDC),
    ((('credenciamento',),), Modality.CREDENCIAMENTO),
    ((('diálogo competitivo', 'dialogo competitivo'),), Modality.DIALOGO_COMPETITIVO),
)

# Limpeza específica do número da licitação por fonte (aplicada em ordem)
BIDDING_NUMBER_RULES: Dict[str, Tuple[str, ...]] = {
    # "153080 - 00012/2024 (SRP)" -> "00012/2024"
    'comprasnet-scraping-legacy': (r'^\d+\s*-\s*', r'\s*\(.*\)\s*$'),
    # "Licitação nº 1012345" -> "1012345"
    'licitacoes-e': (r'^\D+',),
}


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Converte a data de uma fonte em datetime ingênuo.

    Offsets são descartados mantendo o horário de parede da fonte.

    Returns:
        datetime ou None quando nenhum formato (nem o parse permissivo) casar
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = _TIME_SEPARATOR_RE.sub(' ', value.strip())
    if not text:
        return None

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=None)
        except ValueError:
            continue

    try:
        parsed = date_parser.parse(text, dayfirst=True)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Data não reconhecida '{value}': {e}")
        return None
    return parsed.replace(tzinfo=None)


def parse_date_for_api(value: Any, fmt: str = '%Y-%m-%d') -> Optional[str]:
    """Data para parâmetros de consulta (somente dia)"""
    if value is None or value == '':
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        logger.warning(f"⚠️ Data de filtro inválida ignorada: {value}")
        return None
    return parsed.strftime(fmt)


def parse_currency(value: Any) -> Optional[float]:
    """
    Valor monetário no padrão brasileiro ("R$ 1.234,56") ou numérico.

    Com vírgula e ponto, o ponto é separador de milhar; só com vírgula, ela
    é o separador decimal. Valores negativos são rejeitados.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None

    cleaned = re.sub(r'[^\d,.]', '', str(value))
    if not cleaned:
        return None

    if ',' in cleaned and '.' in cleaned:
        cleaned = cleaned.replace('.', '').replace(',', '.')
    elif ',' in cleaned:
        cleaned = cleaned.replace(',', '.')

    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_number(value: Any) -> Optional[float]:
    """Valor já numérico vindo de API JSON (número ou string numérica simples)"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float('inf'), float('-inf')) or number < 0:
        return None
    return number


def map_status(raw: Any) -> BiddingStatus:
    """Situação textual da fonte -> BiddingStatus (primeira regra que casar)"""
    text = _lower(raw)
    if not text:
        return BiddingStatus.UNKNOWN

    for terms, status in STATUS_RULES:
        for term in terms:
            if term.startswith('='):
                if text == term[1:]:
                    return status
            elif term in text:
                return status

    logger.debug(f"Situação não mapeada: '{raw}'")
    return BiddingStatus.UNKNOWN


def map_modality(raw: Any) -> Modality:
    text = _lower(raw)
    if not text:
        return Modality.UNKNOWN

    for groups, modality in MODALITY_RULES:
        if all(any(term in text for term in group) for group in groups):
            return modality

    logger.debug(f"Modalidade não mapeada: '{raw}'")
    return Modality.UNKNOWN


def clean_bidding_number(raw: Any, source_key: Optional[str] = None) -> Optional[str]:
    if raw is None:
        return None

    number = str(raw).strip()
    for pattern in BIDDING_NUMBER_RULES.get(source_key, ()):
        number = re.sub(pattern, '', number)

    number = clean_text(number)
    return number or None


def clean_text(value: Any) -> str:
    """Colapsa espaços em branco (inclusive quebras de linha)"""
    if value is None:
        return ''
    return re.sub(r'\s+', ' ', str(value)).strip()


def first_present(item: Dict[str, Any], *keys: str) -> Any:
    """Primeiro valor não vazio entre as chaves, na ordem dada"""
    for key in keys:
        value = item.get(key)
        if value not in (None, ''):
            return value
    return None


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Links relativos de páginas raspadas viram absolutos"""
    if not href:
        return None
    href = href.strip()
    if href.startswith('javascript:') or href == '#':
        return None
    return urljoin(base_url, href)


def _lower(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip().lower()
