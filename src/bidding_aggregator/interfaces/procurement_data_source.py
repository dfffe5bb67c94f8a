from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Any, Mapping, Optional, Tuple, Union

DEFAULT_LIMIT = 100
STORAGE_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'


class SourceKind(str, Enum):
    API = 'api'
    SCRAPING = 'scraping'


class SourceStatus(str, Enum):
    ACTIVE = 'active'
    EXPERIMENTAL = 'experimental'
    FRAGILE = 'fragile'
    VERY_FRAGILE = 'very_fragile'
    REQUIRES_CAPTCHA = 'requires_captcha'
    DISABLED = 'disabled'


class Modality(str, Enum):
    PREGAO_ELETRONICO = 'pregao_eletronico'
    PREGAO_PRESENCIAL = 'pregao_presencial'
    CONCORRENCIA = 'concorrencia'
    TOMADA_PRECOS = 'tomada_precos'
    CONVITE = 'convite'
    LEILAO = 'leilao'
    CONCURSO = 'concurso'
    DISPENSA = 'dispensa'
    INEXIGIBILIDADE = 'inexigibilidade'
    RDC = 'rdc'
    CREDENCIAMENTO = 'credenciamento'
    DIALOGO_COMPETITIVO = 'dialogo_competitivo'
    UNKNOWN = 'unknown'


class BiddingStatus(str, Enum):
    ACTIVE = 'active'
    FINISHED = 'finished'
    CANCELED = 'canceled'
    PENDING = 'pending'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class SourceDescriptor:
    """Entrada estática do registro de fontes"""
    key: str
    name: str
    kind: SourceKind
    status: SourceStatus
    url: Optional[str] = None
    detail_url_pattern: Optional[str] = None
    host_patterns: Tuple[str, ...] = ()
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'name': self.name,
            'type': self.kind.value,
            'status': self.status.value,
            'url': self.url,
            'description': self.description,
        }


@dataclass(frozen=True)
class SegmentDescriptor:
    key: str
    name: str
    keywords: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'name': self.name, 'keywords': list(self.keywords)}


@dataclass(frozen=True)
class SearchFilters:
    """Filtros de uma busca agregada.

    Imutável: o mesmo objeto é compartilhado entre os fetchers de todas
    as fontes. ``offsets`` guarda a paginação por fonte (offset ou página,
    conforme a fonte interpreta).
    """
    bidding_number: Optional[str] = None
    start_date: Optional[Union[str, date]] = None
    end_date: Optional[Union[str, date]] = None
    segment: Optional[str] = None
    limit: int = DEFAULT_LIMIT
    offsets: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        try:
            limit = int(self.limit)
        except (TypeError, ValueError):
            limit = DEFAULT_LIMIT
        object.__setattr__(self, 'limit', max(1, limit))

        number = self.bidding_number.strip() if isinstance(self.bidding_number, str) else self.bidding_number
        object.__setattr__(self, 'bidding_number', number or None)
        object.__setattr__(self, 'segment', self.segment or None)
        object.__setattr__(self, 'offsets', MappingProxyType(dict(self.offsets or {})))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SearchFilters':
        data = data or {}
        return cls(
            bidding_number=data.get('bidding_number'),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            segment=data.get('segment'),
            limit=data.get('limit', DEFAULT_LIMIT),
            offsets=data.get('offsets') or {},
        )

    def offset_for(self, source_key: str, default: int = 0) -> int:
        return int(self.offsets.get(source_key, default))

    def to_cache_dict(self) -> Dict[str, Any]:
        """Representação canônica (chaves ordenadas, sem valores nulos) usada na chave de cache"""
        values = {
            'bidding_number': self.bidding_number,
            'start_date': _date_to_str(self.start_date),
            'end_date': _date_to_str(self.end_date),
            'segment': self.segment,
            'limit': self.limit,
        }
        if self.offsets:
            values['offsets'] = dict(sorted(self.offsets.items()))
        return {key: values[key] for key in sorted(values) if values[key] is not None}


@dataclass(frozen=True)
class NormalizedBiddingRecord:
    """Licitação no formato canônico, independente da fonte de origem"""
    bidding_number: str
    title: str
    source: str
    source_name: str
    description: Optional[str] = None
    opening_date: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    publication_date: Optional[datetime] = None
    modality: Modality = Modality.UNKNOWN
    status: BiddingStatus = BiddingStatus.UNKNOWN
    estimated_value: Optional[float] = None
    url_source: Optional[str] = None
    source_identifier: Optional[str] = None

    DATE_FIELDS = ('opening_date', 'closing_date', 'publication_date')
    # Colunas persistidas (source_name é apenas de exibição)
    STORAGE_FIELDS = (
        'bidding_number', 'title', 'description', 'opening_date', 'closing_date',
        'publication_date', 'modality', 'status', 'estimated_value', 'url_source',
        'source', 'source_identifier',
    )

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.source, self.bidding_number)

    def to_dict(self) -> Dict[str, Any]:
        """Forma serializável (JSON) do registro"""
        data = asdict(self)
        data['modality'] = self.modality.value
        data['status'] = self.status.value
        for name in self.DATE_FIELDS:
            value = data[name]
            data[name] = value.strftime(STORAGE_DATETIME_FORMAT) if value else None
        return data

    def to_storage_fields(self) -> Dict[str, Any]:
        """Campos no formato gravado no banco (datas como datetime, enums como texto)"""
        return {
            name: (getattr(self, name).value if name in ('modality', 'status') else getattr(self, name))
            for name in self.STORAGE_FIELDS
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedBiddingRecord':
        """Reconstrói um registro serializado por ``to_dict`` (ex.: vindo do cache)"""
        dates = {}
        for name in cls.DATE_FIELDS:
            value = data.get(name)
            if isinstance(value, str) and value:
                value = datetime.fromisoformat(value)
            dates[name] = value or None

        estimated_value = data.get('estimated_value')
        return cls(
            bidding_number=data['bidding_number'],
            title=data['title'],
            source=data['source'],
            source_name=data.get('source_name') or data['source'],
            description=data.get('description'),
            modality=Modality(data.get('modality') or Modality.UNKNOWN.value),
            status=BiddingStatus(data.get('status') or BiddingStatus.UNKNOWN.value),
            estimated_value=float(estimated_value) if estimated_value is not None else None,
            url_source=data.get('url_source'),
            source_identifier=data.get('source_identifier'),
            **dates
        )


@dataclass
class SearchResult:
    """Resultado estruturado de uma busca (por fonte ou agregada)"""
    success: bool
    message: str
    data: List[NormalizedBiddingRecord] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    failed_sources: List[str] = field(default_factory=list)
    skipped_sources: List[str] = field(default_factory=list)
    from_cache: bool = False

    @property
    def count(self) -> int:
        return len(self.data)

    @property
    def partial(self) -> bool:
        """Alguma fonte falhou, mas a busca como um todo retornou algo"""
        return self.success and bool(self.failed_sources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'count': self.count,
            'data': [record.to_dict() for record in self.data],
            'details': list(self.details),
            'failed_sources': list(self.failed_sources),
            'skipped_sources': list(self.skipped_sources),
            'from_cache': self.from_cache,
        }


@dataclass
class DetailResult:
    success: bool
    message: str
    data: Optional[NormalizedBiddingRecord] = None


class BiddingFetcher(ABC):
    """Interface comum de todos os fetchers de fonte.

    ``fetch`` e ``fetch_detail`` nunca propagam exceções: qualquer falha
    vira um resultado com ``success=False``.
    """

    source_key: str = ''

    @abstractmethod
    def build_query(self, filters: SearchFilters) -> Dict[str, Any]:
        """Traduz os filtros para os parâmetros da requisição de listagem"""
        pass

    @abstractmethod
    def fetch(self, filters: SearchFilters) -> SearchResult:
        """Busca a listagem da fonte já normalizada"""
        pass

    @abstractmethod
    def fetch_detail(self, identifier: str) -> DetailResult:
        """Busca o detalhe de uma licitação pelo identificador da fonte"""
        pass


def _date_to_str(value: Optional[Union[str, date]]) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value or None
