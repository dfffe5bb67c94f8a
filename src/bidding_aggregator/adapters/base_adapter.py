import logging
from abc import abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config.settings import AggregatorConfig
from ..exceptions import DataError, ShapeError, TransportError
from ..interfaces.procurement_data_source import (
    BiddingFetcher,
    DetailResult,
    NormalizedBiddingRecord,
    SearchFilters,
    SearchResult,
    SourceDescriptor,
)
from .http_client import SourceHttpClient

logger = logging.getLogger(__name__)


class BaseBiddingAdapter(BiddingFetcher):
    """
    Base dos fetchers de fonte.

    As subclasses implementam ``_fetch_records`` (e opcionalmente
    ``_fetch_detail_record``) levantando TransportError/ShapeError; esta
    classe converte tudo em SearchResult/DetailResult.
    """

    browser: bool = False
    max_attempts: Optional[int] = None
    supports_detail: bool = False

    def __init__(self, descriptor: SourceDescriptor, config: AggregatorConfig,
                 http_client: Optional[SourceHttpClient] = None):
        self.descriptor = descriptor
        self.config = config
        self.http = http_client or SourceHttpClient(
            descriptor.name, config, browser=self.browser, max_attempts=self.max_attempts
        )

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    def _fetch_records(self, filters: SearchFilters) -> List[NormalizedBiddingRecord]:
        pass

    def _fetch_detail_record(self, identifier: str) -> Optional[NormalizedBiddingRecord]:
        raise NotImplementedError

    def fetch(self, filters: SearchFilters) -> SearchResult:
        logger.info(f"🔍 Buscando licitações em {self.name}")
        try:
            records = self._fetch_records(filters)
        except TransportError as e:
            message = self._transport_message(e)
            logger.error(f"❌ {message}")
            return SearchResult(success=False, message=message)
        except ShapeError as e:
            logger.error(f"❌ {self.name}: {e.message} contexto={e.details}")
            return SearchResult(success=False, message=e.message)
        except Exception as e:
            logger.exception(f"❌ Erro inesperado ao buscar em {self.name}: {e}")
            return SearchResult(success=False, message=f"Erro inesperado ao processar dados de {self.name}.")

        logger.info(f"✅ {self.name}: {len(records)} licitações normalizadas")
        return SearchResult(
            success=True,
            message=f"{len(records)} licitações encontradas em {self.name}.",
            data=records
        )

    def fetch_detail(self, identifier: str) -> DetailResult:
        if not self.supports_detail:
            return DetailResult(False, f"Busca de detalhes não suportada para {self.name}.")
        if not identifier:
            return DetailResult(False, 'Identificador da licitação ausente.')

        logger.info(f"🔍 Buscando detalhes em {self.name}: {identifier}")
        try:
            record = self._fetch_detail_record(identifier)
        except TransportError as e:
            if e.status_code == 404:
                return DetailResult(False, f"Detalhes não encontrados na API (404): {identifier}.")
            message = self._transport_message(e)
            logger.error(f"❌ {message}")
            return DetailResult(False, message)
        except ShapeError as e:
            logger.error(f"❌ {self.name}: {e.message} contexto={e.details}")
            return DetailResult(False, e.message)
        except DataError as e:
            logger.warning(f"⚠️ {self.name}: detalhe inválido para {identifier}: {e.message}")
            return DetailResult(False, f"Dados de detalhe inválidos em {self.name}: {e.message}")
        except Exception as e:
            logger.exception(f"❌ Erro inesperado ao buscar detalhes em {self.name}: {e}")
            return DetailResult(False, f"Erro inesperado ao processar detalhes de {self.name}.")

        if record is None:
            return DetailResult(False, f"Detalhes não encontrados em {self.name}: {identifier}.")
        return DetailResult(True, 'Detalhes obtidos com sucesso.', record)

    def _normalize_items(self, items: Iterable[Any],
                         converter: Callable[[Any], NormalizedBiddingRecord]) -> List[NormalizedBiddingRecord]:
        """Converte item a item; um item quebrado é descartado sem derrubar o lote"""
        records = []
        dropped = 0
        for item in items:
            try:
                records.append(converter(item))
            except DataError as e:
                dropped += 1
                logger.warning(f"⚠️ {self.name}: item descartado ({e.message})")
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                dropped += 1
                logger.warning(f"⚠️ {self.name}: erro ao normalizar item: {e}")

        if dropped:
            logger.info(f"🧹 {self.name}: {dropped} itens descartados na normalização")
        return records

    def _build_record(self, bidding_number: Optional[str], title: Optional[str],
                      **fields: Any) -> NormalizedBiddingRecord:
        if not bidding_number:
            raise DataError('Número da licitação ausente', details={'source': self.source_key})

        return NormalizedBiddingRecord(
            bidding_number=bidding_number,
            title=title or 'Objeto não informado',
            source=self.source_key,
            source_name=self.name,
            **fields
        )

    @staticmethod
    def _compose_description(agency: Optional[str] = None, uasg: Optional[str] = None,
                             title: Optional[str] = None) -> Optional[str]:
        """Descrição de itens raspados: "Órgão: X. UASG: Y. Objeto: Z" com as partes disponíveis"""
        parts = []
        if agency:
            parts.append(f"Órgão: {agency.strip()}")
        if uasg:
            parts.append(f"UASG: {uasg.strip()}")
        if title:
            parts.append(f"Objeto: {title.strip()}")
        return '. '.join(parts) or None

    def _transport_message(self, error: TransportError) -> str:
        if error.status_code:
            return f"Erro HTTP {error.status_code} ao acessar {self.name}."
        return f"Erro de conexão ao acessar {self.name}: {error.message}"

    def _shape_error(self, message: str, url: str, params: Optional[Dict[str, Any]],
                     payload: Any = None) -> ShapeError:
        """ShapeError com contexto de diagnóstico (sem o payload completo)"""
        if isinstance(payload, dict):
            top_level = sorted(payload.keys())
        else:
            top_level = type(payload).__name__
        return ShapeError(
            self.name,
            message,
            context={'url': url, 'params': params, 'top_level_keys': top_level}
        )
