"""
Serviço de busca agregada de licitações

Ponto de entrada do agregador: resolve as fontes, consulta o cache, dispara
os fetchers (sequencial ou em pool limitado), pós-processa e grava o cache.
Nenhuma operação pública levanta exceção; tudo volta como resultado
estruturado com mensagem legível.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from ..adapters.http_client import cancellation_scope
from ..config.settings import AggregatorConfig
from ..exceptions import ConfigurationError
from ..factories.data_source_factory import DataSourceFactory
from ..interfaces.bidding_store import BiddingStore
from ..interfaces.procurement_data_source import (
    DetailResult,
    NormalizedBiddingRecord,
    SearchFilters,
    SearchResult,
    SegmentDescriptor,
    SourceDescriptor,
)
from .cache_service import CacheService
from .reconciliation_service import ReconciliationResult, ReconciliationService
from .result_processor import ResultProcessor
from .search.segment_classifier import SegmentClassifier
from .search.source_registry import ALL_SOURCES, SourceRegistry

logger = logging.getLogger(__name__)

MSG_NO_SOURCES = 'Nenhuma fonte válida selecionada ou habilitada para busca.'
MSG_FROM_CACHE = 'Busca concluída com sucesso (do cache).'
MSG_COMPLETE = 'Busca concluída.'
MSG_PARTIAL = 'Busca parcialmente concluída (algumas fontes falharam ou não retornaram dados).'
MSG_ALL_FAILED = 'Falha ao buscar em todas as fontes selecionadas e habilitadas.'


class BiddingSearchService:

    def __init__(self, config: Optional[AggregatorConfig] = None,
                 registry: Optional[SourceRegistry] = None,
                 segment_classifier: Optional[SegmentClassifier] = None,
                 factory: Optional[DataSourceFactory] = None,
                 cache: Optional[CacheService] = None,
                 store: Optional[BiddingStore] = None):
        self.config = config or AggregatorConfig.from_env()
        self.registry = registry or SourceRegistry()
        self.segment_classifier = segment_classifier or SegmentClassifier()
        self.factory = factory or DataSourceFactory(self.config, self.registry)
        self.cache = cache or CacheService(
            ttl_seconds=self.config.cache_ttl,
            version=self.config.cache_version,
            redis_url=self.config.redis_url
        )
        self.result_processor = ResultProcessor(self.segment_classifier)
        self.store = store
        self.reconciler = (
            ReconciliationService(self.registry, store, self.get_details, self.config) if store is not None else None
        )

    def get_sources(self) -> List[SourceDescriptor]:
        return self.registry.list_all()

    def get_segments(self) -> List[SegmentDescriptor]:
        return self.segment_classifier.list_segments()

    def search(self, sources: Union[str, Iterable[str]] = ALL_SOURCES,
               filters: Union[SearchFilters, Mapping[str, Any], None] = None) -> SearchResult:
        """
        Busca agregada.

        Args:
            sources: 'all' ou lista de chaves de fonte
            filters: SearchFilters ou dicionário equivalente

        Returns:
            SearchResult; ``success`` é True se houve resultado ou se ao menos
            uma fonte respondeu corretamente (mesmo sem itens).
        """
        if not isinstance(filters, SearchFilters):
            filters = SearchFilters.from_dict(dict(filters or {}))

        resolution = self.registry.resolve(sources, self.config)
        skipped_note = f" Fontes puladas: {', '.join(resolution.skipped)}" if resolution.skipped else ''

        if not resolution.sources:
            logger.warning(f"⚠️ Nenhuma fonte válida para a busca: {sources}")
            return SearchResult(
                success=False,
                message=MSG_NO_SOURCES + skipped_note,
                details=list(resolution.invalid),
                skipped_sources=list(resolution.skipped),
            )

        source_keys = [descriptor.key for descriptor in resolution.sources]
        cache_key = self.cache.generate_key(source_keys, filters.to_cache_dict())

        cached = self.cache.get_records(cache_key)
        if cached is not None:
            details = list(resolution.invalid)
            if resolution.skipped:
                details.append(f"Fontes puladas (cache): {', '.join(resolution.skipped)}")
            return SearchResult(
                success=True,
                message=MSG_FROM_CACHE,
                data=cached,
                details=details,
                skipped_sources=list(resolution.skipped),
                from_cache=True,
            )

        logger.info(f"🔍 Busca agregada em {len(source_keys)} fontes: {source_keys}")
        outcomes = self._fetch_all(resolution.sources, filters)

        merged: List[NormalizedBiddingRecord] = []
        details = list(resolution.invalid)
        failed_sources: List[str] = []
        successful = 0

        for descriptor, result in outcomes:
            if result.success:
                successful += 1
                merged.extend(result.data)
            else:
                failed_sources.append(descriptor.name)
                details.extend(result.details or [f"Falha em {descriptor.name}: {result.message}"])

        processed = self.result_processor.process(merged, filters)
        success = len(processed) > 0 or successful > 0

        if successful == len(outcomes):
            message = MSG_COMPLETE
        elif successful > 0:
            message = MSG_PARTIAL
        else:
            message = MSG_ALL_FAILED
        if failed_sources:
            message += f" Fontes com falha: {', '.join(failed_sources)}."
        message += skipped_note

        if processed:
            self.cache.set_records(cache_key, processed)

        logger.info(
            f"✅ Busca agregada: {len(processed)} licitações, "
            f"{successful}/{len(outcomes)} fontes com sucesso"
        )
        return SearchResult(
            success=success,
            message=message,
            data=processed,
            details=details,
            failed_sources=failed_sources,
            skipped_sources=list(resolution.skipped),
        )

    def get_details(self, source_key: str, identifier: str) -> DetailResult:
        try:
            descriptor = self.registry.require_dispatchable(source_key, self.config)
        except ConfigurationError as e:
            logger.warning(f"⚠️ {e.message}")
            return DetailResult(False, f"Não é possível buscar detalhes: {e.message}")

        fetcher = self.factory.get_fetcher(descriptor.key)
        if fetcher is None:
            return DetailResult(False, f"Busca de detalhes para '{descriptor.name}' não implementada.")

        try:
            return fetcher.fetch_detail(identifier)
        except Exception as e:
            logger.exception(f"❌ Erro ao buscar detalhes em {descriptor.name}: {e}")
            return DetailResult(False, 'Erro interno ao buscar detalhes.')

    def update_from_source(self, stored_record: Mapping[str, Any]) -> ReconciliationResult:
        if self.reconciler is None:
            return ReconciliationResult(False, 'Armazenamento de licitações não configurado.')
        return self.reconciler.update_from_source(stored_record)

    def clear_cache(self) -> int:
        return self.cache.clear_prefix()

    def _fetch_all(self, sources: List[SourceDescriptor],
                   filters: SearchFilters) -> List[Tuple[SourceDescriptor, SearchResult]]:
        """Fan-out/fan-in: o resultado segue a ordem das fontes, não a de conclusão"""
        workers = min(self.config.search_max_workers, len(sources))
        timeout = self.config.search_timeout

        if workers <= 1 and timeout is None:
            return [(descriptor, self._run_fetch(descriptor, filters)) for descriptor in sources]

        cancel = threading.Event()
        executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix='bidding-fetch')
        futures = {
            descriptor.key: executor.submit(self._run_fetch, descriptor, filters, cancel)
            for descriptor in sources
        }
        done, not_done = wait(futures.values(), timeout=timeout)

        if not_done:
            # Fetches em andamento param na próxima tentativa ou espera de backoff
            cancel.set()

        outcomes = []
        for descriptor in sources:
            future = futures[descriptor.key]
            if future in done:
                outcomes.append((descriptor, future.result()))
            else:
                future.cancel()
                logger.error(f"⏱️ {descriptor.name} não respondeu dentro de {timeout}s")
                outcomes.append((descriptor, SearchResult(
                    success=False,
                    message=f"Tempo limite da busca excedido ({timeout}s)."
                )))

        executor.shutdown(wait=not not_done)
        return outcomes

    def _run_fetch(self, descriptor: SourceDescriptor, filters: SearchFilters,
                   cancel: Optional[threading.Event] = None) -> SearchResult:
        fetcher = self.factory.get_fetcher(descriptor.key)
        if fetcher is None:
            return SearchResult(success=False, message=f"Busca em {descriptor.name} não implementada.")

        try:
            with cancellation_scope(cancel):
                return fetcher.fetch(filters)
        except Exception as e:
            logger.exception(f"❌ Erro inesperado ao buscar em {descriptor.name}: {e}")
            return SearchResult(
                success=False,
                message=str(e),
                details=[f"Erro interno ao buscar em {descriptor.name}."]
            )
