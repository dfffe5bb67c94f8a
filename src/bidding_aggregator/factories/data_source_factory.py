"""
🏭 Factory dos fetchers de fonte

Mapa explícito chave da fonte -> classe do adapter, validado contra o
registro de fontes na construção. Instâncias são criadas sob demanda e
reaproveitadas (uma sessão HTTP por fonte).
"""

import logging
import threading
from typing import Dict, List, Mapping, Optional, Sequence, Type

from ..adapters.base_adapter import BaseBiddingAdapter
from ..adapters.bec_sp_adapter import BecSpAdapter
from ..adapters.dados_abertos_adapter import DadosAbertosComprasAdapter
from ..adapters.licitacoes_e_adapter import LicitacoesEAdapter
from ..adapters.pncp_adapter import PNCPAdapter
from ..config.settings import AggregatorConfig
from ..exceptions import ConfigurationError
from ..interfaces.procurement_data_source import BiddingFetcher
from ..services.search.source_registry import SourceRegistry

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: Sequence[Type[BaseBiddingAdapter]] = (
    DadosAbertosComprasAdapter,
    PNCPAdapter,
    LicitacoesEAdapter,
    BecSpAdapter,
)


class DataSourceFactory:
    """Resolve o fetcher de cada fonte a partir do mapa explícito de adapters"""

    def __init__(self, config: AggregatorConfig, registry: Optional[SourceRegistry] = None,
                 adapter_classes: Sequence[Type[BaseBiddingAdapter]] = ADAPTER_CLASSES,
                 fetchers: Optional[Mapping[str, BiddingFetcher]] = None):
        self.config = config
        self.registry = registry or SourceRegistry()
        self._adapter_classes: Dict[str, Type[BaseBiddingAdapter]] = {}
        self._fetchers: Dict[str, BiddingFetcher] = dict(fetchers or {})
        self._lock = threading.Lock()

        for adapter_class in adapter_classes:
            self._register(adapter_class.source_key, adapter_class)
        for key in self._fetchers:
            if self.registry.get(key) is None:
                raise ConfigurationError(key, f"Fetcher sem fonte correspondente no registro: {key}")

        logger.info(f"🏭 DataSourceFactory criada com fetchers para: {self.list_available_providers()}")

    def _register(self, key: str, adapter_class: Type[BaseBiddingAdapter]):
        if self.registry.get(key) is None:
            raise ConfigurationError(key, f"Fetcher sem fonte correspondente no registro: {key}")
        if key in self._adapter_classes:
            raise ConfigurationError(key, f"Mais de um fetcher registrado para a fonte: {key}")
        self._adapter_classes[key] = adapter_class

    def get_fetcher(self, source_key: str) -> Optional[BiddingFetcher]:
        """
        Obtém o fetcher de uma fonte.

        Returns:
            Instância do fetcher ou None se a fonte não tem implementação
        """
        with self._lock:
            if source_key in self._fetchers:
                return self._fetchers[source_key]

            adapter_class = self._adapter_classes.get(source_key)
            if adapter_class is None:
                logger.warning(f"⚠️ Fonte sem fetcher implementado: {source_key}")
                return None

            instance = adapter_class(self.registry.get(source_key), self.config)
            self._fetchers[source_key] = instance
            logger.info(f"✅ Fetcher {source_key} criado e cacheado")
            return instance

    def list_available_providers(self) -> List[str]:
        return sorted(set(self._adapter_classes) | set(self._fetchers))

    def is_provider_supported(self, source_key: str) -> bool:
        return source_key in self._adapter_classes or source_key in self._fetchers
