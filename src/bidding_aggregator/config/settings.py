import os
import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .env_loader import load_environment

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'BiddingApiClient/1.0'
DEFAULT_BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


@dataclass(frozen=True)
class AggregatorConfig:
    """
    Configuração imutável do agregador, injetada na construção de
    fábrica, adapters e serviços. Nunca é relida durante uma busca.
    """
    cache_ttl: int = 3600
    cache_version: str = 'v1.2'
    allow_fragile_sources: bool = True
    disabled_sources: Tuple[str, ...] = field(default_factory=tuple)

    http_timeout: float = 45.0
    http_connect_timeout: float = 15.0
    http_max_attempts: int = 3
    http_retry_delay: float = 1.0
    verify_ssl: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    browser_user_agent: str = DEFAULT_BROWSER_USER_AGENT

    search_max_workers: int = 1
    search_timeout: Optional[float] = None

    redis_url: Optional[str] = None

    @property
    def request_timeout(self) -> Tuple[float, float]:
        """Tupla (connect, read) no formato aceito pelo requests"""
        return (self.http_connect_timeout, self.http_timeout)

    def with_overrides(self, **overrides) -> 'AggregatorConfig':
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, load_file: bool = True) -> 'AggregatorConfig':
        """Monta a configuração a partir das variáveis de ambiente (e config.env)"""
        if load_file:
            load_environment()

        defaults = cls()
        disabled = os.getenv('BIDDING_DISABLED_SOURCES', '')

        config = cls(
            cache_ttl=_env_int('BIDDING_CACHE_TTL', defaults.cache_ttl),
            cache_version=os.getenv('BIDDING_CACHE_VERSION', defaults.cache_version),
            allow_fragile_sources=_env_bool('BIDDING_ALLOW_FRAGILE_SOURCES', defaults.allow_fragile_sources),
            disabled_sources=tuple(key.strip() for key in disabled.split(',') if key.strip()),
            http_timeout=_env_float('BIDDING_HTTP_TIMEOUT', defaults.http_timeout),
            http_connect_timeout=_env_float('BIDDING_HTTP_CONNECT_TIMEOUT', defaults.http_connect_timeout),
            http_max_attempts=max(1, _env_int('BIDDING_HTTP_MAX_ATTEMPTS', defaults.http_max_attempts)),
            http_retry_delay=_env_float('BIDDING_HTTP_RETRY_DELAY', defaults.http_retry_delay),
            verify_ssl=_env_bool('BIDDING_VERIFY_SSL', defaults.verify_ssl),
            user_agent=os.getenv('BIDDING_USER_AGENT', defaults.user_agent),
            search_max_workers=max(1, _env_int('BIDDING_SEARCH_MAX_WORKERS', defaults.search_max_workers)),
            search_timeout=_env_float('BIDDING_SEARCH_TIMEOUT', None),
            redis_url=os.getenv('REDIS_URL') or None,
        )

        if not config.verify_ssl:
            logger.warning("⚠️ Verificação TLS desativada via BIDDING_VERIFY_SSL")

        logger.info(
            f"✅ AggregatorConfig carregada: cache_ttl={config.cache_ttl}s, "
            f"fragile={config.allow_fragile_sources}, workers={config.search_max_workers}"
        )
        return config


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on', 'sim')


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {name} value, using default")
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {name} value, using default")
        return default
