import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import redis

from ..config.redis_config import RedisConfig
from ..interfaces.procurement_data_source import NormalizedBiddingRecord

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = 'biddings_search_'
DEFAULT_CACHE_VERSION = 'v1.2'


def generate_cache_key(sources: Iterable[str], filters: Dict[str, Any],
                       version: str = DEFAULT_CACHE_VERSION) -> str:
    """
    Chave determinística de uma busca.

    Independe da ordem das fontes e dos filtros: ambos são ordenados antes
    do hash, junto com a versão do esquema dos registros.
    """
    canonical = {
        'v': version,
        'sources': sorted(sources),
        'filters': {key: filters[key] for key in sorted(filters)},
    }
    payload = json.dumps(canonical, sort_keys=True, ensure_ascii=False, default=str)
    return CACHE_KEY_PREFIX + hashlib.md5(payload.encode('utf-8')).hexdigest()


class CacheService:
    """Cache das buscas agregadas em Redis (JSON, last-writer-wins)."""

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: int = 3600,
                 version: str = DEFAULT_CACHE_VERSION, connect: bool = True,
                 redis_url: Optional[str] = None):
        """
        Inicializa o CacheService.

        Args:
            redis_client: Cliente Redis já configurado. Se None e ``connect``
                for True, usa RedisConfig.get_redis_client().
            ttl_seconds: Tempo de vida das entradas. ``<= 0`` desativa o cache.
            version: Versão do esquema dos registros, entra na chave.
            redis_url: URL usada quando o cliente é criado aqui.
        """
        if redis_client is None and connect and ttl_seconds > 0:
            redis_client = RedisConfig.get_redis_client(redis_url)

        self.redis_client = redis_client
        self.default_ttl = ttl_seconds
        self.version = version

        if not self.enabled:
            logger.warning("⚠️ CacheService inicializado sem cache ativo (Redis indisponível ou TTL <= 0)")
        else:
            logger.info(f"✅ CacheService inicializado com TTL padrão de {self.default_ttl}s")

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None and self.default_ttl > 0

    def generate_key(self, sources: Iterable[str], filters: Dict[str, Any]) -> str:
        return generate_cache_key(sources, filters, self.version)

    def get_records(self, key: str) -> Optional[List[NormalizedBiddingRecord]]:
        """
        Busca uma lista de licitações no cache.

        Returns:
            Lista (possivelmente vazia) em caso de hit, None em caso de miss.
            Entradas com formato inválido são removidas e contam como miss.
        """
        if not self.enabled:
            return None

        try:
            cached_data = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Erro ao ler do cache para a chave '{key}': {e}")
            return None

        if cached_data is None:
            logger.info(f"📥 CACHE MISS: Chave '{key}' não encontrada.")
            return None

        try:
            payload = json.loads(cached_data)
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️ Entrada de cache ilegível '{key}': {e}")
            self.delete(key)
            return None

        if not self._is_valid_payload(payload):
            logger.warning(f"⚠️ Entrada de cache com formato inválido '{key}', removendo")
            self.delete(key)
            return None

        try:
            records = [NormalizedBiddingRecord.from_dict(item) for item in payload]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Falha ao reconstruir registros do cache '{key}': {e}")
            self.delete(key)
            return None

        logger.info(f"🎯 CACHE HIT: Chave '{key}' com {len(records)} licitações.")
        return records

    def set_records(self, key: str, records: List[NormalizedBiddingRecord], ttl: Optional[int] = None) -> bool:
        """
        Salva a lista processada no cache.

        Args:
            key: Chave gerada por ``generate_key``.
            records: Licitações já processadas.
            ttl: TTL customizado em segundos. Se None, usa o TTL padrão.
        """
        ttl_to_use = ttl if ttl is not None else self.default_ttl
        if self.redis_client is None or ttl_to_use <= 0:
            return False

        try:
            serialized_value = json.dumps([record.to_dict() for record in records], ensure_ascii=False)
            self.redis_client.setex(key, ttl_to_use, serialized_value)
            logger.info(f"💾 CACHE SET: Chave '{key}' salva com TTL de {ttl_to_use}s.")
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"❌ Erro ao salvar no cache para a chave '{key}': {e}")
            return False

    def delete(self, key: str) -> bool:
        if self.redis_client is None:
            return False

        try:
            if self.redis_client.delete(key) > 0:
                logger.info(f"🗑️ CACHE DELETE: Chave '{key}' removida.")
                return True
            return False
        except redis.RedisError as e:
            logger.error(f"❌ Erro ao deletar chave '{key}' do cache: {e}")
            return False

    def clear_prefix(self, prefix: str = CACHE_KEY_PREFIX) -> int:
        """
        Limpa todas as chaves que começam com um determinado prefixo.

        Returns:
            int: O número de chaves removidas.
        """
        if self.redis_client is None:
            return 0

        try:
            keys_to_delete = list(self.redis_client.scan_iter(f"{prefix}*"))
            if not keys_to_delete:
                logger.info(f"ℹ️ Nenhuma chave encontrada com o prefixo '{prefix}' para limpar.")
                return 0

            self.redis_client.delete(*keys_to_delete)
            logger.info(f"🗑️ CACHE CLEAR: {len(keys_to_delete)} chaves com prefixo '{prefix}' removidas.")
            return len(keys_to_delete)
        except redis.RedisError as e:
            logger.error(f"❌ Erro ao limpar cache com prefixo '{prefix}': {e}")
            return 0

    def get_info(self) -> Dict[str, Any]:
        if self.redis_client is None:
            return {"status": "indisponivel"}

        try:
            info = self.redis_client.info()
            return {
                "status": "conectado",
                "ttl": self.default_ttl,
                "version": self.version,
                "redis_version": info.get("redis_version"),
                "used_memory_human": info.get("used_memory_human"),
            }
        except redis.RedisError as e:
            return {"status": "erro", "message": str(e)}

    @staticmethod
    def _is_valid_payload(payload: Any) -> bool:
        """Confiável se for lista vazia ou se o primeiro item tiver o formato de registro"""
        if not isinstance(payload, list):
            return False
        if not payload:
            return True
        first = payload[0]
        return isinstance(first, dict) and bool(first.get('bidding_number')) and 'source' in first
