import os
import redis
import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RedisConfig:
    """Configuração do Redis usado pelo cache de buscas (URL completa ou host/port)"""

    @staticmethod
    def get_redis_client(redis_url: Optional[str] = None) -> Optional[redis.Redis]:
        """
        Cria cliente Redis baseado na configuração do ambiente.

        Returns:
            Cliente conectado, ou None quando o Redis não está acessível
            (o agregador segue funcionando sem cache).
        """
        redis_url = redis_url or os.getenv('REDIS_URL') or os.getenv('REDIS_HOST')

        try:
            if redis_url and redis_url.startswith(('redis://', 'rediss://')):
                parsed = urlparse(redis_url)
                logger.info(f"🔗 Tentando conectar via URL Redis: {parsed.hostname}:{parsed.port or 6379}")

                db = parsed.path.lstrip('/') or os.getenv('REDIS_DB', '0')
                client = redis.Redis(
                    host=parsed.hostname,
                    port=parsed.port or 6379,
                    password=parsed.password,
                    db=int(db),
                    ssl=parsed.scheme == 'rediss',
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=False
                )
            else:
                host = redis_url or 'localhost'
                port = int(os.getenv('REDIS_PORT', '6379'))
                logger.info(f"🔗 Conectando via host/port: {host}:{port}")

                client = redis.Redis(
                    host=host,
                    port=port,
                    password=os.getenv('REDIS_PASSWORD') or None,
                    db=int(os.getenv('REDIS_DB', '0')),
                    socket_connect_timeout=3,
                    socket_timeout=3,
                    retry_on_timeout=False
                )

            client.ping()
            logger.info("✅ Redis conectado com sucesso")
            return client

        except redis.RedisError as e:
            logger.warning(f"⚠️ Redis não disponível: {e}")
            logger.info("💡 Sistema continuará funcionando sem cache")
            return None
        except ValueError as e:
            logger.error(f"❌ Configuração Redis inválida: {e}")
            return None
