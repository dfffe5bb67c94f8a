"""
Exceções do agregador de licitações.

Nenhuma delas atravessa as operações públicas: adapters, agregador e
reconciliador convertem em resultados estruturados (success=False).
"""
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class BaseAggregationError(Exception):
    """Exceção base para todas as falhas do agregador"""

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Converter exceção para formato JSON"""
        return {
            'success': False,
            'error': self.error_code,
            'message': self.message,
            'details': self.details
        }


class ConfigurationError(BaseAggregationError):
    """Fonte desconhecida, desabilitada ou bloqueada pela configuração"""

    def __init__(self, source_key: str, message: str):
        super().__init__(message, details={'source': source_key})
        self.source_key = source_key


class TransportError(BaseAggregationError):
    """Falha de rede, timeout ou status HTTP não-2xx"""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None,
                 retryable: bool = False):
        super().__init__(message, details={'service': service_name, 'status_code': status_code})
        self.service_name = service_name
        self.status_code = status_code
        self.retryable = retryable


class ShapeError(BaseAggregationError):
    """Resposta em formato inesperado (JSON fora do contrato ou layout HTML alterado)"""

    def __init__(self, service_name: str, message: str, context: Dict[str, Any] = None):
        super().__init__(message, details=context or {})
        self.service_name = service_name


class FetchCancelledError(TransportError):
    """Busca agregada cancelada (tempo limite) antes de a fonte concluir"""

    def __init__(self, service_name: str):
        super().__init__(service_name, f"Busca em {service_name} cancelada pelo tempo limite da busca agregada")


class DataError(BaseAggregationError):
    """Item individual que não pôde ser normalizado"""


class PersistenceError(BaseAggregationError):
    """Erro ao gravar ou ler do banco de dados"""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error
        logger.error(f"Database error: {message}", exc_info=original_error)


class ConcurrencyError(PersistenceError):
    """Registro alterado por outro processo desde a leitura (escrita otimista rejeitada)"""
