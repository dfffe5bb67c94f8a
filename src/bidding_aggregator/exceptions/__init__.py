from .aggregation_exceptions import (
    BaseAggregationError,
    ConfigurationError,
    TransportError,
    FetchCancelledError,
    ShapeError,
    DataError,
    PersistenceError,
    ConcurrencyError,
)

__all__ = [
    'BaseAggregationError',
    'ConfigurationError',
    'TransportError',
    'FetchCancelledError',
    'ShapeError',
    'DataError',
    'PersistenceError',
    'ConcurrencyError',
]
