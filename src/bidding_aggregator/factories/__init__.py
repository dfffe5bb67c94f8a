from .data_source_factory import DataSourceFactory, ADAPTER_CLASSES

__all__ = ['DataSourceFactory', 'ADAPTER_CLASSES']
