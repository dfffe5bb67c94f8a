from .settings import AggregatorConfig
from .logging_config import setup_logging
from .env_loader import load_environment

__all__ = ['AggregatorConfig', 'setup_logging', 'load_environment']
