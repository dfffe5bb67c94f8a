"""
Agregador de licitações públicas brasileiras (Dados Abertos, PNCP,
Licitações-e e BEC/SP) com normalização, cache e reconciliação.
"""

__version__ = '0.1.0'

from .config.settings import AggregatorConfig
from .interfaces.procurement_data_source import NormalizedBiddingRecord, SearchFilters, SearchResult
from .services.bidding_search_service import BiddingSearchService

__all__ = [
    'AggregatorConfig',
    'BiddingSearchService',
    'NormalizedBiddingRecord',
    'SearchFilters',
    'SearchResult',
]
