from .procurement_data_source import (
    BiddingFetcher,
    BiddingStatus,
    DetailResult,
    Modality,
    NormalizedBiddingRecord,
    SearchFilters,
    SearchResult,
    SegmentDescriptor,
    SourceDescriptor,
    SourceKind,
    SourceStatus,
)
from .bidding_store import BiddingStore
