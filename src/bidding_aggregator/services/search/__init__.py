from .source_registry import SourceRegistry, SourceResolution, SOURCES, ALL_SOURCES
from .segment_classifier import SegmentClassifier, SEGMENTS

__all__ = ['SourceRegistry', 'SourceResolution', 'SOURCES', 'ALL_SOURCES', 'SegmentClassifier', 'SEGMENTS']
