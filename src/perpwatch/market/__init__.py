"""Market universe layer: instrument catalog, volume ranking and metric retrieval."""

from perpwatch.market.catalog import InstrumentCatalog
from perpwatch.market.fetcher import MetricFetcher
from perpwatch.market.ranker import VolumeRanker

__all__ = ["InstrumentCatalog", "MetricFetcher", "VolumeRanker"]
