"""Image search tools for Auto Illustration."""

from .aggregator import SearchAggregator
from .contracts import ImageSearchStrategy
from .factory import create_search_aggregator
from .merge import dedupe_by_url, interleave
from .serper_client import SerperImageSearchClient
from .wikimedia_client import WikimediaSearchClient

__all__ = [
    "ImageSearchStrategy",
    "SearchAggregator",
    "SerperImageSearchClient",
    "WikimediaSearchClient",
    "create_search_aggregator",
    "dedupe_by_url",
    "interleave",
]
