"""Factory for wiring the search strategies from configuration."""

import httpx

from config.config import IllustrationConfig
from utils.logger import get_logger

from .aggregator import SearchAggregator
from .serper_client import SerperImageSearchClient
from .wikimedia_client import WikimediaSearchClient

logger = get_logger(__name__)


def create_search_aggregator(
    config: IllustrationConfig, http_client: httpx.AsyncClient | None = None
) -> SearchAggregator:
    """
    Build the aggregator with both strategies.

    The web strategy is always created; without AUTO_ILLUST_SERPER_API_KEY it simply
    returns no results and the encyclopedic fallback is disabled.
    """
    encyclopedic = WikimediaSearchClient(
        http_client=http_client, timeout_s=config.request_timeout_s
    )
    web = SerperImageSearchClient(
        config.serper_api_key, http_client=http_client, timeout_s=config.request_timeout_s
    )
    if not web.is_configured:
        logger.info("Web image search disabled (no Serper API key)")
    return SearchAggregator(config, encyclopedic=encyclopedic, web=web)
