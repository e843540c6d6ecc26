"""Per-message candidate pool: routing, fallback cascade, interleave and dedup."""

import asyncio
from dataclasses import replace

from config.config import IllustrationConfig, SearchPreference
from models.illustration import Candidate, Query, SourceHint
from utils.logger import get_logger, log_fields

from .contracts import ImageSearchStrategy
from .merge import dedupe_by_url, interleave

logger = get_logger(__name__)

_FORCED_HINTS = {
    SearchPreference.ENCYCLOPEDIC: SourceHint.ENCYCLOPEDIC,
    SearchPreference.WEB: SourceHint.WEB,
    SearchPreference.BOTH: SourceHint.EITHER,
}


class SearchAggregator:
    """
    Drives the source strategies for every extracted query.

    Routing per query:
    - encyclopedic: encyclopedic strategy, falling back to the web strategy when it
      finds nothing and a web key is configured
    - web: web strategy only
    - either: both strategies concurrently, results interleaved A0, B0, A1, B1, ...

    A non-smart ``search_preference`` forces the same route for every query.
    """

    def __init__(
        self,
        config: IllustrationConfig,
        encyclopedic: ImageSearchStrategy,
        web: ImageSearchStrategy,
    ):
        self.config = config
        self.encyclopedic = encyclopedic
        self.web = web

    def resolve_hint(self, query: Query, message_hint: SourceHint | None) -> SourceHint:
        forced = _FORCED_HINTS.get(self.config.search_preference)
        if forced is not None:
            return forced
        return query.source_hint or message_hint or SourceHint.EITHER

    async def search_once(self, query_text: str, hint: SourceHint) -> list[Candidate]:
        """Run one query through the route selected by ``hint``."""
        limit = self.config.candidates_per_source

        if hint is SourceHint.ENCYCLOPEDIC:
            results = await self._search(self.encyclopedic, query_text, limit)
            if not results and self.web.is_configured:
                logger.info(
                    "Encyclopedic search empty; falling back to web search",
                    extra=log_fields(query=query_text),
                )
                results = await self._search(self.web, query_text, limit)
            return results

        if hint is SourceHint.WEB:
            return await self._search(self.web, query_text, limit)

        encyclopedic_results, web_results = await asyncio.gather(
            self._search(self.encyclopedic, query_text, limit),
            self._search(self.web, query_text, limit),
        )
        return interleave(encyclopedic_results, web_results)

    async def _search(self, strategy: ImageSearchStrategy, query_text: str, limit: int) -> list[Candidate]:
        """One strategy call; an unexpected error counts as no results for that source."""
        try:
            return await strategy.search(query_text, limit)
        except Exception as e:
            logger.error(
                f"{strategy.service_name} search raised {type(e).__name__}: {e}",
                exc_info=True,
                extra=log_fields(query=query_text, service=strategy.service_name),
            )
            return []

    async def aggregate(
        self, queries: list[Query], source_hint: SourceHint | None = None
    ) -> list[Candidate]:
        """
        Build the deduplicated candidate pool for one message.

        Queries run in extraction order, at most ``max_queries`` of them; earlier queries
        win URL ties. An empty list is a normal outcome.
        """
        pool: list[Candidate] = []
        for query in queries[: self.config.max_queries]:
            hint = self.resolve_hint(query, source_hint)
            results = await self.search_once(query.text, hint)
            pool.extend(replace(candidate, query_text=query.text) for candidate in results)
            logger.info(
                f"Query produced {len(results)} candidates",
                extra=log_fields(query=query.text, hint=hint.value, index=query.sequence_index),
            )

        unique = dedupe_by_url(pool)
        if len(unique) != len(pool):
            logger.debug(f"Dropped {len(pool) - len(unique)} duplicate candidates")
        return unique
