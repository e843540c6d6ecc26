import asyncio

import pytest

from config.config import SearchPreference
from models.illustration import Query, SourceHint
from tools.search.aggregator import SearchAggregator

pytestmark = pytest.mark.unit


def _query(text, hint=SourceHint.EITHER, index=0):
    return Query(text=text, source_hint=hint, sequence_index=index)


def test_either_runs_both_sources_and_interleaves(config, fakes):
    enc = fakes.Strategy("wikimedia", {"castle": [fakes.candidate(i, "commons") for i in range(3)]})
    web = fakes.Strategy("serper", {"castle": [fakes.candidate(i, "google") for i in range(2)]})
    aggregator = SearchAggregator(config, enc, web)

    pool = asyncio.run(aggregator.aggregate([_query("castle")]))

    assert [c.source_tag for c in pool] == ["commons", "google", "commons", "google", "commons"]
    assert all(c.query_text == "castle" for c in pool)


def test_encyclopedic_falls_back_to_web_when_empty(config, fakes):
    enc = fakes.Strategy("wikimedia")
    web = fakes.Strategy("serper", {"neon sign": [fakes.candidate(1, "google")]})
    aggregator = SearchAggregator(config, enc, web)

    pool = asyncio.run(aggregator.aggregate([_query("neon sign", SourceHint.ENCYCLOPEDIC)]))

    assert enc.queries == ["neon sign"]
    assert web.queries == ["neon sign"]
    assert [c.source_tag for c in pool] == ["google"]


def test_no_fallback_without_web_key(config, fakes):
    enc = fakes.Strategy("wikimedia")
    web = fakes.Strategy("serper", {"x": [fakes.candidate(1, "google")]}, configured=False)
    aggregator = SearchAggregator(config, enc, web)

    pool = asyncio.run(aggregator.aggregate([_query("x", SourceHint.ENCYCLOPEDIC)]))

    assert pool == []
    assert web.queries == []


def test_encyclopedic_with_results_skips_web(config, fakes):
    enc = fakes.Strategy("wikimedia", {"tiger": [fakes.candidate(1)]})
    web = fakes.Strategy("serper", {"tiger": [fakes.candidate(2, "google")]})
    asyncio.run(SearchAggregator(config, enc, web).aggregate([_query("tiger", SourceHint.ENCYCLOPEDIC)]))

    assert web.queries == []


def test_forced_preference_overrides_query_hints(config, fakes):
    enc = fakes.Strategy("wikimedia", {"a": [fakes.candidate(1)]})
    web = fakes.Strategy("serper", {"a": [fakes.candidate(2, "google")]})
    aggregator = SearchAggregator(
        config.with_overrides(search_preference=SearchPreference.WEB), enc, web
    )

    pool = asyncio.run(aggregator.aggregate([_query("a", SourceHint.ENCYCLOPEDIC)]))

    assert enc.queries == []
    assert [c.source_tag for c in pool] == ["google"]


def test_smart_preference_uses_query_hint_then_message_hint(config, fakes):
    aggregator = SearchAggregator(config, fakes.Strategy("e"), fakes.Strategy("w"))

    assert aggregator.resolve_hint(_query("q", SourceHint.WEB), SourceHint.ENCYCLOPEDIC) is SourceHint.WEB
    assert aggregator.resolve_hint(_query("q", None), SourceHint.ENCYCLOPEDIC) is SourceHint.ENCYCLOPEDIC
    assert aggregator.resolve_hint(_query("q", None), None) is SourceHint.EITHER


def test_pool_is_deduplicated_across_queries_in_query_order(config, fakes):
    shared = fakes.candidate(1, url="https://img.example/shared.jpg")
    enc = fakes.Strategy(
        "wikimedia",
        {"first": [shared, fakes.candidate(2)], "second": [shared, fakes.candidate(3)]},
    )
    web = fakes.Strategy("serper")
    aggregator = SearchAggregator(config, enc, web)

    pool = asyncio.run(
        aggregator.aggregate([_query("first", index=0), _query("second", index=1)])
    )

    assert [c.url for c in pool].count("https://img.example/shared.jpg") == 1
    assert pool[0].query_text == "first"
    assert len(pool) == 3


def test_only_max_queries_are_searched(config, fakes):
    enc = fakes.Strategy("wikimedia")
    web = fakes.Strategy("serper")
    aggregator = SearchAggregator(config.with_overrides(max_queries=1), enc, web)

    asyncio.run(aggregator.aggregate([_query("one"), _query("two", index=1)]))

    assert enc.queries == ["one"]


def test_strategy_error_does_not_discard_the_other_source(config, fakes):
    class BrokenStrategy(fakes.Strategy):
        async def search(self, query, limit):
            self.queries.append(query)
            raise ValueError("invalid literal for int() with base 10: 'wide'")

    enc = fakes.Strategy("wikimedia", {"harbour": [fakes.candidate(1, "en.wikipedia")]})
    web = BrokenStrategy("serper")
    aggregator = SearchAggregator(config, enc, web)

    either = asyncio.run(aggregator.search_once("harbour", SourceHint.EITHER))
    web_only = asyncio.run(aggregator.search_once("harbour", SourceHint.WEB))

    assert [c.source_tag for c in either] == ["en.wikipedia"]
    assert web_only == []
    assert web.queries == ["harbour", "harbour"]
