from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from conftest import FakeDiscoveryStore, make_commerce, make_offer
from nearby_offers.models import Commerce, Offer
from nearby_offers.services.feed_filter import (
    FeedFilter,
    like_pattern,
    normalize_category,
    normalize_search,
    resolve_feed_filter,
)

CREATED = datetime(2026, 1, 10, tzinfo=timezone.utc)

cafe = make_commerce("c-cafe", name="Café del Sol", categories=("Restauración",))
books = make_commerce("c-books", name="Librería Mayor", categories=("Cultura", "Ocio"))

breakfast = make_offer("o-1", cafe, title="Desayuno 2x1", created_at=CREATED)
paperbacks = make_offer("o-2", books, title="Bolsilibros", created_at=CREATED)


def compiled(feed_filter: FeedFilter) -> str:
    stmt = select(Offer).join(Commerce, Offer.commerce_id == Commerce.id)
    return str(feed_filter.apply(stmt).compile(dialect=postgresql.dialect()))


@pytest.mark.parametrize("raw", [None, "", "  ", "Todas", "todas", " TODAS "])
def test_normalize_category_all_means_no_filter(raw):
    assert normalize_category(raw) is None


def test_normalize_category_keeps_value():
    assert normalize_category(" Moda ") == "Moda"


@pytest.mark.parametrize(("raw", "expected"), [(None, None), ("", None), ("   ", None), (" sol ", "sol")])
def test_normalize_search(raw, expected):
    assert normalize_search(raw) == expected


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off") == "%50\\%\\_off%"
    assert like_pattern("a\\b") == "%a\\\\b%"


def test_empty_filter_matches_everything_and_adds_no_predicate():
    feed_filter = FeedFilter()
    assert feed_filter.matches(breakfast)
    assert "WHERE" not in compiled(feed_filter)


def test_category_filter_uses_containment():
    feed_filter = FeedFilter(category="Cultura")
    assert feed_filter.matches(paperbacks)
    assert not feed_filter.matches(breakfast)
    assert "@>" in compiled(feed_filter)


def test_search_matches_title_case_insensitively():
    feed_filter = FeedFilter(search_term="desayuno")
    assert feed_filter.matches(breakfast)
    assert not feed_filter.matches(paperbacks)


def test_search_matches_commerce_name_through_resolved_ids():
    feed_filter = FeedFilter(search_term="mayor", matched_commerce_ids=frozenset({"c-books"}))
    assert feed_filter.matches(paperbacks)
    assert not feed_filter.matches(breakfast)

    sql = compiled(feed_filter)
    assert "ILIKE" in sql
    assert "offers.commerce_id IN" in sql


def test_search_without_name_matches_is_title_only():
    sql = compiled(FeedFilter(search_term="2x1"))
    assert "ILIKE" in sql
    assert "offers.commerce_id IN" not in sql


def test_category_and_search_are_conjunctive():
    feed_filter = FeedFilter(category="Restauración", search_term="Bolsi")
    assert not feed_filter.matches(paperbacks)
    assert not feed_filter.matches(breakfast)


@pytest.mark.asyncio
async def test_resolve_feed_filter_looks_up_commerce_names():
    store = FakeDiscoveryStore(commerces=[cafe, books])
    feed_filter = await resolve_feed_filter(store, "Todas", "  sol ")

    assert feed_filter.category is None
    assert feed_filter.search_term == "sol"
    assert feed_filter.matched_commerce_ids == frozenset({"c-cafe"})
    assert store.calls_to("find_commerce_ids_by_name") == [{"term": "sol"}]


@pytest.mark.asyncio
async def test_resolve_feed_filter_skips_lookup_for_blank_search():
    store = FakeDiscoveryStore(commerces=[cafe, books])
    feed_filter = await resolve_feed_filter(store, "Cultura", "   ")

    assert feed_filter == FeedFilter(category="Cultura")
    assert store.calls == []
