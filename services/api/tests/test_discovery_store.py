"""SqlDiscoveryStore statement shape and error mapping, without a database."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from conftest import SOL
from nearby_offers.services.errors import UpstreamQueryError
from nearby_offers.services.feed_filter import FeedFilter
from nearby_offers.stores.discovery import SqlDiscoveryStore

NOW = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)


class _EmptyResult:
    def all(self):
        return []


class RecordingSession:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.statements = []

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return _EmptyResult()


def store_with(session: RecordingSession) -> SqlDiscoveryStore:
    @asynccontextmanager
    async def scope():
        yield session

    return SqlDiscoveryStore(session_scope=scope)


def sql_of(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


@pytest.mark.asyncio
async def test_rank_commerces_statement():
    session = RecordingSession()
    rows = await store_with(session).rank_commerces(SOL, offset=20, limit=20, now=NOW)

    assert rows == []
    sql = sql_of(session.statements[0])
    assert "count(*) OVER ()" in sql
    assert "commerces.is_approved IS true" in sql
    assert "ORDER BY distance_km ASC, commerces.id ASC" in sql
    assert "EXISTS" not in sql


@pytest.mark.asyncio
async def test_rank_commerces_with_active_offers_adds_exists():
    session = RecordingSession()
    await store_with(session).rank_commerces(SOL, offset=0, limit=20, now=NOW, with_active_offers=True)

    sql = sql_of(session.statements[0])
    assert "EXISTS" in sql
    assert "offers.starts_at <=" in sql
    assert "offers.ends_at >=" in sql


@pytest.mark.asyncio
async def test_list_offers_recency_order_without_center():
    session = RecordingSession()
    await store_with(session).list_offers(FeedFilter(), now=NOW, offset=0, limit=10)

    sql = sql_of(session.statements[0])
    assert "ORDER BY offers.created_at DESC, offers.id ASC" in sql
    assert "distance_km" not in sql


@pytest.mark.asyncio
async def test_list_offers_distance_order_and_subscription_scope():
    session = RecordingSession()
    await store_with(session).list_offers(
        FeedFilter(category="Moda"),
        now=NOW,
        offset=0,
        limit=10,
        center=SOL,
        commerce_ids=frozenset({"c-2", "c-1"}),
    )

    sql = sql_of(session.statements[0])
    assert "ORDER BY distance_km ASC, offers.id ASC" in sql
    assert "offers.commerce_id IN" in sql
    assert "@>" in sql


@pytest.mark.asyncio
async def test_store_errors_become_upstream_query_error():
    session = RecordingSession(error=OperationalError("SELECT 1", {}, Exception("connection lost")))

    with pytest.raises(UpstreamQueryError) as exc_info:
        await store_with(session).rank_commerces(SOL, offset=0, limit=20, now=NOW)
    assert exc_info.value.detail == {"operation": "rank_commerces"}
