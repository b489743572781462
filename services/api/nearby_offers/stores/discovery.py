"""Discovery store: the read (and follow-edge write) contract used by services.

`DiscoveryStore` is the protocol services depend on. `SqlDiscoveryStore` is the
PostgreSQL implementation; routes build one per request and tests inject an
in-memory fake with the same methods.

Each method opens its own session, so a request can run several queries
concurrently (general + subscribed feed branches) without sharing a session.

Ranked queries attach `count(*) OVER ()` to every row so the page and the
total are read from the same statement.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
import logging
from typing import Protocol

from sqlalchemy import delete, exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nearby_offers.models import Commerce, CommerceFollow, Offer
from nearby_offers.services.errors import UpstreamQueryError
from nearby_offers.services.feed_filter import FeedFilter, like_pattern
from nearby_offers.services.geo import Coordinates, haversine_sql
from nearby_offers.services.records import (
    CommerceRecord,
    CommerceSummary,
    OfferRecord,
    RankedResult,
)
from nearby_offers.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class DiscoveryStore(Protocol):
    """Data access needed by discovery, feed composition and follows."""

    async def rank_commerces(
        self,
        center: Coordinates,
        *,
        offset: int,
        limit: int,
        now: datetime,
        with_active_offers: bool = False,
    ) -> list[RankedResult[CommerceRecord]]: ...

    async def find_commerce_ids_by_name(self, term: str) -> frozenset[str]: ...

    async def list_offers(
        self,
        feed_filter: FeedFilter,
        *,
        now: datetime,
        offset: int,
        limit: int,
        center: Coordinates | None = None,
        commerce_ids: frozenset[str] | None = None,
    ) -> list[RankedResult[OfferRecord]]: ...

    async def list_followed_commerce_ids(self, user_id: str) -> frozenset[str]: ...

    async def commerce_exists(self, commerce_id: str) -> bool: ...

    async def add_follow(self, user_id: str, commerce_id: str) -> bool: ...

    async def remove_follow(self, user_id: str, commerce_id: str) -> bool: ...


# ============================================================
# Mappers (ORM row -> domain record)
# ============================================================


def commerce_from_row(row: Commerce) -> CommerceRecord:
    return CommerceRecord(
        id=row.id,
        name=row.name,
        address=row.address,
        latitude=float(row.latitude),
        longitude=float(row.longitude),
        phone=row.phone,
        opening_hours=row.opening_hours,
        image_url=row.image_url,
        description=row.description,
        categories=tuple(row.categories or ()),
        is_approved=bool(row.is_approved),
    )


def commerce_summary_from_row(row: Commerce) -> CommerceSummary:
    return CommerceSummary(
        id=row.id,
        name=row.name,
        latitude=float(row.latitude),
        longitude=float(row.longitude),
        categories=tuple(row.categories or ()),
    )


def offer_from_row(offer: Offer, commerce: Commerce) -> OfferRecord:
    return OfferRecord(
        id=offer.id,
        commerce_id=offer.commerce_id,
        title=offer.title,
        description=offer.description or "",
        starts_at=offer.starts_at,
        ends_at=offer.ends_at,
        required_tier=offer.required_tier,
        created_at=offer.created_at,
        commerce=commerce_summary_from_row(commerce),
        image_url=offer.image_url,
        user_id=offer.user_id,
    )


# ============================================================
# PostgreSQL implementation
# ============================================================


class SqlDiscoveryStore:
    """DiscoveryStore backed by PostgreSQL through async SQLAlchemy."""

    def __init__(self, session_scope: SessionScope = get_session) -> None:
        self._session_scope = session_scope

    @asynccontextmanager
    async def _query(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_scope() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Discovery store query failed: %s", operation)
            raise UpstreamQueryError(
                f"{operation} query failed",
                detail={"operation": operation},
            ) from e

    async def rank_commerces(
        self,
        center: Coordinates,
        *,
        offset: int,
        limit: int,
        now: datetime,
        with_active_offers: bool = False,
    ) -> list[RankedResult[CommerceRecord]]:
        distance = haversine_sql(Commerce.latitude, Commerce.longitude, center).label("distance_km")
        total = func.count().over().label("total_count")

        stmt = select(Commerce, distance, total).where(Commerce.is_approved.is_(True))
        if with_active_offers:
            stmt = stmt.where(
                exists().where(
                    Offer.commerce_id == Commerce.id,
                    Offer.starts_at <= now,
                    Offer.ends_at >= now,
                )
            )
        stmt = stmt.order_by(distance.asc(), Commerce.id.asc()).offset(offset).limit(limit)

        async with self._query("rank_commerces") as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            RankedResult(
                item=commerce_from_row(commerce),
                distance_km=max(float(distance_km), 0.0),
                total_count=int(total_count),
            )
            for commerce, distance_km, total_count in rows
        ]

    async def find_commerce_ids_by_name(self, term: str) -> frozenset[str]:
        stmt = (
            select(Commerce.id)
            .where(Commerce.is_approved.is_(True))
            .where(Commerce.name.ilike(like_pattern(term), escape="\\"))
        )
        async with self._query("find_commerce_ids_by_name") as session:
            result = await session.execute(stmt)
            return frozenset(result.scalars().all())

    async def list_offers(
        self,
        feed_filter: FeedFilter,
        *,
        now: datetime,
        offset: int,
        limit: int,
        center: Coordinates | None = None,
        commerce_ids: frozenset[str] | None = None,
    ) -> list[RankedResult[OfferRecord]]:
        total = func.count().over().label("total_count")
        columns = [Offer, Commerce, total]
        distance = None
        if center is not None:
            distance = haversine_sql(Commerce.latitude, Commerce.longitude, center).label("distance_km")
            columns.append(distance)

        stmt = (
            select(*columns)
            .join(Commerce, Offer.commerce_id == Commerce.id)
            .where(Commerce.is_approved.is_(True))
            .where(Offer.starts_at <= now, Offer.ends_at >= now)
        )
        if commerce_ids is not None:
            stmt = stmt.where(Offer.commerce_id.in_(sorted(commerce_ids)))
        stmt = feed_filter.apply(stmt)

        if distance is not None:
            stmt = stmt.order_by(distance.asc(), Offer.id.asc())
        else:
            stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.asc())
        stmt = stmt.offset(offset).limit(limit)

        async with self._query("list_offers") as session:
            result = await session.execute(stmt)
            rows = result.all()

        ranked: list[RankedResult[OfferRecord]] = []
        for row in rows:
            distance_km = max(float(row[3]), 0.0) if distance is not None else None
            ranked.append(
                RankedResult(
                    item=offer_from_row(row[0], row[1]),
                    distance_km=distance_km,
                    total_count=int(row[2]),
                )
            )
        return ranked

    async def list_followed_commerce_ids(self, user_id: str) -> frozenset[str]:
        stmt = select(CommerceFollow.commerce_id).where(CommerceFollow.user_id == user_id)
        async with self._query("list_followed_commerce_ids") as session:
            result = await session.execute(stmt)
            return frozenset(result.scalars().all())

    async def commerce_exists(self, commerce_id: str) -> bool:
        stmt = select(
            exists().where(Commerce.id == commerce_id, Commerce.is_approved.is_(True))
        )
        async with self._query("commerce_exists") as session:
            result = await session.execute(stmt)
            return bool(result.scalar())

    async def add_follow(self, user_id: str, commerce_id: str) -> bool:
        """Insert the follow edge; returns False if it already existed."""
        stmt = (
            pg_insert(CommerceFollow)
            .values(user_id=user_id, commerce_id=commerce_id, notifications_enabled=True)
            .on_conflict_do_nothing(constraint="uq_commerce_follows_user_commerce")
            .returning(CommerceFollow.id)
        )
        async with self._query("add_follow") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def remove_follow(self, user_id: str, commerce_id: str) -> bool:
        """Delete the follow edge; returns False if there was none."""
        stmt = delete(CommerceFollow).where(
            CommerceFollow.user_id == user_id,
            CommerceFollow.commerce_id == commerce_id,
        )
        async with self._query("remove_follow") as session:
            result = await session.execute(stmt)
            return (result.rowcount or 0) > 0
