"""Personalized offer feed: "general" + "subscribed" branches.

Flow:
1. Resolve the caller (with followed commerces) and the category/search filter
   concurrently; the search filter needs one commerce-name lookup.
2. Run the general query and, for callers following at least one commerce, the
   subscribed query concurrently.
3. Join both before building the response.

Failure policy:
- General branch failure fails the whole request (UpstreamQueryError).
- Subscribed branch failure degrades to an empty list plus a warning log.

Ordering:
- General: distance ASC then offer id when coordinates are given,
  otherwise created_at DESC then offer id.
- Subscribed: created_at DESC, top `page_size` rows, not paginated.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING

from nearby_offers.services.errors import PartialDegradation, UpstreamQueryError, ValidationError
from nearby_offers.services.feed_filter import FeedFilter, resolve_feed_filter
from nearby_offers.services.geo import Coordinates
from nearby_offers.services.identity import Authenticated, Credential, Principal, resolve_principal
from nearby_offers.services.identity_provider import IdentityProvider
from nearby_offers.services.pagination import Pagination, build_pagination, page_offset
from nearby_offers.services.records import OfferRecord, RankedPage, RankedResult

if TYPE_CHECKING:
    from nearby_offers.stores.discovery import DiscoveryStore

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class FeedComposition:
    general: list[RankedResult[OfferRecord]]
    pagination: Pagination
    subscribed: list[OfferRecord] = field(default_factory=list)
    # True when personalization was skipped because of a store failure
    degraded: bool = False


def _subscriptions_of(principal: Principal) -> frozenset[str]:
    if isinstance(principal, Authenticated):
        return principal.subscriptions
    return frozenset()


def _general_offset(page: int, page_size: int) -> int:
    if page < 1:
        raise ValidationError("Page must be >= 1", detail={"param": "page", "value": page})
    if page_size < 1:
        raise ValidationError("Limit must be >= 1", detail={"param": "limit", "value": page_size})
    return page_offset(page, page_size)


async def compose_feed(
    store: DiscoveryStore,
    principal: Principal,
    feed_filter: FeedFilter,
    *,
    coordinates: Coordinates | None = None,
    page: int = 1,
    page_size: int = 20,
    now: datetime | None = None,
) -> FeedComposition:
    """Run the general and subscribed branches and merge them.

    Args:
        store: Request-scoped discovery store.
        principal: Resolved caller.
        feed_filter: Resolved category/search filter, applied to both branches.
        coordinates: Optional center; switches the general branch to distance ranking.
        page: 1-based page of the general branch.
        page_size: Page size of the general branch and cap of the subscribed list.
        now: Reference time for offer validity (defaults to current UTC time).

    Raises:
        ValidationError: page or page_size is out of range.
        UpstreamQueryError: the general branch failed.
    """
    offset = _general_offset(page, page_size)
    now = now or datetime.now(timezone.utc)
    subscriptions = _subscriptions_of(principal)

    branches = [
        asyncio.ensure_future(
            store.list_offers(
                feed_filter,
                now=now,
                offset=offset,
                limit=page_size,
                center=coordinates,
            )
        )
    ]
    # No follows -> no subscribed query at all
    if subscriptions:
        branches.append(
            asyncio.ensure_future(
                store.list_offers(
                    feed_filter,
                    now=now,
                    offset=0,
                    limit=page_size,
                    commerce_ids=subscriptions,
                )
            )
        )

    # Shielded: if the client goes away the branches still finish, their results are dropped.
    results = await asyncio.shield(asyncio.gather(*branches, return_exceptions=True))

    general_result = results[0]
    if isinstance(general_result, UpstreamQueryError):
        raise general_result
    if isinstance(general_result, BaseException):
        if not isinstance(general_result, Exception):
            raise general_result
        raise UpstreamQueryError("General feed query failed") from general_result

    general = RankedPage(rows=general_result)
    degraded = isinstance(principal, Authenticated) and not principal.subscriptions_loaded

    subscribed: list[OfferRecord] = []
    if len(results) > 1:
        subscribed_result = results[1]
        if isinstance(subscribed_result, Exception):
            logger.warning(
                "%s: subscribed feed query failed (%s); returning empty subscribed list",
                PartialDegradation.code,
                type(subscribed_result).__name__,
            )
            degraded = True
        elif isinstance(subscribed_result, BaseException):
            raise subscribed_result
        else:
            subscribed = RankedPage(rows=subscribed_result).items

    return FeedComposition(
        general=general.rows,
        pagination=build_pagination(general.total_count, page_size, page),
        subscribed=subscribed,
        degraded=degraded,
    )


async def feed_for_request(
    store: DiscoveryStore,
    provider: IdentityProvider,
    credential: Credential,
    *,
    category: str | None = None,
    search: str | None = None,
    coordinates: Coordinates | None = None,
    page: int = 1,
    page_size: int = 20,
    now: datetime | None = None,
) -> tuple[Principal, FeedComposition]:
    """Resolve caller and filter concurrently, then compose the feed.

    Identity is optional here: missing or invalid credentials browse anonymously.
    """
    # Reject an impossible page before the identity and filter lookups hit the store
    _general_offset(page, page_size)

    principal, feed_filter = await asyncio.gather(
        resolve_principal(credential, provider, store, required=False),
        resolve_feed_filter(store, category, search),
    )
    composition = await compose_feed(
        store,
        principal,
        feed_filter,
        coordinates=coordinates,
        page=page,
        page_size=page_size,
        now=now,
    )
    return principal, composition
