"""Offer feed endpoint.

GET /v1/offers - general (paginated) + subscribed (followed commerces) offers
"""

from fastapi import APIRouter, Depends, Query, Response

from nearby_offers.routes.deps import get_credential, get_identity_provider, get_store
from nearby_offers.schemas import FeedData, FeedMeta, FeedResponse
from nearby_offers.schemas.discovery import feed_offer
from nearby_offers.services.errors import ValidationError
from nearby_offers.services.feed import feed_for_request
from nearby_offers.services.geo_ranking import parse_optional_coordinates, parse_page
from nearby_offers.services.identity import Authenticated, Credential
from nearby_offers.services.identity_provider import IdentityProvider
from nearby_offers.services.pagination import MAX_ROW_OFFSET
from nearby_offers.settings import get_settings
from nearby_offers.stores.discovery import DiscoveryStore

router = APIRouter()


def _resolve_page(raw_page: str | None, offset: int, limit: int) -> int:
    # Explicit page wins; otherwise the offset is floored to its page boundary
    if raw_page is not None and raw_page.strip():
        return parse_page(raw_page)
    return offset // limit + 1


@router.get("", response_model=FeedResponse)
async def get_offers(
    response: Response,
    category: str | None = Query(default=None, description="Category name; 'Todas' means no filter"),
    search: str | None = Query(default=None, description="Matches offer title or commerce name"),
    limit: int | None = Query(default=None, ge=1, description="Page size"),
    offset: int = Query(
        default=0,
        ge=0,
        le=MAX_ROW_OFFSET,
        description="Row offset (ignored when page is given)",
    ),
    page: str | None = Query(default=None, description="1-based page number"),
    lat: str | None = Query(default=None, description="Latitude; enables distance ranking"),
    long: str | None = Query(default=None, description="Longitude; enables distance ranking"),
    store: DiscoveryStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
    credential: Credential = Depends(get_credential),
) -> FeedResponse:
    """Get the offer feed.

    Anonymous callers get the general list only. Authenticated callers also get
    the latest offers of the commerces they follow in `data.subscribed`.
    """
    settings = get_settings()
    page_size = limit or settings.feed_default_limit
    if page_size > settings.feed_max_limit:
        raise ValidationError(
            f"Limit must be <= {settings.feed_max_limit}",
            detail={"param": "limit", "value": page_size},
        )

    coordinates = parse_optional_coordinates(lat, long)
    page_number = _resolve_page(page, offset, page_size)

    principal, composition = await feed_for_request(
        store,
        provider,
        credential,
        category=category,
        search=search,
        coordinates=coordinates,
        page=page_number,
        page_size=page_size,
    )

    followed = principal.subscriptions if isinstance(principal, Authenticated) else frozenset()

    # Response depends on the caller
    response.headers["Cache-Control"] = "private, no-cache"
    response.headers["Vary"] = "Authorization, Cookie"

    return FeedResponse(
        data=FeedData(
            general=[
                feed_offer(row.item, distance_km=row.distance_km, followed=followed)
                for row in composition.general
            ],
            subscribed=[feed_offer(offer, followed=followed) for offer in composition.subscribed],
        ),
        meta=FeedMeta(
            page=composition.pagination.current_page,
            limit=composition.pagination.per_page,
            total=composition.pagination.total,
            total_pages=composition.pagination.total_pages,
            degraded=composition.degraded,
        ),
    )
