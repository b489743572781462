"""Commerce discovery and follow endpoints.

GET    /v1/commerces/nearby               - approved commerces by distance
GET    /v1/commerces/nearby-with-offers   - same, only with an active offer
GET    /v1/commerces/followed             - ids followed by the caller
POST   /v1/commerces/{id}/follow          - follow (idempotent)
DELETE /v1/commerces/{id}/follow          - unfollow (idempotent)

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Depends, Path, Query, Response

from nearby_offers.schemas import (
    FollowedCommercesResponse,
    FollowResponse,
    NearbyCommercesResponse,
)
from nearby_offers.schemas.discovery import nearby_commerce, pagination_meta
from nearby_offers.services.follows import follow_commerce, list_followed, unfollow_commerce
from nearby_offers.services.geo_ranking import parse_coordinates, parse_page, rank_commerces
from nearby_offers.services.identity_provider import AuthUser
from nearby_offers.services.pagination import build_pagination, page_offset
from nearby_offers.routes.deps import get_store, require_user
from nearby_offers.settings import get_settings
from nearby_offers.stores.discovery import DiscoveryStore
from nearby_offers.stores.redis import get_nearby_cache, nearby_cache_key, set_nearby_cache

router = APIRouter()

# Caller-independent payload; shared caches may keep it briefly
NEARBY_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"


async def _nearby_page(
    store: DiscoveryStore,
    response: Response,
    *,
    lat: str | None,
    long: str | None,
    page: str | None,
    with_active_offers: bool,
) -> NearbyCommercesResponse:
    settings = get_settings()
    page_size = settings.nearby_page_size

    # Validate before touching cache or store
    center = parse_coordinates(lat, long)
    page_number = parse_page(page)
    page_offset(page_number, page_size)

    variant = "with_offers" if with_active_offers else "all"
    cache_key = nearby_cache_key(variant, center.lat, center.long, page_number, page_size)

    response.headers["Cache-Control"] = NEARBY_CACHE_CONTROL

    cached = await get_nearby_cache(cache_key)
    if cached is not None:
        return NearbyCommercesResponse.model_validate(cached)

    ranked = await rank_commerces(
        store,
        center,
        page_number,
        page_size,
        with_active_offers=with_active_offers,
    )
    payload = NearbyCommercesResponse(
        data=[nearby_commerce(row) for row in ranked.rows],
        pagination=pagination_meta(build_pagination(ranked.total_count, page_size, page_number)),
    )

    await set_nearby_cache(cache_key, payload.model_dump(mode="json", by_alias=True), settings.nearby_cache_ttl)
    return payload


@router.get("/nearby", response_model=NearbyCommercesResponse)
async def get_nearby_commerces(
    response: Response,
    lat: str | None = Query(default=None, description="Latitude of the caller", examples=["40.4168"]),
    long: str | None = Query(default=None, description="Longitude of the caller", examples=["-3.7038"]),
    page: str | None = Query(default=None, description="1-based page number", examples=["1"]),
    store: DiscoveryStore = Depends(get_store),
) -> NearbyCommercesResponse:
    """Get approved commerces ordered by distance (closest first).

    Returns:
        NearbyCommercesResponse with data (each row with distanceKm) and pagination.
    """
    return await _nearby_page(store, response, lat=lat, long=long, page=page, with_active_offers=False)


@router.get("/nearby-with-offers", response_model=NearbyCommercesResponse)
async def get_nearby_commerces_with_offers(
    response: Response,
    lat: str | None = Query(default=None, description="Latitude of the caller"),
    long: str | None = Query(default=None, description="Longitude of the caller"),
    page: str | None = Query(default=None, description="1-based page number"),
    store: DiscoveryStore = Depends(get_store),
) -> NearbyCommercesResponse:
    """Same as /nearby, restricted to commerces with at least one currently valid offer."""
    return await _nearby_page(store, response, lat=lat, long=long, page=page, with_active_offers=True)


@router.get("/followed", response_model=FollowedCommercesResponse)
async def get_followed_commerces(
    user: AuthUser = Depends(require_user),
    store: DiscoveryStore = Depends(get_store),
) -> FollowedCommercesResponse:
    """Ids of the commerces the caller follows."""
    return FollowedCommercesResponse(data=await list_followed(store, user))


@router.post("/{commerce_id}/follow", response_model=FollowResponse)
async def post_follow(
    commerce_id: str = Path(description="Commerce ID to follow", min_length=1, max_length=64),
    user: AuthUser = Depends(require_user),
    store: DiscoveryStore = Depends(get_store),
) -> FollowResponse:
    """Follow a commerce. Following it again is a no-op success."""
    outcome = await follow_commerce(store, user, commerce_id)
    return FollowResponse(
        commerce_id=outcome.commerce_id,
        following=outcome.following,
        changed=outcome.changed,
        message="Commerce followed" if outcome.changed else "Already following this commerce",
    )


@router.delete("/{commerce_id}/follow", response_model=FollowResponse)
async def delete_follow(
    commerce_id: str = Path(description="Commerce ID to unfollow", min_length=1, max_length=64),
    user: AuthUser = Depends(require_user),
    store: DiscoveryStore = Depends(get_store),
) -> FollowResponse:
    """Unfollow a commerce. Not following it is a no-op success."""
    outcome = await unfollow_commerce(store, user, commerce_id)
    return FollowResponse(
        commerce_id=outcome.commerce_id,
        following=outcome.following,
        changed=outcome.changed,
        message="Commerce unfollowed" if outcome.changed else "Not following this commerce",
    )
