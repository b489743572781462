"""Schemas for the discovery endpoints (/v1/commerces, /v1/offers)."""

from datetime import datetime

from pydantic import BaseModel, Field

from nearby_offers.services.pagination import Pagination
from nearby_offers.services.records import CommerceRecord, OfferRecord, RankedResult


class Point(BaseModel):
    lat: float
    lng: float


class PaginationMeta(BaseModel):
    """Page metadata; keys are snake_case on the wire."""

    total: int = Field(ge=0)
    per_page: int = Field(ge=1)
    current_page: int = Field(ge=1)
    total_pages: int = Field(ge=0)


class NearbyCommerce(BaseModel):
    """A commerce annotated with its distance to the query center."""

    id: str
    name: str
    address: str
    phone: str | None = None
    opening_hours: str | None = Field(alias="openingHours", default=None)
    image_url: str | None = Field(alias="imageUrl", default=None)
    categories: list[str] = Field(default_factory=list)
    distance_km: float = Field(alias="distanceKm", ge=0)
    latitude: float
    longitude: float
    coordinates: Point

    model_config = {"populate_by_name": True}


class NearbyCommercesResponse(BaseModel):
    """Response payload for GET /v1/commerces/nearby[-with-offers]."""

    data: list[NearbyCommerce]
    pagination: PaginationMeta


class OfferCommerce(BaseModel):
    id: str
    name: str
    categories: list[str] = Field(default_factory=list)
    coordinates: Point


class FeedOffer(BaseModel):
    """A single offer in the feed."""

    id: str
    commerce_id: str = Field(alias="commerceId")
    title: str
    description: str
    image_url: str | None = Field(alias="imageUrl", default=None)
    starts_at: datetime = Field(alias="startsAt")
    ends_at: datetime = Field(alias="endsAt")
    required_tier: str = Field(alias="requiredTier")
    created_at: datetime = Field(alias="createdAt")
    commerce: OfferCommerce
    distance_km: float | None = Field(alias="distanceKm", default=None)
    is_followed: bool = Field(alias="isFollowed", default=False)

    model_config = {"populate_by_name": True}


class FeedData(BaseModel):
    general: list[FeedOffer]
    subscribed: list[FeedOffer]


class FeedMeta(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    total_pages: int = Field(alias="totalPages", ge=0)
    degraded: bool = False

    model_config = {"populate_by_name": True}


class FeedResponse(BaseModel):
    """Response payload for GET /v1/offers.

    `data.general` is paginated by `meta`; `data.subscribed` is a bounded top-N list.
    """

    data: FeedData
    meta: FeedMeta


class FollowResponse(BaseModel):
    commerce_id: str = Field(alias="commerceId")
    following: bool
    changed: bool
    message: str

    model_config = {"populate_by_name": True}


class FollowedCommercesResponse(BaseModel):
    data: list[str]


# ============================================================
# Converters (domain record -> wire schema)
# ============================================================


def pagination_meta(pagination: Pagination) -> PaginationMeta:
    return PaginationMeta(
        total=pagination.total,
        per_page=pagination.per_page,
        current_page=pagination.current_page,
        total_pages=pagination.total_pages,
    )


def nearby_commerce(ranked: RankedResult[CommerceRecord]) -> NearbyCommerce:
    commerce = ranked.item
    return NearbyCommerce(
        id=commerce.id,
        name=commerce.name,
        address=commerce.address,
        phone=commerce.phone,
        opening_hours=commerce.opening_hours,
        image_url=commerce.image_url,
        categories=list(commerce.categories),
        distance_km=ranked.distance_km or 0.0,
        latitude=commerce.latitude,
        longitude=commerce.longitude,
        coordinates=Point(lat=commerce.latitude, lng=commerce.longitude),
    )


def feed_offer(
    offer: OfferRecord,
    *,
    distance_km: float | None = None,
    followed: frozenset[str] = frozenset(),
) -> FeedOffer:
    return FeedOffer(
        id=offer.id,
        commerce_id=offer.commerce_id,
        title=offer.title,
        description=offer.description,
        image_url=offer.image_url,
        starts_at=offer.starts_at,
        ends_at=offer.ends_at,
        required_tier=offer.required_tier,
        created_at=offer.created_at,
        commerce=OfferCommerce(
            id=offer.commerce.id,
            name=offer.commerce.name,
            categories=list(offer.commerce.categories),
            coordinates=Point(lat=offer.commerce.latitude, lng=offer.commerce.longitude),
        ),
        distance_km=distance_km,
        is_followed=offer.commerce_id in followed,
    )
