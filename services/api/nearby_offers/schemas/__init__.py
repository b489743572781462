"""Pydantic schemas for API request/response validation."""

from nearby_offers.schemas.common import ErrorDetail, ErrorResponse
from nearby_offers.schemas.discovery import (
    FeedData,
    FeedMeta,
    FeedOffer,
    FeedResponse,
    FollowedCommercesResponse,
    FollowResponse,
    NearbyCommerce,
    NearbyCommercesResponse,
    OfferCommerce,
    PaginationMeta,
    Point,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "FeedData",
    "FeedMeta",
    "FeedOffer",
    "FeedResponse",
    "FollowedCommercesResponse",
    "FollowResponse",
    "NearbyCommerce",
    "NearbyCommercesResponse",
    "OfferCommerce",
    "PaginationMeta",
    "Point",
]
