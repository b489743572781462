"""Distance-ranked commerce queries.

Ranking rules:
1. Only approved commerces (optionally: with at least one active offer)
2. Sort by great-circle distance to the center ASC
3. Ties broken by commerce id ASC, so pages never overlap or skip rows

Pagination is offset based: page p covers rows [(p-1)*size, p*size - 1].
The total matching count comes back on every row of the same query.

Parameters are validated here, before the store is touched.
"""

from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import TYPE_CHECKING

from nearby_offers.services.errors import ValidationError
from nearby_offers.services.geo import Coordinates
from nearby_offers.services.pagination import page_offset
from nearby_offers.services.records import CommerceRecord, RankedPage

if TYPE_CHECKING:
    from nearby_offers.stores.discovery import DiscoveryStore


def _parse_number(name: str, raw: str | float | None) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(f"Missing required parameter: {name}", detail={"param": name})
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Parameter {name} must be a number",
            detail={"param": name, "value": str(raw)},
        ) from None
    if not math.isfinite(value):
        raise ValidationError(
            f"Parameter {name} must be a finite number",
            detail={"param": name, "value": str(raw)},
        )
    return value


def parse_coordinates(lat: str | float | None, long: str | float | None) -> Coordinates:
    """Validate raw latitude/longitude values into a `Coordinates` point."""
    lat_value = _parse_number("lat", lat)
    long_value = _parse_number("long", long)

    if not -90.0 <= lat_value <= 90.0:
        raise ValidationError("Latitude must be within [-90, 90]", detail={"param": "lat", "value": lat_value})
    if not -180.0 <= long_value <= 180.0:
        raise ValidationError(
            "Longitude must be within [-180, 180]",
            detail={"param": "long", "value": long_value},
        )

    return Coordinates(lat=lat_value, long=long_value)


def parse_optional_coordinates(lat: str | None, long: str | None) -> Coordinates | None:
    """Coordinates are optional for the feed, but must come as a pair."""
    if lat is None and long is None:
        return None
    return parse_coordinates(lat, long)


def parse_page(raw: str | int | None, *, default: int = 1) -> int:
    """Validate a 1-based page number."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    if isinstance(raw, bool):
        raise ValidationError("Page must be an integer", detail={"param": "page"})
    try:
        page = int(raw.strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Page must be an integer", detail={"param": "page", "value": str(raw)}) from None
    if page < 1:
        raise ValidationError("Page must be >= 1", detail={"param": "page", "value": page})
    return page


async def rank_commerces(
    store: DiscoveryStore,
    center: Coordinates,
    page: int,
    page_size: int,
    *,
    with_active_offers: bool = False,
    now: datetime | None = None,
) -> RankedPage[CommerceRecord]:
    """Get one page of approved commerces ordered by distance to `center`.

    Args:
        store: Request-scoped discovery store.
        center: Query center.
        page: 1-based page number.
        page_size: Rows per page.
        with_active_offers: Restrict to commerces with a currently valid offer.
        now: Reference time for offer validity (defaults to current UTC time).

    Returns:
        RankedPage whose rows carry distance_km and the full matching count.
    """
    if page < 1:
        raise ValidationError("Page must be >= 1", detail={"param": "page", "value": page})
    if page_size < 1:
        raise ValidationError("Page size must be >= 1", detail={"param": "page_size", "value": page_size})

    rows = await store.rank_commerces(
        center,
        offset=page_offset(page, page_size),
        limit=page_size,
        now=now or datetime.now(timezone.utc),
        with_active_offers=with_active_offers,
    )
    return RankedPage(rows=rows)
