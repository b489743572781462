"""Domain records returned by the discovery store.

Plain frozen dataclasses: ORM rows never leave the store, and API schemas are
built from these records by explicit converters in the routes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CommerceRecord:
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    phone: str | None = None
    opening_hours: str | None = None
    image_url: str | None = None
    description: str | None = None
    categories: tuple[str, ...] = ()
    is_approved: bool = False


@dataclass(frozen=True)
class CommerceSummary:
    """Subset of the owning commerce embedded in every offer."""

    id: str
    name: str
    latitude: float
    longitude: float
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class OfferRecord:
    id: str
    commerce_id: str
    title: str
    description: str
    starts_at: datetime
    ends_at: datetime
    required_tier: str
    created_at: datetime
    commerce: CommerceSummary
    image_url: str | None = None
    user_id: str | None = None

    def is_active(self, now: datetime) -> bool:
        return self.starts_at <= now <= self.ends_at


@dataclass(frozen=True)
class RankedResult(Generic[T]):
    """An entity annotated with its distance and the query's total count.

    `distance_km` is None for rows ranked without a center (recency order).
    `total_count` repeats the full matching set size on every row.
    """

    item: T
    distance_km: float | None
    total_count: int


@dataclass(frozen=True)
class RankedPage(Generic[T]):
    """One page of ranked rows."""

    rows: list[RankedResult[T]] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        # Every row carries the same count; an empty page means nothing matched.
        return self.rows[0].total_count if self.rows else 0

    @property
    def items(self) -> list[T]:
        return [row.item for row in self.rows]
