"""Shared fixtures: in-memory discovery store and identity provider."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from nearby_offers.main import app
from nearby_offers.routes.deps import get_identity_provider, get_store
from nearby_offers.services.errors import UpstreamQueryError
from nearby_offers.services.feed_filter import FeedFilter
from nearby_offers.services.geo import Coordinates, haversine_km
from nearby_offers.services.identity_provider import AuthUser, IdentityProviderError
from nearby_offers.services.records import CommerceRecord, CommerceSummary, OfferRecord, RankedResult

# Puerta del Sol, Madrid
SOL = Coordinates(lat=40.4168, long=-3.7038)


def make_commerce(
    commerce_id: str,
    *,
    name: str | None = None,
    lat: float = SOL.lat,
    long: float = SOL.long,
    categories: tuple[str, ...] = (),
    approved: bool = True,
) -> CommerceRecord:
    return CommerceRecord(
        id=commerce_id,
        name=name or f"Commerce {commerce_id}",
        address=f"Street {commerce_id}",
        latitude=lat,
        longitude=long,
        categories=categories,
        is_approved=approved,
    )


def make_offer(
    offer_id: str,
    commerce: CommerceRecord,
    *,
    title: str | None = None,
    created_at: datetime,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
) -> OfferRecord:
    return OfferRecord(
        id=offer_id,
        commerce_id=commerce.id,
        title=title or f"Offer {offer_id}",
        description="",
        starts_at=starts_at or created_at,
        ends_at=ends_at or created_at + timedelta(days=30),
        required_tier="basic",
        created_at=created_at,
        commerce=CommerceSummary(
            id=commerce.id,
            name=commerce.name,
            latitude=commerce.latitude,
            longitude=commerce.longitude,
            categories=commerce.categories,
        ),
    )


class FakeDiscoveryStore:
    """In-memory DiscoveryStore with call recording and failure injection."""

    def __init__(
        self,
        commerces: list[CommerceRecord] | None = None,
        offers: list[OfferRecord] | None = None,
        follows: set[tuple[str, str]] | None = None,
    ):
        self.commerces = {c.id: c for c in commerces or []}
        self.offers = list(offers or [])
        self.follows = set(follows or ())
        self.calls: list[tuple[str, dict]] = []
        # method name (or "list_offers:subscribed") -> exception to raise
        self.failures: dict[str, Exception] = {}

    def _record(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name: str) -> list[dict]:
        return [kwargs for called, kwargs in self.calls if called == name]

    def _approved(self, commerce_id: str) -> bool:
        commerce = self.commerces.get(commerce_id)
        return commerce is not None and commerce.is_approved

    async def rank_commerces(self, center, *, offset, limit, now, with_active_offers=False):
        self._record("rank_commerces", center=center, offset=offset, limit=limit, with_active_offers=with_active_offers)

        candidates = [c for c in self.commerces.values() if c.is_approved]
        if with_active_offers:
            active = {o.commerce_id for o in self.offers if o.is_active(now)}
            candidates = [c for c in candidates if c.id in active]

        scored = sorted(
            ((haversine_km(center, Coordinates(c.latitude, c.longitude)), c) for c in candidates),
            key=lambda pair: (pair[0], pair[1].id),
        )
        total = len(scored)
        return [
            RankedResult(item=c, distance_km=d, total_count=total)
            for d, c in scored[offset : offset + limit]
        ]

    async def find_commerce_ids_by_name(self, term):
        self._record("find_commerce_ids_by_name", term=term)
        needle = term.casefold()
        return frozenset(
            c.id for c in self.commerces.values() if c.is_approved and needle in c.name.casefold()
        )

    async def list_offers(self, feed_filter: FeedFilter, *, now, offset, limit, center=None, commerce_ids=None):
        self._record("list_offers", offset=offset, limit=limit, center=center, commerce_ids=commerce_ids)
        if commerce_ids is not None and "list_offers:subscribed" in self.failures:
            raise self.failures["list_offers:subscribed"]
        if commerce_ids is None and "list_offers:general" in self.failures:
            raise self.failures["list_offers:general"]

        matching = [
            o
            for o in self.offers
            if self._approved(o.commerce_id)
            and o.is_active(now)
            and (commerce_ids is None or o.commerce_id in commerce_ids)
            and feed_filter.matches(o)
        ]

        if center is not None:
            scored = sorted(
                (
                    (haversine_km(center, Coordinates(o.commerce.latitude, o.commerce.longitude)), o)
                    for o in matching
                ),
                key=lambda pair: (pair[0], pair[1].id),
            )
        else:
            ordered = sorted(matching, key=lambda o: o.id)
            ordered.sort(key=lambda o: o.created_at, reverse=True)
            scored = [(None, o) for o in ordered]

        total = len(scored)
        return [
            RankedResult(item=o, distance_km=d, total_count=total)
            for d, o in scored[offset : offset + limit]
        ]

    async def list_followed_commerce_ids(self, user_id):
        self._record("list_followed_commerce_ids", user_id=user_id)
        return frozenset(c for u, c in self.follows if u == user_id)

    async def commerce_exists(self, commerce_id):
        self._record("commerce_exists", commerce_id=commerce_id)
        return self._approved(commerce_id)

    async def add_follow(self, user_id, commerce_id):
        self._record("add_follow", user_id=user_id, commerce_id=commerce_id)
        edge = (user_id, commerce_id)
        if edge in self.follows:
            return False
        self.follows.add(edge)
        return True

    async def remove_follow(self, user_id, commerce_id):
        self._record("remove_follow", user_id=user_id, commerce_id=commerce_id)
        edge = (user_id, commerce_id)
        if edge not in self.follows:
            return False
        self.follows.discard(edge)
        return True


class FakeIdentityProvider:
    """Maps known tokens to users; `unavailable=True` simulates an outage."""

    def __init__(self, tokens: dict[str, AuthUser] | None = None, *, unavailable: bool = False):
        self.tokens = dict(tokens or {})
        self.unavailable = unavailable
        self.seen_tokens: list[str] = []

    async def get_user(self, access_token: str) -> AuthUser | None:
        self.seen_tokens.append(access_token)
        if self.unavailable:
            raise IdentityProviderError("Identity provider unreachable")
        return self.tokens.get(access_token)


ALICE = AuthUser(id="user-alice", email="alice@example.com")
BOB = AuthUser(id="user-bob", email="bob@example.com")


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def store(now: datetime) -> FakeDiscoveryStore:
    """Three approved commerces near Sol, one pending approval, a few offers."""
    cafe = make_commerce("c-cafe", name="Café del Sol", lat=40.4170, long=-3.7035, categories=("Restauración",))
    books = make_commerce("c-books", name="Librería Mayor", lat=40.4155, long=-3.7090, categories=("Cultura",))
    fashion = make_commerce("c-fashion", name="Moda Gran Vía", lat=40.4200, long=-3.7050, categories=("Moda",))
    pending = make_commerce("c-pending", name="Taller Pendiente", lat=40.4168, long=-3.7038, approved=False)

    day = timedelta(days=1)
    offers = [
        make_offer("o-1", cafe, title="Desayuno 2x1", created_at=now - 3 * day),
        make_offer("o-2", books, title="Bolsilibros -15%", created_at=now - 2 * day),
        make_offer("o-3", fashion, title="Rebajas", created_at=now - 1 * day),
        # expired
        make_offer("o-4", cafe, title="Merienda", created_at=now - 40 * day, ends_at=now - day),
        # not started yet
        make_offer("o-5", fashion, title="Outlet", created_at=now - day, starts_at=now + 7 * day),
        # commerce not approved
        make_offer("o-6", pending, title="Revisión gratuita", created_at=now - day),
    ]
    return FakeDiscoveryStore(commerces=[cafe, books, fashion, pending], offers=offers)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider({"alice-token": ALICE, "bob-token": BOB})


@pytest.fixture
async def client(store: FakeDiscoveryStore, identity_provider: FakeIdentityProvider):
    """Create test client with the in-memory store and identity provider."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def failing(operation: str) -> UpstreamQueryError:
    return UpstreamQueryError(f"{operation} query failed", detail={"operation": operation})
