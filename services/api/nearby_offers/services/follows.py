"""Follow / unfollow commerces.

Both operations are idempotent: following an already-followed commerce and
unfollowing one that is not followed are successful no-ops. The store enforces
one edge per (user, commerce) pair, so concurrent follows cannot duplicate it.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from nearby_offers.services.errors import CommerceNotFound, ValidationError
from nearby_offers.services.identity_provider import AuthUser

if TYPE_CHECKING:
    from nearby_offers.stores.discovery import DiscoveryStore

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class FollowOutcome:
    commerce_id: str
    following: bool
    # Whether this call changed state (False for idempotent repeats)
    changed: bool


def _require_commerce_id(commerce_id: str) -> str:
    commerce_id = (commerce_id or "").strip()
    if not commerce_id:
        raise ValidationError("Commerce id is required", detail={"param": "id"})
    return commerce_id


async def follow_commerce(store: DiscoveryStore, user: AuthUser, commerce_id: str) -> FollowOutcome:
    """Follow a commerce.

    Raises:
        ValidationError: empty commerce id.
        CommerceNotFound: commerce missing or not approved.
    """
    commerce_id = _require_commerce_id(commerce_id)
    if not await store.commerce_exists(commerce_id):
        raise CommerceNotFound(f"Commerce {commerce_id} not found", detail={"commerce_id": commerce_id})

    created = await store.add_follow(user.id, commerce_id)
    logger.info("[follow] user=%s commerce=%s created=%s", user.id, commerce_id, created)
    return FollowOutcome(commerce_id=commerce_id, following=True, changed=created)


async def unfollow_commerce(store: DiscoveryStore, user: AuthUser, commerce_id: str) -> FollowOutcome:
    """Unfollow a commerce. Not following it already is a success."""
    commerce_id = _require_commerce_id(commerce_id)
    removed = await store.remove_follow(user.id, commerce_id)
    logger.info("[unfollow] user=%s commerce=%s removed=%s", user.id, commerce_id, removed)
    return FollowOutcome(commerce_id=commerce_id, following=False, changed=removed)


async def list_followed(store: DiscoveryStore, user: AuthUser) -> list[str]:
    """Ids of the commerces the user follows, sorted for stable output."""
    return sorted(await store.list_followed_commerce_ids(user.id))
