import pytest

from conftest import ALICE, BOB, FakeDiscoveryStore, failing, make_commerce
from nearby_offers.services.errors import CommerceNotFound, UpstreamQueryError, ValidationError
from nearby_offers.services.follows import follow_commerce, list_followed, unfollow_commerce


@pytest.fixture
def follow_store() -> FakeDiscoveryStore:
    return FakeDiscoveryStore(
        commerces=[make_commerce("c-1"), make_commerce("c-2"), make_commerce("c-pending", approved=False)],
    )


@pytest.mark.asyncio
async def test_follow_is_idempotent(follow_store: FakeDiscoveryStore):
    first = await follow_commerce(follow_store, ALICE, "c-1")
    second = await follow_commerce(follow_store, ALICE, "c-1")

    assert first.following and first.changed
    assert second.following and not second.changed
    assert follow_store.follows == {(ALICE.id, "c-1")}


@pytest.mark.asyncio
async def test_unfollow_is_idempotent(follow_store: FakeDiscoveryStore):
    follow_store.follows.add((ALICE.id, "c-1"))

    first = await unfollow_commerce(follow_store, ALICE, "c-1")
    second = await unfollow_commerce(follow_store, ALICE, "c-1")

    assert not first.following and first.changed
    assert not second.following and not second.changed
    assert follow_store.follows == set()


@pytest.mark.asyncio
async def test_follow_unknown_or_unapproved_commerce(follow_store: FakeDiscoveryStore):
    with pytest.raises(CommerceNotFound):
        await follow_commerce(follow_store, ALICE, "c-missing")
    with pytest.raises(CommerceNotFound):
        await follow_commerce(follow_store, ALICE, "c-pending")
    assert follow_store.calls_to("add_follow") == []


@pytest.mark.asyncio
async def test_follow_requires_commerce_id(follow_store: FakeDiscoveryStore):
    with pytest.raises(ValidationError):
        await follow_commerce(follow_store, ALICE, "  ")
    with pytest.raises(ValidationError):
        await unfollow_commerce(follow_store, ALICE, "")


@pytest.mark.asyncio
async def test_follows_are_per_user(follow_store: FakeDiscoveryStore):
    await follow_commerce(follow_store, ALICE, "c-2")
    await follow_commerce(follow_store, ALICE, "c-1")
    await follow_commerce(follow_store, BOB, "c-2")

    assert await list_followed(follow_store, ALICE) == ["c-1", "c-2"]
    assert await list_followed(follow_store, BOB) == ["c-2"]


@pytest.mark.asyncio
async def test_follow_store_failure_propagates(follow_store: FakeDiscoveryStore):
    follow_store.failures["add_follow"] = failing("add_follow")
    with pytest.raises(UpstreamQueryError):
        await follow_commerce(follow_store, ALICE, "c-1")
