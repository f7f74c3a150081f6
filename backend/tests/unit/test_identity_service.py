import pytest

from coffeechat.domain.errors import BadRequest, Conflict, Forbidden, NotFound
from coffeechat.domain.identity import IdentityService, normalise_interests
from coffeechat.domain.store import InMemorySession


@pytest.fixture
def identity(store) -> IdentityService:
    return IdentityService(store)


def test_normalise_interests_lowercases_and_dedupes() -> None:
    assert normalise_interests([" Coffee", "coffee", "AI ", "", "startup"]) == ["coffee", "ai", "startup"]


def test_normalise_interests_caps_at_ten() -> None:
    with pytest.raises(BadRequest):
        normalise_interests([f"topic{i}" for i in range(11)])


@pytest.mark.asyncio
async def test_authenticate_upserts_by_email(identity) -> None:
    first = await identity.authenticate("google", "alice@coffeechat.dev", "alice")
    second = await identity.authenticate("kakao", "Alice@coffeechat.dev", "alice2")
    assert first.id == second.id
    assert second.provider == "kakao"
    assert second.nickname == "alice2"
    assert second.trust_score == 50


@pytest.mark.asyncio
async def test_authenticate_rejects_unknown_provider(identity) -> None:
    with pytest.raises(BadRequest):
        await identity.authenticate("myspace", "a@b.dev", "a")


@pytest.mark.asyncio
async def test_profile_round_trip(identity) -> None:
    user = await identity.authenticate("apple", "carol@coffeechat.dev", "carol")
    await identity.verify_phone(user.id)
    await identity.update_profile(user.id, "carol", bio="barista", region="Seoul")
    await identity.replace_interests(user.id, ["Coffee", "latte art"])

    profile = await identity.get_profile(user.id)

    assert profile.user.phone_verified is True
    assert profile.user.region == "Seoul"
    assert profile.interests == ["coffee", "latte art"]


@pytest.mark.asyncio
async def test_replace_interests_is_full_replace(identity) -> None:
    user = await identity.authenticate("google", "dave@coffeechat.dev", "dave")
    await identity.replace_interests(user.id, ["coffee", "ai"])
    assert await identity.replace_interests(user.id, ["music"]) == ["music"]


@pytest.mark.asyncio
async def test_unknown_user_profile(identity) -> None:
    with pytest.raises(NotFound):
        await identity.get_profile("ghost")


@pytest.mark.asyncio
async def test_slot_rules(identity) -> None:
    user = await identity.authenticate("google", "erin@coffeechat.dev", "erin")
    slot = await identity.add_slot(user.id, 2, "19:00", "21:00", "Gangnam")

    with pytest.raises(Conflict):
        await identity.add_slot(user.id, 2, "20:30", "22:00", "Gangnam")
    with pytest.raises(BadRequest):
        await identity.add_slot(user.id, 3, "21:00", "19:00", "Gangnam")
    with pytest.raises(BadRequest):
        await identity.add_slot(user.id, 7, "09:00", "10:00", "Gangnam")

    adjacent = await identity.add_slot(user.id, 2, "21:00", "22:00", "Gangnam")
    other_day = await identity.add_slot(user.id, 3, "19:00", "21:00", "Gangnam")
    assert {item.id for item in await identity.list_slots(user.id)} == {slot.id, adjacent.id, other_day.id}


@pytest.mark.asyncio
async def test_only_owner_deletes_slot(identity) -> None:
    owner = await identity.authenticate("google", "frank@coffeechat.dev", "frank")
    other = await identity.authenticate("google", "grace@coffeechat.dev", "grace")
    slot = await identity.add_slot(owner.id, 1, "08:00", "09:00", "Mapo")

    with pytest.raises(Forbidden):
        await identity.delete_slot(slot.id, other.id)
    await identity.delete_slot(slot.id, owner.id)
    with pytest.raises(NotFound):
        await identity.delete_slot(slot.id, owner.id)


@pytest.mark.asyncio
async def test_add_slot_locks_owner_before_overlap_check(identity, monkeypatch) -> None:
    user = await identity.authenticate("google", "lock@coffeechat.dev", "lock")
    locked = []
    original = InMemorySession.get_user

    async def _recording_get_user(self, user_id: str, *, for_update: bool = False):
        locked.append((user_id, for_update))
        return await original(self, user_id, for_update=for_update)

    monkeypatch.setattr(InMemorySession, "get_user", _recording_get_user)
    await identity.add_slot(user.id, 2, "19:00", "21:00", "Gangnam")

    assert locked[0] == (user.id, True)
