import pytest

from coffeechat.domain.errors import Conflict
from coffeechat.domain.models import MatchProposal, ProposalStatus
from coffeechat.domain.store import InMemoryRecordStore, new_id


@pytest.mark.asyncio
async def test_failed_transaction_rolls_back_every_write() -> None:
    store = InMemoryRecordStore()
    async with store.transaction() as session:
        user = await session.upsert_user_by_email("a@coffeechat.dev", "a", "google")

    with pytest.raises(RuntimeError):
        async with store.transaction() as session:
            await session.adjust_trust(user.id, -40)
            await session.set_blocked(user.id, True)
            raise RuntimeError("boom")

    async with store.transaction() as session:
        reloaded = await session.get_user(user.id)
    assert reloaded.trust_score == 50
    assert reloaded.blocked is False


@pytest.mark.asyncio
async def test_returned_records_are_copies() -> None:
    store = InMemoryRecordStore()
    async with store.transaction() as session:
        user = await session.upsert_user_by_email("b@coffeechat.dev", "b", "google")
    user.trust_score = 0
    async with store.transaction() as session:
        assert (await session.get_user(user.id)).trust_score == 50


@pytest.mark.asyncio
async def test_pending_pair_constraint_is_enforced_on_insert() -> None:
    store = InMemoryRecordStore()
    async with store.transaction() as session:
        a = await session.upsert_user_by_email("a@coffeechat.dev", "a", "google")
        b = await session.upsert_user_by_email("b@coffeechat.dev", "b", "google")
        await session.insert_proposal(MatchProposal(id=new_id(), proposer_id=a.id, partner_id=b.id))

    with pytest.raises(Conflict):
        async with store.transaction() as session:
            await session.insert_proposal(MatchProposal(id=new_id(), proposer_id=b.id, partner_id=a.id))

    async with store.transaction() as session:
        listed = await session.list_proposals_for(a.id)
    assert [item.status for item in listed] == [ProposalStatus.PENDING]


@pytest.mark.asyncio
async def test_candidates_keep_insertion_order_and_skip_blocked() -> None:
    store = InMemoryRecordStore()
    async with store.transaction() as session:
        me = await session.upsert_user_by_email("me@coffeechat.dev", "me", "google")
        names = ["c1", "c2", "c3"]
        ids = [(await session.upsert_user_by_email(f"{n}@coffeechat.dev", n, "google")).id for n in names]
        await session.set_blocked(ids[1], True)
        pool = await session.list_candidates(me.id, 100)
    assert [user.id for user in pool] == [ids[0], ids[2]]
