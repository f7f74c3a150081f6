from datetime import timedelta

import pytest
import pytest_asyncio

from coffeechat.domain.appointments import AppointmentService
from coffeechat.domain.errors import BadRequest, Conflict, NotFound
from coffeechat.domain.models import ReportStatus, SanctionLevel, level_for_strikes
from coffeechat.domain.proposals import ProposalService
from coffeechat.domain.restrictions import RestrictionEvaluator
from coffeechat.domain.sanctions import SanctionService, escalate_no_show
from coffeechat.domain.store import InMemorySession


@pytest.fixture
def sanctions(store) -> SanctionService:
    return SanctionService(store)


@pytest_asyncio.fixture
async def open_report(store, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    proposals = ProposalService(store)
    proposal = await proposals.create(alice.id, bob.id)
    accepted = await proposals.accept(proposal.id, bob.id, "Cafe", "2026-11-03T19:00:00Z")
    report = await AppointmentService(store).report(accepted.appointment.id, alice.id, bob.id, "harassment")
    return bob, report


def test_level_for_strikes_ladder() -> None:
    assert level_for_strikes(0) is SanctionLevel.SUSPEND_7D
    assert level_for_strikes(1) is SanctionLevel.SUSPEND_30D
    assert level_for_strikes(2) is SanctionLevel.BAN
    assert level_for_strikes(7) is SanctionLevel.BAN


@pytest.mark.asyncio
async def test_resolve_applies_default_trust_penalty(sanctions, open_report) -> None:
    target, report = open_report
    resolved = await sanctions.resolve_report(report.id)
    assert resolved.report.status is ReportStatus.RESOLVED
    assert resolved.sanction is None
    assert resolved.trust_score == 45
    assert resolved.report.target_user_id == target.id


@pytest.mark.asyncio
async def test_resolve_with_suspension_restricts_target(store, sanctions, open_report) -> None:
    target, report = open_report
    resolved = await sanctions.resolve_report(report.id, SanctionLevel.SUSPEND_30D, trust_delta=-10)

    assert resolved.sanction.reason == f"report:{report.id} resolved"
    assert resolved.sanction.end_at - resolved.sanction.created_at == timedelta(days=30)
    assert resolved.trust_score == 40
    assert (await RestrictionEvaluator(store).is_restricted(target.id)).restricted is True


@pytest.mark.asyncio
async def test_resolve_with_warning_does_not_restrict(store, sanctions, open_report) -> None:
    target, report = open_report
    resolved = await sanctions.resolve_report(report.id, SanctionLevel.WARNING)
    assert resolved.sanction.end_at is None
    assert (await RestrictionEvaluator(store).is_restricted(target.id)).restricted is False


@pytest.mark.asyncio
async def test_second_resolution_conflicts(sanctions, open_report) -> None:
    _, report = open_report
    await sanctions.resolve_report(report.id)
    with pytest.raises(Conflict):
        await sanctions.resolve_report(report.id)


@pytest.mark.asyncio
async def test_resolve_rejects_out_of_range_delta(sanctions, open_report) -> None:
    _, report = open_report
    with pytest.raises(BadRequest):
        await sanctions.resolve_report(report.id, trust_delta=-31)
    with pytest.raises(BadRequest):
        await sanctions.resolve_report(report.id, trust_delta=6)


@pytest.mark.asyncio
async def test_resolve_unknown_report(sanctions) -> None:
    with pytest.raises(NotFound):
        await sanctions.resolve_report("missing")


@pytest.mark.asyncio
async def test_open_queue_drops_resolved_reports(sanctions, open_report) -> None:
    _, report = open_report
    assert [item.id for item in await sanctions.list_open_reports()] == [report.id]
    await sanctions.resolve_report(report.id)
    assert await sanctions.list_open_reports() == []


@pytest.mark.asyncio
async def test_manual_ban_blocks_account(store, sanctions, make_user) -> None:
    user = await make_user("troll")
    sanction = await sanctions.manual_sanction(user.id, SanctionLevel.BAN, "spam")
    assert sanction.end_at is None
    async with store.transaction() as session:
        assert (await session.get_user(user.id)).blocked is True
    assert [item.id for item in await sanctions.list_sanctions(user.id)] == [sanction.id]


@pytest.mark.asyncio
async def test_manual_sanction_is_not_counted_as_strike(store, sanctions, make_user) -> None:
    user = await make_user("warned")
    await sanctions.manual_sanction(user.id, SanctionLevel.SUSPEND_7D, "rude")
    async with store.transaction() as session:
        assert await session.count_strikes_since(user.id, user.created_at - timedelta(days=1)) == 0


@pytest.mark.asyncio
async def test_manual_sanction_unknown_user(sanctions) -> None:
    with pytest.raises(NotFound):
        await sanctions.manual_sanction("ghost", SanctionLevel.WARNING, "x")


@pytest.mark.asyncio
async def test_escalation_locks_target_before_counting(store, make_user, monkeypatch) -> None:
    target = await make_user("target")
    calls = []
    original_get_user = InMemorySession.get_user
    original_count = InMemorySession.count_strikes_since

    async def _get_user(self, user_id: str, *, for_update: bool = False):
        calls.append(("get_user", user_id, for_update))
        return await original_get_user(self, user_id, for_update=for_update)

    async def _count(self, user_id, since):
        calls.append(("count", user_id, None))
        return await original_count(self, user_id, since)

    monkeypatch.setattr(InMemorySession, "get_user", _get_user)
    monkeypatch.setattr(InMemorySession, "count_strikes_since", _count)
    async with store.transaction() as session:
        outcome = await escalate_no_show(session, target.id, "appt-1", "reporter", "late")

    assert calls[:2] == [("get_user", target.id, True), ("count", target.id, None)]
    assert outcome.sanction.level is SanctionLevel.SUSPEND_7D
