import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from prometheus_client import REGISTRY

from coffeechat.domain.appointments import AppointmentService
from coffeechat.domain.errors import BadRequest, Conflict, Forbidden, NotFound, UserRestricted
from coffeechat.domain.models import AppointmentStatus, SanctionLevel, utcnow
from coffeechat.domain.proposals import ProposalService
from coffeechat.domain.sanctions import SanctionService
from coffeechat.domain.store import InMemorySession


@pytest.fixture
def appointments(store) -> AppointmentService:
    return AppointmentService(store)


@pytest_asyncio.fixture
async def meeting(store, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    proposals = ProposalService(store)
    proposal = await proposals.create(alice.id, bob.id)
    accepted = await proposals.accept(proposal.id, bob.id, "Cafe Onion", "2026-11-03T19:00:00Z")
    return alice, bob, accepted.appointment


@pytest.mark.asyncio
async def test_single_checkin_keeps_appointment_scheduled(appointments, meeting) -> None:
    alice, _, appt = meeting
    result = await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    assert result.check_count == 1
    assert result.appointment.status is AppointmentStatus.SCHEDULED
    assert result.completed_now is False


@pytest.mark.asyncio
async def test_repeated_checkin_is_idempotent(appointments, meeting) -> None:
    alice, _, appt = meeting
    first = await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    second = await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    assert first.check.id == second.check.id
    assert second.check_count == 1
    assert second.appointment.status is AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_both_checkins_complete_exactly_once(appointments, meeting) -> None:
    alice, bob, appt = meeting
    await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    done = await appointments.checkin(appt.id, bob.id, appt.checkin_code)
    again = await appointments.checkin(appt.id, bob.id, appt.checkin_code)
    assert done.completed_now is True
    assert done.appointment.status is AppointmentStatus.COMPLETED
    assert again.completed_now is False


@pytest.mark.asyncio
async def test_concurrent_checkins_complete_once(appointments, meeting) -> None:
    alice, bob, appt = meeting
    results = await asyncio.gather(
        appointments.checkin(appt.id, alice.id, appt.checkin_code),
        appointments.checkin(appt.id, bob.id, appt.checkin_code),
    )
    assert sum(1 for item in results if item.completed_now) == 1
    detail = await appointments.get(appt.id)
    assert detail.appointment.status is AppointmentStatus.COMPLETED
    assert len(detail.checks) == 2


@pytest.mark.asyncio
async def test_checkin_error_ordering(appointments, meeting, make_user, add_sanction) -> None:
    alice, _, appt = meeting
    stranger = await make_user("stranger")
    with pytest.raises(NotFound):
        await appointments.checkin("missing", alice.id, appt.checkin_code)
    with pytest.raises(Forbidden):
        await appointments.checkin(appt.id, stranger.id, appt.checkin_code)
    wrong = "1000" if appt.checkin_code != "1000" else "1001"
    with pytest.raises(BadRequest):
        await appointments.checkin(appt.id, alice.id, wrong)
    await add_sanction(alice.id, SanctionLevel.SUSPEND_7D)
    with pytest.raises(UserRestricted):
        await appointments.checkin(appt.id, alice.id, appt.checkin_code)


@pytest.mark.asyncio
async def test_no_show_escalation_ladder(store, appointments, make_user) -> None:
    reporter = await make_user("reporter")
    target = await make_user("target")
    proposals = ProposalService(store)
    appointment_ids = []
    for _ in range(3):
        proposal = await proposals.create(reporter.id, target.id)
        accepted = await proposals.accept(proposal.id, target.id, "Cafe", "2026-11-03T19:00:00Z")
        appointment_ids.append(accepted.appointment.id)

    levels = []
    for appointment_id in appointment_ids:
        result = await appointments.report_no_show(appointment_id, reporter.id, target.id, "did not come")
        levels.append((result.sanction.level, result.strikes_in_90d))

    assert levels == [
        (SanctionLevel.SUSPEND_7D, 1),
        (SanctionLevel.SUSPEND_30D, 2),
        (SanctionLevel.BAN, 3),
    ]
    async with store.transaction() as session:
        banned = await session.get_user(target.id)
    assert banned.blocked is True
    assert banned.trust_score == 50 - 30


@pytest.mark.asyncio
async def test_no_show_reason_is_tagged_and_status_set(appointments, meeting) -> None:
    alice, bob, appt = meeting
    result = await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    assert result.appointment.status is AppointmentStatus.NO_SHOW
    assert result.sanction.reason == f"no-show:late:appointment={appt.id}"
    assert result.sanction.end_at is not None
    assert result.sanction.end_at - result.sanction.created_at == timedelta(days=7)


@pytest.mark.asyncio
async def test_no_show_strikes_older_than_window_are_ignored(appointments, meeting, add_sanction) -> None:
    alice, bob, appt = meeting
    await add_sanction(
        bob.id,
        SanctionLevel.SUSPEND_7D,
        reason="no-show:old:appointment=x",
        created_at=utcnow() - timedelta(days=91),
        expired=True,
    )
    result = await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    assert result.sanction.level is SanctionLevel.SUSPEND_7D
    assert result.strikes_in_90d == 1


@pytest.mark.asyncio
async def test_no_show_allowed_for_restricted_participants(appointments, meeting, add_sanction) -> None:
    alice, bob, appt = meeting
    await add_sanction(alice.id, SanctionLevel.SUSPEND_30D)
    result = await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    assert result.appointment.status is AppointmentStatus.NO_SHOW


@pytest.mark.asyncio
async def test_no_show_overwrites_completed_status(appointments, meeting) -> None:
    alice, bob, appt = meeting
    await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    await appointments.checkin(appt.id, bob.id, appt.checkin_code)
    result = await appointments.report_no_show(appt.id, alice.id, bob.id, "left early")
    assert result.appointment.status is AppointmentStatus.NO_SHOW


@pytest.mark.asyncio
async def test_checkin_after_no_show_does_not_revert_status(appointments, meeting) -> None:
    alice, bob, appt = meeting
    await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    await appointments.checkin(appt.id, bob.id, appt.checkin_code)
    detail = await appointments.get(appt.id)
    assert detail.appointment.status is AppointmentStatus.NO_SHOW


@pytest.mark.asyncio
async def test_no_show_validation(appointments, meeting, make_user) -> None:
    alice, bob, appt = meeting
    stranger = await make_user("stranger")
    with pytest.raises(BadRequest):
        await appointments.report_no_show(appt.id, alice.id, alice.id, "x")
    with pytest.raises(NotFound):
        await appointments.report_no_show("missing", alice.id, bob.id, "x")
    with pytest.raises(Forbidden):
        await appointments.report_no_show(appt.id, alice.id, stranger.id, "x")


@pytest.mark.asyncio
async def test_review_requires_completion_then_adjusts_trust(store, appointments, meeting) -> None:
    alice, bob, appt = meeting
    with pytest.raises(Conflict):
        await appointments.review(appt.id, alice.id, bob.id, "great chat", 3)

    await appointments.checkin(appt.id, alice.id, appt.checkin_code)
    await appointments.checkin(appt.id, bob.id, appt.checkin_code)
    review = await appointments.review(appt.id, alice.id, bob.id, "great chat", 3)

    assert review.score_delta == 3
    async with store.transaction() as session:
        assert (await session.get_user(bob.id)).trust_score == 53


@pytest.mark.asyncio
async def test_review_validation(appointments, meeting) -> None:
    alice, bob, appt = meeting
    with pytest.raises(BadRequest):
        await appointments.review(appt.id, alice.id, alice.id, "me", 1)
    with pytest.raises(BadRequest):
        await appointments.review(appt.id, alice.id, bob.id, "too much", 6)


@pytest.mark.asyncio
async def test_restricted_reviewer_checked_before_appointment_lookup(appointments, meeting, add_sanction) -> None:
    alice, bob, _ = meeting
    await add_sanction(alice.id, SanctionLevel.SUSPEND_7D)
    with pytest.raises(UserRestricted):
        await appointments.review("missing", alice.id, bob.id, "x", 1)


@pytest.mark.asyncio
async def test_report_creates_open_report_without_sanction(store, appointments, meeting) -> None:
    alice, bob, appt = meeting
    report = await appointments.report(appt.id, alice.id, bob.id, "rude", evidence="chat log")
    assert report.status.value == "OPEN"
    async with store.transaction() as session:
        assert list(await session.list_sanctions(bob.id)) == []


@pytest.mark.asyncio
async def test_report_validation(appointments, meeting, make_user, add_sanction) -> None:
    alice, bob, appt = meeting
    stranger = await make_user("stranger")
    with pytest.raises(BadRequest):
        await appointments.report(appt.id, alice.id, alice.id, "x")
    with pytest.raises(Forbidden):
        await appointments.report(appt.id, alice.id, stranger.id, "x")
    await add_sanction(alice.id, SanctionLevel.BAN)
    with pytest.raises(UserRestricted):
        await appointments.report(appt.id, alice.id, bob.id, "x")


def _sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_no_show_metrics_follow_commit(store, appointments, meeting, monkeypatch) -> None:
    alice, bob, appt = meeting
    strikes = ("coffeechat_no_show_strikes_total", {"level": "SUSPEND_7D"})
    applied = ("coffeechat_sanctions_applied_total", {"level": "SUSPEND_7D", "source": "no_show"})
    before = [_sample(name, **labels) for name, labels in (strikes, applied)]

    async def _failing_adjust_trust(self, user_id: str, delta: int) -> int:
        raise RuntimeError("trust write failed")

    monkeypatch.setattr(InMemorySession, "adjust_trust", _failing_adjust_trust)
    with pytest.raises(RuntimeError):
        await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    monkeypatch.undo()

    assert [_sample(name, **labels) for name, labels in (strikes, applied)] == before
    assert await SanctionService(store).list_sanctions(bob.id) == []
    assert (await appointments.get(appt.id)).appointment.status is AppointmentStatus.SCHEDULED

    await appointments.report_no_show(appt.id, alice.id, bob.id, "late")
    assert [_sample(name, **labels) for name, labels in (strikes, applied)] == [value + 1 for value in before]
