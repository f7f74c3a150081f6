"""Appointment lifecycle: dual check-in, no-show strikes, reviews and incident reports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from coffeechat.domain.errors import BadRequest, Conflict, NotFound, NotParticipant, SelfReferenceError
from coffeechat.domain.models import (
    COMPLETION_CHECKS,
    MAX_REVIEW_DELTA,
    MIN_REVIEW_DELTA,
    NO_SHOW_TRUST_PENALTY,
    Appointment,
    AppointmentStatus,
    AttendanceCheck,
    Report,
    Review,
    Sanction,
    utcnow,
)
from coffeechat.domain.restrictions import ensure_not_restricted
from coffeechat.domain.sanctions import escalate_no_show
from coffeechat.domain.store import RecordStore, StoreSession, new_id
from coffeechat.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppointmentDetail:
    appointment: Appointment
    checks: List[AttendanceCheck] = field(default_factory=list)


@dataclass(slots=True)
class CheckinResult:
    check: AttendanceCheck
    appointment: Appointment
    check_count: int
    completed_now: bool


@dataclass(slots=True)
class NoShowResult:
    appointment: Appointment
    sanction: Sanction
    strikes_in_90d: int


async def _load_appointment(session: StoreSession, appointment_id: str, *, for_update: bool = False) -> Appointment:
    appointment = await session.get_appointment(appointment_id, for_update=for_update)
    if appointment is None:
        raise NotFound("appointment_not_found")
    return appointment


def _ensure_participants(appointment: Appointment, *user_ids: str) -> None:
    for user_id in user_ids:
        if not appointment.has_participant(user_id):
            raise NotParticipant()


def _guard_distinct(actor_id: str, target_id: str, reason: str) -> None:
    if actor_id == target_id:
        raise SelfReferenceError(reason)


class AppointmentService:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def get(self, appointment_id: str) -> AppointmentDetail:
        async with self._store.transaction() as session:
            appointment = await _load_appointment(session, appointment_id)
            checks = await session.list_checks(appointment_id)
        return AppointmentDetail(appointment=appointment, checks=list(checks))

    async def checkin(self, appointment_id: str, user_id: str, code: str, *, method: str = "code") -> CheckinResult:
        async with self._store.transaction() as session:
            appointment = await _load_appointment(session, appointment_id, for_update=True)
            _ensure_participants(appointment, user_id)
            if code != appointment.checkin_code:
                raise BadRequest("invalid_checkin_code")
            await ensure_not_restricted(session, user_id, action="checkin")
            check = await session.upsert_check(appointment.id, user_id, method)
            count = await session.count_checks(appointment.id)
            completed_now = False
            # NO_SHOW is terminal; check-ins are still recorded but never revert it
            if count >= COMPLETION_CHECKS and appointment.status is AppointmentStatus.SCHEDULED:
                appointment = await session.set_appointment_status(appointment.id, AppointmentStatus.COMPLETED)
                completed_now = True
        if completed_now:
            metrics.inc_appointment_completed()
            logger.info("appointment completed", extra={"appointment_id": appointment.id})
        return CheckinResult(check=check, appointment=appointment, check_count=count, completed_now=completed_now)

    async def report_no_show(self, appointment_id: str, reporter_id: str, target_user_id: str, reason: str) -> NoShowResult:
        _guard_distinct(reporter_id, target_user_id, "self_no_show")
        now = utcnow()
        async with self._store.transaction() as session:
            appointment = await _load_appointment(session, appointment_id, for_update=True)
            _ensure_participants(appointment, reporter_id, target_user_id)
            # Restricted participants may still settle an existing appointment.
            # Any prior status is overwritten, COMPLETED included.
            appointment = await session.set_appointment_status(appointment.id, AppointmentStatus.NO_SHOW)
            outcome = await escalate_no_show(session, target_user_id, appointment.id, reporter_id, reason, now=now)
            await session.adjust_trust(target_user_id, -NO_SHOW_TRUST_PENALTY)
        metrics.inc_sanction(outcome.sanction.level.value, "no_show")
        metrics.inc_no_show_strike(outcome.sanction.level.value)
        return NoShowResult(appointment=appointment, sanction=outcome.sanction, strikes_in_90d=outcome.strikes_in_90d)

    async def review(
        self,
        appointment_id: str,
        reviewer_id: str,
        reviewee_id: str,
        comment: str,
        score_delta: int,
    ) -> Review:
        _guard_distinct(reviewer_id, reviewee_id, "self_review")
        if not MIN_REVIEW_DELTA <= score_delta <= MAX_REVIEW_DELTA:
            raise BadRequest("score_delta_out_of_range")
        async with self._store.transaction() as session:
            await ensure_not_restricted(session, reviewer_id, action="review")
            appointment = await _load_appointment(session, appointment_id)
            if appointment.status is not AppointmentStatus.COMPLETED:
                raise Conflict("appointment_not_completed")
            _ensure_participants(appointment, reviewer_id, reviewee_id)
            review = await session.insert_review(
                Review(
                    id=new_id(),
                    appointment_id=appointment.id,
                    reviewer_id=reviewer_id,
                    reviewee_id=reviewee_id,
                    comment=comment,
                    score_delta=score_delta,
                )
            )
            await session.adjust_trust(reviewee_id, score_delta)
        logger.info("review recorded", extra={"appointment_id": appointment_id, "score_delta": score_delta})
        return review

    async def report(
        self,
        appointment_id: str,
        reporter_id: str,
        target_user_id: str,
        reason: str,
        evidence: Optional[str] = None,
    ) -> Report:
        _guard_distinct(reporter_id, target_user_id, "self_report")
        async with self._store.transaction() as session:
            await ensure_not_restricted(session, reporter_id, action="report")
            appointment = await _load_appointment(session, appointment_id)
            _ensure_participants(appointment, reporter_id, target_user_id)
            report = await session.insert_report(
                Report(
                    id=new_id(),
                    appointment_id=appointment.id,
                    reporter_id=reporter_id,
                    target_user_id=target_user_id,
                    reason=reason,
                    evidence=evidence,
                )
            )
        metrics.inc_report_filed()
        logger.info("report filed", extra={"report_id": report.id, "appointment_id": appointment_id})
        return report
