"""Record store contract plus an in-memory implementation for development and tests."""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncContextManager, AsyncIterator, Dict, Iterable, List, Protocol, Sequence
from uuid import uuid4

from coffeechat.domain.errors import Conflict, NotFound
from coffeechat.domain.models import (
    RESTRICTING_LEVELS,
    Appointment,
    AppointmentStatus,
    AttendanceCheck,
    AvailabilitySlot,
    Interest,
    MatchProposal,
    ProposalStatus,
    Report,
    ReportStatus,
    Review,
    Sanction,
    User,
)


def new_id() -> str:
    return str(uuid4())


class StoreSession(Protocol):
    """Reads and writes performed inside one store transaction."""

    # users
    async def upsert_user_by_email(self, email: str, nickname: str, provider: str) -> User:
        ...

    async def get_user(self, user_id: str, *, for_update: bool = False) -> User | None:
        ...

    async def save_user(self, user: User) -> User:
        ...

    async def adjust_trust(self, user_id: str, delta: int) -> int:
        ...

    async def set_blocked(self, user_id: str, blocked: bool) -> None:
        ...

    async def list_candidates(self, exclude_user_id: str, limit: int) -> Sequence[User]:
        ...

    # interests & availability
    async def replace_interests(self, user_id: str, names: Sequence[str]) -> Sequence[Interest]:
        ...

    async def list_interests(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        ...

    async def add_slot(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        ...

    async def get_slot(self, slot_id: str) -> AvailabilitySlot | None:
        ...

    async def delete_slot(self, slot_id: str) -> None:
        ...

    async def list_slots(self, user_ids: Iterable[str]) -> Dict[str, List[AvailabilitySlot]]:
        ...

    # proposals
    async def insert_proposal(self, proposal: MatchProposal) -> MatchProposal:
        ...

    async def get_proposal(self, proposal_id: str, *, for_update: bool = False) -> MatchProposal | None:
        ...

    async def find_pending_between(self, user_a: str, user_b: str) -> MatchProposal | None:
        ...

    async def set_proposal_status(self, proposal_id: str, status: ProposalStatus) -> MatchProposal:
        ...

    async def list_proposals_for(self, user_id: str) -> Sequence[MatchProposal]:
        ...

    # appointments
    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        ...

    async def get_appointment(self, appointment_id: str, *, for_update: bool = False) -> Appointment | None:
        ...

    async def set_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        ...

    async def upsert_check(self, appointment_id: str, user_id: str, method: str) -> AttendanceCheck:
        ...

    async def count_checks(self, appointment_id: str) -> int:
        ...

    async def list_checks(self, appointment_id: str) -> Sequence[AttendanceCheck]:
        ...

    async def insert_review(self, review: Review) -> Review:
        ...

    # reports
    async def insert_report(self, report: Report) -> Report:
        ...

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        ...

    async def set_report_status(self, report_id: str, status: ReportStatus) -> Report:
        ...

    async def list_reports(self, status: ReportStatus | None = None) -> Sequence[Report]:
        ...

    # sanctions
    async def insert_sanction(self, sanction: Sanction) -> Sanction:
        ...

    async def list_sanctions(self, user_id: str) -> Sequence[Sanction]:
        ...

    async def latest_active_restriction(self, user_id: str, now: datetime) -> Sanction | None:
        ...

    async def restricted_user_ids(self, user_ids: Iterable[str], now: datetime) -> set[str]:
        ...

    async def count_strikes_since(self, user_id: str, since: datetime) -> int:
        ...


class RecordStore(Protocol):
    backend: str

    def transaction(self) -> AsyncContextManager[StoreSession]:
        ...

    async def ping(self) -> None:
        ...


@dataclass
class _MemoryState:
    users: Dict[str, User] = field(default_factory=dict)
    interests: Dict[str, List[Interest]] = field(default_factory=dict)
    slots: Dict[str, AvailabilitySlot] = field(default_factory=dict)
    proposals: Dict[str, MatchProposal] = field(default_factory=dict)
    appointments: Dict[str, Appointment] = field(default_factory=dict)
    checks: Dict[tuple[str, str], AttendanceCheck] = field(default_factory=dict)
    reviews: Dict[str, Review] = field(default_factory=dict)
    reports: Dict[str, Report] = field(default_factory=dict)
    sanctions: Dict[str, Sanction] = field(default_factory=dict)


class InMemorySession(StoreSession):
    def __init__(self, state: _MemoryState) -> None:
        self._state = state

    def _require_user(self, user_id: str) -> User:
        user = self._state.users.get(user_id)
        if user is None:
            raise NotFound("user_not_found")
        return user

    async def upsert_user_by_email(self, email: str, nickname: str, provider: str) -> User:
        for user in self._state.users.values():
            if user.email == email:
                user.nickname = nickname
                user.provider = provider
                return copy.copy(user)
        user = User(id=new_id(), email=email, nickname=nickname, provider=provider)
        self._state.users[user.id] = user
        return copy.copy(user)

    async def get_user(self, user_id: str, *, for_update: bool = False) -> User | None:
        user = self._state.users.get(user_id)
        return copy.copy(user) if user else None

    async def save_user(self, user: User) -> User:
        stored = self._require_user(user.id)
        stored.nickname = user.nickname
        stored.provider = user.provider
        stored.phone_verified = user.phone_verified
        stored.bio = user.bio
        stored.region = user.region
        stored.blocked = user.blocked
        return copy.copy(stored)

    async def adjust_trust(self, user_id: str, delta: int) -> int:
        user = self._require_user(user_id)
        user.trust_score += delta
        return user.trust_score

    async def set_blocked(self, user_id: str, blocked: bool) -> None:
        self._require_user(user_id).blocked = blocked

    async def list_candidates(self, exclude_user_id: str, limit: int) -> Sequence[User]:
        pool = [copy.copy(user) for user in self._state.users.values() if user.id != exclude_user_id and not user.blocked]
        return pool[:limit]

    async def replace_interests(self, user_id: str, names: Sequence[str]) -> Sequence[Interest]:
        rows = [Interest(id=new_id(), user_id=user_id, name=name) for name in names]
        self._state.interests[user_id] = rows
        return list(rows)

    async def list_interests(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        return {uid: [row.name for row in self._state.interests.get(uid, [])] for uid in user_ids}

    async def add_slot(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        self._state.slots[slot.id] = slot
        return copy.copy(slot)

    async def get_slot(self, slot_id: str) -> AvailabilitySlot | None:
        slot = self._state.slots.get(slot_id)
        return copy.copy(slot) if slot else None

    async def delete_slot(self, slot_id: str) -> None:
        self._state.slots.pop(slot_id, None)

    async def list_slots(self, user_ids: Iterable[str]) -> Dict[str, List[AvailabilitySlot]]:
        wanted = {uid: [] for uid in user_ids}
        for slot in self._state.slots.values():
            if slot.user_id in wanted:
                wanted[slot.user_id].append(copy.copy(slot))
        for slots in wanted.values():
            slots.sort(key=lambda item: (item.weekday, item.start_minute))
        return wanted

    async def insert_proposal(self, proposal: MatchProposal) -> MatchProposal:
        if proposal.status is ProposalStatus.PENDING:
            if await self.find_pending_between(proposal.proposer_id, proposal.partner_id):
                raise Conflict("pending_proposal_exists")
        self._state.proposals[proposal.id] = proposal
        return copy.copy(proposal)

    async def get_proposal(self, proposal_id: str, *, for_update: bool = False) -> MatchProposal | None:
        proposal = self._state.proposals.get(proposal_id)
        return copy.copy(proposal) if proposal else None

    async def find_pending_between(self, user_a: str, user_b: str) -> MatchProposal | None:
        pair = {user_a, user_b}
        for proposal in self._state.proposals.values():
            if proposal.status is ProposalStatus.PENDING and {proposal.proposer_id, proposal.partner_id} == pair:
                return copy.copy(proposal)
        return None

    async def set_proposal_status(self, proposal_id: str, status: ProposalStatus) -> MatchProposal:
        proposal = self._state.proposals[proposal_id]
        proposal.status = status
        return copy.copy(proposal)

    async def list_proposals_for(self, user_id: str) -> Sequence[MatchProposal]:
        rows = [copy.copy(item) for item in self._state.proposals.values() if item.involves(user_id)]
        rows.sort(key=lambda item: item.created_at)
        rows.reverse()
        return rows

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        for existing in self._state.appointments.values():
            if existing.proposal_id == appointment.proposal_id:
                raise Conflict("appointment_exists")
        self._state.appointments[appointment.id] = appointment
        return copy.copy(appointment)

    async def get_appointment(self, appointment_id: str, *, for_update: bool = False) -> Appointment | None:
        appointment = self._state.appointments.get(appointment_id)
        return copy.copy(appointment) if appointment else None

    async def set_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        appointment = self._state.appointments[appointment_id]
        appointment.status = status
        return copy.copy(appointment)

    async def upsert_check(self, appointment_id: str, user_id: str, method: str) -> AttendanceCheck:
        key = (appointment_id, user_id)
        check = self._state.checks.get(key)
        if check is None:
            check = AttendanceCheck(id=new_id(), appointment_id=appointment_id, user_id=user_id, method=method)
            self._state.checks[key] = check
        else:
            check.method = method
        return copy.copy(check)

    async def count_checks(self, appointment_id: str) -> int:
        return sum(1 for appt_id, _ in self._state.checks if appt_id == appointment_id)

    async def list_checks(self, appointment_id: str) -> Sequence[AttendanceCheck]:
        rows = [copy.copy(check) for (appt_id, _), check in self._state.checks.items() if appt_id == appointment_id]
        rows.sort(key=lambda item: item.created_at)
        return rows

    async def insert_review(self, review: Review) -> Review:
        self._state.reviews[review.id] = review
        return copy.copy(review)

    async def insert_report(self, report: Report) -> Report:
        self._state.reports[report.id] = report
        return copy.copy(report)

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        report = self._state.reports.get(report_id)
        return copy.copy(report) if report else None

    async def set_report_status(self, report_id: str, status: ReportStatus) -> Report:
        report = self._state.reports[report_id]
        report.status = status
        return copy.copy(report)

    async def list_reports(self, status: ReportStatus | None = None) -> Sequence[Report]:
        rows = [copy.copy(item) for item in self._state.reports.values() if status is None or item.status is status]
        rows.sort(key=lambda item: item.created_at)
        rows.reverse()
        return rows

    async def insert_sanction(self, sanction: Sanction) -> Sanction:
        self._state.sanctions[sanction.id] = sanction
        return copy.copy(sanction)

    async def list_sanctions(self, user_id: str) -> Sequence[Sanction]:
        rows = [copy.copy(item) for item in self._state.sanctions.values() if item.user_id == user_id]
        rows.sort(key=lambda item: item.created_at)
        rows.reverse()
        return rows

    async def latest_active_restriction(self, user_id: str, now: datetime) -> Sanction | None:
        for sanction in await self.list_sanctions(user_id):
            if sanction.level in RESTRICTING_LEVELS and sanction.is_active(now=now):
                return sanction
        return None

    async def restricted_user_ids(self, user_ids: Iterable[str], now: datetime) -> set[str]:
        wanted = set(user_ids)
        return {
            item.user_id
            for item in self._state.sanctions.values()
            if item.user_id in wanted and item.level in RESTRICTING_LEVELS and item.is_active(now=now)
        }

    async def count_strikes_since(self, user_id: str, since: datetime) -> int:
        return sum(
            1
            for item in self._state.sanctions.values()
            if item.user_id == user_id and item.is_strike and item.created_at >= since
        )


class InMemoryRecordStore(RecordStore):
    """Single-process store; transactions are serialized and roll back on error."""

    backend = "memory"

    def __init__(self) -> None:
        self._state = _MemoryState()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            try:
                yield InMemorySession(self._state)
            except BaseException:
                self._state = snapshot
                raise

    async def ping(self) -> None:
        return None
