"""PostgreSQL record store backed by asyncpg."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, List, Sequence

import asyncpg

from coffeechat.domain.errors import Conflict, NotFound
from coffeechat.domain.models import (
    NO_SHOW_TAG,
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
    SanctionLevel,
    User,
)
from coffeechat.domain.store import RecordStore, StoreSession, new_id

_USER_COLUMNS = "id, email, nickname, provider, phone_verified, bio, region, trust_score, blocked, created_at"
_PROPOSAL_COLUMNS = "id, proposer_id, partner_id, message, status, created_at"
_APPOINTMENT_COLUMNS = "id, proposal_id, user_a_id, user_b_id, place, starts_at, checkin_code, status, created_at"
_REPORT_COLUMNS = "id, appointment_id, reporter_id, target_user_id, reason, evidence, status, created_at"
_SANCTION_COLUMNS = "id, user_id, level, reason, created_at, end_at"
_RESTRICTING = [level.value for level in RESTRICTING_LEVELS]


def _row_to_user(row: asyncpg.Record) -> User:
    return User(
        id=str(row["id"]),
        email=str(row["email"]),
        nickname=str(row["nickname"]),
        provider=str(row["provider"]),
        phone_verified=bool(row["phone_verified"]),
        bio=row["bio"],
        region=row["region"],
        trust_score=int(row["trust_score"]),
        blocked=bool(row["blocked"]),
        created_at=row["created_at"],
    )


def _row_to_slot(row: asyncpg.Record) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        weekday=int(row["weekday"]),
        start_time=str(row["start_time"]),
        end_time=str(row["end_time"]),
        area=str(row["area"]),
    )


def _row_to_proposal(row: asyncpg.Record) -> MatchProposal:
    return MatchProposal(
        id=str(row["id"]),
        proposer_id=str(row["proposer_id"]),
        partner_id=str(row["partner_id"]),
        message=row["message"],
        status=ProposalStatus(str(row["status"])),
        created_at=row["created_at"],
    )


def _row_to_appointment(row: asyncpg.Record) -> Appointment:
    return Appointment(
        id=str(row["id"]),
        proposal_id=str(row["proposal_id"]),
        user_a_id=str(row["user_a_id"]),
        user_b_id=str(row["user_b_id"]),
        place=str(row["place"]),
        starts_at=row["starts_at"],
        checkin_code=str(row["checkin_code"]),
        status=AppointmentStatus(str(row["status"])),
        created_at=row["created_at"],
    )


def _row_to_check(row: asyncpg.Record) -> AttendanceCheck:
    return AttendanceCheck(
        id=str(row["id"]),
        appointment_id=str(row["appointment_id"]),
        user_id=str(row["user_id"]),
        method=str(row["method"]),
        created_at=row["created_at"],
    )


def _row_to_review(row: asyncpg.Record) -> Review:
    return Review(
        id=str(row["id"]),
        appointment_id=str(row["appointment_id"]),
        reviewer_id=str(row["reviewer_id"]),
        reviewee_id=str(row["reviewee_id"]),
        comment=str(row["comment"]),
        score_delta=int(row["score_delta"]),
        created_at=row["created_at"],
    )


def _row_to_report(row: asyncpg.Record) -> Report:
    return Report(
        id=str(row["id"]),
        appointment_id=str(row["appointment_id"]),
        reporter_id=str(row["reporter_id"]),
        target_user_id=str(row["target_user_id"]),
        reason=str(row["reason"]),
        evidence=row["evidence"],
        status=ReportStatus(str(row["status"])),
        created_at=row["created_at"],
    )


def _row_to_sanction(row: asyncpg.Record) -> Sanction:
    return Sanction(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        level=SanctionLevel(str(row["level"])),
        reason=str(row["reason"]),
        created_at=row["created_at"],
        end_at=row["end_at"],
    )


class PostgresSession(StoreSession):
    """Typed queries bound to one connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    # --- users ---

    async def upsert_user_by_email(self, email: str, nickname: str, provider: str) -> User:
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO users (id, email, nickname, provider)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (email) DO UPDATE SET nickname = EXCLUDED.nickname, provider = EXCLUDED.provider
            RETURNING {_USER_COLUMNS}
            """,
            new_id(),
            email,
            nickname,
            provider,
        )
        return _row_to_user(row)

    async def get_user(self, user_id: str, *, for_update: bool = False) -> User | None:
        query = f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._conn.fetchrow(query, user_id)
        return _row_to_user(row) if row else None

    async def save_user(self, user: User) -> User:
        row = await self._conn.fetchrow(
            f"""
            UPDATE users
            SET nickname = $2, provider = $3, phone_verified = $4, bio = $5, region = $6, blocked = $7
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
            """,
            user.id,
            user.nickname,
            user.provider,
            user.phone_verified,
            user.bio,
            user.region,
            user.blocked,
        )
        if row is None:
            raise NotFound("user_not_found")
        return _row_to_user(row)

    async def adjust_trust(self, user_id: str, delta: int) -> int:
        score = await self._conn.fetchval(
            "UPDATE users SET trust_score = trust_score + $2 WHERE id = $1 RETURNING trust_score",
            user_id,
            delta,
        )
        if score is None:
            raise NotFound("user_not_found")
        return int(score)

    async def set_blocked(self, user_id: str, blocked: bool) -> None:
        await self._conn.execute("UPDATE users SET blocked = $2 WHERE id = $1", user_id, blocked)

    async def list_candidates(self, exclude_user_id: str, limit: int) -> Sequence[User]:
        rows = await self._conn.fetch(
            f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE id <> $1 AND blocked = FALSE
            ORDER BY created_at, id
            LIMIT $2
            """,
            exclude_user_id,
            limit,
        )
        return [_row_to_user(row) for row in rows]

    # --- interests and availability ---

    async def replace_interests(self, user_id: str, names: Sequence[str]) -> Sequence[Interest]:
        await self._conn.execute("DELETE FROM user_interests WHERE user_id = $1", user_id)
        rows = [Interest(id=new_id(), user_id=user_id, name=name) for name in names]
        if rows:
            await self._conn.executemany(
                "INSERT INTO user_interests (id, user_id, name, position) VALUES ($1, $2, $3, $4)",
                [(row.id, row.user_id, row.name, index) for index, row in enumerate(rows)],
            )
        return rows

    async def list_interests(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        ids = list(user_ids)
        result: Dict[str, List[str]] = {uid: [] for uid in ids}
        rows = await self._conn.fetch(
            "SELECT user_id, name FROM user_interests WHERE user_id = ANY($1::text[]) ORDER BY user_id, position",
            ids,
        )
        for row in rows:
            result[str(row["user_id"])].append(str(row["name"]))
        return result

    async def add_slot(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        row = await self._conn.fetchrow(
            """
            INSERT INTO availability_slots (id, user_id, weekday, start_time, end_time, area)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id, user_id, weekday, start_time, end_time, area
            """,
            slot.id,
            slot.user_id,
            slot.weekday,
            slot.start_time,
            slot.end_time,
            slot.area,
        )
        return _row_to_slot(row)

    async def get_slot(self, slot_id: str) -> AvailabilitySlot | None:
        row = await self._conn.fetchrow(
            "SELECT id, user_id, weekday, start_time, end_time, area FROM availability_slots WHERE id = $1",
            slot_id,
        )
        return _row_to_slot(row) if row else None

    async def delete_slot(self, slot_id: str) -> None:
        await self._conn.execute("DELETE FROM availability_slots WHERE id = $1", slot_id)

    async def list_slots(self, user_ids: Iterable[str]) -> Dict[str, List[AvailabilitySlot]]:
        ids = list(user_ids)
        result: Dict[str, List[AvailabilitySlot]] = {uid: [] for uid in ids}
        rows = await self._conn.fetch(
            """
            SELECT id, user_id, weekday, start_time, end_time, area
            FROM availability_slots
            WHERE user_id = ANY($1::text[])
            ORDER BY user_id, weekday, start_time
            """,
            ids,
        )
        for row in rows:
            slot = _row_to_slot(row)
            result[slot.user_id].append(slot)
        return result

    # --- proposals ---

    async def insert_proposal(self, proposal: MatchProposal) -> MatchProposal:
        try:
            row = await self._conn.fetchrow(
                f"""
                INSERT INTO match_proposals (id, proposer_id, partner_id, message, status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_PROPOSAL_COLUMNS}
                """,
                proposal.id,
                proposal.proposer_id,
                proposal.partner_id,
                proposal.message,
                proposal.status.value,
                proposal.created_at,
            )
        except asyncpg.UniqueViolationError:
            raise Conflict("pending_proposal_exists") from None
        return _row_to_proposal(row)

    async def get_proposal(self, proposal_id: str, *, for_update: bool = False) -> MatchProposal | None:
        query = f"SELECT {_PROPOSAL_COLUMNS} FROM match_proposals WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._conn.fetchrow(query, proposal_id)
        return _row_to_proposal(row) if row else None

    async def find_pending_between(self, user_a: str, user_b: str) -> MatchProposal | None:
        row = await self._conn.fetchrow(
            f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM match_proposals
            WHERE status = 'PENDING'
              AND LEAST(proposer_id, partner_id) = LEAST($1::text, $2::text)
              AND GREATEST(proposer_id, partner_id) = GREATEST($1::text, $2::text)
            LIMIT 1
            """,
            user_a,
            user_b,
        )
        return _row_to_proposal(row) if row else None

    async def set_proposal_status(self, proposal_id: str, status: ProposalStatus) -> MatchProposal:
        row = await self._conn.fetchrow(
            f"UPDATE match_proposals SET status = $2 WHERE id = $1 RETURNING {_PROPOSAL_COLUMNS}",
            proposal_id,
            status.value,
        )
        if row is None:
            raise NotFound("proposal_not_found")
        return _row_to_proposal(row)

    async def list_proposals_for(self, user_id: str) -> Sequence[MatchProposal]:
        rows = await self._conn.fetch(
            f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM match_proposals
            WHERE proposer_id = $1 OR partner_id = $1
            ORDER BY created_at DESC
            """,
            user_id,
        )
        return [_row_to_proposal(row) for row in rows]

    # --- appointments ---

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        try:
            row = await self._conn.fetchrow(
                f"""
                INSERT INTO appointments (id, proposal_id, user_a_id, user_b_id, place, starts_at, checkin_code, status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {_APPOINTMENT_COLUMNS}
                """,
                appointment.id,
                appointment.proposal_id,
                appointment.user_a_id,
                appointment.user_b_id,
                appointment.place,
                appointment.starts_at,
                appointment.checkin_code,
                appointment.status.value,
                appointment.created_at,
            )
        except asyncpg.UniqueViolationError:
            raise Conflict("appointment_exists") from None
        return _row_to_appointment(row)

    async def get_appointment(self, appointment_id: str, *, for_update: bool = False) -> Appointment | None:
        query = f"SELECT {_APPOINTMENT_COLUMNS} FROM appointments WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._conn.fetchrow(query, appointment_id)
        return _row_to_appointment(row) if row else None

    async def set_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        row = await self._conn.fetchrow(
            f"UPDATE appointments SET status = $2 WHERE id = $1 RETURNING {_APPOINTMENT_COLUMNS}",
            appointment_id,
            status.value,
        )
        if row is None:
            raise NotFound("appointment_not_found")
        return _row_to_appointment(row)

    async def upsert_check(self, appointment_id: str, user_id: str, method: str) -> AttendanceCheck:
        row = await self._conn.fetchrow(
            """
            INSERT INTO attendance_checks (id, appointment_id, user_id, method)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (appointment_id, user_id) DO UPDATE SET method = EXCLUDED.method
            RETURNING id, appointment_id, user_id, method, created_at
            """,
            new_id(),
            appointment_id,
            user_id,
            method,
        )
        return _row_to_check(row)

    async def count_checks(self, appointment_id: str) -> int:
        count = await self._conn.fetchval(
            "SELECT COUNT(*) FROM attendance_checks WHERE appointment_id = $1",
            appointment_id,
        )
        return int(count or 0)

    async def list_checks(self, appointment_id: str) -> Sequence[AttendanceCheck]:
        rows = await self._conn.fetch(
            """
            SELECT id, appointment_id, user_id, method, created_at
            FROM attendance_checks
            WHERE appointment_id = $1
            ORDER BY created_at
            """,
            appointment_id,
        )
        return [_row_to_check(row) for row in rows]

    # --- reviews and reports ---

    async def insert_review(self, review: Review) -> Review:
        row = await self._conn.fetchrow(
            """
            INSERT INTO reviews (id, appointment_id, reviewer_id, reviewee_id, comment, score_delta, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING id, appointment_id, reviewer_id, reviewee_id, comment, score_delta, created_at
            """,
            review.id,
            review.appointment_id,
            review.reviewer_id,
            review.reviewee_id,
            review.comment,
            review.score_delta,
            review.created_at,
        )
        return _row_to_review(row)

    async def insert_report(self, report: Report) -> Report:
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO reports (id, appointment_id, reporter_id, target_user_id, reason, evidence, status, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING {_REPORT_COLUMNS}
            """,
            report.id,
            report.appointment_id,
            report.reporter_id,
            report.target_user_id,
            report.reason,
            report.evidence,
            report.status.value,
            report.created_at,
        )
        return _row_to_report(row)

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        query = f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._conn.fetchrow(query, report_id)
        return _row_to_report(row) if row else None

    async def set_report_status(self, report_id: str, status: ReportStatus) -> Report:
        row = await self._conn.fetchrow(
            f"UPDATE reports SET status = $2 WHERE id = $1 RETURNING {_REPORT_COLUMNS}",
            report_id,
            status.value,
        )
        if row is None:
            raise NotFound("report_not_found")
        return _row_to_report(row)

    async def list_reports(self, status: ReportStatus | None = None) -> Sequence[Report]:
        if status is None:
            rows = await self._conn.fetch(f"SELECT {_REPORT_COLUMNS} FROM reports ORDER BY created_at DESC")
        else:
            rows = await self._conn.fetch(
                f"SELECT {_REPORT_COLUMNS} FROM reports WHERE status = $1 ORDER BY created_at DESC",
                status.value,
            )
        return [_row_to_report(row) for row in rows]

    # --- sanctions ---

    async def insert_sanction(self, sanction: Sanction) -> Sanction:
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO sanctions (id, user_id, level, reason, created_at, end_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {_SANCTION_COLUMNS}
            """,
            sanction.id,
            sanction.user_id,
            sanction.level.value,
            sanction.reason,
            sanction.created_at,
            sanction.end_at,
        )
        return _row_to_sanction(row)

    async def list_sanctions(self, user_id: str) -> Sequence[Sanction]:
        rows = await self._conn.fetch(
            f"SELECT {_SANCTION_COLUMNS} FROM sanctions WHERE user_id = $1 ORDER BY created_at DESC",
            user_id,
        )
        return [_row_to_sanction(row) for row in rows]

    async def latest_active_restriction(self, user_id: str, now: datetime) -> Sanction | None:
        row = await self._conn.fetchrow(
            f"""
            SELECT {_SANCTION_COLUMNS}
            FROM sanctions
            WHERE user_id = $1
              AND level = ANY($2::text[])
              AND (end_at IS NULL OR end_at > $3)
            ORDER BY created_at DESC
            LIMIT 1
            """,
            user_id,
            _RESTRICTING,
            now,
        )
        return _row_to_sanction(row) if row else None

    async def restricted_user_ids(self, user_ids: Iterable[str], now: datetime) -> set[str]:
        rows = await self._conn.fetch(
            """
            SELECT DISTINCT user_id
            FROM sanctions
            WHERE user_id = ANY($1::text[])
              AND level = ANY($2::text[])
              AND (end_at IS NULL OR end_at > $3)
            """,
            list(user_ids),
            _RESTRICTING,
            now,
        )
        return {str(row["user_id"]) for row in rows}

    async def count_strikes_since(self, user_id: str, since: datetime) -> int:
        count = await self._conn.fetchval(
            """
            SELECT COUNT(*)
            FROM sanctions
            WHERE user_id = $1 AND reason LIKE $2 AND created_at >= $3
            """,
            user_id,
            f"{NO_SHOW_TAG}%",
            since,
        )
        return int(count or 0)


class PostgresRecordStore(RecordStore):
    """One pooled connection and one transaction per engine operation."""

    backend = "postgres"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresSession(conn)

    async def ping(self) -> None:
        async with self._pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
