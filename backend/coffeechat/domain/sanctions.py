"""Sanction escalation: no-show strikes, report resolution and manual sanctions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from coffeechat.domain.errors import BadRequest, Conflict, NotFound
from coffeechat.domain.models import (
    DEFAULT_RESOLVE_TRUST_DELTA,
    MAX_RESOLVE_TRUST_DELTA,
    MIN_RESOLVE_TRUST_DELTA,
    STRIKE_WINDOW,
    Report,
    ReportStatus,
    Sanction,
    SanctionLevel,
    level_for_strikes,
    no_show_reason,
    report_resolution_reason,
    utcnow,
)
from coffeechat.domain.store import RecordStore, StoreSession, new_id
from coffeechat.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StrikeOutcome:
    sanction: Sanction
    strikes_in_90d: int


@dataclass(slots=True)
class ResolvedReport:
    report: Report
    sanction: Optional[Sanction]
    trust_score: int


async def apply_sanction(
    session: StoreSession,
    user_id: str,
    level: SanctionLevel,
    reason: str,
    *,
    source: str,
    now: datetime | None = None,
) -> Sanction:
    """Persist a sanction using the level's duration; BAN also blocks the account."""
    now = now or utcnow()
    sanction = await session.insert_sanction(
        Sanction(id=new_id(), user_id=user_id, level=level, reason=reason, created_at=now, end_at=level.end_at(now))
    )
    if level is SanctionLevel.BAN:
        await session.set_blocked(user_id, True)
    logger.info(
        "sanction applied",
        extra={"subject_id": user_id, "level": level.value, "source": source, "sanction_id": sanction.id},
    )
    return sanction


async def escalate_no_show(
    session: StoreSession,
    target_user_id: str,
    appointment_id: str,
    reporter_id: str,
    reason: str,
    *,
    now: datetime | None = None,
) -> StrikeOutcome:
    now = now or utcnow()
    # Lock the target so concurrent strikes count each other.
    await session.get_user(target_user_id, for_update=True)
    prior = await session.count_strikes_since(target_user_id, now - STRIKE_WINDOW)
    level = level_for_strikes(prior)
    sanction = await apply_sanction(
        session,
        target_user_id,
        level,
        no_show_reason(reason, appointment_id),
        source="no_show",
        now=now,
    )
    logger.info(
        "no-show strike recorded",
        extra={"subject_id": target_user_id, "reporter_id": reporter_id, "prior_strikes": prior, "level": level.value},
    )
    return StrikeOutcome(sanction=sanction, strikes_in_90d=prior + 1)


class SanctionService:
    """Operator-facing moderation operations."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def resolve_report(
        self,
        report_id: str,
        sanction_level: Optional[SanctionLevel] = None,
        trust_delta: int = DEFAULT_RESOLVE_TRUST_DELTA,
    ) -> ResolvedReport:
        if not MIN_RESOLVE_TRUST_DELTA <= trust_delta <= MAX_RESOLVE_TRUST_DELTA:
            raise BadRequest("trust_delta_out_of_range")
        async with self._store.transaction() as session:
            report = await session.get_report(report_id, for_update=True)
            if report is None:
                raise NotFound("report_not_found")
            if report.status is not ReportStatus.OPEN:
                raise Conflict("report_not_open")
            report = await session.set_report_status(report.id, ReportStatus.RESOLVED)
            trust_score = await session.adjust_trust(report.target_user_id, trust_delta)
            sanction = None
            if sanction_level is not None:
                sanction = await apply_sanction(
                    session,
                    report.target_user_id,
                    sanction_level,
                    report_resolution_reason(report.id),
                    source="report",
                )
        if sanction is not None:
            metrics.inc_sanction(sanction.level.value, "report")
        metrics.inc_report_resolved()
        return ResolvedReport(report=report, sanction=sanction, trust_score=trust_score)

    async def manual_sanction(self, user_id: str, level: SanctionLevel, reason: str) -> Sanction:
        async with self._store.transaction() as session:
            if await session.get_user(user_id) is None:
                raise NotFound("user_not_found")
            sanction = await apply_sanction(session, user_id, level, reason, source="manual")
        metrics.inc_sanction(sanction.level.value, "manual")
        return sanction

    async def list_open_reports(self) -> List[Report]:
        async with self._store.transaction() as session:
            return list(await session.list_reports(ReportStatus.OPEN))

    async def list_sanctions(self, user_id: str) -> List[Sanction]:
        async with self._store.transaction() as session:
            if await session.get_user(user_id) is None:
                raise NotFound("user_not_found")
            return list(await session.list_sanctions(user_id))
