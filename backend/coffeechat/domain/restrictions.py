"""Restriction evaluation: blocked accounts and unexpired suspensions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from coffeechat.domain.errors import NotFound, UserRestricted
from coffeechat.domain.models import RESTRICTING_LEVELS, Sanction, User, utcnow
from coffeechat.domain.store import RecordStore, StoreSession
from coffeechat.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RestrictionStatus:
    user_id: str
    exists: bool
    restricted: bool
    reason: Optional[str] = None
    level: Optional[str] = None
    until: Optional[datetime] = None


def evaluate(user: User, latest_active: Sanction | None, *, now: datetime) -> RestrictionStatus:
    """Pure restriction decision for a user given their most recent active sanction.

    Expiry is decided here against ``now`` so a suspension lapses on the next
    call without any sweeper.
    """
    if user.blocked:
        return RestrictionStatus(user_id=user.id, exists=True, restricted=True, reason="blocked", level="BAN")
    if latest_active is None or latest_active.level not in RESTRICTING_LEVELS:
        return RestrictionStatus(user_id=user.id, exists=True, restricted=False)
    if not latest_active.is_active(now=now):
        return RestrictionStatus(user_id=user.id, exists=True, restricted=False)
    return RestrictionStatus(
        user_id=user.id,
        exists=True,
        restricted=True,
        reason=latest_active.reason,
        level=latest_active.level.value,
        until=latest_active.end_at,
    )


async def restriction_for(session: StoreSession, user_id: str, *, now: datetime | None = None) -> RestrictionStatus:
    now = now or utcnow()
    user = await session.get_user(user_id)
    if user is None:
        raise NotFound("user_not_found")
    latest = None if user.blocked else await session.latest_active_restriction(user_id, now)
    return evaluate(user, latest, now=now)


async def ensure_not_restricted(
    session: StoreSession,
    user_id: str,
    *,
    action: str,
    now: datetime | None = None,
) -> None:
    status = await restriction_for(session, user_id, now=now)
    if status.restricted:
        metrics.inc_restriction_denial(action)
        logger.info("restricted actor refused", extra={"subject_id": user_id, "action": action, "level": status.level})
        raise UserRestricted(f"{action}_restricted", details={"user_id": user_id, "level": status.level})


class RestrictionEvaluator:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def is_restricted(self, user_id: str) -> RestrictionStatus:
        async with self._store.transaction() as session:
            return await restriction_for(session, user_id)
