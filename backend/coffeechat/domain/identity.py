"""Account, profile, interest and availability management."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from coffeechat.domain.errors import BadRequest, Conflict, Forbidden, NotFound
from coffeechat.domain.models import (
    MAX_INTERESTS_PER_USER,
    AvailabilitySlot,
    OAuthProvider,
    User,
    parse_hhmm,
)
from coffeechat.domain.store import RecordStore, StoreSession, new_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Profile:
    user: User
    interests: List[str] = field(default_factory=list)
    availability: List[AvailabilitySlot] = field(default_factory=list)


def normalise_interests(names: Sequence[str]) -> List[str]:
    """Lowercase, trim and deduplicate while keeping first-seen order."""
    seen: list[str] = []
    for raw in names:
        name = raw.strip().lower()
        if name and name not in seen:
            seen.append(name)
    if len(seen) > MAX_INTERESTS_PER_USER:
        raise BadRequest("too_many_interests", details={"max": MAX_INTERESTS_PER_USER, "given": len(seen)})
    return seen


def _parse_window(start_time: str, end_time: str) -> tuple[int, int]:
    try:
        start, end = parse_hhmm(start_time), parse_hhmm(end_time)
    except ValueError:
        raise BadRequest("invalid_time_of_day") from None
    if start >= end:
        raise BadRequest("slot_start_after_end")
    return start, end


async def _require_user(session: StoreSession, user_id: str, *, for_update: bool = False) -> User:
    user = await session.get_user(user_id, for_update=for_update)
    if user is None:
        raise NotFound("user_not_found")
    return user


class IdentityService:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def authenticate(self, provider: str, email: str, nickname: str) -> User:
        """Mock OAuth sign-in: upsert the account keyed by email."""
        try:
            provider = OAuthProvider(provider.lower()).value
        except ValueError:
            raise BadRequest("unsupported_provider", details={"provider": provider}) from None
        async with self._store.transaction() as session:
            user = await session.upsert_user_by_email(email.strip().lower(), nickname, provider)
        logger.info("user authenticated", extra={"user_id": user.id, "provider": provider})
        return user

    async def verify_phone(self, user_id: str) -> User:
        async with self._store.transaction() as session:
            user = await _require_user(session, user_id)
            user.phone_verified = True
            return await session.save_user(user)

    async def get_profile(self, user_id: str) -> Profile:
        async with self._store.transaction() as session:
            user = await _require_user(session, user_id)
            interests = await session.list_interests([user_id])
            slots = await session.list_slots([user_id])
        return Profile(user=user, interests=interests.get(user_id, []), availability=slots.get(user_id, []))

    async def update_profile(
        self,
        user_id: str,
        nickname: str,
        bio: Optional[str] = None,
        region: Optional[str] = None,
    ) -> User:
        async with self._store.transaction() as session:
            user = await _require_user(session, user_id)
            user.nickname = nickname
            user.bio = bio
            user.region = region
            return await session.save_user(user)

    async def replace_interests(self, user_id: str, names: Sequence[str]) -> List[str]:
        cleaned = normalise_interests(names)
        async with self._store.transaction() as session:
            await _require_user(session, user_id)
            rows = await session.replace_interests(user_id, cleaned)
        return [row.name for row in rows]

    async def list_slots(self, user_id: str) -> List[AvailabilitySlot]:
        async with self._store.transaction() as session:
            await _require_user(session, user_id)
            slots = await session.list_slots([user_id])
        return slots.get(user_id, [])

    async def add_slot(self, user_id: str, weekday: int, start_time: str, end_time: str, area: str) -> AvailabilitySlot:
        if not 0 <= weekday <= 6:
            raise BadRequest("invalid_weekday")
        _parse_window(start_time, end_time)
        slot = AvailabilitySlot(
            id=new_id(),
            user_id=user_id,
            weekday=weekday,
            start_time=start_time.strip(),
            end_time=end_time.strip(),
            area=area,
        )
        async with self._store.transaction() as session:
            await _require_user(session, user_id, for_update=True)
            # The user row lock serialises concurrent slot writes for one user.
            existing = (await session.list_slots([user_id])).get(user_id, [])
            for other in existing:
                if slot.overlap_minutes(other) > 0:
                    raise Conflict("slot_overlap", details={"slot_id": other.id})
            return await session.add_slot(slot)

    async def delete_slot(self, slot_id: str, user_id: str) -> None:
        async with self._store.transaction() as session:
            slot = await session.get_slot(slot_id)
            if slot is None:
                raise NotFound("slot_not_found")
            if slot.user_id != user_id:
                raise Forbidden("not_slot_owner")
            await session.delete_slot(slot_id)
