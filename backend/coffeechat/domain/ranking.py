"""Suggestion ranking over interest, region, availability and trust overlap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from coffeechat.domain.errors import NotFound
from coffeechat.domain.models import (
    AVAILABILITY_WEIGHT,
    CANDIDATE_POOL_LIMIT,
    INTEREST_WEIGHT,
    REGION_WEIGHT,
    SUGGESTION_LIMIT,
    TRUST_WEIGHT,
    AvailabilitySlot,
    User,
    utcnow,
)
from coffeechat.domain.restrictions import ensure_not_restricted
from coffeechat.domain.store import RecordStore
from coffeechat.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScoreBreakdown:
    overlap_interests: int
    interest_overlap_ratio: float
    region_match: bool
    availability_overlap_minutes: int
    availability_overlap_ratio: float
    trust_normalized: float


@dataclass(slots=True)
class CandidateProfile:
    user: User
    interests: List[str]
    availability: List[AvailabilitySlot]


@dataclass(slots=True)
class Suggestion:
    candidate: CandidateProfile
    score: float
    breakdown: ScoreBreakdown


def _normalise_interests(values: Sequence[str]) -> set[str]:
    return {value.strip().lower() for value in values if value and value.strip()}


def _normalise_region(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().casefold()


def interest_overlap(mine: Sequence[str], theirs: Sequence[str]) -> tuple[int, float]:
    a = _normalise_interests(mine)
    b = _normalise_interests(theirs)
    union = a | b
    if not union:
        return 0, 0.0
    shared = len(a & b)
    return shared, shared / len(union)


def region_match(mine: Optional[str], theirs: Optional[str]) -> bool:
    a = _normalise_region(mine)
    b = _normalise_region(theirs)
    return a is not None and b is not None and a == b


def availability_overlap(mine: Sequence[AvailabilitySlot], theirs: Sequence[AvailabilitySlot]) -> tuple[int, float]:
    overlap = sum(slot.overlap_minutes(other) for slot in mine for other in theirs)
    my_total = sum(slot.minutes for slot in mine)
    their_total = sum(slot.minutes for slot in theirs)
    ratio = overlap / max(my_total, their_total, 1)
    return overlap, min(1.0, ratio)


def trust_normalized(trust_score: int) -> float:
    return max(0, min(100, trust_score)) / 100


def score_candidate(me: CandidateProfile, other: CandidateProfile) -> Suggestion:
    shared, interest_ratio = interest_overlap(me.interests, other.interests)
    same_region = region_match(me.user.region, other.user.region)
    overlap_minutes, availability_ratio = availability_overlap(me.availability, other.availability)
    trust = trust_normalized(other.user.trust_score)
    score = (
        INTEREST_WEIGHT * interest_ratio
        + REGION_WEIGHT * (1 if same_region else 0)
        + AVAILABILITY_WEIGHT * availability_ratio
        + TRUST_WEIGHT * trust
    )
    return Suggestion(
        candidate=other,
        score=round(score, 2),
        breakdown=ScoreBreakdown(
            overlap_interests=shared,
            interest_overlap_ratio=interest_ratio,
            region_match=same_region,
            availability_overlap_minutes=overlap_minutes,
            availability_overlap_ratio=availability_ratio,
            trust_normalized=trust,
        ),
    )


def rank(me: CandidateProfile, candidates: Sequence[CandidateProfile], *, limit: int = SUGGESTION_LIMIT) -> List[Suggestion]:
    scored = [score_candidate(me, other) for other in candidates]
    # sorted() is stable, so equal scores keep fetch order
    scored = sorted(scored, key=lambda item: item.score, reverse=True)
    return scored[:limit]


class SuggestionRanker:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def suggest(self, user_id: str) -> List[Suggestion]:
        now = utcnow()
        async with self._store.transaction() as session:
            me = await session.get_user(user_id)
            if me is None:
                raise NotFound("user_not_found")
            await ensure_not_restricted(session, user_id, action="suggest", now=now)
            pool = await session.list_candidates(user_id, CANDIDATE_POOL_LIMIT)
            restricted = await session.restricted_user_ids([user.id for user in pool], now)
            eligible = [user for user in pool if user.id not in restricted]
            ids = [user_id, *(user.id for user in eligible)]
            interests: Dict[str, List[str]] = await session.list_interests(ids)
            slots = await session.list_slots(ids)

        def profile(user: User) -> CandidateProfile:
            return CandidateProfile(user=user, interests=interests.get(user.id, []), availability=slots.get(user.id, []))

        suggestions = rank(profile(me), [profile(user) for user in eligible])
        metrics.inc_suggestions(len(eligible))
        logger.debug(
            "suggestions ranked",
            extra={"requester_id": user_id, "pool": len(pool), "eligible": len(eligible), "returned": len(suggestions)},
        )
        return suggestions
