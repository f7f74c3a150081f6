"""Entities, states and engine constants."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

MAX_INTERESTS_PER_USER = 10
DEFAULT_TRUST_SCORE = 50

SUGGESTION_LIMIT = 10
CANDIDATE_POOL_LIMIT = 100
INTEREST_WEIGHT = 55
REGION_WEIGHT = 20
AVAILABILITY_WEIGHT = 20
TRUST_WEIGHT = 5

STRIKE_WINDOW = timedelta(days=90)
NO_SHOW_TAG = "no-show"
NO_SHOW_TRUST_PENALTY = 10
DEFAULT_RESOLVE_TRUST_DELTA = -5
MIN_RESOLVE_TRUST_DELTA = -30
MAX_RESOLVE_TRUST_DELTA = 5
MIN_REVIEW_DELTA = -5
MAX_REVIEW_DELTA = 5

CHECKIN_CODE_MIN = 1000
CHECKIN_CODE_MAX = 9999
COMPLETION_CHECKS = 2

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for an ``HH:MM`` string."""
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"invalid time of day: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


class OAuthProvider(str, Enum):
    GOOGLE = "google"
    KAKAO = "kakao"
    APPLE = "apple"


class ProposalStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class ReportStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class SanctionLevel(str, Enum):
    WARNING = "WARNING"
    SUSPEND_7D = "SUSPEND_7D"
    SUSPEND_30D = "SUSPEND_30D"
    BAN = "BAN"

    @property
    def restricts(self) -> bool:
        return self is not SanctionLevel.WARNING

    def end_at(self, now: datetime) -> Optional[datetime]:
        """Expiry for a sanction of this level issued at ``now``; ``None`` means no expiry."""
        if self is SanctionLevel.SUSPEND_7D:
            return now + timedelta(days=7)
        if self is SanctionLevel.SUSPEND_30D:
            return now + timedelta(days=30)
        return None


RESTRICTING_LEVELS = frozenset(level for level in SanctionLevel if level.restricts)


def level_for_strikes(prior_strikes: int) -> SanctionLevel:
    if prior_strikes <= 0:
        return SanctionLevel.SUSPEND_7D
    if prior_strikes == 1:
        return SanctionLevel.SUSPEND_30D
    return SanctionLevel.BAN


@dataclass(slots=True)
class User:
    id: str
    email: str
    nickname: str
    provider: str
    phone_verified: bool = False
    bio: Optional[str] = None
    region: Optional[str] = None
    trust_score: int = DEFAULT_TRUST_SCORE
    blocked: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Interest:
    id: str
    user_id: str
    name: str


@dataclass(slots=True)
class AvailabilitySlot:
    id: str
    user_id: str
    weekday: int
    start_time: str
    end_time: str
    area: str

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end_time)

    @property
    def minutes(self) -> int:
        return max(0, self.end_minute - self.start_minute)

    def overlap_minutes(self, other: "AvailabilitySlot") -> int:
        if self.weekday != other.weekday:
            return 0
        start = max(self.start_minute, other.start_minute)
        end = min(self.end_minute, other.end_minute)
        return max(0, end - start)


@dataclass(slots=True)
class MatchProposal:
    id: str
    proposer_id: str
    partner_id: str
    message: Optional[str] = None
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.proposer_id, self.partner_id)


@dataclass(slots=True)
class Appointment:
    id: str
    proposal_id: str
    user_a_id: str
    user_b_id: str
    place: str
    starts_at: datetime
    checkin_code: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: datetime = field(default_factory=utcnow)

    @property
    def participants(self) -> tuple[str, str]:
        return (self.user_a_id, self.user_b_id)

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants


@dataclass(slots=True)
class AttendanceCheck:
    id: str
    appointment_id: str
    user_id: str
    method: str = "code"
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Review:
    id: str
    appointment_id: str
    reviewer_id: str
    reviewee_id: str
    comment: str
    score_delta: int
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Report:
    id: str
    appointment_id: str
    reporter_id: str
    target_user_id: str
    reason: str
    evidence: Optional[str] = None
    status: ReportStatus = ReportStatus.OPEN
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Sanction:
    id: str
    user_id: str
    level: SanctionLevel
    reason: str
    created_at: datetime = field(default_factory=utcnow)
    end_at: Optional[datetime] = None

    def is_active(self, *, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.end_at is None or self.end_at > now

    @property
    def is_strike(self) -> bool:
        return self.reason.startswith(NO_SHOW_TAG)


def no_show_reason(reason: str, appointment_id: str) -> str:
    return f"{NO_SHOW_TAG}:{reason}:appointment={appointment_id}"


def report_resolution_reason(report_id: str) -> str:
    return f"report:{report_id} resolved"
