"""Pydantic request and response schemas for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from coffeechat.domain.models import (
	DEFAULT_RESOLVE_TRUST_DELTA,
	MAX_RESOLVE_TRUST_DELTA,
	MAX_REVIEW_DELTA,
	MIN_RESOLVE_TRUST_DELTA,
	MIN_REVIEW_DELTA,
	AppointmentStatus,
	ProposalStatus,
	ReportStatus,
	SanctionLevel,
)

HHMM_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"

NonEmpty = Annotated[str, Field(min_length=1)]
UserId = Annotated[str, Field(min_length=1, max_length=64)]


# --- requests ---------------------------------------------------------------


class AuthRequest(BaseModel):
	email: EmailStr
	nickname: Annotated[str, Field(min_length=1, max_length=40)]


class PhoneVerifyRequest(BaseModel):
	user_id: UserId = Field(alias="userId")

	model_config = {"populate_by_name": True}


class ProfileUpdateRequest(BaseModel):
	user_id: UserId = Field(alias="userId")
	nickname: Annotated[str, Field(min_length=1, max_length=40)]
	bio: Optional[Annotated[str, Field(max_length=500)]] = None
	region: Optional[Annotated[str, Field(max_length=80)]] = None

	model_config = {"populate_by_name": True}


class InterestsReplaceRequest(BaseModel):
	user_id: UserId = Field(alias="userId")
	interests: List[Annotated[str, Field(max_length=40)]]

	model_config = {"populate_by_name": True}


class SlotCreateRequest(BaseModel):
	user_id: UserId = Field(alias="userId")
	weekday: Annotated[int, Field(ge=0, le=6)]
	start_time: Annotated[str, Field(pattern=HHMM_PATTERN)] = Field(alias="startTime")
	end_time: Annotated[str, Field(pattern=HHMM_PATTERN)] = Field(alias="endTime")
	area: NonEmpty

	model_config = {"populate_by_name": True}


class ProposalCreateRequest(BaseModel):
	proposer_id: UserId = Field(alias="proposerId")
	partner_id: UserId = Field(alias="partnerId")
	message: Optional[Annotated[str, Field(max_length=500)]] = None

	model_config = {"populate_by_name": True}


class ProposalAcceptRequest(BaseModel):
	user_id: UserId = Field(validation_alias=AliasChoices("accepterId", "userId", "user_id"))
	place: NonEmpty
	starts_at: NonEmpty = Field(alias="startsAt")

	model_config = {"populate_by_name": True}


class ProposalRejectRequest(BaseModel):
	user_id: UserId = Field(validation_alias=AliasChoices("rejecterId", "userId", "user_id"))

	model_config = {"populate_by_name": True}


class CheckinRequest(BaseModel):
	user_id: UserId = Field(alias="userId")
	code: Annotated[str, Field(min_length=4, max_length=4)]

	model_config = {"populate_by_name": True}


class NoShowRequest(BaseModel):
	reporter_id: UserId = Field(alias="reporterId")
	target_user_id: UserId = Field(alias="targetUserId")
	reason: NonEmpty

	model_config = {"populate_by_name": True}


class ReviewRequest(BaseModel):
	reviewer_id: UserId = Field(alias="reviewerId")
	reviewee_id: UserId = Field(alias="revieweeId")
	comment: Annotated[str, Field(max_length=1000)] = ""
	score_delta: Annotated[int, Field(ge=MIN_REVIEW_DELTA, le=MAX_REVIEW_DELTA)] = Field(default=1, alias="scoreDelta")

	model_config = {"populate_by_name": True}


class ReportRequest(BaseModel):
	reporter_id: UserId = Field(alias="reporterId")
	target_user_id: UserId = Field(alias="targetUserId")
	reason: NonEmpty
	evidence: Optional[Annotated[str, Field(max_length=2000)]] = None

	model_config = {"populate_by_name": True}


class ResolveReportRequest(BaseModel):
	sanction: Optional[SanctionLevel] = None
	trust_delta: Annotated[int, Field(ge=MIN_RESOLVE_TRUST_DELTA, le=MAX_RESOLVE_TRUST_DELTA)] = Field(
		default=DEFAULT_RESOLVE_TRUST_DELTA,
		alias="trustDelta",
	)

	model_config = {"populate_by_name": True}


class ManualSanctionRequest(BaseModel):
	level: SanctionLevel
	reason: NonEmpty


# --- responses --------------------------------------------------------------


class _FromDomain(BaseModel):
	model_config = {"from_attributes": True}


class UserOut(_FromDomain):
	id: str
	email: str
	nickname: str
	provider: str
	phone_verified: bool
	bio: Optional[str] = None
	region: Optional[str] = None
	trust_score: int
	blocked: bool
	created_at: datetime


class SlotOut(_FromDomain):
	id: str
	user_id: str
	weekday: int
	start_time: str
	end_time: str
	area: str


class ProfileOut(BaseModel):
	user: UserOut
	interests: List[str]
	availability: List[SlotOut]


class InterestsOut(BaseModel):
	user_id: str
	interests: List[str]


class RestrictionOut(_FromDomain):
	user_id: str
	exists: bool
	restricted: bool
	reason: Optional[str] = None
	level: Optional[str] = None
	until: Optional[datetime] = None


class ScoreBreakdownOut(_FromDomain):
	overlap_interests: int
	interest_overlap_ratio: float
	region_match: bool
	availability_overlap_minutes: int
	availability_overlap_ratio: float
	trust_normalized: float


class CandidateOut(BaseModel):
	id: str
	nickname: str
	region: Optional[str] = None
	trust_score: int
	interests: List[str]


class SuggestionOut(BaseModel):
	candidate: CandidateOut
	score: float
	breakdown: ScoreBreakdownOut


class ProposalOut(_FromDomain):
	id: str
	proposer_id: str
	partner_id: str
	message: Optional[str] = None
	status: ProposalStatus
	created_at: datetime


class AppointmentOut(_FromDomain):
	id: str
	proposal_id: str
	user_a_id: str
	user_b_id: str
	place: str
	starts_at: datetime
	checkin_code: str
	status: AppointmentStatus
	created_at: datetime


class AcceptOut(BaseModel):
	proposal: ProposalOut
	appointment: AppointmentOut


class CheckOut(_FromDomain):
	id: str
	appointment_id: str
	user_id: str
	method: str
	created_at: datetime


class AppointmentDetailOut(AppointmentOut):
	checks: List[CheckOut] = Field(default_factory=list)


class CheckinOut(BaseModel):
	check: CheckOut
	appointment_status: AppointmentStatus
	check_count: int
	completed: bool


class SanctionOut(_FromDomain):
	id: str
	user_id: str
	level: SanctionLevel
	reason: str
	created_at: datetime
	end_at: Optional[datetime] = None


class NoShowOut(BaseModel):
	appointment_status: AppointmentStatus
	sanction: SanctionOut
	strikes_in_90d: int


class ReviewOut(_FromDomain):
	id: str
	appointment_id: str
	reviewer_id: str
	reviewee_id: str
	comment: str
	score_delta: int
	created_at: datetime


class ReportOut(_FromDomain):
	id: str
	appointment_id: str
	reporter_id: str
	target_user_id: str
	reason: str
	evidence: Optional[str] = None
	status: ReportStatus
	created_at: datetime


class ResolveReportOut(BaseModel):
	report: ReportOut
	sanction: Optional[SanctionOut] = None
	trust_score: int


class OkResponse(BaseModel):
	ok: bool = True
