"""Suggestions and the proposal lifecycle."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from coffeechat.domain.container import get_proposals, get_ranker
from coffeechat.domain.proposals import ProposalService
from coffeechat.domain.ranking import SuggestionRanker
from coffeechat.domain.schemas import (
	AcceptOut,
	AppointmentOut,
	CandidateOut,
	ProposalAcceptRequest,
	ProposalCreateRequest,
	ProposalOut,
	ProposalRejectRequest,
	ScoreBreakdownOut,
	SuggestionOut,
)

router = APIRouter(prefix="/matches")


@router.get("/suggestions/{user_id}", response_model=List[SuggestionOut])
async def suggestions(user_id: str, ranker: SuggestionRanker = Depends(get_ranker)) -> List[SuggestionOut]:
	ranked = await ranker.suggest(user_id)
	return [
		SuggestionOut(
			candidate=CandidateOut(
				id=item.candidate.user.id,
				nickname=item.candidate.user.nickname,
				region=item.candidate.user.region,
				trust_score=item.candidate.user.trust_score,
				interests=item.candidate.interests,
			),
			score=item.score,
			breakdown=ScoreBreakdownOut.model_validate(item.breakdown),
		)
		for item in ranked
	]


@router.get("/proposals/{user_id}", response_model=List[ProposalOut])
async def list_proposals(user_id: str, proposals: ProposalService = Depends(get_proposals)) -> List[ProposalOut]:
	return [ProposalOut.model_validate(item) for item in await proposals.list_for(user_id)]


@router.post("/proposals", response_model=ProposalOut)
async def create_proposal(
	payload: ProposalCreateRequest,
	proposals: ProposalService = Depends(get_proposals),
) -> ProposalOut:
	proposal = await proposals.create(payload.proposer_id, payload.partner_id, payload.message)
	return ProposalOut.model_validate(proposal)


@router.post("/{proposal_id}/accept", response_model=AcceptOut)
async def accept_proposal(
	proposal_id: str,
	payload: ProposalAcceptRequest,
	proposals: ProposalService = Depends(get_proposals),
) -> AcceptOut:
	accepted = await proposals.accept(proposal_id, payload.user_id, payload.place, payload.starts_at)
	return AcceptOut(
		proposal=ProposalOut.model_validate(accepted.proposal),
		appointment=AppointmentOut.model_validate(accepted.appointment),
	)


@router.post("/{proposal_id}/reject", response_model=ProposalOut)
async def reject_proposal(
	proposal_id: str,
	payload: ProposalRejectRequest,
	proposals: ProposalService = Depends(get_proposals),
) -> ProposalOut:
	return ProposalOut.model_validate(await proposals.reject(proposal_id, payload.user_id))
