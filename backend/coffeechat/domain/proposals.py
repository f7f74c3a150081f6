"""Proposal lifecycle: PENDING -> ACCEPTED | REJECTED, with the appointment spawned on accept."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from coffeechat.domain.errors import BadRequest, Conflict, Forbidden, NotFound, SelfReferenceError
from coffeechat.domain.models import (
    CHECKIN_CODE_MAX,
    CHECKIN_CODE_MIN,
    Appointment,
    MatchProposal,
    ProposalStatus,
    utcnow,
)
from coffeechat.domain.restrictions import ensure_not_restricted
from coffeechat.domain.store import RecordStore, StoreSession, new_id
from coffeechat.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AcceptedProposal:
    proposal: MatchProposal
    appointment: Appointment


def generate_checkin_code() -> str:
    return str(CHECKIN_CODE_MIN + secrets.randbelow(CHECKIN_CODE_MAX - CHECKIN_CODE_MIN + 1))


def parse_starts_at(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except (AttributeError, ValueError):
            raise BadRequest("invalid_starts_at") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def _load_pending(session: StoreSession, proposal_id: str) -> MatchProposal:
    proposal = await session.get_proposal(proposal_id, for_update=True)
    if proposal is None:
        raise NotFound("proposal_not_found")
    if proposal.status is not ProposalStatus.PENDING:
        raise Conflict("proposal_not_pending")
    return proposal


class ProposalService:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, proposer_id: str, partner_id: str, message: Optional[str] = None) -> MatchProposal:
        if proposer_id == partner_id:
            raise SelfReferenceError("self_proposal")
        now = utcnow()
        async with self._store.transaction() as session:
            for user_id in (proposer_id, partner_id):
                if await session.get_user(user_id) is None:
                    raise NotFound("user_not_found")
            await ensure_not_restricted(session, proposer_id, action="propose", now=now)
            await ensure_not_restricted(session, partner_id, action="propose_partner", now=now)
            if await session.find_pending_between(proposer_id, partner_id):
                raise Conflict("pending_proposal_exists")
            proposal = await session.insert_proposal(
                MatchProposal(id=new_id(), proposer_id=proposer_id, partner_id=partner_id, message=message, created_at=now)
            )
        metrics.inc_proposal_created()
        logger.info("proposal created", extra={"proposal_id": proposal.id, "proposer_id": proposer_id, "partner_id": partner_id})
        return proposal

    async def accept(self, proposal_id: str, accepter_id: str, place: str, starts_at: str | datetime) -> AcceptedProposal:
        async with self._store.transaction() as session:
            proposal = await _load_pending(session, proposal_id)
            if accepter_id != proposal.partner_id:
                raise Forbidden("only_partner_can_accept")
            await ensure_not_restricted(session, accepter_id, action="accept")
            when = parse_starts_at(starts_at)
            proposal = await session.set_proposal_status(proposal.id, ProposalStatus.ACCEPTED)
            appointment = await session.insert_appointment(
                Appointment(
                    id=new_id(),
                    proposal_id=proposal.id,
                    user_a_id=proposal.proposer_id,
                    user_b_id=proposal.partner_id,
                    place=place,
                    starts_at=when,
                    checkin_code=generate_checkin_code(),
                )
            )
        metrics.inc_proposal_transition(ProposalStatus.ACCEPTED.value)
        logger.info("proposal accepted", extra={"proposal_id": proposal.id, "appointment_id": appointment.id})
        return AcceptedProposal(proposal=proposal, appointment=appointment)

    async def reject(self, proposal_id: str, rejecter_id: str) -> MatchProposal:
        async with self._store.transaction() as session:
            proposal = await _load_pending(session, proposal_id)
            if rejecter_id != proposal.partner_id:
                raise Forbidden("only_partner_can_reject")
            proposal = await session.set_proposal_status(proposal.id, ProposalStatus.REJECTED)
        metrics.inc_proposal_transition(ProposalStatus.REJECTED.value)
        logger.info("proposal rejected", extra={"proposal_id": proposal.id})
        return proposal

    async def list_for(self, user_id: str) -> List[MatchProposal]:
        async with self._store.transaction() as session:
            return list(await session.list_proposals_for(user_id))
