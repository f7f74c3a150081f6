"""Lightweight service container shared by the API routers."""

from __future__ import annotations

from typing import Optional

import asyncpg

from coffeechat.domain.appointments import AppointmentService
from coffeechat.domain.identity import IdentityService
from coffeechat.domain.proposals import ProposalService
from coffeechat.domain.ranking import SuggestionRanker
from coffeechat.domain.restrictions import RestrictionEvaluator
from coffeechat.domain.sanctions import SanctionService
from coffeechat.domain.store import InMemoryRecordStore, RecordStore
from coffeechat.infra.postgres_store import PostgresRecordStore

_store: RecordStore = InMemoryRecordStore()
_restrictions = RestrictionEvaluator(_store)
_ranker = SuggestionRanker(_store)
_proposals = ProposalService(_store)
_appointments = AppointmentService(_store)
_sanctions = SanctionService(_store)
_identity = IdentityService(_store)


def configure(*, store: Optional[RecordStore] = None) -> None:
    """Rebind every service to ``store`` (a fresh in-memory store when omitted)."""
    global _store, _restrictions, _ranker, _proposals, _appointments, _sanctions, _identity
    _store = store if store is not None else InMemoryRecordStore()
    _restrictions = RestrictionEvaluator(_store)
    _ranker = SuggestionRanker(_store)
    _proposals = ProposalService(_store)
    _appointments = AppointmentService(_store)
    _sanctions = SanctionService(_store)
    _identity = IdentityService(_store)


def configure_postgres(pool: asyncpg.Pool) -> None:
    configure(store=PostgresRecordStore(pool))


def get_store() -> RecordStore:
    return _store


def get_restrictions() -> RestrictionEvaluator:
    return _restrictions


def get_ranker() -> SuggestionRanker:
    return _ranker


def get_proposals() -> ProposalService:
    return _proposals


def get_appointments() -> AppointmentService:
    return _appointments


def get_sanctions() -> SanctionService:
    return _sanctions


def get_identity() -> IdentityService:
    return _identity
