from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from coffeechat.domain import container
from coffeechat.domain.models import AvailabilitySlot, Sanction, SanctionLevel, User, utcnow
from coffeechat.domain.store import InMemoryRecordStore, new_id
from coffeechat.main import create_app
from coffeechat.settings import Settings

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def store() -> InMemoryRecordStore:
	return InMemoryRecordStore()


@pytest.fixture
def test_settings() -> Settings:
	return Settings(
		store_backend="memory",
		admin_api_key=ADMIN_KEY,
		environment="test",
		obs_enabled=False,
		obs_metrics_public=False,
	)


@pytest.fixture
def app(store, test_settings):
	application = create_app(test_settings, store=store)
	try:
		yield application
	finally:
		container.configure()


@pytest_asyncio.fixture
async def api_client(app):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
	return {"X-Admin-Api-Key": ADMIN_KEY}


@pytest.fixture
def make_user(store):
	"""Create a user directly in the store with optional profile data."""

	async def _make(
		nickname: str,
		*,
		region: Optional[str] = None,
		interests: Sequence[str] = (),
		slots: Iterable[tuple[int, str, str]] = (),
		trust: Optional[int] = None,
		blocked: bool = False,
	) -> User:
		async with store.transaction() as session:
			user = await session.upsert_user_by_email(f"{nickname}@coffeechat.dev", nickname, "google")
			user.region = region
			user.blocked = blocked
			user = await session.save_user(user)
			if interests:
				await session.replace_interests(user.id, list(interests))
			for weekday, start, end in slots:
				await session.add_slot(
					AvailabilitySlot(id=new_id(), user_id=user.id, weekday=weekday, start_time=start, end_time=end, area="Gangnam")
				)
			if trust is not None:
				await session.adjust_trust(user.id, trust - user.trust_score)
			return await session.get_user(user.id)

	return _make


@pytest.fixture
def add_sanction(store):
	"""Insert a sanction with explicit timestamps, bypassing the escalation engine."""

	async def _add(
		user_id: str,
		level: SanctionLevel,
		*,
		reason: str = "manual",
		created_at: Optional[datetime] = None,
		end_at: Optional[datetime] = None,
		expired: bool = False,
	) -> Sanction:
		created = created_at or utcnow()
		if expired:
			end_at = utcnow() - timedelta(seconds=1)
		elif end_at is None:
			end_at = level.end_at(created)
		async with store.transaction() as session:
			return await session.insert_sanction(
				Sanction(id=new_id(), user_id=user_id, level=level, reason=reason, created_at=created, end_at=end_at)
			)

	return _add
