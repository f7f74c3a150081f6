"""Demo data: two accounts with interests and availability.

Run through ``scripts/seed_demo.py`` with ``POSTGRES_URL`` pointing at the
target database. Re-running is safe: accounts are upserted by email and slots
that already exist are skipped.
"""

from __future__ import annotations

import logging

from coffeechat.domain.errors import Conflict
from coffeechat.domain.identity import IdentityService
from coffeechat.infra import postgres
from coffeechat.infra.postgres_store import PostgresRecordStore
from coffeechat.infra.schema import apply_migrations
from coffeechat.obs.logging import configure_logging

logger = logging.getLogger("coffeechat.seed")

DEMO_USERS = [
	{
		"email": "alice@coffeechat.dev",
		"nickname": "alice",
		"provider": "google",
		"region": "Gangnam",
		"interests": ["frontend", "startup"],
		"slots": [(2, "19:00", "21:00", "Gangnam")],
	},
	{
		"email": "bob@coffeechat.dev",
		"nickname": "bob",
		"provider": "kakao",
		"region": "Gangnam",
		"interests": ["backend", "ai"],
		"slots": [(2, "19:00", "22:00", "Gangnam")],
	},
]


async def seed(identity: IdentityService) -> dict[str, str]:
	ids: dict[str, str] = {}
	for spec in DEMO_USERS:
		user = await identity.authenticate(spec["provider"], spec["email"], spec["nickname"])
		await identity.verify_phone(user.id)
		await identity.update_profile(user.id, spec["nickname"], region=spec["region"])
		await identity.replace_interests(user.id, spec["interests"])
		for weekday, start, end, area in spec["slots"]:
			try:
				await identity.add_slot(user.id, weekday, start, end, area)
			except Conflict:
				logger.info("slot already present", extra={"user_id": user.id, "weekday": weekday})
		ids[spec["nickname"]] = user.id
	return ids


async def main() -> None:
	configure_logging()
	pool = await postgres.init_pool()
	try:
		await apply_migrations(pool)
		ids = await seed(IdentityService(PostgresRecordStore(pool)))
		logger.info("demo users seeded", extra=ids)
		print(ids)
	finally:
		await postgres.close_pool()
