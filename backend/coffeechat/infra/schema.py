"""Apply the bundled SQL migrations in filename order."""

from __future__ import annotations

import logging
from importlib import resources
from typing import List, Tuple

import asyncpg

logger = logging.getLogger(__name__)


def _migration_files() -> List[Tuple[str, str, str]]:
	root = resources.files("coffeechat.infra").joinpath("migrations")
	entries = sorted((item for item in root.iterdir() if item.name.endswith(".sql")), key=lambda item: item.name)
	return [(item.name.split("_", 1)[0], item.name, item.read_text(encoding="utf-8")) for item in entries]


async def apply_migrations(pool: asyncpg.Pool) -> List[str]:
	"""Run every migration not yet recorded in ``schema_migrations``; returns the applied versions."""
	applied_now: List[str] = []
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS schema_migrations (
				version TEXT PRIMARY KEY,
				applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
			)
			"""
		)
		applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
		for version, name, sql in _migration_files():
			if version in applied:
				continue
			async with conn.transaction():
				await conn.execute(sql)
				await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", version)
			logger.info("migration applied", extra={"migration": name})
			applied_now.append(version)
	return applied_now
