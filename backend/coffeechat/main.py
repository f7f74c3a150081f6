"""FastAPI application factory for the CoffeeChat backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coffeechat.api import router as api_router
from coffeechat.api.admin_auth import AdminCredential
from coffeechat.api.errors import install_error_handlers
from coffeechat.domain import container
from coffeechat.domain.store import RecordStore
from coffeechat.infra import postgres
from coffeechat.infra.schema import apply_migrations
from coffeechat.obs import init as obs_init
from coffeechat.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"]


def _cors_origins(config: Settings) -> list[str]:
	origins = list(config.cors_allow_origins)
	if not origins and config.is_dev():
		origins = list(_DEV_ORIGINS)
	# Starlette disallows wildcard '*' with allow_credentials=True.
	return [origin for origin in origins if origin != "*"]


def create_app(config: Optional[Settings] = None, *, store: Optional[RecordStore] = None) -> FastAPI:
	config = config or default_settings

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		pool = None
		if store is None and config.store_backend == "postgres":
			pool = await postgres.init_pool(config.postgres_url)
			await apply_migrations(pool)
			container.configure_postgres(pool)
		elif store is None:
			container.configure()
		logger.info(
			"coffeechat started",
			extra={"store": container.get_store().backend, "environment": config.environment, "commit": config.git_commit},
		)
		try:
			yield
		finally:
			if pool is not None:
				await postgres.close_pool()

	if store is not None:
		# Injected stores are bound immediately so transports that skip lifespan still see them.
		container.configure(store=store)

	app = FastAPI(title="CoffeeChat API", lifespan=lifespan)
	app.state.admin_credential = AdminCredential(api_key=config.admin_api_key)
	app.state.metrics_public = config.obs_metrics_public
	if not config.admin_api_key:
		logger.warning("ADMIN_API_KEY is not set; admin routes will answer 503")

	install_error_handlers(app)
	origins = _cors_origins(config)
	if origins:
		app.add_middleware(
			CORSMiddleware,
			allow_origins=origins,
			allow_credentials=True,
			allow_methods=["*"],
			allow_headers=["*"],
		)
	obs_init(app, config)
	app.include_router(api_router)
	return app


app = create_app()


def run(config: Optional[Settings] = None) -> None:
	"""Serve the module-level app with uvicorn."""
	application = app if config is None else create_app(config)
	config = config or default_settings
	uvicorn.run(application, host=config.api_host, port=config.api_port, log_config=None)


if __name__ == "__main__":
	run()
