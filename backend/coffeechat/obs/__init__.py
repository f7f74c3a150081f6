"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from coffeechat.obs import logging as obs_logging
from coffeechat.obs import middleware
from coffeechat.settings import Settings


def init(app: FastAPI, config: Settings) -> None:
	if config.obs_enabled:
		obs_logging.configure_logging()
	middleware.install(app, enabled=config.obs_enabled)


__all__ = ["init"]
