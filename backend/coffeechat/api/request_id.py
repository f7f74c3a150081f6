"""Request id lookup for handlers and error responses."""

from __future__ import annotations

from fastapi import Request

from coffeechat.obs import logging as obs_logging


def get_request_id(request: Request, default: str = "unknown") -> str:
	"""Return the id the observability middleware attached, else the logging context value."""
	rid = getattr(request.state, "request_id", None)
	if rid:
		return str(rid)
	return obs_logging.current_request_id() or default
