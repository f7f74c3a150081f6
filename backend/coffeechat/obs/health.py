"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from coffeechat.domain.container import get_store
from coffeechat.obs import metrics

LOGGER = logging.getLogger(__name__)


async def liveness() -> Dict[str, str]:
	return {"status": "ok"}


async def _store_status(timeout: float = 0.3) -> Dict[str, Any]:
	store = get_store()
	start = perf_counter()
	try:
		await asyncio.wait_for(store.ping(), timeout=timeout)
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.mark_store(False)
		LOGGER.warning("Record store readiness check failed", exc_info=True)
		return {"ok": False, "backend": store.backend, "error": str(exc)}
	latency = perf_counter() - start
	metrics.mark_store(True)
	return {"ok": True, "backend": store.backend, "latency_ms": round(latency * 1000, 2)}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	store = await _store_status()
	status_code = 200 if store["ok"] else 503
	return status_code, {"status": "ok" if store["ok"] else "degraded", "store": store}
