"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from coffeechat.api.admin_auth import ADMIN_KEY_HEADER, require_admin
from coffeechat.obs import health

router = APIRouter(prefix="", tags=["ops"])


async def require_metrics_access(
	request: Request,
	x_admin_api_key: Optional[str] = Header(default=None, alias=ADMIN_KEY_HEADER),
) -> None:
	if getattr(request.app.state, "metrics_public", False):
		return
	await require_admin(request, x_admin_api_key)


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return await health.liveness()


@router.get("/health/ready")
async def health_ready() -> Response:
	status_code, payload = await health.readiness()
	return JSONResponse(content=payload, status_code=status_code)


@router.get("/metrics", dependencies=[Depends(require_metrics_access)])
async def metrics_endpoint() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
