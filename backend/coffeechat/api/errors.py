"""Global error handlers rendering every failure as ``{"error": {...}, "request_id": ...}``."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coffeechat.api.request_id import get_request_id
from coffeechat.domain.errors import EngineError

STATUS_BY_CODE: Dict[str, int] = {
	"BAD_REQUEST": status.HTTP_400_BAD_REQUEST,
	"UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
	"FORBIDDEN": status.HTTP_403_FORBIDDEN,
	"USER_RESTRICTED": status.HTTP_403_FORBIDDEN,
	"NOT_FOUND": status.HTTP_404_NOT_FOUND,
	"CONFLICT": status.HTTP_409_CONFLICT,
	"SERVER_MISCONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
}

_CODE_BY_STATUS: Dict[int, str] = {
	status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
	status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
	status.HTTP_403_FORBIDDEN: "FORBIDDEN",
	status.HTTP_404_NOT_FOUND: "NOT_FOUND",
	status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
	status.HTTP_409_CONFLICT: "CONFLICT",
}


def error_body(request: Request, code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
	error: Dict[str, Any] = {"code": code, "message": message}
	if details is not None:
		error["details"] = jsonable_encoder(details)
	return {"error": error, "request_id": get_request_id(request)}


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(EngineError)
	async def engine_exc_handler(request: Request, exc: EngineError):  # type: ignore[override]
		status_code = STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
		payload = error_body(request, exc.code, exc.reason, exc.details)
		return JSONResponse(status_code=status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		code = _CODE_BY_STATUS.get(exc.status_code, "HTTP_ERROR")
		payload = error_body(request, code, str(exc.detail))
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = error_body(request, "BAD_REQUEST", "validation_error", exc.errors())
		return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)
