"""Operator endpoints: report queue, report resolution and manual sanctions."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from coffeechat.api.admin_auth import require_admin
from coffeechat.domain.container import get_sanctions
from coffeechat.domain.sanctions import SanctionService
from coffeechat.domain.schemas import (
	ManualSanctionRequest,
	ReportOut,
	ResolveReportOut,
	ResolveReportRequest,
	SanctionOut,
)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/reports", response_model=List[ReportOut])
async def open_reports(sanctions: SanctionService = Depends(get_sanctions)) -> List[ReportOut]:
	return [ReportOut.model_validate(item) for item in await sanctions.list_open_reports()]


@router.post("/reports/{report_id}/resolve", response_model=ResolveReportOut)
async def resolve_report(
	report_id: str,
	payload: ResolveReportRequest | None = None,
	sanctions: SanctionService = Depends(get_sanctions),
) -> ResolveReportOut:
	payload = payload or ResolveReportRequest()
	resolved = await sanctions.resolve_report(report_id, payload.sanction, payload.trust_delta)
	return ResolveReportOut(
		report=ReportOut.model_validate(resolved.report),
		sanction=SanctionOut.model_validate(resolved.sanction) if resolved.sanction else None,
		trust_score=resolved.trust_score,
	)


@router.post("/users/{user_id}/sanction", response_model=SanctionOut)
async def manual_sanction(
	user_id: str,
	payload: ManualSanctionRequest,
	sanctions: SanctionService = Depends(get_sanctions),
) -> SanctionOut:
	return SanctionOut.model_validate(await sanctions.manual_sanction(user_id, payload.level, payload.reason))


@router.get("/users/{user_id}/sanctions", response_model=List[SanctionOut])
async def list_sanctions(user_id: str, sanctions: SanctionService = Depends(get_sanctions)) -> List[SanctionOut]:
	return [SanctionOut.model_validate(item) for item in await sanctions.list_sanctions(user_id)]
