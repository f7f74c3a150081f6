"""Appointment check-in, no-show, review and report endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from coffeechat.domain.appointments import AppointmentService
from coffeechat.domain.container import get_appointments
from coffeechat.domain.schemas import (
	AppointmentDetailOut,
	AppointmentOut,
	CheckinOut,
	CheckinRequest,
	CheckOut,
	NoShowOut,
	NoShowRequest,
	ReportOut,
	ReportRequest,
	ReviewOut,
	ReviewRequest,
	SanctionOut,
)

router = APIRouter(prefix="/appointments")


@router.get("/{appointment_id}", response_model=AppointmentDetailOut)
async def get_appointment(
	appointment_id: str,
	appointments: AppointmentService = Depends(get_appointments),
) -> AppointmentDetailOut:
	detail = await appointments.get(appointment_id)
	base = AppointmentOut.model_validate(detail.appointment)
	return AppointmentDetailOut(
		**base.model_dump(),
		checks=[CheckOut.model_validate(check) for check in detail.checks],
	)


@router.post("/{appointment_id}/checkin-code", response_model=CheckinOut)
async def checkin_with_code(
	appointment_id: str,
	payload: CheckinRequest,
	appointments: AppointmentService = Depends(get_appointments),
) -> CheckinOut:
	result = await appointments.checkin(appointment_id, payload.user_id, payload.code)
	return CheckinOut(
		check=CheckOut.model_validate(result.check),
		appointment_status=result.appointment.status,
		check_count=result.check_count,
		completed=result.completed_now,
	)


@router.post("/{appointment_id}/no-show", response_model=NoShowOut)
async def report_no_show(
	appointment_id: str,
	payload: NoShowRequest,
	appointments: AppointmentService = Depends(get_appointments),
) -> NoShowOut:
	result = await appointments.report_no_show(appointment_id, payload.reporter_id, payload.target_user_id, payload.reason)
	return NoShowOut(
		appointment_status=result.appointment.status,
		sanction=SanctionOut.model_validate(result.sanction),
		strikes_in_90d=result.strikes_in_90d,
	)


@router.post("/{appointment_id}/review", response_model=ReviewOut)
async def review(
	appointment_id: str,
	payload: ReviewRequest,
	appointments: AppointmentService = Depends(get_appointments),
) -> ReviewOut:
	created = await appointments.review(
		appointment_id,
		payload.reviewer_id,
		payload.reviewee_id,
		payload.comment,
		payload.score_delta,
	)
	return ReviewOut.model_validate(created)


@router.post("/{appointment_id}/report", response_model=ReportOut)
async def report(
	appointment_id: str,
	payload: ReportRequest,
	appointments: AppointmentService = Depends(get_appointments),
) -> ReportOut:
	created = await appointments.report(
		appointment_id,
		payload.reporter_id,
		payload.target_user_id,
		payload.reason,
		payload.evidence,
	)
	return ReportOut.model_validate(created)
