"""Accounts, profiles, interests, availability and restriction status."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from coffeechat.domain.container import get_identity, get_restrictions
from coffeechat.domain.identity import IdentityService
from coffeechat.domain.restrictions import RestrictionEvaluator
from coffeechat.domain.schemas import (
	AuthRequest,
	InterestsOut,
	InterestsReplaceRequest,
	OkResponse,
	PhoneVerifyRequest,
	ProfileOut,
	ProfileUpdateRequest,
	RestrictionOut,
	SlotCreateRequest,
	SlotOut,
	UserOut,
)

router = APIRouter()


@router.post("/auth/{provider}", response_model=UserOut)
async def authenticate(
	provider: str,
	payload: AuthRequest,
	identity: IdentityService = Depends(get_identity),
) -> UserOut:
	user = await identity.authenticate(provider, payload.email, payload.nickname)
	return UserOut.model_validate(user)


@router.post("/auth/phone/verify", response_model=UserOut)
async def verify_phone(
	payload: PhoneVerifyRequest,
	identity: IdentityService = Depends(get_identity),
) -> UserOut:
	return UserOut.model_validate(await identity.verify_phone(payload.user_id))


@router.get("/me/{user_id}", response_model=ProfileOut)
async def get_profile(user_id: str, identity: IdentityService = Depends(get_identity)) -> ProfileOut:
	profile = await identity.get_profile(user_id)
	return ProfileOut(
		user=UserOut.model_validate(profile.user),
		interests=profile.interests,
		availability=[SlotOut.model_validate(slot) for slot in profile.availability],
	)


@router.put("/me/profile", response_model=UserOut)
async def update_profile(
	payload: ProfileUpdateRequest,
	identity: IdentityService = Depends(get_identity),
) -> UserOut:
	user = await identity.update_profile(payload.user_id, payload.nickname, payload.bio, payload.region)
	return UserOut.model_validate(user)


@router.put("/me/interests", response_model=InterestsOut)
async def replace_interests(
	payload: InterestsReplaceRequest,
	identity: IdentityService = Depends(get_identity),
) -> InterestsOut:
	names = await identity.replace_interests(payload.user_id, payload.interests)
	return InterestsOut(user_id=payload.user_id, interests=names)


@router.get("/me/{user_id}/availability", response_model=List[SlotOut])
async def list_availability(user_id: str, identity: IdentityService = Depends(get_identity)) -> List[SlotOut]:
	return [SlotOut.model_validate(slot) for slot in await identity.list_slots(user_id)]


@router.post("/me/availability", response_model=SlotOut)
async def add_availability(
	payload: SlotCreateRequest,
	identity: IdentityService = Depends(get_identity),
) -> SlotOut:
	slot = await identity.add_slot(payload.user_id, payload.weekday, payload.start_time, payload.end_time, payload.area)
	return SlotOut.model_validate(slot)


@router.delete("/me/availability/{slot_id}", response_model=OkResponse)
async def delete_availability(
	slot_id: str,
	user_id: str = Query(..., alias="userId", min_length=1),
	identity: IdentityService = Depends(get_identity),
) -> OkResponse:
	await identity.delete_slot(slot_id, user_id)
	return OkResponse()


@router.get("/users/{user_id}/restriction", response_model=RestrictionOut)
async def restriction_status(
	user_id: str,
	restrictions: RestrictionEvaluator = Depends(get_restrictions),
) -> RestrictionOut:
	return RestrictionOut.model_validate(await restrictions.is_restricted(user_id))
