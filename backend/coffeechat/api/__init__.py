"""FastAPI routers for the CoffeeChat API."""

from __future__ import annotations

from fastapi import APIRouter

from coffeechat.api import admin, appointments, identity, matches, ops

router = APIRouter()

router.include_router(identity.router, tags=["identity"])
router.include_router(matches.router, tags=["matching"])
router.include_router(appointments.router, tags=["appointments"])
router.include_router(admin.router, tags=["admin"])
router.include_router(ops.router)

__all__ = ["router"]
