"""
Main API router
"""
from fastapi import APIRouter

from clinic_backend.api.v1 import (
    health,
    version,
    bootstrap,
    auth,
    staff,
    invitations,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(bootstrap.router, tags=["bootstrap"])
api_router.include_router(auth.router, tags=["authentication"])
api_router.include_router(staff.router, tags=["staff"])
api_router.include_router(invitations.router, tags=["invitations"])
