"""
Health check endpoint
"""
from fastapi import APIRouter
from clinic_backend.core.constants import SERVICE_NAME

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status.
    """
    return {
        "status": "ok",
        "service": SERVICE_NAME,
    }
