"""
First-admin bootstrap endpoint
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from clinic_backend.core.constants import ADMIN_KEY_HEADER
from clinic_backend.core.deps import get_db
from clinic_backend.schemas.staff import AdminSummary, BootstrapAdminRequest, BootstrapAdminResponse
from clinic_backend.services.credential_service import bootstrap_admin

router = APIRouter()


@router.post("/bootstrap/admin", response_model=BootstrapAdminResponse, status_code=201)
async def bootstrap_admin_endpoint(
    data: BootstrapAdminRequest,
    admin_key: Optional[str] = Header(None, alias=ADMIN_KEY_HEADER),
    db: Session = Depends(get_db),
):
    """
    Create the very first admin account

    Requires the shared secret (ADMIN_BOOTSTRAP_KEY) in the X-Admin-Key header
    and only works while no admin exists.
    """
    admin = bootstrap_admin(db, admin_key, data)
    return BootstrapAdminResponse(admin=AdminSummary.model_validate(admin))
