"""
Staff endpoints - own profile and admin staff management
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic_backend.core.deps import get_db, get_current_user, require_admin
from clinic_backend.models.user import Role, User, UserStatus
from clinic_backend.schemas.auth import MessageResponse
from clinic_backend.schemas.staff import StaffActionOut, StaffListOut, StaffSelfUpdate, StaffUpdate, UserOut
from clinic_backend.services import credential_service

router = APIRouter()


@router.get("/staff/me", response_model=UserOut)
async def get_me_endpoint(current_user: User = Depends(get_current_user)):
    """Current authenticated user with staff profile"""
    return current_user


@router.put("/staff/me", response_model=StaffActionOut)
async def update_me_endpoint(
    data: StaffSelfUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update own name, phone and profile fields. Role and status stay admin-only."""
    user = credential_service.update_own_profile(db, current_user, data)
    return StaffActionOut(message="Profile updated successfully", staff=UserOut.model_validate(user))


@router.get("/admin/staff", response_model=StaffListOut)
async def list_staff_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status: Optional[UserStatus] = Query(None),
    role: Optional[Role] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """List staff members (admin-only). Patient accounts are never listed."""
    users, total = credential_service.list_staff(db, skip=skip, limit=limit, status=status, role=role)
    return StaffListOut(data=[UserOut.model_validate(u) for u in users], total=total)


@router.get("/admin/staff/{user_id}", response_model=UserOut)
async def get_staff_endpoint(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return credential_service.get_staff(db, user_id)


@router.put("/admin/staff/{user_id}", response_model=StaffActionOut)
async def update_staff_endpoint(
    user_id: str,
    data: StaffUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Update a staff member and their profile (admin-only)"""
    user = credential_service.update_staff(db, user_id, data, current_user)
    return StaffActionOut(message="Staff profile updated successfully", staff=UserOut.model_validate(user))


@router.post("/admin/staff/{user_id}/deactivate", response_model=StaffActionOut)
async def deactivate_staff_endpoint(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Deactivate a staff member (admin-only). The last active admin cannot be deactivated."""
    user = credential_service.set_status(db, user_id, UserStatus.INACTIVE, current_user)
    return StaffActionOut(message="Staff deactivated successfully", staff=UserOut.model_validate(user))


@router.post("/admin/staff/{user_id}/activate", response_model=StaffActionOut)
async def activate_staff_endpoint(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = credential_service.set_status(db, user_id, UserStatus.ACTIVE, current_user)
    return StaffActionOut(message="Staff activated successfully", staff=UserOut.model_validate(user))


@router.delete("/admin/staff/{user_id}", response_model=MessageResponse)
async def delete_staff_endpoint(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Delete a staff member (admin-only). The last admin cannot be deleted."""
    credential_service.delete_staff(db, user_id, current_user)
    return MessageResponse(message="Staff deleted successfully")
