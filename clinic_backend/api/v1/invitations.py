"""
Invitation endpoints - admin side and public redemption
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic_backend.core.deps import get_db, require_admin
from clinic_backend.models.invitation import InvitationStatus
from clinic_backend.models.user import User
from clinic_backend.schemas.invitation import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    InvitationCreate,
    InvitationCreated,
    InvitationOut,
)
from clinic_backend.services import invitation_service
from clinic_backend.services.sms_service import SmsSender, get_sms_sender

router = APIRouter()


@router.post("/admin/staff/invite", response_model=InvitationCreated, status_code=201)
@router.post("/invitations/send", response_model=InvitationCreated, status_code=201)
async def send_invitation(
    data: InvitationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Invite a new staff member (admin-only)

    The token in the response is the only copy; deliver it to the invitee.
    """
    invitation, token = invitation_service.create_invitation(db, current_user, data)
    return InvitationCreated(invitation_id=invitation.id, token=token, expires_at=invitation.expires_at)


@router.get("/admin/invitations", response_model=List[InvitationOut])
async def list_invitations_endpoint(
    status: Optional[InvitationStatus] = Query(None),
    email: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """List invitations, newest first (admin-only)"""
    return invitation_service.list_invitations(db, status=status, email=email, skip=skip, limit=limit)


@router.get("/admin/invitations/{invitation_id}", response_model=InvitationOut)
async def get_invitation_endpoint(
    invitation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return invitation_service.get_invitation(db, invitation_id)


@router.post("/admin/invitations/{invitation_id}/revoke", response_model=InvitationOut)
async def revoke_invitation_endpoint(
    invitation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Revoke a pending invitation (admin-only)"""
    return invitation_service.revoke_invitation(db, current_user, invitation_id)


@router.post("/invitation/accept/{token}", response_model=AcceptInvitationResponse, status_code=201)
def accept_invitation(
    token: str,
    data: AcceptInvitationRequest,
    db: Session = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
):
    """Redeem an invitation token into an active staff account"""
    user = invitation_service.redeem_invitation(db, token, data, sms=sms)
    return AcceptInvitationResponse(user_id=user.id)
