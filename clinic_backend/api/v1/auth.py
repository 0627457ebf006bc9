"""
Authentication endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clinic_backend.core.deps import get_db, get_current_session
from clinic_backend.models.access_token import AccessToken
from clinic_backend.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    TokenResponse,
    VerifyMfaRequest,
)
from clinic_backend.schemas.staff import UserOut
from clinic_backend.services import auth_service
from clinic_backend.services.sms_service import SmsSender, get_sms_sender

router = APIRouter()


# Plain def: the SMS call blocks, so FastAPI runs this in its threadpool
@router.post("/staff/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
):
    """
    First login step

    Checks email and password, rejects inactive accounts, then sends a
    six-digit code to the phone on file. Accounts on the MFA exemption list
    receive their token here instead.
    """
    result = auth_service.start_login(db, sms, login_data.email, login_data.password)

    if not result.mfa_required:
        return LoginResponse(
            message="Login successful",
            user_id=result.user.id,
            mfa_required=False,
            token=result.token,
            token_type="bearer",
            user=UserOut.model_validate(result.user),
        )

    return LoginResponse(message="MFA code sent to your phone", user_id=result.user.id)


@router.post("/staff/verify-mfa", response_model=TokenResponse)
async def verify_mfa(
    data: VerifyMfaRequest,
    db: Session = Depends(get_db),
):
    """Second login step: exchange user_id + code for a bearer token"""
    result = auth_service.complete_login(db, data.user_id, data.code)
    return TokenResponse(token=result.token, user=UserOut.model_validate(result.user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    session: AccessToken = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Revoke the bearer token used for this request"""
    auth_service.logout(db, session)
    return MessageResponse(message="Logged out successfully")
