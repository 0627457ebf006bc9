"""
Tests for the store-level guards that settle concurrent requests

Each test lets a competing write land after the service's own pre-check, the
way a parallel request would, and checks the constraint or conditional update
that decides the race.
"""
from datetime import timedelta

import pytest
from fastapi import status

from clinic_backend.core.errors import ConflictError, InvalidCode, InvalidOrExpiredToken
from clinic_backend.core.security import generate_token, hash_token
from clinic_backend.models import Invitation, InvitationStatus, MFACode, Role, User
from clinic_backend.schemas.invitation import AcceptInvitationRequest
from clinic_backend.services import credential_service, invitation_service, mfa_service
from clinic_backend.utils.datetime_utils import now_utc

NEW_HIRE = "newhire@clinic.test"
STAFF_PASSWORD = "Passw0rd!"

INVITE_BODY = {
    "email": NEW_HIRE,
    "role": "staff",
    "first_name": "Nia",
    "last_name": "Hire",
    "department": "Pediatrics",
}


def _accept_form():
    return AcceptInvitationRequest(
        password=STAFF_PASSWORD, password_confirmation=STAFF_PASSWORD, phone="+15551234567"
    )


def test_concurrent_invite_hits_pending_email_index(client, db, admin_user, admin_headers, monkeypatch):
    """A pending invitation written after the duplicate check is caught by the partial unique index"""
    real_generate_token = invitation_service.generate_token

    def generate_after_competing_invite(nbytes):
        db.add(
            Invitation(
                email=NEW_HIRE,
                token_hash=hash_token(generate_token(48)),
                invited_by=admin_user.id,
                role=Role.STAFF.value,
                expires_at=now_utc() + timedelta(days=7),
                status=InvitationStatus.PENDING.value,
                first_name="Other",
                last_name="Admin",
                job_title="Staff",
                department_unit="Pediatrics",
            )
        )
        db.flush()
        return real_generate_token(nbytes)

    monkeypatch.setattr(invitation_service, "generate_token", generate_after_competing_invite)

    response = client.post("/api/v1/admin/staff/invite", headers=admin_headers, json=INVITE_BODY)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_code"] == "DUPLICATE_INVITATION"


def test_concurrent_registration_hits_email_index(db, staff_user, monkeypatch):
    """A user written after the uniqueness pre-check is caught by the unique email index"""
    monkeypatch.setattr(credential_service, "get_user_by_email", lambda db, email: None)

    with pytest.raises(ConflictError):
        credential_service.create_user(db, email=staff_user.email, password=STAFF_PASSWORD)

    assert db.query(User).filter(User.email == staff_user.email).count() == 1


def test_code_consumed_by_concurrent_verify(db, staff_user, monkeypatch):
    """Only one of two correct submissions flips used; the other gets InvalidCode"""
    code = mfa_service.issue_code(db, staff_user)
    real_verify_code = mfa_service.verify_code

    def verify_then_lose_race(submitted, code_hash):
        matched = real_verify_code(submitted, code_hash)
        db.query(MFACode).update({MFACode.used: True}, synchronize_session=False)
        db.commit()
        return matched

    monkeypatch.setattr(mfa_service, "verify_code", verify_then_lose_race)

    with pytest.raises(InvalidCode):
        mfa_service.verify_submitted_code(db, staff_user.id, code)

    assert db.query(MFACode).one().used is True


def test_invitation_accepted_by_concurrent_redeem(client, db, admin_headers, monkeypatch):
    """Losing the pending -> accepted update rolls back the half-provisioned account"""
    token = client.post("/api/v1/admin/staff/invite", headers=admin_headers, json=INVITE_BODY).json()["token"]
    real_validate = invitation_service._validate_acceptance

    def validate_then_lose_race(data):
        cleaned = real_validate(data)
        db.query(Invitation).update(
            {Invitation.status: InvitationStatus.ACCEPTED.value}, synchronize_session=False
        )
        db.commit()
        return cleaned

    monkeypatch.setattr(invitation_service, "_validate_acceptance", validate_then_lose_race)

    with pytest.raises(InvalidOrExpiredToken):
        invitation_service.redeem_invitation(db, token, _accept_form())

    assert db.query(User).filter(User.email == NEW_HIRE).count() == 0
    assert db.query(Invitation).one().accepted_user_id is None
