"""
Tests for the invitation lifecycle
"""
from datetime import timedelta

import pytest
from fastapi import status

from clinic_backend.core.errors import InvalidOrExpiredToken
from clinic_backend.models import AuditLog, Invitation, InvitationStatus, Role, User
from clinic_backend.schemas.invitation import AcceptInvitationRequest
from clinic_backend.services import invitation_service
from clinic_backend.utils.datetime_utils import now_utc

STAFF_PASSWORD = "Passw0rd!"
NEW_HIRE = "newhire@clinic.test"


@pytest.fixture
def invite_body():
    return {
        "email": NEW_HIRE,
        "role": "staff",
        "first_name": "Nia",
        "last_name": "Hire",
        "department": "Pediatrics",
        "job_title": "Nurse",
        "start_date": "2026-11-02",
    }


@pytest.fixture
def accept_body():
    return {
        "password": STAFF_PASSWORD,
        "password_confirmation": STAFF_PASSWORD,
        "phone": "+15551234567",
    }


def _invite(client, headers, body):
    return client.post("/api/v1/admin/staff/invite", headers=headers, json=body)


def _accept(client, token, body):
    return client.post(f"/api/v1/invitation/accept/{token}", json=body)


def test_invite_and_redeem_scenario(client, db, admin_headers, invite_body, accept_body, sms_outbox):
    created = _invite(client, admin_headers, invite_body)
    assert created.status_code == status.HTTP_201_CREATED
    token = created.json()["token"]
    invitation_id = created.json()["invitation_id"]
    assert created.json()["expires_at"].endswith("Z")

    accepted = _accept(client, token, accept_body)
    assert accepted.status_code == status.HTTP_201_CREATED
    user_id = accepted.json()["user_id"]

    detail = client.get(f"/api/v1/admin/invitations/{invitation_id}", headers=admin_headers)
    assert detail.status_code == status.HTTP_200_OK
    assert detail.json()["status"] == InvitationStatus.ACCEPTED.value
    assert detail.json()["accepted_user_id"] == user_id
    assert "token" not in detail.json()

    again = _accept(client, token, accept_body)
    assert again.status_code == status.HTTP_400_BAD_REQUEST

    user = db.query(User).filter(User.id == user_id).one()
    assert user.email == NEW_HIRE
    assert user.role == Role.STAFF.value
    assert user.is_active
    assert user.phone == "+15551234567"
    assert user.department == "Pediatrics"
    profile = user.staff_profile
    assert (profile.first_name, profile.last_name, profile.job_title) == ("Nia", "Hire", "Nurse")
    assert str(profile.start_date) == "2026-11-02"

    # Welcome message is best-effort and goes to the new phone
    assert sms_outbox.messages[-1][0] == "+15551234567"


def test_new_staff_can_log_in(client, admin_headers, invite_body, accept_body, sms_outbox):
    token = _invite(client, admin_headers, invite_body).json()["token"]
    _accept(client, token, accept_body)

    response = client.post("/api/v1/staff/login", json={"email": NEW_HIRE, "password": STAFF_PASSWORD})
    assert response.status_code == status.HTTP_200_OK
    assert sms_outbox.messages[-1][0] == "+15551234567"


def test_send_alias_path(client, admin_headers, invite_body):
    response = client.post("/api/v1/invitations/send", headers=admin_headers, json=invite_body)
    assert response.status_code == status.HTTP_201_CREATED


def test_token_stored_hashed(client, db, admin_headers, invite_body):
    token = _invite(client, admin_headers, invite_body).json()["token"]

    invitation = db.query(Invitation).one()
    assert invitation.token_hash != token
    assert token not in invitation.token_hash


def test_default_job_title_and_expiry(client, db, admin_user, admin_headers, invite_body):
    body = dict(invite_body)
    del body["job_title"]
    _invite(client, admin_headers, body)

    invitation = db.query(Invitation).one()
    assert invitation.job_title == "Staff"
    assert invitation.invited_by == admin_user.id
    assert invitation.status == InvitationStatus.PENDING.value


def test_non_admin_cannot_invite(client, staff_headers, invite_body):
    response = _invite(client, staff_headers, invite_body)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_invite_requires_token(client, invite_body):
    response = _invite(client, {}, invite_body)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_duplicate_pending_invitation(client, admin_headers, invite_body):
    assert _invite(client, admin_headers, invite_body).status_code == 201

    duplicate = dict(invite_body, email=NEW_HIRE.upper())
    response = _invite(client, admin_headers, duplicate)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_code"] == "DUPLICATE_INVITATION"


def test_invite_existing_user_conflicts(client, admin_headers, staff_user, invite_body):
    response = _invite(client, admin_headers, dict(invite_body, email=staff_user.email))
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.parametrize(
    "override",
    [
        {"email": "not-an-email"},
        {"email": "nurse@clinic..test"},
        {"email": "nurse@-clinic.test"},
        {"email": "nurse@clinic.test-"},
        {"email": "a b@c.d"},
        {"role": "patient"},
        {"role": "superuser"},
        {"first_name": ""},
        {"department": None},
    ],
)
def test_invite_validation(client, admin_headers, invite_body, override):
    response = _invite(client, admin_headers, dict(invite_body, **override))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_expired_invitation_cannot_be_redeemed(client, db, admin_headers, invite_body, accept_body):
    token = _invite(client, admin_headers, invite_body).json()["token"]
    db.query(Invitation).update({Invitation.expires_at: now_utc() - timedelta(minutes=1)})
    db.commit()

    response = _accept(client, token, accept_body)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(User).filter(User.email == NEW_HIRE).count() == 0


def test_expired_invitation_is_superseded(client, db, admin_headers, invite_body):
    first = _invite(client, admin_headers, invite_body).json()
    db.query(Invitation).update({Invitation.expires_at: now_utc() - timedelta(minutes=1)})
    db.commit()

    second = _invite(client, admin_headers, invite_body)
    assert second.status_code == status.HTTP_201_CREATED

    old = client.get(f"/api/v1/admin/invitations/{first['invitation_id']}", headers=admin_headers).json()
    assert old["status"] == InvitationStatus.REVOKED.value


def test_unknown_token(client, accept_body):
    response = _accept(client, "made-up-token", accept_body)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_token_checked_before_form(client):
    response = _accept(client, "made-up-token", {})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.parametrize(
    "override, field",
    [
        ({"password": "short", "password_confirmation": "short"}, "password"),
        ({"password_confirmation": "Different1!"}, "password"),
        ({"phone": "call me"}, "phone"),
        ({"phone": None}, "phone"),
    ],
)
def test_redeem_validation_keeps_invitation_pending(
    client, db, admin_headers, invite_body, accept_body, override, field
):
    token = _invite(client, admin_headers, invite_body).json()["token"]

    response = _accept(client, token, dict(accept_body, **override))

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert field in response.json()["errors"]
    assert db.query(Invitation).one().status == InvitationStatus.PENDING.value
    assert db.query(User).filter(User.email == NEW_HIRE).count() == 0


def test_redeem_is_atomic(client, db, admin_headers, invite_body, monkeypatch):
    """A failure after the user row is written leaves nothing behind"""
    token = _invite(client, admin_headers, invite_body).json()["token"]

    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(invitation_service, "log_audit", broken_audit)
    data = AcceptInvitationRequest(
        password=STAFF_PASSWORD, password_confirmation=STAFF_PASSWORD, phone="+15551234567"
    )

    with pytest.raises(RuntimeError):
        invitation_service.redeem_invitation(db, token, data)

    assert db.query(User).filter(User.email == NEW_HIRE).count() == 0
    assert db.query(Invitation).one().status == InvitationStatus.PENDING.value


def test_redeem_twice_at_service_level(client, db, admin_headers, invite_body):
    token = _invite(client, admin_headers, invite_body).json()["token"]
    data = AcceptInvitationRequest(
        password=STAFF_PASSWORD, password_confirmation=STAFF_PASSWORD, phone="+15551234567"
    )

    invitation_service.redeem_invitation(db, token, data)
    with pytest.raises(InvalidOrExpiredToken):
        invitation_service.redeem_invitation(db, token, data)


def test_welcome_sms_failure_does_not_fail_redeem(client, admin_headers, invite_body, accept_body, sms_outbox):
    token = _invite(client, admin_headers, invite_body).json()["token"]
    sms_outbox.fail = True

    response = _accept(client, token, accept_body)
    assert response.status_code == status.HTTP_201_CREATED


def test_list_and_filter_invitations(client, admin_headers, invite_body):
    _invite(client, admin_headers, invite_body)
    _invite(client, admin_headers, dict(invite_body, email="second@clinic.test"))

    everything = client.get("/api/v1/admin/invitations", headers=admin_headers)
    assert everything.status_code == status.HTTP_200_OK
    assert {i["email"] for i in everything.json()} == {NEW_HIRE, "second@clinic.test"}
    assert all(i["is_expired"] is False for i in everything.json())

    by_email = client.get("/api/v1/admin/invitations", params={"email": "SECOND@clinic.test"}, headers=admin_headers)
    assert [i["email"] for i in by_email.json()] == ["second@clinic.test"]

    accepted = client.get("/api/v1/admin/invitations", params={"status": "accepted"}, headers=admin_headers)
    assert accepted.json() == []


def test_invitation_admin_views_require_admin(client, staff_headers):
    assert client.get("/api/v1/admin/invitations", headers=staff_headers).status_code == 403


def test_get_unknown_invitation(client, admin_headers):
    response = client.get("/api/v1/admin/invitations/does-not-exist", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_revoke_invitation(client, db, admin_headers, invite_body, accept_body):
    created = _invite(client, admin_headers, invite_body).json()

    revoked = client.post(f"/api/v1/admin/invitations/{created['invitation_id']}/revoke", headers=admin_headers)
    assert revoked.status_code == status.HTTP_200_OK
    assert revoked.json()["status"] == InvitationStatus.REVOKED.value

    assert _accept(client, created["token"], accept_body).status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(AuditLog).filter(AuditLog.action == "INVITATION_REVOKE").count() == 1

    # Revoked is terminal
    again = client.post(f"/api/v1/admin/invitations/{created['invitation_id']}/revoke", headers=admin_headers)
    assert again.status_code == status.HTTP_409_CONFLICT

    # and frees the email for a new invitation
    assert _invite(client, admin_headers, invite_body).status_code == status.HTTP_201_CREATED


def test_malformed_email_leaves_no_invitation(client, db, admin_headers, invite_body):
    response = _invite(client, admin_headers, dict(invite_body, email="nurse@clinic..test"))

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert db.query(Invitation).count() == 0


def test_invited_email_is_normalized(client, db, admin_headers, invite_body):
    _invite(client, admin_headers, dict(invite_body, email="  NewHire@Clinic.Test "))
    assert db.query(Invitation).one().email == NEW_HIRE


def test_start_date_defaults_to_utc_today(client, db, admin_headers, invite_body):
    body = dict(invite_body)
    del body["start_date"]
    _invite(client, admin_headers, body)

    assert db.query(Invitation).one().start_date == now_utc().date()
