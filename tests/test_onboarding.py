import asyncio
from datetime import datetime, timedelta

from commandx.domain.onboarding.service import OnboardingService
from commandx.models import EmergencyContact, Personnel, User, Vendor
from commandx.models_messaging import AdminNotification
from commandx.models_onboarding import (
    PersonnelOnboardingToken,
    PersonnelRegistrationInvite,
    VendorOnboardingToken,
)


def token_from(link: str) -> str:
    return link.rstrip("/").rsplit("/", 1)[-1]


def invite(client, headers, email="new.hire@example.com"):
    response = client.post(
        "/onboarding/registration-invites",
        json={"email": email, "first_name": "Nina"},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


def test_invite_emails_a_registration_link(client, admin_headers, sent_emails):
    body = invite(client, admin_headers, email="New.Hire@Example.com")

    assert body["email_sent"] is True
    assert "/register/" in body["link"]
    assert sent_emails[0]["to"] == "new.hire@example.com"
    assert "Registration" in sent_emails[0]["subject"]


def test_invite_still_created_when_email_fails(client, db, admin_headers):
    # No RESEND_API_KEY in tests, so delivery fails
    body = invite(client, admin_headers)
    assert body["email_sent"] is False
    assert db.query(PersonnelRegistrationInvite).count() == 1


def test_registration_flow(client, db, admin_headers, sent_emails):
    token = token_from(invite(client, admin_headers)["link"])

    response = client.get(f"/onboarding/public/registration/{token}")
    assert response.status_code == 200
    assert response.json()["email"] == "new.hire@example.com"
    assert response.json()["first_name"] == "Nina"

    response = client.post(
        f"/onboarding/public/registration/{token}",
        json={
            "first_name": "Nina",
            "last_name": "Novak",
            "phone": "555-444-3333",
            "emergency_contacts": [{"name": "Ned Novak", "relationship": "brother"}],
            "languages": ["English", "Polish"],
        },
    )
    assert response.status_code == 200
    personnel_id = response.json()["personnel_id"]

    personnel = db.query(Personnel).filter(Personnel.id == personnel_id).one()
    assert personnel.status == "inactive"
    assert personnel.onboarding_status == "pending_review"
    assert personnel.phone == "+15554443333"
    assert personnel.personnel_number == f"P-{personnel_id:05d}"
    assert db.query(EmergencyContact).filter_by(personnel_id=personnel_id).count() == 1
    assert db.query(AdminNotification).filter_by(notification_type="personnel_registration").count() == 1

    # Used up
    assert client.get(f"/onboarding/public/registration/{token}").status_code == 409


def test_expired_and_unknown_tokens(client, db, admin_user):
    db.add(
        PersonnelRegistrationInvite(
            token="expired-token",
            email="late@example.com",
            expires_at=datetime.utcnow() - timedelta(minutes=1),
            invited_by=admin_user.id,
        )
    )
    db.commit()

    assert client.get("/onboarding/public/registration/expired-token").status_code == 410
    assert client.get("/onboarding/public/registration/no-such-token").status_code == 404


def test_revoked_invite_cannot_be_used(client, db, admin_headers):
    token = token_from(invite(client, admin_headers)["link"])
    invite_id = db.query(PersonnelRegistrationInvite).one().id

    assert client.delete(f"/onboarding/registration-invites/{invite_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/onboarding/public/registration/{token}").status_code == 409
    assert client.delete(f"/onboarding/registration-invites/{invite_id}", headers=admin_headers).status_code == 409


def test_approving_registration_sends_onboarding_link(client, db, admin_headers, sent_emails):
    personnel = Personnel(
        first_name="Nina",
        last_name="Novak",
        email="nina@example.com",
        status="inactive",
        onboarding_status="pending_review",
    )
    db.add(personnel)
    db.commit()

    response = client.post(
        f"/onboarding/registrations/{personnel.id}/review",
        json={"action": "approve"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["action"] == "approved"

    db.expire_all()
    personnel = db.query(Personnel).filter(Personnel.id == personnel.id).one()
    assert personnel.status == "active"
    assert personnel.onboarding_status == "invited"
    assert db.query(PersonnelOnboardingToken).filter_by(personnel_id=personnel.id).count() == 1
    assert sent_emails[-1]["to"] == "nina@example.com"

    response = client.post(
        f"/onboarding/registrations/{personnel.id}/review",
        json={"action": "reject"},
        headers=admin_headers,
    )
    assert response.status_code == 409


def test_onboarding_link_completes_paperwork(client, db, admin_headers, worker, sent_emails):
    response = client.post(f"/onboarding/personnel/{worker.id}/link", headers=admin_headers)
    assert response.status_code == 200
    token = token_from(response.json()["link"])

    details = client.get(f"/onboarding/public/personnel/{token}").json()
    assert details["email"] == "worker@example.com"

    response = client.post(
        f"/onboarding/public/personnel/{token}",
        json={"city": "Springfield", "ssn_last_four": "9876", "certifications": [{"name": "OSHA 10"}]},
    )
    assert response.status_code == 200

    db.expire_all()
    personnel = db.query(Personnel).filter(Personnel.id == worker.id).one()
    assert personnel.onboarding_status == "completed"
    assert personnel.city == "Springfield"
    assert client.post(f"/onboarding/public/personnel/{token}", json={}).status_code == 409


def test_resend_link_gives_same_answer_for_unknown_email(client, db, worker, sent_emails):
    unknown = client.post("/onboarding/public/resend-link", json={"email": "ghost@example.com"})
    known = client.post("/onboarding/public/resend-link", json={"email": "WORKER@example.com"})
    assert unknown.json() == known.json()
    assert [email["to"] for email in sent_emails] == ["worker@example.com"]

    types = {n.notification_type for n in db.query(AdminNotification).all()}
    assert types == {"onboarding_resend_failed", "onboarding_link_resent"}


def test_resend_link_cooldown(client, db, worker, sent_emails):
    client.post("/onboarding/public/resend-link", json={"email": "worker@example.com"})
    client.post("/onboarding/public/resend-link", json={"email": "worker@example.com"})
    assert len(sent_emails) == 1
    assert db.query(PersonnelOnboardingToken).count() == 1


def test_vendor_onboarding(client, db, admin_headers, vendor, sent_emails):
    response = client.post(f"/onboarding/vendors/{vendor.id}/invite", json={}, headers=admin_headers)
    assert response.status_code == 200
    token = token_from(response.json()["link"])
    assert sent_emails[0]["to"] == "sales@supply.example"

    assert client.get(f"/onboarding/public/vendor/{token}").json()["name"] == "Supply Co"

    response = client.post(f"/onboarding/public/vendor/{token}", json={"tax_id": "12-3456789"})
    assert response.status_code == 400

    response = client.post(
        f"/onboarding/public/vendor/{token}",
        json={"tax_id": "12-3456789", "w9_on_file": True, "agree_to_terms": True},
    )
    assert response.status_code == 200

    db.expire_all()
    vendor = db.query(Vendor).filter(Vendor.id == vendor.id).one()
    assert vendor.onboarding_status == "submitted"
    assert vendor.tax_id == "12-3456789"
    assert vendor.agreement_signed_at is not None
    assert db.query(VendorOnboardingToken).one().used_at is not None


def test_expiring_invite_reminders_sent_once(db, admin_user, sent_emails):
    now = datetime(2026, 3, 2, 12, 0)
    db.add_all(
        [
            PersonnelRegistrationInvite(
                email="soon@example.com", expires_at=now + timedelta(hours=6), invited_by=admin_user.id
            ),
            PersonnelRegistrationInvite(
                email="later@example.com", expires_at=now + timedelta(days=3), invited_by=admin_user.id
            ),
        ]
    )
    db.commit()

    service = OnboardingService(db)
    result = asyncio.run(service.send_expiring_invite_reminders(now=now))
    assert result == {"invites_expiring": 1, "reminders_sent": 1}
    assert sent_emails[0]["to"] == db.query(User).filter(User.id == admin_user.id).one().email

    result = asyncio.run(service.send_expiring_invite_reminders(now=now + timedelta(hours=1)))
    assert result == {"invites_expiring": 0, "reminders_sent": 0}


def test_public_endpoints_need_no_login_but_staff_ones_do(client, worker_headers):
    assert client.get("/onboarding/registration-invites", headers=worker_headers).status_code == 403
    assert client.get("/onboarding/public/vendor/whatever").status_code == 404
