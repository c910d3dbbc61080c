from conftest import make_token

from commandx import auth
from commandx.models import User
from commandx.webhook_security import compute_twilio_signature, constant_time_compare


def test_missing_token_is_401(client):
    response = client.get("/customers")
    assert response.status_code in (401, 403)


def test_garbage_token_is_401(client):
    response = client.get("/customers", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_wrong_secret_is_401(client, admin_user):
    from jose import jwt

    token = jwt.encode(
        {"sub": admin_user.auth_uid, "email": admin_user.email, "aud": "authenticated"},
        "some-other-secret",
        algorithm="HS256",
    )
    response = client.get("/customers", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_expired_token_is_401(client, admin_user):
    token = make_token(admin_user.auth_uid, admin_user.email, expires_in=-60)
    response = client.get("/customers", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.headers.get("X-Token-Expired") == "true"


def test_first_sign_in_creates_user_without_roles(client, db):
    token = make_token("brand-new-uid", "new@example.com")
    response = client.get("/customers", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403

    user = db.query(User).filter(User.auth_uid == "brand-new-uid").first()
    assert user is not None
    assert user.email == "new@example.com"


def test_sign_in_with_new_auth_id_migrates_existing_email(client, db, admin_user):
    token = make_token("linked-google-uid", admin_user.email)
    response = client.get("/customers", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200

    db.expire_all()
    assert db.query(User).filter(User.email == admin_user.email).one().auth_uid == "linked-google-uid"


def test_personnel_role_cannot_reach_staff_routes(client, worker_headers):
    response = client.get("/customers", headers=worker_headers)
    assert response.status_code == 403


def test_manager_is_staff_but_not_admin(client, manager_headers):
    assert client.get("/customers", headers=manager_headers).status_code == 200
    assert client.get("/audit-logs", headers=manager_headers).status_code == 403


def test_missing_secret_is_500(client, admin_headers, monkeypatch):
    monkeypatch.setattr(auth, "SUPABASE_JWT_SECRET", None)
    response = client.get("/customers", headers=admin_headers)
    assert response.status_code == 500


def test_twilio_signature_matches_reference_algorithm():
    # Sorted params appended to the URL, HMAC-SHA1 with the auth token
    params = {"From": "+15551234567", "Body": "hi"}
    first = compute_twilio_signature("token", "https://api.example.com/hook", params)
    second = compute_twilio_signature(
        "token", "https://api.example.com/hook", {"Body": "hi", "From": "+15551234567"}
    )
    assert first == second
    assert first != compute_twilio_signature("other", "https://api.example.com/hook", params)


def test_constant_time_compare_rejects_empty():
    assert not constant_time_compare("", "")
    assert constant_time_compare("abc", "abc")
