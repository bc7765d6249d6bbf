from app.stockdesk.db.models import AuditEvent
from tests.helpers import auth_headers, create_tenant_user, login


def test_login_success_with_email(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="auth-ok", must_change_password=True)

    response = client.post("/api/auth/login", json={"email": user.email, "password": "Pass1234!"})

    assert response.status_code == 200
    body = response.json()
    assert body["access_token"]
    assert body["token_type"] == "bearer"
    assert body["must_change_password"] is True


def test_login_invalid_password(client, db_session):
    create_tenant_user(db_session, suffix="auth-bad")

    response = client.post("/api/auth/login", json={"username_or_email": "user-auth-bad", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"
    failures = db_session.query(AuditEvent).filter(AuditEvent.result == "failure").all()
    assert len(failures) == 1


def test_login_blocked_inactive(client, db_session):
    create_tenant_user(db_session, suffix="auth-off", status="suspended", is_active=False)

    response = client.post("/api/auth/login", json={"username_or_email": "user-auth-off", "password": "Pass1234!"})

    assert response.status_code == 403
    assert response.json()["code"] == "USER_INACTIVE"


def test_login_requires_identifier(client):
    response = client.post("/api/auth/login", json={"password": "Pass1234!"})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_oauth2_token_form(client, db_session):
    create_tenant_user(db_session, suffix="auth-form")

    response = client.post(
        "/api/auth/token",
        content="username=user-auth-form&password=Pass1234%21",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 200
    assert response.json()["access_token"]


def test_me_returns_role_permissions(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="auth-me", role="CASHIER")
    token = login(client, user.username)

    response = client.get("/api/auth/me", headers=auth_headers(token))

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == user.username
    assert body["role"] == "CASHIER"
    assert "PROCESS_SALES" in body["permissions"]
    assert "MANAGE_USERS" not in body["permissions"]
    assert body["last_login_at"] is not None


def test_missing_or_invalid_token_is_rejected(client):
    assert client.get("/api/auth/me").status_code == 401

    response = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_deactivated_user_token_stops_working(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="auth-late")
    token = login(client, user.username)

    user.status = "inactive"
    user.is_active = False
    db_session.commit()

    response = client.get("/api/auth/me", headers=auth_headers(token))
    assert response.status_code == 403
    assert response.json()["code"] == "USER_INACTIVE"
