from app.stockdesk.db.models import AuditEvent
from tests.helpers import auth_headers, create_tenant_user, login


def _admin_headers(client, db_session, suffix: str, role: str = "ADMIN"):
    tenant, user = create_tenant_user(db_session, suffix=suffix, role=role)
    return tenant, user, auth_headers(login(client, user.username))


def _new_user(client, headers, **payload):
    body = {"username": "newbie", "email": "newbie@example.com", "password": "Welcome123", **payload}
    return client.post("/api/users", headers=headers, json=body)


def test_admin_creates_and_lists_users(client, db_session):
    _tenant, admin, headers = _admin_headers(client, db_session, "users-admin")

    created = _new_user(client, headers, role="MANAGER", full_name="New Manager")
    assert created.status_code == 201
    body = created.json()
    assert body["role"] == "MANAGER"
    assert body["must_change_password"] is True
    assert "MANAGE_USERS" not in body["permissions"]

    listing = client.get("/api/users", headers=headers).json()
    assert listing["total"] == 1
    assert [row["username"] for row in listing["rows"]] == ["newbie"]
    assert admin.username not in {row["username"] for row in listing["rows"]}

    duplicate = _new_user(client, headers, email="other@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "USERNAME_ALREADY_EXISTS"

    weak = _new_user(client, headers, username="weakling", email="weak@example.com", password="short")
    assert weak.status_code == 400
    assert weak.json()["code"] == "PASSWORD_TOO_SHORT"


def test_new_user_can_log_in(client, db_session):
    _tenant, _admin, headers = _admin_headers(client, db_session, "users-login")
    _new_user(client, headers, role="CASHIER")

    token = login(client, "newbie", "Welcome123")
    me = client.get("/api/auth/me", headers=auth_headers(token)).json()
    assert me["role"] == "CASHIER"


def test_only_superadmin_assigns_superadmin(client, db_session):
    _tenant, _admin, headers = _admin_headers(client, db_session, "users-escalate")

    response = _new_user(client, headers, role="SUPERADMIN")

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_update_and_delete_user(client, db_session):
    tenant, admin, headers = _admin_headers(client, db_session, "users-update")
    _tenant, target = create_tenant_user(db_session, suffix="users-target", role="CASHIER", tenant=tenant)

    updated = client.put(f"/api/users/{target.id}", headers=headers, json={"role": "WAREHOUSE", "status": "suspended"})
    assert updated.status_code == 200
    assert updated.json()["role"] == "WAREHOUSE"
    assert updated.json()["is_active"] is False

    blocked = client.post("/api/auth/login", json={"username_or_email": target.username, "password": "Pass1234!"})
    assert blocked.status_code == 403

    self_delete = client.delete(f"/api/users/{admin.id}", headers=headers)
    assert self_delete.status_code == 400
    assert self_delete.json()["code"] == "CANNOT_DELETE_SELF"

    deleted = client.delete(f"/api/users/{target.id}", headers=headers)
    assert deleted.json() == {"id": str(target.id), "deleted": True}
    assert client.get(f"/api/users/{target.id}", headers=headers).status_code == 404
    assert db_session.query(AuditEvent).filter(AuditEvent.action == "user.delete").count() == 1


def test_manager_cannot_manage_users(client, db_session):
    _tenant, _user, headers = _admin_headers(client, db_session, "users-manager", role="MANAGER")

    response = client.get("/api/users", headers=headers)

    assert response.status_code == 403
    assert response.json()["details"] == {"permission": "MANAGE_USERS"}


def test_profile_update_ignores_role(client, db_session):
    _tenant, user, headers = _admin_headers(client, db_session, "users-profile", role="CASHIER")

    response = client.put(
        "/api/user/profile",
        headers=headers,
        json={"full_name": "Casey Cashier", "department": "Front", "role": "ADMIN"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["full_name"] == "Casey Cashier"
    assert body["department"] == "Front"
    assert body["role"] == "CASHIER"
    assert client.get("/api/user/profile", headers=headers).json()["department"] == "Front"


def test_change_password_flow(client, db_session):
    _tenant, user, headers = _admin_headers(client, db_session, "users-password", role="CASHIER")

    wrong = client.put(
        "/api/user/password",
        headers=headers,
        json={"current_password": "nope", "new_password": "Brandnew123"},
    )
    assert wrong.status_code == 400
    assert wrong.json()["code"] == "CURRENT_PASSWORD_INVALID"

    same = client.put(
        "/api/user/password",
        headers=headers,
        json={"current_password": "Pass1234!", "new_password": "Pass1234!"},
    )
    assert same.json()["code"] == "PASSWORD_MUST_DIFFER"

    letters_only = client.put(
        "/api/user/password",
        headers=headers,
        json={"current_password": "Pass1234!", "new_password": "onlyletters"},
    )
    assert letters_only.json()["code"] == "PASSWORD_COMPLEXITY"

    ok = client.put(
        "/api/user/password",
        headers=headers,
        json={"current_password": "Pass1234!", "new_password": "Brandnew123"},
    )
    assert ok.status_code == 200
    assert ok.json()["ok"] is True
    assert ok.json()["access_token"]
    assert login(client, user.username, "Brandnew123")
