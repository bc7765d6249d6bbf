from tests.helpers import auth_headers, create_product, create_tenant_user, login


def _customer(client, headers, name: str) -> dict:
    email = name.lower().replace(" ", ".") + "@example.com"
    response = client.post("/api/customers", headers=headers, json={"name": name, "email": email})
    assert response.status_code == 201
    return response.json()


def test_records_of_another_tenant_are_not_found(client, db_session):
    tenant_a, user_a = create_tenant_user(db_session, suffix="iso-a", role="ADMIN")
    _tenant_b, user_b = create_tenant_user(db_session, suffix="iso-b", role="ADMIN")
    headers_a = auth_headers(login(client, user_a.username))
    headers_b = auth_headers(login(client, user_b.username))

    product = create_product(db_session, tenant_a, sku="ISO-1", quantity=5)
    customer = _customer(client, headers_a, "Only In A")
    sale = client.post(
        "/api/transactions",
        headers=headers_a,
        json={"items": [{"product_id": str(product.id), "quantity": 1}], "payment_method": "cash"},
    ).json()

    assert client.get(f"/api/products/{product.id}", headers=headers_b).status_code == 404
    assert client.get(f"/api/customers/{customer['id']}", headers=headers_b).status_code == 404
    assert client.get(f"/api/transactions/{sale['id']}", headers=headers_b).status_code == 404
    assert client.post(f"/api/transactions/{sale['id']}/void", headers=headers_b).status_code == 404
    assert client.get(f"/api/users/{user_a.id}", headers=headers_b).status_code == 404

    assert client.get("/api/products", headers=headers_b).json()["total"] == 0
    assert client.get("/api/customers", headers=headers_b).json()["total"] == 0
    assert client.get("/api/transactions", headers=headers_b).json()["total"] == 0


def test_sale_cannot_reference_another_tenants_product(client, db_session):
    tenant_a, _user_a = create_tenant_user(db_session, suffix="iso-sale-a", role="ADMIN")
    _tenant_b, user_b = create_tenant_user(db_session, suffix="iso-sale-b", role="ADMIN")
    product = create_product(db_session, tenant_a, sku="ISO-2", quantity=5)

    response = client.post(
        "/api/transactions",
        headers=auth_headers(login(client, user_b.username)),
        json={"items": [{"product_id": str(product.id), "quantity": 1}], "payment_method": "cash"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "PRODUCT_NOT_FOUND"


def test_explicit_tenant_requires_superadmin(client, db_session):
    tenant_a, _user_a = create_tenant_user(db_session, suffix="iso-cross-a", role="ADMIN")
    _tenant_b, user_b = create_tenant_user(db_session, suffix="iso-cross-b", role="ADMIN")
    create_product(db_session, tenant_a, sku="ISO-3")

    response = client.get(
        "/api/products",
        headers=auth_headers(login(client, user_b.username)),
        params={"tenant_id": str(tenant_a.id)},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "CROSS_TENANT_ACCESS_DENIED"


def test_superadmin_can_target_any_tenant(client, db_session):
    tenant_a, _user_a = create_tenant_user(db_session, suffix="iso-super-a", role="ADMIN")
    _home, admin = create_tenant_user(db_session, suffix="iso-super", role="SUPERADMIN")
    create_product(db_session, tenant_a, sku="ISO-4")
    headers = auth_headers(login(client, admin.username))

    scoped = client.get("/api/products", headers=headers, params={"tenant_id": str(tenant_a.id)})
    own = client.get("/api/products", headers=headers)

    assert scoped.status_code == 200
    assert [row["sku"] for row in scoped.json()["rows"]] == ["ISO-4"]
    assert own.json()["total"] == 0


def test_demoted_superadmin_loses_cross_tenant_access(client, db_session):
    tenant_a, _user_a = create_tenant_user(db_session, suffix="iso-demote-a", role="ADMIN")
    _home, admin = create_tenant_user(db_session, suffix="iso-demote", role="SUPERADMIN")
    headers = auth_headers(login(client, admin.username))

    admin.role = "ADMIN"
    db_session.commit()
    response = client.get("/api/products", headers=headers, params={"tenant_id": str(tenant_a.id)})

    assert response.status_code == 403
    assert response.json()["code"] == "CROSS_TENANT_ACCESS_DENIED"
