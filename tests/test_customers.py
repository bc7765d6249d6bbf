from tests.helpers import auth_headers, create_product, create_tenant_user, login


def _create(client, headers, **payload):
    body = {"name": "Ada Lovelace", "email": "ada@example.com", **payload}
    return client.post("/api/customers", headers=headers, json=body)


def test_create_customer_and_duplicate_email(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="cust-create", role="CASHIER")
    headers = auth_headers(login(client, user.username))

    created = _create(client, headers, type="VIP", phone="555-0100")
    assert created.status_code == 201
    body = created.json()
    assert body["type"] == "VIP"
    assert body["total_spent"] == "0.00"
    assert body["visits"] == 0

    duplicate = _create(client, headers, name="Someone Else", email="ADA@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "EMAIL_ALREADY_EXISTS"

    invalid = _create(client, headers, email="not-an-email")
    assert invalid.status_code == 422


def test_list_customers_search_and_type(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="cust-list", role="CASHIER")
    headers = auth_headers(login(client, user.username))
    _create(client, headers, name="Zoe Regular", email="zoe@example.com", type="Regular")
    _create(client, headers, name="Adam New", email="adam@example.com")
    _create(client, headers, name="Vera Vip", email="vera@example.com", type="VIP", phone="555-7777")

    everything = client.get("/api/customers", headers=headers, params={"type": "All"}).json()
    assert [row["name"] for row in everything["rows"]] == ["Adam New", "Vera Vip", "Zoe Regular"]

    vip = client.get("/api/customers", headers=headers, params={"type": "VIP"}).json()
    assert [row["name"] for row in vip["rows"]] == ["Vera Vip"]

    by_phone = client.get("/api/customers", headers=headers, params={"search": "7777"}).json()
    assert by_phone["total"] == 1

    bad_type = client.get("/api/customers", headers=headers, params={"type": "Gold"})
    assert bad_type.status_code == 422


def test_customer_detail_update_and_purchases(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="cust-detail", role="CASHIER")
    product = create_product(db_session, tenant, sku="CUST-1", price=4.0, quantity=10)
    headers = auth_headers(login(client, user.username))
    customer = _create(client, headers).json()

    sale = client.post(
        "/api/transactions",
        headers=headers,
        json={
            "items": [{"product_id": str(product.id), "quantity": 2}],
            "payment_method": "mobile",
            "customer_id": customer["id"],
        },
    ).json()

    detail = client.get(f"/api/customers/{customer['id']}", headers=headers).json()
    assert detail["visits"] == 1
    assert detail["total_spent"] == sale["total"]
    assert [row["reference"] for row in detail["purchase_history"]] == [sale["reference"]]
    assert detail["purchase_history"][0]["items"] == 1

    purchases = client.get(f"/api/customers/{customer['id']}/purchases", headers=headers).json()
    assert purchases["total"] == 1
    assert purchases["rows"][0]["amount"] == sale["total"]

    updated = client.put(f"/api/customers/{customer['id']}", headers=headers, json={"type": "Regular", "notes": "Likes tea"})
    assert updated.json()["type"] == "Regular"
    assert updated.json()["notes"] == "Likes tea"


def test_delete_customer_keeps_sales_as_guest(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="cust-delete", role="CASHIER")
    product = create_product(db_session, tenant, sku="DEL-1", price=3.0, quantity=10)
    headers = auth_headers(login(client, user.username))
    customer = _create(client, headers).json()
    sale = client.post(
        "/api/transactions",
        headers=headers,
        json={"items": [{"product_id": str(product.id), "quantity": 1}], "payment_method": "cash", "customer_id": customer["id"]},
    ).json()

    deleted = client.delete(f"/api/customers/{customer['id']}", headers=headers)

    assert deleted.json() == {"id": customer["id"], "deleted": True, "detached_transactions": 1}
    assert client.get(f"/api/customers/{customer['id']}", headers=headers).status_code == 404
    transaction = client.get(f"/api/transactions/{sale['id']}", headers=headers).json()
    assert transaction["customer"] == "Guest"
    assert transaction["customer_id"] is None


def test_warehouse_cannot_see_customers(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="cust-wh", role="WAREHOUSE")
    headers = auth_headers(login(client, user.username))

    response = client.get("/api/customers", headers=headers)

    assert response.status_code == 403
