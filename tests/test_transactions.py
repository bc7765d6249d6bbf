import uuid

from app.stockdesk.db.models import Customer, Product, StockMovement
from tests.helpers import auth_headers, configure_tenant, create_product, create_tenant_user, login


def _customer(db_session, tenant, **fields):
    customer = Customer(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        name=fields.pop("name", "Ada Buyer"),
        email=fields.pop("email", "ada@example.com"),
        **fields,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def _sale(client, headers, items, **extra):
    return client.post("/api/transactions", headers=headers, json={"items": items, "payment_method": "cash", **extra})


def test_create_sale_computes_totals_and_moves_stock(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-create", role="CASHIER")
    configure_tenant(db_session, tenant, tax_rate=10.0)
    coffee = create_product(db_session, tenant, sku="TX-1", price=10.0, quantity=20)
    mug = create_product(db_session, tenant, sku="TX-2", price=2.5, quantity=5)
    customer = _customer(db_session, tenant)
    headers = auth_headers(login(client, user.username))

    response = _sale(
        client,
        headers,
        [{"product_id": str(coffee.id), "quantity": 3}, {"product_id": str(mug.id), "quantity": 2}],
        discount="5",
        customer_id=str(customer.id),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["reference"].startswith("SALE-")
    assert body["subtotal"] == "35.00"
    assert body["discount"] == "5.00"
    assert body["tax"] == "3.00"
    assert body["total"] == "33.00"
    assert body["status"] == "Completed"
    assert body["customer"] == "Ada Buyer"
    assert body["items"] == 2
    assert [line["sku"] for line in body["line_items"]] == ["TX-1", "TX-2"]

    db_session.expire_all()
    assert db_session.get(Product, coffee.id).quantity == 17
    assert db_session.get(Product, mug.id).quantity == 3
    refreshed = db_session.get(Customer, customer.id)
    assert refreshed.visits == 1
    assert refreshed.total_spent == 33.0
    movements = db_session.query(StockMovement).filter(StockMovement.reference == body["reference"]).all()
    assert len(movements) == 2


def test_sale_rejects_insufficient_stock_without_side_effects(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-short", role="CASHIER")
    product = create_product(db_session, tenant, sku="SHORT-1", quantity=2)
    headers = auth_headers(login(client, user.username))

    response = _sale(
        client,
        headers,
        [{"product_id": str(product.id), "quantity": 1}, {"product_id": str(product.id), "quantity": 2}],
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    db_session.expire_all()
    assert db_session.get(Product, product.id).quantity == 2
    assert db_session.query(StockMovement).count() == 0


def test_sale_validation(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-valid", role="CASHIER")
    product = create_product(db_session, tenant, sku="VAL-1", price=1.0)
    headers = auth_headers(login(client, user.username))

    assert _sale(client, headers, []).status_code == 422
    bad_method = client.post(
        "/api/transactions",
        headers=headers,
        json={"items": [{"product_id": str(product.id), "quantity": 1}], "payment_method": "barter"},
    )
    assert bad_method.status_code == 422
    too_much_discount = _sale(client, headers, [{"product_id": str(product.id), "quantity": 1}], discount="5")
    assert too_much_discount.status_code == 422
    unknown = _sale(client, headers, [{"product_id": str(uuid.uuid4()), "quantity": 1}])
    assert unknown.status_code == 404


def test_warehouse_role_cannot_sell(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-wh", role="WAREHOUSE")
    product = create_product(db_session, tenant, sku="WH-1")
    headers = auth_headers(login(client, user.username))

    response = _sale(client, headers, [{"product_id": str(product.id), "quantity": 1}])

    assert response.status_code == 403
    assert response.json()["details"] == {"permission": "PROCESS_SALES"}


def test_void_restores_stock_and_refunds_drawer(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-void", role="CASHIER")
    configure_tenant(db_session, tenant, tax_rate=0.0)
    product = create_product(db_session, tenant, sku="VOID-1", price=20.0, quantity=10)
    customer = _customer(db_session, tenant, email="void@example.com")
    headers = auth_headers(login(client, user.username))
    client.post("/api/cash-drawer", headers=headers, json={"action": "open", "amount": "100"})

    sale = _sale(
        client,
        headers,
        [{"product_id": str(product.id), "quantity": 3}],
        customer_id=str(customer.id),
    ).json()
    voided = client.post(f"/api/transactions/{sale['id']}/void", headers=headers, json={"reason": "Customer changed mind"})

    assert voided.status_code == 200
    body = voided.json()
    assert body["status"] == "Voided"
    assert body["total"] == sale["total"] == "60.00"
    assert body["line_items"] == sale["line_items"]
    assert body["void_reason"] == "Customer changed mind"
    assert body["voided_at"] is not None

    db_session.expire_all()
    assert db_session.get(Product, product.id).quantity == 10
    assert db_session.get(Customer, customer.id).total_spent == 0.0
    restock = db_session.query(StockMovement).filter(StockMovement.reference == f"VOID-{sale['reference']}").one()
    assert restock.movement_type == "in"
    assert restock.quantity == 3

    drawer = client.get("/api/cash-drawer", headers=headers).json()["drawer_status"]
    assert drawer["cash_refunds"] == "60.00"
    assert drawer["expected_amount"] == "100.00"

    again = client.post(f"/api/transactions/{sale['id']}/void", headers=headers)
    assert again.status_code == 409
    assert again.json()["code"] == "TRANSACTION_ALREADY_VOIDED"


def test_list_and_filter_transactions(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="tx-list", role="CASHIER")
    product = create_product(db_session, tenant, sku="LIST-1", price=5.0, quantity=50)
    customer = _customer(db_session, tenant, name="Grace Regular", email="grace@example.com")
    headers = auth_headers(login(client, user.username))
    item = [{"product_id": str(product.id), "quantity": 1}]

    first = _sale(client, headers, item, customer_id=str(customer.id)).json()
    _sale(client, headers, item, payment_method="debit")
    third = _sale(client, headers, item, payment_method="mobile").json()
    client.post(f"/api/transactions/{third['id']}/void", headers=headers)

    everything = client.get("/api/transactions", headers=headers).json()
    assert everything["total"] == 3
    assert {row["customer"] for row in everything["rows"]} == {"Grace Regular", "Guest"}

    by_method = client.get("/api/transactions", headers=headers, params={"payment_method": "debit"}).json()
    assert by_method["total"] == 1

    by_name = client.get("/api/transactions", headers=headers, params={"search": "grace"}).json()
    assert [row["id"] for row in by_name["rows"]] == [first["id"]]

    by_reference = client.get("/api/transactions", headers=headers, params={"search": first["reference"]}).json()
    assert by_reference["total"] == 1

    voided = client.get("/api/transactions", headers=headers, params={"status": "Voided"}).json()
    assert [row["id"] for row in voided["rows"]] == [third["id"]]

    detail = client.get(f"/api/transactions/{first['id']}", headers=headers)
    assert detail.json()["line_items"][0]["sku"] == "LIST-1"
