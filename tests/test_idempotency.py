import pytest
from sqlalchemy.exc import IntegrityError

from app.stockdesk.db.models import Product
from app.stockdesk.repos.idempotency import IdempotencyRepository, RequestScope
from tests.helpers import auth_headers, configure_tenant, create_product, create_tenant_user, login


def _sale_payload(product, quantity: int = 1) -> dict:
    return {"items": [{"product_id": str(product.id), "quantity": quantity}], "payment_method": "cash"}


def test_transaction_replay_returns_same_sale_once(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="idem-sale", role="CASHIER")
    configure_tenant(db_session, tenant)
    product = create_product(db_session, tenant, sku="IDEM-1", quantity=10)
    headers = auth_headers(login(client, user.username), **{"Idempotency-Key": "sale-1"})

    first = client.post("/api/transactions", headers=headers, json=_sale_payload(product, 3))
    second = client.post("/api/transactions", headers=headers, json=_sale_payload(product, 3))

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert "X-Idempotency-Result" not in first.headers
    assert second.json()["id"] == first.json()["id"]

    db_session.expire_all()
    assert db_session.get(Product, product.id).quantity == 7
    listing = client.get("/api/transactions", headers=auth_headers(login(client, user.username))).json()
    assert listing["total"] == 1


def test_transaction_key_reuse_with_different_payload_conflicts(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="idem-reuse", role="CASHIER")
    product = create_product(db_session, tenant, sku="IDEM-2", quantity=10)
    headers = auth_headers(login(client, user.username), **{"Idempotency-Key": "sale-2"})

    client.post("/api/transactions", headers=headers, json=_sale_payload(product, 1))
    response = client.post("/api/transactions", headers=headers, json=_sale_payload(product, 2))

    assert response.status_code == 409
    assert response.json()["code"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"


def test_failed_sale_is_replayed_without_retrying(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="idem-fail", role="CASHIER")
    product = create_product(db_session, tenant, sku="IDEM-3", quantity=1)
    headers = auth_headers(login(client, user.username), **{"Idempotency-Key": "sale-3"})

    first = client.post("/api/transactions", headers=headers, json=_sale_payload(product, 5))
    assert first.status_code == 409
    assert first.json()["code"] == "INSUFFICIENT_STOCK"

    product.quantity = 10
    db_session.commit()
    replay = client.post("/api/transactions", headers=headers, json=_sale_payload(product, 5))

    assert replay.status_code == 409
    assert replay.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    db_session.expire_all()
    assert db_session.get(Product, product.id).quantity == 10


def test_keys_are_scoped_per_tenant(client, db_session):
    tenant_a, user_a = create_tenant_user(db_session, suffix="idem-a", role="CASHIER")
    tenant_b, user_b = create_tenant_user(db_session, suffix="idem-b", role="CASHIER")
    product_a = create_product(db_session, tenant_a, sku="IDEM-A", quantity=5)
    product_b = create_product(db_session, tenant_b, sku="IDEM-B", quantity=5)

    first = client.post(
        "/api/transactions",
        headers=auth_headers(login(client, user_a.username), **{"Idempotency-Key": "shared"}),
        json=_sale_payload(product_a),
    )
    second = client.post(
        "/api/transactions",
        headers=auth_headers(login(client, user_b.username), **{"Idempotency-Key": "shared"}),
        json=_sale_payload(product_b),
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert "X-Idempotency-Result" not in second.headers
    assert first.json()["id"] != second.json()["id"]


def test_cash_drawer_replay(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="idem-drawer", role="CASHIER")
    token = login(client, user.username)
    client.post("/api/cash-drawer", headers=auth_headers(token), json={"action": "open", "amount": "50"})
    headers = auth_headers(token, **{"Idempotency-Key": "payout-1"})
    payload = {"action": "payout", "amount": "5", "reason": "Stamps"}

    first = client.post("/api/cash-drawer", headers=headers, json=payload)
    second = client.post("/api/cash-drawer", headers=headers, json=payload)

    assert first.status_code == 200
    assert second.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert second.json() == first.json()
    status = client.get("/api/cash-drawer", headers=auth_headers(token)).json()
    assert status["drawer_status"]["current_balance"] == "45.00"


def test_repository_claims_each_scope_once(db_session):
    tenant, _user = create_tenant_user(db_session, suffix="idem-repo", role="ADMIN")
    repo = IdempotencyRepository(db_session)
    scope = RequestScope(tenant.id, "/api/transactions", "POST", "k-1")

    record = repo.claim(scope, "hash-1")
    assert record.state == "in_progress"
    assert repo.find(RequestScope(tenant.id, "/api/transactions", "PUT", "k-1")) is None

    with pytest.raises(IntegrityError):
        repo.claim(scope, "hash-2")
    db_session.rollback()

    repo.save_outcome(repo.find(scope), state="succeeded", status_code=201, response_body='{"ok": true}')
    stored = repo.find(scope)
    assert (stored.state, stored.status_code, stored.request_hash) == ("succeeded", 201, "hash-1")
