"""Sale checkout and void flows.

Both flows stage every change (transaction, stock ledger, drawer ledger,
customer counters) on the session and commit once at the end.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from app.stockdesk.core.config import settings
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.money import money
from app.stockdesk.db.models import PosTransaction, PosTransactionItem, StockMovement
from app.stockdesk.repos.cash_drawer import CashDrawerRepository
from app.stockdesk.repos.customers import CustomerRepository
from app.stockdesk.repos.products import ProductRepository
from app.stockdesk.services.stock import apply_stock_change
from app.stockdesk.services.tenant_settings import BusinessSettings

PAYMENT_METHODS = ("cash", "credit", "debit", "mobile", "check", "gift")
CARD_METHODS = ("credit", "debit")
STATUS_COMPLETED = "Completed"
STATUS_VOIDED = "Voided"


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(lines: list[tuple[Decimal, int]], discount: Decimal, tax_rate: Decimal) -> SaleTotals:
    """Totals for ``(unit_price, quantity)`` lines; tax applies after the discount."""
    subtotal = money(sum((Decimal(str(price)) * quantity for price, quantity in lines), Decimal("0")))
    discount = money(discount)
    if discount < 0 or discount > subtotal:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "discount must be between 0 and the subtotal"},
        )
    taxable = subtotal - discount
    tax = money(taxable * Decimal(str(tax_rate)) / Decimal("100"))
    return SaleTotals(subtotal=subtotal, discount=discount, tax=tax, total=taxable + tax)


def generate_reference(now: datetime) -> str:
    return f"SALE-{now:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}"


def create_sale(db, *, tenant_id: str, user, payload, business: BusinessSettings) -> PosTransaction:
    now = datetime.utcnow()
    products = ProductRepository(db)
    register = payload.register_name or settings.DEFAULT_REGISTER_NAME

    resolved: list[tuple[object, int, Decimal]] = []
    requested: dict[str, int] = {}
    for item in payload.items:
        product = products.get_in_tenant(str(item.product_id), tenant_id, for_update=True)
        if product is None:
            raise AppError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": str(item.product_id)})
        price = Decimal(str(item.price)) if item.price is not None else Decimal(str(product.price))
        resolved.append((product, item.quantity, price))
        requested[str(product.id)] = requested.get(str(product.id), 0) + item.quantity

    if business.track_inventory:
        for product, _quantity, _price in resolved:
            wanted = requested[str(product.id)]
            if wanted > product.quantity:
                raise AppError(
                    ErrorCatalog.INSUFFICIENT_STOCK,
                    details={
                        "product_id": str(product.id),
                        "sku": product.sku,
                        "available": product.quantity,
                        "requested": wanted,
                    },
                )

    totals = compute_totals([(price, quantity) for _product, quantity, price in resolved], payload.discount, business.tax_rate)

    customer = None
    if payload.customer_id is not None:
        customer = CustomerRepository(db).get_in_tenant(str(payload.customer_id), tenant_id)
        if customer is None:
            raise AppError(ErrorCatalog.CUSTOMER_NOT_FOUND, details={"customer_id": str(payload.customer_id)})

    drawer_repo = CashDrawerRepository(db)
    session = drawer_repo.get_open_session(tenant_id, register, for_update=True)

    transaction = PosTransaction(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        reference=generate_reference(now),
        customer_id=customer.id if customer else None,
        cashier_user_id=user.id,
        cashier_name=user.full_name or user.username,
        cash_session_id=session.id if session else None,
        subtotal=float(totals.subtotal),
        discount=float(totals.discount),
        tax=float(totals.tax),
        total=float(totals.total),
        payment_method=payload.payment_method,
        status=STATUS_COMPLETED,
        notes=payload.notes,
        created_at=now,
        updated_at=now,
    )
    for position, (product, quantity, price) in enumerate(resolved):
        transaction.items.append(
            PosTransactionItem(
                position=position,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                quantity=quantity,
                price=float(money(price)),
                total=float(money(price * quantity)),
            )
        )
    db.add(transaction)

    if business.track_inventory:
        for product, quantity, _price in resolved:
            apply_stock_change(
                db,
                product,
                movement_type="out",
                quantity=quantity,
                user_id=user.id,
                reference=transaction.reference,
                notes="POS sale",
                sale_id=transaction.id,
                now=now,
            )

    if session is not None and payload.payment_method == "cash":
        expected_before = Decimal(str(session.expected_cash))
        expected_after = expected_before + totals.total
        session.expected_cash = float(expected_after)
        drawer_repo.add_movement(
            session,
            user_id=user.id,
            action="CASH_SALE",
            amount=float(totals.total),
            expected_before=float(expected_before),
            expected_after=float(expected_after),
            created_at=now,
            sale_id=transaction.id,
            reference=transaction.reference,
        )

    if customer is not None:
        customer.total_spent = float(money(Decimal(str(customer.total_spent or 0)) + totals.total))
        customer.visits = (customer.visits or 0) + 1
        customer.last_visit = now
        db.add(customer)

    db.commit()
    db.refresh(transaction)
    return transaction


def void_sale(db, *, tenant_id: str, user, transaction: PosTransaction, reason: str | None) -> PosTransaction:
    if transaction.status == STATUS_VOIDED:
        raise AppError(
            ErrorCatalog.TRANSACTION_ALREADY_VOIDED,
            details={"transaction_id": str(transaction.id), "reference": transaction.reference},
        )
    now = datetime.utcnow()
    total = money(transaction.total)
    void_reference = f"VOID-{transaction.reference}"

    transaction.status = STATUS_VOIDED
    transaction.voided_at = now
    transaction.voided_by_user_id = user.id
    transaction.void_reason = reason
    transaction.updated_at = now
    db.add(transaction)

    # Only what the sale actually took out of stock goes back.
    sold = db.execute(
        select(StockMovement).where(
            StockMovement.tenant_id == transaction.tenant_id,
            StockMovement.sale_id == transaction.id,
            StockMovement.movement_type == "out",
        )
    ).scalars().all()
    products = ProductRepository(db)
    for movement in sold:
        if movement.product_id is None:
            continue
        product = products.get_in_tenant(str(movement.product_id), tenant_id, for_update=True)
        if product is None:
            continue
        apply_stock_change(
            db,
            product,
            movement_type="in",
            quantity=movement.quantity,
            user_id=user.id,
            reference=void_reference,
            notes=reason or "Sale voided",
            sale_id=transaction.id,
            now=now,
        )

    if transaction.payment_method == "cash" and transaction.cash_session_id is not None:
        drawer_repo = CashDrawerRepository(db)
        session = drawer_repo.get_session(transaction.cash_session_id, tenant_id)
        if session is not None and session.status == "OPEN":
            expected_before = Decimal(str(session.expected_cash))
            expected_after = expected_before - total
            session.expected_cash = float(expected_after)
            drawer_repo.add_movement(
                session,
                user_id=user.id,
                action="CASH_REFUND",
                amount=float(total),
                expected_before=float(expected_before),
                expected_after=float(expected_after),
                created_at=now,
                sale_id=transaction.id,
                reference=void_reference,
                reason=reason,
            )

    if transaction.customer_id is not None:
        customer = CustomerRepository(db).get_in_tenant(str(transaction.customer_id), tenant_id)
        if customer is not None:
            remaining = Decimal(str(customer.total_spent or 0)) - total
            customer.total_spent = float(max(money(remaining), Decimal("0.00")))
            db.add(customer)

    db.commit()
    db.refresh(transaction)
    return transaction
