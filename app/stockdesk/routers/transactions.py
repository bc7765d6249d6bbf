from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_permission
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.metrics import metrics
from app.stockdesk.core.money import money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.models import PosTransaction
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.customers import CustomerRepository
from app.stockdesk.repos.transactions import TransactionQueryFilters, TransactionRepository
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.schemas.transactions import (
    TransactionCreateRequest,
    TransactionDetail,
    TransactionLineResponse,
    TransactionListResponse,
    TransactionSummary,
    VoidTransactionRequest,
)
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.idempotency import begin_idempotent_request, replay_response
from app.stockdesk.services.rbac import has_permission
from app.stockdesk.services.sales import PAYMENT_METHODS, create_sale, void_sale
from app.stockdesk.services.tenant_settings import get_business_settings

router = APIRouter(responses=COMMON_ERROR_RESPONSES)

GUEST = "Guest"


def summary_fields(transaction: PosTransaction, customer_name: str | None) -> dict:
    return {
        "id": str(transaction.id),
        "reference": transaction.reference,
        "date": transaction.created_at,
        "customer_id": str(transaction.customer_id) if transaction.customer_id else None,
        "customer": customer_name or GUEST,
        "items": len(transaction.items),
        "cashier": transaction.cashier_name,
        "subtotal": money(transaction.subtotal),
        "discount": money(transaction.discount),
        "tax": money(transaction.tax),
        "total": money(transaction.total),
        "payment_method": transaction.payment_method,
        "status": transaction.status,
        "voided_at": transaction.voided_at,
    }


def transaction_summary(transaction: PosTransaction, customer_name: str | None) -> TransactionSummary:
    return TransactionSummary(**summary_fields(transaction, customer_name))


def _transaction_detail(transaction: PosTransaction, customer_name: str | None) -> TransactionDetail:
    return TransactionDetail(
        **summary_fields(transaction, customer_name),
        notes=transaction.notes,
        voided_by=str(transaction.voided_by_user_id) if transaction.voided_by_user_id else None,
        void_reason=transaction.void_reason,
        line_items=[
            TransactionLineResponse(
                product_id=str(item.product_id) if item.product_id else None,
                sku=item.sku,
                name=item.name,
                quantity=item.quantity,
                price=money(item.price),
                total=money(item.total),
            )
            for item in transaction.items
        ],
    )


def _customer_name(db, transaction: PosTransaction) -> str | None:
    if transaction.customer_id is None:
        return None
    customer = CustomerRepository(db).get_in_tenant(str(transaction.customer_id), str(transaction.tenant_id))
    return customer.name if customer else None


@router.post("/api/transactions", response_model=TransactionDetail, status_code=201)
def create_transaction(
    request: Request,
    payload: TransactionCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("PROCESS_SALES")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    if payload.discount > 0 and not has_permission(current_user.role, "APPLY_DISCOUNTS"):
        raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"permission": "APPLY_DISCOUNTS"})

    context, replay = begin_idempotent_request(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json")
    )
    if replay is not None:
        return replay_response(replay)

    business = get_business_settings(db, scoped_tenant_id)
    transaction = create_sale(db, tenant_id=scoped_tenant_id, user=current_user, payload=payload, business=business)
    response = _transaction_detail(transaction, _customer_name(db, transaction))
    if context is not None:
        context.record_success(status_code=201, response_body=response.model_dump(mode="json", by_alias=True))
    metrics.record_sale(status=transaction.status, payment_method=transaction.payment_method)

    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=scoped_tenant_id,
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="transaction.create",
            entity_type="transaction",
            entity_id=str(transaction.id),
            before=None,
            after={
                "reference": transaction.reference,
                "status": transaction.status,
                "total": str(money(transaction.total)),
                "payment_method": transaction.payment_method,
                "items": len(transaction.items),
            },
            metadata={"cash_session_id": str(transaction.cash_session_id) if transaction.cash_session_id else None},
            result="success",
            actor_role=current_user.role,
        )
    )
    return response


@router.get("/api/transactions", response_model=TransactionListResponse)
def list_transactions(
    search: str | None = None,
    payment_method: str | None = None,
    status: str | None = None,
    date: date | None = None,
    customer_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_SALES_HISTORY")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    if payment_method and payment_method not in PAYMENT_METHODS:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "invalid payment_method", "allowed": list(PAYMENT_METHODS)},
        )
    filters = TransactionQueryFilters(
        tenant_id=scoped_tenant_id,
        search=search or None,
        payment_method=payment_method,
        status=status or None,
        day=datetime.combine(date, time.min) if date else None,
        customer_id=str(customer_id) if customer_id else None,
    )
    rows, total = TransactionRepository(db).list_transactions(
        filters,
        limit=max(1, min(limit, settings.LIST_MAX_PAGE_SIZE)),
        offset=max(0, offset),
    )
    return TransactionListResponse(
        rows=[transaction_summary(transaction, customer_name) for transaction, customer_name in rows],
        total=total,
    )


@router.get("/api/transactions/{transaction_id}", response_model=TransactionDetail)
def get_transaction(
    transaction_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_SALES_HISTORY")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    transaction = TransactionRepository(db).get_in_tenant(str(transaction_id), scoped_tenant_id)
    if transaction is None:
        raise AppError(ErrorCatalog.TRANSACTION_NOT_FOUND, details={"transaction_id": str(transaction_id)})
    return _transaction_detail(transaction, _customer_name(db, transaction))


@router.post("/api/transactions/{transaction_id}/void", response_model=TransactionDetail)
def void_transaction(
    request: Request,
    transaction_id: UUID,
    payload: VoidTransactionRequest | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("VOID_TRANSACTIONS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    payload = payload or VoidTransactionRequest()
    context, replay = begin_idempotent_request(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json")
    )
    if replay is not None:
        return replay_response(replay)

    transaction = TransactionRepository(db).get_in_tenant(str(transaction_id), scoped_tenant_id, for_update=True)
    if transaction is None:
        raise AppError(ErrorCatalog.TRANSACTION_NOT_FOUND, details={"transaction_id": str(transaction_id)})
    status_before = transaction.status
    transaction = void_sale(
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        transaction=transaction,
        reason=payload.reason,
    )
    response = _transaction_detail(transaction, _customer_name(db, transaction))
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json", by_alias=True))
    metrics.record_sale(status=transaction.status, payment_method=transaction.payment_method)

    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=scoped_tenant_id,
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="transaction.void",
            entity_type="transaction",
            entity_id=str(transaction.id),
            before={"status": status_before},
            after={"status": transaction.status, "total": str(money(transaction.total))},
            metadata={"reason": payload.reason, "reference": transaction.reference},
            result="success",
            actor_role=current_user.role,
        )
    )
    return response
