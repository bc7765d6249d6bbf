from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_permission
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.money import money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.models import Customer, PosTransaction
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.customers import CustomerRepository
from app.stockdesk.repos.transactions import TransactionRepository
from app.stockdesk.schemas.customers import (
    CustomerCreateRequest,
    CustomerDeleteResponse,
    CustomerDetailResponse,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdateRequest,
    PurchaseListResponse,
    PurchaseSummary,
)
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.services.audit import AuditEventPayload, AuditService

router = APIRouter(responses=COMMON_ERROR_RESPONSES)

CUSTOMER_TYPES = ("New", "Regular", "VIP")
DETAIL_HISTORY_LIMIT = 20


def _customer_fields(customer: Customer) -> dict:
    return {
        "id": str(customer.id),
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "address": customer.address,
        "type": customer.customer_type,
        "notes": customer.notes,
        "total_spent": money(customer.total_spent),
        "visits": customer.visits,
        "join_date": customer.join_date,
        "last_visit": customer.last_visit,
        "created_at": customer.created_at,
        "updated_at": customer.updated_at,
    }


def _customer_response(customer: Customer) -> CustomerResponse:
    return CustomerResponse(**_customer_fields(customer))


def _purchase_summary(transaction: PosTransaction) -> PurchaseSummary:
    return PurchaseSummary(
        id=str(transaction.id),
        reference=transaction.reference,
        date=transaction.created_at,
        amount=money(transaction.total),
        items=len(transaction.items),
        payment_method=transaction.payment_method,
        status=transaction.status,
    )


def _snapshot(customer: Customer) -> dict:
    return {
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "type": customer.customer_type,
    }


def _get_customer_or_404(repo: CustomerRepository, customer_id: UUID, tenant_id: str) -> Customer:
    customer = repo.get_in_tenant(str(customer_id), tenant_id)
    if customer is None:
        raise AppError(ErrorCatalog.CUSTOMER_NOT_FOUND, details={"customer_id": str(customer_id)})
    return customer


def _record(request: Request, db, *, tenant_id: str, user, action: str, entity_id: str, before, after, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=tenant_id,
            user_id=str(user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=user.username,
            action=action,
            entity_type="customer",
            entity_id=entity_id,
            before=before,
            after=after,
            metadata=metadata,
            result="success",
            actor_role=user.role,
        )
    )


@router.get("/api/customers", response_model=CustomerListResponse)
def list_customers(
    search: str | None = None,
    type: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    customer_type = None if not type or type == "All" else type
    if customer_type and customer_type not in CUSTOMER_TYPES:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "invalid customer type", "allowed": ["All", *CUSTOMER_TYPES]},
        )
    rows = CustomerRepository(db).list_customers(
        scoped_tenant_id,
        search=search,
        customer_type=customer_type,
        limit=settings.CUSTOMER_LIST_LIMIT,
    )
    return CustomerListResponse(rows=[_customer_response(row) for row in rows], total=len(rows))


@router.post("/api/customers", response_model=CustomerResponse, status_code=201)
def create_customer(
    request: Request,
    payload: CustomerCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = CustomerRepository(db)
    if repo.email_exists(scoped_tenant_id, payload.email):
        raise AppError(ErrorCatalog.EMAIL_ALREADY_EXISTS, details={"email": payload.email})

    now = datetime.utcnow()
    customer = repo.create(
        Customer(
            tenant_id=scoped_tenant_id,
            name=payload.name.strip(),
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            customer_type=payload.type,
            notes=payload.notes,
            total_spent=0.0,
            visits=0,
            join_date=now,
            last_visit=now,
            created_at=now,
            updated_at=now,
        )
    )
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action="customer.create",
        entity_id=str(customer.id),
        before=None,
        after=_snapshot(customer),
    )
    return _customer_response(customer)


@router.get("/api/customers/{customer_id}", response_model=CustomerDetailResponse)
def get_customer(
    customer_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    customer = _get_customer_or_404(CustomerRepository(db), customer_id, scoped_tenant_id)
    history = TransactionRepository(db).list_for_customer(scoped_tenant_id, str(customer.id), DETAIL_HISTORY_LIMIT)
    return CustomerDetailResponse(
        **_customer_fields(customer),
        purchase_history=[_purchase_summary(row) for row in history],
    )


@router.put("/api/customers/{customer_id}", response_model=CustomerResponse)
def update_customer(
    request: Request,
    customer_id: UUID,
    payload: CustomerUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = CustomerRepository(db)
    customer = _get_customer_or_404(repo, customer_id, scoped_tenant_id)
    changes = payload.model_dump(exclude_unset=True)
    for required in ("name", "email", "type"):
        if required in changes and changes[required] is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{required} cannot be null"})
    if "email" in changes and repo.email_exists(
        scoped_tenant_id, changes["email"], exclude_customer_id=str(customer.id)
    ):
        raise AppError(ErrorCatalog.EMAIL_ALREADY_EXISTS, details={"email": changes["email"]})

    before = _snapshot(customer)
    for field, value in changes.items():
        if field == "type":
            customer.customer_type = value
        elif field == "name":
            customer.name = value.strip()
        else:
            setattr(customer, field, value)
    customer.updated_at = datetime.utcnow()
    customer = repo.update(customer)
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action="customer.update",
        entity_id=str(customer.id),
        before=before,
        after=_snapshot(customer),
        metadata={"fields": sorted(changes.keys())},
    )
    return _customer_response(customer)


@router.delete("/api/customers/{customer_id}", response_model=CustomerDeleteResponse)
def delete_customer(
    request: Request,
    customer_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = CustomerRepository(db)
    customer = _get_customer_or_404(repo, customer_id, scoped_tenant_id)
    deleted_id = str(customer.id)
    before = _snapshot(customer)
    detached = repo.delete(customer)
    _record(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action="customer.delete",
        entity_id=deleted_id,
        before=before,
        after=None,
        metadata={"detached_transactions": detached},
    )
    return CustomerDeleteResponse(id=deleted_id, deleted=True, detached_transactions=detached)


@router.get("/api/customers/{customer_id}/purchases", response_model=PurchaseListResponse)
def list_customer_purchases(
    customer_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_CUSTOMERS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    customer = _get_customer_or_404(CustomerRepository(db), customer_id, scoped_tenant_id)
    rows = TransactionRepository(db).list_for_customer(
        scoped_tenant_id, str(customer.id), settings.PURCHASE_HISTORY_LIMIT
    )
    return PurchaseListResponse(rows=[_purchase_summary(row) for row in rows], total=len(rows))
