from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_active_user, require_permission
from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.money import money, optional_money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.models import Product, StockMovement
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.products import ProductRepository
from app.stockdesk.repos.stock_movements import StockMovementQueryFilters, StockMovementRepository
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.schemas.products import (
    ProductCreateRequest,
    ProductDeleteResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
    SkuCheckResponse,
    StockMovementListResponse,
    StockMovementRequest,
    StockMovementResponse,
    StockMovementResult,
)
from app.stockdesk.services.audit import AuditEventPayload, AuditService
from app.stockdesk.services.inventory import STOCK_STATUSES, ProductFilter, stock_status
from app.stockdesk.services.rbac import has_permission
from app.stockdesk.services.stock import apply_stock_change
from app.stockdesk.services.tenant_settings import get_business_settings

router = APIRouter(responses=COMMON_ERROR_RESPONSES)

_STOCK_PERMISSIONS = {
    "in": "MANAGE_STOCK_IN",
    "out": "MANAGE_STOCK_OUT",
    "adjustment": "MANAGE_INVENTORY",
}


def _product_response(product: Product, threshold: int) -> ProductResponse:
    return ProductResponse(
        id=str(product.id),
        tenant_id=str(product.tenant_id),
        name=product.name,
        sku=product.sku,
        price=money(product.price),
        quantity=product.quantity,
        category=product.category,
        vendor=product.vendor,
        weight=optional_money(product.weight),
        description=product.description,
        image_url=product.image_url,
        stock_status=stock_status(product.quantity, threshold),
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _movement_response(movement: StockMovement) -> StockMovementResponse:
    return StockMovementResponse(
        id=str(movement.id),
        product_id=str(movement.product_id) if movement.product_id else None,
        product_name=movement.product_name,
        product_sku=movement.product_sku,
        type=movement.movement_type,
        quantity=movement.quantity,
        previous_quantity=movement.previous_quantity,
        new_quantity=movement.new_quantity,
        reference=movement.reference,
        notes=movement.notes,
        sale_id=str(movement.sale_id) if movement.sale_id else None,
        user_id=str(movement.user_id) if movement.user_id else None,
        created_at=movement.created_at,
    )


def _product_snapshot(product: Product) -> dict:
    return {
        "name": product.name,
        "sku": product.sku,
        "price": str(money(product.price)),
        "quantity": product.quantity,
        "category": product.category,
        "vendor": product.vendor,
    }


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _get_product_or_404(repo: ProductRepository, product_id: UUID, tenant_id: str, *, for_update: bool = False):
    product = repo.get_in_tenant(str(product_id), tenant_id, for_update=for_update)
    if product is None:
        raise AppError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": str(product_id)})
    return product


def _audit(request: Request, db, *, tenant_id: str, user, action: str, product: Product, before, after, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=tenant_id,
            user_id=str(user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=user.username,
            action=action,
            entity_type="product",
            entity_id=str(product.id),
            before=before,
            after=after,
            metadata=metadata,
            result="success",
            actor_role=user.role,
        )
    )


@router.get("/api/products", response_model=ProductListResponse)
def list_products(
    search: str | None = None,
    category: list[str] | None = Query(default=None),
    vendor: list[str] | None = Query(default=None),
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    stock_status: str | None = None,
    sort_by: str = "updated_at",
    sort_dir: str = "desc",
    limit: int = 50,
    offset: int = 0,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    if stock_status and stock_status not in STOCK_STATUSES:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "invalid stock_status", "allowed": list(STOCK_STATUSES)},
        )
    if min_price is not None and max_price is not None and min_price > max_price:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "min_price must not exceed max_price"})

    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    product_filter = ProductFilter(
        threshold=threshold,
        search=search or "",
        categories=frozenset(value for value in (category or []) if value),
        vendors=frozenset(value for value in (vendor or []) if value),
        min_price=Decimal(str(min_price)) if min_price is not None else None,
        max_price=Decimal(str(max_price)) if max_price is not None else None,
        stock_status=stock_status,
    )
    rows, total = ProductRepository(db).list_products(
        scoped_tenant_id,
        product_filter,
        limit=max(1, min(limit, settings.LIST_MAX_PAGE_SIZE)),
        offset=max(0, offset),
        sort_by=sort_by,
        sort_dir=sort_dir,
    )
    return ProductListResponse(rows=[_product_response(row, threshold) for row in rows], total=total)


@router.post("/api/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: Request,
    payload: ProductCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = ProductRepository(db)
    if repo.sku_exists(scoped_tenant_id, payload.sku):
        raise AppError(ErrorCatalog.SKU_ALREADY_EXISTS, details={"sku": payload.sku})

    now = datetime.utcnow()
    product = repo.create(
        Product(
            tenant_id=scoped_tenant_id,
            name=payload.name,
            sku=payload.sku,
            price=float(payload.price),
            quantity=payload.quantity,
            category=payload.category,
            vendor=payload.vendor,
            weight=float(payload.weight) if payload.weight is not None else None,
            description=payload.description,
            image_url=payload.image_url,
            created_by_user_id=current_user.id,
            created_at=now,
            updated_at=now,
        )
    )
    _audit(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action="product.create",
        product=product,
        before=None,
        after=_product_snapshot(product),
    )
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    return _product_response(product, threshold)


@router.get("/api/products/check-sku", response_model=SkuCheckResponse)
def check_sku(
    sku: str = Query(min_length=1),
    exclude_id: UUID | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    exists = ProductRepository(db).sku_exists(
        scoped_tenant_id,
        sku,
        exclude_product_id=str(exclude_id) if exclude_id else None,
    )
    return SkuCheckResponse(sku=sku, exists=exists)


@router.get("/api/products/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    product = _get_product_or_404(ProductRepository(db), product_id, scoped_tenant_id)
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    return _product_response(product, threshold)


@router.put("/api/products/{product_id}", response_model=ProductResponse)
def update_product(
    request: Request,
    product_id: UUID,
    payload: ProductUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = ProductRepository(db)
    product = _get_product_or_404(repo, product_id, scoped_tenant_id)
    changes = payload.model_dump(exclude_unset=True)
    for required in ("name", "sku", "price", "quantity"):
        if required in changes and changes[required] is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"{required} cannot be null"})
    if "sku" in changes and repo.sku_exists(scoped_tenant_id, changes["sku"], exclude_product_id=str(product.id)):
        raise AppError(ErrorCatalog.SKU_ALREADY_EXISTS, details={"sku": changes["sku"]})

    new_quantity = changes.pop("quantity", None)
    before = _product_snapshot(product)
    for field, value in changes.items():
        if field in ("price", "weight") and value is not None:
            value = float(value)
        setattr(product, field, value)
    product.updated_at = datetime.utcnow()
    if new_quantity is not None and new_quantity != product.quantity:
        # Quantity edits are recorded as adjustments.
        apply_stock_change(
            db,
            product,
            movement_type="adjustment",
            quantity=new_quantity,
            user_id=current_user.id,
            reference="PRODUCT-EDIT",
            now=product.updated_at,
        )
    product = repo.update(product)
    _audit(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action="product.update",
        product=product,
        before=before,
        after=_product_snapshot(product),
        metadata={"fields": sorted(changes.keys())},
    )
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    return _product_response(product, threshold)


@router.delete("/api/products/{product_id}", response_model=ProductDeleteResponse)
def delete_product(
    request: Request,
    product_id: UUID,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_permission("MANAGE_PRODUCTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    repo = ProductRepository(db)
    product = _get_product_or_404(repo, product_id, scoped_tenant_id)
    before = _product_snapshot(product)
    deleted_id = str(product.id)
    repo.delete(product)
    AuditService(db).record_event(
        AuditEventPayload(
            tenant_id=scoped_tenant_id,
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="product.delete",
            entity_type="product",
            entity_id=deleted_id,
            before=before,
            after=None,
            metadata=None,
            result="success",
            actor_role=current_user.role,
        )
    )
    return ProductDeleteResponse(id=deleted_id, deleted=True)


@router.post("/api/products/{product_id}/stock", response_model=StockMovementResult)
def move_stock(
    request: Request,
    product_id: UUID,
    payload: StockMovementRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    db=Depends(get_db),
):
    permission = _STOCK_PERMISSIONS[payload.type]
    if not has_permission(current_user.role, permission):
        raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"permission": permission})
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    product = _get_product_or_404(ProductRepository(db), product_id, scoped_tenant_id, for_update=True)
    before = _product_snapshot(product)

    movement = apply_stock_change(
        db,
        product,
        movement_type=payload.type,
        quantity=payload.quantity,
        user_id=current_user.id,
        reference=payload.reference,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(product)
    db.refresh(movement)
    _audit(
        request,
        db,
        tenant_id=scoped_tenant_id,
        user=current_user,
        action=f"stock.{payload.type}",
        product=product,
        before=before,
        after=_product_snapshot(product),
        metadata={"movement_id": str(movement.id), "reference": payload.reference},
    )
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    return StockMovementResult(product=_product_response(product, threshold), movement=_movement_response(movement))


@router.get("/api/stock/movements", response_model=StockMovementListResponse)
def list_stock_movements(
    product_id: UUID | None = None,
    type: str | None = None,
    from_ts: datetime | None = None,
    to_ts: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_INVENTORY")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    filters = StockMovementQueryFilters(
        tenant_id=scoped_tenant_id,
        product_id=str(product_id) if product_id else None,
        movement_type=type,
        from_date=_naive_utc(from_ts),
        to_date=_naive_utc(to_ts),
    )
    rows, total = StockMovementRepository(db).list_movements(
        filters,
        limit=max(1, min(limit, settings.LIST_MAX_PAGE_SIZE)),
        offset=max(0, offset),
    )
    return StockMovementListResponse(rows=[_movement_response(row) for row in rows], total=total)
