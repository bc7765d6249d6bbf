from __future__ import annotations

from datetime import datetime

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.db.models import Product, StockMovement

MOVEMENT_TYPES = ("in", "out", "adjustment")


def apply_stock_change(
    db,
    product: Product,
    *,
    movement_type: str,
    quantity: int,
    user_id,
    reference: str | None = None,
    notes: str | None = None,
    sale_id=None,
    now: datetime | None = None,
) -> StockMovement:
    """Move a product's on-hand quantity and stage the matching ledger row.

    ``quantity`` is the amount moved for ``in``/``out`` and the new on-hand
    level for ``adjustment``. Nothing is committed here.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unsupported movement type"})
    if quantity < 0 or (movement_type != "adjustment" and quantity == 0):
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "quantity must be greater than 0"})

    previous = product.quantity
    if movement_type == "in":
        new_quantity = previous + quantity
    elif movement_type == "out":
        new_quantity = previous - quantity
        if new_quantity < 0:
            raise AppError(
                ErrorCatalog.INSUFFICIENT_STOCK,
                details={"product_id": str(product.id), "sku": product.sku, "available": previous, "requested": quantity},
            )
    else:
        new_quantity = quantity

    now = now or datetime.utcnow()
    product.quantity = new_quantity
    product.updated_at = now
    movement = StockMovement(
        tenant_id=product.tenant_id,
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        movement_type=movement_type,
        quantity=quantity if movement_type != "adjustment" else abs(new_quantity - previous),
        previous_quantity=previous,
        new_quantity=new_quantity,
        reference=reference,
        notes=notes,
        sale_id=sale_id,
        user_id=user_id,
        created_at=now,
    )
    db.add(product)
    db.add(movement)
    return movement
