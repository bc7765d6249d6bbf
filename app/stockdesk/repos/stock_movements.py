from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select

from app.stockdesk.db.models import StockMovement


@dataclass(frozen=True)
class StockMovementQueryFilters:
    tenant_id: str
    product_id: str | None = None
    movement_type: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


class StockMovementRepository:
    def __init__(self, db):
        self.db = db

    def list_movements(
        self, filters: StockMovementQueryFilters, *, limit: int, offset: int
    ) -> tuple[list[StockMovement], int]:
        base_query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()
        query = (
            base_query.order_by(StockMovement.created_at.desc(), StockMovement.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return self.db.execute(query).scalars().all(), total

    def list_in_range(self, tenant_id: str, start: datetime, end: datetime) -> list[StockMovement]:
        query = (
            select(StockMovement)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.created_at >= start,
                StockMovement.created_at < end,
            )
            .order_by(StockMovement.created_at.asc())
        )
        return self.db.execute(query).scalars().all()

    def list_since(self, tenant_id: str, since: datetime) -> list[StockMovement]:
        query = (
            select(StockMovement)
            .where(StockMovement.tenant_id == tenant_id, StockMovement.created_at >= since)
            .order_by(StockMovement.created_at.asc())
        )
        return self.db.execute(query).scalars().all()

    def count_since(self, tenant_id: str, since: datetime) -> int:
        query = select(func.count()).select_from(StockMovement).where(
            StockMovement.tenant_id == tenant_id,
            StockMovement.created_at >= since,
        )
        return self.db.execute(query).scalar_one()

    def _apply_filters(self, filters: StockMovementQueryFilters):
        query = select(StockMovement).where(StockMovement.tenant_id == filters.tenant_id)
        if filters.product_id:
            query = query.where(StockMovement.product_id == filters.product_id)
        if filters.movement_type:
            query = query.where(StockMovement.movement_type == filters.movement_type)
        if filters.from_date:
            query = query.where(StockMovement.created_at >= filters.from_date)
        if filters.to_date:
            query = query.where(StockMovement.created_at <= filters.to_date)
        return query
