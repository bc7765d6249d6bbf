from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from app.stockdesk.db.models import Customer, PosTransaction


@dataclass(frozen=True)
class TransactionQueryFilters:
    tenant_id: str
    search: str | None = None
    payment_method: str | None = None
    status: str | None = None
    day: datetime | None = None
    customer_id: str | None = None


class TransactionRepository:
    def __init__(self, db):
        self.db = db

    def list_transactions(
        self, filters: TransactionQueryFilters, *, limit: int, offset: int
    ) -> tuple[list[tuple[PosTransaction, str | None]], int]:
        base_query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()
        query = (
            base_query.options(selectinload(PosTransaction.items))
            .order_by(PosTransaction.created_at.desc(), PosTransaction.id.asc())
            .offset(offset)
            .limit(limit)
        )
        rows = self.db.execute(query).all()
        return [(row[0], row[1]) for row in rows], total

    def get_in_tenant(self, transaction_id: str, tenant_id: str, *, for_update: bool = False) -> PosTransaction | None:
        query = (
            select(PosTransaction)
            .options(selectinload(PosTransaction.items))
            .where(PosTransaction.id == transaction_id, PosTransaction.tenant_id == tenant_id)
        )
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalars().first()

    def list_for_customer(self, tenant_id: str, customer_id: str, limit: int) -> list[PosTransaction]:
        query = (
            select(PosTransaction)
            .options(selectinload(PosTransaction.items))
            .where(PosTransaction.tenant_id == tenant_id, PosTransaction.customer_id == customer_id)
            .order_by(PosTransaction.created_at.desc(), PosTransaction.id.asc())
            .limit(limit)
        )
        return self.db.execute(query).scalars().all()

    def list_recent(self, tenant_id: str, limit: int) -> list[tuple[PosTransaction, str | None]]:
        query = (
            select(PosTransaction, Customer.name)
            .outerjoin(Customer, Customer.id == PosTransaction.customer_id)
            .options(selectinload(PosTransaction.items))
            .where(PosTransaction.tenant_id == tenant_id)
            .order_by(PosTransaction.created_at.desc(), PosTransaction.id.asc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in self.db.execute(query).all()]

    def list_in_range(self, tenant_id: str, start: datetime, end: datetime) -> list[PosTransaction]:
        query = (
            select(PosTransaction)
            .where(
                PosTransaction.tenant_id == tenant_id,
                PosTransaction.created_at >= start,
                PosTransaction.created_at < end,
            )
            .order_by(PosTransaction.created_at.asc())
        )
        return self.db.execute(query).scalars().all()

    def count(self, tenant_id: str) -> int:
        query = select(func.count()).select_from(PosTransaction).where(PosTransaction.tenant_id == tenant_id)
        return self.db.execute(query).scalar_one()

    def _apply_filters(self, filters: TransactionQueryFilters):
        query = (
            select(PosTransaction, Customer.name)
            .outerjoin(Customer, Customer.id == PosTransaction.customer_id)
            .where(PosTransaction.tenant_id == filters.tenant_id)
        )
        if filters.search:
            term = filters.search.strip()
            query = query.where(
                or_(
                    PosTransaction.reference.icontains(term, autoescape=True),
                    Customer.name.icontains(term, autoescape=True),
                )
            )
        if filters.payment_method:
            query = query.where(PosTransaction.payment_method == filters.payment_method)
        if filters.status:
            query = query.where(func.lower(PosTransaction.status) == filters.status.strip().lower())
        if filters.day:
            start = filters.day
            query = query.where(PosTransaction.created_at >= start, PosTransaction.created_at < start + timedelta(days=1))
        if filters.customer_id:
            query = query.where(PosTransaction.customer_id == filters.customer_id)
        return query

    def session_totals_by_method(self, session_id) -> dict[str, float]:
        query = (
            select(PosTransaction.payment_method, func.coalesce(func.sum(PosTransaction.total), 0.0))
            .where(PosTransaction.cash_session_id == session_id, PosTransaction.status == "Completed")
            .group_by(PosTransaction.payment_method)
        )
        return {method: float(total) for method, total in self.db.execute(query).all()}
