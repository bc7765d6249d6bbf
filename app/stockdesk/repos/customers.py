from __future__ import annotations

from sqlalchemy import func, or_, select, update

from app.stockdesk.db.models import Customer, PosTransaction


class CustomerRepository:
    def __init__(self, db):
        self.db = db

    def list_customers(
        self,
        tenant_id: str,
        *,
        search: str | None = None,
        customer_type: str | None = None,
        limit: int,
    ) -> list[Customer]:
        query = select(Customer).where(Customer.tenant_id == tenant_id)
        if search:
            term = search.strip()
            query = query.where(
                or_(
                    Customer.name.icontains(term, autoescape=True),
                    Customer.email.icontains(term, autoescape=True),
                    Customer.phone.icontains(term, autoescape=True),
                )
            )
        if customer_type:
            query = query.where(Customer.customer_type == customer_type)
        query = query.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit)
        return self.db.execute(query).scalars().all()

    def count(self, tenant_id: str) -> int:
        query = select(func.count()).select_from(Customer).where(Customer.tenant_id == tenant_id)
        return self.db.execute(query).scalar_one()

    def get_in_tenant(self, customer_id: str, tenant_id: str) -> Customer | None:
        query = select(Customer).where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        return self.db.execute(query).scalars().first()

    def email_exists(self, tenant_id: str, email: str, *, exclude_customer_id: str | None = None) -> bool:
        query = select(Customer.id).where(
            Customer.tenant_id == tenant_id,
            func.lower(Customer.email) == email.strip().lower(),
        )
        if exclude_customer_id:
            query = query.where(Customer.id != exclude_customer_id)
        return self.db.execute(query).first() is not None

    def create(self, customer: Customer) -> Customer:
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def update(self, customer: Customer) -> Customer:
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete(self, customer: Customer) -> int:
        """Delete the customer and detach its transactions; returns how many were detached."""
        result = self.db.execute(
            update(PosTransaction)
            .where(PosTransaction.tenant_id == customer.tenant_id, PosTransaction.customer_id == customer.id)
            .values(customer_id=None)
        )
        self.db.delete(customer)
        self.db.commit()
        return result.rowcount or 0
