from __future__ import annotations

from sqlalchemy import func, or_, select

from app.stockdesk.db.models import Product
from app.stockdesk.services.inventory import IN_STOCK, LOW_STOCK, OUT_OF_STOCK, ProductFilter


class ProductRepository:
    def __init__(self, db):
        self.db = db

    def list_products(
        self,
        tenant_id: str,
        product_filter: ProductFilter,
        *,
        limit: int,
        offset: int,
        sort_by: str,
        sort_dir: str,
    ) -> tuple[list[Product], int]:
        base_query = self._apply_filters(tenant_id, product_filter)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()

        sort_column = self._resolve_sort_column(sort_by)
        if sort_dir.lower() == "asc":
            ordering = (sort_column.asc(), Product.id.asc())
        else:
            ordering = (sort_column.desc(), Product.id.asc())
        query = base_query.order_by(*ordering).offset(offset).limit(limit)
        return self.db.execute(query).scalars().all(), total

    def list_all(self, tenant_id: str) -> list[Product]:
        query = select(Product).where(Product.tenant_id == tenant_id).order_by(Product.name.asc())
        return self.db.execute(query).scalars().all()

    def get_in_tenant(self, product_id: str, tenant_id: str, *, for_update: bool = False) -> Product | None:
        query = select(Product).where(Product.id == product_id, Product.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalars().first()

    def sku_exists(self, tenant_id: str, sku: str, *, exclude_product_id: str | None = None) -> bool:
        query = select(Product.id).where(Product.tenant_id == tenant_id, func.lower(Product.sku) == sku.strip().lower())
        if exclude_product_id:
            query = query.where(Product.id != exclude_product_id)
        return self.db.execute(query).first() is not None

    def distinct_values(self, tenant_id: str, column_name: str) -> list[str]:
        column = getattr(Product, column_name)
        query = (
            select(column)
            .where(Product.tenant_id == tenant_id, column.is_not(None), column != "")
            .distinct()
            .order_by(column.asc())
        )
        return [value for value in self.db.execute(query).scalars().all()]

    def top_by_value(self, tenant_id: str, limit: int) -> list[Product]:
        query = (
            select(Product)
            .where(Product.tenant_id == tenant_id)
            .order_by((Product.price * Product.quantity).desc(), Product.name.asc())
            .limit(limit)
        )
        return self.db.execute(query).scalars().all()

    def list_alerting(self, tenant_id: str, low_stock_threshold: int) -> list[Product]:
        query = (
            select(Product)
            .where(Product.tenant_id == tenant_id, Product.quantity <= low_stock_threshold)
            .order_by(Product.quantity.asc(), Product.name.asc())
        )
        return self.db.execute(query).scalars().all()

    def create(self, product: Product) -> Product:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def update(self, product: Product) -> Product:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete(self, product: Product) -> None:
        self.db.delete(product)
        self.db.commit()

    def _apply_filters(self, tenant_id: str, filters: ProductFilter):
        """SQL rendition of ``ProductFilter.matches``."""
        query = select(Product).where(Product.tenant_id == tenant_id)
        if filters.search:
            term = filters.search.strip()
            query = query.where(
                or_(
                    Product.name.icontains(term, autoescape=True),
                    Product.sku.icontains(term, autoescape=True),
                    Product.description.icontains(term, autoescape=True),
                )
            )
        if filters.categories:
            query = query.where(Product.category.in_(filters.categories))
        if filters.vendors:
            query = query.where(Product.vendor.in_(filters.vendors))
        if filters.min_price is not None:
            query = query.where(Product.price >= float(filters.min_price))
        if filters.max_price is not None:
            query = query.where(Product.price <= float(filters.max_price))
        if filters.stock_status == OUT_OF_STOCK:
            query = query.where(Product.quantity <= 0)
        elif filters.stock_status == LOW_STOCK:
            query = query.where(Product.quantity > 0, Product.quantity <= filters.threshold)
        elif filters.stock_status == IN_STOCK:
            query = query.where(Product.quantity > filters.threshold)
        return query

    @staticmethod
    def _resolve_sort_column(sort_by: str):
        sort_mapping = {
            "name": Product.name,
            "sku": Product.sku,
            "price": Product.price,
            "quantity": Product.quantity,
            "category": Product.category,
            "vendor": Product.vendor,
            "created_at": Product.created_at,
            "updated_at": Product.updated_at,
        }
        return sort_mapping.get(sort_by, Product.updated_at)
