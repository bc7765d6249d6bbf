"""Catalog helpers that work on plain product objects.

Anything with ``name``, ``sku``, ``description``, ``category``, ``vendor``,
``price`` and ``quantity`` attributes is accepted, so the same rules apply to
ORM rows and to lightweight test doubles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"
STOCK_STATUSES = (IN_STOCK, LOW_STOCK, OUT_OF_STOCK)


def stock_status(quantity: int, threshold: int) -> str:
    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity <= threshold:
        return LOW_STOCK
    return IN_STOCK


@dataclass(frozen=True)
class ProductFilter:
    threshold: int
    search: str = ""
    categories: frozenset[str] = field(default_factory=frozenset)
    vendors: frozenset[str] = field(default_factory=frozenset)
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    stock_status: str | None = None

    def matches(self, product) -> bool:
        if self.search:
            needle = self.search.strip().lower()
            haystack = (product.name or "", product.sku or "", getattr(product, "description", None) or "")
            if not any(needle in value.lower() for value in haystack):
                return False
        if self.categories and product.category not in self.categories:
            return False
        if self.vendors and product.vendor not in self.vendors:
            return False
        price = Decimal(str(product.price))
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        if self.stock_status and stock_status(product.quantity, self.threshold) != self.stock_status:
            return False
        return True


def filter_products(products: Iterable, product_filter: ProductFilter) -> list:
    return [product for product in products if product_filter.matches(product)]


def toggle(selection: frozenset[str], value: str) -> frozenset[str]:
    """Add ``value`` to a set-valued filter, or remove it if already selected."""
    if value in selection:
        return selection - {value}
    return selection | {value}


@dataclass(frozen=True)
class StockSummary:
    total_items: int
    total_units: int
    low_stock_items: int
    out_of_stock_items: int
    inventory_value: Decimal


def summarize_stock(products: Iterable, threshold: int) -> StockSummary:
    total_items = 0
    total_units = 0
    low = 0
    out = 0
    value = Decimal("0")
    for product in products:
        total_items += 1
        total_units += max(product.quantity, 0)
        status = stock_status(product.quantity, threshold)
        if status == LOW_STOCK:
            low += 1
        elif status == OUT_OF_STOCK:
            out += 1
        value += Decimal(str(product.price)) * max(product.quantity, 0)
    return StockSummary(
        total_items=total_items,
        total_units=total_units,
        low_stock_items=low,
        out_of_stock_items=out,
        inventory_value=value.quantize(Decimal("0.01")),
    )
