from decimal import Decimal
from types import SimpleNamespace

from app.stockdesk.services.inventory import (
    IN_STOCK,
    LOW_STOCK,
    OUT_OF_STOCK,
    ProductFilter,
    filter_products,
    stock_status,
    summarize_stock,
    toggle,
)


def _product(sku, *, name=None, price="10", quantity=20, category=None, vendor=None, description=None):
    return SimpleNamespace(
        name=name or sku,
        sku=sku,
        description=description,
        price=Decimal(price),
        quantity=quantity,
        category=category,
        vendor=vendor,
    )


CATALOG = [
    _product("T-1", name="Green Tea", price="4", quantity=50, category="Tea", vendor="Leaf"),
    _product("T-2", name="Black Tea", price="6", quantity=3, category="Tea", vendor="Leaf"),
    _product("K-1", name="Mug", price="12", quantity=0, category="Kitchen", vendor="Clay", description="Stoneware"),
    _product("C-1", name="Filter", price="20", quantity=8, category="Coffee", vendor="Brew"),
]


def test_stock_status_boundaries():
    assert stock_status(0, 10) == OUT_OF_STOCK
    assert stock_status(-2, 10) == OUT_OF_STOCK
    assert stock_status(10, 10) == LOW_STOCK
    assert stock_status(11, 10) == IN_STOCK


def test_empty_filter_keeps_everything():
    assert filter_products(CATALOG, ProductFilter(threshold=5)) == CATALOG


def test_category_filter_is_set_membership():
    selected = ProductFilter(threshold=5, categories=frozenset({"Tea", "Kitchen"}))
    assert [product.sku for product in filter_products(CATALOG, selected)] == ["T-1", "T-2", "K-1"]


def test_search_matches_description_case_insensitively():
    assert [p.sku for p in filter_products(CATALOG, ProductFilter(threshold=5, search="STONE"))] == ["K-1"]


def test_price_range_and_stock_status_combine():
    product_filter = ProductFilter(
        threshold=5,
        min_price=Decimal("5"),
        max_price=Decimal("20"),
        stock_status=LOW_STOCK,
    )
    assert [p.sku for p in filter_products(CATALOG, product_filter)] == ["T-2"]


def test_toggle_twice_restores_selection():
    selection = frozenset({"Tea"})
    toggled = toggle(selection, "Coffee")
    assert toggled == {"Tea", "Coffee"}
    assert toggle(toggled, "Coffee") == selection


def test_summarize_stock():
    summary = summarize_stock(CATALOG, threshold=5)
    assert summary.total_items == 4
    assert summary.total_units == 61
    assert summary.low_stock_items == 1
    assert summary.out_of_stock_items == 1
    assert summary.inventory_value == Decimal("378.00")
