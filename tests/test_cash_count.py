from decimal import Decimal

import pytest

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.services.cash_count import (
    BALANCED,
    DENOMINATIONS,
    DISCREPANCY,
    count_total,
    normalize_counts,
    reconcile,
)


def test_all_zero_counts_total_zero():
    assert count_total({label: 0 for label, _value in DENOMINATIONS}) == Decimal("0.00")
    assert count_total({}) == Decimal("0.00")


def test_mixed_counts():
    counts = {"$20 Bills": 3, "$1 Bills": 4, "Quarters": 3, "Dimes": 2, "Pennies": 7}
    assert count_total(counts) == Decimal("65.02")


def test_unknown_denomination_is_rejected():
    with pytest.raises(AppError) as exc_info:
        count_total({"$2 Bills": 1})
    assert exc_info.value.error is ErrorCatalog.UNKNOWN_DENOMINATION


def test_negative_count_is_rejected():
    with pytest.raises(AppError) as exc_info:
        count_total({"Dimes": -1})
    assert exc_info.value.error is ErrorCatalog.VALIDATION_ERROR


def test_normalize_counts_fills_every_denomination():
    normalized = normalize_counts({"Nickels": 2})
    assert list(normalized) == [label for label, _value in DENOMINATIONS]
    assert normalized["Nickels"] == 2
    assert normalized["$100 Bills"] == 0


def test_reconcile_status():
    balanced = reconcile(Decimal("150.00"), Decimal("150"))
    short = reconcile(Decimal("150.00"), Decimal("149.75"))

    assert balanced.status == BALANCED
    assert balanced.difference == Decimal("0.00")
    assert short.status == DISCREPANCY
    assert short.difference == Decimal("-0.25")
