from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.money import CENT

DENOMINATIONS: tuple[tuple[str, Decimal], ...] = (
    ("$100 Bills", Decimal("100")),
    ("$50 Bills", Decimal("50")),
    ("$20 Bills", Decimal("20")),
    ("$10 Bills", Decimal("10")),
    ("$5 Bills", Decimal("5")),
    ("$1 Bills", Decimal("1")),
    ("Quarters", Decimal("0.25")),
    ("Dimes", Decimal("0.10")),
    ("Nickels", Decimal("0.05")),
    ("Pennies", Decimal("0.01")),
)

_FACE_VALUES = dict(DENOMINATIONS)

BALANCED = "Balanced"
DISCREPANCY = "Discrepancy"


def count_total(counts: Mapping[str, int]) -> Decimal:
    """Sum of count x face value; labels missing from ``counts`` count as zero."""
    total = Decimal("0")
    for label, count in counts.items():
        face_value = _FACE_VALUES.get(label)
        if face_value is None:
            raise AppError(ErrorCatalog.UNKNOWN_DENOMINATION, details={"denomination": label})
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "denomination counts must be non-negative integers", "denomination": label},
            )
        total += face_value * count
    return total.quantize(CENT)


def normalize_counts(counts: Mapping[str, int]) -> dict[str, int]:
    """Full breakdown in table order, zero-filled."""
    return {label: int(counts.get(label, 0)) for label, _value in DENOMINATIONS}


@dataclass(frozen=True)
class Reconciliation:
    expected: Decimal
    counted: Decimal
    difference: Decimal
    status: str


def reconcile(expected: Decimal, counted: Decimal) -> Reconciliation:
    expected = Decimal(str(expected)).quantize(CENT)
    counted = Decimal(str(counted)).quantize(CENT)
    difference = counted - expected
    return Reconciliation(
        expected=expected,
        counted=counted,
        difference=difference,
        status=BALANCED if difference == 0 else DISCREPANCY,
    )
