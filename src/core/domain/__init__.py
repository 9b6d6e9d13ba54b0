"""
Domain models and value objects.

Contains the sales line entries (Discount, Tax) and the Calculation result.
"""

from src.core.domain.calculation import (
    Calculation,
    DiscountLine,
    LineTax,
    WithDiscountBreakdown,
    WithoutDiscountBreakdown,
)
from src.core.domain.entries import (
    MAX_PERCENTUAL_DISCOUNT,
    Discount,
    DiscountMode,
    Tax,
    TaxMode,
    TaxStage,
    check_discount_amount,
    check_tax_amount,
)

__all__ = [
    # Entries
    "MAX_PERCENTUAL_DISCOUNT",
    "Discount",
    "DiscountMode",
    "Tax",
    "TaxMode",
    "TaxStage",
    "check_discount_amount",
    "check_tax_amount",
    # Calculation model
    "Calculation",
    "DiscountLine",
    "LineTax",
    "WithDiscountBreakdown",
    "WithoutDiscountBreakdown",
]
