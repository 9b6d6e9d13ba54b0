"""Calculator — расчёт строки продажи: скидки, налоги, округление.

- Calculator: упорядоченная конфигурация скидок и налогов
- compute_line: чистый конвейер расчёта
"""

from .calculator import Calculator
from .config import CalculatorConfig
from .pipeline import (
    AffineAmount,
    DiscountStageResult,
    TaxStageResult,
    apply_discounts,
    apply_taxes,
    compute_gross,
    compute_line,
    compute_line_from_brute,
    discount_effect,
    grand_total_as_affine,
    recalculate_unit_value,
    resolve_tax_base,
    tax_amount,
)

__all__ = [
    "Calculator",
    "CalculatorConfig",
    "AffineAmount",
    "DiscountStageResult",
    "TaxStageResult",
    "apply_discounts",
    "apply_taxes",
    "compute_gross",
    "compute_line",
    "compute_line_from_brute",
    "discount_effect",
    "grand_total_as_affine",
    "recalculate_unit_value",
    "resolve_tax_base",
    "tax_amount",
]
