"""
Core math modules

Точная десятичная арифметика для денежных расчётов.
"""

from src.core.math.decimal_value import (
    DECIMAL_PRECISION,
    DEFAULT_CURRENCY_PLACES,
    DecimalValue,
    RoundingMode,
    RoundingPolicy,
)

__all__ = [
    "DECIMAL_PRECISION",
    "DEFAULT_CURRENCY_PLACES",
    "DecimalValue",
    "RoundingMode",
    "RoundingPolicy",
]
