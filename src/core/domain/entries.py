"""
Entries — Скидки и налоги строки продажи

Неизменяемые pydantic модели, из которых Calculator собирает упорядоченные
списки скидок и налогов.

Режимы:
- PERCENTUAL: значение — процент от текущей базы
- FIXED: значение — абсолютная сумма на всю строку
- FIXED_PER_UNIT: значение — абсолютная сумма на единицу (умножается на qty)

Стадии налога (какая база используется):
- OVER_TAXABLE: налогооблагаемая база (после скидок)
- OVER_GROSS: валовая сумма (до скидок)
- OVER_TAX: текущий подитог = база после скидок + ранее применённые налоги
"""

from enum import Enum
from typing import Final

from pydantic import BaseModel, Field, model_validator

from src.core.errors import InvalidDiscountValue, InvalidTaxValue
from src.core.math.decimal_value import DecimalValue


# Максимальная процентная скидка
MAX_PERCENTUAL_DISCOUNT: Final[DecimalValue] = DecimalValue.hundred()


# =============================================================================
# ENUMS
# =============================================================================


class DiscountMode(str, Enum):
    """Режим скидки"""

    PERCENTUAL = "percentual"
    FIXED = "fixed"
    FIXED_PER_UNIT = "fixed_per_unit"


class TaxMode(str, Enum):
    """Режим налога"""

    PERCENTUAL = "percentual"
    FIXED = "fixed"
    FIXED_PER_UNIT = "fixed_per_unit"


class TaxStage(str, Enum):
    """Стадия налога: от какой суммы он считается"""

    OVER_TAXABLE = "over_taxable"
    OVER_GROSS = "over_gross"
    OVER_TAX = "over_tax"


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def check_discount_amount(amount: DecimalValue, mode: DiscountMode) -> None:
    """
    Проверка значения скидки.

    Raises:
        InvalidDiscountValue: amount < 0 или процентная скидка > 100
    """
    if amount.is_negative():
        raise InvalidDiscountValue(f"negative discount {amount}")

    if mode == DiscountMode.PERCENTUAL and amount > MAX_PERCENTUAL_DISCOUNT:
        raise InvalidDiscountValue(f"percentual discount over 100%: {amount}")


def check_tax_amount(amount: DecimalValue) -> None:
    """
    Проверка значения налога.

    Raises:
        InvalidTaxValue: amount < 0
    """
    if amount.is_negative():
        raise InvalidTaxValue(f"negative tax {amount}")


def _label(amount: DecimalValue, mode: str) -> str:
    if mode == "percentual":
        return f"{amount}%"
    if mode == "fixed":
        return f"{amount}"
    return f"{amount} per unit"


# =============================================================================
# MODELS
# =============================================================================


class Discount(BaseModel):
    """
    Скидка строки.

    Immutable модель (frozen=True): после добавления в Calculator не меняется.
    """

    amount: DecimalValue = Field(..., description="Процент или сумма скидки")
    mode: DiscountMode = Field(DiscountMode.PERCENTUAL, description="Режим скидки")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_amount(self) -> "Discount":
        check_discount_amount(self.amount, self.mode)
        return self

    def label(self) -> str:
        return _label(self.amount, self.mode.value)


class Tax(BaseModel):
    """
    Налог строки.

    Immutable модель (frozen=True): после добавления в Calculator не меняется.
    """

    amount: DecimalValue = Field(..., description="Ставка или сумма налога")
    mode: TaxMode = Field(TaxMode.PERCENTUAL, description="Режим налога")
    stage: TaxStage = Field(TaxStage.OVER_TAXABLE, description="База расчёта налога")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_amount(self) -> "Tax":
        check_tax_amount(self.amount)
        return self

    def label(self) -> str:
        return f"{_label(self.amount, self.mode.value)} {self.stage.value}"
