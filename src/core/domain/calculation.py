"""
Calculation — Результат расчёта строки продажи

Immutable Pydantic модели, создаются один раз на каждый вызов compute
и после этого не изменяются.

Структура:
- Calculation: итоговые суммы строки
- WithDiscountBreakdown: значения с применёнными скидками
- WithoutDiscountBreakdown: те же налоги, как если бы скидок не было
- DiscountLine / LineTax: вклад каждой скидки и каждого налога
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.core.domain.entries import Discount, Tax
from src.core.errors import ErrorKind
from src.core.math.decimal_value import DecimalValue, RoundingPolicy


# =============================================================================
# LINE ITEMS
# =============================================================================


class DiscountLine(BaseModel):
    """Применение одной скидки к текущей базе."""

    discount: Discount
    base: DecimalValue = Field(..., description="Текущая база до этой скидки")
    effect: DecimalValue = Field(..., description="Сумма скидки (после clamp)")
    clamped: bool = Field(False, description="Скидка урезана до текущей базы")

    model_config = {"frozen": True}


class LineTax(BaseModel):
    """Сумма одного налога и база, от которой он посчитан."""

    tax: Tax
    base: DecimalValue = Field(..., description="База, выбранная по stage")
    amount: DecimalValue = Field(..., description="Сумма налога")

    model_config = {"frozen": True}


# =============================================================================
# BREAKDOWNS
# =============================================================================


class WithoutDiscountBreakdown(BaseModel):
    """Значения строки без скидок (для отчётности: налог без скидки)."""

    net: DecimalValue = Field(..., description="unit_price * qty")
    tax_total: DecimalValue
    total: DecimalValue = Field(..., description="net + tax_total, округлено")
    unit_value: DecimalValue = Field(..., description="Цена за единицу без скидок")
    line_taxes: tuple[LineTax, ...] = ()

    model_config = {"frozen": True}


class WithDiscountBreakdown(BaseModel):
    """Значения строки с применёнными скидками."""

    net: DecimalValue = Field(..., description="Налогооблагаемая база")
    discount_total: DecimalValue
    total_discount_percent: DecimalValue = Field(
        ..., description="discount_total в процентах от валовой суммы"
    )
    tax_total: DecimalValue
    total: DecimalValue = Field(..., description="net + tax_total, округлено")
    unit_value: Optional[DecimalValue] = Field(
        None, description="net / qty (None при qty == 0)"
    )
    saving: DecimalValue = Field(
        ..., description="Разница итогов без скидок и со скидками"
    )
    discount_lines: tuple[DiscountLine, ...] = ()
    line_taxes: tuple[LineTax, ...] = ()

    model_config = {"frozen": True}


# =============================================================================
# CALCULATION
# =============================================================================


class Calculation(BaseModel):
    """
    Результат расчёта строки.

    Immutable модель (frozen=True). Два вызова compute с одинаковыми входами
    дают равные Calculation.

    recalculated_unit_value отсутствует (None) при qty == 0, причина
    фиксируется в recalculation_error; остальные поля при этом валидны.
    """

    quantity: DecimalValue
    unit_value: DecimalValue = Field(..., description="Цена за единицу на входе")
    gross_amount: DecimalValue = Field(..., description="unit_value * quantity, точно")
    discount_total: DecimalValue
    taxable_base: DecimalValue = Field(..., description="gross_amount - discount_total")
    tax_total: DecimalValue
    grand_total: DecimalValue = Field(..., description="taxable_base + tax_total, округлено")
    recalculated_unit_value: Optional[DecimalValue] = Field(
        None, description="round(grand_total / quantity)"
    )
    recalculation_error: Optional[ErrorKind] = None
    discount_clamped: bool = False
    rounding: RoundingPolicy

    with_discount: WithDiscountBreakdown
    without_discount: WithoutDiscountBreakdown

    model_config = {"frozen": True}

    @property
    def line_taxes(self) -> tuple[LineTax, ...]:
        return self.with_discount.line_taxes

    def to_contract(self) -> Dict[str, Any]:
        """JSON представление (десятичные числа — строки)."""
        return self.model_dump(mode="json")

    def render(self) -> str:
        """Построчная расшифровка расчёта для чтения человеком."""
        width = 26
        lines = [
            f"{'Quantity:':<{width}}{self.quantity}",
            f"{'Unit value:':<{width}}{self.unit_value}",
            f"{'Gross amount:':<{width}}{self.gross_amount}",
        ]

        for item in self.with_discount.discount_lines:
            note = " (clamped)" if item.clamped else ""
            lines.append(
                f"{'  Discount ' + item.discount.label():<{width}}"
                f"-{item.effect} on {item.base}{note}"
            )

        lines.append(
            f"{'Discount total:':<{width}}{self.discount_total}"
            f" ({self.with_discount.total_discount_percent}%)"
        )
        lines.append(f"{'Taxable base:':<{width}}{self.taxable_base}")

        for item in self.with_discount.line_taxes:
            lines.append(
                f"{'  Tax ' + item.tax.label():<{width}}+{item.amount} on {item.base}"
            )

        lines.append(f"{'Tax total:':<{width}}{self.tax_total}")
        lines.append(f"{'Grand total:':<{width}}{self.grand_total}")

        if self.recalculated_unit_value is not None:
            lines.append(f"{'Recalculated unit value:':<{width}}{self.recalculated_unit_value}")
        else:
            reason = self.recalculation_error.value if self.recalculation_error else "n/a"
            lines.append(f"{'Recalculated unit value:':<{width}}n/a ({reason})")

        lines.append(
            f"{'Without discount:':<{width}}"
            f"net {self.without_discount.net}, "
            f"tax {self.without_discount.tax_total}, "
            f"total {self.without_discount.total}"
        )
        return "\n".join(lines)
