"""
Compute Pipeline — расчёт строки продажи

Чистые функции без состояния. Последовательность стадий (без возвратов):

    INIT → GROSS_COMPUTED → DISCOUNTS_APPLIED → TAXES_APPLIED → ROUNDED → DONE

1. gross_amount = unit_price * quantity (точно, без округления)
2. Скидки по порядку, каждая от текущей базы → taxable_base, discount_total
3. Налоги по порядку, база выбирается по stage → tax_total, line taxes
4. grand_total = taxable_base + tax_total
5. Округление grand_total и пересчёт цены за единицу:
       recalculated_unit_value = round(round(grand_total) / quantity)

Процентные скидки и налоги округляются политикой rounding, фиксированные
(FIXED, FIXED_PER_UNIT) берутся точно; остаток меньше цента поглощается
округлением grand_total. taxable_base == gross_amount - discount_total точно.

compute_line_from_brute решает обратную задачу: по итогу с налогами
находит цену за единицу. Без clamp скидок итог аффинен по gross:
    grand = gamma * gross + delta
откуда gross = (brute - delta) / gamma.

Ошибка на любой стадии выбрасывается с stage = последнее достигнутое состояние.
Единственный восстанавливаемый случай — qty == 0 на стадии 5: поле
recalculated_unit_value отсутствует, расчёт не прерывается.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from src.core.domain.calculation import (
    Calculation,
    DiscountLine,
    LineTax,
    WithDiscountBreakdown,
    WithoutDiscountBreakdown,
)
from src.core.domain.entries import Discount, DiscountMode, Tax, TaxMode, TaxStage
from src.core.errors import (
    DiscountLimitExceeded,
    DivisionByZero,
    ErrorKind,
    InvalidDiscountValue,
    InvalidQuantity,
    InvalidUnitPrice,
    NegativeBalance,
    PipelineStage,
)
from src.core.math.decimal_value import DecimalValue, RoundingPolicy

logger = logging.getLogger(__name__)


# =============================================================================
# STAGE RESULTS
# =============================================================================


@dataclass(frozen=True)
class DiscountStageResult:
    """Результат стадии скидок."""

    taxable_base: DecimalValue
    discount_total: DecimalValue
    lines: tuple[DiscountLine, ...]
    clamped: bool


@dataclass(frozen=True)
class TaxStageResult:
    """Результат стадии налогов."""

    tax_total: DecimalValue
    lines: tuple[LineTax, ...]


# =============================================================================
# 1. GROSS
# =============================================================================


def compute_gross(unit_price: DecimalValue, quantity: DecimalValue) -> DecimalValue:
    """
    Валовая сумма строки.

    Raises:
        InvalidQuantity: quantity < 0 (проверяется первым)
        InvalidUnitPrice: unit_price < 0
    """
    if quantity.is_negative():
        raise InvalidQuantity(f"negative quantity {quantity}", stage=PipelineStage.INIT)

    if unit_price.is_negative():
        raise InvalidUnitPrice(f"negative unit price {unit_price}", stage=PipelineStage.INIT)

    return unit_price * quantity


# =============================================================================
# 2. DISCOUNTS
# =============================================================================


def discount_effect(
    discount: Discount,
    running_base: DecimalValue,
    quantity: DecimalValue,
    rounding: RoundingPolicy,
) -> DecimalValue:
    """
    Сумма скидки от текущей базы (без clamp).

    Округляется только процентная скидка; фиксированные суммы точные.
    """
    if discount.mode == DiscountMode.PERCENTUAL:
        return running_base.percent(discount.amount).round_with(rounding)
    if discount.mode == DiscountMode.FIXED:
        return discount.amount
    # FIXED_PER_UNIT
    return discount.amount * quantity


def apply_discounts(
    discounts: Sequence[Discount],
    gross_amount: DecimalValue,
    quantity: DecimalValue,
    rounding: RoundingPolicy,
    clamp_fixed_discounts: bool = True,
) -> DiscountStageResult:
    """
    Последовательное применение скидок.

    Каждая скидка считается от базы, оставшейся после всех предыдущих.
    Скидка больше текущей базы урезается до базы; для фиксированных
    скидок при clamp_fixed_discounts=False вместо этого NegativeBalance.

    Raises:
        NegativeBalance: Фиксированная скидка превышает базу без clamp
    """
    running_base = gross_amount
    discount_total = DecimalValue.zero()
    lines: list[DiscountLine] = []
    any_clamped = False

    for index, discount in enumerate(discounts):
        effect = discount_effect(discount, running_base, quantity, rounding)
        clamped = False

        if effect > running_base:
            if discount.mode != DiscountMode.PERCENTUAL and not clamp_fixed_discounts:
                raise NegativeBalance(
                    f"discount #{index} ({discount.label()}) = {effect} "
                    f"exceeds running base {running_base}",
                    stage=PipelineStage.GROSS_COMPUTED,
                )
            logger.warning(
                "Discount #%d (%s) = %s exceeds running base %s, clamped to base",
                index,
                discount.label(),
                effect,
                running_base,
            )
            effect = running_base
            clamped = True
            any_clamped = True

        lines.append(
            DiscountLine(discount=discount, base=running_base, effect=effect, clamped=clamped)
        )
        running_base = running_base - effect
        discount_total = discount_total + effect

    return DiscountStageResult(
        taxable_base=running_base,
        discount_total=discount_total,
        lines=tuple(lines),
        clamped=any_clamped,
    )


# =============================================================================
# 3. TAXES
# =============================================================================


def resolve_tax_base(
    stage: TaxStage,
    gross_amount: DecimalValue,
    taxable_base: DecimalValue,
    running_subtotal: DecimalValue,
) -> DecimalValue:
    """База налога по его стадии."""
    if stage == TaxStage.OVER_TAXABLE:
        return taxable_base
    if stage == TaxStage.OVER_GROSS:
        return gross_amount
    if stage == TaxStage.OVER_TAX:
        return running_subtotal
    raise ValueError(f"unknown tax stage {stage!r}")


def tax_amount(
    mode: TaxMode,
    value: DecimalValue,
    base: DecimalValue,
    quantity: DecimalValue,
    rounding: RoundingPolicy,
) -> DecimalValue:
    """Сумма одного налога от его базы (процентная округляется)."""
    if mode == TaxMode.PERCENTUAL:
        return base.percent(value).round_with(rounding)
    if mode == TaxMode.FIXED:
        return value
    # FIXED_PER_UNIT
    return value * quantity


def apply_taxes(
    taxes: Sequence[Tax],
    gross_amount: DecimalValue,
    taxable_base: DecimalValue,
    quantity: DecimalValue,
    rounding: RoundingPolicy,
) -> TaxStageResult:
    """
    Применение налогов.

    Каждый налог считается независимо от своей базы; налоги накладываются
    друг на друга только через стадию OVER_TAX.
    """
    running_subtotal = taxable_base
    tax_total = DecimalValue.zero()
    lines: list[LineTax] = []

    for tax in taxes:
        base = resolve_tax_base(tax.stage, gross_amount, taxable_base, running_subtotal)
        amount = tax_amount(tax.mode, tax.amount, base, quantity, rounding)

        lines.append(LineTax(tax=tax, base=base, amount=amount))
        running_subtotal = running_subtotal + amount
        tax_total = tax_total + amount

    return TaxStageResult(tax_total=tax_total, lines=tuple(lines))


# =============================================================================
# 5. ROUNDING & RECALCULATION
# =============================================================================


def recalculate_unit_value(
    rounded_total: DecimalValue,
    quantity: DecimalValue,
    rounding: RoundingPolicy,
) -> DecimalValue:
    """
    Цена за единицу, согласованная с округлённым итогом.

    Raises:
        DivisionByZero: quantity == 0
    """
    if quantity.is_zero():
        raise DivisionByZero(
            f"cannot recalculate unit value of {rounded_total} for zero quantity",
            stage=PipelineStage.ROUNDED,
        )
    return (rounded_total / quantity).round_with(rounding)


# =============================================================================
# PIPELINE
# =============================================================================


def compute_line(
    unit_price: DecimalValue,
    quantity: DecimalValue,
    discounts: Sequence[Discount],
    taxes: Sequence[Tax],
    rounding: RoundingPolicy,
    clamp_fixed_discounts: bool = True,
    max_discount_allowed: Optional[DecimalValue] = None,
) -> Calculation:
    """
    Полный расчёт строки.

    Args:
        unit_price: Цена за единицу (>= 0)
        quantity: Количество (>= 0)
        discounts: Скидки в порядке применения
        taxes: Налоги в порядке применения
        rounding: Политика округления сумм
        clamp_fixed_discounts: Урезать фиксированные скидки до базы
        max_discount_allowed: Верхний предел discount_total (опционально)

    Returns:
        Calculation

    Raises:
        InvalidQuantity, InvalidUnitPrice, NegativeBalance,
        InvalidDiscountValue, DiscountLimitExceeded
    """
    # 1. Gross
    gross_amount = compute_gross(unit_price, quantity)
    logger.debug("Stage %s: gross_amount=%s", PipelineStage.GROSS_COMPUTED.value, gross_amount)

    # 2. Discounts
    if max_discount_allowed is not None and max_discount_allowed.is_negative():
        raise InvalidDiscountValue(
            f"negative max_discount_allowed {max_discount_allowed}",
            stage=PipelineStage.GROSS_COMPUTED,
        )

    discounted = apply_discounts(
        discounts, gross_amount, quantity, rounding, clamp_fixed_discounts
    )

    if max_discount_allowed is not None and discounted.discount_total > max_discount_allowed:
        raise DiscountLimitExceeded(
            f"discount_total {discounted.discount_total} exceeds "
            f"max_discount_allowed {max_discount_allowed}",
            stage=PipelineStage.GROSS_COMPUTED,
        )

    taxable_base = discounted.taxable_base
    logger.debug(
        "Stage %s: discount_total=%s taxable_base=%s",
        PipelineStage.DISCOUNTS_APPLIED.value,
        discounted.discount_total,
        taxable_base,
    )

    # 3. Taxes
    taxed = apply_taxes(taxes, gross_amount, taxable_base, quantity, rounding)
    logger.debug("Stage %s: tax_total=%s", PipelineStage.TAXES_APPLIED.value, taxed.tax_total)

    # 4. Grand total + 5. Rounding
    grand_total = (taxable_base + taxed.tax_total).round_with(rounding)

    recalculated: Optional[DecimalValue] = None
    recalculation_error: Optional[ErrorKind] = None
    try:
        recalculated = recalculate_unit_value(grand_total, quantity, rounding)
    except DivisionByZero as e:
        logger.warning("Recalculated unit value unavailable: %s", e)
        recalculation_error = e.kind

    logger.debug("Stage %s: grand_total=%s", PipelineStage.ROUNDED.value, grand_total)

    # Без скидок: те же налоги от валовой суммы
    gross_taxes = apply_taxes(taxes, gross_amount, gross_amount, quantity, rounding)
    without_discount = WithoutDiscountBreakdown(
        net=gross_amount,
        tax_total=gross_taxes.tax_total,
        total=(gross_amount + gross_taxes.tax_total).round_with(rounding),
        unit_value=unit_price,
        line_taxes=gross_taxes.lines,
    )

    if gross_amount.is_zero():
        total_discount_percent = DecimalValue.zero().round_with(rounding)
    else:
        total_discount_percent = (
            discounted.discount_total * 100 / gross_amount
        ).round_with(rounding)

    with_discount = WithDiscountBreakdown(
        net=taxable_base,
        discount_total=discounted.discount_total,
        total_discount_percent=total_discount_percent,
        tax_total=taxed.tax_total,
        total=grand_total,
        unit_value=None if quantity.is_zero() else (taxable_base / quantity).round_with(rounding),
        saving=without_discount.total - grand_total,
        discount_lines=discounted.lines,
        line_taxes=taxed.lines,
    )

    calculation = Calculation(
        quantity=quantity,
        unit_value=unit_price,
        gross_amount=gross_amount,
        discount_total=discounted.discount_total,
        taxable_base=taxable_base,
        tax_total=taxed.tax_total,
        grand_total=grand_total,
        recalculated_unit_value=recalculated,
        recalculation_error=recalculation_error,
        discount_clamped=discounted.clamped,
        rounding=rounding,
        with_discount=with_discount,
        without_discount=without_discount,
    )
    logger.debug("Stage %s", PipelineStage.DONE.value)
    return calculation


# =============================================================================
# REVERSE CALCULATION
# =============================================================================


@dataclass(frozen=True)
class AffineAmount:
    """Сумма как функция валовой суммы: slope * gross + intercept."""

    slope: DecimalValue
    intercept: DecimalValue

    @classmethod
    def constant(cls, value: DecimalValue) -> "AffineAmount":
        return cls(DecimalValue.zero(), value)

    def __add__(self, other: "AffineAmount") -> "AffineAmount":
        return AffineAmount(self.slope + other.slope, self.intercept + other.intercept)

    def __sub__(self, other: "AffineAmount") -> "AffineAmount":
        return AffineAmount(self.slope - other.slope, self.intercept - other.intercept)

    def percent(self, rate: DecimalValue) -> "AffineAmount":
        return AffineAmount(self.slope.percent(rate), self.intercept.percent(rate))


def grand_total_as_affine(
    discounts: Sequence[Discount],
    taxes: Sequence[Tax],
    quantity: DecimalValue,
) -> AffineAmount:
    """
    grand_total (до округления) как аффинная функция gross_amount.

    Повторяет стадии 2-4 без округления процентных сумм и без clamp.
    """
    gross = AffineAmount(DecimalValue.parse("1"), DecimalValue.zero())

    taxable = gross
    for discount in discounts:
        if discount.mode == DiscountMode.PERCENTUAL:
            taxable = taxable - taxable.percent(discount.amount)
        elif discount.mode == DiscountMode.FIXED:
            taxable = taxable - AffineAmount.constant(discount.amount)
        else:  # FIXED_PER_UNIT
            taxable = taxable - AffineAmount.constant(discount.amount * quantity)

    running_subtotal = taxable
    tax_total = AffineAmount.constant(DecimalValue.zero())
    for tax in taxes:
        base = resolve_tax_base(tax.stage, gross, taxable, running_subtotal)
        if tax.mode == TaxMode.PERCENTUAL:
            amount = base.percent(tax.amount)
        elif tax.mode == TaxMode.FIXED:
            amount = AffineAmount.constant(tax.amount)
        else:  # FIXED_PER_UNIT
            amount = AffineAmount.constant(tax.amount * quantity)

        running_subtotal = running_subtotal + amount
        tax_total = tax_total + amount

    return taxable + tax_total


def compute_line_from_brute(
    brute: DecimalValue,
    quantity: DecimalValue,
    discounts: Sequence[Discount],
    taxes: Sequence[Tax],
    rounding: RoundingPolicy,
    clamp_fixed_discounts: bool = True,
    max_discount_allowed: Optional[DecimalValue] = None,
) -> Calculation:
    """
    Расчёт строки по итогу с налогами (brute).

    Находит gross_amount из grand = gamma * gross + delta, затем
    unit_price = gross / quantity и выполняет compute_line. Процентные
    суммы в прямом расчёте округляются, поэтому grand_total результата
    совпадает с brute с точностью до округления.

    Raises:
        InvalidQuantity: quantity < 0
        InvalidUnitPrice: brute < 0 или найденная цена отрицательна
        DivisionByZero: quantity == 0 или итог не зависит от цены
        NegativeBalance: найденная цена требует clamp скидки
    """
    if quantity.is_negative():
        raise InvalidQuantity(f"negative quantity {quantity}", stage=PipelineStage.INIT)
    if brute.is_negative():
        raise InvalidUnitPrice(f"negative brute {brute}", stage=PipelineStage.INIT)
    if quantity.is_zero():
        raise DivisionByZero(
            f"cannot derive unit price of {brute} for zero quantity",
            stage=PipelineStage.INIT,
        )

    affine = grand_total_as_affine(discounts, taxes, quantity)
    if affine.slope.is_zero():
        raise DivisionByZero(
            "grand total does not depend on unit price", stage=PipelineStage.INIT
        )

    gross_amount = (brute - affine.intercept) / affine.slope
    unit_price = gross_amount / quantity
    logger.debug(
        "Brute %s: grand = %s * gross + %s, unit_price=%s",
        brute,
        affine.slope,
        affine.intercept,
        unit_price,
    )

    calculation = compute_line(
        unit_price,
        quantity,
        discounts,
        taxes,
        rounding,
        clamp_fixed_discounts=clamp_fixed_discounts,
        max_discount_allowed=max_discount_allowed,
    )
    if calculation.discount_clamped:
        raise NegativeBalance(
            f"brute {brute} is below the configured fixed discounts and taxes",
            stage=PipelineStage.GROSS_COMPUTED,
        )
    return calculation
