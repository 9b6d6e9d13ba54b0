"""
Тесты для Calculator

Покрывает:
- add_* : порядок, отклонение некорректных записей без изменения списка
- compute : эталонный сценарий, qty = 0, идемпотентность, tax_override
- compute_from_str : парсинг строковых входов
- line_tax : прямой расчёт одного налога
- compute_from_brute : обратный расчёт от итога с налогами
- CalculatorConfig : политика округления, clamp фиксированных скидок
"""

import pytest

from src.calculator import Calculator, CalculatorConfig
from src.core.domain import DiscountMode, TaxMode, TaxStage
from src.core.errors import (
    CalculatorError,
    DiscountLimitExceeded,
    DivisionByZero,
    ErrorKind,
    InvalidDiscountValue,
    InvalidQuantity,
    InvalidTaxValue,
    InvalidUnitPrice,
    NegativeBalance,
    ParseError,
    PipelineStage,
)
from src.core.math.decimal_value import DecimalValue, RoundingMode, RoundingPolicy


def d(text: str) -> DecimalValue:
    return DecimalValue.parse(text)


@pytest.fixture
def calculator():
    """Скидка 10%, налог 16% над taxable"""
    calc = Calculator()
    calc.add_discount_from_str("10", DiscountMode.PERCENTUAL)
    calc.add_tax_from_str("16", TaxStage.OVER_TAXABLE, TaxMode.PERCENTUAL)
    return calc


# =============================================================================
# КОНФИГУРАЦИЯ
# =============================================================================


class TestConfiguration:
    """Тесты add_discount / add_tax"""

    def test_empty_by_default(self):
        calc = Calculator()
        assert calc.discounts == ()
        assert calc.taxes == ()
        assert calc.config == CalculatorConfig()

    def test_entries_kept_in_insertion_order(self):
        calc = Calculator()
        calc.add_discount("5", DiscountMode.FIXED)
        calc.add_discount("10")
        calc.add_tax("16")
        calc.add_tax("1", TaxStage.OVER_GROSS, TaxMode.FIXED)

        assert [x.mode for x in calc.discounts] == [DiscountMode.FIXED, DiscountMode.PERCENTUAL]
        assert [x.stage for x in calc.taxes] == [TaxStage.OVER_TAXABLE, TaxStage.OVER_GROSS]

    def test_add_returns_entry(self):
        calc = Calculator()
        discount = calc.add_discount(d("2.50"), DiscountMode.FIXED_PER_UNIT)
        assert discount.amount == d("2.5")
        assert calc.discounts == (discount,)

    def test_negative_discount_rejected_and_not_added(self):
        calc = Calculator()
        with pytest.raises(InvalidDiscountValue):
            calc.add_discount("-1")
        assert calc.discounts == ()

    def test_percentual_discount_over_hundred_rejected(self):
        calc = Calculator()
        with pytest.raises(InvalidDiscountValue):
            calc.add_discount_from_str("100.5")
        assert calc.discounts == ()

    def test_negative_tax_rejected_and_not_added(self, calculator):
        with pytest.raises(InvalidTaxValue):
            calculator.add_tax("-16")
        assert len(calculator.taxes) == 1

    def test_unparseable_entry_rejected(self, calculator):
        with pytest.raises(ParseError):
            calculator.add_tax_from_str("sixteen")
        with pytest.raises(ParseError):
            calculator.add_discount_from_str("")
        assert len(calculator.taxes) == 1
        assert len(calculator.discounts) == 1

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Calculator().add_discount(0.1)

    def test_exposed_lists_are_read_only(self, calculator):
        assert isinstance(calculator.discounts, tuple)
        assert isinstance(calculator.taxes, tuple)


# =============================================================================
# РАСЧЁТ
# =============================================================================


class TestCompute:
    """Тесты compute / compute_from_str"""

    def test_reference_scenario(self, calculator):
        """100.00 x 2, скидка 10%, налог 16%"""
        result = calculator.compute_from_str("100.00", "2")

        assert result.gross_amount == d("200.00")
        assert result.discount_total == d("20.00")
        assert result.taxable_base == d("180.00")
        assert result.tax_total == d("28.80")
        assert str(result.grand_total) == "208.80"
        assert str(result.recalculated_unit_value) == "104.40"
        assert result.quantity == d("2")
        assert result.unit_value == d("100.00")

    def test_breakdowns(self, calculator):
        result = calculator.compute("100.00", 2)

        assert result.without_discount.net == d("200.00")
        assert result.without_discount.tax_total == d("32.00")
        assert result.without_discount.total == d("232.00")
        assert result.without_discount.unit_value == d("100.00")

        assert result.with_discount.net == d("180.00")
        assert result.with_discount.total == d("208.80")
        assert result.with_discount.unit_value == d("90.00")
        assert result.with_discount.total_discount_percent == d("10.00")
        assert result.with_discount.saving == d("23.20")

    def test_no_entries(self):
        result = Calculator().compute("19.99", "3")

        assert result.gross_amount == d("59.97")
        assert result.discount_total.is_zero()
        assert result.tax_total.is_zero()
        assert result.grand_total == d("59.97")
        assert result.recalculated_unit_value == d("19.99")

    def test_zero_quantity(self, calculator):
        result = calculator.compute_from_str("100.00", "0")

        assert result.grand_total.is_zero()
        assert result.recalculated_unit_value is None
        assert result.recalculation_error == ErrorKind.DIVISION_BY_ZERO
        assert result.with_discount.total_discount_percent.is_zero()

    def test_zero_price(self, calculator):
        result = calculator.compute("0", "5")
        assert result.grand_total.is_zero()
        assert result.recalculated_unit_value == d("0.00")

    def test_idempotent(self, calculator):
        first = calculator.compute_from_str("37.45", "3.5")
        second = calculator.compute_from_str("37.45", "3.5")
        assert first == second

    def test_compute_does_not_change_configuration(self, calculator):
        before = (calculator.discounts, calculator.taxes)
        calculator.compute("10", "1", tax_override="8")
        assert (calculator.discounts, calculator.taxes) == before

    def test_tax_override_replaces_taxes(self, calculator):
        calculator.add_tax("1", TaxStage.OVER_GROSS, TaxMode.FIXED)
        result = calculator.compute_from_str("100.00", "2", "8")

        # 8% от 180.00
        assert result.tax_total == d("14.40")
        assert len(result.line_taxes) == 1
        assert result.line_taxes[0].tax.stage == TaxStage.OVER_TAXABLE

    def test_negative_tax_override(self, calculator):
        with pytest.raises(InvalidTaxValue):
            calculator.compute("100", "1", tax_override="-1")

    def test_negative_quantity_checked_before_price(self, calculator):
        with pytest.raises(InvalidQuantity) as exc_info:
            calculator.compute("-1", "-1")
        assert exc_info.value.stage == PipelineStage.INIT
        assert "after init" in str(exc_info.value)

    def test_negative_price(self, calculator):
        with pytest.raises(InvalidUnitPrice):
            calculator.compute("-1", "1")

    def test_unparseable_input(self, calculator):
        with pytest.raises(ParseError):
            calculator.compute_from_str("12,50", "1")
        with pytest.raises(ParseError):
            calculator.compute_from_str("12.50", "two")

    def test_errors_share_base_class(self, calculator):
        with pytest.raises(CalculatorError):
            calculator.compute_from_str("abc", "1")

    def test_max_discount_allowed(self, calculator):
        with pytest.raises(DiscountLimitExceeded):
            calculator.compute("100.00", "2", max_discount_allowed="19.99")

        result = calculator.compute("100.00", "2", max_discount_allowed="20")
        assert result.discount_total == d("20.00")

    def test_max_discount_allowed_from_str(self, calculator):
        with pytest.raises(DiscountLimitExceeded):
            calculator.compute_from_str("100.00", "2", max_discount_allowed="5")

    def test_rounding_override(self):
        calc = Calculator()
        calc.add_tax("12.5")

        # 1.00 * 12.5% = 0.125
        half_up = calc.compute("1.00", "1")
        half_even = calc.compute("1.00", "1", rounding=RoundingPolicy(2, RoundingMode.HALF_EVEN))

        assert half_up.tax_total == d("0.13")
        assert half_even.tax_total == d("0.12")
        assert half_even.rounding.mode == RoundingMode.HALF_EVEN


class TestCalculatorConfig:
    """Тесты CalculatorConfig"""

    def test_defaults(self):
        config = CalculatorConfig()
        assert config.rounding == RoundingPolicy()
        assert config.clamp_fixed_discounts is True

    def test_rounding_from_config(self):
        calc = Calculator(CalculatorConfig(rounding=RoundingPolicy(places=3)))
        calc.add_tax("16")

        result = calc.compute("0.999", "1")
        # 0.999 * 16% = 0.15984 → 0.160
        assert str(result.tax_total) == "0.160"
        assert str(result.grand_total) == "1.159"

    def test_fixed_discount_clamped_by_default(self):
        calc = Calculator()
        calc.add_discount("15", DiscountMode.FIXED)

        result = calc.compute("10.00", "1")
        assert result.taxable_base.is_zero()
        assert result.discount_clamped

    def test_clamp_disabled(self):
        calc = Calculator(CalculatorConfig(clamp_fixed_discounts=False))
        calc.add_discount("15", DiscountMode.FIXED)

        with pytest.raises(NegativeBalance):
            calc.compute("10.00", "1")


# =============================================================================
# LINE TAX
# =============================================================================


class TestLineTax:
    """Тесты line_tax"""

    def test_percentual(self):
        assert Calculator().line_tax("180.00", "2", "16") == d("28.80")

    def test_fixed_per_unit(self):
        assert Calculator().line_tax("180.00", "3", "0.5", TaxMode.FIXED_PER_UNIT) == d("1.50")

    def test_does_not_touch_tax_list(self, calculator):
        calculator.line_tax("10", "1", "5")
        assert len(calculator.taxes) == 1

    def test_negative_inputs(self):
        calc = Calculator()
        with pytest.raises(InvalidTaxValue):
            calc.line_tax("-1", "1", "16")
        with pytest.raises(InvalidQuantity):
            calc.line_tax("1", "-1", "16")
        with pytest.raises(InvalidTaxValue):
            calc.line_tax("1", "1", "-16")


# =============================================================================
# ОБРАТНЫЙ РАСЧЁТ
# =============================================================================


class TestComputeFromBrute:
    """Тесты compute_from_brute"""

    def test_reference_scenario(self, calculator):
        result = calculator.compute_from_brute_str("208.80", "2")

        assert result.unit_value == d("100")
        assert str(result.grand_total) == "208.80"

    @pytest.mark.parametrize("brute", ["208.80", "100.00", "1044.00", "0.01"])
    def test_forward_compute_reproduces_brute(self, calculator, brute):
        reversed_line = calculator.compute_from_brute(brute, "2")
        forward = calculator.compute(reversed_line.unit_value, "2")

        assert forward.grand_total == d(brute)
        assert forward == reversed_line

    def test_fixed_entries(self):
        calc = Calculator()
        calc.add_discount("1", DiscountMode.FIXED_PER_UNIT)
        calc.add_tax("16")
        calc.add_tax("0.50", TaxStage.OVER_TAX, TaxMode.FIXED)

        # 4 x 10.00: taxable 36.00, налоги 5.76 + 0.50
        assert calc.compute("10.00", "4").grand_total == d("42.26")

        result = calc.compute_from_brute("42.26", "4")
        assert result.unit_value == d("10")
        assert result.grand_total == d("42.26")

    def test_configuration_unchanged(self, calculator):
        before = (calculator.discounts, calculator.taxes)
        calculator.compute_from_brute("100", "1")
        assert (calculator.discounts, calculator.taxes) == before

    def test_zero_quantity(self, calculator):
        with pytest.raises(DivisionByZero):
            calculator.compute_from_brute("100", "0")

    def test_max_discount_allowed(self, calculator):
        with pytest.raises(DiscountLimitExceeded):
            calculator.compute_from_brute_str("208.80", "2", max_discount_allowed="10")

    def test_unparseable_input(self, calculator):
        with pytest.raises(ParseError):
            calculator.compute_from_brute_str("208,80", "2")

    def test_brute_below_fixed_discount(self):
        calc = Calculator()
        calc.add_discount("10", DiscountMode.FIXED)
        calc.add_tax("5", mode=TaxMode.FIXED)

        with pytest.raises(NegativeBalance):
            calc.compute_from_brute("3", "1")


class TestPrecision:
    """Длинные входы"""

    def test_long_inputs_exact(self):
        result = Calculator().compute_from_str(
            "0.1234567890123456789012345678901234567890123", "1234567.1234567"
        )
        assert str(result.gross_amount).endswith("11593815481741")

    def test_fifty_digit_price_is_not_a_raw_decimal_error(self):
        price = "1" + "0" * 49
        result = Calculator().compute_from_str(price, "1")
        assert str(result.grand_total) == price + ".00"

    def test_sub_cent_fixed_taxes_kept(self):
        calc = Calculator()
        calc.add_tax("0.004", mode=TaxMode.FIXED)
        calc.add_tax("0.004", mode=TaxMode.FIXED)

        result = calc.compute("100", "1")
        assert result.tax_total == d("0.008")
        assert result.grand_total == d("100.01")
