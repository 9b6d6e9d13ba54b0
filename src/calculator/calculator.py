"""
Calculator — конфигурация скидок и налогов строки продажи

Упорядоченные списки Discount и Tax, только добавление. Порядок значим:
каждая запись применяется к базе, оставшейся после всех предыдущих записей
своего списка, поэтому переупорядочивание и удаление не поддерживаются.

Calculator хранит только конфигурацию и переиспользуется для любого числа
вызовов compute. Добавление записей не потокобезопасно: экземпляр должен
изменяться одним вызывающим кодом (или под внешней блокировкой).

Ошибки конфигурации выбрасываются из add_* сразу, отклонённая запись
не добавляется.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from src.calculator.config import CalculatorConfig
from src.calculator.pipeline import compute_line, compute_line_from_brute, tax_amount
from src.core.domain.calculation import Calculation
from src.core.domain.entries import (
    Discount,
    DiscountMode,
    Tax,
    TaxMode,
    TaxStage,
    check_discount_amount,
    check_tax_amount,
)
from src.core.errors import InvalidQuantity, InvalidTaxValue
from src.core.math.decimal_value import DecimalValue, RoundingPolicy

logger = logging.getLogger(__name__)

DecimalInput = Union[DecimalValue, Decimal, int, str]


class Calculator:
    """Калькулятор строки продажи.

    Пример:
        calc = Calculator()
        calc.add_discount_from_str("10", DiscountMode.PERCENTUAL)
        calc.add_tax_from_str("16", TaxStage.OVER_TAXABLE, TaxMode.PERCENTUAL)
        result = calc.compute_from_str("100.00", "2")
        result.grand_total  # DecimalValue('208.80')
    """

    def __init__(self, config: Optional[CalculatorConfig] = None):
        """
        Args:
            config: конфигурация (опционально, используется default)
        """
        self.config = config or CalculatorConfig()
        self._discounts: list[Discount] = []
        self._taxes: list[Tax] = []

    @property
    def discounts(self) -> tuple[Discount, ...]:
        return tuple(self._discounts)

    @property
    def taxes(self) -> tuple[Tax, ...]:
        return tuple(self._taxes)

    # -------------------------------------------------------------------------
    # Конфигурация
    # -------------------------------------------------------------------------

    def add_discount(
        self,
        amount: DecimalInput,
        mode: DiscountMode = DiscountMode.PERCENTUAL,
    ) -> Discount:
        """
        Добавление скидки в конец списка.

        Raises:
            InvalidDiscountValue: amount < 0 или процентная скидка > 100
        """
        amount = DecimalValue.of(amount)
        check_discount_amount(amount, mode)

        discount = Discount(amount=amount, mode=mode)
        self._discounts.append(discount)
        logger.debug("Discount #%d added: %s", len(self._discounts) - 1, discount.label())
        return discount

    def add_discount_from_str(
        self,
        text: str,
        mode: DiscountMode = DiscountMode.PERCENTUAL,
    ) -> Discount:
        """
        Raises:
            ParseError: text не является десятичным числом
            InvalidDiscountValue: см. add_discount
        """
        return self.add_discount(DecimalValue.parse(text), mode)

    def add_tax(
        self,
        amount: DecimalInput,
        stage: TaxStage = TaxStage.OVER_TAXABLE,
        mode: TaxMode = TaxMode.PERCENTUAL,
    ) -> Tax:
        """
        Добавление налога в конец списка.

        Raises:
            InvalidTaxValue: amount < 0
        """
        amount = DecimalValue.of(amount)
        check_tax_amount(amount)

        tax = Tax(amount=amount, mode=mode, stage=stage)
        self._taxes.append(tax)
        logger.debug("Tax #%d added: %s", len(self._taxes) - 1, tax.label())
        return tax

    def add_tax_from_str(
        self,
        text: str,
        stage: TaxStage = TaxStage.OVER_TAXABLE,
        mode: TaxMode = TaxMode.PERCENTUAL,
    ) -> Tax:
        """
        Raises:
            ParseError: text не является десятичным числом
            InvalidTaxValue: см. add_tax
        """
        return self.add_tax(DecimalValue.parse(text), stage, mode)

    # -------------------------------------------------------------------------
    # Расчёт
    # -------------------------------------------------------------------------

    def compute(
        self,
        unit_price: DecimalInput,
        quantity: DecimalInput,
        tax_override: Optional[DecimalInput] = None,
        *,
        rounding: Optional[RoundingPolicy] = None,
        max_discount_allowed: Optional[DecimalInput] = None,
    ) -> Calculation:
        """
        Расчёт строки по текущей конфигурации.

        Args:
            unit_price: Цена за единицу
            quantity: Количество
            tax_override: Единая процентная ставка (OVER_TAXABLE) вместо
                настроенного списка налогов
            rounding: Политика округления (default: config.rounding)
            max_discount_allowed: Верхний предел суммы скидок

        Returns:
            Calculation

        Raises:
            InvalidQuantity, InvalidUnitPrice, InvalidTaxValue,
            NegativeBalance, DiscountLimitExceeded
        """
        taxes = self.taxes
        if tax_override is not None:
            override = DecimalValue.of(tax_override)
            check_tax_amount(override)
            taxes = (Tax(amount=override, mode=TaxMode.PERCENTUAL, stage=TaxStage.OVER_TAXABLE),)

        return compute_line(
            unit_price=DecimalValue.of(unit_price),
            quantity=DecimalValue.of(quantity),
            discounts=self.discounts,
            taxes=taxes,
            rounding=rounding or self.config.rounding,
            clamp_fixed_discounts=self.config.clamp_fixed_discounts,
            max_discount_allowed=(
                None if max_discount_allowed is None else DecimalValue.of(max_discount_allowed)
            ),
        )

    def compute_from_str(
        self,
        unit_price: str,
        quantity: str,
        tax_override: Optional[str] = None,
        *,
        rounding: Optional[RoundingPolicy] = None,
        max_discount_allowed: Optional[str] = None,
    ) -> Calculation:
        """
        compute для строковых входов.

        Raises:
            ParseError: любая из строк не является десятичным числом
        """
        return self.compute(
            DecimalValue.parse(unit_price),
            DecimalValue.parse(quantity),
            None if tax_override is None else DecimalValue.parse(tax_override),
            rounding=rounding,
            max_discount_allowed=(
                None if max_discount_allowed is None else DecimalValue.parse(max_discount_allowed)
            ),
        )

    def compute_from_brute(
        self,
        brute: DecimalInput,
        quantity: DecimalInput,
        *,
        rounding: Optional[RoundingPolicy] = None,
        max_discount_allowed: Optional[DecimalInput] = None,
    ) -> Calculation:
        """
        Обратный расчёт: строка, итог которой с налогами равен brute.

        Цена за единицу выводится из настроенных скидок и налогов, затем
        выполняется обычный compute.

        Raises:
            InvalidQuantity, InvalidUnitPrice, DivisionByZero,
            NegativeBalance, DiscountLimitExceeded
        """
        return compute_line_from_brute(
            brute=DecimalValue.of(brute),
            quantity=DecimalValue.of(quantity),
            discounts=self.discounts,
            taxes=self.taxes,
            rounding=rounding or self.config.rounding,
            clamp_fixed_discounts=self.config.clamp_fixed_discounts,
            max_discount_allowed=(
                None if max_discount_allowed is None else DecimalValue.of(max_discount_allowed)
            ),
        )

    def compute_from_brute_str(
        self,
        brute: str,
        quantity: str,
        *,
        rounding: Optional[RoundingPolicy] = None,
        max_discount_allowed: Optional[str] = None,
    ) -> Calculation:
        """
        Raises:
            ParseError: любая из строк не является десятичным числом
        """
        return self.compute_from_brute(
            DecimalValue.parse(brute),
            DecimalValue.parse(quantity),
            rounding=rounding,
            max_discount_allowed=(
                None if max_discount_allowed is None else DecimalValue.parse(max_discount_allowed)
            ),
        )

    def line_tax(
        self,
        taxable: DecimalInput,
        quantity: DecimalInput,
        value: DecimalInput,
        mode: TaxMode = TaxMode.PERCENTUAL,
        rounding: Optional[RoundingPolicy] = None,
    ) -> DecimalValue:
        """
        Прямой расчёт одного налога без изменения списка налогов.

        Args:
            taxable: База налога
            quantity: Количество (нужно для FIXED_PER_UNIT)
            value: Ставка или сумма
            mode: Режим налога

        Raises:
            InvalidTaxValue: taxable < 0 или value < 0
            InvalidQuantity: quantity < 0
        """
        taxable = DecimalValue.of(taxable)
        quantity = DecimalValue.of(quantity)
        value = DecimalValue.of(value)

        if taxable.is_negative():
            raise InvalidTaxValue(f"negative taxable {taxable}")
        if quantity.is_negative():
            raise InvalidQuantity(f"negative quantity {quantity}")
        check_tax_amount(value)

        return tax_amount(mode, value, taxable, quantity, rounding or self.config.rounding)
