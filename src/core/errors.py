"""
Errors — Ошибки калькулятора строк продаж

Все ошибки являются ожидаемыми исходами некорректного ввода, а не
фатальными сбоями процесса. Каждая ошибка несёт:
- kind: ErrorKind (машиночитаемый вид ошибки)
- stage: PipelineStage, последнее состояние конвейера, достигнутое до сбоя
  (None для ошибок конфигурации и парсинга)

Состояния конвейера compute:
    INIT → GROSS_COMPUTED → DISCOUNTS_APPLIED → TAXES_APPLIED → ROUNDED → DONE
Любое состояние может завершиться FAILED(ErrorKind).
"""

from enum import Enum
from typing import ClassVar, Optional


# =============================================================================
# ENUMS
# =============================================================================


class ErrorKind(str, Enum):
    """Вид ошибки"""

    PARSE_ERROR = "parse_error"
    INVALID_UNIT_PRICE = "invalid_unit_price"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_TAX_VALUE = "invalid_tax_value"
    INVALID_DISCOUNT_VALUE = "invalid_discount_value"
    NEGATIVE_BALANCE = "negative_balance"
    DIVISION_BY_ZERO = "division_by_zero"
    DISCOUNT_LIMIT_EXCEEDED = "discount_limit_exceeded"
    PRECISION_EXCEEDED = "precision_exceeded"


class PipelineStage(str, Enum):
    """Состояние конвейера расчёта строки"""

    INIT = "init"
    GROSS_COMPUTED = "gross_computed"
    DISCOUNTS_APPLIED = "discounts_applied"
    TAXES_APPLIED = "taxes_applied"
    ROUNDED = "rounded"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class CalculatorError(Exception):
    """
    Базовая ошибка калькулятора.

    Attributes:
        kind: Вид ошибки (задаётся подклассом)
        stage: Последнее успешно достигнутое состояние конвейера
    """

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, stage: Optional[PipelineStage] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage is None:
            return f"{self.kind.value}: {self.message}"
        return f"{self.kind.value} (after {self.stage.value}): {self.message}"


class ParseError(CalculatorError, ValueError):
    """Строка не является корректным десятичным числом."""

    kind = ErrorKind.PARSE_ERROR


class InvalidUnitPrice(CalculatorError):
    """Отрицательная цена за единицу."""

    kind = ErrorKind.INVALID_UNIT_PRICE


class InvalidQuantity(CalculatorError):
    """Отрицательное количество."""

    kind = ErrorKind.INVALID_QUANTITY


class InvalidTaxValue(CalculatorError):
    """Отрицательное значение налога."""

    kind = ErrorKind.INVALID_TAX_VALUE


class InvalidDiscountValue(CalculatorError):
    """Отрицательная скидка или процентная скидка свыше 100%."""

    kind = ErrorKind.INVALID_DISCOUNT_VALUE


class NegativeBalance(CalculatorError):
    """Фиксированная скидка превышает текущую базу при выключенном clamp."""

    kind = ErrorKind.NEGATIVE_BALANCE


class DivisionByZero(CalculatorError, ZeroDivisionError):
    """Деление на ноль (например, пересчёт цены за единицу при qty == 0)."""

    kind = ErrorKind.DIVISION_BY_ZERO


class DiscountLimitExceeded(CalculatorError):
    """Суммарная скидка превышает max_discount_allowed."""

    kind = ErrorKind.DISCOUNT_LIMIT_EXCEEDED


class PrecisionExceeded(CalculatorError):
    """Результат не представим точно в пределах decimal."""

    kind = ErrorKind.PRECISION_EXCEEDED
