"""
DecimalValue — точная десятичная арифметика для денежных расчётов

Все денежные вычисления идут через DecimalValue:
- Неизменяемая обёртка над decimal.Decimal (frozen dataclass)
- Сложение, вычитание и умножение точные (контекст с decimal.MAX_PREC),
  глобальный контекст модуля decimal не изменяется
- Деление: DECIMAL_PRECISION значащих цифр после целой части частного
- Парсинг только из канонической десятичной строки, без потери точности
- Округление только явное: round(places, mode)

float не принимается: двоичная плавающая точка даёт дрейф в центах.
"""

import decimal
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Final, Union

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from src.core.errors import DivisionByZero, ParseError, PrecisionExceeded


# =============================================================================
# ПАРАМЕТРЫ
# =============================================================================

# Дробных значащих цифр частного при делении
DECIMAL_PRECISION: Final[int] = 50

# Денежная точность по умолчанию (знаков после запятой)
DEFAULT_CURRENCY_PLACES: Final[int] = 2

# Каноническая десятичная строка: знак, целая часть, необязательная дробная
_DECIMAL_PATTERN: Final = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")

# Точная арифметика: Inexact не может возникнуть при MAX_PREC, но ловится
_EXACT: Final = decimal.Context(
    prec=decimal.MAX_PREC,
    Emax=decimal.MAX_EMAX,
    Emin=decimal.MIN_EMIN,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow, decimal.Inexact],
)

# quantize: отбрасывание цифр здесь ожидаемо
_ROUNDING: Final = decimal.Context(
    prec=decimal.MAX_PREC,
    Emax=decimal.MAX_EMAX,
    Emin=decimal.MIN_EMIN,
    traps=[decimal.InvalidOperation, decimal.Overflow],
)

_ONE_PERCENT: Final = Decimal("0.01")

Operand = Union["DecimalValue", Decimal, int]


def _division_context(dividend: Decimal, divisor: Decimal) -> decimal.Context:
    # целые цифры частного + DECIMAL_PRECISION
    integer_digits = max(0, dividend.adjusted() - divisor.adjusted() + 1)
    return decimal.Context(
        prec=DECIMAL_PRECISION + integer_digits,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
    )


# =============================================================================
# ОКРУГЛЕНИЕ
# =============================================================================


class RoundingMode(str, Enum):
    """Режим округления (значения совпадают с константами decimal)"""

    HALF_UP = decimal.ROUND_HALF_UP
    HALF_EVEN = decimal.ROUND_HALF_EVEN
    DOWN = decimal.ROUND_DOWN
    UP = decimal.ROUND_UP


@dataclass(frozen=True)
class RoundingPolicy:
    """Политика округления денежных сумм.

    По умолчанию 2 знака, HALF_UP (коммерческое округление).
    """

    places: int = DEFAULT_CURRENCY_PLACES
    mode: RoundingMode = RoundingMode.HALF_UP

    def __post_init__(self) -> None:
        if self.places < 0:
            raise ValueError(f"places must be non-negative, got {self.places}")


# =============================================================================
# DECIMAL VALUE
# =============================================================================


def _unwrap(value: Operand) -> Decimal:
    if isinstance(value, DecimalValue):
        return value.value
    if isinstance(value, bool):
        raise TypeError("bool is not a decimal operand")
    if isinstance(value, (Decimal, int)):
        return Decimal(value)
    raise TypeError(f"unsupported decimal operand: {type(value).__name__}")


@dataclass(frozen=True, order=True)
class DecimalValue:
    """
    Неизменяемое десятичное число произвольной точности.

    Сравнение и арифметика точные. Операнды: DecimalValue, Decimal или int.
    """

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            raise TypeError(f"DecimalValue wraps Decimal, got {type(self.value).__name__}")
        if not self.value.is_finite():
            raise ParseError(f"decimal value must be finite, got {self.value}")
        if self.value.is_zero() and self.value.is_signed():
            # -0 → 0
            object.__setattr__(self, "value", self.value.copy_abs())

    # -------------------------------------------------------------------------
    # Конструкторы
    # -------------------------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> "DecimalValue":
        """
        Парсинг канонической десятичной строки.

        Args:
            text: Строка вида "120.34", "-10", ".5"

        Returns:
            DecimalValue с точно той же записью

        Raises:
            ParseError: Пустая строка, нечисловой ввод, несколько точек
        """
        if not isinstance(text, str):
            raise ParseError(f"expected str, got {type(text).__name__}")

        stripped = text.strip()
        if not stripped:
            raise ParseError("empty decimal string")

        if not _DECIMAL_PATTERN.match(stripped):
            raise ParseError(f"invalid decimal string {text!r}")

        return cls(Decimal(stripped))

    @classmethod
    def of(cls, value: Union["DecimalValue", Decimal, int, str]) -> "DecimalValue":
        """Приведение DecimalValue/Decimal/int/str к DecimalValue (float запрещён)."""
        if isinstance(value, DecimalValue):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, float):
            raise TypeError("float is not accepted, pass a decimal string instead")
        return cls(_unwrap(value))

    @classmethod
    def zero(cls) -> "DecimalValue":
        return cls(Decimal(0))

    @classmethod
    def hundred(cls) -> "DecimalValue":
        return cls(Decimal(100))

    # -------------------------------------------------------------------------
    # Арифметика
    # -------------------------------------------------------------------------

    @staticmethod
    def _exact(operation, left: Decimal, right: Decimal) -> "DecimalValue":
        try:
            return DecimalValue(operation(left, right))
        except decimal.DecimalException as e:
            raise PrecisionExceeded(f"inexact {operation.__name__}({left}, {right})") from e

    def __add__(self, other: Operand) -> "DecimalValue":
        return self._exact(_EXACT.add, self.value, _unwrap(other))

    def __radd__(self, other: Operand) -> "DecimalValue":
        # sum() стартует с int 0
        return self._exact(_EXACT.add, _unwrap(other), self.value)

    def __sub__(self, other: Operand) -> "DecimalValue":
        return self._exact(_EXACT.subtract, self.value, _unwrap(other))

    def __rsub__(self, other: Operand) -> "DecimalValue":
        return self._exact(_EXACT.subtract, _unwrap(other), self.value)

    def __mul__(self, other: Operand) -> "DecimalValue":
        return self._exact(_EXACT.multiply, self.value, _unwrap(other))

    def __rmul__(self, other: Operand) -> "DecimalValue":
        return self._exact(_EXACT.multiply, _unwrap(other), self.value)

    def __truediv__(self, other: Operand) -> "DecimalValue":
        """
        Деление с DECIMAL_PRECISION дробными значащими цифрами.

        Raises:
            DivisionByZero: Делитель равен нулю
        """
        divisor = _unwrap(other)
        if divisor.is_zero():
            raise DivisionByZero(f"division of {self} by zero")
        return DecimalValue(_division_context(self.value, divisor).divide(self.value, divisor))

    def __neg__(self) -> "DecimalValue":
        return DecimalValue(_EXACT.minus(self.value))

    def percent(self, rate: Operand) -> "DecimalValue":
        """rate процентов от self: self * rate / 100, точно"""
        return self * rate * DecimalValue(_ONE_PERCENT)

    def round(
        self,
        places: int = DEFAULT_CURRENCY_PLACES,
        mode: RoundingMode = RoundingMode.HALF_UP,
    ) -> "DecimalValue":
        """
        Округление до places знаков после запятой.

        Args:
            places: Число знаков после запятой (>= 0)
            mode: Режим округления (default HALF_UP)

        Returns:
            Новый DecimalValue с ровно places знаками

        Raises:
            PrecisionExceeded: quantize невозможен в пределах decimal
        """
        if places < 0:
            raise ValueError(f"places must be non-negative, got {places}")
        try:
            exponent = _ROUNDING.scaleb(Decimal(1), Decimal(-places))
            rounded = self.value.quantize(
                exponent, rounding=RoundingMode(mode).value, context=_ROUNDING
            )
        except decimal.InvalidOperation as e:
            raise PrecisionExceeded(f"cannot round {self} to {places} places") from e
        return DecimalValue(rounded)

    def round_with(self, policy: RoundingPolicy) -> "DecimalValue":
        return self.round(policy.places, policy.mode)

    # -------------------------------------------------------------------------
    # Предикаты
    # -------------------------------------------------------------------------

    def is_zero(self) -> bool:
        return self.value.is_zero()

    def is_negative(self) -> bool:
        return self.value < 0

    # -------------------------------------------------------------------------
    # Представление
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        # Без экспоненциальной записи: "0.00", а не "0E-2"
        return format(self.value, "f")

    def __repr__(self) -> str:
        return f"DecimalValue('{self}')"

    # -------------------------------------------------------------------------
    # Pydantic
    # -------------------------------------------------------------------------

    @classmethod
    def _validate_field(cls, value: Any) -> "DecimalValue":
        # pydantic превращает в ValidationError только ValueError
        try:
            return cls.of(value)
        except TypeError as e:
            raise ValueError(str(e)) from e

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Поля DecimalValue в pydantic моделях: вход Decimal/int/str, JSON — строка."""
        return core_schema.no_info_plain_validator_function(
            cls._validate_field,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )
