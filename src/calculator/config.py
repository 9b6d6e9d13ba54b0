"""Конфигурация Calculator."""

from dataclasses import dataclass, field

from src.core.math.decimal_value import RoundingPolicy


@dataclass(frozen=True)
class CalculatorConfig:
    """Конфигурация калькулятора строки.

    rounding — политика округления по умолчанию для compute
    (может быть переопределена аргументом compute).
    clamp_fixed_discounts — фиксированная скидка больше текущей базы
    урезается до базы (True) или вызывает NegativeBalance (False).
    """

    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)
    clamp_fixed_discounts: bool = True
