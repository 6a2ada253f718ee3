"""
Decimal arithmetic used by every money computation.

All position metrics and simulation math go through a DecimalMath instance so
that repeated monthly additions never drift like floats would. The decimal
context is owned by the instance; the process-global context is never touched.
"""
from dataclasses import dataclass, field
from decimal import Decimal, Context, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional, Union

NumberLike = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class DecimalMath:
    precision: int = 28
    rounding: str = ROUND_HALF_UP
    context: Context = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # frozen dataclass -> bypass __setattr__ once
        object.__setattr__(self, "context", Context(prec=self.precision, rounding=self.rounding))

    def dec(self, value: Optional[NumberLike]) -> Decimal:
        if value is None:
            return ZERO
        if isinstance(value, Decimal):
            return value
        if isinstance(value, float):
            # str() keeps the shortest repr, Decimal(float) would expose binary noise
            return Decimal(str(value))
        return Decimal(value)

    def add(self, a: Decimal, b: Decimal) -> Decimal:
        return self.context.add(a, b)

    def sub(self, a: Decimal, b: Decimal) -> Decimal:
        return self.context.subtract(a, b)

    def mul(self, a: Decimal, b: Decimal) -> Decimal:
        return self.context.multiply(a, b)

    def div(self, a: Decimal, b: Decimal) -> Decimal:
        """ Division where a zero divisor yields zero instead of raising. """
        if b == 0:
            return ZERO
        return self.context.divide(a, b)

    def total(self, values: Iterable[Decimal]) -> Decimal:
        result = ZERO
        for v in values:
            result = self.context.add(result, v)
        return result

    def to_number(self, value: Decimal, places: int = 2) -> Decimal:
        """ Rounds for display (2 dp currency by default). """
        exp = Decimal(1).scaleb(-places)
        try:
            return value.quantize(exp, rounding=self.rounding, context=self.context)
        except InvalidOperation:
            return ZERO.quantize(exp)

    def to_quantity(self, value: Decimal, places: int = 8) -> Decimal:
        return self.to_number(value, places)


# Configured once at import, never mutated afterwards.
MONEY = DecimalMath()


def dec(value: Optional[NumberLike]) -> Decimal:
    return MONEY.dec(value)


def add(a: Decimal, b: Decimal) -> Decimal:
    return MONEY.add(a, b)


def sub(a: Decimal, b: Decimal) -> Decimal:
    return MONEY.sub(a, b)


def mul(a: Decimal, b: Decimal) -> Decimal:
    return MONEY.mul(a, b)


def div(a: Decimal, b: Decimal) -> Decimal:
    return MONEY.div(a, b)


def to_number(value: Decimal, places: int = 2) -> Decimal:
    return MONEY.to_number(value, places)


def to_quantity(value: Decimal, places: int = 8) -> Decimal:
    return MONEY.to_quantity(value, places)
