"""
Money as whole minor units.

Every amount in the ledger is a Python int counting the smallest
unit of its currency (cents for USD, yen for JPY). Python ints
have no upper bound, so sums never overflow and never round.
Decimal is only used at the edges, to convert to and from the
major-unit figures people type and read.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext

from ledger_core.exceptions import CurrencyMismatch, InvalidAmount


DEFAULT_EXPONENT = 2

# Currencies whose minor unit is not 1/100 of the major unit
CURRENCY_EXPONENTS: dict[str, int] = {
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "CLP": 0,
    "ISK": 0,
}


def normalize_currency(code: str) -> str:
    """Upper-case a currency code and check it looks like ISO 4217."""
    code = code.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Invalid currency code '{code}'")
    return code


def exponent_for(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency.upper(), DEFAULT_EXPONENT)


@dataclass(frozen=True, order=False)
class Money:
    """An exact amount in one currency."""

    amount: int
    currency: str

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidAmount(self.amount, "minor units must be an integer")
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(0, currency)

    @classmethod
    def from_decimal(cls, value, currency: str) -> "Money":
        """
        Build Money from a major-unit figure such as "12.34".

        Raises InvalidAmount when the value has more precision
        than the currency's minor unit can hold.
        """
        try:
            major = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmount(value, "not a number")
        if not major.is_finite():
            raise InvalidAmount(value, "not a finite number")

        # Shifting the exponent keeps every digit as long as the
        # context can hold the whole coefficient
        with localcontext() as ctx:
            ctx.prec = max(len(major.as_tuple().digits), ctx.prec)
            scaled = major.scaleb(exponent_for(currency))
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(
                value, f"too many decimal places for {currency}"
            )
        return cls(int(scaled), currency)

    def to_decimal(self) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = max(len(str(abs(self.amount))), ctx.prec)
            return Decimal(self.amount).scaleb(-exponent_for(self.currency))

    def _check(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount <= other.amount

    def __bool__(self) -> bool:
        return self.amount != 0

    def __str__(self) -> str:
        exponent = exponent_for(self.currency)
        sign = "-" if self.amount < 0 else ""
        major, minor = divmod(abs(self.amount), 10 ** exponent)
        text = f"{sign}{major:,}"
        if exponent:
            text += f".{minor:0{exponent}d}"
        return f"{text} {self.currency}"
