"""Core ledger entities: dividend records and holdings.

Records are immutable. ``total_amount`` is derived from the per-share amount
and the share count when the record is built and cannot be set directly.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .errors import InvalidParameterError, ValidationError
from .utils import ZERO


def normalize_symbol(symbol) -> str:
    """Return the canonical (trimmed, upper-case) form of a ticker."""
    text = str(symbol or "").strip().upper()
    if not text:
        raise ValidationError("Symbol cannot be empty")
    return text


class TaggedEnum(Enum):
    @classmethod
    def parse(cls, tag):
        """Look a member up by value or name, ignoring case and separators."""
        if isinstance(tag, cls):
            return tag
        key = str(tag).strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        choices = ", ".join(m.value for m in cls)
        raise InvalidParameterError(f"Unknown {cls.__name__} {tag!r} (expected one of: {choices})")


class DividendType(TaggedEnum):
    REGULAR = "regular"
    SPECIAL = "special"
    RETURN_OF_CAPITAL = "return_of_capital"
    STOCK = "stock"
    SPIN_OFF = "spin_off"


class TaxClassification(TaggedEnum):
    QUALIFIED = "qualified"
    NON_QUALIFIED = "non_qualified"
    RETURN_OF_CAPITAL = "return_of_capital"
    TAX_FREE = "tax_free"
    FOREIGN = "foreign"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DividendRecord:
    """A single dividend payment.

    Attributes:
        symbol: Ticker, stored upper-case.
        ex_date: Ex-dividend date; drives every yearly/monthly grouping.
        pay_date: Cash distribution date, never before ``ex_date``.
        amount_per_share: Dividend per share, > 0.
        shares_owned: Shares held at the time of payment, > 0.
        dividend_type: Regular, special, return of capital, ...
        tax_classification: Tax treatment, ``UNKNOWN`` unless supplied.
        company_name: Optional display name.
        total_amount: ``amount_per_share * shares_owned``, computed on build.
    """

    symbol: str
    ex_date: date
    pay_date: date
    amount_per_share: Decimal
    shares_owned: Decimal
    dividend_type: DividendType = DividendType.REGULAR
    tax_classification: TaxClassification = TaxClassification.UNKNOWN
    company_name: Optional[str] = None
    total_amount: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))
        if not isinstance(self.ex_date, date) or not isinstance(self.pay_date, date):
            raise ValidationError("Ex-date and pay date must be dates")
        if not isinstance(self.amount_per_share, Decimal) or not isinstance(self.shares_owned, Decimal):
            raise ValidationError("Amount per share and shares owned must be Decimal values")
        if self.amount_per_share <= ZERO:
            raise ValidationError("Amount per share must be positive")
        if self.shares_owned <= ZERO:
            raise ValidationError("Shares owned must be positive")
        if self.pay_date < self.ex_date:
            raise ValidationError("Pay date cannot be before ex-dividend date")
        object.__setattr__(self, "dividend_type", DividendType.parse(self.dividend_type))
        object.__setattr__(self, "tax_classification", TaxClassification.parse(self.tax_classification))
        object.__setattr__(self, "total_amount", self.amount_per_share * self.shares_owned)

    @property
    def key(self) -> Tuple[str, date]:
        return self.symbol, self.ex_date

    @property
    def year(self) -> int:
        return self.ex_date.year

    @property
    def month(self) -> int:
        return self.ex_date.month

    @property
    def quarter(self) -> int:
        return (self.ex_date.month - 1) // 3 + 1


@dataclass(frozen=True)
class Holding:
    """A current position.

    Attributes:
        symbol: Ticker, unique within the holdings mapping.
        shares: Shares owned, >= 0. Zero keeps the entry until removed.
        avg_cost_basis: Average price paid per share, > 0 when present.
        current_yield: Indicated yield in percent, >= 0 when present.
    """

    symbol: str
    shares: Decimal
    avg_cost_basis: Optional[Decimal] = None
    current_yield: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))
        if not isinstance(self.shares, Decimal):
            raise ValidationError("Shares must be a Decimal value")
        if self.shares < ZERO:
            raise ValidationError("Shares cannot be negative")
        if self.avg_cost_basis is not None and self.avg_cost_basis <= ZERO:
            raise ValidationError("Average cost basis must be positive if provided")
        if self.current_yield is not None and self.current_yield < ZERO:
            raise ValidationError("Current yield cannot be negative")

    @property
    def cost_value(self) -> Optional[Decimal]:
        """Invested capital (basis x shares), or None when it is not usable."""
        if self.avg_cost_basis is None or self.shares == ZERO:
            return None
        return self.avg_cost_basis * self.shares
