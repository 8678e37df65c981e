"""Utility functions shared by the ledger, analytics and CLI layers.

Provides:
* parse_decimal / parse_date – strict parsing of user and file input.
* validate_year – reject malformed calendar years.
* dividend_yield – dividends over invested capital as a fraction.
* cagr – compound annual growth rate for dividend totals.
* classify_years – given a list of yearly totals, return counts of
  (up, stalled, reduced, stopped).
* format_money / format_percent – display helpers for the CLI.
"""

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Sequence, Tuple

from .errors import InvalidParameterError, ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
MIN_YEAR = 1900
MAX_YEAR = 2999


def parse_decimal(value, field: str = "value") -> Decimal:
    """Parse ``value`` into a Decimal without passing through binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip().replace(",", "").lstrip("$"))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    return result


def parse_optional_decimal(value, field: str = "value", zero_is_absent: bool = False) -> Optional[Decimal]:
    """Like :func:`parse_decimal` but blank means "not provided".

    With ``zero_is_absent`` a literal ``0`` is also treated as missing, for
    fields such as cost basis where zero is a placeholder rather than a value.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    result = parse_decimal(text, field)
    if zero_is_absent and result == ZERO:
        return None
    return result


def parse_date(value, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {field} {value!r}, expected YYYY-MM-DD")


def validate_year(year) -> int:
    """Return ``year`` as an int or raise :class:`InvalidParameterError`."""
    if isinstance(year, bool) or not isinstance(year, int):
        raise InvalidParameterError(f"Year must be an integer, got {year!r}")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidParameterError(f"Year {year} is outside {MIN_YEAR}-{MAX_YEAR}")
    return year


def dividend_yield(amount: Decimal, invested: Decimal) -> Optional[Decimal]:
    """Return dividend yield as a decimal fraction.

    ``amount`` is the dividend income for the period, ``invested`` the cost
    value of the position. Returns ``None`` when there is nothing invested.
    """
    if invested <= ZERO:
        return None
    return amount / invested


def cagr(first: Decimal, last: Decimal, years: int) -> Optional[Decimal]:
    """Calculate compound annual growth rate as a decimal fraction.

    ``first`` and ``last`` are the dividend totals for the first and last year.
    ``years`` is the number of years between them.
    """
    if years <= 0 or first <= ZERO or last < ZERO:
        return None
    if last == ZERO:
        return Decimal("-1")
    return (last / first) ** (Decimal(1) / Decimal(years)) - 1


def classify_years(yearly_totals: Sequence[Decimal]) -> Tuple[int, int, int, int]:
    """Classify year‑over‑year changes.

    Returns a tuple ``(up, stalled, reduced, stopped)`` where:
    * up – current year total > previous year total
    * stalled – equal to previous year total
    * reduced – current year total < previous year total but > 0
    * stopped – current year total == 0
    """
    up = stalled = reduced = stopped = 0
    for prev, cur in zip(yearly_totals, yearly_totals[1:]):
        if cur == ZERO:
            stopped += 1
        elif cur > prev:
            up += 1
        elif cur == prev:
            stalled += 1
        else:
            reduced += 1
    return up, stalled, reduced, stopped


def format_money(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "N/A"
    return f"${amount.quantize(CENT, rounding=ROUND_HALF_UP):,}"


def format_percent(rate: Optional[Decimal], places: int = 2) -> str:
    """Render a decimal fraction (0.05) as a percentage string (5.00%)."""
    if rate is None:
        return "N/A"
    quantum = Decimal(1).scaleb(-places)
    return f"{(Decimal(rate) * 100).quantize(quantum, rounding=ROUND_HALF_UP)}%"
