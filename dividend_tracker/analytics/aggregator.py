"""Grouping of dividend records by year, month, quarter or symbol.

Records are loaded into a pandas DataFrame and grouped with ``groupby``.
Amounts stay ``Decimal`` in an object column, which pandas sums exactly.
Every call builds a fresh frame from the full record set; nothing is cached
between calls. Grouping always uses the ex-date.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from ..errors import InvalidParameterError
from ..models import DividendRecord
from ..utils import ZERO, validate_year

FRAME_COLUMNS = ["year", "month", "quarter", "symbol", "total_amount"]


class Grouping(Enum):
    YEAR = "year"
    MONTH = "month"
    QUARTER = "quarter"
    SYMBOL = "symbol"


_GROUP_COLUMNS = {
    Grouping.YEAR: "year",
    Grouping.MONTH: ["year", "month"],
    Grouping.QUARTER: ["year", "quarter"],
    Grouping.SYMBOL: "symbol",
}


@dataclass
class Bucket:
    total: Decimal = ZERO
    count: int = 0


@dataclass(frozen=True)
class PeriodTotal:
    """One row of a monthly (period 1-12) or quarterly (1-4) breakdown."""

    period: int
    total: Decimal
    payment_count: int


@dataclass(frozen=True)
class PayerSummary:
    symbol: str
    total_amount: Decimal
    payment_count: int
    average_amount: Decimal
    first_ex_date: date
    last_ex_date: date


def records_frame(records: Iterable[DividendRecord]) -> pd.DataFrame:
    """One row per record with the ex-date's year, month and quarter."""
    rows = [{
        "year": r.year,
        "month": r.month,
        "quarter": r.quarter,
        "symbol": r.symbol,
        "total_amount": r.total_amount,
    } for r in records]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _native(key):
    # groupby index labels come back as numpy scalars
    if isinstance(key, tuple):
        return tuple(_native(k) for k in key)
    return key.item() if hasattr(key, "item") else key


def _grouped(frame: pd.DataFrame, by):
    grouped = frame.groupby(by, sort=True)["total_amount"]
    return grouped.sum(), grouped.size()


def aggregate(records: Iterable[DividendRecord], grouping: Grouping) -> Dict[Hashable, Bucket]:
    """Sum total amounts and count records per group key.

    Keys are plain Python values: an int year, a ``(year, month)`` or
    ``(year, quarter)`` tuple, or a symbol. The returned dict iterates in
    ascending key order.
    """
    if not isinstance(grouping, Grouping):
        raise InvalidParameterError(f"Unknown grouping {grouping!r}")
    frame = records_frame(records)
    if frame.empty:
        return {}
    totals, counts = _grouped(frame, _GROUP_COLUMNS[grouping])
    return {
        _native(key): Bucket(total, int(count))
        for (key, total), count in zip(totals.items(), counts.tolist())
    }


def yearly_totals(records: Iterable[DividendRecord]) -> Dict[int, Decimal]:
    return {year: b.total for year, b in aggregate(records, Grouping.YEAR).items()}


def reindex_years(totals: Mapping[int, Decimal], years: Sequence[int]) -> Dict[int, Decimal]:
    """``totals`` restricted to ``years``, with missing years filled as zero."""
    years = list(years)
    series = pd.Series(dict(totals), dtype=object).reindex(years, fill_value=ZERO)
    return dict(zip(years, series.tolist()))


def symbol_yearly_totals(records: Iterable[DividendRecord]) -> Dict[str, Dict[int, Decimal]]:
    """Map symbol -> {year: total}, both levels in ascending order."""
    frame = records_frame(records)
    if frame.empty:
        return {}
    totals, _ = _grouped(frame, ["symbol", "year"])
    series: Dict[str, Dict[int, Decimal]] = defaultdict(dict)
    for key, total in totals.items():
        symbol, year = _native(key)
        series[symbol][year] = total
    return dict(series)


def total_income(records: Iterable[DividendRecord], year: Optional[int] = None) -> Decimal:
    if year is not None:
        validate_year(year)
    return sum((r.total_amount for r in records if year is None or r.year == year), ZERO)


def _breakdown(records: Iterable[DividendRecord], year: int, column: str,
               periods: Sequence[int]) -> List[PeriodTotal]:
    validate_year(year)
    periods = list(periods)
    frame = records_frame(records)
    frame = frame[frame["year"] == year]
    if frame.empty:
        return [PeriodTotal(period, ZERO, 0) for period in periods]
    totals, counts = _grouped(frame, column)
    totals = totals.reindex(periods, fill_value=ZERO)
    counts = counts.reindex(periods, fill_value=0)
    return [PeriodTotal(period, total, int(count))
            for period, total, count in zip(periods, totals.tolist(), counts.tolist())]


def monthly_breakdown(records: Iterable[DividendRecord], year: int) -> List[PeriodTotal]:
    """Twelve rows, January first, zero-filled for months without dividends."""
    return _breakdown(records, year, "month", range(1, 13))


def quarterly_breakdown(records: Iterable[DividendRecord], year: int) -> List[PeriodTotal]:
    return _breakdown(records, year, "quarter", range(1, 5))


def top_dividend_payers(records: Iterable[DividendRecord], limit: Optional[int] = None,
                        year: Optional[int] = None) -> List[PayerSummary]:
    """Symbols ranked by total income, descending; ties alphabetical.

    ``limit=None`` returns every symbol. ``year`` restricts the period.
    """
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise InvalidParameterError(f"Limit must be a non-negative integer, got {limit!r}")
    if year is not None:
        validate_year(year)

    dates: Dict[str, List[date]] = defaultdict(list)
    selected = []
    for record in records:
        if year is None or record.year == year:
            selected.append(record)
            dates[record.symbol].append(record.ex_date)

    summaries = []
    for symbol, bucket in aggregate(selected, Grouping.SYMBOL).items():
        summaries.append(PayerSummary(
            symbol=symbol,
            total_amount=bucket.total,
            payment_count=bucket.count,
            average_amount=bucket.total / bucket.count,
            first_ex_date=min(dates[symbol]),
            last_ex_date=max(dates[symbol]),
        ))
    summaries.sort(key=lambda s: (-s.total_amount, s.symbol))
    return summaries if limit is None else summaries[:limit]
