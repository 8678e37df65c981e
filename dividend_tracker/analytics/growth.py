"""Year-over-year dividend growth.

Rates are decimal fractions (0.05 == 5%). A pair whose starting year totals
zero has no defined rate: it is reported with ``skipped=True`` and left out
of every average instead of being counted as zero or infinity.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import InsufficientDataError, InvalidParameterError
from ..models import DividendRecord
from ..utils import ZERO, cagr, classify_years, validate_year
from .aggregator import reindex_years, symbol_yearly_totals, yearly_totals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YearOverYear:
    from_year: int
    to_year: int
    from_total: Decimal
    to_total: Decimal
    rate: Optional[Decimal]

    @property
    def skipped(self) -> bool:
        return self.rate is None


@dataclass(frozen=True)
class GrowthAnalysis:
    overall_rate: Decimal
    yearly_rates: List[YearOverYear]
    per_symbol_rates: Dict[str, Optional[Decimal]]
    yearly_totals: Dict[int, Decimal]
    best_year: Optional[YearOverYear]
    worst_year: Optional[YearOverYear]
    compound_rate: Optional[Decimal] = None

    def classify_changes(self) -> Tuple[int, int, int, int]:
        """Counts of (up, stalled, reduced, stopped) year transitions."""
        return classify_years(list(self.yearly_totals.values()))


def _validate_years(years: Sequence[int]) -> List[int]:
    years = list(years)
    if not years:
        raise InsufficientDataError("No years requested for growth analysis")
    for year in years:
        validate_year(year)
    if any(b <= a for a, b in zip(years, years[1:])):
        raise InvalidParameterError(f"Years must be strictly ascending, got {years}")
    return years


def pairwise_rates(totals: Dict[int, Decimal], years: Sequence[int]) -> List[YearOverYear]:
    """Growth between each consecutive pair of ``years``; absent years count as zero."""
    filled = reindex_years(totals, years)
    pairs = []
    for prev, cur in zip(years, years[1:]):
        start, end = filled[prev], filled[cur]
        rate = (end - start) / start if start != ZERO else None
        if rate is None:
            logger.debug("Growth %s->%s undefined: zero total in %s", prev, cur, prev)
        pairs.append(YearOverYear(prev, cur, start, end, rate))
    return pairs


def mean_rate(pairs: Iterable[YearOverYear]) -> Optional[Decimal]:
    rates = [p.rate for p in pairs if p.rate is not None]
    if not rates:
        return None
    return sum(rates, ZERO) / len(rates)


def growth_analysis(records: Iterable[DividendRecord], years: Sequence[int]) -> GrowthAnalysis:
    """Overall, yearly and per-symbol growth over the requested ``years``.

    The overall rate is the mean of the portfolio's yearly-total growth rates,
    not the mean of the per-symbol rates.
    """
    years = _validate_years(years)
    records = list(records)
    totals = yearly_totals(records)
    filled = reindex_years(totals, years)

    with_data = [y for y in years if filled[y] != ZERO]
    if len(with_data) < 2:
        raise InsufficientDataError(
            f"Growth analysis needs at least 2 years with dividends, found {len(with_data)} in {years}"
        )

    pairs = pairwise_rates(totals, years)
    overall = mean_rate(pairs)
    if overall is None:
        raise InsufficientDataError("No year-over-year pair has a non-zero starting total")

    per_symbol = {}
    for symbol, series in symbol_yearly_totals(records).items():
        if any(y in series for y in years):
            per_symbol[symbol] = mean_rate(pairwise_rates(series, years))

    defined = [p for p in pairs if p.rate is not None]
    return GrowthAnalysis(
        overall_rate=overall,
        yearly_rates=pairs,
        per_symbol_rates=per_symbol,
        yearly_totals=filled,
        best_year=max(defined, key=lambda p: p.rate),
        worst_year=min(defined, key=lambda p: p.rate),
        compound_rate=cagr(filled[years[0]], filled[years[-1]], years[-1] - years[0]),
    )
