"""Yield on cost, per symbol and weighted across the portfolio."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from ..errors import MissingCostBasisError
from ..models import DividendRecord, Holding
from ..utils import ZERO, dividend_yield, validate_year

logger = logging.getLogger(__name__)


class YieldStatus(Enum):
    KNOWN = "known"
    NO_HOLDING = "no_holding"
    NO_COST_BASIS = "no_cost_basis"


@dataclass(frozen=True)
class SymbolYield:
    symbol: str
    dividend_total: Decimal
    cost_value: Optional[Decimal]
    yield_rate: Optional[Decimal]
    status: YieldStatus

    @property
    def known(self) -> bool:
        return self.status is YieldStatus.KNOWN


@dataclass(frozen=True)
class YieldAnalysis:
    year: int
    portfolio_yield: Decimal
    per_symbol: Dict[str, SymbolYield]
    dividends_total: Decimal
    known_dividends: Decimal
    known_cost_value: Decimal

    @property
    def unknown_symbols(self) -> List[str]:
        return [s for s, y in self.per_symbol.items() if not y.known]

    @property
    def highest(self) -> Optional[SymbolYield]:
        known = [y for y in self.per_symbol.values() if y.known]
        return max(known, key=lambda y: (y.yield_rate, y.symbol)) if known else None

    @property
    def lowest(self) -> Optional[SymbolYield]:
        known = [y for y in self.per_symbol.values() if y.known]
        return min(known, key=lambda y: (y.yield_rate, y.symbol)) if known else None


def latest_year(records: Iterable[DividendRecord]) -> Optional[int]:
    return max((r.year for r in records), default=None)


def yield_analysis(records: Iterable[DividendRecord], holdings: Mapping[str, Holding],
                   year: Optional[int] = None, default_year: Optional[int] = None) -> YieldAnalysis:
    """Yield on cost for ``year`` (default: latest year with dividends).

    Symbols without a holding or a usable cost basis are reported with a
    ``yield_rate`` of None and left out of the weighted portfolio yield.
    ``default_year`` is used when no year is given and there are no records.
    """
    records = list(records)
    if year is None:
        year = latest_year(records) or default_year
    validate_year(year)

    dividends: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        if record.year == year:
            dividends[record.symbol] += record.total_amount

    usable = {s: h for s, h in holdings.items() if h.cost_value is not None}
    if not usable:
        raise MissingCostBasisError(
            "No holding has a cost basis; add cost basis to holdings to compute yields"
        )

    per_symbol = {}
    known_dividends = known_cost = ZERO
    for symbol in sorted(set(dividends) | set(holdings)):
        amount = dividends.get(symbol, ZERO)
        holding = holdings.get(symbol)
        if holding is None:
            status = YieldStatus.NO_HOLDING
        elif holding.cost_value is None:
            status = YieldStatus.NO_COST_BASIS
        else:
            status = YieldStatus.KNOWN
        if status is YieldStatus.KNOWN:
            cost_value = holding.cost_value
            known_dividends += amount
            known_cost += cost_value
            rate = dividend_yield(amount, cost_value)
        else:
            logger.debug("Yield for %s unknown in %s: %s", symbol, year, status.value)
            cost_value = rate = None
        per_symbol[symbol] = SymbolYield(symbol, amount, cost_value, rate, status)

    return YieldAnalysis(
        year=year,
        portfolio_yield=known_dividends / known_cost,
        per_symbol=per_symbol,
        dividends_total=sum(dividends.values(), ZERO),
        known_dividends=known_dividends,
        known_cost_value=known_cost,
    )
