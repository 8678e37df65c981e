"""Forward dividend income projections.

A projection picks a historical baseline figure B, then compounds it at an
annual growth rate up to the target year::

    annual(Y) = B * (1 + rate) ** (Y - baseline_reference_year)

Baseline methods:

* ``LAST_TWELVE_MONTHS`` – dividends with an ex-date in the 365 days up to
  today; reference year is the current year.
* ``LAST_YEAR`` – total of the latest complete calendar year that has
  dividends; that year is the reference year.
* ``AVERAGE_TWO_YEARS`` – mean of that year and the one before it (a year
  without dividends counts as zero); reference year as for ``LAST_YEAR``.
* ``CURRENT_YIELD`` – sum over holdings of cost value x indicated yield;
  reference year is the current year. It has no monthly structure, so a
  monthly breakdown is an even split.

Without an explicit scenario the growth rate comes from
:func:`~dividend_tracker.analytics.growth.growth_analysis` over the complete
calendar years of history that end at the baseline.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..errors import InvalidParameterError, NoBaselineDataError, ValidationError
from ..models import DividendRecord, Holding, TaggedEnum
from ..utils import ZERO, format_percent, parse_decimal, validate_year
from .consistency import PaymentFrequency, estimate_frequency
from .growth import growth_analysis

logger = logging.getLogger(__name__)

ONE = Decimal(1)
HUNDRED = Decimal(100)
TRAILING_DAYS = 365


class ProjectionMethod(TaggedEnum):
    LAST_TWELVE_MONTHS = "last_twelve_months"
    AVERAGE_TWO_YEARS = "average_two_years"
    LAST_YEAR = "last_year"
    CURRENT_YIELD = "current_yield"


class ScenarioKind(Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    OPTIMISTIC = "optimistic"
    CUSTOM = "custom"


_SCENARIO_RATES = {
    ScenarioKind.CONSERVATIVE: Decimal("0.02"),
    ScenarioKind.MODERATE: Decimal("0.05"),
    ScenarioKind.OPTIMISTIC: Decimal("0.08"),
}


@dataclass(frozen=True)
class GrowthScenario:
    """A named growth assumption, or a custom annual rate (decimal fraction)."""

    kind: ScenarioKind
    custom_rate: Optional[Decimal] = None

    def __post_init__(self):
        if self.kind is ScenarioKind.CUSTOM:
            if self.custom_rate is None:
                raise InvalidParameterError("A custom scenario needs a rate")
            if not isinstance(self.custom_rate, Decimal) or not self.custom_rate.is_finite():
                raise InvalidParameterError(f"Custom growth rate must be a finite decimal, got {self.custom_rate!r}")
            if self.custom_rate <= -ONE:
                raise InvalidParameterError(f"Custom growth rate must be above -100%, got {self.custom_rate}")
        elif self.custom_rate is not None:
            raise InvalidParameterError(f"{self.kind.value} scenario takes no custom rate")

    @classmethod
    def conservative(cls) -> "GrowthScenario":
        return cls(ScenarioKind.CONSERVATIVE)

    @classmethod
    def moderate(cls) -> "GrowthScenario":
        return cls(ScenarioKind.MODERATE)

    @classmethod
    def optimistic(cls) -> "GrowthScenario":
        return cls(ScenarioKind.OPTIMISTIC)

    @classmethod
    def custom(cls, rate: Decimal) -> "GrowthScenario":
        return cls(ScenarioKind.CUSTOM, rate)

    @classmethod
    def parse(cls, tag: Union[str, "GrowthScenario"]) -> "GrowthScenario":
        """Parse ``moderate``, ``custom:0.03``, ``custom:3%`` or a bare rate."""
        if isinstance(tag, GrowthScenario):
            return tag
        text = str(tag).strip().lower()
        for kind in _SCENARIO_RATES:
            if text == kind.value:
                return cls(kind)
        if text.startswith("custom:"):
            text = text[len("custom:"):]
        try:
            if text.endswith("%"):
                rate = parse_decimal(text[:-1], "growth rate") / HUNDRED
            else:
                rate = parse_decimal(text, "growth rate")
        except ValidationError:
            raise InvalidParameterError(
                f"Unknown growth scenario {tag!r} (expected conservative, moderate, "
                "optimistic or custom:<rate>)"
            )
        return cls.custom(rate)

    @property
    def rate(self) -> Decimal:
        if self.kind is ScenarioKind.CUSTOM:
            return self.custom_rate
        return _SCENARIO_RATES[self.kind]

    @property
    def label(self) -> str:
        return f"{self.kind.value.title()} ({format_percent(self.rate, 1)})"


@dataclass(frozen=True)
class MonthlyProjection:
    """One month of a projected year.

    ``payment_count`` is the number of symbols that paid in this month during
    the baseline window and ``top_payers`` lists them by contribution, largest
    first. Both are empty for an even split.
    """

    month: int
    amount: Decimal
    weight: Decimal
    payment_count: int = 0
    top_payers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StockProjection:
    """A single symbol's share of a projection.

    Attributes:
        symbol: Ticker.
        current_shares: Shares in the current holding, None if not held.
        baseline_amount: The symbol's part of the baseline figure.
        projected_amount: ``baseline_amount`` compounded to the target year.
        historical_dividend_per_share: Per-share dividends behind the baseline.
        projected_dividend_per_share: The same, compounded to the target year.
        growth_applied: Annual growth rate used.
        payment_frequency: Cadence estimated from the symbol's ex-dates.
        payment_months: Months (1-12) the symbol is expected to pay in.
    """

    symbol: str
    current_shares: Optional[Decimal]
    baseline_amount: Decimal
    projected_amount: Decimal
    historical_dividend_per_share: Decimal
    projected_dividend_per_share: Decimal
    growth_applied: Decimal
    payment_frequency: PaymentFrequency
    payment_months: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class Projection:
    target_year: int
    method: ProjectionMethod
    scenario: Optional[GrowthScenario]
    growth_rate: Decimal
    growth_source: str
    baseline: Decimal
    baseline_reference_year: int
    annual_total: Decimal
    monthly_breakdown: Optional[List[MonthlyProjection]] = None
    uniform_distribution: bool = False
    stock_projections: List[StockProjection] = field(default_factory=list)


@dataclass(frozen=True)
class _Baseline:
    amount: Decimal
    reference_year: int
    # Records behind the figure; empty when it has no monthly structure.
    window: List[DividendRecord]
    # Last complete year whose history feeds the computed growth rate.
    history_end_year: int
    by_symbol: Dict[str, Decimal] = field(default_factory=dict)
    per_share: Dict[str, Decimal] = field(default_factory=dict)


def _latest_complete_year(records: List[DividendRecord], current_year: int) -> int:
    years = [r.year for r in records if r.year < current_year]
    if not years:
        raise NoBaselineDataError(f"No dividends recorded in any calendar year before {current_year}")
    return max(years)


def _window_baseline(window: List[DividendRecord], reference_year: int, history_end_year: int,
                     divisor: int = 1) -> _Baseline:
    by_symbol: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    per_share: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in window:
        by_symbol[record.symbol] += record.total_amount
        per_share[record.symbol] += record.amount_per_share
    amount = sum((r.total_amount for r in window), ZERO) / divisor
    return _Baseline(
        amount, reference_year, window, history_end_year,
        {s: v / divisor for s, v in by_symbol.items()},
        {s: v / divisor for s, v in per_share.items()},
    )


def _baseline(records: List[DividendRecord], holdings: Mapping[str, Holding],
              method: ProjectionMethod, today: date) -> _Baseline:
    current_year = today.year

    if method is ProjectionMethod.LAST_TWELVE_MONTHS:
        cutoff = today - timedelta(days=TRAILING_DAYS)
        window = [r for r in records if cutoff < r.ex_date <= today]
        if not window:
            raise NoBaselineDataError(f"No dividends with an ex-date between {cutoff} and {today}")
        return _window_baseline(window, current_year, current_year - 1)

    if method is ProjectionMethod.CURRENT_YIELD:
        by_symbol, per_share = {}, {}
        for symbol, holding in holdings.items():
            if holding.current_yield is not None and holding.cost_value is not None:
                by_symbol[symbol] = holding.cost_value * holding.current_yield / HUNDRED
                per_share[symbol] = holding.avg_cost_basis * holding.current_yield / HUNDRED
        amount = sum(by_symbol.values(), ZERO)
        if amount == ZERO:
            raise NoBaselineDataError("No holding has both a cost basis and a current yield")
        return _Baseline(amount, current_year, [], current_year - 1, by_symbol, per_share)

    reference = _latest_complete_year(records, current_year)
    if method is ProjectionMethod.LAST_YEAR:
        window = [r for r in records if r.year == reference]
        return _window_baseline(window, reference, reference)
    window = [r for r in records if r.year in (reference - 1, reference)]
    return _window_baseline(window, reference, reference, divisor=2)


def _monthly_weights(window: Iterable[DividendRecord]) -> Optional[Dict[int, Decimal]]:
    totals: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    for record in window:
        totals[record.month] += record.total_amount
    grand_total = sum(totals.values(), ZERO)
    if grand_total == ZERO:
        return None
    return {month: totals.get(month, ZERO) / grand_total for month in range(1, 13)}


def _monthly_payers(window: Iterable[DividendRecord]) -> Dict[int, Tuple[str, ...]]:
    contributions: Dict[Tuple[int, str], Decimal] = defaultdict(lambda: ZERO)
    for record in window:
        contributions[(record.month, record.symbol)] += record.total_amount
    payers: Dict[int, List[str]] = defaultdict(list)
    ranked = sorted(contributions.items(), key=lambda kv: (kv[0][0], -kv[1], kv[0][1]))
    for (month, symbol), _ in ranked:
        payers[month].append(symbol)
    return {month: tuple(symbols) for month, symbols in payers.items()}


def distribute_monthly(annual: Decimal, window: Iterable[DividendRecord]):
    """Split ``annual`` across 12 months by the window's historical pattern.

    Returns ``(rows, uniform)``; ``uniform`` is True when the window had no
    monthly pattern and an even split was used.
    """
    window = list(window)
    weights = _monthly_weights(window)
    if weights is None:
        even = ONE / 12
        return [MonthlyProjection(month, annual * even, even) for month in range(1, 13)], True
    payers = _monthly_payers(window)
    rows = []
    for month in range(1, 13):
        symbols = payers.get(month, ())
        rows.append(MonthlyProjection(month, annual * weights[month], weights[month], len(symbols), symbols))
    return rows, False


def _stock_projections(baseline: _Baseline, records: List[DividendRecord],
                       holdings: Mapping[str, Holding], rate: Decimal, factor: Decimal) -> List[StockProjection]:
    history: Dict[str, List[DividendRecord]] = defaultdict(list)
    for record in records:
        history[record.symbol].append(record)
    window_months: Dict[str, set] = defaultdict(set)
    for record in baseline.window:
        window_months[record.symbol].add(record.month)

    stocks = []
    for symbol, amount in baseline.by_symbol.items():
        holding = holdings.get(symbol)
        per_share = baseline.per_share[symbol]
        months = window_months.get(symbol) or {r.month for r in history.get(symbol, [])}
        stocks.append(StockProjection(
            symbol=symbol,
            current_shares=holding.shares if holding is not None else None,
            baseline_amount=amount,
            projected_amount=amount * factor,
            historical_dividend_per_share=per_share,
            projected_dividend_per_share=per_share * factor,
            growth_applied=rate,
            payment_frequency=estimate_frequency(r.ex_date for r in history.get(symbol, [])),
            payment_months=sorted(months),
        ))
    stocks.sort(key=lambda s: (-s.projected_amount, s.symbol))
    return stocks


def project(records: Iterable[DividendRecord], holdings: Mapping[str, Holding],
            method: Union[ProjectionMethod, str] = ProjectionMethod.LAST_TWELVE_MONTHS,
            scenario: Optional[Union[GrowthScenario, str]] = None,
            target_year: Optional[int] = None, monthly: bool = False,
            today: Optional[date] = None) -> Projection:
    """Project annual (and optionally monthly) dividend income for ``target_year``.

    Every symbol behind the baseline gets a :class:`StockProjection` scaled
    by the same compounding factor, so their projected amounts add up to the
    annual total.

    Raises:
        NoBaselineDataError: the baseline window holds no dividend history.
        InsufficientDataError: no scenario given and the history is too short
            to compute a growth rate.
        InvalidParameterError: unknown method/scenario, or a target year that
            is not after the current year.
    """
    today = today or date.today()
    method = ProjectionMethod.parse(method)
    if scenario is not None:
        scenario = GrowthScenario.parse(scenario)
    if target_year is None:
        target_year = today.year + 1
    validate_year(target_year)
    if target_year <= today.year:
        raise InvalidParameterError(f"Target year {target_year} must be after the current year {today.year}")

    records = list(records)
    baseline = _baseline(records, holdings, method, today)

    if scenario is not None:
        rate, source = scenario.rate, scenario.label
    else:
        first_year = min((r.year for r in records), default=baseline.history_end_year)
        years = list(range(first_year, baseline.history_end_year + 1))
        rate = growth_analysis(records, years).overall_rate
        source = f"Historical ({years[0]}-{years[-1]})"

    periods = target_year - baseline.reference_year
    factor = (ONE + rate) ** periods
    annual = baseline.amount * factor
    logger.debug(
        "Projection %s: baseline %s (%s, ref %s) x (1 + %s)^%s = %s",
        target_year, baseline.amount, method.value, baseline.reference_year, rate, periods, annual,
    )

    breakdown, uniform = None, False
    if monthly:
        breakdown, uniform = distribute_monthly(annual, baseline.window)

    return Projection(
        target_year=target_year,
        method=method,
        scenario=scenario,
        growth_rate=rate,
        growth_source=source,
        baseline=baseline.amount,
        baseline_reference_year=baseline.reference_year,
        annual_total=annual,
        monthly_breakdown=breakdown,
        uniform_distribution=uniform,
        stock_projections=_stock_projections(baseline, records, holdings, rate, factor),
    )
