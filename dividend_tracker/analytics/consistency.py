"""Payment regularity per symbol.

The score is the share of years, from the symbol's first payment year to the
latest year anywhere in the ledger, that contain at least one payment.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Mapping

from ..models import DividendRecord


class PaymentFrequency(Enum):
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUAL = "Semi-Annual"
    ANNUAL = "Annual"
    IRREGULAR = "Irregular"


# Mean days between ex-dates, inclusive bounds.
_FREQUENCY_BANDS = (
    (20, 40, PaymentFrequency.MONTHLY),
    (80, 100, PaymentFrequency.QUARTERLY),
    (170, 200, PaymentFrequency.SEMI_ANNUAL),
    (350, 380, PaymentFrequency.ANNUAL),
)


@dataclass(frozen=True)
class ConsistencyScore:
    symbol: str
    score: float
    insufficient_history: bool
    years_paid: int
    years_spanned: int
    frequency: PaymentFrequency = PaymentFrequency.IRREGULAR
    payment_intervals: List[int] = field(default_factory=list)


def estimate_frequency(ex_dates: Iterable[date]) -> PaymentFrequency:
    """Classify cadence from the mean gap between distinct ex-dates."""
    dates = sorted(set(ex_dates))
    if len(dates) < 2:
        return PaymentFrequency.IRREGULAR
    intervals = [(b - a).days for a, b in zip(dates, dates[1:])]
    mean = round(sum(intervals) / len(intervals))
    for low, high, frequency in _FREQUENCY_BANDS:
        if low <= mean <= high:
            return frequency
    return PaymentFrequency.IRREGULAR


def consistency_analysis(records: Iterable[DividendRecord]) -> Dict[str, ConsistencyScore]:
    dates: Dict[str, List[date]] = defaultdict(list)
    for record in records:
        dates[record.symbol].append(record.ex_date)
    if not dates:
        return {}

    last_year = max(d.year for ex_dates in dates.values() for d in ex_dates)
    scores = {}
    for symbol in sorted(dates):
        ex_dates = sorted(dates[symbol])
        years_paid = len({d.year for d in ex_dates})
        years_spanned = last_year - ex_dates[0].year + 1
        insufficient = years_spanned == 1
        scores[symbol] = ConsistencyScore(
            symbol=symbol,
            score=1.0 if insufficient else years_paid / years_spanned,
            insufficient_history=insufficient,
            years_paid=years_paid,
            years_spanned=years_spanned,
            frequency=estimate_frequency(ex_dates),
            payment_intervals=[(b - a).days for a, b in zip(ex_dates, ex_dates[1:])],
        )
    return scores


def average_score(scores: Mapping[str, ConsistencyScore]) -> float:
    """Mean score over symbols with enough history; 0.0 when there are none."""
    rated = [s.score for s in scores.values() if not s.insufficient_history]
    return sum(rated) / len(rated) if rated else 0.0
