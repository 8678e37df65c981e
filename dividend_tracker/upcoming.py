"""Estimated upcoming dividends for current holdings.

The next ex-date of a held symbol is its most recent recorded ex-date plus
the interval of its payment frequency. Only that single step is taken: a
symbol whose estimated date is already past is left out rather than rolled
forward, since the payer has probably changed schedule or stopped. The pay
date is assumed to fall a week after the ex-date and the amount is the
average per-share dividend on record.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from .analytics.consistency import PaymentFrequency, estimate_frequency
from .errors import InvalidParameterError
from .models import DividendRecord, Holding
from .utils import ZERO

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 90
PAY_DATE_LAG = timedelta(days=7)

_INTERVAL_DAYS = {
    PaymentFrequency.MONTHLY: 30,
    PaymentFrequency.QUARTERLY: 90,
    PaymentFrequency.SEMI_ANNUAL: 180,
    PaymentFrequency.ANNUAL: 365,
    PaymentFrequency.IRREGULAR: 90,
}


@dataclass(frozen=True)
class UpcomingDividend:
    symbol: str
    ex_date: date
    pay_date: date
    amount_per_share: Decimal
    shares: Decimal
    frequency: PaymentFrequency
    days_until: int
    company_name: Optional[str] = None

    @property
    def estimated_income(self) -> Decimal:
        return self.amount_per_share * self.shares


def estimate_next_dividend(history: List[DividendRecord], holding: Holding, today: date,
                           end: date) -> Optional[UpcomingDividend]:
    """The next estimated payment for one symbol if it falls in (today, end]."""
    if not history:
        return None
    latest = max(history, key=lambda r: r.ex_date)
    frequency = estimate_frequency(r.ex_date for r in history)
    ex_date = latest.ex_date + timedelta(days=_INTERVAL_DAYS[frequency])
    if not today < ex_date <= end:
        return None
    average = sum((r.amount_per_share for r in history), ZERO) / len(history)
    company = next((r.company_name for r in reversed(history) if r.company_name), None)
    return UpcomingDividend(
        symbol=holding.symbol,
        ex_date=ex_date,
        pay_date=ex_date + PAY_DATE_LAG,
        amount_per_share=average,
        shares=holding.shares,
        frequency=frequency,
        days_until=(ex_date - today).days,
        company_name=company,
    )


def upcoming_dividends(records: Iterable[DividendRecord], holdings: Mapping[str, Holding],
                       days: int = DEFAULT_DAYS, today: Optional[date] = None) -> List[UpcomingDividend]:
    """Estimated payments for held symbols within the next ``days`` days.

    Holdings with zero shares are skipped. Results are ordered by ex-date,
    then symbol.
    """
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise InvalidParameterError(f"Days must be a positive integer, got {days!r}")
    today = today or date.today()
    end = today + timedelta(days=days)

    history: Dict[str, List[DividendRecord]] = defaultdict(list)
    for record in records:
        history[record.symbol].append(record)

    entries = []
    for symbol, holding in holdings.items():
        if holding.shares <= ZERO:
            continue
        entry = estimate_next_dividend(sorted(history.get(symbol, []), key=lambda r: r.ex_date),
                                       holding, today, end)
        if entry is None:
            logger.debug("No estimated dividend for %s before %s", symbol, end)
            continue
        entries.append(entry)
    entries.sort(key=lambda e: (e.ex_date, e.symbol))
    return entries
