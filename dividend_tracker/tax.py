"""Tax-year summary of dividend income by tax classification.

Unclassified income is reported under ``UNKNOWN``; no treatment is assumed
for it in the summary. The estimate and the 1099-DIV style report build on
the summary:

* :func:`estimate_tax` applies approximate federal rates for an income
  bracket: qualified dividends at the capital-gains rate, every other
  taxable class (non-qualified, foreign, unknown) at the ordinary rate.
* :func:`form_1099_div` groups the year per payer into the boxes of a
  1099-DIV: 1a ordinary, 1b qualified, 3 non-dividend distributions and
  12 exempt-interest dividends.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .models import DividendRecord, TaggedEnum, TaxClassification
from .utils import ZERO, validate_year

# Not taxed as dividend income.
NON_TAXABLE = (TaxClassification.RETURN_OF_CAPITAL, TaxClassification.TAX_FREE)


class FilingStatus(TaggedEnum):
    SINGLE = "single"
    MARRIED_JOINT = "married_joint"
    MARRIED_SEPARATE = "married_separate"
    HEAD_OF_HOUSEHOLD = "head_of_household"


class IncomeBracket(TaggedEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


# (ordinary rate, qualified/capital-gains rate). Approximate 2023 federal
# brackets; the same for every filing status.
_BRACKET_RATES = {
    IncomeBracket.LOW: (Decimal("0.12"), Decimal("0")),
    IncomeBracket.MEDIUM: (Decimal("0.22"), Decimal("0.15")),
    IncomeBracket.HIGH: (Decimal("0.24"), Decimal("0.15")),
    IncomeBracket.VERY_HIGH: (Decimal("0.32"), Decimal("0.20")),
}


@dataclass(frozen=True)
class SymbolTaxSummary:
    symbol: str
    total: Decimal
    by_classification: Dict[TaxClassification, Decimal]
    payment_count: int
    company_name: Optional[str] = None

    def amount(self, classification: TaxClassification) -> Decimal:
        return self.by_classification.get(classification, ZERO)

    @property
    def taxable_income(self) -> Decimal:
        return self.total - sum((self.amount(c) for c in NON_TAXABLE), ZERO)


@dataclass(frozen=True)
class TaxSummary:
    year: int
    total: Decimal
    by_classification: Dict[TaxClassification, Decimal]
    by_symbol: Dict[str, SymbolTaxSummary]

    @property
    def taxable_income(self) -> Decimal:
        """Income excluding return of capital and tax-free distributions."""
        return self.total - sum((self.by_classification[c] for c in NON_TAXABLE), ZERO)


@dataclass(frozen=True)
class TaxAssumptions:
    filing_status: FilingStatus = FilingStatus.SINGLE
    income_bracket: IncomeBracket = IncomeBracket.MEDIUM

    def __post_init__(self):
        object.__setattr__(self, "filing_status", FilingStatus.parse(self.filing_status))
        object.__setattr__(self, "income_bracket", IncomeBracket.parse(self.income_bracket))

    @property
    def ordinary_rate(self) -> Decimal:
        return _BRACKET_RATES[self.income_bracket][0]

    @property
    def capital_gains_rate(self) -> Decimal:
        return _BRACKET_RATES[self.income_bracket][1]


@dataclass(frozen=True)
class EstimatedTax:
    year: int
    assumptions: TaxAssumptions
    qualified_income: Decimal
    ordinary_income: Decimal
    qualified_tax: Decimal
    ordinary_tax: Decimal

    @property
    def total(self) -> Decimal:
        return self.qualified_tax + self.ordinary_tax


@dataclass(frozen=True)
class PayerInfo:
    """One payer's row of a 1099-DIV report."""

    payer_name: str
    symbol: str
    ordinary_dividends: Decimal
    qualified_dividends: Decimal
    non_dividend_distributions: Decimal
    exempt_interest_dividends: Decimal


@dataclass(frozen=True)
class Form1099Div:
    year: int
    payers: List[PayerInfo] = field(default_factory=list)

    def _total(self, attribute: str) -> Decimal:
        return sum((getattr(p, attribute) for p in self.payers), ZERO)

    @property
    def ordinary_dividends(self) -> Decimal:
        return self._total("ordinary_dividends")

    @property
    def qualified_dividends(self) -> Decimal:
        return self._total("qualified_dividends")

    @property
    def non_dividend_distributions(self) -> Decimal:
        return self._total("non_dividend_distributions")

    @property
    def exempt_interest_dividends(self) -> Decimal:
        return self._total("exempt_interest_dividends")


def tax_summary(records: Iterable[DividendRecord], year: int) -> TaxSummary:
    validate_year(year)
    totals: Dict[TaxClassification, Decimal] = {c: ZERO for c in TaxClassification}
    symbol_totals: Dict[str, Dict[TaxClassification, Decimal]] = defaultdict(dict)
    counts: Dict[str, int] = defaultdict(int)
    names: Dict[str, str] = {}

    for record in records:
        if record.year != year:
            continue
        cls = record.tax_classification
        totals[cls] += record.total_amount
        bucket = symbol_totals[record.symbol]
        bucket[cls] = bucket.get(cls, ZERO) + record.total_amount
        counts[record.symbol] += 1
        if record.company_name:
            names.setdefault(record.symbol, record.company_name)

    by_symbol = {
        symbol: SymbolTaxSummary(symbol, sum(parts.values(), ZERO), parts, counts[symbol], names.get(symbol))
        for symbol, parts in sorted(symbol_totals.items())
    }
    return TaxSummary(year, sum(totals.values(), ZERO), totals, by_symbol)


def estimate_tax(summary: TaxSummary, assumptions: Optional[TaxAssumptions] = None) -> EstimatedTax:
    """Estimated federal tax on a year's dividends under ``assumptions``."""
    assumptions = assumptions or TaxAssumptions()
    qualified = summary.by_classification[TaxClassification.QUALIFIED]
    ordinary = summary.taxable_income - qualified
    return EstimatedTax(
        year=summary.year,
        assumptions=assumptions,
        qualified_income=qualified,
        ordinary_income=ordinary,
        qualified_tax=qualified * assumptions.capital_gains_rate,
        ordinary_tax=ordinary * assumptions.ordinary_rate,
    )


def form_1099_div(summary: TaxSummary) -> Form1099Div:
    payers = [
        PayerInfo(
            payer_name=s.company_name or s.symbol,
            symbol=s.symbol,
            ordinary_dividends=s.taxable_income,
            qualified_dividends=s.amount(TaxClassification.QUALIFIED),
            non_dividend_distributions=s.amount(TaxClassification.RETURN_OF_CAPITAL),
            exempt_interest_dividends=s.amount(TaxClassification.TAX_FREE),
        )
        for s in summary.by_symbol.values()
    ]
    return Form1099Div(summary.year, payers)
