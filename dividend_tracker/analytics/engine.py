"""Facade bundling the analytics over one ledger snapshot.

This is the surface the CLI and reports use. Each call re-reads the ledger
and recomputes from scratch.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from ..ledger import Ledger
from ..tax import (
    EstimatedTax,
    Form1099Div,
    TaxAssumptions,
    TaxSummary,
    estimate_tax,
    form_1099_div,
    tax_summary,
)
from . import aggregator
from .consistency import ConsistencyScore, consistency_analysis
from .growth import GrowthAnalysis, growth_analysis
from .projection import GrowthScenario, Projection, ProjectionMethod, project
from .yields import YieldAnalysis, yield_analysis


class AnalyticsEngine:
    def __init__(self, ledger: Ledger, today: Optional[date] = None):
        self.ledger = ledger
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def years_with_data(self) -> List[int]:
        return sorted({r.year for r in self.ledger.records()})

    def total_income(self, year: Optional[int] = None) -> Decimal:
        return aggregator.total_income(self.ledger.records(), year)

    def growth_analysis(self, years: Sequence[int]) -> GrowthAnalysis:
        return growth_analysis(self.ledger.records(), years)

    def yield_analysis(self, year: Optional[int] = None) -> YieldAnalysis:
        return yield_analysis(self.ledger.records(), self.ledger.holdings(), year,
                              default_year=self.today.year)

    def consistency_analysis(self) -> Dict[str, ConsistencyScore]:
        return consistency_analysis(self.ledger.records())

    def monthly_breakdown(self, year: int) -> List[aggregator.PeriodTotal]:
        return aggregator.monthly_breakdown(self.ledger.records(), year)

    def quarterly_breakdown(self, year: int) -> List[aggregator.PeriodTotal]:
        return aggregator.quarterly_breakdown(self.ledger.records(), year)

    def top_dividend_payers(self, limit: Optional[int] = None,
                            year: Optional[int] = None) -> List[aggregator.PayerSummary]:
        return aggregator.top_dividend_payers(self.ledger.records(), limit, year)

    def project(self, method: Union[ProjectionMethod, str] = ProjectionMethod.LAST_TWELVE_MONTHS,
                scenario: Optional[Union[GrowthScenario, str]] = None,
                target_year: Optional[int] = None, monthly: bool = False) -> Projection:
        return project(self.ledger.records(), self.ledger.holdings(), method, scenario,
                       target_year, monthly, today=self.today)

    def tax_summary(self, year: int) -> TaxSummary:
        return tax_summary(self.ledger.records(), year)

    def estimated_tax(self, year: int, assumptions: Optional[TaxAssumptions] = None) -> EstimatedTax:
        return estimate_tax(self.tax_summary(year), assumptions)

    def form_1099_div(self, year: int) -> Form1099Div:
        return form_1099_div(self.tax_summary(year))
