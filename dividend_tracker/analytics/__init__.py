"""Analytics and projection engine.

All functions here are pure: they read a snapshot of records and holdings
and never mutate the ledger.
"""

from .aggregator import (
    Bucket,
    Grouping,
    PayerSummary,
    PeriodTotal,
    aggregate,
    monthly_breakdown,
    quarterly_breakdown,
    records_frame,
    reindex_years,
    symbol_yearly_totals,
    top_dividend_payers,
    total_income,
    yearly_totals,
)
from .consistency import ConsistencyScore, PaymentFrequency, average_score, consistency_analysis
from .engine import AnalyticsEngine
from .growth import GrowthAnalysis, YearOverYear, growth_analysis
from .projection import (
    GrowthScenario,
    MonthlyProjection,
    Projection,
    ProjectionMethod,
    ScenarioKind,
    StockProjection,
    distribute_monthly,
    project,
)
from .yields import SymbolYield, YieldAnalysis, YieldStatus, yield_analysis

__all__ = [
    "AnalyticsEngine",
    "Bucket",
    "ConsistencyScore",
    "GrowthAnalysis",
    "GrowthScenario",
    "Grouping",
    "MonthlyProjection",
    "PayerSummary",
    "PaymentFrequency",
    "PeriodTotal",
    "Projection",
    "ProjectionMethod",
    "ScenarioKind",
    "StockProjection",
    "SymbolYield",
    "YearOverYear",
    "YieldAnalysis",
    "YieldStatus",
    "aggregate",
    "average_score",
    "consistency_analysis",
    "distribute_monthly",
    "growth_analysis",
    "monthly_breakdown",
    "project",
    "quarterly_breakdown",
    "records_frame",
    "reindex_years",
    "symbol_yearly_totals",
    "top_dividend_payers",
    "total_income",
    "yearly_totals",
    "yield_analysis",
]
