"""Report exports: projections (CSV/JSON), tax reports (CSV) and the
dividend calendar (iCalendar).

Amounts are written as plain decimal strings rounded to cents, except
per-share figures which keep four places.
"""

import csv
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Iterable, Optional

from .analytics.projection import Projection
from .errors import PersistenceError
from .tax import EstimatedTax, Form1099Div, TaxSummary
from .upcoming import UpcomingDividend
from .utils import CENT, format_percent

logger = logging.getLogger(__name__)

PER_SHARE = Decimal("0.0001")
ICS_PRODID = "-//Dividend Tracker//EN"

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
]


def _cents(amount: Decimal) -> str:
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def _per_share(amount: Decimal) -> str:
    return str(amount.quantize(PER_SHARE, rounding=ROUND_HALF_UP))


def _open(path):
    try:
        return open(path, "w", newline="", encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}") from exc


# -- projections ---------------------------------------------------------------

def export_projection_csv(projection: Projection, path) -> None:
    """Rows of ``Type,Symbol,Month,Amount,Details``: a summary row, one row
    per stock, one per month when a breakdown exists, then the assumptions."""
    with _open(path) as fh:
        writer = csv.writer(fh)
        writer.writerow(["Type", "Symbol", "Month", "Amount", "Details"])
        writer.writerow(["Summary", "Portfolio", "Annual", _cents(projection.annual_total),
                         f"Total projected income for {projection.target_year}"])
        for stock in projection.stock_projections:
            writer.writerow(["Stock", stock.symbol, "Annual", _cents(stock.projected_amount),
                             f"{_per_share(stock.projected_dividend_per_share)} per share, "
                             f"{stock.payment_frequency.value}"])
        for month in projection.monthly_breakdown or []:
            writer.writerow(["Monthly", "Portfolio", MONTH_NAMES[month.month - 1], _cents(month.amount),
                             "|".join(month.top_payers)])
        writer.writerow(["Metadata", "Method", "", "-", projection.method.value])
        writer.writerow(["Metadata", "Growth", "", "-",
                         f"{projection.growth_source} {format_percent(projection.growth_rate)}"])
        writer.writerow(["Metadata", "Baseline", str(projection.baseline_reference_year),
                         _cents(projection.baseline), ""])
    logger.info("Wrote projection for %s to %s", projection.target_year, path)


def projection_to_dict(projection: Projection) -> dict:
    return {
        "target_year": projection.target_year,
        "method": projection.method.value,
        "growth_source": projection.growth_source,
        "growth_rate": str(projection.growth_rate),
        "baseline": _cents(projection.baseline),
        "baseline_reference_year": projection.baseline_reference_year,
        "annual_total": _cents(projection.annual_total),
        "uniform_distribution": projection.uniform_distribution,
        "stock_projections": [{
            "symbol": s.symbol,
            "current_shares": None if s.current_shares is None else str(s.current_shares),
            "baseline_amount": _cents(s.baseline_amount),
            "projected_amount": _cents(s.projected_amount),
            "historical_dividend_per_share": _per_share(s.historical_dividend_per_share),
            "projected_dividend_per_share": _per_share(s.projected_dividend_per_share),
            "growth_applied": str(s.growth_applied),
            "payment_frequency": s.payment_frequency.value,
            "payment_months": s.payment_months,
        } for s in projection.stock_projections],
        "monthly_breakdown": [{
            "month": m.month,
            "month_name": MONTH_NAMES[m.month - 1],
            "amount": _cents(m.amount),
            "payment_count": m.payment_count,
            "top_payers": list(m.top_payers),
        } for m in projection.monthly_breakdown or []],
    }


def export_projection_json(projection: Projection, path) -> None:
    with _open(path) as fh:
        json.dump(projection_to_dict(projection), fh, indent=2)
    logger.info("Wrote projection for %s to %s", projection.target_year, path)


def export_projection(projection: Projection, path) -> str:
    """Write ``projection`` as JSON for a ``.json`` path, otherwise CSV.

    Returns the format written.
    """
    if Path(path).suffix.lower() == ".json":
        export_projection_json(projection, path)
        return "json"
    export_projection_csv(projection, path)
    return "csv"


# -- tax -----------------------------------------------------------------------

def export_tax_summary_csv(summary: TaxSummary, path, estimate: Optional[EstimatedTax] = None) -> None:
    with _open(path) as fh:
        writer = csv.writer(fh)
        writer.writerow(["Tax Summary", summary.year])
        writer.writerow([])
        writer.writerow(["Classification", "Amount"])
        for classification, amount in summary.by_classification.items():
            writer.writerow([classification.value, _cents(amount)])
        writer.writerow(["total", _cents(summary.total)])
        writer.writerow(["taxable", _cents(summary.taxable_income)])
        if estimate is not None:
            writer.writerow([])
            writer.writerow(["Estimated Tax", estimate.assumptions.filing_status.value,
                             estimate.assumptions.income_bracket.value])
            writer.writerow(["qualified", _cents(estimate.qualified_tax)])
            writer.writerow(["ordinary", _cents(estimate.ordinary_tax)])
            writer.writerow(["total", _cents(estimate.total)])
        writer.writerow([])
        writer.writerow(["Symbol", "Total", "Taxable", "Payments"])
        for symbol, part in summary.by_symbol.items():
            writer.writerow([symbol, _cents(part.total), _cents(part.taxable_income), part.payment_count])


def export_1099_div_csv(report: Form1099Div, path) -> None:
    with _open(path) as fh:
        writer = csv.writer(fh)
        writer.writerow(["1099-DIV Summary", report.year])
        writer.writerow(["Box 1a - Total Ordinary Dividends", _cents(report.ordinary_dividends)])
        writer.writerow(["Box 1b - Qualified Dividends", _cents(report.qualified_dividends)])
        writer.writerow(["Box 3 - Non-dividend Distributions", _cents(report.non_dividend_distributions)])
        writer.writerow(["Box 12 - Exempt-interest Dividends", _cents(report.exempt_interest_dividends)])
        writer.writerow([])
        writer.writerow(["Payer Name", "Symbol", "Box 1a (Ordinary)", "Box 1b (Qualified)",
                         "Box 3 (Non-dividend)", "Box 12 (Exempt-interest)"])
        for payer in report.payers:
            writer.writerow([payer.payer_name, payer.symbol, _cents(payer.ordinary_dividends),
                             _cents(payer.qualified_dividends), _cents(payer.non_dividend_distributions),
                             _cents(payer.exempt_interest_dividends)])


# -- calendar ------------------------------------------------------------------

def _ics_text(value: str) -> str:
    return (value.replace("\\", "\\\\").replace(";", "\\;")
            .replace(",", "\\,").replace("\n", "\\n"))


def ics_events(entries: Iterable[UpcomingDividend], stamp: Optional[datetime] = None) -> str:
    """Render ``entries`` as an iCalendar document, one all-day event per ex-date."""
    stamp = (stamp or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
    ]
    for entry in entries:
        description = [f"Stock: {entry.symbol}"]
        if entry.company_name:
            description.append(f"Company: {entry.company_name}")
        description.append(f"Dividend: ${_per_share(entry.amount_per_share)} per share (estimated)")
        description.append(f"Estimated income: ${_cents(entry.estimated_income)}")
        description.append(f"Pay Date: {entry.pay_date.isoformat()}")
        lines += [
            "BEGIN:VEVENT",
            f"UID:{entry.symbol}-{entry.ex_date:%Y%m%d}@dividend-tracker",
            f"DTSTAMP:{stamp}",
            f"DTSTART;VALUE=DATE:{entry.ex_date:%Y%m%d}",
            f"DTEND;VALUE=DATE:{entry.ex_date + timedelta(days=1):%Y%m%d}",
            "SUMMARY:" + _ics_text(f"{entry.symbol} Ex-Dividend (${_per_share(entry.amount_per_share)}/share)"),
            "DESCRIPTION:" + "\\n".join(_ics_text(part) for part in description),
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            "TRIGGER:-P1D",
            f"DESCRIPTION:Tomorrow is ex-dividend date for {entry.symbol}",
            "END:VALARM",
            "END:VEVENT",
        ]
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def export_ics(entries: Iterable[UpcomingDividend], path, stamp: Optional[datetime] = None) -> int:
    entries = list(entries)
    with _open(path) as fh:
        fh.write(ics_events(entries, stamp))
    logger.info("Wrote %d calendar events to %s", len(entries), path)
    return len(entries)
