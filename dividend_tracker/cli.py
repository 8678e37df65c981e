"""Command‑line interface for dividend_tracker.

Provides sub‑commands to record dividends and holdings, import/export them,
and view growth, yield, consistency, projection, tax and calendar reports.
"""

import functools
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

import click
import pandas as pd
from tabulate import tabulate
from tqdm import tqdm

from . import __version__
from . import fetch
from . import persistence
from . import reports
from . import upcoming
from .analytics import AnalyticsEngine, ProjectionMethod, average_score
from .config import configure_logging, load_settings
from .errors import DividendTrackerError, FetchError, ValidationError
from .ledger import Ledger
from .models import DividendRecord, DividendType, Holding, TaxClassification
from .reports import MONTH_NAMES
from .tax import FilingStatus, IncomeBracket, TaxAssumptions
from .utils import ZERO, format_money, format_percent, parse_decimal

logger = logging.getLogger(__name__)


class DecimalType(click.ParamType):
    name = "decimal"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            return value
        try:
            return parse_decimal(value, param.name if param else "value")
        except ValidationError as exc:
            self.fail(str(exc), param, ctx)


DECIMAL = DecimalType()
ISO_DATE = click.DateTime(formats=["%Y-%m-%d"])


class AppContext:
    """Per-invocation state: settings, the store and a lazily loaded ledger."""

    def __init__(self, settings):
        self.settings = settings
        self.store = persistence.LedgerStore(settings.data_dir, settings.max_backups)
        self._ledger: Optional[Ledger] = None

    @property
    def ledger(self) -> Ledger:
        if self._ledger is None:
            self._ledger = self.store.load()
        return self._ledger

    def engine(self) -> AnalyticsEngine:
        return AnalyticsEngine(self.ledger)

    def save(self) -> None:
        self.store.save(self.ledger)


pass_app = click.make_pass_decorator(AppContext)


def handle_errors(func):
    """Report package errors as CLI errors (exit code 1) instead of tracebacks."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DividendTrackerError as exc:
            logger.debug("Command failed", exc_info=True)
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _table(rows, headers="keys", tablefmt="simple") -> str:
    return tabulate(rows, headers=headers, tablefmt=tablefmt, disable_numparse=True)


def _to_date(value) -> Optional[date]:
    return value.date() if value is not None else None


@click.group()
@click.version_option(version=__version__, prog_name="dividend-tracker")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding the ledger (default: $DIVIDEND_TRACKER_DATA_DIR or ~/.dividend-tracker).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, data_dir, verbose):
    """Personal dividend ledger, analytics and income projections."""
    try:
        settings = load_settings(data_dir)
    except DividendTrackerError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = AppContext(settings)


# -- ledger commands ---------------------------------------------------------

@main.command()
@click.argument("symbol")
@click.option("-a", "--amount", type=DECIMAL, required=True, help="Dividend amount per share.")
@click.option("-e", "--ex-date", type=ISO_DATE, required=True, help="Ex-dividend date (YYYY-MM-DD).")
@click.option("-p", "--pay-date", type=ISO_DATE, default=None, help="Payment date (defaults to the ex-date).")
@click.option("-s", "--shares", type=DECIMAL, default=None, help="Shares owned (defaults to the current holding).")
@click.option("--type", "dividend_type", type=click.Choice([t.value for t in DividendType]),
              default=DividendType.REGULAR.value, show_default=True)
@click.option("--tax", "tax_classification", type=click.Choice([t.value for t in TaxClassification]),
              default=TaxClassification.UNKNOWN.value, show_default=True)
@click.option("--company", default=None, help="Company name for display.")
@click.option("--force", is_flag=True, help="Add even if a dividend with the same ex-date exists.")
@pass_app
@handle_errors
def add(app, symbol, amount, ex_date, pay_date, shares, dividend_type, tax_classification, company, force):
    """Add a dividend payment record."""
    if shares is None:
        holding = app.ledger.get_holding(symbol)
        if holding is None or holding.shares <= ZERO:
            raise click.UsageError(f"No holding for {symbol.upper()}; pass --shares.")
        shares = holding.shares
    ex = _to_date(ex_date)
    record = DividendRecord(
        symbol=symbol,
        ex_date=ex,
        pay_date=_to_date(pay_date) or ex,
        amount_per_share=amount,
        shares_owned=shares,
        dividend_type=DividendType.parse(dividend_type),
        tax_classification=TaxClassification.parse(tax_classification),
        company_name=company,
    )
    app.ledger.add_record(record, force=force)
    app.save()
    click.echo(f"Added {record.symbol} {record.ex_date}: {record.amount_per_share} x "
               f"{record.shares_owned} = {format_money(record.total_amount)}")


@main.command()
@click.argument("symbol")
@click.option("-e", "--ex-date", type=ISO_DATE, required=True, help="Ex-dividend date of the record.")
@pass_app
@handle_errors
def remove(app, symbol, ex_date):
    """Remove the dividend record(s) for SYMBOL on an ex-date."""
    removed = app.ledger.remove_record(symbol, _to_date(ex_date))
    app.save()
    click.echo(f"Removed {removed} record(s) for {symbol.upper()}.")


@main.command(name="list")
@click.option("-s", "--symbol", default=None, help="Filter by stock symbol.")
@click.option("-y", "--year", type=int, default=None, help="Show payments from a specific year.")
@pass_app
@handle_errors
def list_(app, symbol, year):
    """List dividend payments."""
    records = app.ledger.records_for_symbol(symbol) if symbol else app.ledger.records()
    if year is not None:
        records = [r for r in records if r.year == year]
    if not records:
        click.echo("No dividend records found. Use 'add' to add some!")
        return

    df = pd.DataFrame([persistence.record_to_dict(r) for r in records])
    df = df.sort_values(["ex_date", "symbol"])
    df["total_amount"] = [format_money(Decimal(v)) for v in df["total_amount"]]
    view = df[["symbol", "ex_date", "pay_date", "amount_per_share", "shares_owned",
               "total_amount", "dividend_type", "tax_classification"]]
    click.echo(_table(view.values.tolist(), headers=[
        "Symbol", "Ex-Date", "Pay Date", "Per Share", "Shares", "Total", "Type", "Tax"]))
    total = sum((r.total_amount for r in records), ZERO)
    click.echo(f"\n{len(records)} payments, total {format_money(total)}")


@main.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--force", is_flag=True, help="Import rows even if they duplicate an existing ex-date.")
@pass_app
@handle_errors
def import_(app, file, force):
    """Import dividend records from a CSV file."""
    result = persistence.import_dividends_csv(app.ledger, file, force=force)
    if result.added:
        app.save()
    click.echo(f"Imported {result.added} dividends ({result.skipped} duplicates skipped).")
    for error in result.errors:
        click.echo(f"  {error}", err=True)


@main.command()
@click.option("-o", "--output", default="dividends.csv", show_default=True, help="Output CSV path.")
@pass_app
@handle_errors
def export(app, output):
    """Export dividend records to a CSV file."""
    count = persistence.export_dividends_csv(app.ledger, output)
    click.echo(f"Exported {count} dividends to {output}.")


# -- holdings ----------------------------------------------------------------

@main.group()
def holdings():
    """Manage current holdings."""


@holdings.command(name="add")
@click.argument("symbol")
@click.option("-s", "--shares", type=DECIMAL, required=True, help="Number of shares.")
@click.option("-c", "--cost-basis", type=DECIMAL, default=None, help="Average cost per share.")
@click.option("-y", "--yield", "current_yield", type=DECIMAL, default=None, help="Current yield in percent.")
@pass_app
@handle_errors
def holdings_add(app, symbol, shares, cost_basis, current_yield):
    """Add or update a holding."""
    holding = Holding(symbol, shares, cost_basis, current_yield)
    updated = app.ledger.upsert_holding(holding)
    app.save()
    click.echo(f"{'Updated' if updated else 'Added'} {holding.symbol}: {holding.shares} shares")


@holdings.command(name="remove")
@click.argument("symbol")
@pass_app
@handle_errors
def holdings_remove(app, symbol):
    """Remove a holding."""
    holding = app.ledger.remove_holding(symbol)
    app.save()
    click.echo(f"Removed holding {holding.symbol}.")


@holdings.command(name="list")
@click.option("--sort-by", type=click.Choice(["symbol", "shares", "value", "yield"]),
              default="symbol", show_default=True)
@click.option("--desc", is_flag=True, help="Sort descending.")
@pass_app
@handle_errors
def holdings_list(app, sort_by, desc):
    """List holdings."""
    current = app.ledger.holdings()
    if not current:
        click.echo("No holdings found. Use 'holdings add' to add some!")
        return
    df = pd.DataFrame([{
        "symbol": h.symbol,
        "shares": h.shares,
        "cost_basis": h.avg_cost_basis,
        "value": h.cost_value,
        "current_yield": h.current_yield,
    } for h in current.values()])
    column = "current_yield" if sort_by == "yield" else sort_by
    # Missing basis/yield sort last in either direction
    df = df.sort_values(column, ascending=not desc, na_position="last")

    def _dec(value):
        return value if isinstance(value, Decimal) else None

    rows = [[
        row.symbol,
        row.shares,
        format_money(_dec(row.cost_basis)),
        format_money(_dec(row.value)),
        "N/A" if _dec(row.current_yield) is None else f"{row.current_yield}%",
    ] for row in df.itertuples(index=False)]
    click.echo(_table(rows, headers=["Symbol", "Shares", "Cost Basis", "Cost Value", "Yield"]))


@holdings.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@pass_app
@handle_errors
def holdings_import(app, file):
    """Import holdings from a CSV file (symbol,shares,cost_basis,current_yield)."""
    result = persistence.import_holdings_csv(app.ledger, file)
    if result.added or result.updated:
        app.save()
    click.echo(f"{result.added} new holdings imported, {result.updated} existing holdings updated.")
    for error in result.errors:
        click.echo(f"  {error}", err=True)


@holdings.command(name="export")
@click.option("-o", "--output", default="holdings.csv", show_default=True)
@pass_app
@handle_errors
def holdings_export(app, output):
    """Export holdings to a CSV file."""
    count = persistence.export_holdings_csv(app.ledger, output)
    click.echo(f"Exported {count} holdings to {output}.")


# -- analytics ---------------------------------------------------------------

@main.command()
@click.option("-y", "--year", type=int, default=None, help="Year to summarize (defaults to current year).")
@pass_app
@handle_errors
def summary(app, year):
    """Show portfolio summary and statistics."""
    engine = app.engine()
    year = year or engine.today.year
    records = app.ledger.records_for_year(year)
    click.echo(f"--- Dividend Summary {year} ---")
    click.echo(f"Total income:   {format_money(engine.total_income(year))}")
    click.echo(f"Payments:       {len(records)}")
    click.echo(f"Unique symbols: {len({r.symbol for r in records})}")

    quarters = engine.quarterly_breakdown(year)
    click.echo("\nQuarterly Breakdown:")
    click.echo(_table([(f"Q{q.period}", format_money(q.total), q.payment_count) for q in quarters],
                      headers=["Quarter", "Total", "Payments"]))

    payers = engine.top_dividend_payers(5, year)
    if payers:
        click.echo("\nTop Payers:")
        click.echo(_table([(p.symbol, format_money(p.total_amount), p.payment_count) for p in payers],
                          headers=["Symbol", "Total", "Payments"]))


@main.command()
@click.option("--from-year", type=int, default=None, help="First year (defaults to the first year with data).")
@click.option("--to-year", type=int, default=None, help="Last year (defaults to the last year with data).")
@pass_app
@handle_errors
def growth(app, from_year, to_year):
    """Show year-over-year dividend growth."""
    engine = app.engine()
    years = engine.years_with_data()
    start = from_year if from_year is not None else (years[0] if years else engine.today.year)
    end = to_year if to_year is not None else (years[-1] if years else engine.today.year)
    analysis = engine.growth_analysis(list(range(start, end + 1)))

    rows = [(p.from_year, p.to_year, format_money(p.from_total), format_money(p.to_total),
             "skipped (zero base)" if p.skipped else format_percent(p.rate))
            for p in analysis.yearly_rates]
    click.echo(_table(rows, headers=["From", "To", "From Total", "To Total", "Growth"]))
    click.echo(f"\nAverage annual growth: {format_percent(analysis.overall_rate)}")
    click.echo(f"Compound annual growth: {format_percent(analysis.compound_rate)}")
    up, stalled, reduced, stopped = analysis.classify_changes()
    click.echo(f"Years Up: {up}  Stalled: {stalled}  Reduced: {reduced}  Stopped: {stopped}")

    click.echo("\nPer-Symbol Growth:")
    click.echo(_table([(s, format_percent(r)) for s, r in analysis.per_symbol_rates.items()],
                      headers=["Symbol", "Avg Growth"]))


@main.command(name="yield")
@click.option("-y", "--year", type=int, default=None, help="Year (defaults to the latest year with data).")
@pass_app
@handle_errors
def yield_(app, year):
    """Show yield on cost per holding and for the portfolio."""
    analysis = app.engine().yield_analysis(year)
    rows = [(y.symbol, format_money(y.dividend_total), format_money(y.cost_value),
             format_percent(y.yield_rate) if y.known else f"unknown ({y.status.value})")
            for y in analysis.per_symbol.values()]
    click.echo(f"--- Yield on Cost {analysis.year} ---")
    click.echo(_table(rows, headers=["Symbol", "Dividends", "Cost Value", "Yield"]))
    click.echo(f"\nPortfolio yield (weighted): {format_percent(analysis.portfolio_yield)}")
    if analysis.unknown_symbols:
        click.echo(f"Excluded from portfolio yield: {', '.join(analysis.unknown_symbols)}")


@main.command()
@pass_app
@handle_errors
def consistency(app):
    """Score how regularly each symbol pays."""
    scores = app.engine().consistency_analysis()
    if not scores:
        click.echo("No dividend records found.")
        return
    rows = [(s.symbol, f"{s.score:.2f}", f"{s.years_paid}/{s.years_spanned}", s.frequency.value,
             "insufficient history" if s.insufficient_history else "")
            for s in scores.values()]
    click.echo(_table(rows, headers=["Symbol", "Score", "Years Paid", "Frequency", "Note"]))
    click.echo(f"\nAverage consistency: {average_score(scores):.2f}")


@main.command()
@click.argument("year", type=int)
@click.option("--by", "period", type=click.Choice(["month", "quarter"]), default="month", show_default=True)
@pass_app
@handle_errors
def breakdown(app, year, period):
    """Show dividend income for YEAR by month or quarter."""
    engine = app.engine()
    if period == "month":
        rows = [(MONTH_NAMES[m.period - 1], format_money(m.total), m.payment_count)
                for m in engine.monthly_breakdown(year)]
    else:
        rows = [(f"Q{q.period}", format_money(q.total), q.payment_count)
                for q in engine.quarterly_breakdown(year)]
    click.echo(_table(rows, headers=[period.title(), "Total", "Payments"]))
    click.echo(f"\nTotal {year}: {format_money(engine.total_income(year))}")


@main.command()
@click.option("-n", "--limit", type=int, default=10, show_default=True)
@click.option("-y", "--year", type=int, default=None, help="Restrict to one year.")
@pass_app
@handle_errors
def top(app, limit, year):
    """Show the top dividend payers."""
    payers = app.engine().top_dividend_payers(limit, year)
    if not payers:
        click.echo("No dividend records found.")
        return
    rows = [(i, p.symbol, format_money(p.total_amount), p.payment_count, format_money(p.average_amount),
             p.first_ex_date, p.last_ex_date) for i, p in enumerate(payers, start=1)]
    click.echo(_table(rows, headers=["#", "Symbol", "Total", "Payments", "Average", "First", "Last"]))


@main.command()
@click.option("-m", "--method", type=click.Choice([m.value for m in ProjectionMethod]), default=None,
              help="Baseline method (default from settings).")
@click.option("-g", "--scenario", default=None,
              help="conservative, moderate, optimistic or custom:<rate> (default: historical growth).")
@click.option("-y", "--year", "target_year", type=int, default=None, help="Target year (default: next year).")
@click.option("--monthly", is_flag=True, help="Show a monthly breakdown.")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), default=None,
              help="Write the projection to a .csv or .json file.")
@pass_app
@handle_errors
def project(app, method, scenario, target_year, monthly, export_path):
    """Project future dividend income."""
    settings = app.settings
    projection = app.engine().project(
        method or settings.default_method,
        scenario or settings.default_scenario,
        target_year,
        monthly,
    )
    click.echo(f"--- Dividend Projection {projection.target_year} ---")
    click.echo(f"Method:    {projection.method.value} (baseline {format_money(projection.baseline)}, "
               f"reference year {projection.baseline_reference_year})")
    click.echo(f"Growth:    {projection.growth_source} -> {format_percent(projection.growth_rate)}")
    click.echo(f"Projected annual income: {format_money(projection.annual_total)}")

    click.echo("")
    click.echo(_table([
        (s.symbol, "N/A" if s.current_shares is None else s.current_shares,
         format_money(s.baseline_amount), format_money(s.projected_amount),
         s.projected_dividend_per_share.quantize(reports.PER_SHARE),
         s.payment_frequency.value, ",".join(MONTH_NAMES[m - 1][:3] for m in s.payment_months))
        for s in projection.stock_projections
    ], headers=["Symbol", "Shares", "Baseline", "Projected", "Per Share", "Frequency", "Months"]))

    if projection.monthly_breakdown:
        click.echo("")
        click.echo(_table([(MONTH_NAMES[m.month - 1], format_money(m.amount), format_percent(m.weight, 1),
                            m.payment_count, ", ".join(m.top_payers[:3]))
                           for m in projection.monthly_breakdown],
                          headers=["Month", "Projected", "Share", "Payers", "Top Payers"]))
        if projection.uniform_distribution:
            click.echo("Note: no historical monthly pattern; uniform distribution assumed.")

    if export_path:
        kind = reports.export_projection(projection, export_path)
        click.echo(f"\nProjection exported to {export_path} ({kind.upper()}).")


@main.command()
@click.option("-y", "--year", type=int, default=None, help="Tax year (defaults to last year).")
@click.option("--filing-status", type=click.Choice([s.value for s in FilingStatus]),
              default=FilingStatus.SINGLE.value, show_default=True)
@click.option("--bracket", type=click.Choice([b.value for b in IncomeBracket]), default=None,
              help="Income bracket; adds an estimated tax section.")
@click.option("--form-1099", "form_1099", is_flag=True, help="Show a 1099-DIV style report.")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), default=None,
              help="Write the summary (or the 1099-DIV report with --form-1099) to a CSV file.")
@pass_app
@handle_errors
def tax(app, year, filing_status, bracket, form_1099, export_path):
    """Summarize a tax year's dividend income by classification."""
    engine = app.engine()
    year = year or engine.today.year - 1
    report = engine.tax_summary(year)
    click.echo(f"--- Tax Summary {year} ---")
    click.echo(_table([(c.value, format_money(v)) for c, v in report.by_classification.items() if v],
                      headers=["Classification", "Amount"]))
    click.echo(f"\nTotal dividend income: {format_money(report.total)}")
    click.echo(f"Taxable income:        {format_money(report.taxable_income)}")

    estimate = None
    if bracket:
        estimate = engine.estimated_tax(year, TaxAssumptions(filing_status, bracket))
        assumptions = estimate.assumptions
        click.echo(f"\nEstimated tax ({assumptions.filing_status.value}, {assumptions.income_bracket.value} bracket):")
        click.echo(f"  Qualified at {format_percent(assumptions.capital_gains_rate, 0)}: "
                   f"{format_money(estimate.qualified_tax)}")
        click.echo(f"  Ordinary at {format_percent(assumptions.ordinary_rate, 0)}:  "
                   f"{format_money(estimate.ordinary_tax)}")
        click.echo(f"  Total:            {format_money(estimate.total)}")

    form = None
    if form_1099:
        form = engine.form_1099_div(year)
        click.echo(f"\n--- 1099-DIV {year} ---")
        click.echo(_table([(p.payer_name, p.symbol, format_money(p.ordinary_dividends),
                            format_money(p.qualified_dividends), format_money(p.non_dividend_distributions),
                            format_money(p.exempt_interest_dividends)) for p in form.payers],
                          headers=["Payer", "Symbol", "1a Ordinary", "1b Qualified", "3 Non-dividend",
                                   "12 Exempt"]))
        click.echo(f"\nBox 1a total: {format_money(form.ordinary_dividends)}")
        click.echo(f"Box 1b total: {format_money(form.qualified_dividends)}")

    if export_path:
        if form is not None:
            reports.export_1099_div_csv(form, export_path)
        else:
            reports.export_tax_summary_csv(report, export_path, estimate)
        click.echo(f"\nExported to {export_path}.")


@main.command()
@click.option("-d", "--days", type=click.IntRange(min=1), default=upcoming.DEFAULT_DAYS, show_default=True,
              help="How many days ahead to look.")
@click.option("--ics", "ics_path", type=click.Path(dir_okay=False), default=None,
              help="Also write the events to an iCalendar (.ics) file.")
@pass_app
@handle_errors
def calendar(app, days, ics_path):
    """Show estimated upcoming dividends for current holdings."""
    today = date.today()
    entries = upcoming.upcoming_dividends(app.ledger.records(), app.ledger.holdings(), days, today)
    if not entries:
        click.echo(f"No dividends expected in the next {days} days.")
    else:
        rows = [(e.ex_date, e.symbol, "Tomorrow" if e.days_until == 1 else f"In {e.days_until} days",
                 e.amount_per_share.quantize(reports.PER_SHARE), format_money(e.estimated_income),
                 e.pay_date, e.frequency.value) for e in entries]
        click.echo(_table(rows, headers=["Ex-Date", "Symbol", "When", "Per Share", "Est. Income",
                                         "Pay Date", "Frequency"]))
        total = sum((e.estimated_income for e in entries), ZERO)
        click.echo(f"\n{len(entries)} estimated payment(s), {format_money(total)} expected.")
    if ics_path:
        count = reports.export_ics(entries, ics_path)
        click.echo(f"Calendar exported to {ics_path} ({count} events).")


@main.command(name="fetch")
@click.argument("symbols", nargs=-1)
@click.option("--all", "fetch_all", is_flag=True, help="Fetch every holding.")
@click.option("--since", type=ISO_DATE, default=None, help="Only add dividends on or after this date.")
@pass_app
@handle_errors
def fetch_(app, symbols, fetch_all, since):
    """Download historical dividends for held SYMBOLS and add them."""
    current = app.ledger.holdings()
    targets = sorted(current) if fetch_all else [s.upper() for s in symbols]
    if not targets:
        raise click.UsageError("Give one or more symbols or --all.")

    added = skipped = 0
    for symbol in tqdm(targets, desc="Fetching dividends", disable=len(targets) < 2):
        holding = current.get(symbol)
        if holding is None:
            click.echo(f"\nNo holding for {symbol}; add it with 'holdings add' first.", err=True)
            continue
        try:
            history = fetch.fetch_dividend_history(symbol, timeout=app.settings.request_timeout)
        except FetchError as e:
            click.echo(f"\n{e}", err=True)
            continue
        for record in fetch.records_from_history(history, holding, _to_date(since)):
            if app.ledger.find_record(record.symbol, record.ex_date) is not None:
                skipped += 1
                continue
            app.ledger.add_record(record)
            added += 1
    if added:
        app.save()
    click.echo(f"Added {added} dividends ({skipped} already recorded).")


@main.command()
@pass_app
@handle_errors
def stats(app):
    """Show statistics about the stored data."""
    info = app.store.stats()
    click.echo(f"Data directory: {info.data_dir}")
    click.echo(f"Dividends:      {info.dividend_count}")
    click.echo(f"Holdings:       {info.holding_count}")
    click.echo(f"File size:      {info.size_bytes} bytes")
    click.echo(f"Backups:        {info.backup_count}")
    click.echo(f"Saves:          {info.save_count}")
    if info.last_saved:
        click.echo(f"Last saved:     {info.last_saved}")


if __name__ == "__main__":
    main()
