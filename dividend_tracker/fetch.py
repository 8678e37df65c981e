"""Historical dividend download.

Uses direct calls to Yahoo Finance's chart API, as the ledger only needs
past ex-dates and per-share amounts. Nothing here is real-time data.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

import requests

from .errors import FetchError
from .models import DividendRecord, DividendType, Holding
from .utils import ZERO, parse_decimal

logger = logging.getLogger(__name__)

YAHOO_API_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?range=max&interval=1mo&events=div"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
}


@dataclass(frozen=True)
class FetchedDividend:
    symbol: str
    ex_date: date
    amount: Decimal


def parse_chart_response(symbol: str, data: dict) -> List[FetchedDividend]:
    """Extract dividend events from a chart API payload, oldest first."""
    result = (data.get("chart") or {}).get("result") or []
    if not result:
        error = (data.get("chart") or {}).get("error")
        if error:
            raise FetchError(f"{symbol}: {error.get('description') or error}")
        return []

    dividends_data = (result[0].get("events") or {}).get("dividends") or {}
    events = []
    for _, div in dividends_data.items():
        amount = div.get("amount")
        ts = div.get("date")
        if amount is None or ts is None:
            continue
        # repr keeps the shortest decimal form of the float the API sent
        value = parse_decimal(repr(float(amount)), "amount")
        if value <= ZERO:
            continue
        ex_date = datetime.fromtimestamp(ts, tz=timezone.utc).date()
        events.append(FetchedDividend(symbol, ex_date, value))
    events.sort(key=lambda e: e.ex_date)
    return events


def fetch_dividend_history(symbol: str, session: Optional[requests.Session] = None,
                           timeout: float = 15) -> List[FetchedDividend]:
    """Fetch dividend history for ``symbol`` using Yahoo's chart API."""
    http = session or requests
    url = YAHOO_API_URL.format(symbol=symbol)
    try:
        response = http.get(url, headers=HEADERS, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as exc:
        raise FetchError(f"Error fetching dividends for {symbol}: {exc}") from exc
    except ValueError as exc:
        raise FetchError(f"Invalid response for {symbol}: {exc}") from exc
    events = parse_chart_response(symbol, data)
    logger.info("Fetched %d dividends for %s", len(events), symbol)
    return events


def records_from_history(history: Iterable[FetchedDividend], holding: Holding,
                         since: Optional[date] = None) -> List[DividendRecord]:
    """Turn fetched events into ledger records sized by ``holding.shares``.

    The chart API has no pay dates, so the ex-date is used for both.
    """
    if holding.shares <= ZERO:
        return []
    records = []
    for event in history:
        if since is not None and event.ex_date < since:
            continue
        records.append(DividendRecord(
            symbol=holding.symbol,
            ex_date=event.ex_date,
            pay_date=event.ex_date,
            amount_per_share=event.amount,
            shares_owned=holding.shares,
            dividend_type=DividendType.REGULAR,
        ))
    return records
