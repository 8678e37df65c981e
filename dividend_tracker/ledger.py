"""In-memory ledger of dividend records and holdings.

The ledger only stores and hands out entities; every derived figure lives in
:mod:`dividend_tracker.analytics`.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from .errors import DuplicateRecordError, RecordNotFoundError
from .models import DividendRecord, Holding, normalize_symbol

logger = logging.getLogger(__name__)


class Ledger:
    def __init__(self, records: Optional[Iterable[DividendRecord]] = None,
                 holdings: Optional[Iterable[Holding]] = None):
        self._records: List[DividendRecord] = list(records or [])
        self._holdings: Dict[str, Holding] = {}
        for holding in holdings or []:
            self._holdings[holding.symbol] = holding
        # Bumped on every mutation so callers can key caches on it.
        self.revision = 0

    def __len__(self) -> int:
        return len(self._records)

    # -- read access -------------------------------------------------------

    def records(self) -> List[DividendRecord]:
        return list(self._records)

    def holdings(self) -> Dict[str, Holding]:
        return dict(self._holdings)

    def records_for_symbol(self, symbol: str) -> List[DividendRecord]:
        symbol = normalize_symbol(symbol)
        return [r for r in self._records if r.symbol == symbol]

    def records_for_year(self, year: int) -> List[DividendRecord]:
        return [r for r in self._records if r.year == year]

    def find_record(self, symbol: str, ex_date: date) -> Optional[DividendRecord]:
        key = (normalize_symbol(symbol), ex_date)
        return next((r for r in self._records if r.key == key), None)

    def get_holding(self, symbol: str) -> Optional[Holding]:
        return self._holdings.get(normalize_symbol(symbol))

    # -- write access ------------------------------------------------------

    def add_record(self, record: DividendRecord, force: bool = False) -> None:
        """Append ``record``.

        Raises :class:`DuplicateRecordError` when a record with the same
        (symbol, ex-date) exists, unless ``force`` is set.
        """
        if not force and self.find_record(record.symbol, record.ex_date) is not None:
            raise DuplicateRecordError(record.symbol, record.ex_date)
        self._records.append(record)
        self.revision += 1
        logger.debug("Added %s %s (%s)", record.symbol, record.ex_date, record.total_amount)

    def replace_record(self, record: DividendRecord) -> DividendRecord:
        """Swap the first record sharing ``record``'s key; return the old one."""
        for i, existing in enumerate(self._records):
            if existing.key == record.key:
                self._records[i] = record
                self.revision += 1
                return existing
        raise RecordNotFoundError(
            f"No dividend for {record.symbol} with ex-date {record.ex_date.isoformat()}"
        )

    def remove_record(self, symbol: str, ex_date: date) -> int:
        """Remove every record keyed (symbol, ex_date); return how many went."""
        key = (normalize_symbol(symbol), ex_date)
        kept = [r for r in self._records if r.key != key]
        removed = len(self._records) - len(kept)
        if not removed:
            raise RecordNotFoundError(f"No dividend for {key[0]} with ex-date {ex_date.isoformat()}")
        self._records = kept
        self.revision += 1
        return removed

    def upsert_holding(self, holding: Holding) -> bool:
        """Insert or replace the holding for its symbol. Returns True on update."""
        updated = holding.symbol in self._holdings
        self._holdings[holding.symbol] = holding
        self.revision += 1
        return updated

    def remove_holding(self, symbol: str) -> Holding:
        symbol = normalize_symbol(symbol)
        try:
            holding = self._holdings.pop(symbol)
        except KeyError:
            raise RecordNotFoundError(f"No holding for {symbol}")
        self.revision += 1
        return holding
