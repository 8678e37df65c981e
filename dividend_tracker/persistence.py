"""Ledger persistence for dividend_tracker.

Provides a JSON file store with atomic writes and rolling backups, plus CSV
import/export helpers. Monetary values are always written as decimal strings.
"""

import csv
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .errors import DividendTrackerError, DuplicateRecordError, PersistenceError
from .ledger import Ledger
from .models import DividendRecord, DividendType, Holding, TaxClassification
from .utils import parse_date, parse_decimal, parse_optional_decimal

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
LEDGER_FILE = "dividends.json"
BACKUP_DIR = "backups"

DIVIDEND_CSV_FIELDS = [
    "symbol", "company_name", "ex_date", "pay_date", "amount_per_share",
    "shares_owned", "total_amount", "dividend_type", "tax_classification",
]
HOLDING_CSV_FIELDS = ["symbol", "shares", "cost_basis", "current_yield"]


def record_to_dict(record: DividendRecord) -> Dict[str, Any]:
    return {
        "symbol": record.symbol,
        "company_name": record.company_name,
        "ex_date": record.ex_date.isoformat(),
        "pay_date": record.pay_date.isoformat(),
        "amount_per_share": str(record.amount_per_share),
        "shares_owned": str(record.shares_owned),
        "total_amount": str(record.total_amount),
        "dividend_type": record.dividend_type.value,
        "tax_classification": record.tax_classification.value,
    }


def record_from_dict(data: Dict[str, Any]) -> DividendRecord:
    """Build a record from its stored form; ``total_amount`` is recomputed."""
    ex_date = parse_date(data["ex_date"], "ex_date")
    return DividendRecord(
        symbol=data["symbol"],
        ex_date=ex_date,
        pay_date=parse_date(data.get("pay_date") or ex_date, "pay_date"),
        amount_per_share=parse_decimal(data["amount_per_share"], "amount_per_share"),
        shares_owned=parse_decimal(data["shares_owned"], "shares_owned"),
        dividend_type=DividendType.parse(data.get("dividend_type") or DividendType.REGULAR),
        tax_classification=TaxClassification.parse(
            data.get("tax_classification") or TaxClassification.UNKNOWN
        ),
        company_name=data.get("company_name") or None,
    )


def holding_to_dict(holding: Holding) -> Dict[str, Any]:
    return {
        "symbol": holding.symbol,
        "shares": str(holding.shares),
        "avg_cost_basis": None if holding.avg_cost_basis is None else str(holding.avg_cost_basis),
        "current_yield": None if holding.current_yield is None else str(holding.current_yield),
    }


def holding_from_dict(data: Dict[str, Any]) -> Holding:
    return Holding(
        symbol=data["symbol"],
        shares=parse_decimal(data["shares"], "shares"),
        avg_cost_basis=parse_optional_decimal(
            data.get("avg_cost_basis"), "avg_cost_basis", zero_is_absent=True
        ),
        current_yield=parse_optional_decimal(data.get("current_yield"), "current_yield"),
    )


@dataclass
class StoreStats:
    dividend_count: int
    holding_count: int
    size_bytes: int
    backup_count: int
    data_dir: Path
    last_saved: Optional[str] = None
    save_count: int = 0


class LedgerStore:
    """Loads and saves a :class:`Ledger` under ``data_dir``."""

    def __init__(self, data_dir, max_backups: int = 10):
        self.data_dir = Path(data_dir)
        self.backup_dir = self.data_dir / BACKUP_DIR
        self.max_backups = max_backups

    @property
    def path(self) -> Path:
        return self.data_dir / LEDGER_FILE

    def ensure_directories(self) -> None:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {exc}") from exc

    def _read_document(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as fh:
                return json.load(fh)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse %s: %s", self.path, exc)
            backup = self.backup()
            logger.warning("Corrupt ledger backed up to %s; starting with an empty ledger", backup)
            return {}
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc

    def load(self) -> Ledger:
        document = self._read_document()
        if not document:
            return Ledger()
        if not isinstance(document, dict):
            raise PersistenceError(
                f"{self.path} does not contain a ledger object (found {type(document).__name__})"
            )
        version = document.get("schema_version", SCHEMA_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise PersistenceError(f"{self.path} has an invalid schema version {version!r}")
        if version > SCHEMA_VERSION:
            raise PersistenceError(
                f"{self.path} uses schema version {version}; this version supports up to {SCHEMA_VERSION}"
            )
        try:
            records = [record_from_dict(d) for d in document.get("dividends", [])]
            holdings = [holding_from_dict(h) for h in document.get("holdings", {}).values()]
        except (KeyError, TypeError, AttributeError, DividendTrackerError) as exc:
            raise PersistenceError(f"Invalid entry in {self.path}: {exc}") from exc
        logger.info("Loaded %d dividends and %d holdings from %s", len(records), len(holdings), self.path)
        return Ledger(records, holdings)

    def save(self, ledger: Ledger) -> None:
        self.ensure_directories()
        previous = self._read_metadata()
        self.backup()
        document = {
            "schema_version": SCHEMA_VERSION,
            "dividends": [record_to_dict(r) for r in ledger.records()],
            "holdings": {s: holding_to_dict(h) for s, h in sorted(ledger.holdings().items())},
            "metadata": {
                "last_saved": datetime.now().astimezone().isoformat(),
                "save_count": previous.get("save_count", 0) + 1,
                "app_version": __version__,
            },
        }
        self._atomic_write(json.dumps(document, indent=2))
        logger.info("Saved %d dividends to %s", len(ledger), self.path)

    def _read_metadata(self) -> Dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                return json.load(fh).get("metadata", {})
        except (OSError, ValueError, AttributeError):
            return {}

    def _atomic_write(self, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=".dividends-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    def backup(self) -> Optional[Path]:
        """Copy the current ledger file into ``backups/`` and prune old copies."""
        if not self.path.exists():
            return None
        self.ensure_directories()
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S-%f")
        target = self.backup_dir / f"{self.path.stem}_{stamp}.bak"
        shutil.copy2(self.path, target)
        self._prune_backups()
        return target

    def backups(self) -> List[Path]:
        """Backup files, newest first."""
        if not self.backup_dir.exists():
            return []
        return sorted(self.backup_dir.glob(f"{self.path.stem}_*.bak"), reverse=True)

    def _prune_backups(self) -> None:
        for old in self.backups()[self.max_backups:]:
            old.unlink()
            logger.debug("Removed old backup %s", old)

    def stats(self) -> StoreStats:
        ledger = self.load()
        metadata = self._read_metadata()
        return StoreStats(
            dividend_count=len(ledger),
            holding_count=len(ledger.holdings()),
            size_bytes=self.path.stat().st_size if self.path.exists() else 0,
            backup_count=len(self.backups()),
            data_dir=self.data_dir,
            last_saved=metadata.get("last_saved"),
            save_count=metadata.get("save_count", 0),
        )


# -- CSV ---------------------------------------------------------------------

@dataclass
class ImportResult:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _read_csv_rows(path) -> List[Dict[str, str]]:
    try:
        with open(path, newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            return [
                {k.strip().lower(): (v or "").strip() for k, v in row.items() if k is not None}
                for row in reader
            ]
    except OSError as exc:
        raise PersistenceError(f"Cannot read {path}: {exc}") from exc


def import_dividends_csv(ledger: Ledger, path, force: bool = False) -> ImportResult:
    """Append dividends from a CSV file.

    Required columns: ``symbol``, ``ex_date``, ``amount_per_share`` (or
    ``amount``) and ``shares_owned`` (or ``shares``). Duplicates are skipped
    unless ``force`` is set; invalid rows are collected in ``errors``.
    """
    result = ImportResult()
    for line_no, row in enumerate(_read_csv_rows(path), start=2):
        try:
            record = record_from_dict({
                "symbol": row.get("symbol", ""),
                "company_name": row.get("company_name"),
                "ex_date": row.get("ex_date") or row.get("date", ""),
                "pay_date": row.get("pay_date"),
                "amount_per_share": row.get("amount_per_share") or row.get("amount", ""),
                "shares_owned": row.get("shares_owned") or row.get("shares", ""),
                "dividend_type": row.get("dividend_type"),
                "tax_classification": row.get("tax_classification"),
            })
            ledger.add_record(record, force=force)
        except DuplicateRecordError:
            result.skipped += 1
            continue
        except DividendTrackerError as exc:
            result.errors.append(f"line {line_no}: {exc}")
            continue
        result.added += 1
    logger.info("Imported %d dividends from %s (%d skipped, %d errors)",
                result.added, path, result.skipped, len(result.errors))
    return result


def import_holdings_csv(ledger: Ledger, path) -> ImportResult:
    """Upsert holdings from a CSV with ``symbol,shares,cost_basis,current_yield``."""
    result = ImportResult()
    for line_no, row in enumerate(_read_csv_rows(path), start=2):
        try:
            holding = holding_from_dict({
                "symbol": row.get("symbol", ""),
                "shares": row.get("shares", ""),
                "avg_cost_basis": row.get("cost_basis") or row.get("avg_cost_basis"),
                "current_yield": row.get("current_yield"),
            })
        except DividendTrackerError as exc:
            result.errors.append(f"line {line_no}: {exc}")
            continue
        if ledger.upsert_holding(holding):
            result.updated += 1
        else:
            result.added += 1
    return result


def export_dividends_csv(ledger: Ledger, path) -> int:
    records = sorted(ledger.records(), key=lambda r: (r.ex_date, r.symbol))
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=DIVIDEND_CSV_FIELDS)
        writer.writeheader()
        for record in records:
            row = record_to_dict(record)
            row["company_name"] = row["company_name"] or ""
            writer.writerow(row)
    return len(records)


def export_holdings_csv(ledger: Ledger, path) -> int:
    holdings = ledger.holdings()
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(HOLDING_CSV_FIELDS)
        for symbol in sorted(holdings):
            h = holdings[symbol]
            writer.writerow([
                h.symbol,
                str(h.shares),
                "" if h.avg_cost_basis is None else str(h.avg_cost_basis),
                "" if h.current_yield is None else str(h.current_yield),
            ])
    return len(holdings)
