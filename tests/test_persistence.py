import json
import os
import tempfile
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path

from dividend_tracker.errors import PersistenceError
from dividend_tracker.ledger import Ledger
from dividend_tracker.models import DividendType, TaxClassification
from dividend_tracker.persistence import (
    LedgerStore, export_dividends_csv, export_holdings_csv, import_dividends_csv,
    import_holdings_csv,
)
from tests.factories import dividend, holding, sample_ledger


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)
        self.store = LedgerStore(self.data_dir, max_backups=2)

    def tearDown(self):
        self._tmp.cleanup()


class TestLedgerStore(StoreTestCase):
    def test_missing_file_loads_empty(self):
        ledger = self.store.load()
        self.assertEqual(len(ledger), 0)
        self.assertEqual(ledger.holdings(), {})

    def test_save_and_load(self):
        ledger = sample_ledger([holding("AAPL", "100", "150.25", "0.5"), holding("MSFT", "50")])
        ledger.add_record(dividend("O", "2024-01-31", "0.2475", "10", company_name="Realty Income",
                                   dividend_type="return_of_capital"))
        self.store.save(ledger)

        loaded = self.store.load()
        self.assertEqual(len(loaded), 5)
        record = loaded.find_record("O", date(2024, 1, 31))
        self.assertEqual(str(record.amount_per_share), "0.2475")
        self.assertEqual(record.company_name, "Realty Income")
        self.assertIs(record.dividend_type, DividendType.RETURN_OF_CAPITAL)
        self.assertIs(record.tax_classification, TaxClassification.UNKNOWN)
        self.assertEqual(loaded.get_holding("AAPL").avg_cost_basis, Decimal("150.25"))
        self.assertIsNone(loaded.get_holding("MSFT").avg_cost_basis)

    def test_money_is_stored_as_strings(self):
        self.store.save(sample_ledger([holding("AAPL", "100", "150")]))
        with open(self.store.path, encoding="utf-8") as fh:
            document = json.load(fh)
        self.assertEqual(document["schema_version"], 1)
        first = document["dividends"][0]
        self.assertEqual(first["amount_per_share"], "0.24")
        self.assertEqual(first["total_amount"], "24.00")
        self.assertEqual(document["holdings"]["AAPL"]["avg_cost_basis"], "150")
        self.assertEqual(document["metadata"]["save_count"], 1)

    def test_backups_are_rotated(self):
        ledger = sample_ledger()
        for _ in range(4):
            self.store.save(ledger)
        self.assertEqual(len(self.store.backups()), 2)
        stats = self.store.stats()
        self.assertEqual(stats.save_count, 4)
        self.assertEqual(stats.dividend_count, 4)
        self.assertEqual(stats.backup_count, 2)

    def test_no_temp_files_left_behind(self):
        self.store.save(sample_ledger())
        leftovers = [name for name in os.listdir(self.data_dir) if name.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_corrupt_file_is_backed_up(self):
        self.store.ensure_directories()
        self.store.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("dividend_tracker.persistence", level="WARNING"):
            ledger = self.store.load()
        self.assertEqual(len(ledger), 0)
        backups = self.store.backups()
        self.assertEqual(len(backups), 1)
        self.assertEqual(backups[0].read_text(encoding="utf-8"), "{not json")

    def test_newer_schema_is_rejected(self):
        self.store.ensure_directories()
        self.store.path.write_text(json.dumps({"schema_version": 99, "dividends": []}), encoding="utf-8")
        with self.assertRaises(PersistenceError):
            self.store.load()

    def test_zero_yield_survives_reload(self):
        self.store.save(Ledger([], [holding("KO", "10", "50", "0")]))
        loaded = self.store.load().get_holding("KO")
        self.assertEqual(loaded.current_yield, Decimal("0"))
        self.assertEqual(loaded.avg_cost_basis, Decimal("50"))

    def test_non_object_document_is_rejected(self):
        self.store.ensure_directories()
        for content in ("[1]", '"ledger"', "42"):
            self.store.path.write_text(content, encoding="utf-8")
            with self.assertRaises(PersistenceError):
                self.store.load()

    def test_malformed_sections_are_rejected(self):
        self.store.ensure_directories()
        for document in ({"schema_version": "1"}, {"dividends": ["AAPL"]}, {"holdings": ["AAPL"]}):
            self.store.path.write_text(json.dumps(document), encoding="utf-8")
            with self.assertRaises(PersistenceError):
                self.store.load()

    def test_invalid_entry(self):
        self.store.ensure_directories()
        document = {"schema_version": 1, "dividends": [{"symbol": "AAPL", "ex_date": "2024-02-09"}]}
        self.store.path.write_text(json.dumps(document), encoding="utf-8")
        with self.assertRaises(PersistenceError):
            self.store.load()


class TestCsv(StoreTestCase):
    def _write(self, name, text):
        path = self.data_dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_import_dividends(self):
        ledger = sample_ledger()
        path = self._write("in.csv", (
            "Symbol,Ex_Date,Amount,Shares\n"
            "ko,2024-06-14,0.485,100\n"
            "AAPL,2024-02-09,0.25,100\n"
            "MSFT,2024-05-15,abc,50\n"
        ))
        result = import_dividends_csv(ledger, path)
        self.assertEqual(result.added, 1)
        self.assertEqual(result.skipped, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("line 4"))
        self.assertEqual(ledger.find_record("KO", date(2024, 6, 14)).total_amount, Decimal("48.500"))

    def test_import_dividends_force(self):
        ledger = sample_ledger()
        path = self._write("in.csv", "symbol,ex_date,amount_per_share,shares_owned\nAAPL,2024-02-09,0.25,100\n")
        result = import_dividends_csv(ledger, path, force=True)
        self.assertEqual(result.added, 1)
        self.assertEqual(len(ledger), 5)

    def test_import_holdings_blank_and_zero_basis(self):
        ledger = Ledger([], [holding("AAPL", "10", "140")])
        path = self._write("holdings.csv", (
            "symbol,shares,cost_basis,current_yield\n"
            "AAPL,100,150,0.5\n"
            "MSFT,50,,\n"
            "KO,10,0,3.1\n"
            "BAD,-5,,\n"
        ))
        result = import_holdings_csv(ledger, path)
        self.assertEqual((result.added, result.updated, len(result.errors)), (2, 1, 1))
        self.assertEqual(ledger.get_holding("AAPL").shares, Decimal("100"))
        self.assertIsNone(ledger.get_holding("MSFT").avg_cost_basis)
        self.assertIsNone(ledger.get_holding("KO").avg_cost_basis)
        self.assertEqual(ledger.get_holding("KO").current_yield, Decimal("3.1"))

    def test_import_holdings_keeps_zero_yield(self):
        ledger = Ledger()
        path = self._write("holdings.csv", "symbol,shares,cost_basis,current_yield\nT,20,18.5,0\n")
        import_holdings_csv(ledger, path)
        self.assertEqual(ledger.get_holding("T").current_yield, Decimal("0"))
        self.assertEqual(ledger.get_holding("T").avg_cost_basis, Decimal("18.5"))

    def test_export_then_import(self):
        source = sample_ledger([holding("AAPL", "100", "150"), holding("MSFT", "50")])
        dividends_path = self.data_dir / "out.csv"
        holdings_path = self.data_dir / "holdings.csv"
        self.assertEqual(export_dividends_csv(source, dividends_path), 4)
        self.assertEqual(export_holdings_csv(source, holdings_path), 2)

        target = Ledger()
        self.assertEqual(import_dividends_csv(target, dividends_path).added, 4)
        self.assertEqual(import_holdings_csv(target, holdings_path).added, 2)
        self.assertEqual(sorted(r.key for r in target.records()), sorted(r.key for r in source.records()))
        self.assertEqual(target.holdings(), source.holdings())

    def test_missing_file(self):
        with self.assertRaises(PersistenceError):
            import_dividends_csv(Ledger(), self.data_dir / "nope.csv")


if __name__ == "__main__":
    unittest.main()
