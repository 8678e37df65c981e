import json
import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path

from click.testing import CliRunner

from dividend_tracker.cli import main

LAST = date.today().year - 1
PREV = LAST - 1


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)
        self.runner = CliRunner()

    def tearDown(self):
        self._tmp.cleanup()

    def invoke(self, *args):
        return self.runner.invoke(main, ["--data-dir", str(self.data_dir), *args])

    def ok(self, *args):
        result = self.invoke(*args)
        self.assertEqual(result.exit_code, 0, result.output)
        return result.output

    def seed(self):
        self.ok("holdings", "add", "AAPL", "-s", "100", "-c", "150")
        self.ok("holdings", "add", "MSFT", "-s", "50")
        self.ok("add", "AAPL", "-a", "0.24", "-e", f"{PREV}-02-10", "-p", f"{PREV}-02-16")
        self.ok("add", "MSFT", "-a", "0.75", "-e", f"{PREV}-01-15", "--tax", "qualified")
        self.ok("add", "AAPL", "-a", "0.25", "-e", f"{LAST}-02-09")
        self.ok("add", "MSFT", "-a", "0.80", "-e", f"{LAST}-01-14", "--tax", "qualified")


class TestLedgerCommands(CliTestCase):
    def test_add_and_list(self):
        self.seed()
        output = self.ok("list")
        self.assertIn("AAPL", output)
        self.assertIn("4 payments, total $126.50", output)
        output = self.ok("list", "-s", "msft", "-y", str(LAST))
        self.assertIn("1 payments, total $40.00", output)

    def test_ledger_is_saved_as_json(self):
        self.seed()
        with open(self.data_dir / "dividends.json", encoding="utf-8") as fh:
            document = json.load(fh)
        self.assertEqual(len(document["dividends"]), 4)
        self.assertEqual(document["dividends"][0]["shares_owned"], "100")

    def test_duplicate_is_rejected(self):
        self.seed()
        result = self.invoke("add", "AAPL", "-a", "0.25", "-e", f"{LAST}-02-09")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("already exists", result.output)
        self.ok("add", "AAPL", "-a", "0.25", "-e", f"{LAST}-02-09", "--force")

    def test_add_needs_shares_without_holding(self):
        result = self.invoke("add", "KO", "-a", "0.485", "-e", f"{LAST}-06-14")
        self.assertEqual(result.exit_code, 2)
        self.ok("add", "KO", "-a", "0.485", "-e", f"{LAST}-06-14", "-s", "10")

    def test_invalid_input(self):
        result = self.invoke("add", "KO", "-a", "abc", "-e", f"{LAST}-06-14", "-s", "10")
        self.assertEqual(result.exit_code, 2)
        result = self.invoke("add", "KO", "-a", "-1", "-e", f"{LAST}-06-14", "-s", "10")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("must be positive", result.output)

    def test_remove(self):
        self.seed()
        self.assertIn("Removed 1 record", self.ok("remove", "aapl", "-e", f"{LAST}-02-09"))
        self.assertIn("3 payments", self.ok("list"))
        self.assertEqual(self.invoke("remove", "AAPL", "-e", f"{LAST}-02-09").exit_code, 1)

    def test_export_and_import(self):
        self.seed()
        out = self.data_dir / "export.csv"
        self.assertIn("Exported 4 dividends", self.ok("export", "-o", str(out)))
        other = CliRunner().invoke(main, ["--data-dir", str(self.data_dir / "other"), "import", str(out)])
        self.assertEqual(other.exit_code, 0, other.output)
        self.assertIn("Imported 4 dividends", other.output)

    def test_holdings(self):
        self.seed()
        output = self.ok("holdings", "list", "--sort-by", "value", "--desc")
        self.assertLess(output.index("AAPL"), output.index("MSFT"))
        self.assertIn("$15,000.00", output)
        self.assertIn("Updated AAPL", self.ok("holdings", "add", "AAPL", "-s", "120"))
        self.ok("holdings", "remove", "MSFT")
        self.assertNotIn("MSFT", self.ok("holdings", "list"))

    def test_zero_yield_is_kept(self):
        self.ok("holdings", "add", "KO", "-s", "10", "-c", "40", "-y", "0")
        output = self.ok("holdings", "list")
        self.assertIn("0%", output)
        self.assertNotIn("N/A", output)

    def test_non_object_ledger_is_reported(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "dividends.json").write_text("[1]", encoding="utf-8")
        result = self.invoke("list")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("does not contain a ledger object", result.output)

    def test_stats(self):
        self.seed()
        output = self.ok("stats")
        self.assertIn("Dividends:      4", output)
        self.assertIn("Holdings:       2", output)


class TestAnalyticsCommands(CliTestCase):
    def setUp(self):
        super().setUp()
        self.seed()

    def test_top(self):
        output = self.ok("top", "-n", "1")
        self.assertIn("MSFT", output)
        self.assertIn("$77.50", output)
        self.assertNotIn("AAPL", output)

    def test_growth(self):
        output = self.ok("growth")
        self.assertIn("Average annual growth: 5.69%", output)

    def test_yield(self):
        output = self.ok("yield")
        self.assertIn("0.17%", output)
        self.assertIn("Excluded from portfolio yield: MSFT", output)

    def test_consistency(self):
        output = self.ok("consistency")
        self.assertIn("Average consistency: 1.00", output)

    def test_breakdown(self):
        output = self.ok("breakdown", str(PREV), "--by", "quarter")
        self.assertIn("Q1", output)
        self.assertIn(f"Total {PREV}: $61.50", output)
        self.assertIn("January", self.ok("breakdown", str(LAST)))

    def test_summary_and_tax(self):
        self.assertIn("Total income:   $65.00", self.ok("summary", "-y", str(LAST)))
        output = self.ok("tax", "-y", str(LAST))
        self.assertIn("qualified", output)
        self.assertIn("Total dividend income: $65.00", output)

    def test_project(self):
        output = self.ok("project", "-m", "last_year", "-g", "custom:0")
        self.assertIn("Projected annual income: $65.00", output)
        output = self.ok("project", "-m", "last_year", "--monthly")
        self.assertIn(f"Historical ({PREV}-{LAST})", output)
        self.assertIn("January", output)

    def test_project_per_stock_and_export(self):
        out = self.data_dir / "projection.json"
        output = self.ok("project", "-m", "last_year", "-g", "custom:0", "--monthly", "--export", str(out))
        self.assertIn("Per Share", output)
        self.assertIn("Annual", output)
        self.assertIn("Top Payers", output)
        self.assertIn("(JSON)", output)
        with open(out, encoding="utf-8") as fh:
            document = json.load(fh)
        self.assertEqual(document["annual_total"], "65.00")
        self.assertEqual([s["symbol"] for s in document["stock_projections"]], ["MSFT", "AAPL"])
        self.assertEqual(document["stock_projections"][1]["current_shares"], "100")

    def test_tax_estimate_and_1099(self):
        out = self.data_dir / "1099.csv"
        output = self.ok("tax", "-y", str(LAST), "--bracket", "high", "--form-1099", "--export", str(out))
        self.assertIn("Estimated tax (single, high bracket)", output)
        self.assertIn("$12.00", output)
        self.assertIn(f"--- 1099-DIV {LAST} ---", output)
        self.assertIn("Box 1b total: $40.00", output)
        self.assertIn("Box 1a - Total Ordinary Dividends,65.00", out.read_text(encoding="utf-8"))

    def test_tax_summary_export(self):
        out = self.data_dir / "tax.csv"
        output = self.ok("tax", "-y", str(LAST), "--export", str(out))
        self.assertNotIn("Estimated tax", output)
        self.assertIn("taxable,65.00", out.read_text(encoding="utf-8"))
        result = self.invoke("tax", "--bracket", "extreme")
        self.assertEqual(result.exit_code, 2)

    def test_project_rejects_past_target(self):
        result = self.invoke("project", "-m", "last_year", "-g", "moderate", "-y", str(LAST))
        self.assertEqual(result.exit_code, 1)


class TestCalendar(CliTestCase):
    def test_upcoming_and_ics(self):
        today = date.today()
        self.ok("holdings", "add", "KO", "-s", "10")
        self.ok("add", "KO", "-a", "0.50", "-e", (today - timedelta(days=100)).isoformat())
        self.ok("add", "KO", "-a", "0.52", "-e", (today - timedelta(days=9)).isoformat())
        out = self.data_dir / "dividends.ics"
        output = self.ok("calendar", "--ics", str(out))
        self.assertIn("KO", output)
        self.assertIn("In 81 days", output)
        self.assertIn("$5.10", output)
        self.assertIn("(1 events)", output)
        next_ex = today + timedelta(days=81)
        self.assertIn(f"DTSTART;VALUE=DATE:{next_ex:%Y%m%d}", out.read_text(encoding="utf-8"))
        self.assertIn("No dividends expected in the next 30 days.", self.ok("calendar", "-d", "30"))

    def test_invalid_days(self):
        self.assertEqual(self.invoke("calendar", "-d", "0").exit_code, 2)


class TestAnalyticsErrors(CliTestCase):
    def test_growth_needs_two_years(self):
        self.ok("add", "KO", "-a", "0.485", "-e", f"{LAST}-06-14", "-s", "10")
        result = self.invoke("growth")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("at least 2 years", result.output)

    def test_yield_needs_cost_basis(self):
        self.ok("holdings", "add", "KO", "-s", "10")
        self.ok("add", "KO", "-a", "0.485", "-e", f"{LAST}-06-14")
        result = self.invoke("yield")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("cost basis", result.output)


if __name__ == "__main__":
    unittest.main()
