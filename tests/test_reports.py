import csv
import json
import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

from dividend_tracker import reports
from dividend_tracker.analytics.projection import ProjectionMethod, project
from dividend_tracker.tax import TaxAssumptions, estimate_tax, form_1099_div, tax_summary
from dividend_tracker.upcoming import upcoming_dividends
from tests.factories import holding, sample_records
from tests.test_tax import tax_records
from tests.test_upcoming import calendar_holdings, calendar_records

TODAY = date(2025, 6, 30)
STAMP = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)


class ReportTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.out = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def read_rows(self, path):
        with open(path, newline="", encoding="utf-8") as fh:
            return list(csv.reader(fh))


class TestProjectionExport(ReportTestCase):
    def setUp(self):
        super().setUp()
        self.projection = project(sample_records(), {"AAPL": holding("AAPL", "100")},
                                  ProjectionMethod.LAST_YEAR, "custom:0", 2026, monthly=True, today=TODAY)

    def test_csv(self):
        path = self.out / "projection.csv"
        self.assertEqual(reports.export_projection(self.projection, path), "csv")
        rows = self.read_rows(path)
        self.assertEqual(rows[0], ["Type", "Symbol", "Month", "Amount", "Details"])
        self.assertEqual(rows[1][:4], ["Summary", "Portfolio", "Annual", "65.00"])
        self.assertEqual(rows[2][:4], ["Stock", "MSFT", "Annual", "40.00"])
        self.assertEqual(rows[3][:4], ["Stock", "AAPL", "Annual", "25.00"])
        self.assertEqual(rows[4], ["Monthly", "Portfolio", "January", "40.00", "MSFT"])
        self.assertEqual(len([r for r in rows if r[0] == "Monthly"]), 12)
        self.assertIn(["Metadata", "Method", "", "-", "last_year"], rows)

    def test_json(self):
        path = self.out / "projection.JSON"
        self.assertEqual(reports.export_projection(self.projection, path), "json")
        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
        self.assertEqual(document["target_year"], 2026)
        self.assertEqual(document["annual_total"], "65.00")
        first = document["stock_projections"][0]
        self.assertEqual(first["symbol"], "MSFT")
        self.assertIsNone(first["current_shares"])
        self.assertEqual(first["projected_dividend_per_share"], "0.8000")
        self.assertEqual(first["payment_frequency"], "Annual")
        self.assertEqual(first["payment_months"], [1])
        self.assertEqual(document["stock_projections"][1]["current_shares"], "100")
        february = document["monthly_breakdown"][1]
        self.assertEqual((february["month_name"], february["amount"], february["top_payers"]),
                         ("February", "25.00", ["AAPL"]))


class TestTaxExport(ReportTestCase):
    def setUp(self):
        super().setUp()
        self.summary = tax_summary(tax_records(), 2024)

    def test_summary_csv(self):
        path = self.out / "tax.csv"
        estimate = estimate_tax(self.summary, TaxAssumptions(income_bracket="low"))
        reports.export_tax_summary_csv(self.summary, path, estimate)
        rows = self.read_rows(path)
        self.assertEqual(rows[0], ["Tax Summary", "2024"])
        self.assertIn(["qualified", "24.30"], rows)
        self.assertIn(["taxable", "39.30"], rows)
        self.assertIn(["Estimated Tax", "single", "low"], rows)
        self.assertIn(["ordinary", "1.80"], rows)
        self.assertIn(["JNJ", "24.30", "24.30", "2"], rows)

    def test_summary_csv_without_estimate(self):
        path = self.out / "tax.csv"
        reports.export_tax_summary_csv(self.summary, path)
        self.assertNotIn("Estimated Tax", [row[0] for row in self.read_rows(path) if row])

    def test_1099_csv(self):
        path = self.out / "1099.csv"
        reports.export_1099_div_csv(form_1099_div(self.summary), path)
        rows = self.read_rows(path)
        self.assertEqual(rows[1], ["Box 1a - Total Ordinary Dividends", "39.30"])
        self.assertEqual(rows[3], ["Box 3 - Non-dividend Distributions", "25.00"])
        self.assertIn(["Johnson & Johnson", "JNJ", "24.30", "24.30", "0.00", "0.00"], rows)
        self.assertIn(["MUB", "MUB", "0.00", "0.00", "0.00", "10.00"], rows)


class TestIcsExport(ReportTestCase):
    def setUp(self):
        super().setUp()
        self.entries = upcoming_dividends(calendar_records(), calendar_holdings(), 90, TODAY)

    def test_events(self):
        text = reports.ics_events(self.entries, STAMP)
        self.assertTrue(text.startswith("BEGIN:VCALENDAR\r\nVERSION:2.0\r\n"))
        self.assertTrue(text.endswith("END:VCALENDAR\r\n"))
        self.assertEqual(text.count("BEGIN:VEVENT"), 2)
        self.assertIn("UID:KO-20250911@dividend-tracker\r\n", text)
        self.assertIn("DTSTART;VALUE=DATE:20250911\r\n", text)
        self.assertIn("DTEND;VALUE=DATE:20250912\r\n", text)
        self.assertIn("DTSTAMP:20250630T120000Z\r\n", text)
        self.assertIn("SUMMARY:KO Ex-Dividend ($0.4975/share)\r\n", text)
        self.assertIn("TRIGGER:-P1D\r\n", text)
        self.assertIn("Company: Realty Income\\, Corp", text)

    def test_file_keeps_crlf(self):
        path = self.out / "dividends.ics"
        self.assertEqual(reports.export_ics(self.entries, path, STAMP), 2)
        content = path.read_bytes()
        self.assertIn(b"BEGIN:VEVENT\r\n", content)
        self.assertNotIn(b"\r\r\n", content)

    def test_empty_calendar(self):
        text = reports.ics_events([], STAMP)
        self.assertNotIn("BEGIN:VEVENT", text)
        self.assertIn("PRODID:-//Dividend Tracker//EN\r\n", text)


if __name__ == "__main__":
    unittest.main()
