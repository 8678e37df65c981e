import unittest
from datetime import date, timedelta

from dividend_tracker.analytics.consistency import (
    PaymentFrequency, average_score, consistency_analysis, estimate_frequency,
)
from tests.factories import dividend


class TestConsistency(unittest.TestCase):
    def test_gaps_lower_the_score(self):
        records = [
            dividend("T", "2020-04-09", "0.52"),
            dividend("T", "2022-04-08", "0.28"),
            dividend("T", "2024-04-09", "0.28"),
        ]
        score = consistency_analysis(records)["T"]
        self.assertAlmostEqual(score.score, 0.6)
        self.assertEqual((score.years_paid, score.years_spanned), (3, 5))
        self.assertFalse(score.insufficient_history)

    def test_span_ends_at_latest_ledger_year(self):
        records = [
            dividend("GE", "2020-03-06", "0.01"),
            dividend("GE", "2021-03-08", "0.01"),
            dividend("JNJ", "2024-02-16", "1.19"),
        ]
        scores = consistency_analysis(records)
        self.assertAlmostEqual(scores["GE"].score, 0.4)
        self.assertEqual(scores["GE"].years_spanned, 5)

    def test_single_year_history_is_flagged(self):
        records = [
            dividend("JNJ", "2023-02-17", "1.13"),
            dividend("JNJ", "2024-02-16", "1.19"),
            dividend("NEW", "2024-05-01", "0.10"),
        ]
        scores = consistency_analysis(records)
        self.assertEqual(scores["NEW"].score, 1.0)
        self.assertTrue(scores["NEW"].insufficient_history)
        self.assertEqual(scores["JNJ"].score, 1.0)
        self.assertFalse(scores["JNJ"].insufficient_history)
        self.assertEqual(average_score(scores), 1.0)

    def test_multiple_payments_in_a_year_count_once(self):
        records = [dividend("KO", f"2024-{m:02d}-14", "0.485") for m in (3, 6, 9, 12)]
        records.append(dividend("KO", "2023-12-14", "0.46"))
        score = consistency_analysis(records)["KO"]
        self.assertEqual(score.years_paid, 2)
        self.assertEqual(score.score, 1.0)

    def test_results_are_sorted_by_symbol(self):
        records = [dividend(s, "2024-01-10", "1") for s in ("MSFT", "AAPL", "KO")]
        self.assertEqual(list(consistency_analysis(records)), ["AAPL", "KO", "MSFT"])

    def test_empty(self):
        self.assertEqual(consistency_analysis([]), {})
        self.assertEqual(average_score({}), 0.0)


class TestFrequency(unittest.TestCase):
    def test_quarterly(self):
        records = [dividend("KO", d, "0.46") for d in ("2023-02-15", "2023-05-15", "2023-08-15", "2023-11-15")]
        score = consistency_analysis(records)["KO"]
        self.assertIs(score.frequency, PaymentFrequency.QUARTERLY)
        self.assertEqual(score.payment_intervals, [89, 92, 92])

    def test_bands(self):
        def every(days, count=4):
            return [date(2020, 1, 1) + timedelta(days=days * i) for i in range(count)]

        self.assertIs(estimate_frequency(every(30)), PaymentFrequency.MONTHLY)
        self.assertIs(estimate_frequency(every(182)), PaymentFrequency.SEMI_ANNUAL)
        self.assertIs(estimate_frequency(every(365)), PaymentFrequency.ANNUAL)
        self.assertIs(estimate_frequency(every(60)), PaymentFrequency.IRREGULAR)
        self.assertIs(estimate_frequency(every(30, count=1)), PaymentFrequency.IRREGULAR)


if __name__ == "__main__":
    unittest.main()
