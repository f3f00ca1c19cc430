import unittest
from decimal import Decimal

from backend.formatting import (
    currency_display,
    format_chart_date,
    format_currency,
    format_percent,
    normalize_currency,
)
from backend.money import InvalidInput


class CurrencyFormattingTests(unittest.TestCase):
    def test_us_dollars_use_comma_grouping(self) -> None:
        self.assertEqual(format_currency(Decimal("1234567.891")), "$1,234,567.89")

    def test_euro_uses_german_layout(self) -> None:
        self.assertEqual(format_currency(Decimal("1234.5"), "EUR"), "1.234,50 €")

    def test_rupee_uses_indian_grouping(self) -> None:
        self.assertEqual(format_currency(Decimal("12345678"), "INR"), "₹1,23,45,678.00")

    def test_prefixed_symbols(self) -> None:
        self.assertEqual(format_currency(Decimal("5"), "CAD"), "C$5.00")
        self.assertEqual(format_currency(Decimal("999.995"), "GBP"), "£1,000.00")
        self.assertEqual(format_currency(Decimal("1000"), "JPY"), "¥1,000.00")

    def test_negative_amounts_keep_sign_before_symbol(self) -> None:
        self.assertEqual(format_currency(Decimal("-42"), "AUD"), "-A$42.00")

    def test_unknown_currency_falls_back_to_code_prefix(self) -> None:
        self.assertEqual(format_currency(Decimal("10"), "sek"), "SEK 10.00")
        self.assertEqual(currency_display("sek").locale, "en-US")

    def test_normalizes_currency_codes(self) -> None:
        self.assertEqual(normalize_currency(" eur "), "EUR")
        with self.assertRaises(InvalidInput):
            normalize_currency("EURO")

    def test_format_percent(self) -> None:
        self.assertEqual(format_percent(Decimal("12.345")), "12.3")
        self.assertEqual(format_percent(Decimal("99.5"), places=0), "100")


class ChartDateFormattingTests(unittest.TestCase):
    def test_month_key(self) -> None:
        self.assertEqual(format_chart_date("2024-03"), "Mar 2024")

    def test_day_key(self) -> None:
        self.assertEqual(format_chart_date("2024-03-05"), "Mar 5, 2024")

    def test_other_labels_pass_through(self) -> None:
        self.assertEqual(format_chart_date("3/2024"), "3/2024")
        self.assertEqual(format_chart_date("2024-13"), "2024-13")


if __name__ == "__main__":
    unittest.main()
