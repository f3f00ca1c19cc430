import unittest
from datetime import date, datetime
from decimal import Decimal

from backend.aggregation import (
    Expense,
    Income,
    RadarPoint,
    SummaryPoint,
    TreemapPoint,
    aggregate_by_category,
    aggregate_by_source,
    bucket_daily,
    bucket_monthly,
    category_totals,
    filter_by_window,
    radar_series,
    shift_month_keep_day,
    sum_absolute,
    treemap_series,
    window_start_date,
)
from backend.money import InvalidInput


def make_expense(amount: str, category: str, day: date, currency: str = "USD") -> Expense:
    return Expense(amount=Decimal(amount), category=category, date=day, currency=currency)


class TimeWindowFilterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.today = date(2024, 3, 31)
        self.expenses = [
            make_expense("-10", "Food", date(2024, 3, 30)),
            make_expense("-20", "Food", date(2024, 3, 24)),
            make_expense("-30", "Rent", date(2024, 3, 1)),
            make_expense("-40", "Rent", date(2024, 2, 28)),
            make_expense("-50", "Travel", date(2023, 3, 31)),
            make_expense("-60", "Travel", date(2023, 3, 30)),
        ]

    def test_all_returns_input_unchanged(self) -> None:
        result = filter_by_window(self.expenses, "all", today=self.today)

        self.assertEqual(result, self.expenses)

    def test_week_keeps_last_seven_days_inclusive(self) -> None:
        result = filter_by_window(self.expenses, "week", today=self.today)

        self.assertEqual([e.amount for e in result], [Decimal("-10"), Decimal("-20")])

    def test_month_clamps_to_shorter_previous_month(self) -> None:
        result = filter_by_window(self.expenses, "month", today=self.today)

        self.assertEqual(window_start_date("month", self.today), date(2024, 2, 29))
        self.assertEqual(
            [e.amount for e in result],
            [Decimal("-10"), Decimal("-20"), Decimal("-30")],
        )

    def test_year_subtracts_one_calendar_year(self) -> None:
        result = filter_by_window(self.expenses, "year", today=self.today)

        self.assertEqual(len(result), 5)
        self.assertNotIn(Decimal("-60"), [e.amount for e in result])

    def test_future_records_fall_outside_window(self) -> None:
        future = make_expense("-5", "Food", date(2024, 4, 2))

        result = filter_by_window([future], "week", today=self.today)

        self.assertEqual(result, [])

    def test_empty_input_yields_empty_output(self) -> None:
        self.assertEqual(filter_by_window([], "month", today=self.today), [])

    def test_unknown_window_raises(self) -> None:
        with self.assertRaises(InvalidInput):
            filter_by_window(self.expenses, "decade", today=self.today)

    def test_accepts_datetime_and_iso_string_dates(self) -> None:
        records = [
            Expense(amount=Decimal("-1"), category="Food", date=datetime(2024, 3, 30, 18, 45)),
            Expense(amount=Decimal("-2"), category="Food", date="2024-03-29"),
        ]

        result = filter_by_window(records, "week", today=self.today)

        self.assertEqual(len(result), 2)

    def test_leap_day_shift(self) -> None:
        self.assertEqual(shift_month_keep_day(date(2024, 2, 29), -12), date(2023, 2, 28))


class CategoryAggregationTests(unittest.TestCase):
    def test_sums_absolute_amounts_in_first_seen_order(self) -> None:
        expenses = [
            make_expense("-12.50", "Food", date(2024, 5, 1)),
            make_expense("-100", "Rent", date(2024, 5, 1)),
            make_expense("-7.50", "Food", date(2024, 5, 2)),
            make_expense("3", "Other", date(2024, 5, 3)),
        ]

        result = aggregate_by_category(expenses, "EUR")

        self.assertEqual(
            result,
            [
                SummaryPoint(label="Food", amount=Decimal("20.00"), currency="EUR"),
                SummaryPoint(label="Rent", amount=Decimal("100"), currency="EUR"),
                SummaryPoint(label="Other", amount=Decimal("3"), currency="EUR"),
            ],
        )

    def test_partition_preserves_total(self) -> None:
        expenses = [
            make_expense("-1.10", "A", date(2024, 1, 1)),
            make_expense("-2.20", "B", date(2024, 1, 2)),
            make_expense("-3.30", "A", date(2024, 1, 3)),
            make_expense("4.40", "C", date(2024, 1, 4)),
        ]

        result = aggregate_by_category(expenses, "USD")

        self.assertEqual(sum(point.amount for point in result), sum_absolute(expenses))
        self.assertEqual(len(result), len({e.category for e in expenses}))

    def test_mixed_currencies_are_summed_without_conversion(self) -> None:
        expenses = [
            make_expense("-10", "Food", date(2024, 1, 1), currency="USD"),
            make_expense("-10", "Food", date(2024, 1, 1), currency="JPY"),
        ]

        result = aggregate_by_category(expenses, "GBP")

        self.assertEqual(result, [SummaryPoint("Food", Decimal("20"), "GBP")])

    def test_income_grouped_by_source(self) -> None:
        incomes = [
            Income(amount=Decimal("1000"), source="Salary", date=date(2024, 1, 1)),
            Income(amount=Decimal("200"), source="Freelance", date=date(2024, 1, 5)),
            Income(amount=Decimal("1000"), source="Salary", date=date(2024, 2, 1)),
        ]

        result = aggregate_by_source(incomes, "USD")

        self.assertEqual(
            [(p.label, p.amount) for p in result],
            [("Salary", Decimal("2000")), ("Freelance", Decimal("200"))],
        )

    def test_non_numeric_amount_is_rejected(self) -> None:
        expenses = [Expense(amount="abc", category="Food", date=date(2024, 1, 1))]

        with self.assertRaises(InvalidInput):
            aggregate_by_category(expenses, "USD")

    def test_radar_and_treemap_reshape_category_totals(self) -> None:
        expenses = [
            make_expense("-5", "Food", date(2024, 1, 1)),
            make_expense("-8", "Fun", date(2024, 1, 2)),
        ]

        self.assertEqual(
            radar_series(expenses, "USD"),
            [RadarPoint("Food", Decimal("5")), RadarPoint("Fun", Decimal("8"))],
        )
        self.assertEqual(
            treemap_series(expenses, "USD"),
            [TreemapPoint("Food", Decimal("5")), TreemapPoint("Fun", Decimal("8"))],
        )
        self.assertEqual(
            category_totals(expenses),
            {"Food": Decimal("5"), "Fun": Decimal("8")},
        )


class BucketingTests(unittest.TestCase):
    def test_daily_buckets_sorted_and_truncated_to_fourteen(self) -> None:
        expenses = [
            make_expense("-1", "Food", date(2024, 1, day))
            for day in range(20, 0, -1)
        ]
        expenses.append(make_expense("-4", "Food", date(2024, 1, 20)))

        result = bucket_daily(expenses, "USD")

        self.assertEqual(len(result), 14)
        labels = [point.label for point in result]
        self.assertEqual(labels, sorted(labels))
        self.assertEqual(labels[0], "2024-01-07")
        self.assertEqual(result[-1], SummaryPoint("2024-01-20", Decimal("5"), "USD"))

    def test_monthly_buckets_are_not_truncated(self) -> None:
        expenses = [
            make_expense("-10", "Rent", date(2022 + index // 12, index % 12 + 1, 15))
            for index in range(20)
        ]
        expenses.append(make_expense("-5", "Food", date(2022, 1, 2)))

        result = bucket_monthly(expenses, "USD")

        self.assertEqual(len(result), 20)
        self.assertEqual(result[0], SummaryPoint("2022-01", Decimal("15"), "USD"))
        self.assertEqual(result[-1].label, "2023-08")


if __name__ == "__main__":
    unittest.main()
