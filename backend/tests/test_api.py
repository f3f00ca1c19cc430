import os
import tempfile
import unittest
from datetime import date
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp()
os.environ["BUDGET_SAVVY_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'api.db')}"
os.environ["BUDGET_SAVVY_DEFAULT_CURRENCY"] = "USD"

from fastapi.testclient import TestClient  # noqa: E402

from backend.aggregation import shift_month_keep_day  # noqa: E402
from backend.main import app, engine, store  # noqa: E402


class ApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        store.create_tables()
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls) -> None:
        cls.client.close()
        engine.dispose()

    def signup(self, email: str) -> dict:
        response = self.client.post(
            "/auth/signup", json={"email": email, "password": "s3cret-pass"}
        )
        self.assertEqual(response.status_code, 200)
        return {"x-user-id": str(response.json()["id"])}

    def test_signup_login_and_duplicate(self) -> None:
        self.signup("login@example.com")

        duplicate = self.client.post(
            "/auth/signup", json={"email": "LOGIN@example.com", "password": "other"}
        )
        ok = self.client.post(
            "/auth/login", json={"email": "login@example.com", "password": "s3cret-pass"}
        )
        bad = self.client.post(
            "/auth/login", json={"email": "login@example.com", "password": "wrong"}
        )

        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["email"], "login@example.com")
        self.assertEqual(bad.status_code, 401)

    def test_identity_header_required(self) -> None:
        self.assertEqual(self.client.get("/expenses").status_code, 401)
        self.assertEqual(
            self.client.get("/expenses", headers={"x-user-id": "abc"}).status_code, 400
        )
        self.assertEqual(
            self.client.get("/expenses", headers={"x-user-id": "99999"}).status_code, 404
        )

    def test_expense_lifecycle(self) -> None:
        headers = self.signup("expenses@example.com")

        rejected = self.client.post(
            "/expenses", json={"amount": "0", "category": "Food"}, headers=headers
        )
        created = self.client.post(
            "/expenses",
            json={"amount": "42.50", "category": " Food ", "currency": "eur"},
            headers=headers,
        )

        self.assertEqual(rejected.status_code, 400)
        self.assertEqual(created.status_code, 200)
        body = created.json()
        self.assertEqual(Decimal(str(body["amount"])), Decimal("-42.50"))
        self.assertEqual(body["category"], "Food")
        self.assertEqual(body["currency"], "EUR")

        listed = self.client.get("/expenses", headers=headers).json()
        self.assertEqual([item["id"] for item in listed], [body["id"]])

        deleted = self.client.delete(f"/expenses/{body['id']}", headers=headers)
        missing = self.client.delete(f"/expenses/{body['id']}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(missing.status_code, 404)

    def test_expense_analytics_for_current_month(self) -> None:
        headers = self.signup("analytics@example.com")
        self.client.post("/expenses", json={"amount": "30", "category": "Food"}, headers=headers)
        self.client.post("/expenses", json={"amount": "70", "category": "Rent"}, headers=headers)

        response = self.client.get("/analytics/expenses?window=month", headers=headers)
        invalid = self.client.get("/analytics/expenses?window=decade", headers=headers)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(Decimal(str(body["total"])), Decimal("100"))
        self.assertEqual(
            {item["label"]: Decimal(str(item["amount"])) for item in body["categories"]},
            {"Food": Decimal("30"), "Rent": Decimal("70")},
        )
        self.assertEqual(len(body["daily"]), 1)
        self.assertEqual(invalid.status_code, 400)

    def test_income_analytics_without_history_has_no_forecast(self) -> None:
        headers = self.signup("income@example.com")
        self.client.post(
            "/incomes", json={"amount": "1500", "source": "Salary"}, headers=headers
        )

        body = self.client.get("/analytics/income", headers=headers).json()

        self.assertEqual(Decimal(str(body["total"])), Decimal("1500"))
        self.assertEqual(body["forecast_months"], 0)
        self.assertEqual(len(body["monthly"]), 1)
        self.assertFalse(body["monthly"][0]["forecast"])

    def test_health_and_budget_status(self) -> None:
        headers = self.signup("health@example.com")
        self.client.post(
            "/incomes", json={"amount": "2000", "source": "Salary"}, headers=headers
        )
        self.client.post("/expenses", json={"amount": "500", "category": "Food"}, headers=headers)
        self.client.post("/budgets", json={"amount": "1000", "period": "Monthly"}, headers=headers)

        health = self.client.get("/analytics/health", headers=headers).json()
        status = self.client.get("/budgets/status", headers=headers).json()

        self.assertEqual(health["status"], "excellent")
        self.assertEqual(health["score"], 95)
        self.assertEqual(health["month"], date.today().strftime("%Y-%m"))
        self.assertEqual(status["status"], "within")
        self.assertEqual(status["budget"]["period"], "monthly")
        self.assertEqual(status["message"], "You're within budget! $500.00 remaining.")

    def test_budget_status_without_budget(self) -> None:
        headers = self.signup("nobudget@example.com")

        status = self.client.get("/budgets/status", headers=headers).json()
        rejected = self.client.post(
            "/budgets", json={"amount": "100", "period": "daily"}, headers=headers
        )

        self.assertIsNone(status["budget"])
        self.assertEqual(status["message"], "Set up a budget to track your spending.")
        self.assertEqual(rejected.status_code, 400)

    def test_milestones_use_current_calendar_month(self) -> None:
        headers = self.signup("milestones@example.com")
        month_start = date.today().replace(day=1)
        amounts = {-3: "400", -2: "500", -1: "600", 0: "1000", 1: "5000"}
        for offset, amount in amounts.items():
            self.client.post(
                "/incomes",
                json={
                    "amount": amount,
                    "source": "Salary",
                    "date": shift_month_keep_day(month_start, offset).isoformat(),
                },
                headers=headers,
            )

        health = self.client.get("/analytics/health", headers=headers).json()

        self.assertEqual(Decimal(str(health["total_income"])), Decimal("1000"))
        self.assertEqual(
            [milestone["message"] for milestone in health["milestones"]],
            [
                "Congratulations! Your income this month is 100% higher than your average.",
                "New record! This is your highest monthly income so far.",
            ],
        )

    def test_goal_contribution_is_capped_at_target(self) -> None:
        headers = self.signup("contribute@example.com")
        goal = {
            "name": "Vacation",
            "target_amount": "3000",
            "current_amount": "2800",
            "target_date": "2099-12-31",
            "category": "Travel",
        }

        response = self.client.post(
            "/goals/contribute", json={"goal": goal, "amount": "500"}, headers=headers
        )
        rejected = self.client.post(
            "/goals/contribute", json={"goal": goal, "amount": "0"}, headers=headers
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(Decimal(str(body["current_amount"])), Decimal("3000"))
        self.assertTrue(body["completed"])
        self.assertEqual(rejected.status_code, 400)

    def test_goals_summary(self) -> None:
        headers = self.signup("goals@example.com")
        goals = [
            {
                "name": "Emergency Fund",
                "target_amount": "1000",
                "current_amount": "500",
                "target_date": "2099-12-31",
            },
            {
                "name": "Bike",
                "target_amount": "300",
                "current_amount": "300",
                "target_date": "2099-06-30",
                "category": "Purchase",
                "priority": "low",
            },
        ]

        response = self.client.post("/goals/summary", json=goals, headers=headers)
        invalid = self.client.post(
            "/goals/summary",
            json=[{"name": "", "target_amount": "10", "target_date": "2099-01-01"}],
            headers=headers,
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["completed_count"], 1)
        self.assertEqual(body["half_way_count"], 2)
        self.assertEqual(Decimal(str(body["remaining"])), Decimal("500"))
        self.assertEqual(body["goals"][0]["category"], "Savings")
        self.assertEqual(invalid.status_code, 400)


if __name__ == "__main__":
    unittest.main()
