from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from backend.aggregation import Expense, Income
from backend.budget_engine import Budget, normalize_period
from backend.formatting import normalize_currency
from backend.money import AmountLike, coerce_positive_amount
from backend.notifications import ChangeNotifier

logger = logging.getLogger(__name__)

TRANSACTION_KINDS = {"expense", "expenses", "income", "incomes"}

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

expenses = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("category", String(255), nullable=False),
    Column("description", String(500)),
    Column("date", Date, nullable=False),
    Column("currency", String(3), nullable=False, server_default="USD"),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

incomes = Table(
    "incomes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("source", String(255), nullable=False),
    Column("description", String(500)),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("period", String(20), nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
    Column("updated_at", DateTime, nullable=False, default=datetime.now, onupdate=datetime.now),
)

DateRange = Tuple[date, date]


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


class TransactionStore:
    """Per-user access to expenses, incomes and budgets.

    Every mutation publishes a change notification for the affected table.
    """

    def __init__(
        self,
        engine: Engine,
        notifier: Optional[ChangeNotifier] = None,
        default_currency: str = "USD",
    ) -> None:
        self.engine = engine
        self.notifier = notifier or ChangeNotifier()
        self.default_currency = normalize_currency(default_currency)

    def create_tables(self) -> None:
        metadata.create_all(self.engine)

    def create_user(self, email: str, hashed_password: str) -> dict:
        stmt = (
            insert(users)
            .values(email=email, hashed_password=hashed_password)
            .returning(users.c.id, users.c.email, users.c.created_at)
        )
        with self.engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        logger.info("user created: user_id=%s", row["id"])
        return dict(row)

    def find_user_by_email(self, email: str) -> Optional[dict]:
        with self.engine.begin() as conn:
            row = conn.execute(select(users).where(users.c.email == email)).mappings().first()
        return dict(row) if row else None

    def user_exists(self, user_id: int) -> bool:
        with self.engine.begin() as conn:
            row = conn.execute(select(users.c.id).where(users.c.id == user_id)).first()
        return row is not None

    def list_transactions(
        self, user_id: int, kind: str, date_range: Optional[DateRange] = None
    ) -> List[Expense] | List[Income]:
        if _normalize_kind(kind) == "expenses":
            return self.list_expenses(user_id, date_range)
        return self.list_incomes(user_id, date_range)

    def list_expenses(
        self, user_id: int, date_range: Optional[DateRange] = None
    ) -> List[Expense]:
        stmt = select(expenses).where(*_user_range(expenses, user_id, date_range))
        with self.engine.begin() as conn:
            rows = conn.execute(
                stmt.order_by(expenses.c.date.desc(), expenses.c.id.desc())
            ).mappings().all()
        return [
            Expense(
                id=row["id"],
                user_id=row["user_id"],
                amount=row["amount"],
                category=row["category"],
                description=row["description"],
                date=row["date"],
                currency=row["currency"],
            )
            for row in rows
        ]

    def list_incomes(
        self, user_id: int, date_range: Optional[DateRange] = None
    ) -> List[Income]:
        stmt = select(incomes).where(*_user_range(incomes, user_id, date_range))
        with self.engine.begin() as conn:
            rows = conn.execute(
                stmt.order_by(incomes.c.date.desc(), incomes.c.id.desc())
            ).mappings().all()
        return [
            Income(
                id=row["id"],
                user_id=row["user_id"],
                amount=row["amount"],
                source=row["source"],
                description=row["description"],
                date=row["date"],
            )
            for row in rows
        ]

    def add_transaction(
        self,
        user_id: int,
        kind: str,
        amount: AmountLike,
        label: str,
        transaction_date: date,
        currency: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Expense | Income:
        """Record an expense or income; ``label`` is the category or the source."""
        if _normalize_kind(kind) == "expenses":
            return self.add_expense(
                user_id, amount, label, transaction_date, currency, description
            )
        return self.add_income(user_id, amount, label, transaction_date, description)

    def add_expense(
        self,
        user_id: int,
        amount: AmountLike,
        category: str,
        expense_date: date,
        currency: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Expense:
        # expenses are stored negative
        value = -coerce_positive_amount(amount)
        resolved_currency = normalize_currency(currency) if currency else self.default_currency
        stmt = (
            insert(expenses)
            .values(
                user_id=user_id,
                amount=value,
                category=category,
                description=description,
                date=expense_date,
                currency=resolved_currency,
            )
            .returning(expenses.c.id)
        )
        with self.engine.begin() as conn:
            expense_id = conn.execute(stmt).scalar_one()
        logger.info("expense added: user_id=%s expense_id=%s", user_id, expense_id)
        self.notifier.notify(user_id, "expenses")
        return Expense(
            id=expense_id,
            user_id=user_id,
            amount=value,
            category=category,
            description=description,
            date=expense_date,
            currency=resolved_currency,
        )

    def add_income(
        self,
        user_id: int,
        amount: AmountLike,
        source: str,
        income_date: date,
        description: Optional[str] = None,
    ) -> Income:
        value = coerce_positive_amount(amount)
        stmt = (
            insert(incomes)
            .values(
                user_id=user_id,
                amount=value,
                source=source,
                description=description,
                date=income_date,
            )
            .returning(incomes.c.id)
        )
        with self.engine.begin() as conn:
            income_id = conn.execute(stmt).scalar_one()
        logger.info("income added: user_id=%s income_id=%s", user_id, income_id)
        self.notifier.notify(user_id, "incomes")
        return Income(
            id=income_id,
            user_id=user_id,
            amount=value,
            source=source,
            description=description,
            date=income_date,
        )

    def delete_transaction(self, user_id: int, kind: str, record_id: int) -> bool:
        table_name = _normalize_kind(kind)
        table = expenses if table_name == "expenses" else incomes
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(table).where(table.c.id == record_id, table.c.user_id == user_id)
            )
        if not result.rowcount:
            return False
        logger.info("%s deleted: user_id=%s id=%s", table_name, user_id, record_id)
        self.notifier.notify(user_id, table_name)
        return True

    def list_budgets(self, user_id: int) -> List[Budget]:
        stmt = (
            select(budgets)
            .where(budgets.c.user_id == user_id)
            .order_by(budgets.c.created_at.desc(), budgets.c.id.desc())
        )
        with self.engine.begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [
            Budget(
                id=row["id"],
                user_id=row["user_id"],
                amount=row["amount"],
                period=row["period"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    def add_budget(self, user_id: int, amount: AmountLike, period: str) -> Budget:
        value = coerce_positive_amount(amount)
        normalized_period = normalize_period(period)
        stmt = (
            insert(budgets)
            .values(user_id=user_id, amount=value, period=normalized_period)
            .returning(budgets.c.id, budgets.c.created_at, budgets.c.updated_at)
        )
        with self.engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        logger.info("budget added: user_id=%s budget_id=%s", user_id, row["id"])
        self.notifier.notify(user_id, "budgets")
        return Budget(
            id=row["id"],
            user_id=user_id,
            amount=value,
            period=normalized_period,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def _normalize_kind(kind: str) -> str:
    normalized = kind.strip().lower()
    if normalized not in TRANSACTION_KINDS:
        raise ValueError(f"Unsupported transaction kind: {kind}")
    return normalized if normalized.endswith("s") else f"{normalized}s"


def _user_range(table: Table, user_id: int, date_range: Optional[DateRange]) -> list:
    conditions = [table.c.user_id == user_id]
    if date_range is not None:
        start_date, end_date = date_range
        if start_date > end_date:
            raise ValueError("start_date must be on or before end_date.")
        conditions.append(table.c.date >= start_date)
        conditions.append(table.c.date <= end_date)
    return conditions
