import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

import bcrypt
from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from backend.aggregation import (
    aggregate_by_category,
    aggregate_by_source,
    bucket_daily,
    bucket_monthly,
    category_totals,
    filter_by_window,
    month_key,
    radar_series,
    sum_absolute,
    treemap_series,
)
from backend.budget_engine import (
    active_budget,
    budget_recommendations,
    budget_status_message,
    evaluate_budget_status,
    normalize_period,
    period_expenses,
)
from backend.config import get_settings
from backend.database import TransactionStore, create_db_engine
from backend.formatting import format_chart_date, normalize_currency
from backend.goals import (
    FinancialGoal,
    add_contribution,
    goal_progress,
    progress_by_category,
    summarize_goals,
    validate_goal,
)
from backend.health_score import (
    calculate_health_score,
    check_income_milestones,
    generate_budget_recommendations,
)
from backend.income_forecast import average_growth_rate, forecast_income, monthly_income_totals
from backend.money import coerce_positive_amount
from backend.notifications import ChangeNotifier, SessionContext

OptionalDate = Optional[date]

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Savvy")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

engine = create_db_engine(settings.database_url)
notifier = ChangeNotifier()
store = TransactionStore(engine, notifier, default_currency=settings.default_currency)


@app.on_event("startup")
def init_db() -> None:
    store.create_tables()


class CredentialsPayload(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    created_at: datetime | None = None


class ExpensePayload(BaseModel):
    amount: Decimal
    category: str
    date: OptionalDate = None
    currency: str | None = None
    description: str | None = None

    @classmethod
    def validate_payload(cls, payload: "ExpensePayload") -> "ExpensePayload":
        payload.amount = coerce_positive_amount(payload.amount)
        payload.category = payload.category.strip()
        if not payload.category:
            raise ValueError("Please select a category.")
        payload.currency = normalize_currency(payload.currency) if payload.currency else None
        payload.description = payload.description.strip() if payload.description else None
        payload.date = payload.date or date.today()
        return payload


class ExpenseResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    category: str
    date: date
    currency: str
    description: str | None = None


class IncomePayload(BaseModel):
    amount: Decimal
    source: str
    date: OptionalDate = None
    description: str | None = None

    @classmethod
    def validate_payload(cls, payload: "IncomePayload") -> "IncomePayload":
        payload.amount = coerce_positive_amount(payload.amount)
        payload.source = payload.source.strip()
        if not payload.source:
            raise ValueError("Please select an income source.")
        payload.description = payload.description.strip() if payload.description else None
        payload.date = payload.date or date.today()
        return payload


class IncomeResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    source: str
    date: date
    description: str | None = None


class BudgetPayload(BaseModel):
    amount: Decimal
    period: str = "monthly"

    @classmethod
    def validate_payload(cls, payload: "BudgetPayload") -> "BudgetPayload":
        payload.amount = coerce_positive_amount(payload.amount)
        payload.period = normalize_period(payload.period)
        return payload


class BudgetResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    period: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BudgetStatusResponse(BaseModel):
    budget: BudgetResponse | None = None
    total_budget: Decimal
    total_spent: Decimal
    percentage: Decimal
    status: str
    remaining_budget: Decimal
    message: str
    recommendations: list[str]


class SummaryPointResponse(BaseModel):
    label: str
    display_label: str
    amount: Decimal
    currency: str


class RadarPointResponse(BaseModel):
    category: str
    amount: Decimal


class TreemapPointResponse(BaseModel):
    name: str
    size: Decimal


class ExpenseAnalyticsResponse(BaseModel):
    window: str
    currency: str
    total: Decimal
    categories: list[SummaryPointResponse]
    daily: list[SummaryPointResponse]
    monthly: list[SummaryPointResponse]
    radar: list[RadarPointResponse]
    treemap: list[TreemapPointResponse]


class MonthlyIncomeResponse(BaseModel):
    month: str
    year: int
    month_number: int
    amount: Decimal
    forecast: bool


class IncomeAnalyticsResponse(BaseModel):
    total: Decimal
    growth_rate: Decimal
    forecast_months: int
    sources: list[SummaryPointResponse]
    monthly: list[MonthlyIncomeResponse]


class MilestoneResponse(BaseModel):
    achieved: bool
    message: str
    type: str
    amount: Decimal | None = None


class HealthResponse(BaseModel):
    month: str
    total_income: Decimal
    total_expenses: Decimal
    score: int
    status: str
    message: str
    color: str
    recommendations: list[str]
    milestones: list[MilestoneResponse]


class GoalPayload(BaseModel):
    name: str
    target_amount: Decimal
    target_date: date
    current_amount: Decimal = Decimal("0")
    category: str | None = None
    priority: str | None = None
    id: str | None = None


class ContributionPayload(BaseModel):
    goal: GoalPayload
    amount: Decimal


class GoalProgressResponse(BaseModel):
    id: str | None = None
    name: str
    category: str
    priority: str
    target_amount: Decimal
    current_amount: Decimal
    target_date: date
    percentage: Decimal
    months_left: int
    past_due: bool
    completed: bool


class CategoryProgressResponse(BaseModel):
    category: str
    target: Decimal
    current: Decimal
    percentage: Decimal


class GoalsSummaryResponse(BaseModel):
    total_target: Decimal
    total_current: Decimal
    remaining: Decimal
    percentage: Decimal
    started_count: int
    half_way_count: int
    completed_count: int
    goals: list[GoalProgressResponse]
    categories: list[CategoryProgressResponse]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_session(x_user_id: str | None) -> SessionContext:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user identity.") from exc
    if not store.user_exists(user_id):
        raise HTTPException(status_code=404, detail="User not found.")
    return SessionContext(user_id=user_id)


def resolve_display_currency(value: str | None) -> str:
    if not value:
        return settings.default_currency
    try:
        return normalize_currency(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def month_bounds(today: date) -> tuple[date, date]:
    start = today.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def to_summary_responses(points) -> list[SummaryPointResponse]:
    return [
        SummaryPointResponse(
            label=point.label,
            display_label=format_chart_date(point.label),
            amount=point.amount,
            currency=point.currency,
        )
        for point in points
    ]


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/auth/signup", response_model=UserResponse)
def signup(payload: CredentialsPayload) -> UserResponse:
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password required.")
    try:
        row = store.create_user(email, hash_password(payload.password))
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already exists.") from exc
    return UserResponse(id=row["id"], email=row["email"], created_at=row["created_at"])


@app.post("/auth/login", response_model=UserResponse)
def login(payload: CredentialsPayload) -> UserResponse:
    email = payload.email.strip().lower()
    row = store.find_user_by_email(email)
    if not row or not verify_password(payload.password, row["hashed_password"]):
        logger.info("login rejected: email=%s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return UserResponse(id=row["id"], email=row["email"], created_at=row["created_at"])


@app.get("/expenses", response_model=list[ExpenseResponse])
def list_expenses(
    start_date: date | None = None,
    end_date: date | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[ExpenseResponse]:
    session = get_session(x_user_id)
    date_range = (start_date, end_date) if start_date and end_date else None
    try:
        records = store.list_expenses(session.user_id, date_range)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        ExpenseResponse(
            id=record.id,
            user_id=record.user_id,
            amount=record.amount,
            category=record.category,
            date=record.date,
            currency=record.currency,
            description=record.description,
        )
        for record in records
    ]


@app.post("/expenses", response_model=ExpenseResponse)
def create_expense(
    payload: ExpensePayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> ExpenseResponse:
    session = get_session(x_user_id)
    try:
        payload = ExpensePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    record = store.add_expense(
        session.user_id,
        payload.amount,
        payload.category,
        payload.date,
        currency=payload.currency,
        description=payload.description,
    )
    return ExpenseResponse(
        id=record.id,
        user_id=record.user_id,
        amount=record.amount,
        category=record.category,
        date=record.date,
        currency=record.currency,
        description=record.description,
    )


@app.delete("/expenses/{expense_id}")
def delete_expense(expense_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> dict:
    session = get_session(x_user_id)
    if not store.delete_transaction(session.user_id, "expenses", expense_id):
        raise HTTPException(status_code=404, detail="Expense not found.")
    return {"status": "deleted"}


@app.get("/incomes", response_model=list[IncomeResponse])
def list_incomes(
    start_date: date | None = None,
    end_date: date | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[IncomeResponse]:
    session = get_session(x_user_id)
    date_range = (start_date, end_date) if start_date and end_date else None
    try:
        records = store.list_incomes(session.user_id, date_range)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        IncomeResponse(
            id=record.id,
            user_id=record.user_id,
            amount=record.amount,
            source=record.source,
            date=record.date,
            description=record.description,
        )
        for record in records
    ]


@app.post("/incomes", response_model=IncomeResponse)
def create_income(
    payload: IncomePayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> IncomeResponse:
    session = get_session(x_user_id)
    try:
        payload = IncomePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    record = store.add_income(
        session.user_id,
        payload.amount,
        payload.source,
        payload.date,
        description=payload.description,
    )
    return IncomeResponse(
        id=record.id,
        user_id=record.user_id,
        amount=record.amount,
        source=record.source,
        date=record.date,
        description=record.description,
    )


@app.delete("/incomes/{income_id}")
def delete_income(income_id: int, x_user_id: str | None = Header(None, alias="x-user-id")) -> dict:
    session = get_session(x_user_id)
    if not store.delete_transaction(session.user_id, "incomes", income_id):
        raise HTTPException(status_code=404, detail="Income not found.")
    return {"status": "deleted"}


@app.get("/budgets", response_model=list[BudgetResponse])
def list_budgets(x_user_id: str | None = Header(None, alias="x-user-id")) -> list[BudgetResponse]:
    session = get_session(x_user_id)
    return [
        BudgetResponse(
            id=budget.id,
            user_id=budget.user_id,
            amount=budget.amount,
            period=budget.period,
            created_at=budget.created_at,
            updated_at=budget.updated_at,
        )
        for budget in store.list_budgets(session.user_id)
    ]


@app.post("/budgets", response_model=BudgetResponse)
def create_budget(
    payload: BudgetPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> BudgetResponse:
    session = get_session(x_user_id)
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    budget = store.add_budget(session.user_id, payload.amount, payload.period)
    return BudgetResponse(
        id=budget.id,
        user_id=budget.user_id,
        amount=budget.amount,
        period=budget.period,
        created_at=budget.created_at,
        updated_at=budget.updated_at,
    )


@app.get("/budgets/status", response_model=BudgetStatusResponse)
def budget_status(
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> BudgetStatusResponse:
    session = get_session(x_user_id)
    display_currency = resolve_display_currency(currency)
    today = date.today()
    budget = active_budget(store.list_budgets(session.user_id))
    expense_records = store.list_expenses(session.user_id)
    status = evaluate_budget_status(budget, expense_records, today=today)
    in_period = (
        period_expenses(expense_records, status.period_start, today)
        if status.period_start
        else []
    )
    return BudgetStatusResponse(
        budget=(
            BudgetResponse(
                id=budget.id,
                user_id=budget.user_id,
                amount=budget.amount,
                period=budget.period,
                created_at=budget.created_at,
                updated_at=budget.updated_at,
            )
            if budget
            else None
        ),
        total_budget=status.total_budget,
        total_spent=status.total_spent,
        percentage=status.percentage,
        status=status.status,
        remaining_budget=status.remaining_budget,
        message=budget_status_message(status, display_currency),
        recommendations=budget_recommendations(
            budget, status, in_period, currency=display_currency
        ),
    )


@app.get("/analytics/expenses", response_model=ExpenseAnalyticsResponse)
def expense_analytics(
    window: str = Query("month"),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> ExpenseAnalyticsResponse:
    session = get_session(x_user_id)
    display_currency = resolve_display_currency(currency)
    try:
        filtered = filter_by_window(store.list_expenses(session.user_id), window)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ExpenseAnalyticsResponse(
        window=window.strip().lower(),
        currency=display_currency,
        total=sum_absolute(filtered),
        categories=to_summary_responses(aggregate_by_category(filtered, display_currency)),
        daily=to_summary_responses(bucket_daily(filtered, display_currency)),
        monthly=to_summary_responses(bucket_monthly(filtered, display_currency)),
        radar=[
            RadarPointResponse(category=point.category, amount=point.amount)
            for point in radar_series(filtered, display_currency)
        ],
        treemap=[
            TreemapPointResponse(name=point.name, size=point.size)
            for point in treemap_series(filtered, display_currency)
        ],
    )


@app.get("/analytics/income", response_model=IncomeAnalyticsResponse)
def income_analytics(
    forecast_months: int | None = Query(None, ge=0, le=36),
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> IncomeAnalyticsResponse:
    session = get_session(x_user_id)
    display_currency = resolve_display_currency(currency)
    months = settings.forecast_months if forecast_months is None else forecast_months
    income_records = store.list_incomes(session.user_id)
    history = monthly_income_totals(income_records)
    points = forecast_income(history, months)
    return IncomeAnalyticsResponse(
        total=sum_absolute(income_records),
        growth_rate=average_growth_rate(history),
        forecast_months=months if len(history) >= 2 else 0,
        sources=to_summary_responses(aggregate_by_source(income_records, display_currency)),
        monthly=[
            MonthlyIncomeResponse(
                month=point.label,
                year=point.year,
                month_number=point.month,
                amount=point.amount,
                forecast=point.forecast,
            )
            for point in points
        ],
    )


@app.get("/analytics/health", response_model=HealthResponse)
def health_analytics(
    currency: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> HealthResponse:
    session = get_session(x_user_id)
    display_currency = resolve_display_currency(currency)
    today = date.today()
    month_start, month_end = month_bounds(today)

    month_expenses = store.list_expenses(session.user_id, (month_start, month_end))
    month_incomes = store.list_incomes(session.user_id, (month_start, month_end))
    total_income = sum_absolute(month_incomes)
    total_expenses = sum_absolute(month_expenses)

    score = calculate_health_score(total_income, total_expenses)
    recommendations = generate_budget_recommendations(
        total_income,
        category_totals(month_expenses),
        score,
        currency=display_currency,
    )

    # milestones compare this calendar month with earlier months; future-dated income is ignored
    current_month = (today.year, today.month)
    history = [
        point
        for point in monthly_income_totals(store.list_incomes(session.user_id))
        if (point.year, point.month) <= current_month
    ]
    milestones = []
    if history:
        lifetime = sum((point.amount for point in history), Decimal("0"))
        milestones = check_income_milestones(
            total_income,
            [point.amount for point in history if (point.year, point.month) < current_month],
            lifetime,
            currency=display_currency,
        )

    return HealthResponse(
        month=month_key(today),
        total_income=total_income,
        total_expenses=total_expenses,
        score=score.score,
        status=score.status,
        message=score.message,
        color=score.color,
        recommendations=recommendations,
        milestones=[
            MilestoneResponse(
                achieved=milestone.achieved,
                message=milestone.message,
                type=milestone.type,
                amount=milestone.amount,
            )
            for milestone in milestones
        ],
    )


def to_goal(item: GoalPayload) -> FinancialGoal:
    return validate_goal(
        FinancialGoal(
            id=item.id,
            name=item.name,
            target_amount=item.target_amount,
            current_amount=item.current_amount,
            target_date=item.target_date,
            category=item.category or "",
            priority=item.priority or "",
        )
    )


def to_goal_progress_response(progress) -> GoalProgressResponse:
    return GoalProgressResponse(
        id=progress.goal.id,
        name=progress.goal.name,
        category=progress.goal.category,
        priority=progress.goal.priority,
        target_amount=progress.goal.target_amount,
        current_amount=progress.goal.current_amount,
        target_date=progress.goal.target_date,
        percentage=progress.percentage,
        months_left=progress.months_left,
        past_due=progress.past_due,
        completed=progress.completed,
    )


@app.post("/goals/summary", response_model=GoalsSummaryResponse)
def goals_summary(
    payload: list[GoalPayload],
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> GoalsSummaryResponse:
    get_session(x_user_id)
    today = date.today()
    try:
        goals = [to_goal(item) for item in payload]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    summary = summarize_goals(goals)
    return GoalsSummaryResponse(
        total_target=summary.total_target,
        total_current=summary.total_current,
        remaining=summary.remaining,
        percentage=summary.percentage,
        started_count=summary.started_count,
        half_way_count=summary.half_way_count,
        completed_count=summary.completed_count,
        goals=[to_goal_progress_response(goal_progress(goal, today=today)) for goal in goals],
        categories=[
            CategoryProgressResponse(
                category=item.category,
                target=item.target,
                current=item.current,
                percentage=item.percentage,
            )
            for item in progress_by_category(goals)
        ],
    )


@app.post("/goals/contribute", response_model=GoalProgressResponse)
def contribute_to_goal(
    payload: ContributionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> GoalProgressResponse:
    session = get_session(x_user_id)
    try:
        goal = add_contribution(to_goal(payload.goal), payload.amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("goal contribution: user_id=%s goal=%s", session.user_id, goal.name)
    return to_goal_progress_response(goal_progress(goal, today=date.today()))
