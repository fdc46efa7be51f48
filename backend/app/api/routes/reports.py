from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_today
from app.models.enums import TransactionType
from app.models.user import User
from app.schemas.common import Envelope
from app.schemas.reports import BudgetStatusOut, CategoryTotalOut, MonthlyTrendOut, ReportSummaryOut
from app.services.ledger_queries import fetch_budgets, fetch_transactions
from app.services.reports import budget_status, build_summary, monthly_trend, totals_by_category
from app.utils.dates import month_bounds, trailing_window_start


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=Envelope[ReportSummaryOut])
def get_summary(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Envelope[ReportSummaryOut]:
    rows = fetch_transactions(db, current_user.id, start=start_date, end=end_date)
    summary = build_summary(rows)
    return Envelope(
        data=ReportSummaryOut(
            total_income=float(summary.total_income),
            total_expense=float(summary.total_expense),
            balance=float(summary.balance),
            transaction_count=summary.transaction_count,
        )
    )


@router.get("/by-category", response_model=Envelope[list[CategoryTotalOut]])
def get_by_category(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    tx_type: TransactionType = Query(default=TransactionType.expense, alias="type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Envelope[list[CategoryTotalOut]]:
    rows = fetch_transactions(db, current_user.id, start=start_date, end=end_date, tx_type=tx_type)
    return Envelope(
        data=[
            CategoryTotalOut(
                category_id=row.category_id,
                name=row.name,
                icon=row.icon,
                color=row.color,
                total=float(row.total),
                count=row.count,
            )
            for row in totals_by_category(rows)
        ]
    )


@router.get("/monthly-trend", response_model=Envelope[list[MonthlyTrendOut]])
def get_monthly_trend(
    months: int = Query(default=6, ge=1, le=24),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[list[MonthlyTrendOut]]:
    rows = fetch_transactions(db, current_user.id, start=trailing_window_start(today, months))
    return Envelope(
        data=[
            MonthlyTrendOut(
                month=row.month_key,
                income=float(row.income),
                expense=float(row.expense),
                savings=float(row.savings),
            )
            for row in monthly_trend(rows)
        ]
    )


@router.get("/budget-status", response_model=Envelope[list[BudgetStatusOut]])
def get_budget_status(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[list[BudgetStatusOut]]:
    year = year or today.year
    month = month or today.month
    month_start, month_end = month_bounds(year, month)
    budgets = fetch_budgets(db, current_user.id, year=year, month=month)
    expenses = fetch_transactions(
        db,
        current_user.id,
        start=month_start,
        end=month_end,
        tx_type=TransactionType.expense,
    )
    return Envelope(
        data=[
            BudgetStatusOut(
                category_id=row.category_id,
                category_name=row.category_name,
                amount=float(row.amount),
                spent=float(row.spent),
                remaining=float(row.remaining),
                percentage=row.percentage,
            )
            for row in budget_status(budgets, expenses)
        ]
    )
