from datetime import date
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_narrator, get_today
from app.api.responses import unwrap
from app.core.config import get_settings
from app.models.enums import TransactionType
from app.models.user import User
from app.schemas.common import Envelope
from app.schemas.smart import (
    BudgetAdviceOut,
    BudgetSuggestionOut,
    BudgetSummaryOut,
    CashFlowForecastOut,
    CategoryAmountOut,
    CategoryBucketOut,
    DayBucketOut,
    ForecastPointOut,
    MonthlyAggregateOut,
    PatternsOut,
    PeakDayOut,
    PeakWeekOut,
    SmartAnalysisOut,
    SpendingPatternsOut,
    TrendsOut,
)
from app.services.budget_advisor import BudgetAdvice, suggest_budgets
from app.services.forecast import CashFlowForecast, build_cash_flow_forecast
from app.services.insights import Narrator, SmartAnalysis, period_start, smart_analysis
from app.services.ledger_queries import fetch_transactions
from app.services.records import only, total
from app.services.spending_patterns import SpendingPatterns, detect_spending_patterns
from app.utils.dates import trailing_window_start


router = APIRouter(prefix="/smart", tags=["smart"])

WEEK_DESCRIPTIONS = {"early": "Early month", "mid": "Mid month", "late": "Late month"}


def _analysis_out(analysis: SmartAnalysis) -> SmartAnalysisOut:
    snapshot = analysis.snapshot
    return SmartAnalysisOut(
        total_income=float(snapshot.total_income),
        total_expense=float(snapshot.total_expense),
        savings=float(snapshot.savings),
        savings_rate=float(snapshot.savings_rate),
        transaction_count=snapshot.transaction_count,
        top_expense_categories=[
            CategoryAmountOut(name=name, amount=float(amount)) for name, amount in snapshot.top_expense_categories
        ],
        ai_analysis=analysis.ai_analysis,
        period=analysis.period,
    )


def _patterns_out(patterns: SpendingPatterns) -> SpendingPatternsOut:
    return SpendingPatternsOut(
        patterns=PatternsOut(
            peak_spending_day=PeakDayOut(day=patterns.peak_day, avg_amount=patterns.peak_day_avg_amount),
            peak_spending_week=PeakWeekOut(
                week=patterns.peak_week_index + 1,
                description=WEEK_DESCRIPTIONS[patterns.peak_week_position],
            ),
            by_day_of_week=[
                DayBucketOut(day=row.day, total=float(row.total), count=row.count) for row in patterns.by_day_of_week
            ],
            by_week_of_month=[float(value) for value in patterns.by_week_of_month],
            top_categories=[
                CategoryBucketOut(
                    name=row.name,
                    total=float(row.total),
                    count=row.count,
                    avg_per_transaction=row.avg_per_transaction,
                )
                for row in patterns.top_categories
            ],
        ),
        insights=patterns.insights,
    )


def _budget_advice_out(advice: BudgetAdvice) -> BudgetAdviceOut:
    return BudgetAdviceOut(
        suggestions=[
            BudgetSuggestionOut(
                category_id=row.category_id,
                category_name=row.category_name,
                category_icon=row.category_icon,
                category_color=row.category_color,
                current_monthly_avg=float(row.current_monthly_avg),
                suggested_budget=float(row.suggested_budget),
                percent_of_income=float(row.percent_of_income),
                recommendation=row.recommendation.value,
                priority=row.priority,
                potential_monthly_savings=float(row.potential_monthly_savings),
                benchmark_ideal=float(row.benchmark_ideal),
                benchmark_max=float(row.benchmark_max),
                spending_class=row.spending_class.value,
                transaction_count=row.transaction_count,
                reason=row.reason,
            )
            for row in advice.suggestions
        ],
        summary=BudgetSummaryOut(**advice.summary),
    )


def _cash_flow_out(forecast: CashFlowForecast) -> CashFlowForecastOut:
    return CashFlowForecastOut(
        historical=[
            MonthlyAggregateOut(
                month=row.month_key,
                income=float(row.income),
                expense=float(row.expense),
                savings=float(row.savings),
            )
            for row in forecast.historical
        ],
        forecast=[
            ForecastPointOut(
                month=point.month_key,
                predicted_income=point.predicted_income,
                predicted_expense=point.predicted_expense,
                predicted_savings=point.predicted_savings,
            )
            for point in forecast.forecast
        ],
        trends=TrendsOut(
            income=forecast.income_trend.value,
            expense=forecast.expense_trend.value,
            income_change=forecast.income_change,
            expense_change=forecast.expense_change,
        ),
    )


@router.get("/analysis", response_model=Envelope[SmartAnalysisOut])
def get_smart_analysis(
    period: Literal["week", "month", "quarter"] = Query(default="month"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    narrator: Narrator | None = Depends(get_narrator),
) -> Envelope[SmartAnalysisOut]:
    rows = fetch_transactions(db, current_user.id, start=period_start(period, today))
    return unwrap(smart_analysis(rows, period=period, narrator=narrator), _analysis_out)


@router.get("/patterns", response_model=Envelope[SpendingPatternsOut])
def get_spending_patterns(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[SpendingPatternsOut]:
    settings = get_settings()
    expenses = fetch_transactions(
        db,
        current_user.id,
        start=trailing_window_start(today, settings.pattern_window_months),
        tx_type=TransactionType.expense,
    )
    return unwrap(detect_spending_patterns(expenses), _patterns_out)


@router.get("/budget-suggestions", response_model=Envelope[BudgetAdviceOut])
def get_budget_suggestions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[BudgetAdviceOut]:
    settings = get_settings()
    window = settings.advisor_window_months
    rows = fetch_transactions(db, current_user.id, start=trailing_window_start(today, window))
    monthly_income = total(only(rows, TransactionType.income)) / Decimal(window)
    result = suggest_budgets(
        only(rows, TransactionType.expense),
        monthly_income=monthly_income,
        window_months=window,
    )
    return unwrap(result, _budget_advice_out)


@router.get("/forecast", response_model=Envelope[CashFlowForecastOut])
def get_cash_flow_forecast(
    months: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[CashFlowForecastOut]:
    settings = get_settings()
    rows = fetch_transactions(
        db,
        current_user.id,
        start=trailing_window_start(today, settings.forecast_window_months),
    )
    result = build_cash_flow_forecast(
        rows,
        as_of=today,
        months=months or settings.forecast_horizon_months,
        deadband=settings.forecast_trend_deadband,
    )
    return unwrap(result, _cash_flow_out)
