from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.models.enums import TrendDirection
from app.services.records import MonthlyAggregate, TransactionRecord, monthly_aggregates, monthly_totals
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils import stats
from app.utils.dates import month_key, shift_months
from app.utils.decimal_math import money, whole


MIN_MONTHS = 3


@dataclass(frozen=True)
class SeriesPrediction:
    prediction: Decimal
    confidence: int
    slope: float
    history: list[tuple[str, Decimal]]


@dataclass(frozen=True)
class CategoryPrediction:
    category_id: int | None
    name: str
    prediction: Decimal
    confidence: int


@dataclass(frozen=True)
class SpendingForecast:
    month: int
    year: int
    overall: SeriesPrediction
    categories: list[CategoryPrediction]


@dataclass(frozen=True)
class ForecastPoint:
    month_key: str
    predicted_income: int
    predicted_expense: int
    predicted_savings: int


@dataclass(frozen=True)
class CashFlowForecast:
    historical: list[MonthlyAggregate]
    forecast: list[ForecastPoint]
    income_trend: TrendDirection
    expense_trend: TrendDirection
    income_change: int
    expense_change: int


def _predict_series(totals: dict[str, Decimal]) -> SeriesPrediction | None:
    if len(totals) < MIN_MONTHS:
        return None
    series = [float(value) for value in totals.values()]
    fit = stats.linear_regression(series)
    prediction = max(0.0, fit.predict(len(series)))
    return SeriesPrediction(
        prediction=money(prediction),
        confidence=whole(fit.r_squared * 100),
        slope=fit.slope,
        history=list(totals.items()),
    )


def predict_by_category(expenses: Sequence[TransactionRecord]) -> list[CategoryPrediction]:
    """One OLS prediction per category with at least three months of history."""
    grouped: dict[int | None, list[TransactionRecord]] = defaultdict(list)
    for row in expenses:
        grouped[row.category_id].append(row)

    rows: list[CategoryPrediction] = []
    for category_id, items in grouped.items():
        fitted = _predict_series(monthly_totals(items))
        if fitted is None:
            continue
        rows.append(
            CategoryPrediction(
                category_id=category_id,
                name=items[0].category_name,
                prediction=fitted.prediction,
                confidence=fitted.confidence,
            )
        )
    return rows


def forecast_spending(
    expenses: Sequence[TransactionRecord],
    *,
    as_of: date,
) -> EngineResult[SpendingForecast]:
    """Project next month's total expense plus a per-category breakdown."""
    overall = _predict_series(monthly_totals(expenses))
    if overall is None:
        return InsufficientData(
            reason=f"At least {MIN_MONTHS} months of data are needed for a prediction",
            data={"prediction": None, "confidence": 0},
        )
    next_month = shift_months(as_of, 1)
    return Ok(
        SpendingForecast(
            month=next_month.month,
            year=next_month.year,
            overall=overall,
            categories=predict_by_category(expenses),
        )
    )


def trend_direction(slope: float, deadband: float = 0.0) -> TrendDirection:
    if slope > deadband:
        return TrendDirection.increasing
    if slope < -deadband:
        return TrendDirection.decreasing
    return TrendDirection.stable


def build_cash_flow_forecast(
    transactions: Sequence[TransactionRecord],
    *,
    as_of: date,
    months: int = 3,
    deadband: float = 0.0,
) -> EngineResult[CashFlowForecast]:
    """Average-plus-trend projection of income, expense and savings.

    Month ``i`` ahead is ``average + slope * i`` where the slope comes from an
    OLS fit over the historical monthly totals.
    """
    history = monthly_aggregates(transactions)
    if len(history) < MIN_MONTHS:
        return InsufficientData(reason=f"At least {MIN_MONTHS} months of data are needed for a forecast")

    incomes = [float(row.income) for row in history]
    expenses = [float(row.expense) for row in history]
    avg_income = stats.mean(incomes)
    avg_expense = stats.mean(expenses)
    income_slope = stats.linear_trend(incomes)
    expense_slope = stats.linear_trend(expenses)

    points: list[ForecastPoint] = []
    for step in range(1, months + 1):
        income = avg_income + income_slope * step
        expense = avg_expense + expense_slope * step
        points.append(
            ForecastPoint(
                month_key=month_key(shift_months(as_of, step)),
                predicted_income=whole(income),
                predicted_expense=whole(expense),
                predicted_savings=whole(income - expense),
            )
        )

    return Ok(
        CashFlowForecast(
            historical=history,
            forecast=points,
            income_trend=trend_direction(income_slope, deadband),
            expense_trend=trend_direction(expense_slope, deadband),
            income_change=whole(income_slope),
            expense_change=whole(expense_slope),
        )
    )
