from __future__ import annotations

from app.schemas.common import CamelModel


class CategoryAmountOut(CamelModel):
    name: str
    amount: float


class SmartAnalysisOut(CamelModel):
    total_income: float
    total_expense: float
    savings: float
    savings_rate: float
    transaction_count: int
    top_expense_categories: list[CategoryAmountOut]
    ai_analysis: str | None = None
    period: str


class PeakDayOut(CamelModel):
    day: str
    avg_amount: int


class PeakWeekOut(CamelModel):
    week: int
    description: str


class DayBucketOut(CamelModel):
    day: str
    total: float
    count: int


class CategoryBucketOut(CamelModel):
    name: str
    total: float
    count: int
    avg_per_transaction: int


class PatternsOut(CamelModel):
    peak_spending_day: PeakDayOut
    peak_spending_week: PeakWeekOut
    by_day_of_week: list[DayBucketOut]
    by_week_of_month: list[float]
    top_categories: list[CategoryBucketOut]


class SpendingPatternsOut(CamelModel):
    patterns: PatternsOut
    insights: list[str]


class BudgetSuggestionOut(CamelModel):
    category_id: int | None = None
    category_name: str
    category_icon: str | None = None
    category_color: str | None = None
    current_monthly_avg: float
    suggested_budget: float
    percent_of_income: float
    recommendation: str
    priority: int
    potential_monthly_savings: float
    benchmark_ideal: float
    benchmark_max: float
    spending_class: str
    transaction_count: int
    reason: str


class BudgetSummaryOut(CamelModel):
    monthly_income: float
    total_suggested_budget: float
    suggested_savings: float
    potential_monthly_savings: float
    potential_yearly_savings: float
    needs_adjustment: int
    budget_rule: str
    essentials: float
    wants: float
    savings: float


class BudgetAdviceOut(CamelModel):
    suggestions: list[BudgetSuggestionOut]
    summary: BudgetSummaryOut


class MonthlyAggregateOut(CamelModel):
    month: str
    income: float
    expense: float
    savings: float


class ForecastPointOut(CamelModel):
    month: str
    predicted_income: int
    predicted_expense: int
    predicted_savings: int


class TrendsOut(CamelModel):
    income: str
    expense: str
    income_change: int
    expense_change: int


class CashFlowForecastOut(CamelModel):
    historical: list[MonthlyAggregateOut]
    forecast: list[ForecastPointOut]
    trends: TrendsOut
