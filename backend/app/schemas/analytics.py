from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from app.schemas.common import CamelModel


class CategoryOut(CamelModel):
    id: int | None = None
    name: str
    icon: str | None = None
    color: str | None = None


class TransactionOut(CamelModel):
    id: int
    amount: float
    type: str
    description: str | None = None
    transaction_date: date = Field(alias="transaction_date")
    category_id: int | None = None
    category: CategoryOut | None = None


class AnomalyOut(CamelModel):
    id: int
    transaction: TransactionOut
    anomaly_type: str
    severity: str
    z_score: float = Field(alias="z_score")
    cohort_mean: float
    cohort_std_dev: float
    description: str


class AnomalyStatisticsOut(CamelModel):
    total_transactions: int
    anomaly_count: int
    high_severity: int
    medium_severity: int
    low_severity: int


class AnomalyReportOut(CamelModel):
    anomalies: list[AnomalyOut]
    statistics: AnomalyStatisticsOut


class SubScoreOut(CamelModel):
    score: int
    label: str
    value: float | None = None
    unit: str
    max_score: float


class HealthBreakdownOut(CamelModel):
    savings_rate: SubScoreOut
    budget_compliance: SubScoreOut
    spending_stability: SubScoreOut
    diversification: SubScoreOut


class HealthSummaryOut(CamelModel):
    income: float
    expense: float
    savings: float
    transaction_count: int
    coefficient_of_variation: float | None = None


class HealthScoreOut(CamelModel):
    total_score: int
    grade: str
    feedback: str
    improvements: list[str]
    breakdown: HealthBreakdownOut
    summary: HealthSummaryOut


class SavingsRecommendationOut(CamelModel):
    category_id: int | None = None
    category: str
    current_monthly_spending: float
    percent_of_total: float
    suggested_reduction: int
    potential_monthly_savings: float
    potential_yearly_savings: float
    priority: int
    tip: str


class SavingsSummaryOut(CamelModel):
    total_monthly_expense: float
    total_potential_yearly_savings: float
    recommendation_count: int


class SavingsPlanOut(CamelModel):
    recommendations: list[SavingsRecommendationOut]
    summary: SavingsSummaryOut


class InsightOut(CamelModel):
    type: str
    content: str
    title: str | None = None
    icon: str | None = None


class InsightBasisOut(CamelModel):
    transaction_count: int
    period: str


class InsightsOut(CamelModel):
    insights: list[InsightOut]
    source: str
    generated_at: datetime
    based_on: InsightBasisOut
