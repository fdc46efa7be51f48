from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_narrator, get_today
from app.api.responses import unwrap
from app.core.config import get_settings
from app.models.enums import TransactionType
from app.models.user import User
from app.schemas.analytics import (
    AnomalyOut,
    AnomalyReportOut,
    AnomalyStatisticsOut,
    CategoryOut,
    HealthBreakdownOut,
    HealthScoreOut,
    HealthSummaryOut,
    InsightBasisOut,
    InsightOut,
    InsightsOut,
    SavingsPlanOut,
    SavingsRecommendationOut,
    SavingsSummaryOut,
    SubScoreOut,
    TransactionOut,
)
from app.schemas.common import Envelope
from app.services.anomaly_detector import AnomalyReport, detect_anomalies
from app.services.health_score import HealthScore, SubScore, calculate_health_score
from app.services.insights import InsightsReport, Narrator, generate_insights
from app.services.ledger_queries import fetch_budgets, fetch_transactions
from app.services.records import TransactionRecord
from app.services.savings_advisor import SavingsPlan, recommend_savings
from app.utils.dates import month_bounds, trailing_window_start
from app.utils.decimal_math import whole


router = APIRouter(prefix="/analytics", tags=["analytics"])


def transaction_out(row: TransactionRecord) -> TransactionOut:
    category = row.category
    return TransactionOut(
        id=row.id,
        amount=float(row.amount),
        type=row.type.value,
        description=row.description,
        transaction_date=row.date,
        category_id=row.category_id,
        category=(
            CategoryOut(id=category.id, name=category.name, icon=category.icon, color=category.color)
            if category is not None
            else None
        ),
    )


def _anomaly_report_out(report: AnomalyReport) -> AnomalyReportOut:
    return AnomalyReportOut(
        anomalies=[
            AnomalyOut(
                id=finding.transaction.id,
                transaction=transaction_out(finding.transaction),
                anomaly_type=finding.anomaly_type,
                severity=finding.severity.value,
                z_score=finding.z_score,
                cohort_mean=round(finding.cohort_mean, 2),
                cohort_std_dev=round(finding.cohort_std_dev, 2),
                description=finding.description,
            )
            for finding in report.anomalies
        ],
        statistics=AnomalyStatisticsOut(**report.statistics),
    )


def _sub_score_out(row: SubScore) -> SubScoreOut:
    return SubScoreOut(
        score=whole(row.score),
        label=row.label,
        value=round(row.value, 1) if row.value is not None else None,
        unit=row.unit,
        max_score=row.max_score,
    )


def _health_score_out(score: HealthScore) -> HealthScoreOut:
    summary = score.summary
    cv = summary["coefficient_of_variation"]
    return HealthScoreOut(
        total_score=score.total_score,
        grade=score.grade,
        feedback=score.feedback,
        improvements=score.improvements,
        breakdown=HealthBreakdownOut(**{key: _sub_score_out(row) for key, row in score.breakdown.items()}),
        summary=HealthSummaryOut(
            income=float(summary["income"]),
            expense=float(summary["expense"]),
            savings=float(summary["savings"]),
            transaction_count=summary["transaction_count"],
            coefficient_of_variation=round(cv, 1) if cv is not None else None,
        ),
    )


def _savings_plan_out(plan: SavingsPlan) -> SavingsPlanOut:
    return SavingsPlanOut(
        recommendations=[
            SavingsRecommendationOut(
                category_id=row.category_id,
                category=row.category_name,
                current_monthly_spending=float(row.current_monthly_spending),
                percent_of_total=float(row.percent_of_total),
                suggested_reduction=row.suggested_reduction,
                potential_monthly_savings=float(row.potential_monthly_savings),
                potential_yearly_savings=float(row.potential_yearly_savings),
                priority=row.priority,
                tip=row.tip,
            )
            for row in plan.recommendations
        ],
        summary=SavingsSummaryOut(**plan.summary),
    )


@router.get("/anomalies", response_model=Envelope[AnomalyReportOut])
def get_anomalies(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[AnomalyReportOut]:
    settings = get_settings()
    rows = fetch_transactions(
        db,
        current_user.id,
        start=trailing_window_start(today, settings.anomaly_window_months),
    )
    return unwrap(detect_anomalies(rows), _anomaly_report_out)


@router.get("/health-score", response_model=Envelope[HealthScoreOut])
def get_health_score(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[HealthScoreOut]:
    settings = get_settings()
    month_start, month_end = month_bounds(today.year, today.month)
    month_rows = fetch_transactions(db, current_user.id, start=month_start, end=month_end)
    budgets = fetch_budgets(db, current_user.id, year=today.year, month=today.month)
    recent_expenses = fetch_transactions(
        db,
        current_user.id,
        start=trailing_window_start(today, settings.health_window_months),
        tx_type=TransactionType.expense,
    )
    return unwrap(calculate_health_score(month_rows, budgets, recent_expenses), _health_score_out)


@router.get("/savings", response_model=Envelope[SavingsPlanOut])
def get_savings_recommendations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[SavingsPlanOut]:
    settings = get_settings()
    expenses = fetch_transactions(
        db,
        current_user.id,
        start=trailing_window_start(today, settings.advisor_window_months),
        tx_type=TransactionType.expense,
    )
    result = recommend_savings(expenses, window_months=settings.advisor_window_months)
    return unwrap(result, _savings_plan_out)


@router.get("/insights", response_model=Envelope[InsightsOut])
def get_insights(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    narrator: Narrator | None = Depends(get_narrator),
) -> Envelope[InsightsOut]:
    rows = fetch_transactions(db, current_user.id, start=trailing_window_start(today, 3))

    def render(report: InsightsReport) -> InsightsOut:
        return InsightsOut(
            insights=[InsightOut(type=row.type, content=row.content, title=row.title) for row in report.insights],
            source=report.source,
            generated_at=datetime.now(timezone.utc),
            based_on=InsightBasisOut(transaction_count=report.transaction_count, period="last 3 months"),
        )

    return unwrap(generate_insights(rows, narrator=narrator), render)
