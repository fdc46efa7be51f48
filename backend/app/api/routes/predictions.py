from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_today
from app.api.responses import unwrap
from app.core.config import get_settings
from app.models.enums import TransactionType
from app.models.user import User
from app.schemas.common import Envelope
from app.schemas.predictions import CategoryPredictionOut, MonthAmountOut, NextMonthPredictionOut
from app.services.forecast import CategoryPrediction, SpendingForecast, forecast_spending, predict_by_category
from app.services.ledger_queries import fetch_transactions
from app.services.records import TransactionRecord
from app.utils.dates import trailing_window_start


router = APIRouter(prefix="/predictions", tags=["predictions"])


def _recent_expenses(db: Session, user_id: int, today: date) -> list[TransactionRecord]:
    return fetch_transactions(
        db,
        user_id,
        start=trailing_window_start(today, get_settings().forecast_window_months),
        tx_type=TransactionType.expense,
    )


def _category_out(row: CategoryPrediction) -> CategoryPredictionOut:
    return CategoryPredictionOut(
        category_id=row.category_id,
        name=row.name,
        prediction=float(row.prediction),
        confidence=row.confidence,
    )


def _next_month_out(forecast: SpendingForecast) -> NextMonthPredictionOut:
    overall = forecast.overall
    return NextMonthPredictionOut(
        prediction=float(overall.prediction),
        month=forecast.month,
        year=forecast.year,
        confidence=overall.confidence,
        historical_data=[MonthAmountOut(month=key, amount=float(amount)) for key, amount in overall.history],
        categories=[_category_out(row) for row in forecast.categories],
    )


@router.get("/next-month", response_model=Envelope[NextMonthPredictionOut])
def get_next_month_prediction(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[NextMonthPredictionOut]:
    expenses = _recent_expenses(db, current_user.id, today)
    return unwrap(forecast_spending(expenses, as_of=today), _next_month_out)


@router.get("/by-category", response_model=Envelope[list[CategoryPredictionOut]])
def get_category_predictions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
) -> Envelope[list[CategoryPredictionOut]]:
    expenses = _recent_expenses(db, current_user.id, today)
    return Envelope(data=[_category_out(row) for row in predict_by_category(expenses)])
