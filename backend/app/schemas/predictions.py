from __future__ import annotations

from app.schemas.common import CamelModel


class MonthAmountOut(CamelModel):
    month: str
    amount: float


class CategoryPredictionOut(CamelModel):
    category_id: int | None = None
    name: str
    prediction: float
    confidence: int


class NextMonthPredictionOut(CamelModel):
    prediction: float
    month: int
    year: int
    confidence: int
    historical_data: list[MonthAmountOut]
    categories: list[CategoryPredictionOut]
