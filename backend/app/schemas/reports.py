from __future__ import annotations

from app.schemas.common import CamelModel


class ReportSummaryOut(CamelModel):
    total_income: float
    total_expense: float
    balance: float
    transaction_count: int


class CategoryTotalOut(CamelModel):
    category_id: int | None = None
    name: str
    icon: str | None = None
    color: str | None = None
    total: float
    count: int


class MonthlyTrendOut(CamelModel):
    month: str
    income: float
    expense: float
    savings: float


class BudgetStatusOut(CamelModel):
    category_id: int
    category_name: str | None = None
    amount: float
    spent: float
    remaining: float
    percentage: int
