from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from app.models.enums import TransactionType
from app.services.records import BudgetLimit, MonthlyAggregate, TransactionRecord, monthly_aggregates, only, total
from app.utils.decimal_math import money, whole


@dataclass(frozen=True)
class ReportSummary:
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal
    transaction_count: int


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int | None
    name: str
    icon: str | None
    color: str | None
    total: Decimal
    count: int


@dataclass(frozen=True)
class BudgetStatus:
    category_id: int
    category_name: str | None
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: int


def build_summary(transactions: Sequence[TransactionRecord]) -> ReportSummary:
    income = total(only(transactions, TransactionType.income))
    expense = total(only(transactions, TransactionType.expense))
    return ReportSummary(
        total_income=money(income),
        total_expense=money(expense),
        balance=money(income - expense),
        transaction_count=len(transactions),
    )


def totals_by_category(transactions: Sequence[TransactionRecord]) -> list[CategoryTotal]:
    """Per-category totals, largest first."""
    buckets: dict[int | None, list[TransactionRecord]] = {}
    for row in transactions:
        buckets.setdefault(row.category_id, []).append(row)

    rows: list[CategoryTotal] = []
    for category_id, items in buckets.items():
        category = items[0].category
        rows.append(
            CategoryTotal(
                category_id=category_id,
                name=items[0].category_name,
                icon=category.icon if category else None,
                color=category.color if category else None,
                total=money(total(items)),
                count=len(items),
            )
        )
    rows.sort(key=lambda row: row.total, reverse=True)
    return rows


def monthly_trend(transactions: Sequence[TransactionRecord]) -> list[MonthlyAggregate]:
    return monthly_aggregates(transactions)


def budget_status(budgets: Sequence[BudgetLimit], month_expenses: Sequence[TransactionRecord]) -> list[BudgetStatus]:
    spent_by_category: dict[int | None, Decimal] = {}
    for row in month_expenses:
        spent_by_category[row.category_id] = spent_by_category.get(row.category_id, Decimal("0")) + abs(row.amount)

    rows: list[BudgetStatus] = []
    for budget in budgets:
        spent = spent_by_category.get(budget.category_id, Decimal("0"))
        rows.append(
            BudgetStatus(
                category_id=budget.category_id,
                category_name=budget.category_name,
                amount=money(budget.amount),
                spent=money(spent),
                remaining=money(budget.amount - spent),
                percentage=whole(spent / budget.amount * 100) if budget.amount > 0 else 0,
            )
        )
    return rows
