from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.models.enums import CategoryKind, TransactionType
from app.utils.dates import month_key


DEFAULT_CATEGORY_NAME = "Other"


@dataclass(frozen=True)
class CategoryRef:
    id: int | None
    name: str
    type: TransactionType
    kind: CategoryKind = CategoryKind.other
    icon: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    user_id: int
    category_id: int | None
    amount: Decimal
    type: TransactionType
    date: date
    description: str | None = None
    category: CategoryRef | None = None

    @property
    def category_name(self) -> str:
        return self.category.name if self.category is not None else DEFAULT_CATEGORY_NAME

    @property
    def category_kind(self) -> CategoryKind:
        return self.category.kind if self.category is not None else CategoryKind.other


@dataclass(frozen=True)
class BudgetLimit:
    category_id: int
    amount: Decimal
    category_name: str | None = None


@dataclass(frozen=True)
class MonthlyAggregate:
    month_key: str
    income: Decimal
    expense: Decimal

    @property
    def savings(self) -> Decimal:
        return self.income - self.expense


def only(transactions: Iterable[TransactionRecord], tx_type: TransactionType) -> list[TransactionRecord]:
    return [row for row in transactions if row.type == tx_type]


def total(transactions: Iterable[TransactionRecord]) -> Decimal:
    return sum((abs(row.amount) for row in transactions), Decimal("0"))


def monthly_aggregates(transactions: Iterable[TransactionRecord]) -> list[MonthlyAggregate]:
    """Group rows by calendar month, oldest month first."""
    buckets: dict[str, dict[str, Decimal]] = defaultdict(
        lambda: {"income": Decimal("0"), "expense": Decimal("0")}
    )
    for row in transactions:
        bucket = buckets[month_key(row.date)]
        if row.type == TransactionType.income:
            bucket["income"] += abs(row.amount)
        else:
            bucket["expense"] += abs(row.amount)
    return [
        MonthlyAggregate(month_key=key, income=values["income"], expense=values["expense"])
        for key, values in sorted(buckets.items())
    ]


def monthly_totals(transactions: Iterable[TransactionRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for row in transactions:
        totals[month_key(row.date)] += abs(row.amount)
    return dict(sorted(totals.items()))
