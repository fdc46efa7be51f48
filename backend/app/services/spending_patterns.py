from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.services.records import TransactionRecord
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils.decimal_math import whole


MIN_TRANSACTIONS = 10
TOP_CATEGORIES = 5
WEEKS_PER_MONTH = 5
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class DayBucket:
    day: str
    total: Decimal
    count: int


@dataclass(frozen=True)
class CategoryBucket:
    name: str
    total: Decimal
    count: int

    @property
    def avg_per_transaction(self) -> int:
        return whole(self.total / self.count) if self.count else 0


@dataclass(frozen=True)
class SpendingPatterns:
    peak_day_index: int
    peak_day_avg_amount: int
    peak_week_index: int
    by_day_of_week: list[DayBucket]
    by_week_of_month: list[Decimal]
    top_categories: list[CategoryBucket]
    insights: list[str]

    @property
    def peak_day(self) -> str:
        return DAY_NAMES[self.peak_day_index]

    @property
    def peak_week_position(self) -> str:
        return month_position(self.peak_week_index)


def day_of_week(value: date) -> int:
    """Sunday-first index, 0..6."""
    return (value.weekday() + 1) % 7


def week_of_month(value: date) -> int:
    return (value.day - 1) // 7


def month_position(week_index: int) -> str:
    if week_index == 0:
        return "early"
    if week_index >= 3:
        return "late"
    return "mid"


def _argmax(values: Sequence[Decimal]) -> int:
    # strict comparison keeps the lowest index on ties
    best = 0
    for index, value in enumerate(values):
        if value > values[best]:
            best = index
    return best


def pattern_insights(peak_day: int, peak_week: int, top_categories: Sequence[CategoryBucket]) -> list[str]:
    insights = [f"You spend the most on {DAY_NAMES[peak_day]}"]
    position = month_position(peak_week)
    if position == "early":
        insights.append("Spending is concentrated early in the month, likely right after payday")
    elif position == "late":
        insights.append("Spending runs high late in the month; keep a closer eye on it")
    if top_categories:
        insights.append(f"{top_categories[0].name} makes up the largest share of your spending")
    return insights


def detect_spending_patterns(expenses: Sequence[TransactionRecord]) -> EngineResult[SpendingPatterns]:
    if len(expenses) < MIN_TRANSACTIONS:
        return InsufficientData(reason="More data is needed to detect spending patterns", data={"patterns": []})

    day_totals = [Decimal("0")] * len(DAY_NAMES)
    day_counts = [0] * len(DAY_NAMES)
    week_totals = [Decimal("0")] * WEEKS_PER_MONTH
    categories: dict[str, list[Decimal]] = {}

    for row in expenses:
        amount = abs(row.amount)
        day = day_of_week(row.date)
        day_totals[day] += amount
        day_counts[day] += 1
        week_totals[week_of_month(row.date)] += amount
        categories.setdefault(row.category_name, []).append(amount)

    peak_day = _argmax(day_totals)
    peak_week = _argmax(week_totals)
    ranked = sorted(
        (CategoryBucket(name=name, total=sum(amounts, Decimal("0")), count=len(amounts)) for name, amounts in categories.items()),
        key=lambda bucket: bucket.total,
        reverse=True,
    )[:TOP_CATEGORIES]
    peak_avg = whole(day_totals[peak_day] / day_counts[peak_day]) if day_counts[peak_day] else 0

    return Ok(
        SpendingPatterns(
            peak_day_index=peak_day,
            peak_day_avg_amount=peak_avg,
            peak_week_index=peak_week,
            by_day_of_week=[
                DayBucket(day=name, total=day_totals[index], count=day_counts[index])
                for index, name in enumerate(DAY_NAMES)
            ],
            by_week_of_month=week_totals,
            top_categories=ranked,
            insights=pattern_insights(peak_day, peak_week, ranked),
        )
    )
