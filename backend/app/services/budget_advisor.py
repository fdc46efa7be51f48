from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from app.models.enums import CategoryKind, Recommendation, SpendingClass
from app.services.records import TransactionRecord
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils.decimal_math import money, pct


MAX_SUGGESTIONS = 8
UNDERSPEND_PCT = Decimal("2")
UNDERSPEND_MAX_COUNT = 3
MAINTAIN_VISIBLE_PCT = Decimal("5")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Benchmark:
    max_pct: Decimal
    ideal_pct: Decimal
    spending_class: SpendingClass


# Share of monthly income, in percent.
BENCHMARKS: dict[CategoryKind, Benchmark] = {
    CategoryKind.housing: Benchmark(Decimal("35"), Decimal("30"), SpendingClass.essential),
    CategoryKind.food: Benchmark(Decimal("20"), Decimal("15"), SpendingClass.essential),
    CategoryKind.transport: Benchmark(Decimal("15"), Decimal("10"), SpendingClass.essential),
    CategoryKind.bills: Benchmark(Decimal("10"), Decimal("7"), SpendingClass.essential),
    CategoryKind.health: Benchmark(Decimal("10"), Decimal("5"), SpendingClass.essential),
    CategoryKind.education: Benchmark(Decimal("10"), Decimal("5"), SpendingClass.essential),
    CategoryKind.shopping: Benchmark(Decimal("10"), Decimal("5"), SpendingClass.want),
    CategoryKind.entertainment: Benchmark(Decimal("10"), Decimal("5"), SpendingClass.want),
    CategoryKind.other: Benchmark(Decimal("10"), Decimal("5"), SpendingClass.want),
}

ENVELOPE_SPLIT = {"essentials": Decimal("0.5"), "wants": Decimal("0.3"), "savings": Decimal("0.2")}


@dataclass(frozen=True)
class BudgetSuggestion:
    category_id: int | None
    category_name: str
    category_icon: str | None
    category_color: str | None
    current_monthly_avg: Decimal
    suggested_budget: Decimal
    percent_of_income: Decimal
    recommendation: Recommendation
    priority: int
    potential_monthly_savings: Decimal
    benchmark_ideal: Decimal
    benchmark_max: Decimal
    spending_class: SpendingClass
    transaction_count: int
    reason: str


@dataclass(frozen=True)
class BudgetAdvice:
    suggestions: list[BudgetSuggestion]
    summary: dict[str, Any]


def benchmark_for(kind: CategoryKind) -> Benchmark:
    return BENCHMARKS.get(kind, BENCHMARKS[CategoryKind.other])


def _decide(
    percent_of_income: Decimal,
    count: int,
    benchmark: Benchmark,
) -> tuple[Recommendation, int, str]:
    if percent_of_income > benchmark.max_pct:
        return (
            Recommendation.reduce,
            1,
            f"Spending is {pct(percent_of_income)}% of income, above the {benchmark.max_pct}% ceiling",
        )
    if percent_of_income > benchmark.ideal_pct:
        return (
            Recommendation.reduce,
            2,
            f"Spending is {pct(percent_of_income)}% of income, above the ideal {benchmark.ideal_pct}%",
        )
    if (
        percent_of_income < UNDERSPEND_PCT
        and count < UNDERSPEND_MAX_COUNT
        and benchmark.spending_class == SpendingClass.essential
    ):
        return (
            Recommendation.increase,
            2,
            f"Essential spending looks too low; about {benchmark.ideal_pct}% of income is typical",
        )
    return Recommendation.maintain, 3, "Spending is within a healthy range"


def suggest_budgets(
    expenses: Sequence[TransactionRecord],
    *,
    monthly_income: Decimal,
    window_months: int = 3,
    limit: int = MAX_SUGGESTIONS,
) -> EngineResult[BudgetAdvice]:
    """Compare per-category monthly spend with benchmark shares of income."""
    if monthly_income <= 0:
        return InsufficientData(
            reason="Income data is needed to suggest budgets",
            data={"suggestions": []},
        )

    grouped: dict[int | None, list[TransactionRecord]] = defaultdict(list)
    for row in expenses:
        grouped[row.category_id].append(row)

    suggestions: list[BudgetSuggestion] = []
    for category_id, rows in grouped.items():
        first = rows[0]
        monthly_avg = sum((abs(row.amount) for row in rows), Decimal("0")) / Decimal(window_months)
        percent_of_income = monthly_avg / monthly_income * HUNDRED
        benchmark = benchmark_for(first.category_kind)
        recommendation, priority, reason = _decide(percent_of_income, len(rows), benchmark)

        if recommendation == Recommendation.maintain:
            if percent_of_income <= MAINTAIN_VISIBLE_PCT:
                continue
            suggested = monthly_avg
        else:
            suggested = monthly_income * benchmark.ideal_pct / HUNDRED

        category = first.category
        suggestions.append(
            BudgetSuggestion(
                category_id=category_id,
                category_name=first.category_name,
                category_icon=category.icon if category else None,
                category_color=category.color if category else None,
                current_monthly_avg=money(monthly_avg),
                suggested_budget=money(suggested),
                percent_of_income=pct(percent_of_income),
                recommendation=recommendation,
                priority=priority,
                potential_monthly_savings=money(max(Decimal("0"), monthly_avg - suggested)),
                benchmark_ideal=benchmark.ideal_pct,
                benchmark_max=benchmark.max_pct,
                spending_class=benchmark.spending_class,
                transaction_count=len(rows),
                reason=reason,
            )
        )

    suggestions.sort(key=lambda row: (row.priority, -row.percent_of_income))
    top = suggestions[:limit]
    envelope = {name: money(monthly_income * share) for name, share in ENVELOPE_SPLIT.items()}
    potential = sum((row.potential_monthly_savings for row in top), Decimal("0"))
    summary = {
        "monthly_income": money(monthly_income),
        "total_suggested_budget": money(sum((row.suggested_budget for row in top), Decimal("0"))),
        "suggested_savings": envelope["savings"],
        "potential_monthly_savings": money(potential),
        "potential_yearly_savings": money(potential * 12),
        "needs_adjustment": sum(1 for row in top if row.recommendation != Recommendation.maintain),
        "budget_rule": "50/30/20",
        **envelope,
    }
    return Ok(BudgetAdvice(suggestions=top, summary=summary))
