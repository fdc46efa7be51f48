from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from app.models.enums import CategoryKind
from app.services.records import TransactionRecord, total
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils.decimal_math import money, pct


MIN_TRANSACTIONS = 5

# (share of total expense above which a cut is suggested, cut in percent, priority)
REDUCTION_TIERS: list[tuple[Decimal, int, int]] = [
    (Decimal("30"), 20, 1),
    (Decimal("20"), 15, 2),
    (Decimal("15"), 10, 3),
]

SAVING_TIPS = {
    CategoryKind.food: "Cook at home more often and bring lunch to work",
    CategoryKind.transport: "Use public transport or share rides",
    CategoryKind.entertainment: "Look for free or discounted activities",
    CategoryKind.shopping: "Write a list before shopping and avoid impulse buys",
}


@dataclass(frozen=True)
class SavingsRecommendation:
    category_id: int | None
    category_name: str
    current_monthly_spending: Decimal
    percent_of_total: Decimal
    suggested_reduction: int
    potential_monthly_savings: Decimal
    potential_yearly_savings: Decimal
    priority: int
    tip: str


@dataclass(frozen=True)
class SavingsPlan:
    recommendations: list[SavingsRecommendation]
    summary: dict[str, Any]


def saving_tip(kind: CategoryKind, reduction: int) -> str:
    return SAVING_TIPS.get(kind, f"Try to cut spending in this category by {reduction}%")


def recommend_savings(
    expenses: Sequence[TransactionRecord],
    *,
    window_months: int = 3,
) -> EngineResult[SavingsPlan]:
    if len(expenses) < MIN_TRANSACTIONS:
        return InsufficientData(
            reason="More data is needed for savings recommendations",
            data={"recommendations": []},
        )

    grouped: dict[int | None, list[TransactionRecord]] = defaultdict(list)
    for row in expenses:
        grouped[row.category_id].append(row)

    total_expense = total(expenses)
    months = Decimal(window_months)
    rows: list[SavingsRecommendation] = []
    for category_id, items in grouped.items():
        category_total = total(items)
        if total_expense == 0:
            continue
        share = category_total / total_expense * 100
        tier = next((tier for tier in REDUCTION_TIERS if share > tier[0]), None)
        if tier is None:
            continue
        _, reduction, priority = tier
        monthly = category_total / months
        monthly_savings = monthly * reduction / 100
        rows.append(
            SavingsRecommendation(
                category_id=category_id,
                category_name=items[0].category_name,
                current_monthly_spending=money(monthly),
                percent_of_total=pct(share),
                suggested_reduction=reduction,
                potential_monthly_savings=money(monthly_savings),
                potential_yearly_savings=money(monthly_savings * 12),
                priority=priority,
                tip=saving_tip(items[0].category_kind, reduction),
            )
        )

    rows.sort(key=lambda row: row.priority)
    return Ok(
        SavingsPlan(
            recommendations=rows,
            summary={
                "total_monthly_expense": money(total_expense / months),
                "total_potential_yearly_savings": money(
                    sum((row.potential_yearly_savings for row in rows), Decimal("0"))
                ),
                "recommendation_count": len(rows),
            },
        )
    )
