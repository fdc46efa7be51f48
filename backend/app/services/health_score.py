"""Financial health score: four 0-25 sub-scores summed into a 0-100 grade.

Sub-scores
----------
savings_rate
    Share of income kept this month; 20% or more earns the full 25.
budget_compliance
    Fraction of this month's budgets that were not exceeded. A user without
    budgets is not penalised and receives the full 25.
spending_stability
    Coefficient of variation of monthly expense totals over the trailing
    window. CV <= 20% earns 25, every further percentage point costs 0.5,
    so CV >= 70% earns 0. Fewer than two months of history earns 25.
diversification
    Number of distinct expense categories this month; five or more earns 25.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from app.models.enums import TransactionType
from app.services.records import BudgetLimit, TransactionRecord, monthly_totals, only, total
from app.services.results import Ok
from app.utils import stats
from app.utils.decimal_math import whole


MAX_SUB_SCORE = 25.0
SAVINGS_TARGET_PCT = 20.0
STABILITY_CV_FLOOR = 20.0
STABILITY_CV_PENALTY = 0.5
DIVERSIFICATION_TARGET = 5
IMPROVEMENT_THRESHOLD = 20.0

GRADES: list[tuple[int, str, str]] = [
    (80, "A", "Excellent! You are managing your finances very well."),
    (60, "B", "Good job! There are a few areas you could still improve."),
    (40, "C", "Average. Pay closer attention to how you manage spending."),
    (0, "D", "Needs improvement. Review your spending habits."),
]

IMPROVEMENTS = {
    "savings_rate": "Try to save at least 20% of your income",
    "budget_compliance": "Stay within the budgets you have set",
    "spending_stability": "Keep monthly spending steady",
    "diversification": "Spread spending more evenly across categories",
}


@dataclass(frozen=True)
class SubScore:
    score: float
    label: str
    value: float | None
    unit: str
    max_score: float = MAX_SUB_SCORE


@dataclass(frozen=True)
class HealthScore:
    total_score: int
    grade: str
    feedback: str
    improvements: list[str]
    breakdown: dict[str, SubScore]
    summary: dict[str, Any]


def _clamp(value: float) -> float:
    return min(MAX_SUB_SCORE, max(0.0, value))


def savings_rate_score(income: Decimal, expense: Decimal) -> tuple[float, float | None]:
    if income <= 0:
        return 0.0, None
    rate = float((income - expense) / income * 100)
    return _clamp(rate / SAVINGS_TARGET_PCT * MAX_SUB_SCORE), rate


def budget_compliance_score(
    budgets: Sequence[BudgetLimit],
    month_expenses: Sequence[TransactionRecord],
) -> tuple[float, float | None]:
    if not budgets:
        return MAX_SUB_SCORE, None
    spent: dict[int | None, Decimal] = defaultdict(lambda: Decimal("0"))
    for row in month_expenses:
        spent[row.category_id] += abs(row.amount)
    compliant = sum(1 for budget in budgets if spent[budget.category_id] <= budget.amount)
    ratio = compliant / len(budgets)
    return _clamp(ratio * MAX_SUB_SCORE), ratio * 100


def spending_stability_score(recent_expenses: Sequence[TransactionRecord]) -> tuple[float, float | None]:
    monthly = [float(value) for value in monthly_totals(recent_expenses).values()]
    if len(monthly) < 2:
        return MAX_SUB_SCORE, None
    cv = stats.coefficient_of_variation(monthly)
    return _clamp(MAX_SUB_SCORE - (cv - STABILITY_CV_FLOOR) * STABILITY_CV_PENALTY), cv


def diversification_score(month_expenses: Sequence[TransactionRecord]) -> tuple[float, int]:
    distinct = len({row.category_id for row in month_expenses})
    return _clamp(distinct / DIVERSIFICATION_TARGET * MAX_SUB_SCORE), distinct


def grade_for(total_score: int) -> tuple[str, str]:
    for floor, grade, feedback in GRADES:
        if total_score >= floor:
            return grade, feedback
    return GRADES[-1][1], GRADES[-1][2]


def calculate_health_score(
    month_transactions: Sequence[TransactionRecord],
    budgets: Sequence[BudgetLimit],
    recent_expenses: Sequence[TransactionRecord],
    *,
    income: Decimal | None = None,
) -> Ok[HealthScore]:
    month_expenses = only(month_transactions, TransactionType.expense)
    if income is None:
        income = total(only(month_transactions, TransactionType.income))
    expense = total(month_expenses)

    savings, savings_rate = savings_rate_score(income, expense)
    compliance, compliance_pct = budget_compliance_score(budgets, month_expenses)
    stability, cv = spending_stability_score(recent_expenses)
    diversification, category_count = diversification_score(month_expenses)

    breakdown = {
        "savings_rate": SubScore(score=savings, label="Savings rate", value=savings_rate, unit="percent"),
        "budget_compliance": SubScore(
            score=compliance, label="Budget compliance", value=compliance_pct, unit="percent"
        ),
        "spending_stability": SubScore(
            score=stability,
            label="Spending stability",
            value=stability / MAX_SUB_SCORE * 100,
            unit="percent",
        ),
        "diversification": SubScore(
            score=diversification, label="Diversification", value=float(category_count), unit="categories"
        ),
    }
    total_score = whole(savings + compliance + stability + diversification)
    grade, feedback = grade_for(total_score)
    improvements = [
        IMPROVEMENTS[key] for key, row in breakdown.items() if row.score < IMPROVEMENT_THRESHOLD
    ]
    return Ok(
        HealthScore(
            total_score=total_score,
            grade=grade,
            feedback=feedback,
            improvements=improvements,
            breakdown=breakdown,
            summary={
                "income": income,
                "expense": expense,
                "savings": income - expense,
                "transaction_count": len(month_transactions),
                "coefficient_of_variation": cv,
            },
        )
    )
