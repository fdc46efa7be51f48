from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import logging
from typing import Any

from app.models.enums import TransactionType
from app.services.ai_gateway import AIServiceError, GeminiClient
from app.services.records import TransactionRecord, only, total
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils.dates import shift_months
from app.utils.decimal_math import money, pct


logger = logging.getLogger("fintrack.analytics")

MIN_ANALYSIS_TRANSACTIONS = 3
MIN_INSIGHT_TRANSACTIONS = 5
TOP_CATEGORIES = 5
ANALYSIS_PERIODS = ("week", "month", "quarter")

ANALYST_PROMPT = "You are a personal finance expert. Answer briefly and practically."

Narrator = Callable[[str], str | None]


@dataclass(frozen=True)
class FinancialSnapshot:
    total_income: Decimal
    total_expense: Decimal
    savings: Decimal
    savings_rate: Decimal
    transaction_count: int
    top_expense_categories: list[tuple[str, Decimal]]

    def as_context(self) -> dict[str, Any]:
        return {
            "total_income": money(self.total_income),
            "total_expense": money(self.total_expense),
            "savings": money(self.savings),
            "savings_rate": self.savings_rate,
            "transaction_count": self.transaction_count,
            "top_categories": [
                {"name": name, "amount": money(amount)} for name, amount in self.top_expense_categories
            ],
        }


@dataclass(frozen=True)
class SmartAnalysis:
    snapshot: FinancialSnapshot
    period: str
    ai_analysis: str | None


@dataclass(frozen=True)
class Insight:
    type: str
    content: str
    title: str | None = None


@dataclass(frozen=True)
class InsightsReport:
    insights: list[Insight]
    source: str
    transaction_count: int


def period_start(period: str, today: date) -> date:
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return shift_months(today, -1)
    return shift_months(today, -3)


def summarize_transactions(transactions: Sequence[TransactionRecord]) -> FinancialSnapshot:
    expenses = only(transactions, TransactionType.expense)
    income = total(only(transactions, TransactionType.income))
    expense = total(expenses)

    by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for row in expenses:
        by_category[row.category_name] += abs(row.amount)
    top = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:TOP_CATEGORIES]

    return FinancialSnapshot(
        total_income=income,
        total_expense=expense,
        savings=income - expense,
        savings_rate=pct((income - expense) / income * 100) if income > 0 else Decimal("0"),
        transaction_count=len(transactions),
        top_expense_categories=top,
    )


def gemini_narrator(client: GeminiClient, *, model: str, max_output_tokens: int = 500) -> Narrator | None:
    """Wrap the client in a prompt -> text callable; None when no key is set."""
    if not client.configured:
        return None

    def narrate(prompt: str) -> str | None:
        try:
            return client.generate_text(
                model=model,
                prompt=prompt,
                system_instruction=ANALYST_PROMPT,
                temperature=0.7,
                max_output_tokens=max_output_tokens,
            )
        except AIServiceError as exc:
            logger.warning("AI narrative unavailable: %s", exc)
            return None

    return narrate


def analysis_prompt(snapshot: FinancialSnapshot) -> str:
    names = ", ".join(name for name, _ in snapshot.top_expense_categories) or "none"
    return (
        "Give a short financial analysis in 3-4 bullet points:\n"
        f"- Income: {money(snapshot.total_income)}\n"
        f"- Expense: {money(snapshot.total_expense)}\n"
        f"- Savings rate: {snapshot.savings_rate}%\n"
        f"- Top spending: {names}\n\n"
        "Comment on the numbers and give 1-2 concrete suggestions."
    )


def insights_prompt(snapshot: FinancialSnapshot) -> str:
    categories = "\n".join(f"- {name}: {money(amount)}" for name, amount in snapshot.top_expense_categories)
    return (
        "Analyse the following financial data and give 3-4 short, useful insights:\n\n"
        f"Total income over 3 months: {money(snapshot.total_income)}\n"
        f"Total expense over 3 months: {money(snapshot.total_expense)}\n"
        f"Savings: {money(snapshot.savings)} ({snapshot.savings_rate}%)\n\n"
        f"Highest spending categories:\n{categories}\n\n"
        f"Transaction count: {snapshot.transaction_count}\n\n"
        "Requirements:\n"
        "- Specific insights, not generic ones\n"
        "- Short and easy to understand\n"
        "- Suggest an improvement where needed\n"
        "- One insight per line"
    )


def smart_analysis(
    transactions: Sequence[TransactionRecord],
    *,
    period: str,
    narrator: Narrator | None = None,
) -> EngineResult[SmartAnalysis]:
    if len(transactions) < MIN_ANALYSIS_TRANSACTIONS:
        return InsufficientData(reason="More data is needed for an analysis")
    snapshot = summarize_transactions(transactions)
    narrative = narrator(analysis_prompt(snapshot)) if narrator else None
    return Ok(SmartAnalysis(snapshot=snapshot, period=period, ai_analysis=narrative))


def rule_based_insights(snapshot: FinancialSnapshot) -> list[Insight]:
    rows: list[Insight] = []
    if snapshot.total_income <= 0:
        rows.append(Insight(type="rule", content="No income recorded in the last 3 months; add income to track savings."))
    elif snapshot.savings < 0:
        rows.append(
            Insight(
                type="rule",
                content=f"You spent {money(-snapshot.savings)} more than you earned over the last 3 months.",
            )
        )
    elif snapshot.savings_rate >= 20:
        rows.append(Insight(type="rule", content=f"Great work: you saved {snapshot.savings_rate}% of your income."))
    else:
        rows.append(
            Insight(
                type="rule",
                content=f"Your savings rate is {snapshot.savings_rate}%; aim for at least 20%.",
            )
        )

    if snapshot.top_expense_categories and snapshot.total_expense > 0:
        name, amount = snapshot.top_expense_categories[0]
        share = pct(amount / snapshot.total_expense * 100)
        rows.append(Insight(type="rule", content=f"{name} is your largest expense at {share}% of spending."))
        if share > 40:
            rows.append(
                Insight(type="rule", content=f"Consider setting a budget for {name} to keep it under control.")
            )
    return rows


def generate_insights(
    transactions: Sequence[TransactionRecord],
    *,
    narrator: Narrator | None = None,
) -> EngineResult[InsightsReport]:
    if len(transactions) < MIN_INSIGHT_TRANSACTIONS:
        return InsufficientData(
            reason="Not enough data yet",
            data={
                "insights": [
                    {
                        "type": "info",
                        "icon": "info",
                        "title": "Not enough data",
                        "content": "Record more transactions to get personalised insights!",
                    }
                ]
            },
        )

    snapshot = summarize_transactions(transactions)
    text = narrator(insights_prompt(snapshot)) if narrator else None
    if text:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return Ok(
            InsightsReport(
                insights=[Insight(type="ai", content=line) for line in lines],
                source="ai",
                transaction_count=len(transactions),
            )
        )
    return Ok(
        InsightsReport(
            insights=rule_based_insights(snapshot),
            source="rule",
            transaction_count=len(transactions),
        )
    )
