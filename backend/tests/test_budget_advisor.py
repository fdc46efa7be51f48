from datetime import date
from decimal import Decimal

from app.models.enums import CategoryKind, Recommendation, SpendingClass, TransactionType
from app.services.budget_advisor import benchmark_for, suggest_budgets
from app.services.records import CategoryRef, TransactionRecord
from app.services.results import InsufficientData, Ok


CATEGORIES = {
    1: CategoryRef(id=1, name="Food", type=TransactionType.expense, kind=CategoryKind.food),
    2: CategoryRef(id=2, name="Health", type=TransactionType.expense, kind=CategoryKind.health),
    3: CategoryRef(id=3, name="Transport", type=TransactionType.expense, kind=CategoryKind.transport),
    4: CategoryRef(id=4, name="Shopping", type=TransactionType.expense, kind=CategoryKind.shopping),
}


def _tx(tx_id: int, category_id: int, amount: str) -> TransactionRecord:
    return TransactionRecord(
        id=tx_id,
        user_id=1,
        category_id=category_id,
        amount=Decimal(amount),
        type=TransactionType.expense,
        date=date(2026, 3, 1),
        category=CATEGORIES[category_id],
    )


def test_zero_income_needs_income_data() -> None:
    result = suggest_budgets([_tx(1, 1, "100")], monthly_income=Decimal("0"))

    assert isinstance(result, InsufficientData)
    assert result.data == {"suggestions": []}


def test_spend_exactly_at_benchmark_max_is_not_priority_one() -> None:
    # 6000 over three months is 2000 a month, exactly 20% of income
    expenses = [_tx(1, 1, "3000"), _tx(2, 1, "3000")]

    result = suggest_budgets(expenses, monthly_income=Decimal("10000"), window_months=3)

    assert isinstance(result, Ok)
    [row] = result.data.suggestions
    assert row.percent_of_income == Decimal("20.0")
    assert row.recommendation == Recommendation.reduce
    assert row.priority == 2
    assert row.suggested_budget == Decimal("1500.00")


def test_mixed_categories_are_ranked_and_summarised() -> None:
    expenses = [
        _tx(1, 1, "6300"),
        _tx(2, 2, "100"),
        _tx(3, 3, "1200"),
        _tx(4, 3, "1200"),
        _tx(5, 4, "900"),
    ]

    result = suggest_budgets(expenses, monthly_income=Decimal("10000"), window_months=3)

    assert isinstance(result, Ok)
    advice = result.data
    assert [row.category_name for row in advice.suggestions] == ["Food", "Health", "Transport"]

    food, health, transport = advice.suggestions
    assert (food.recommendation, food.priority) == (Recommendation.reduce, 1)
    assert food.potential_monthly_savings == Decimal("600.00")
    assert (health.recommendation, health.priority) == (Recommendation.increase, 2)
    assert health.suggested_budget == Decimal("500.00")
    assert health.potential_monthly_savings == Decimal("0.00")
    assert (transport.recommendation, transport.priority) == (Recommendation.maintain, 3)
    assert transport.suggested_budget == Decimal("800.00")

    summary = advice.summary
    assert summary["budget_rule"] == "50/30/20"
    assert summary["essentials"] == Decimal("5000.00")
    assert summary["wants"] == Decimal("3000.00")
    assert summary["savings"] == Decimal("2000.00")
    assert summary["total_suggested_budget"] == Decimal("2800.00")
    assert summary["potential_monthly_savings"] == Decimal("600.00")
    assert summary["needs_adjustment"] == 2


def test_underspent_wants_are_not_increased() -> None:
    result = suggest_budgets([_tx(1, 4, "30")], monthly_income=Decimal("10000"))

    assert isinstance(result, Ok)
    assert result.data.suggestions == []


def test_unknown_kind_falls_back_to_default_benchmark() -> None:
    benchmark = benchmark_for(CategoryKind.salary)

    assert benchmark.spending_class == SpendingClass.want
    assert benchmark.max_pct == Decimal("10")


def test_suggestions_are_capped() -> None:
    expenses = [
        TransactionRecord(
            id=i,
            user_id=1,
            category_id=100 + i,
            amount=Decimal("9000"),
            type=TransactionType.expense,
            date=date(2026, 3, 1),
        )
        for i in range(12)
    ]

    result = suggest_budgets(expenses, monthly_income=Decimal("10000"), limit=8)

    assert isinstance(result, Ok)
    assert len(result.data.suggestions) == 8
    assert all(row.priority == 1 for row in result.data.suggestions)
