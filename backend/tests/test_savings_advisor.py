from datetime import date
from decimal import Decimal

from app.models.enums import CategoryKind, TransactionType
from app.services.records import CategoryRef, TransactionRecord
from app.services.results import InsufficientData, Ok
from app.services.savings_advisor import recommend_savings, saving_tip


CATEGORIES = {
    1: CategoryRef(id=1, name="Housing", type=TransactionType.expense, kind=CategoryKind.housing),
    2: CategoryRef(id=2, name="Food", type=TransactionType.expense, kind=CategoryKind.food),
    3: CategoryRef(id=3, name="Transport", type=TransactionType.expense, kind=CategoryKind.transport),
    4: CategoryRef(id=4, name="Other", type=TransactionType.expense, kind=CategoryKind.other),
}


def _tx(tx_id: int, category_id: int, amount: str) -> TransactionRecord:
    return TransactionRecord(
        id=tx_id,
        user_id=1,
        category_id=category_id,
        amount=Decimal(amount),
        type=TransactionType.expense,
        date=date(2026, 2, tx_id),
        category=CATEGORIES[category_id],
    )


def test_fewer_than_five_expenses_is_insufficient() -> None:
    result = recommend_savings([_tx(i, 2, "100") for i in range(1, 5)])

    assert isinstance(result, InsufficientData)
    assert result.data == {"recommendations": []}


def test_dominant_categories_get_tiered_reductions() -> None:
    expenses = [
        _tx(1, 1, "2000"),
        _tx(2, 1, "2000"),
        _tx(3, 1, "2000"),
        _tx(4, 2, "2000"),
        _tx(5, 3, "1100"),
        _tx(6, 4, "900"),
    ]

    result = recommend_savings(expenses, window_months=3)

    assert isinstance(result, Ok)
    housing, food = result.data.recommendations
    assert housing.category_name == "Housing"
    assert (housing.suggested_reduction, housing.priority) == (20, 1)
    assert housing.percent_of_total == Decimal("60.0")
    assert housing.potential_monthly_savings == Decimal("400.00")
    assert housing.potential_yearly_savings == Decimal("4800.00")

    # exactly 20% of spend falls into the lowest tier
    assert food.category_name == "Food"
    assert (food.suggested_reduction, food.priority) == (10, 3)
    assert food.potential_yearly_savings == Decimal("800.00")
    assert food.tip == saving_tip(CategoryKind.food, 10)

    assert result.data.summary == {
        "total_monthly_expense": Decimal("3333.33"),
        "total_potential_yearly_savings": Decimal("5600.00"),
        "recommendation_count": 2,
    }


def test_even_spread_has_no_recommendations() -> None:
    expenses = [
        TransactionRecord(
            id=i,
            user_id=1,
            category_id=100 + i,
            amount=Decimal("100"),
            type=TransactionType.expense,
            date=date(2026, 2, 1),
        )
        for i in range(8)
    ]

    result = recommend_savings(expenses)

    assert isinstance(result, Ok)
    assert result.data.recommendations == []
    assert result.data.summary["recommendation_count"] == 0


def test_unknown_kind_gets_generic_tip() -> None:
    assert saving_tip(CategoryKind.housing, 20) == "Try to cut spending in this category by 20%"
