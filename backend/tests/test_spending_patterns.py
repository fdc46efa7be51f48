from datetime import date
from decimal import Decimal

from app.models.enums import TransactionType
from app.services.records import CategoryRef, TransactionRecord
from app.services.results import InsufficientData, Ok
from app.services.spending_patterns import (
    day_of_week,
    detect_spending_patterns,
    month_position,
    week_of_month,
)


FOOD = CategoryRef(id=1, name="Food", type=TransactionType.expense)
FUN = CategoryRef(id=2, name="Entertainment", type=TransactionType.expense)


def _tx(tx_id: int, day: date, amount: str = "100", category: CategoryRef = FOOD) -> TransactionRecord:
    return TransactionRecord(
        id=tx_id,
        user_id=1,
        category_id=category.id,
        amount=Decimal(amount),
        type=TransactionType.expense,
        date=day,
        category=category,
    )


def test_calendar_helpers() -> None:
    assert day_of_week(date(2026, 3, 1)) == 0
    assert day_of_week(date(2026, 3, 7)) == 6
    assert week_of_month(date(2026, 3, 7)) == 0
    assert week_of_month(date(2026, 3, 8)) == 1
    assert week_of_month(date(2026, 3, 29)) == 4
    assert [month_position(index) for index in range(5)] == ["early", "mid", "mid", "late", "late"]


def test_fewer_than_ten_expenses_is_insufficient() -> None:
    result = detect_spending_patterns([_tx(i, date(2026, 3, 2)) for i in range(9)])

    assert isinstance(result, InsufficientData)
    assert result.data == {"patterns": []}


def test_monday_heavy_spending_is_detected() -> None:
    expenses = [_tx(i, date(2026, 3, 2)) for i in range(8)]
    expenses += [_tx(20, date(2026, 3, 18), "50", FUN), _tx(21, date(2026, 3, 18), "50", FUN)]

    result = detect_spending_patterns(expenses)

    assert isinstance(result, Ok)
    patterns = result.data
    assert patterns.peak_day == "Monday"
    assert patterns.peak_day_avg_amount == 100
    assert patterns.peak_week_position == "early"
    assert [bucket.name for bucket in patterns.top_categories] == ["Food", "Entertainment"]
    assert patterns.top_categories[1].avg_per_transaction == 50
    assert patterns.by_week_of_month == [Decimal("800"), Decimal("0"), Decimal("100"), Decimal("0"), Decimal("0")]
    assert patterns.insights[0] == "You spend the most on Monday"
    assert "Food makes up the largest share of your spending" in patterns.insights


def test_ties_resolve_to_the_earliest_day() -> None:
    expenses = [_tx(i, date(2026, 3, 1)) for i in range(5)]
    expenses += [_tx(10 + i, date(2026, 3, 2)) for i in range(5)]

    result = detect_spending_patterns(expenses)

    assert isinstance(result, Ok)
    assert result.data.peak_day == "Sunday"


def test_detection_is_repeatable() -> None:
    expenses = [_tx(i, date(2026, 3, 1 + i * 2), str(40 + i)) for i in range(12)]

    assert detect_spending_patterns(expenses) == detect_spending_patterns(expenses)
