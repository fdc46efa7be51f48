"""Read helpers that turn ORM rows into the immutable records the engines use."""
from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.models.budget import Budget
from app.models.category import Category
from app.models.enums import TransactionType
from app.models.transaction import Transaction
from app.services.records import BudgetLimit, CategoryRef, TransactionRecord


def category_ref(category: Category | None) -> CategoryRef | None:
    if category is None:
        return None
    return CategoryRef(
        id=category.id,
        name=category.name,
        type=category.type,
        kind=category.kind,
        icon=category.icon,
        color=category.color,
    )


def to_record(row: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        user_id=row.user_id,
        category_id=row.category_id,
        amount=row.amount,
        type=row.type,
        date=row.transaction_date,
        description=row.description,
        category=category_ref(row.category),
    )


def fetch_transactions(
    db: Session,
    user_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
    tx_type: TransactionType | None = None,
) -> list[TransactionRecord]:
    """Transactions for one user, newest first; both date bounds are inclusive."""
    query = (
        select(Transaction)
        .options(joinedload(Transaction.category))
        .where(Transaction.user_id == user_id)
    )
    if start is not None:
        query = query.where(Transaction.transaction_date >= start)
    if end is not None:
        query = query.where(Transaction.transaction_date <= end)
    if tx_type is not None:
        query = query.where(Transaction.type == tx_type)
    query = query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    return [to_record(row) for row in db.scalars(query).unique().all()]


def fetch_budgets(db: Session, user_id: int, *, year: int, month: int) -> list[BudgetLimit]:
    rows = db.scalars(
        select(Budget)
        .options(joinedload(Budget.category))
        .where(Budget.user_id == user_id, Budget.year == year, Budget.month == month)
        .order_by(Budget.id)
    ).unique().all()
    return [
        BudgetLimit(
            category_id=row.category_id,
            amount=row.amount,
            category_name=row.category.name if row.category else None,
        )
        for row in rows
    ]
