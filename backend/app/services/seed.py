from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.budget import Budget
from app.models.category import Category
from app.models.enums import CategoryKind, TransactionType
from app.models.transaction import Transaction
from app.models.user import User
from app.utils.dates import shift_months
from app.utils.decimal_math import money

DEMO_USER_EMAIL = "demo@fintrack.app"
HISTORY_MONTHS = 4

# (name, type, kind, icon, color)
DEFAULT_CATEGORIES: list[tuple[str, TransactionType, CategoryKind, str, str]] = [
    ("Salary", TransactionType.income, CategoryKind.salary, "💼", "#10b981"),
    ("Freelance", TransactionType.income, CategoryKind.salary, "💻", "#14b8a6"),
    ("Housing", TransactionType.expense, CategoryKind.housing, "🏠", "#6366f1"),
    ("Food", TransactionType.expense, CategoryKind.food, "🍜", "#f97316"),
    ("Transport", TransactionType.expense, CategoryKind.transport, "🚗", "#0ea5e9"),
    ("Bills", TransactionType.expense, CategoryKind.bills, "💡", "#eab308"),
    ("Health", TransactionType.expense, CategoryKind.health, "💊", "#ef4444"),
    ("Education", TransactionType.expense, CategoryKind.education, "📚", "#8b5cf6"),
    ("Shopping", TransactionType.expense, CategoryKind.shopping, "🛍️", "#ec4899"),
    ("Entertainment", TransactionType.expense, CategoryKind.entertainment, "🎬", "#a855f7"),
    ("Other", TransactionType.expense, CategoryKind.other, "📦", "#64748b"),
]

# (category, day of month, amount) repeated every month of history
MONTHLY_PATTERN: list[tuple[str, int, str]] = [
    ("Salary", 1, "15000000"),
    ("Housing", 3, "4500000"),
    ("Bills", 5, "850000"),
    ("Food", 2, "120000"),
    ("Food", 9, "185000"),
    ("Food", 16, "95000"),
    ("Food", 23, "210000"),
    ("Transport", 6, "300000"),
    ("Transport", 20, "250000"),
    ("Shopping", 12, "650000"),
    ("Entertainment", 14, "400000"),
    ("Health", 18, "220000"),
]

DEMO_BUDGETS: dict[str, str] = {
    "Food": "2500000",
    "Transport": "1200000",
    "Shopping": "800000",
    "Entertainment": "500000",
}


def _get_or_create_user(db: Session, *, email: str, full_name: str) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user

    user = User(email=email, full_name=full_name, is_active=True)
    db.add(user)
    db.flush()
    return user


def ensure_default_categories(db: Session) -> dict[str, Category]:
    existing = {
        row.name: row for row in db.scalars(select(Category).where(Category.user_id.is_(None))).all()
    }
    for name, tx_type, kind, icon, color in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        category = Category(user_id=None, name=name, type=tx_type, kind=kind, icon=icon, color=color)
        db.add(category)
        existing[name] = category
    db.flush()
    return existing


def _seed_history(db: Session, *, user: User, categories: dict[str, Category], today: date) -> None:
    for offset in range(HISTORY_MONTHS - 1, -1, -1):
        anchor = shift_months(today.replace(day=1), -offset)
        for name, day, amount in MONTHLY_PATTERN:
            tx_date = anchor.replace(day=day)
            if tx_date > today:
                continue
            category = categories[name]
            # small month-to-month drift so the trend engines have something to fit
            drift = Decimal(HISTORY_MONTHS - offset) * Decimal("0.02")
            value = Decimal(amount)
            if category.type == TransactionType.expense:
                value = value * (Decimal("1") + drift)
            db.add(
                Transaction(
                    user_id=user.id,
                    category_id=category.id,
                    amount=money(value),
                    type=category.type,
                    transaction_date=tx_date,
                    description=f"{name} {tx_date.isoformat()}",
                )
            )


def _seed_budgets(db: Session, *, user: User, categories: dict[str, Category], today: date) -> None:
    for name, amount in DEMO_BUDGETS.items():
        exists = db.scalar(
            select(Budget.id).where(
                Budget.user_id == user.id,
                Budget.category_id == categories[name].id,
                Budget.month == today.month,
                Budget.year == today.year,
            )
        )
        if exists is None:
            db.add(
                Budget(
                    user_id=user.id,
                    category_id=categories[name].id,
                    amount=money(amount),
                    month=today.month,
                    year=today.year,
                )
            )


def seed_demo_data(db: Session, *, today: date | None = None) -> User:
    today = today or date.today()
    categories = ensure_default_categories(db)
    user = _get_or_create_user(db, email=DEMO_USER_EMAIL, full_name="Demo User")

    has_history = db.scalar(select(func.count(Transaction.id)).where(Transaction.user_id == user.id))
    if not has_history:
        _seed_history(db, user=user, categories=categories, today=today)
    _seed_budgets(db, user=user, categories=categories, today=today)
    db.commit()
    return user
