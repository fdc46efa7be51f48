from app.models.budget import Budget
from app.models.category import Category
from app.models.enums import (
    CategoryKind,
    Recommendation,
    Severity,
    SpendingClass,
    TransactionType,
    TrendDirection,
)
from app.models.transaction import Transaction
from app.models.user import User

__all__ = [
    "Budget",
    "Category",
    "CategoryKind",
    "Recommendation",
    "Severity",
    "SpendingClass",
    "TransactionType",
    "TrendDirection",
    "Transaction",
    "User",
]
