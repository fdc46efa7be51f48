import enum


class TransactionType(str, enum.Enum):
    income = "income"
    expense = "expense"


class CategoryKind(str, enum.Enum):
    housing = "housing"
    food = "food"
    transport = "transport"
    bills = "bills"
    health = "health"
    education = "education"
    shopping = "shopping"
    entertainment = "entertainment"
    salary = "salary"
    other = "other"


class SpendingClass(str, enum.Enum):
    essential = "essential"
    want = "want"


class Severity(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Recommendation(str, enum.Enum):
    reduce = "reduce"
    increase = "increase"
    maintain = "maintain"


class TrendDirection(str, enum.Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"
