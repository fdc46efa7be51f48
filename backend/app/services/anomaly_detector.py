from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from app.models.enums import Severity, TransactionType
from app.services.records import TransactionRecord, only
from app.services.results import EngineResult, InsufficientData, Ok
from app.utils import stats


MIN_TRANSACTIONS = 5
MIN_COHORT_SIZE = 3
MAX_FINDINGS = 10

HIGH_THRESHOLD = 3.0
MEDIUM_THRESHOLD = 2.5
LOW_THRESHOLD = 2.0

SEVERITY_ORDER = {Severity.high: 0, Severity.medium: 1, Severity.low: 2}


@dataclass(frozen=True)
class AnomalyFinding:
    transaction: TransactionRecord
    anomaly_type: str
    severity: Severity
    z_score: float
    cohort_mean: float
    cohort_std_dev: float
    description: str


@dataclass(frozen=True)
class AnomalyReport:
    anomalies: list[AnomalyFinding]
    statistics: dict[str, Any]


def classify(z: float) -> Severity | None:
    """Map a z-score onto a severity; every threshold is a strict inequality."""
    magnitude = abs(z)
    if magnitude > HIGH_THRESHOLD:
        return Severity.high
    if magnitude > MEDIUM_THRESHOLD:
        return Severity.medium
    if magnitude > LOW_THRESHOLD:
        return Severity.low
    return None


def _describe_expense(amount: float, cohort_mean: float) -> str:
    if cohort_mean == 0:
        return "Transaction amount is unusual compared with your average"
    delta_pct = (amount - cohort_mean) / cohort_mean * 100
    direction = "above" if delta_pct >= 0 else "below"
    return f"Transaction is {abs(delta_pct):.0f}% {direction} your average ({cohort_mean:,.0f})"


def _scan_cohort(rows: list[TransactionRecord], tx_type: TransactionType) -> list[AnomalyFinding]:
    amounts = [float(abs(row.amount)) for row in rows]
    cohort_mean = stats.mean(amounts)
    cohort_std = stats.std_dev(amounts, cohort_mean)

    findings: list[AnomalyFinding] = []
    for row, amount in zip(rows, amounts):
        z = stats.z_score(amount, cohort_mean, cohort_std)
        severity = classify(z)
        if severity is None:
            continue
        if tx_type == TransactionType.expense:
            anomaly_type = "unusual_amount"
            description = _describe_expense(amount, cohort_mean)
        elif z > 0:
            anomaly_type = "unusual_high_income"
            description = "Income is unusually high"
        else:
            anomaly_type = "unusual_low_income"
            description = "Income is significantly lower than average"
        findings.append(
            AnomalyFinding(
                transaction=row,
                anomaly_type=anomaly_type,
                severity=severity,
                z_score=round(z, 2),
                cohort_mean=cohort_mean,
                cohort_std_dev=cohort_std,
                description=description,
            )
        )
    return findings


def detect_anomalies(
    transactions: Sequence[TransactionRecord],
    *,
    limit: int = MAX_FINDINGS,
) -> EngineResult[AnomalyReport]:
    """Flag transactions whose amount deviates from their income/expense cohort."""
    if len(transactions) < MIN_TRANSACTIONS:
        return InsufficientData(
            reason=f"At least {MIN_TRANSACTIONS} transactions are needed for anomaly analysis",
            data={"anomalies": []},
        )

    findings: list[AnomalyFinding] = []
    for tx_type in (TransactionType.expense, TransactionType.income):
        cohort = only(transactions, tx_type)
        if len(cohort) < MIN_COHORT_SIZE:
            continue
        findings.extend(_scan_cohort(cohort, tx_type))

    ranked = sorted(
        findings,
        key=lambda row: (SEVERITY_ORDER[row.severity], -row.transaction.date.toordinal()),
    )
    statistics = {
        "total_transactions": len(transactions),
        "anomaly_count": len(ranked),
        "high_severity": sum(1 for row in ranked if row.severity == Severity.high),
        "medium_severity": sum(1 for row in ranked if row.severity == Severity.medium),
        "low_severity": sum(1 for row in ranked if row.severity == Severity.low),
    }
    return Ok(AnomalyReport(anomalies=ranked[:limit], statistics=statistics))
