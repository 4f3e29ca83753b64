"""
Statistics derived from a user's application list.

summarize() is pure: it takes the already fetched list (newest first) and
never re-sorts or mutates it.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Sequence
import logging

from cv_tracker.schemas.application import Application, ApplicationStatus
from cv_tracker.schemas.statistics import StatsSummary

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
INTERVIEW_STATUSES = (ApplicationStatus.INTERVIEW_SCHEDULED.value, ApplicationStatus.INTERVIEWED.value)


def _status_value(status) -> str:
    return status.value if isinstance(status, ApplicationStatus) else str(status)


def count_by_status(records: Iterable) -> Dict[str, int]:
    """Counts per status, only for statuses that occur, in first-seen order."""
    counts: Dict[str, int] = {}
    for record in records:
        key = _status_value(record.status)
        counts[key] = counts.get(key, 0) + 1
    return counts


def success_rate(offers: int, total: int) -> float:
    """Offer percentage rounded half-up to two decimals; 0 for an empty set."""
    if total <= 0:
        return 0.0
    rate = Decimal(offers) * 100 / Decimal(total)
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def count_by_month(records: Iterable) -> Dict[str, int]:
    """Counts per application month label ("Mar 2024"), in first-seen order."""
    counts: Dict[str, int] = {}
    for record in records:
        label = record.application_date.strftime("%b %Y")
        counts[label] = counts.get(label, 0) + 1
    return counts


def summarize(records: Sequence, recent_limit: int = RECENT_LIMIT) -> StatsSummary:
    """
    Build the dashboard summary for a list of applications.

    Args:
        records: Applications (ORM rows or schemas) in display order, newest first
        recent_limit: How many leading records make up the recent list

    Returns:
        StatsSummary with total, status counts, success rate, interview count,
        monthly counts of the recent records and the recent records themselves

    Example:
        stats = summarize(await service.list_applications(db, identity))
        print(f"{stats.success_rate}% offers out of {stats.total}")
    """
    total = len(records)
    if total == 0:
        return StatsSummary()

    status_counts = count_by_status(records)
    recent = list(records[:recent_limit])

    return StatsSummary(
        total=total,
        status_counts=status_counts,
        success_rate=success_rate(status_counts.get(ApplicationStatus.OFFER_RECEIVED.value, 0), total),
        in_interview=sum(status_counts.get(status, 0) for status in INTERVIEW_STATUSES),
        monthly_counts=count_by_month(recent),
        recent=[Application.model_validate(record) for record in recent],
    )
