"""
Consultation Read Models

Pure derivations over an already-loaded consultation list: page filters,
dashboard counters, the consultant's "mine vs. unassigned" split, earnings and
review statistics, and the weekly schedule helpers.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from student_services.consultation_models import (
    Consultation,
    ConsultationStatus,
    ConsultationType,
)

ALL = "all"


def filter_consultations(
    consultations: Iterable[Consultation],
    type: str = ALL,
    status: str = ALL,
    search: str = "",
) -> List[Consultation]:
    """
    Filter by type, status and a case-insensitive substring of topic or description.

    "all" (or an empty value) disables the type/status filters.
    """
    needle = (search or "").lower()
    selected_type = type or ALL
    selected_status = status or ALL
    results = []
    for consultation in consultations:
        if selected_type != ALL and consultation.type != selected_type:
            continue
        if selected_status != ALL and consultation.status.value != selected_status:
            continue
        if needle and needle not in consultation.topic.lower() and needle not in consultation.description.lower():
            continue
        results.append(consultation)
    return results


def count_by_status(consultations: Iterable[Consultation]) -> Dict[str, int]:
    """Counts for every status (zeros included) plus a `total`."""
    counts = {status.value: 0 for status in ConsultationStatus}
    total = 0
    for consultation in consultations:
        counts[consultation.status.value] += 1
        total += 1
    counts["total"] = total
    return counts


def count_by_type(consultations: Iterable[Consultation]) -> Dict[str, int]:
    counts = {consultation_type.value: 0 for consultation_type in ConsultationType}
    for consultation in consultations:
        counts[consultation.type] = counts.get(consultation.type, 0) + 1
    return counts


def partition_for_consultant(
    consultations: Iterable[Consultation],
    consultant_id: str,
) -> Tuple[List[Consultation], List[Consultation]]:
    """Split into (assigned to this consultant, unassigned pending pool)."""
    mine, unassigned = [], []
    for consultation in consultations:
        if consultation.mentor_id == consultant_id:
            mine.append(consultation)
        elif consultation.is_unassigned:
            unassigned.append(consultation)
    return mine, unassigned


@dataclass
class ConsultantStats:
    """Dashboard/analytics figures for one consultant."""
    total: int
    scheduled: int
    completed: int
    average_rating: float
    rated_count: int
    total_minutes: int
    earnings: float


def consultant_stats(
    consultations: Iterable[Consultation],
    consultant_id: str,
    hourly_rate: Optional[float] = None,
    default_rate: float = 150.0,
) -> ConsultantStats:
    """
    Summarize a consultant's own consultations.

    Earnings count completed sessions only: duration / 60 * rate, where rate
    falls back to `default_rate` when the consultant has none.
    """
    rate = hourly_rate or default_rate
    mine = [c for c in consultations if c.mentor_id == consultant_id]
    completed = [c for c in mine if c.status == ConsultationStatus.COMPLETED]
    rated = [c for c in mine if c.rating]

    average = (
        sum(c.rating or 0 for c in completed) / len(completed)
        if completed else 0.0
    )
    return ConsultantStats(
        total=len(mine),
        scheduled=sum(1 for c in mine if c.status == ConsultationStatus.SCHEDULED),
        completed=len(completed),
        average_rating=round(average, 2),
        rated_count=len(rated),
        total_minutes=sum(c.duration for c in completed),
        earnings=round(sum(c.duration / 60 * rate for c in completed), 2),
    )


@dataclass
class RatingSummary:
    average: float
    total: int
    positive: int
    # star -> (count, percentage), 5 down to 1
    distribution: Dict[int, Tuple[int, float]] = field(default_factory=dict)

    @property
    def positive_percentage(self) -> float:
        return round(self.positive / self.total * 100, 2) if self.total else 0.0


def rating_summary(consultations: Iterable[Consultation]) -> RatingSummary:
    """Review statistics over every rated consultation."""
    ratings = [c.rating for c in consultations if c.rating]
    total = len(ratings)
    distribution = {}
    for star in (5, 4, 3, 2, 1):
        count = ratings.count(star)
        distribution[star] = (count, round(count / total * 100, 2) if total else 0.0)
    return RatingSummary(
        average=round(sum(ratings) / total, 2) if total else 0.0,
        total=total,
        positive=sum(1 for rating in ratings if rating >= 4),
        distribution=distribution,
    )


def sort_reviews(consultations: Iterable[Consultation], sort_by: str = "latest") -> List[Consultation]:
    """Sort rated consultations: latest, oldest, highest or lowest."""
    reviews = [c for c in consultations if c.rating]
    if sort_by == "latest":
        return sorted(reviews, key=lambda c: c.created_at, reverse=True)
    if sort_by == "oldest":
        return sorted(reviews, key=lambda c: c.created_at)
    if sort_by == "highest":
        return sorted(reviews, key=lambda c: c.rating, reverse=True)
    if sort_by == "lowest":
        return sorted(reviews, key=lambda c: c.rating)
    return reviews


def scheduled_for(consultations: Iterable[Consultation], consultant_id: str) -> List[Consultation]:
    return [
        c for c in consultations
        if c.status == ConsultationStatus.SCHEDULED and c.mentor_id == consultant_id
    ]


def consultations_on_day(consultations: Iterable[Consultation], day: date) -> List[Consultation]:
    return [c for c in consultations if c.scheduled_date and c.scheduled_date.date() == day]


def upcoming(
    consultations: Iterable[Consultation],
    now: Optional[datetime] = None,
    limit: int = 3,
) -> List[Consultation]:
    """Scheduled consultations after `now`, soonest first."""
    now = now or datetime.now(timezone.utc)
    future = [
        c for c in consultations
        if c.status == ConsultationStatus.SCHEDULED and c.scheduled_date and c.scheduled_date > now
    ]
    return sorted(future, key=lambda c: c.scheduled_date)[:limit]
