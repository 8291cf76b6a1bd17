"""
Unit Tests for Consultation Read Models

Tests filters, counters, consultant statistics, review summaries and schedule
helpers.
"""

import pytest
import sys
import os
from datetime import date, datetime, timedelta, timezone

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "student_services", "src"))

from student_services.consultation_models import Consultation, ConsultationStatus
from student_services.consultation_read_models import (
    consultant_stats,
    consultations_on_day,
    count_by_status,
    count_by_type,
    filter_consultations,
    partition_for_consultant,
    rating_summary,
    scheduled_for,
    sort_reviews,
    upcoming,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make(cid, status="pending", mentor=None, type="technical", topic="Topic", description="",
         duration=60, rating=None, scheduled=None, created=None):
    return Consultation(
        id=cid,
        student_id="s1",
        topic=topic,
        description=description,
        type=type,
        status=ConsultationStatus(status),
        mentor_id=mentor,
        duration=duration,
        rating=rating,
        scheduled_date=scheduled,
        created_at=created or NOW,
    )


@pytest.fixture
def consultations():
    return [
        make("c1", topic="Python decorators", type="technical"),
        make("c2", status="scheduled", mentor="m1", type="career", topic="CV review",
             scheduled=NOW + timedelta(days=1)),
        make("c3", status="completed", mentor="m1", type="academic", description="Thesis structure",
             duration=90, rating=5, created=NOW - timedelta(days=3)),
        make("c4", status="completed", mentor="m1", duration=30, rating=3, created=NOW - timedelta(days=1)),
        make("c5", status="cancelled", mentor="m2"),
        make("c6", status="scheduled", mentor="m1", scheduled=NOW - timedelta(hours=2)),
    ]


class TestFilters:
    """Test suite for list filtering and counting."""

    def test_all_returns_everything(self, consultations):
        assert len(filter_consultations(consultations)) == 6

    def test_filter_by_type_and_status(self, consultations):
        result = filter_consultations(consultations, type="technical", status="completed")
        assert [c.id for c in result] == ["c4"]

    def test_search_matches_topic_or_description(self, consultations):
        assert [c.id for c in filter_consultations(consultations, search="PYTHON")] == ["c1"]
        assert [c.id for c in filter_consultations(consultations, search="thesis")] == ["c3"]

    def test_count_by_status_includes_zero_and_total(self, consultations):
        counts = count_by_status(consultations)

        assert counts == {"pending": 1, "scheduled": 2, "completed": 2, "cancelled": 1, "total": 6}
        assert count_by_status([])["pending"] == 0

    def test_count_by_type(self, consultations):
        counts = count_by_type(consultations)

        assert counts["technical"] == 4
        assert counts["project"] == 0

    def test_partition_for_consultant(self, consultations):
        mine, unassigned = partition_for_consultant(consultations, "m1")

        assert [c.id for c in mine] == ["c2", "c3", "c4", "c6"]
        assert [c.id for c in unassigned] == ["c1"]


class TestConsultantStats:
    """Test suite for consultant earnings and ratings."""

    def test_stats(self, consultations):
        stats = consultant_stats(consultations, "m1", hourly_rate=200.0)

        assert stats.total == 4
        assert stats.scheduled == 2
        assert stats.completed == 2
        assert stats.average_rating == 4.0
        assert stats.rated_count == 2
        assert stats.total_minutes == 120
        # 90 min + 30 min at 200/h
        assert stats.earnings == 400.0

    def test_default_rate(self, consultations):
        stats = consultant_stats(consultations, "m1", hourly_rate=None, default_rate=150.0)
        assert stats.earnings == 300.0

    def test_no_consultations(self):
        stats = consultant_stats([], "m1")

        assert stats.total == 0
        assert stats.average_rating == 0.0
        assert stats.earnings == 0.0


class TestReviews:
    """Test suite for review summaries and sorting."""

    def test_rating_summary(self, consultations):
        summary = rating_summary(consultations)

        assert summary.total == 2
        assert summary.average == 4.0
        assert summary.positive == 1
        assert summary.positive_percentage == 50.0
        assert summary.distribution[5] == (1, 50.0)
        assert summary.distribution[1] == (0, 0.0)

    def test_empty_summary(self):
        summary = rating_summary([])

        assert summary.average == 0.0
        assert summary.positive_percentage == 0.0

    def test_sort_reviews(self, consultations):
        assert [c.id for c in sort_reviews(consultations, "latest")] == ["c4", "c3"]
        assert [c.id for c in sort_reviews(consultations, "oldest")] == ["c3", "c4"]
        assert [c.id for c in sort_reviews(consultations, "highest")] == ["c3", "c4"]
        assert [c.id for c in sort_reviews(consultations, "lowest")] == ["c4", "c3"]


class TestSchedule:
    """Test suite for schedule helpers."""

    def test_scheduled_for(self, consultations):
        assert [c.id for c in scheduled_for(consultations, "m1")] == ["c2", "c6"]

    def test_consultations_on_day(self, consultations):
        assert [c.id for c in consultations_on_day(consultations, date(2025, 3, 11))] == ["c2"]

    def test_upcoming_excludes_past(self, consultations):
        assert [c.id for c in upcoming(consultations, now=NOW)] == ["c2"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
