"""
Unit tests for the read-side aggregation service.
"""

import pytest

from detailer.exceptions import NotFoundError
from detailer.models import Database, Doctor, Presentation, Session, Slide, SlideAnalytic
from detailer.services.analytics import AnalyticsService


def _session(session_id, doctor_id="doctor-1", presentation_id="deck-a", end=None, total=None):
    return Session(
        id=session_id,
        doctor_id=doctor_id,
        presentation_id=presentation_id,
        start_time="2025-03-01T09:00:00+00:00",
        end_time=end,
        total_time=total,
        avg_engagement=None if end is None else 80,
    )


def _analytic(analytic_id, session_id, slide_id, time_spent):
    return SlideAnalytic(
        id=analytic_id, session_id=session_id, slide_id=slide_id, time_spent=time_spent
    )


@pytest.fixture
def db() -> Database:
    return Database(
        doctors=[
            Doctor(id="doctor-1", name="Dr. Sarah Smith", specialty="Cardiology"),
            Doctor(id="doctor-2", name="Dr. Michael Johnson", specialty="Endocrinology",
                   status="inactive"),
        ],
        presentations=[
            Presentation(id="deck-a", title="Deck A", slides=3),
            Presentation(id="deck-b", title="Deck B", slides=1),
        ],
        slides=[
            Slide(id="a-2", presentation_id="deck-a", title="Outcomes", order=2),
            Slide(id="a-0", presentation_id="deck-a", title="Overview", order=0),
            Slide(id="a-1", presentation_id="deck-a", title="Dosage", order=1),
            Slide(id="b-0", presentation_id="deck-b", title="Intro", order=0),
        ],
        sessions=[
            _session("s1", end="2025-03-01T09:10:00+00:00", total=600),
            _session("s2", doctor_id="doctor-2", end="2025-03-02T10:00:00+00:00", total=60),
            _session("s3", presentation_id="deck-b", end="2025-03-01T12:00:00+00:00", total=30),
            _session("s4"),  # still open
            _session("s5", doctor_id="doctor-404", end="2025-03-03T08:00:00+00:00", total=10),
        ],
        slide_analytics=[
            _analytic("x1", "s1", "a-0", 30000),
            _analytic("x2", "s1", "a-1", 10000),
            _analytic("x3", "s1", "a-0", 2000),
            _analytic("x4", "s2", "a-0", 6000),
            _analytic("x5", "s3", "b-0", 20000),
            _analytic("x6", "s1", "gone", 99000),
        ],
    )


class TestRecentSessions:
    def test_only_completed_newest_first(self, db):
        rows = AnalyticsService.recent_sessions(db, limit=10)
        assert [r.session.id for r in rows] == ["s2", "s3", "s1"]
        assert all(r.session.end_time for r in rows)

    def test_drops_rows_without_doctor(self, db):
        rows = AnalyticsService.recent_sessions(db, limit=10)
        assert "s5" not in [r.session.id for r in rows]

    def test_joins_and_counts_distinct_slides(self, db):
        s1 = AnalyticsService.recent_sessions(db, limit=10)[-1]
        assert s1.doctor.name == "Dr. Sarah Smith"
        assert s1.presentation.title == "Deck A"
        assert s1.slides == 3  # a-0 (twice), a-1, gone
        assert s1.duration == 600

    def test_limit(self, db):
        assert [r.session.id for r in AnalyticsService.recent_sessions(db, limit=2)] == ["s2", "s3"]
        assert AnalyticsService.recent_sessions(db, limit=0) == []

    def test_filters(self, db):
        by_doctor = AnalyticsService.recent_sessions(db, limit=10, doctor_id="doctor-1")
        assert [r.session.id for r in by_doctor] == ["s3", "s1"]
        by_deck = AnalyticsService.recent_sessions(db, limit=10, presentation_id="deck-b")
        assert [r.session.id for r in by_deck] == ["s3"]


class TestTopSlides:
    def test_ranked_by_average_time(self, db):
        stats = AnalyticsService.top_slides(db, limit=10)
        assert [s.slide.id for s in stats] == ["b-0", "a-0", "a-1"]

        a0 = stats[1]
        assert a0.views == 3
        assert a0.total_time_spent == 38000
        assert a0.avg_time_spent == pytest.approx(38000 / 3)

    def test_unknown_slides_are_dropped(self, db):
        assert "gone" not in [s.slide.id for s in AnalyticsService.top_slides(db, limit=10)]

    def test_limit(self, db):
        assert len(AnalyticsService.top_slides(db, limit=2)) == 2

    def test_idempotent_and_stable_on_ties(self, db):
        db.slide_analytics = [
            _analytic("t1", "s1", "a-1", 5000),
            _analytic("t2", "s1", "a-0", 5000),
            _analytic("t3", "s1", "a-2", 5000),
        ]
        first = AnalyticsService.top_slides(db, limit=5)
        second = AnalyticsService.top_slides(db, limit=5)
        assert first == second
        assert [s.slide.id for s in first] == ["a-1", "a-0", "a-2"]

    def test_no_analytics(self):
        assert AnalyticsService.top_slides(Database(), limit=5) == []


class TestSlideAnalyticsForPresentation:
    def test_includes_unviewed_slides(self, db):
        stats = AnalyticsService.slide_analytics_for_presentation(db, "deck-a")
        by_id = {s.slide.id: s for s in stats}
        assert set(by_id) == {"a-0", "a-1", "a-2"}
        assert by_id["a-2"].views == 0
        assert by_id["a-2"].total_time_spent == 0
        assert by_id["a-2"].avg_time_spent == 0

    def test_sorted_by_total_time(self, db):
        stats = AnalyticsService.slide_analytics_for_presentation(db, "deck-a")
        assert [s.slide.id for s in stats] == ["a-0", "a-1", "a-2"]
        assert stats[0].total_time_spent == 38000

    def test_ignores_other_presentations_sessions(self, db):
        db.slide_analytics.append(_analytic("x7", "s3", "a-1", 50000))
        stats = AnalyticsService.slide_analytics_for_presentation(db, "deck-a")
        assert {s.slide.id: s.total_time_spent for s in stats}["a-1"] == 10000

    def test_unknown_presentation(self, db):
        with pytest.raises(NotFoundError):
            AnalyticsService.slide_analytics_for_presentation(db, "deck-404")


class TestSummary:
    def test_headline_figures(self, db):
        summary = AnalyticsService.summary(db)
        assert summary["totalSessions"] == 4
        assert summary["activeDoctors"] == 1
        assert summary["totalTimeSpent"] == 167
        assert summary["avgSessionTime"] == "02:55"

    def test_empty_store(self):
        summary = AnalyticsService.summary(Database())
        assert summary == {
            "totalSessions": 0,
            "activeDoctors": 0,
            "totalTimeSpent": 0,
            "avgSessionTime": "00:00",
        }
