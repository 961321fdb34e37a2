import logging
from datetime import datetime

from detailer.exceptions import NotFoundError
from detailer.models import Database, RecentSession, SlideStats
from detailer.services.formatting import format_time

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Read-side aggregation over a snapshot of the document store.

    Every method is a pure function of the ``Database`` it is handed; calling
    it twice on unchanged input gives the same result in the same order.
    """

    @staticmethod
    def recent_sessions(
        db: Database,
        limit: int = 5,
        doctor_id: str | None = None,
        presentation_id: str | None = None,
    ) -> list[RecentSession]:
        """Completed sessions, newest ``endTime`` first, joined with doctor and presentation."""
        doctors = {d.id: d for d in db.doctors}
        presentations = {p.id: p for p in db.presentations}

        completed = [s for s in db.sessions if s.end_time]
        if doctor_id is not None:
            completed = [s for s in completed if s.doctor_id == doctor_id]
        if presentation_id is not None:
            completed = [s for s in completed if s.presentation_id == presentation_id]
        completed.sort(key=lambda s: datetime.fromisoformat(s.end_time), reverse=True)

        slides_visited: dict[str, set[str]] = {}
        for analytic in db.slide_analytics:
            slides_visited.setdefault(analytic.session_id, set()).add(analytic.slide_id)

        rows: list[RecentSession] = []
        for session in completed:
            if len(rows) >= limit:
                break
            doctor = doctors.get(session.doctor_id)
            presentation = presentations.get(session.presentation_id)
            if doctor is None or presentation is None:
                logger.warning("Missing doctor or presentation for session %s", session.id)
                continue
            rows.append(RecentSession(
                session=session,
                doctor=doctor,
                presentation=presentation,
                slides=len(slides_visited.get(session.id, ())),
                duration=session.total_time or 0,
            ))
        return rows

    @staticmethod
    def top_slides(db: Database, limit: int = 5) -> list[SlideStats]:
        """Slides ranked by average time per view across every recorded session.

        A slide seen once for a long time outranks one seen often; views are
        reported alongside so callers can judge that themselves.
        """
        totals: dict[str, list[float]] = {}  # slide id -> [time spent, views]
        for analytic in db.slide_analytics:
            entry = totals.setdefault(analytic.slide_id, [0.0, 0])
            entry[0] += analytic.time_spent
            entry[1] += 1

        slides = {s.id: s for s in db.slides}
        stats: list[SlideStats] = []
        for slide_id, (time_spent, views) in totals.items():
            slide = slides.get(slide_id)
            if slide is None:
                logger.warning("Slide not found for ID: %s", slide_id)
                continue
            stats.append(SlideStats(
                slide=slide,
                total_time_spent=time_spent,
                avg_time_spent=time_spent / views,
                views=views,
            ))

        stats.sort(key=lambda s: s.avg_time_spent, reverse=True)
        return stats[:limit]

    @staticmethod
    def slide_analytics_for_presentation(db: Database, presentation_id: str) -> list[SlideStats]:
        """Per-slide totals for one deck, every slide included, most-watched first."""
        if not any(p.id == presentation_id for p in db.presentations):
            raise NotFoundError("presentation", presentation_id)

        slides = sorted(
            (s for s in db.slides if s.presentation_id == presentation_id),
            key=lambda s: s.order,
        )
        session_ids = {s.id for s in db.sessions if s.presentation_id == presentation_id}
        totals = {s.id: [0.0, 0] for s in slides}

        for analytic in db.slide_analytics:
            if analytic.session_id not in session_ids:
                continue
            entry = totals.get(analytic.slide_id)
            if entry is None:
                continue
            entry[0] += analytic.time_spent
            entry[1] += 1

        stats = [
            SlideStats(
                slide=slide,
                total_time_spent=totals[slide.id][0],
                avg_time_spent=(
                    totals[slide.id][0] / totals[slide.id][1] if totals[slide.id][1] else 0
                ),
                views=totals[slide.id][1],
            )
            for slide in slides
        ]
        stats.sort(key=lambda s: s.total_time_spent, reverse=True)
        return stats

    @staticmethod
    def summary(db: Database) -> dict:
        """Headline figures for the analytics page."""
        completed = [s for s in db.sessions if s.end_time]
        durations = [s.total_time or 0 for s in completed]
        avg_duration = sum(durations) / len(durations) if durations else 0
        return {
            "totalSessions": len(completed),
            "activeDoctors": sum(1 for d in db.doctors if d.status == "active"),
            "totalTimeSpent": sum(a.time_spent for a in db.slide_analytics) / 1000,
            "avgSessionTime": format_time(avg_duration),
        }
