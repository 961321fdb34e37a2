import logging

from fastapi import APIRouter, Depends, Query

from detailer.config import settings
from detailer.models import RecentSession, to_record
from detailer.repository import Repository, get_repository
from detailer.services.analytics import AnalyticsService
from detailer.services.formatting import time_ago

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analytics"])


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _recent_session_record(row: RecentSession) -> dict:
    record = to_record(row)
    record["endedAgo"] = time_ago(row.session.end_time)
    return record


# ------------------------------------------------------------------
# Page surfaces
# ------------------------------------------------------------------


@router.get("/dashboard")
async def dashboard(repo: Repository = Depends(get_repository)) -> dict:
    db = repo.snapshot()
    recent = AnalyticsService.recent_sessions(db, settings.dashboard_sessions_limit)
    return {
        "doctors": [to_record(d) for d in db.doctors],
        "presentations": [to_record(p) for p in db.presentations],
        "totalSessions": len(recent),
        "recentSessions": [_recent_session_record(r) for r in recent],
    }


@router.get("/start")
async def start_page(repo: Repository = Depends(get_repository)) -> dict:
    return {
        "doctors": [to_record(d) for d in await repo.get_doctors()],
        "presentations": [to_record(p) for p in await repo.get_presentations()],
    }


@router.get("/analytics")
async def analytics(
    doctor_id: str | None = Query(None, alias="doctorId"),
    presentation_id: str | None = Query(None, alias="presentationId"),
    repo: Repository = Depends(get_repository),
) -> dict:
    """Everything the analytics page shows, optionally narrowed to one doctor or deck."""
    db = repo.snapshot()
    recent = AnalyticsService.recent_sessions(
        db,
        settings.recent_sessions_limit,
        doctor_id=doctor_id,
        presentation_id=presentation_id,
    )
    if presentation_id is not None:
        slides = AnalyticsService.slide_analytics_for_presentation(db, presentation_id)
    else:
        slides = AnalyticsService.top_slides(db, settings.top_slides_limit)

    logger.info(
        "Analytics: %d doctors, %d presentations, %d sessions, %d slide analytics, %d top slides",
        len(db.doctors), len(db.presentations), len(recent),
        len(db.slide_analytics), len(slides),
    )
    return {
        "doctors": [to_record(d) for d in db.doctors],
        "presentations": [to_record(p) for p in db.presentations],
        "recentSessions": [_recent_session_record(r) for r in recent],
        "topSlides": [to_record(s) for s in slides],
        "allSlideAnalytics": [to_record(a) for a in db.slide_analytics],
        "summary": AnalyticsService.summary(db),
    }


@router.get("/slides/{slide_id}/analytics")
async def slide_analytics(slide_id: str, repo: Repository = Depends(get_repository)) -> list[dict]:
    return [to_record(a) for a in await repo.get_slide_analytics(slide_id)]


# ------------------------------------------------------------------
# Maintenance
# ------------------------------------------------------------------


@router.post("/admin/recompute")
async def recompute(repo: Repository = Depends(get_repository)) -> dict:
    """Rebuild doctor and presentation aggregates from the full session history."""
    await repo.recompute_aggregates()
    return {"success": True}
