from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from detailer.models import to_record
from detailer.repository import Repository, get_repository
from detailer.services.recorder import get_viewers

router = APIRouter(prefix="/api", tags=["sessions"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class SessionCreate(BaseModel):
    doctor_id: str = Field(alias="doctorId", min_length=1)
    presentation_id: str = Field(alias="presentationId", min_length=1)

    model_config = {"populate_by_name": True}


class SlideTiming(BaseModel):
    slide_id: str = Field(alias="slideId", min_length=1)
    time_spent: float = Field(alias="timeSpent", ge=0)  # milliseconds

    model_config = {"populate_by_name": True, "extra": "ignore"}


class SessionEnd(BaseModel):
    slide_analytics: list[SlideTiming] = Field(default_factory=list, alias="slideAnalytics")

    model_config = {"populate_by_name": True}


# ------------------------------------------------------------------
# Session endpoints
# ------------------------------------------------------------------


@router.post("/sessions")
async def start_session(
    body: SessionCreate, repo: Repository = Depends(get_repository)
) -> dict:
    session = await repo.start_session(body.doctor_id, body.presentation_id)
    return {"success": True, "sessionId": session.id}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, repo: Repository = Depends(get_repository)) -> dict:
    return to_record(await repo.get_session(session_id))


@router.get("/sessions/{session_id}/analytics")
async def get_session_analytics(
    session_id: str, repo: Repository = Depends(get_repository)
) -> list[dict]:
    await repo.get_session(session_id)
    return [to_record(a) for a in await repo.get_slide_analytics_by_session(session_id)]


@router.post("/sessions/{session_id}/end")
async def end_session(
    session_id: str,
    body: SessionEnd,
    repo: Repository = Depends(get_repository),
    viewers: dict = Depends(get_viewers),
) -> dict:
    """Finalize a session with the per-slide durations gathered by the viewer."""
    session = await repo.end_session(
        session_id, [(t.slide_id, t.time_spent) for t in body.slide_analytics]
    )
    # A live recorder for this session has nothing left to flush.
    viewers.pop(session_id, None)
    return {"success": True, "session": to_record(session)}
