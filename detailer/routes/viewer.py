from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from detailer.exceptions import NotFoundError
from detailer.models import to_record
from detailer.repository import Repository, get_repository
from detailer.services.recorder import SessionRecorder, get_viewers

router = APIRouter(prefix="/api/viewer", tags=["viewer"])


class ViewerStart(BaseModel):
    doctor_id: str | None = Field(None, alias="doctorId")
    presentation_id: str = Field(alias="presentationId", min_length=1)

    model_config = {"populate_by_name": True}


class Navigate(BaseModel):
    slide_index: int = Field(alias="slideIndex")

    model_config = {"populate_by_name": True}


def _get_recorder(viewers: dict[str, SessionRecorder], session_id: str) -> SessionRecorder:
    recorder = viewers.get(session_id)
    if recorder is None:
        raise NotFoundError("viewer session", session_id)
    return recorder


@router.post("/start")
async def start_viewer(
    body: ViewerStart,
    repo: Repository = Depends(get_repository),
    viewers: dict = Depends(get_viewers),
) -> dict:
    """Start a session and begin timing slide 0. Falls back to the first doctor when none is given."""
    doctor_id = body.doctor_id
    if not doctor_id:
        first = await repo.get_first_doctor()
        if first is None:
            raise NotFoundError("doctor", "<any>")
        doctor_id = first.id

    recorder = await SessionRecorder.start(repo, doctor_id, body.presentation_id)
    viewers[recorder.session_id] = recorder
    return {"success": True, "sessionId": recorder.session_id, "viewer": recorder.to_dict()}


@router.get("/{session_id}")
async def viewer_state(session_id: str, viewers: dict = Depends(get_viewers)) -> dict:
    return _get_recorder(viewers, session_id).to_dict()


@router.post("/{session_id}/navigate")
async def navigate(session_id: str, body: Navigate, viewers: dict = Depends(get_viewers)) -> dict:
    recorder = _get_recorder(viewers, session_id)
    recorder.navigate(body.slide_index)
    return recorder.to_dict()


@router.post("/{session_id}/next")
async def next_slide(session_id: str, viewers: dict = Depends(get_viewers)) -> dict:
    recorder = _get_recorder(viewers, session_id)
    recorder.next()
    return recorder.to_dict()


@router.post("/{session_id}/previous")
async def previous_slide(session_id: str, viewers: dict = Depends(get_viewers)) -> dict:
    recorder = _get_recorder(viewers, session_id)
    recorder.previous()
    return recorder.to_dict()


@router.post("/{session_id}/pause")
async def pause(session_id: str, viewers: dict = Depends(get_viewers)) -> dict:
    recorder = _get_recorder(viewers, session_id)
    recorder.pause()
    return recorder.to_dict()


@router.post("/{session_id}/resume")
async def resume(session_id: str, viewers: dict = Depends(get_viewers)) -> dict:
    recorder = _get_recorder(viewers, session_id)
    recorder.resume()
    return recorder.to_dict()


@router.post("/{session_id}/end")
async def end_viewer(
    session_id: str,
    repo: Repository = Depends(get_repository),
    viewers: dict = Depends(get_viewers),
) -> dict:
    """Charge the current slide, flush every slide timing, and finalize the session.

    The recorder leaves the registry only once it has ended, so a failed
    write can be retried with the timings intact.
    """
    recorder = _get_recorder(viewers, session_id)
    try:
        session = await recorder.end(repo)
    finally:
        if recorder.state == SessionRecorder.ENDED:
            viewers.pop(session_id, None)
    return {
        "success": True,
        "session": to_record(session),
        "slidesRecorded": len(recorder.timings),
    }
