from fastapi import APIRouter, Depends

from detailer.models import to_record
from detailer.repository import Repository, get_repository

router = APIRouter(prefix="/api", tags=["doctors"])


@router.get("/doctors")
async def list_doctors(repo: Repository = Depends(get_repository)) -> list[dict]:
    return [to_record(d) for d in await repo.get_doctors()]


@router.get("/doctors/{doctor_id}")
async def get_doctor(doctor_id: str, repo: Repository = Depends(get_repository)) -> dict:
    return to_record(await repo.get_doctor(doctor_id))


@router.get("/doctors/{doctor_id}/sessions")
async def list_doctor_sessions(
    doctor_id: str, repo: Repository = Depends(get_repository)
) -> list[dict]:
    await repo.get_doctor(doctor_id)
    return [to_record(s) for s in await repo.get_sessions_by_doctor(doctor_id)]


@router.get("/doctors/{doctor_id}/presentations")
async def list_doctor_presentations(
    doctor_id: str, repo: Repository = Depends(get_repository)
) -> list[dict]:
    return [to_record(p) for p in await repo.get_doctor_presentations(doctor_id)]
