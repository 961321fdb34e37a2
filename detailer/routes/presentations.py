from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from detailer.models import to_record
from detailer.repository import Repository, get_repository
from detailer.services.analytics import AnalyticsService

router = APIRouter(prefix="/api", tags=["presentations"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class PresentationCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""

    model_config = {"str_strip_whitespace": True}


class SlideCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = ""
    image_url: str = Field("", alias="imageUrl")
    order: int = Field(0, ge=0)

    model_config = {"populate_by_name": True}


class SlidesCreate(BaseModel):
    slides: list[SlideCreate]


# ------------------------------------------------------------------
# Presentation endpoints
# ------------------------------------------------------------------


@router.get("/presentations")
async def list_presentations(repo: Repository = Depends(get_repository)) -> list[dict]:
    return [to_record(p) for p in await repo.get_presentations()]


@router.post("/presentations")
async def create_presentation(
    body: PresentationCreate, repo: Repository = Depends(get_repository)
) -> dict:
    presentation = await repo.create_presentation(body.title, body.description)
    return {"success": True, "presentationId": presentation.id}


# Declared before /presentations/{presentation_id} so "marketing" is not read as an id.
@router.get("/presentations/marketing")
async def get_marketing_presentation(repo: Repository = Depends(get_repository)) -> dict:
    presentation = await repo.get_marketing_presentation()
    return {
        "success": True,
        "message": "Sample presentation retrieved successfully",
        "presentation": to_record(presentation),
    }


@router.get("/presentations/{presentation_id}")
async def get_presentation_data(
    presentation_id: str, repo: Repository = Depends(get_repository)
) -> dict:
    """Return a presentation with its slides in display order."""
    presentation = await repo.get_presentation(presentation_id)
    slides = await repo.get_slides_by_presentation(presentation_id)
    return {
        "success": True,
        "presentation": to_record(presentation),
        "slides": [to_record(s) for s in slides],
    }


@router.post("/presentations/{presentation_id}/slides")
async def add_slides(
    presentation_id: str, body: SlidesCreate, repo: Repository = Depends(get_repository)
) -> dict:
    slides = await repo.create_slides(
        {
            "presentation_id": presentation_id,
            "title": slide.title,
            "content": slide.content,
            "image_url": slide.image_url,
            "order": slide.order,
        }
        for slide in body.slides
    )
    return {"success": True, "slides": [to_record(s) for s in slides]}


@router.get("/presentations/{presentation_id}/sessions")
async def list_presentation_sessions(
    presentation_id: str, repo: Repository = Depends(get_repository)
) -> list[dict]:
    await repo.get_presentation(presentation_id)
    return [to_record(s) for s in await repo.get_sessions_by_presentation(presentation_id)]


@router.get("/presentations/{presentation_id}/slide-analytics")
async def presentation_slide_analytics(
    presentation_id: str, repo: Repository = Depends(get_repository)
) -> list[dict]:
    """Time spent per slide of one deck, zero-time slides included."""
    stats = AnalyticsService.slide_analytics_for_presentation(repo.snapshot(), presentation_id)
    return [to_record(s) for s in stats]
