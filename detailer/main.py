import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from detailer.config import settings
from detailer.database import build_backend
from detailer.exceptions import DetailerError
from detailer.repository import Repository
from detailer.routes import analytics, doctors, presentations, sessions, viewer

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the repository and an empty viewer registry once per process; close on shutdown."""
    repository = Repository(
        build_backend(settings), seed_on_empty=settings.seed_on_empty
    )
    await repository.open()
    app.state.repository = repository
    app.state.viewers = {}
    try:
        yield
    finally:
        await repository.close()


app = FastAPI(
    title="rep-detailer",
    description="Doctor detailing sessions with per-slide engagement analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(doctors.router)
app.include_router(presentations.router)
app.include_router(sessions.router)
app.include_router(viewer.router)
app.include_router(analytics.router)


@app.exception_handler(DetailerError)
async def detailer_error_handler(_request: Request, exc: DetailerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.get("/health")
async def health_check() -> dict:
    return {"status": "healthy"}
