"""
The document store as an explicit, process-wide object.

``Repository`` wraps a ``StorageBackend`` (JSON file, memory or SQLite). It
loads the document once in ``open()``, keeps it resident, and funnels every
mutation through a single ``asyncio.Lock``: the change is applied to a copy,
the copy is persisted, and only then does it replace the resident document.
Readers always receive copies, never the resident records.
"""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from fastapi import Request

from detailer.database import StorageBackend
from detailer.exceptions import (
    DetailerError,
    InvalidInputError,
    NotFoundError,
    SessionAlreadyEndedError,
)
from detailer.models import Database, Doctor, Presentation, Session, Slide, SlideAnalytic
from detailer.services.formatting import format_hours_minutes, round_half_up
from detailer.services.seed import PRESENTATION_1_ID, SAMPLE_SLIDES, initial_data, placeholder_image

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _find(records: list, record_id: str):
    for record in records:
        if record.id == record_id:
            return record
    return None


def compute_engagement(time_spent_ms: float, total_time_s: float) -> int:
    """Share of the session wall-clock time covered by recorded slide time, 0-100."""
    if not total_time_s or total_time_s <= 0:
        return 0
    percent = round_half_up(time_spent_ms / (total_time_s * 1000) * 100)
    return max(0, min(100, percent))


class Repository:
    def __init__(
        self,
        backend: StorageBackend,
        seed_on_empty: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.backend = backend
        self.seed_on_empty = seed_on_empty
        self.clock = clock
        self._db: Database | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> "Repository":
        await self.backend.open()
        db = await self.backend.load()
        if db is None:
            db = initial_data() if self.seed_on_empty else Database()
            await self.backend.save(db)
            logger.info("Initialised %s store with seed data", self.backend.name)
        self._db = db
        logger.info(
            "Opened %s store: %d doctors, %d presentations, %d sessions",
            self.backend.name, len(db.doctors), len(db.presentations), len(db.sessions),
        )
        return self

    async def close(self) -> None:
        await self.backend.close()
        self._db = None

    async def __aenter__(self) -> "Repository":
        return await self.open()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _resident(self) -> Database:
        if self._db is None:
            raise DetailerError("Repository is not open", error_code="REPOSITORY_CLOSED")
        return self._db

    def snapshot(self) -> Database:
        """A deep copy of the whole document, safe to aggregate over."""
        return copy.deepcopy(self._resident())

    async def _commit(self, draft: Database) -> None:
        await self.backend.save(draft)
        self._db = draft

    # ------------------------------------------------------------------
    # Doctors
    # ------------------------------------------------------------------

    async def get_doctors(self) -> list[Doctor]:
        return copy.deepcopy(self._resident().doctors)

    async def get_doctor(self, doctor_id: str) -> Doctor:
        doctor = _find(self._resident().doctors, doctor_id)
        if doctor is None:
            raise NotFoundError("doctor", doctor_id)
        return copy.deepcopy(doctor)

    async def get_doctor_presentations(self, doctor_id: str) -> list[Presentation]:
        """Presentations available to a doctor. There is no assignment relation yet, so all of them."""
        await self.get_doctor(doctor_id)
        return await self.get_presentations()

    async def get_first_doctor(self) -> Doctor | None:
        doctors = self._resident().doctors
        return copy.deepcopy(doctors[0]) if doctors else None

    # ------------------------------------------------------------------
    # Presentations and slides
    # ------------------------------------------------------------------

    async def get_presentations(self) -> list[Presentation]:
        return copy.deepcopy(self._resident().presentations)

    async def get_presentation(self, presentation_id: str) -> Presentation:
        presentation = _find(self._resident().presentations, presentation_id)
        if presentation is None:
            raise NotFoundError("presentation", presentation_id)
        return copy.deepcopy(presentation)

    async def get_marketing_presentation(self) -> Presentation:
        return await self.get_presentation(PRESENTATION_1_ID)

    async def get_slides_by_presentation(self, presentation_id: str) -> list[Slide]:
        slides = [s for s in self._resident().slides if s.presentation_id == presentation_id]
        return copy.deepcopy(sorted(slides, key=lambda s: s.order))

    async def create_presentation(
        self, title: str, description: str = "", status: str = "active"
    ) -> Presentation:
        """Create a presentation together with the generic sample deck."""
        if not title or not title.strip():
            raise InvalidInputError("Title is required", "title")

        async with self._lock:
            draft = copy.deepcopy(self._resident())
            presentation = Presentation(
                id=str(uuid.uuid4()),
                title=title,
                description=description,
                slides=len(SAMPLE_SLIDES),
                status=status,
                created_at=self.clock().isoformat(),
            )
            draft.presentations.append(presentation)
            for index, (slide_title, content) in enumerate(SAMPLE_SLIDES):
                slide_title = slide_title.format(title=title)
                draft.slides.append(Slide(
                    id=str(uuid.uuid4()),
                    presentation_id=presentation.id,
                    title=slide_title,
                    content=content,
                    image_url=placeholder_image(slide_title),
                    order=index,
                ))
            await self._commit(draft)

        logger.info("Created presentation %s (%s)", presentation.id, title)
        return copy.deepcopy(presentation)

    async def create_slides(self, slides: Iterable[dict]) -> list[Slide]:
        """Append slides (``presentation_id``, ``title``, ``content``, ``image_url``, ``order``)."""
        async with self._lock:
            draft = copy.deepcopy(self._resident())
            created = []
            for fields_ in slides:
                if _find(draft.presentations, fields_["presentation_id"]) is None:
                    raise NotFoundError("presentation", fields_["presentation_id"])
                created.append(Slide(id=str(uuid.uuid4()), **fields_))
            draft.slides.extend(created)
            for presentation in draft.presentations:
                presentation.slides = sum(
                    1 for s in draft.slides if s.presentation_id == presentation.id
                )
            await self._commit(draft)
        return copy.deepcopy(created)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session:
        session = _find(self._resident().sessions, session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return copy.deepcopy(session)

    async def get_sessions_by_doctor(self, doctor_id: str) -> list[Session]:
        return copy.deepcopy(
            [s for s in self._resident().sessions if s.doctor_id == doctor_id]
        )

    async def get_sessions_by_presentation(self, presentation_id: str) -> list[Session]:
        return copy.deepcopy(
            [s for s in self._resident().sessions if s.presentation_id == presentation_id]
        )

    async def start_session(self, doctor_id: str, presentation_id: str) -> Session:
        async with self._lock:
            db = self._resident()
            if _find(db.doctors, doctor_id) is None:
                logger.error("Doctor not found with ID: %s", doctor_id)
                raise NotFoundError("doctor", doctor_id)
            if _find(db.presentations, presentation_id) is None:
                logger.error("Presentation not found with ID: %s", presentation_id)
                raise NotFoundError("presentation", presentation_id)

            draft = copy.deepcopy(db)
            session = Session(
                id=str(uuid.uuid4()),
                doctor_id=doctor_id,
                presentation_id=presentation_id,
                start_time=self.clock().isoformat(),
            )
            draft.sessions.append(session)
            await self._commit(draft)

        logger.info(
            "Session %s started: doctor=%s presentation=%s (%d sessions in store)",
            session.id, doctor_id, presentation_id, len(draft.sessions),
        )
        return copy.deepcopy(session)

    async def end_session(
        self, session_id: str, durations: Iterable[tuple[str, float]]
    ) -> Session:
        """Finalize a session and flush its per-slide durations.

        ``durations`` is a sequence of ``(slide_id, time_spent_ms)`` pairs, one
        SlideAnalytic row each. The owning doctor and presentation aggregates
        are advanced in the same write.
        """
        durations = list(durations)
        async with self._lock:
            draft = copy.deepcopy(self._resident())
            session = _find(draft.sessions, session_id)
            if session is None:
                logger.error("Session not found with ID: %s", session_id)
                raise NotFoundError("session", session_id)
            if session.is_ended:
                raise SessionAlreadyEndedError(session_id, session.end_time)

            ended_at = self.clock()
            started_at = datetime.fromisoformat(session.start_time)
            session.end_time = ended_at.isoformat()
            session.total_time = (ended_at - started_at).total_seconds()

            analytics = [
                SlideAnalytic(
                    id=str(uuid.uuid4()),
                    session_id=session_id,
                    slide_id=slide_id,
                    time_spent=time_spent,
                )
                for slide_id, time_spent in durations
            ]
            draft.slide_analytics.extend(analytics)

            time_spent_ms = sum(a.time_spent for a in analytics)
            session.avg_engagement = compute_engagement(time_spent_ms, session.total_time)

            doctor = _find(draft.doctors, session.doctor_id)
            if doctor is not None:
                doctor.sessions += 1
                doctor.last_session = session.end_time
                doctor.engagement_sum += session.avg_engagement
                doctor.avg_engagement = round_half_up(doctor.engagement_sum / doctor.sessions)
                doctor.total_seconds += session.total_time
                doctor.total_time = format_hours_minutes(doctor.total_seconds)

            presentation = _find(draft.presentations, session.presentation_id)
            if presentation is not None:
                presentation.sessions += 1
                presentation.last_used = session.end_time
                presentation.engagement_sum += session.avg_engagement
                presentation.avg_engagement = round_half_up(
                    presentation.engagement_sum / presentation.sessions
                )

            await self._commit(draft)

        logger.info(
            "Session %s ended: %.1fs, %d slide records, engagement %d%%",
            session_id, session.total_time, len(analytics), session.avg_engagement,
        )
        return copy.deepcopy(session)

    async def recompute_aggregates(self) -> None:
        """Rebuild every doctor and presentation aggregate from the full session history."""
        async with self._lock:
            draft = copy.deepcopy(self._resident())
            completed = [s for s in draft.sessions if s.avg_engagement is not None]

            for doctor in draft.doctors:
                own = [s for s in completed if s.doctor_id == doctor.id]
                doctor.sessions = len(own)
                doctor.engagement_sum = sum(s.avg_engagement for s in own)
                doctor.avg_engagement = (
                    round_half_up(doctor.engagement_sum / len(own)) if own else 0
                )
                doctor.total_seconds = sum(s.total_time or 0 for s in own)
                doctor.total_time = format_hours_minutes(doctor.total_seconds)
                doctor.last_session = max((s.end_time for s in own), default=None)

            for presentation in draft.presentations:
                own = [s for s in completed if s.presentation_id == presentation.id]
                presentation.sessions = len(own)
                presentation.engagement_sum = sum(s.avg_engagement for s in own)
                presentation.avg_engagement = (
                    round_half_up(presentation.engagement_sum / len(own)) if own else 0
                )
                presentation.last_used = max((s.end_time for s in own), default=None)

            await self._commit(draft)
        logger.info("Recomputed aggregates over %d completed sessions", len(completed))

    # ------------------------------------------------------------------
    # Slide analytics
    # ------------------------------------------------------------------

    async def get_slide_analytics_by_session(self, session_id: str) -> list[SlideAnalytic]:
        return copy.deepcopy(
            [a for a in self._resident().slide_analytics if a.session_id == session_id]
        )

    async def get_slide_analytics(self, slide_id: str) -> list[SlideAnalytic]:
        return copy.deepcopy(
            [a for a in self._resident().slide_analytics if a.slide_id == slide_id]
        )

    async def get_all_slide_analytics(self) -> list[SlideAnalytic]:
        return copy.deepcopy(self._resident().slide_analytics)


def get_repository(request: Request) -> Repository:
    """FastAPI dependency: the repository opened in the app lifespan."""
    return request.app.state.repository
