import logging
import time
from typing import Callable

from fastapi import Request

from detailer.exceptions import DetailerError, InvalidNavigationError, SessionAlreadyEndedError
from detailer.models import Session
from detailer.repository import Repository

logger = logging.getLogger(__name__)


class SessionRecorder:
    """Tracks how long each slide stays on screen during one presentation session.

    States: ``presenting`` -> ``paused`` -> ``presenting`` ... -> ``ended``.

    Time is charged to the current slide whenever the cursor leaves it, when
    the session is paused, and when it ends. Repeat visits to the same slide
    are summed. Nothing here touches the store until :meth:`end` flushes the
    accumulated timings through ``Repository.end_session``.

    ``clock`` returns seconds from a monotonic source; tests pass a fake.
    """

    PRESENTING = "presenting"
    PAUSED = "paused"
    ENDED = "ended"

    def __init__(
        self,
        session_id: str,
        slide_ids: list[str],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self.slide_ids = list(slide_ids)
        self.clock = clock
        self.state = self.PRESENTING
        self.current_index = 0
        self.timings: dict[str, int] = {}  # slide id -> milliseconds
        self._slide_started: float | None = clock()

    @classmethod
    async def start(
        cls,
        repository: Repository,
        doctor_id: str,
        presentation_id: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> "SessionRecorder":
        """Open a session in the store and begin timing its first slide."""
        session = await repository.start_session(doctor_id, presentation_id)
        slides = await repository.get_slides_by_presentation(presentation_id)
        return cls(session.id, [s.id for s in slides], clock=clock)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _running_ms(self) -> int:
        if self._slide_started is None:
            return 0
        return int(round((self.clock() - self._slide_started) * 1000))

    def _charge_current(self) -> None:
        """Add the running time to the current slide and stop the timer."""
        if self._slide_started is not None and self.slide_ids:
            slide_id = self.slide_ids[self.current_index]
            elapsed = self._running_ms()
            self.timings[slide_id] = self.timings.get(slide_id, 0) + elapsed
            logger.debug(
                "Recorded %dms for slide %d (%s) in session %s",
                elapsed, self.current_index, slide_id, self.session_id,
            )
        self._slide_started = None

    def _require_active(self) -> None:
        if self.state == self.ENDED:
            raise InvalidNavigationError(
                f"Session {self.session_id} has ended", session_id=self.session_id
            )

    # ------------------------------------------------------------------
    # Viewer controls
    # ------------------------------------------------------------------

    def pause(self) -> None:
        self._require_active()
        if self.state == self.PRESENTING:
            self._charge_current()
            self.state = self.PAUSED

    def resume(self) -> None:
        self._require_active()
        if self.state == self.PAUSED:
            self._slide_started = self.clock()
            self.state = self.PRESENTING

    def navigate(self, index: int) -> None:
        self._require_active()
        if not 0 <= index < len(self.slide_ids):
            raise InvalidNavigationError(
                f"Slide index {index} out of range for {len(self.slide_ids)} slides",
                session_id=self.session_id,
                slide_index=index,
            )
        if index == self.current_index:
            return
        if self.state == self.PRESENTING:
            self._charge_current()
            self._slide_started = self.clock()
        self.current_index = index

    def next(self) -> None:
        self._require_active()
        if self.current_index < len(self.slide_ids) - 1:
            self.navigate(self.current_index + 1)

    def previous(self) -> None:
        self._require_active()
        if self.current_index > 0:
            self.navigate(self.current_index - 1)

    # ------------------------------------------------------------------
    # Readouts
    # ------------------------------------------------------------------

    def current_slide_elapsed_ms(self) -> int:
        """Time on the current slide during this visit, for live display."""
        return self._running_ms()

    def recorded_ms(self) -> int:
        """Everything charged so far plus the running visit."""
        return sum(self.timings.values()) + self._running_ms()

    def durations(self) -> list[tuple[str, int]]:
        return list(self.timings.items())

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "state": self.state,
            "currentSlide": self.current_index,
            "slideCount": len(self.slide_ids),
            "currentSlideId": self.slide_ids[self.current_index] if self.slide_ids else None,
            "currentSlideTimeSpent": self.current_slide_elapsed_ms(),
            "recordedTime": self.recorded_ms(),
            "slideTimings": [
                {"slideId": slide_id, "timeSpent": spent}
                for slide_id, spent in self.timings.items()
            ],
        }

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def finish(self) -> list[tuple[str, int]]:
        """Stop timing for good and return the per-slide totals."""
        self._require_active()
        self._charge_current()
        self.state = self.ENDED
        return self.durations()

    async def end(self, repository: Repository) -> Session:
        """Flush the per-slide totals into the store, then mark the recorder ended.

        If the store rejects the write the recorder stays usable, with the
        timer restarted when it was presenting, so the end can be retried.
        A session already ended elsewhere ends the recorder as well.
        """
        self._require_active()
        was_presenting = self.state == self.PRESENTING
        self._charge_current()
        try:
            session = await repository.end_session(self.session_id, self.durations())
        except SessionAlreadyEndedError:
            self.state = self.ENDED
            raise
        except DetailerError:
            if was_presenting:
                self._slide_started = self.clock()
            raise
        self.state = self.ENDED
        return session


def get_viewers(request: Request) -> dict[str, SessionRecorder]:
    """FastAPI dependency: live recorders keyed by session id. Nothing here is persisted."""
    return request.app.state.viewers
