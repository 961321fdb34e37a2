"""
Unit tests for the per-slide session recorder.
"""

import pytest

from detailer.database import MemoryBackend
from detailer.exceptions import InvalidNavigationError, SessionAlreadyEndedError, StorageError
from detailer.repository import Repository
from detailer.services.recorder import SessionRecorder

SLIDES = ["slide-1-0", "slide-1-1", "slide-1-2"]


@pytest.fixture
def recorder(clock) -> SessionRecorder:
    return SessionRecorder("session-1", SLIDES, clock=clock.seconds)


class TestNavigation:
    def test_time_charged_to_slide_being_left(self, recorder, clock):
        clock.advance(5)
        recorder.navigate(1)
        assert recorder.timings == {"slide-1-0": 5000}
        assert recorder.current_index == 1

    def test_repeat_visits_are_summed(self, recorder, clock):
        clock.advance(5)
        recorder.next()
        clock.advance(3)
        recorder.previous()
        clock.advance(2)
        assert recorder.finish() == [("slide-1-0", 7000), ("slide-1-1", 3000)]

    def test_out_of_range(self, recorder):
        with pytest.raises(InvalidNavigationError):
            recorder.navigate(3)
        with pytest.raises(InvalidNavigationError):
            recorder.navigate(-1)

    def test_next_and_previous_stop_at_the_edges(self, recorder, clock):
        recorder.previous()
        assert recorder.current_index == 0
        recorder.navigate(2)
        recorder.next()
        assert recorder.current_index == 2

    def test_navigating_to_current_slide_keeps_timer_running(self, recorder, clock):
        clock.advance(4)
        recorder.navigate(0)
        assert recorder.timings == {}
        assert recorder.current_slide_elapsed_ms() == 4000


class TestPauseResume:
    def test_paused_time_is_not_recorded(self, recorder, clock):
        clock.advance(5)
        recorder.pause()
        clock.advance(60)
        recorder.resume()
        clock.advance(2)
        assert recorder.finish() == [("slide-1-0", 7000)]

    def test_navigate_while_paused_moves_cursor_only(self, recorder, clock):
        clock.advance(1)
        recorder.pause()
        recorder.navigate(2)
        clock.advance(10)
        assert recorder.timings == {"slide-1-0": 1000}
        recorder.resume()
        clock.advance(4)
        assert recorder.finish() == [("slide-1-0", 1000), ("slide-1-2", 4000)]

    def test_pause_and_resume_are_idempotent(self, recorder, clock):
        clock.advance(1)
        recorder.pause()
        recorder.pause()
        recorder.resume()
        recorder.resume()
        assert recorder.state == SessionRecorder.PRESENTING
        assert recorder.timings == {"slide-1-0": 1000}


class UnreliableBackend(MemoryBackend):
    failures = 0

    async def save(self, db):
        if self.failures:
            self.failures -= 1
            raise StorageError("disk full", self.name)
        await super().save(db)


class TestFinish:
    def test_recorded_time_matches_presenting_time(self, recorder, clock):
        for step, index in [(3.2, 1), (0.7, 2), (12.1, 0), (4.0, 2)]:
            clock.advance(step)
            recorder.navigate(index)
        clock.advance(1.5)
        durations = recorder.finish()
        assert sum(ms for _, ms in durations) == pytest.approx(21500, abs=100)

    def test_ended_recorder_rejects_controls(self, recorder):
        recorder.finish()
        assert recorder.state == SessionRecorder.ENDED
        for control in (
            recorder.pause, recorder.resume, recorder.next, recorder.previous, recorder.finish,
        ):
            with pytest.raises(InvalidNavigationError):
                control()

    def test_empty_deck(self, clock):
        recorder = SessionRecorder("session-2", [], clock=clock.seconds)
        clock.advance(3)
        assert recorder.finish() == []
        assert recorder.to_dict()["currentSlideId"] is None

    def test_state_readout(self, recorder, clock):
        clock.advance(2)
        recorder.next()
        clock.advance(1)
        state = recorder.to_dict()
        assert state["currentSlide"] == 1
        assert state["currentSlideId"] == "slide-1-1"
        assert state["currentSlideTimeSpent"] == 1000
        assert state["recordedTime"] == 3000
        assert state["slideTimings"] == [{"slideId": "slide-1-0", "timeSpent": 2000}]


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_twenty_then_fifteen_seconds(self, repo, clock):
        recorder = await SessionRecorder.start(
            repo, "doctor-1", "presentation-1", clock=clock.seconds
        )
        assert recorder.slide_ids == [f"slide-1-{i}" for i in range(6)]

        clock.advance(20)
        recorder.navigate(1)
        clock.advance(15)
        session = await recorder.end(repo)

        assert session.total_time == pytest.approx(35)
        analytics = await repo.get_slide_analytics_by_session(session.id)
        assert [(a.slide_id, a.time_spent) for a in analytics] == [
            ("slide-1-0", 20000),
            ("slide-1-1", 15000),
        ]
        assert (await repo.get_doctor("doctor-1")).sessions == 1
        assert 0 <= session.avg_engagement <= 100

    def test_edge_controls_reject_an_ended_recorder(self, recorder):
        recorder.navigate(2)
        recorder.finish()
        with pytest.raises(InvalidNavigationError):
            recorder.next()
        recorder.current_index = 0
        with pytest.raises(InvalidNavigationError):
            recorder.previous()

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_timings_for_a_retry(self, clock):
        backend = UnreliableBackend()
        repository = Repository(backend, clock=clock)
        await repository.open()
        recorder = await SessionRecorder.start(
            repository, "doctor-1", "presentation-1", clock=clock.seconds
        )
        clock.advance(6)
        recorder.next()
        clock.advance(4)

        backend.failures = 1
        with pytest.raises(StorageError):
            await recorder.end(repository)
        assert recorder.state == SessionRecorder.PRESENTING
        assert (await repository.get_session(recorder.session_id)).end_time is None

        clock.advance(1)
        session = await recorder.end(repository)
        assert recorder.state == SessionRecorder.ENDED
        assert session.end_time is not None
        analytics = await repository.get_slide_analytics_by_session(session.id)
        assert [(a.slide_id, a.time_spent) for a in analytics] == [
            ("slide-1-0", 6000),
            ("slide-1-1", 5000),
        ]

    @pytest.mark.asyncio
    async def test_session_ended_elsewhere_ends_the_recorder(self, repo, clock):
        recorder = await SessionRecorder.start(
            repo, "doctor-1", "presentation-1", clock=clock.seconds
        )
        await repo.end_session(recorder.session_id, [])
        with pytest.raises(SessionAlreadyEndedError):
            await recorder.end(repo)
        assert recorder.state == SessionRecorder.ENDED
