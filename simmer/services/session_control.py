"""Session control operations for live cooking sessions.

Wraps the SessionRegistry and the timeline engine with the session state
machine:

    idle -start-> running -pause-> paused -resume-> running
    idle | running | paused -end-> ended

Transition checks happen under the session lock, so a check and the
mutation that follows it cannot interleave with another request.
"""

import logging
from typing import Optional

from ..schemas import ScheduleResult, SessionStatus, TickState
from .session_registry import LiveSession, SessionRegistry
from .timeline_engine import skip_foreground_now, snapshot
from .timeline_store import find_foreground_overlap

logger = logging.getLogger("simmer.sessions")


class SessionError(Exception):
    status_code = 500


class SessionNotFound(SessionError):
    status_code = 404

    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class SessionConflict(SessionError):
    status_code = 409


class InvalidSchedule(SessionError):
    status_code = 400


class SessionControl:
    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        *,
        freeze_elapsed_on_end: bool = True,
        reject_overlapping_foreground: bool = True,
    ):
        self.registry = registry if registry is not None else SessionRegistry()
        self.freeze_elapsed_on_end = freeze_elapsed_on_end
        self.reject_overlapping_foreground = reject_overlapping_foreground

    @classmethod
    def from_settings(cls, settings, registry: Optional[SessionRegistry] = None) -> "SessionControl":
        return cls(
            registry,
            freeze_elapsed_on_end=settings.freeze_elapsed_on_end,
            reject_overlapping_foreground=settings.reject_overlapping_foreground,
        )

    def now(self) -> int:
        return self.registry.clock()

    # --- Ingest ---

    def check_schedule(self, schedule: ScheduleResult) -> None:
        """Raise InvalidSchedule if the schedule cannot become session state."""
        if not self.reject_overlapping_foreground:
            return
        overlap = find_foreground_overlap(schedule.items)
        if overlap:
            first, second = overlap
            raise InvalidSchedule(
                f"Foreground steps overlap: '{first.recipe_name}' step {first.step_index} "
                f"({first.start_sec}-{first.end_sec}s) and '{second.recipe_name}' step "
                f"{second.step_index} ({second.start_sec}-{second.end_sec}s)"
            )

    def create_session(self, schedule: ScheduleResult) -> LiveSession:
        self.check_schedule(schedule)
        return self.registry.create(schedule)

    def get_session(self, session_id: str) -> LiveSession:
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFound()
        return session

    # --- Transitions ---

    def _update(self, session_id: str, mutate) -> LiveSession:
        session = self.registry.update(session_id, mutate)
        if session is None:
            raise SessionNotFound()
        return session

    def start(self, session_id: str) -> SessionStatus:
        """Start the session clock. Starting a running session is a no-op."""
        now = self.now()

        def _start(s: LiveSession):
            if s.status == "running":
                return
            if s.status == "ended":
                raise SessionConflict("Session already ended")
            if s.status == "paused":
                raise SessionConflict("Session is paused; resume it instead")
            s.started_at = now
            s.total_paused_ms = 0
            s.paused_at = None
            s.status = "running"
            logger.info(f"Session {s.id} started")

        return self._update(session_id, _start).status

    def pause(self, session_id: str) -> SessionStatus:
        now = self.now()

        def _pause(s: LiveSession):
            if s.status != "running":
                raise SessionConflict("Session not running")
            s.paused_at = now
            s.status = "paused"
            logger.info(f"Session {s.id} paused")

        return self._update(session_id, _pause).status

    def resume(self, session_id: str) -> SessionStatus:
        now = self.now()

        def _resume(s: LiveSession):
            if s.status != "paused" or s.paused_at is None or s.started_at is None:
                raise SessionConflict("Session not paused")
            pause_span = max(0, now - s.paused_at)
            s.total_paused_ms += pause_span
            s.paused_at = None
            s.status = "running"
            logger.info(f"Session {s.id} resumed after {pause_span}ms paused")

        return self._update(session_id, _resume).status

    def skip(self, session_id: str) -> TickState:
        """Skip the current or next foreground step and return the new snapshot."""
        now = self.now()

        def _skip(s: LiveSession):
            if s.status != "running":
                raise SessionConflict("Session not running")
            result = skip_foreground_now(s, now, freeze_on_end=self.freeze_elapsed_on_end)
            if not result.ok:
                raise SessionConflict(result.reason or "Cannot skip now")
            logger.info(f"Session {s.id} skipped foreground step")

        session = self._update(session_id, _skip)
        return self.snapshot(session, now)

    def end(self, session_id: str) -> None:
        """Mark the session ended and drop it from the registry.

        Anyone still holding the session object (live streams) sees the
        ``ended`` status and stops.
        """
        now = self.now()

        def _end(s: LiveSession):
            if s.status == "paused" and s.paused_at is not None:
                # Close the open pause so a frozen clock reads the same value
                s.total_paused_ms += max(0, now - s.paused_at)
                s.paused_at = None
            s.ended_at = now
            s.status = "ended"

        self._update(session_id, _end)
        self.registry.delete(session_id)
        logger.info(f"Session {session_id} ended")

    # --- Reads ---

    def snapshot(self, session: LiveSession, now_ms: Optional[int] = None) -> TickState:
        with session.lock:
            return snapshot(
                session,
                now_ms if now_ms is not None else self.now(),
                freeze_on_end=self.freeze_elapsed_on_end,
            )

    def get_state(self, session_id: str, now_ms: Optional[int] = None) -> TickState:
        return self.snapshot(self.get_session(session_id), now_ms)
