import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..schemas import ScheduleResult, SessionStatus
from .timeline_store import sanitize

logger = logging.getLogger("simmer.sessions")


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class LiveSession:
    """One live cooking run. All wall-clock fields are epoch milliseconds."""
    id: str
    schedule: ScheduleResult
    created_at: int
    status: SessionStatus = "idle"
    started_at: Optional[int] = None
    paused_at: Optional[int] = None
    total_paused_ms: int = 0
    ended_at: Optional[int] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)


class SessionRegistry:
    """In-process store of live sessions keyed by id.

    Lookups on unknown ids never raise: ``get`` and ``update`` return None
    and ``delete`` does nothing.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self.clock = clock or wall_clock_ms
        self._sessions: dict[str, LiveSession] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, schedule: ScheduleResult) -> LiveSession:
        clean = sanitize(schedule)
        for item in clean.items:
            item.uid = uuid.uuid4().hex

        session = LiveSession(
            id=str(uuid.uuid4()),
            schedule=clean,
            created_at=self.clock(),
        )
        with self._guard:
            self._sessions[session.id] = session
        logger.info(f"Created session {session.id} with {len(clean.items)} items ({clean.total_duration_sec}s)")
        return session

    def get(self, session_id: str) -> Optional[LiveSession]:
        return self._sessions.get(session_id)

    def update(self, session_id: str, mutate: Callable[[LiveSession], None]) -> Optional[LiveSession]:
        """Run ``mutate`` on the session while holding its lock."""
        session = self.get(session_id)
        if session is None:
            return None
        with session.lock:
            mutate(session)
        return session

    def delete(self, session_id: str) -> None:
        with self._guard:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Deleted session {session_id}")
