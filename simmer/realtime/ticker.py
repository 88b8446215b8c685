"""Per-subscriber live tick stream for a session.

Yields one snapshot per beat until the session ends, then a single ``end``
event. The beat is ``interval_sec`` unless a ``wake`` coroutine returns
early (e.g. a session_updated message arrived), in which case the next
snapshot goes out immediately.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, NamedTuple, Optional, Union

from ..schemas import TickState
from ..services.session_control import SessionControl
from ..services.session_registry import LiveSession

logger = logging.getLogger("simmer.stream")

END_PAYLOAD = {"reason": "ended"}


class StreamEvent(NamedTuple):
    event: str  # "tick" | "end"
    data: Union[TickState, dict]

    def to_sse(self) -> str:
        if isinstance(self.data, TickState):
            body = self.data.model_dump_json(by_alias=True)
        else:
            body = json.dumps(self.data)
        return f"event: {self.event}\ndata: {body}\n\n"


async def session_ticks(
    control: SessionControl,
    session: LiveSession,
    *,
    interval_sec: float = 1.0,
    wake: Optional[Callable[[float], Awaitable[object]]] = None,
) -> AsyncIterator[StreamEvent]:
    ticks = 0
    try:
        while True:
            if session.status == "ended":
                yield StreamEvent("end", END_PAYLOAD)
                return

            yield StreamEvent("tick", control.snapshot(session))
            ticks += 1

            if wake is not None:
                await wake(interval_sec)
            else:
                await asyncio.sleep(interval_sec)
    finally:
        logger.info(f"Stream for session {session.id} closed after {ticks} ticks")
