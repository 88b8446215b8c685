"""Primitive queries and mutations over a live session's schedule.

None of these take the session lock; callers go through
SessionRegistry.update (or hold ``session.lock``) when they mutate.
"""

from typing import NamedTuple, Optional

from ..schemas import ScheduleResult, TimelineItem


class ActiveSet(NamedTuple):
    foreground: Optional[TimelineItem]
    backgrounds: list[TimelineItem]


def _order(item: TimelineItem) -> tuple[int, int]:
    return (item.start_sec, item.end_sec)


def sort_items(items: list[TimelineItem]) -> list[TimelineItem]:
    return sorted(items, key=_order)


def sanitize(schedule: ScheduleResult) -> ScheduleResult:
    """Return a private, ordered copy of an externally produced schedule.

    Items are sorted by (start_sec, end_sec) and the total is raised to
    cover the last ending item.
    """
    items = sort_items([item.model_copy() for item in schedule.items])
    max_end = max((item.end_sec for item in items), default=0)
    return ScheduleResult(
        items=items,
        total_duration_sec=max(schedule.total_duration_sec or 0, max_end, 0),
    )


def find_foreground_overlap(items: list[TimelineItem]) -> Optional[tuple[TimelineItem, TimelineItem]]:
    """Return the first pair of foreground items whose intervals overlap.

    Intervals are half-open, so back-to-back steps do not overlap and
    zero-length items never do.
    """
    foregrounds = [it for it in sort_items(items) if it.attention == "foreground" and it.end_sec > it.start_sec]
    latest: Optional[TimelineItem] = None
    for item in foregrounds:
        if latest is not None and item.start_sec < latest.end_sec:
            return latest, item
        if latest is None or item.end_sec > latest.end_sec:
            latest = item
    return None


def shift_future_items(session, cutoff_start_sec: int, shift_sec: int) -> None:
    """Move every item starting at or after ``cutoff_start_sec`` by ``shift_sec``.

    Shifted items keep at least one second of duration and never start
    before zero. Items starting before the cutoff are left alone.
    """
    if shift_sec == 0:
        return

    schedule = session.schedule
    shifted = []
    for item in schedule.items:
        if item.start_sec >= cutoff_start_sec:
            start_sec = max(0, item.start_sec + shift_sec)
            end_sec = max(start_sec + 1, item.end_sec + shift_sec)
            item = item.model_copy(update={"start_sec": start_sec, "end_sec": end_sec})
        shifted.append(item)

    schedule.items = sort_items(shifted)
    max_end = max((item.end_sec for item in schedule.items), default=0)
    schedule.total_duration_sec = max(schedule.total_duration_sec + shift_sec, max_end)


def compute_elapsed_sec(session, now_ms: int, *, freeze_on_end: bool = True) -> int:
    """Whole seconds of session time, excluding paused spans.

    Paused sessions report the value at the moment the pause began. Ended
    sessions report the value at ``ended_at`` when ``freeze_on_end`` is set,
    otherwise the clock keeps running as if the session were live.
    """
    if session.status == "idle" or session.started_at is None:
        return 0

    if session.status == "paused":
        if session.paused_at is None:
            return 0
        reference_ms = session.paused_at
    elif session.status == "ended" and freeze_on_end and session.ended_at is not None:
        reference_ms = session.ended_at
    else:
        reference_ms = now_ms

    raw_ms = reference_ms - session.started_at - session.total_paused_ms
    return max(0, int(raw_ms // 1000))


def active_items_at(session, elapsed_sec: int) -> ActiveSet:
    actives = [
        item for item in session.schedule.items
        if item.start_sec <= elapsed_sec < item.end_sec
    ]
    # First foreground wins if a producer ever emits overlapping ones
    foreground = next((item for item in actives if item.attention == "foreground"), None)
    backgrounds = [item for item in actives if item.attention == "background"]
    return ActiveSet(foreground, backgrounds)


def next_foreground_at_or_after(session, elapsed_sec: int) -> Optional[TimelineItem]:
    return next(
        (
            item for item in session.schedule.items
            if item.attention == "foreground" and item.start_sec >= elapsed_sec
        ),
        None,
    )
