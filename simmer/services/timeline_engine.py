"""Snapshot and skip over a live session's timeline.

Both functions expect the caller to hold ``session.lock``.
"""

from typing import NamedTuple, Optional

from ..schemas import ActiveItem, CurrentItems, SessionRef, TickState, TimelineItem, UpcomingItem
from .session_registry import wall_clock_ms
from .timeline_store import (
    active_items_at,
    compute_elapsed_sec,
    next_foreground_at_or_after,
    shift_future_items,
    sort_items,
)

NOTHING_TO_SKIP = "No foreground step to skip."


class SkipResult(NamedTuple):
    ok: bool
    reason: Optional[str] = None


def _with_remaining(item: TimelineItem, elapsed_sec: int) -> ActiveItem:
    return ActiveItem(**item.model_dump(), remaining_sec=max(0, item.end_sec - elapsed_sec))


def snapshot(session, now_ms: Optional[int] = None, *, freeze_on_end: bool = True) -> TickState:
    """Point-in-time view of a session. Never mutates the session."""
    if now_ms is None:
        now_ms = wall_clock_ms()
    elapsed_sec = compute_elapsed_sec(session, now_ms, freeze_on_end=freeze_on_end)
    foreground, backgrounds = active_items_at(session, elapsed_sec)

    upcoming = next_foreground_at_or_after(session, elapsed_sec)
    next_foreground = None
    if upcoming is not None:
        next_foreground = UpcomingItem(
            **upcoming.model_dump(),
            starts_in_sec=max(0, upcoming.start_sec - elapsed_sec),
        )

    return TickState(
        elapsed_sec=elapsed_sec,
        current=CurrentItems(
            foreground=_with_remaining(foreground, elapsed_sec) if foreground else None,
            background=[_with_remaining(bg, elapsed_sec) for bg in backgrounds],
        ),
        next_foreground=next_foreground,
        session=SessionRef(id=session.id, status=session.status),
    )


def _is_same_item(a: TimelineItem, b: TimelineItem) -> bool:
    if a.uid and b.uid:
        return a.uid == b.uid
    return (
        a.recipe_id == b.recipe_id
        and a.step_index == b.step_index
        and a.start_sec == b.start_sec
        and a.end_sec == b.end_sec
        and a.attention == b.attention
    )


def _pull_next_foreground(session, elapsed_sec: int) -> SkipResult:
    upcoming = next_foreground_at_or_after(session, elapsed_sec)
    if upcoming is None:
        return SkipResult(False, NOTHING_TO_SKIP)
    # Usually negative: the upcoming step moves back to start now
    shift_future_items(session, upcoming.start_sec, elapsed_sec - upcoming.start_sec)
    return SkipResult(True)


def skip_foreground_now(session, now_ms: Optional[int] = None, *, freeze_on_end: bool = True) -> SkipResult:
    """Force the timeline past the current (or next) foreground step.

    If a foreground step is running, it is truncated to end now and every
    item starting at or after now slides earlier by the unused remainder.
    Otherwise the next foreground step, and everything from its original
    start onward, is pulled back so that it starts now.

    Returns SkipResult(ok=False, reason=...) when there is no foreground
    step left to skip.
    """
    if now_ms is None:
        now_ms = wall_clock_ms()
    elapsed_sec = compute_elapsed_sec(session, now_ms, freeze_on_end=freeze_on_end)
    foreground = active_items_at(session, elapsed_sec).foreground

    if foreground is None:
        return _pull_next_foreground(session, elapsed_sec)

    remaining = max(0, foreground.end_sec - elapsed_sec)
    if remaining == 0:
        return _pull_next_foreground(session, elapsed_sec)

    # Zero-length from now is allowed; the step stays as a finished record
    session.schedule.items = sort_items([
        item.model_copy(update={"end_sec": elapsed_sec}) if _is_same_item(item, foreground) else item
        for item in session.schedule.items
    ])
    shift_future_items(session, elapsed_sec, -remaining)
    return SkipResult(True)
