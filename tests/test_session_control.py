import pytest

from simmer.schemas import ScheduleResult, TimelineItem
from simmer.services.session_control import (
    InvalidSchedule,
    SessionConflict,
    SessionControl,
    SessionNotFound,
)
from simmer.services.session_registry import SessionRegistry
from simmer.services.timeline_store import compute_elapsed_sec


def overlapping_schedule():
    def fg(step_index, start_sec, end_sec):
        return TimelineItem(
            recipe_id="pasta", recipe_name="Pasta", step_index=step_index,
            text="Stir", attention="foreground", start_sec=start_sec, end_sec=end_sec,
        )
    return ScheduleResult(items=[fg(0, 0, 10), fg(1, 5, 15)], total_duration_sec=15)


@pytest.fixture
def session(control, sample_schedule):
    return control.create_session(sample_schedule)


# --- start ---

def test_start_sets_clock(control, clock, session):
    assert control.start(session.id) == "running"
    assert session.status == "running"
    assert session.started_at == clock.now_ms
    assert session.total_paused_ms == 0
    assert session.paused_at is None


def test_start_twice_is_idempotent(control, clock, session):
    control.start(session.id)
    first_start = session.started_at
    clock.advance(3000)

    assert control.start(session.id) == "running"
    assert session.started_at == first_start


def test_start_ended_session_conflicts(control, session):
    control.registry.update(session.id, lambda s: setattr(s, "status", "ended"))
    with pytest.raises(SessionConflict):
        control.start(session.id)


def test_start_paused_session_conflicts(control, session):
    control.start(session.id)
    control.pause(session.id)
    with pytest.raises(SessionConflict):
        control.start(session.id)
    assert session.status == "paused"


def test_start_unknown_session(control):
    with pytest.raises(SessionNotFound):
        control.start("nope")


# --- pause / resume ---

def test_pause_requires_running(control, session):
    with pytest.raises(SessionConflict, match="not running"):
        control.pause(session.id)
    assert session.status == "idle"


def test_resume_requires_paused(control, session):
    control.start(session.id)
    with pytest.raises(SessionConflict, match="not paused"):
        control.resume(session.id)


def test_pause_freezes_clock_and_resume_accounts_for_pause(control, clock, session):
    control.start(session.id)
    clock.advance(5000)

    control.pause(session.id)
    before_pause = compute_elapsed_sec(session, clock.now_ms)
    clock.advance(2000)
    assert compute_elapsed_sec(session, clock.now_ms) == before_pause

    assert control.resume(session.id) == "running"
    assert session.total_paused_ms == 2000
    assert session.paused_at is None
    assert compute_elapsed_sec(session, clock.now_ms) == before_pause == 5

    clock.advance(1000)
    assert compute_elapsed_sec(session, clock.now_ms) == 6


def test_paused_time_accumulates(control, clock, session):
    control.start(session.id)
    for _ in range(3):
        clock.advance(1000)
        control.pause(session.id)
        clock.advance(500)
        control.resume(session.id)
    assert session.total_paused_ms == 1500
    assert control.get_state(session.id).elapsed_sec == 3


# --- skip ---

def test_skip_requires_running(control, session):
    with pytest.raises(SessionConflict, match="not running"):
        control.skip(session.id)


def test_skip_returns_fresh_snapshot(control, clock, session):
    control.start(session.id)
    clock.advance(5000)

    snap = control.skip(session.id)

    assert snap.elapsed_sec == 5
    assert snap.current.foreground.step_index == 2
    assert snap.current.foreground.start_sec == 5


def test_skip_with_nothing_left_reports_reason(control, clock, session):
    control.start(session.id)
    clock.advance(40_000)
    with pytest.raises(SessionConflict, match="No foreground step to skip."):
        control.skip(session.id)


# --- end ---

def test_end_removes_session_and_marks_ended(control, clock, session):
    control.start(session.id)
    clock.advance(4000)

    control.end(session.id)

    assert session.status == "ended"
    assert session.ended_at == clock.now_ms
    assert control.registry.get(session.id) is None
    with pytest.raises(SessionNotFound):
        control.get_state(session.id)


def test_snapshot_after_end_is_frozen(control, clock, session):
    control.start(session.id)
    clock.advance(4000)
    control.end(session.id)
    clock.advance(60_000)

    snap = control.snapshot(session)
    assert snap.elapsed_sec == 4
    assert snap.session.status == "ended"


def test_end_while_paused_folds_open_pause(control, clock, session):
    control.start(session.id)
    clock.advance(3000)
    control.pause(session.id)
    clock.advance(10_000)

    control.end(session.id)

    assert session.paused_at is None
    assert session.total_paused_ms == 10_000
    assert control.snapshot(session).elapsed_sec == 3


def test_snapshot_after_end_keeps_running_when_not_frozen(clock, sample_schedule):
    control = SessionControl(SessionRegistry(clock=clock), freeze_elapsed_on_end=False)
    session = control.create_session(sample_schedule)
    control.start(session.id)
    clock.advance(4000)
    control.end(session.id)
    clock.advance(6000)

    assert control.snapshot(session).elapsed_sec == 10


def test_end_unknown_session(control):
    with pytest.raises(SessionNotFound):
        control.end("nope")


# --- ingest ---

def test_overlapping_foreground_rejected(control):
    with pytest.raises(InvalidSchedule, match="overlap"):
        control.create_session(overlapping_schedule())
    assert len(control.registry) == 0


def test_overlapping_foreground_allowed_when_not_strict(clock):
    control = SessionControl(SessionRegistry(clock=clock), reject_overlapping_foreground=False)
    session = control.create_session(overlapping_schedule())
    control.start(session.id)
    clock.advance(6000)

    # First foreground wins
    assert control.get_state(session.id).current.foreground.step_index == 0


def test_from_settings(clock):
    class FakeSettings:
        freeze_elapsed_on_end = False
        reject_overlapping_foreground = False

    control = SessionControl.from_settings(FakeSettings(), SessionRegistry(clock=clock))
    assert control.freeze_elapsed_on_end is False
    assert control.reject_overlapping_foreground is False
    assert control.now() == clock.now_ms


def test_keeps_injected_empty_registry(clock):
    registry = SessionRegistry(clock=clock)
    assert len(registry) == 0

    control = SessionControl(registry)

    assert control.registry is registry
    assert control.now() == clock.now_ms
    session = control.create_session(ScheduleResult(items=[], total_duration_sec=5))
    assert registry.get(session.id) is session
    assert session.created_at == clock.now_ms
