"""Live cooking session API router.

Endpoints:
- POST /sessions - Create a session from a schedule or a stored preview
- POST /sessions/{id}/start - Start the session clock
- POST /sessions/{id}/pause - Pause a running session
- POST /sessions/{id}/resume - Resume a paused session
- POST /sessions/{id}/skip - Skip the current (or next) foreground step
- GET /sessions/{id}/state - Current snapshot
- GET /sessions/{id}/stream - Server-Sent Events, one tick per second
- DELETE /sessions/{id} - End and remove the session
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..deps import get_session_control, limiter
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..realtime.session_bus import notify_session_update, subscribe_session
from ..realtime.ticker import session_ticks
from ..schemas import (
    OkResponse,
    ScheduleResult,
    SessionCreatedResponse,
    SessionCreateRequest,
    SessionStatusResponse,
    SkipResponse,
    TickState,
)
from ..services.schedule_previews import get_preview
from ..services.session_control import SessionControl, SessionError
from ..settings import settings

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = logging.getLogger("simmer.sessions")


def http_error(e: SessionError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


# --- Endpoints ---

@router.post("", response_model=SessionCreatedResponse, status_code=201)
@limiter.limit(settings.session_create_rate_limit)
async def create_session(
    request: Request,
    body: SessionCreateRequest,
    control: SessionControl = Depends(get_session_control),
):
    """Create a live session in the idle state."""
    pre = await idempotency_precheck(request, route_key="session_create")
    if isinstance(pre, JSONResponse):
        return pre

    try:
        if body.preview_id:
            schedule = await get_preview(body.preview_id)
            if schedule is None:
                raise HTTPException(status_code=404, detail="Schedule preview not found")
        elif body.items is not None:
            schedule = ScheduleResult(items=body.items, total_duration_sec=body.total_duration_sec or 0)
        else:
            raise HTTPException(status_code=400, detail="Invalid schedule payload.")

        try:
            session = control.create_session(schedule)
        except SessionError as e:
            raise http_error(e)

        resp = SessionCreatedResponse(
            id=session.id,
            status=session.status,
            total_duration_sec=session.schedule.total_duration_sec,
        )
        if pre:
            redis_key, req_hash, _ = pre
            await idempotency_store_result(
                redis_key, req_hash, status=201,
                body=resp.model_dump(mode="json", by_alias=True), resource_id=session.id,
            )
        return resp
    except Exception:
        if pre:
            await idempotency_clear_key(pre[0])
        raise


@router.post("/{session_id}/start", response_model=SessionStatusResponse)
async def start_session(session_id: str, control: SessionControl = Depends(get_session_control)):
    """Start the clock. Idempotent while running; 409 once ended."""
    try:
        status = control.start(session_id)
    except SessionError as e:
        raise http_error(e)
    await notify_session_update(session_id, status, control.now())
    return SessionStatusResponse(status=status)


@router.post("/{session_id}/pause", response_model=SessionStatusResponse)
async def pause_session(session_id: str, control: SessionControl = Depends(get_session_control)):
    try:
        status = control.pause(session_id)
    except SessionError as e:
        raise http_error(e)
    await notify_session_update(session_id, status, control.now())
    return SessionStatusResponse(status=status)


@router.post("/{session_id}/resume", response_model=SessionStatusResponse)
async def resume_session(session_id: str, control: SessionControl = Depends(get_session_control)):
    try:
        status = control.resume(session_id)
    except SessionError as e:
        raise http_error(e)
    await notify_session_update(session_id, status, control.now())
    return SessionStatusResponse(status=status)


@router.post("/{session_id}/skip", response_model=SkipResponse)
async def skip_foreground(session_id: str, control: SessionControl = Depends(get_session_control)):
    """Truncate the running foreground step, or pull the next one to now."""
    try:
        snap = control.skip(session_id)
    except SessionError as e:
        raise http_error(e)
    await notify_session_update(session_id, snap.session.status, control.now())
    return SkipResponse(snapshot=snap)


@router.get("/{session_id}/state", response_model=TickState)
def get_state(session_id: str, control: SessionControl = Depends(get_session_control)):
    try:
        return control.get_state(session_id)
    except SessionError as e:
        raise http_error(e)


@router.delete("/{session_id}", response_model=OkResponse)
async def delete_session(session_id: str, control: SessionControl = Depends(get_session_control)):
    """End the session and remove it. Open streams emit a final end event."""
    try:
        control.end(session_id)
    except SessionError as e:
        raise http_error(e)
    await notify_session_update(session_id, "ended", control.now())
    return OkResponse()


@router.get("/{session_id}/stream")
async def stream_session(
    request: Request,
    session_id: str,
    control: SessionControl = Depends(get_session_control),
):
    """Server-Sent Events: a `tick` snapshot every second, then `end`."""
    # Resolve before the stream opens so unknown ids get a plain 404
    try:
        session = control.get_session(session_id)
    except SessionError as e:
        raise http_error(e)

    async def event_generator():
        pubsub = None
        try:
            pubsub = await subscribe_session(session_id)
        except Exception as e:
            logger.warning(f"Live updates for {session_id} fall back to polling: {e}")

        async def wake(timeout: float):
            if pubsub is None:
                await asyncio.sleep(timeout)
                return
            loop = asyncio.get_running_loop()
            deadline = loop.time() + timeout
            try:
                # Returns early only for a published update; subscribe
                # confirmations come back as None and the beat keeps running
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        return
                    msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=remaining)
                    if msg is not None:
                        return
            except Exception as e:
                logger.error(f"Redis PubSub Error: {e}")
                await asyncio.sleep(max(0.0, deadline - loop.time()))

        try:
            async for event in session_ticks(
                control, session, interval_sec=settings.stream_tick_sec, wake=wake
            ):
                if await request.is_disconnected():
                    break
                yield event.to_sse()
        finally:
            if pubsub is not None:
                await pubsub.unsubscribe()
                await pubsub.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
