"""Schedule preview endpoints.

- POST /schedule/previews - Store an externally produced schedule
- GET /schedule/previews/{preview_id} - Fetch a stored schedule
"""

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_session_control
from ..schemas import PreviewCreatedResponse, ScheduleResult
from ..services.schedule_previews import get_preview, store_preview
from ..services.session_control import InvalidSchedule, SessionControl
from ..settings import settings

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.post("/previews", response_model=PreviewCreatedResponse, status_code=201)
async def create_preview(
    schedule: ScheduleResult,
    control: SessionControl = Depends(get_session_control),
):
    """Store a schedule so sessions can be created from it by id."""
    try:
        control.check_schedule(schedule)
    except InvalidSchedule as e:
        raise HTTPException(status_code=400, detail=str(e))

    preview_id, stored = await store_preview(schedule, settings.preview_ttl_sec)
    return PreviewCreatedResponse(preview_id=preview_id, schedule=stored)


@router.get("/previews/{preview_id}", response_model=ScheduleResult)
async def read_preview(preview_id: str):
    schedule = await get_preview(preview_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule preview not found")
    return schedule
