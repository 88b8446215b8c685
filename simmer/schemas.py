"""Pydantic schemas for the Simmer API.

Request/response models for:
- Timeline items and schedules
- Live session state (tick snapshots)
- Session control responses
- Schedule previews

Python attributes are snake_case; the JSON wire names are camelCase.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


Attention = Literal["foreground", "background"]
SessionStatus = Literal["idle", "running", "paused", "ended"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Timeline ---

class TimelineItem(CamelModel):
    recipe_id: str
    recipe_name: str
    step_index: int = Field(..., ge=0)
    text: str
    attention: Attention
    start_sec: int = Field(..., ge=0)
    end_sec: int = Field(..., ge=0)
    uid: Optional[str] = None  # assigned per session at creation

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.end_sec < self.start_sec:
            raise ValueError("endSec must not be before startSec")
        return self


class ScheduleResult(CamelModel):
    items: list[TimelineItem]
    total_duration_sec: int = Field(0, ge=0)


# --- Tick snapshot ---

class ActiveItem(TimelineItem):
    remaining_sec: int


class UpcomingItem(TimelineItem):
    starts_in_sec: int


class CurrentItems(CamelModel):
    foreground: Optional[ActiveItem] = None
    background: list[ActiveItem] = []


class SessionRef(CamelModel):
    id: str
    status: SessionStatus


class TickState(CamelModel):
    elapsed_sec: int
    current: CurrentItems
    next_foreground: Optional[UpcomingItem] = None
    session: SessionRef


# --- Session control ---

class SessionCreateRequest(CamelModel):
    """Either a full schedule or a reference to a stored preview."""
    items: Optional[list[TimelineItem]] = None
    total_duration_sec: Optional[int] = Field(None, ge=0)
    preview_id: Optional[str] = None


class SessionCreatedResponse(CamelModel):
    id: str
    status: SessionStatus
    total_duration_sec: int


class SessionStatusResponse(CamelModel):
    ok: bool = True
    status: SessionStatus


class SkipResponse(CamelModel):
    ok: bool = True
    snapshot: TickState


class OkResponse(CamelModel):
    ok: bool = True


# --- Schedule previews ---

class PreviewCreatedResponse(CamelModel):
    preview_id: str
    schedule: ScheduleResult
