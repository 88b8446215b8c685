"""Stored schedule previews.

A schedule produced elsewhere (planner, generator, client) can be stored
once and referenced by ``previewId`` when creating sessions. Identical
schedules map to the same preview id for as long as the preview lives.
"""

import hashlib
import json
import logging
import uuid
from typing import Optional

from simmer.infra.redis_cache import get_json, set_json, touch

from ..schemas import ScheduleResult
from .timeline_store import sanitize

logger = logging.getLogger(__name__)

# Bump to invalidate stored previews when the stored shape changes
PREVIEW_VERSION = "v1"


def _preview_key(preview_id: str) -> str:
    return f"simmer:preview:{PREVIEW_VERSION}:id:{preview_id}"


def _digest_key(digest: str) -> str:
    return f"simmer:preview:{PREVIEW_VERSION}:digest:{digest}"


def schedule_digest(schedule: ScheduleResult) -> str:
    payload = schedule.model_dump(mode="json", exclude={"items": {"__all__": {"uid"}}})
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


async def store_preview(schedule: ScheduleResult, ttl_sec: int) -> tuple[str, ScheduleResult]:
    """Store a schedule and return (preview_id, stored schedule)."""
    clean = sanitize(schedule)
    for item in clean.items:
        item.uid = None
    digest = schedule_digest(clean)

    existing = await get_json(_digest_key(digest))
    if existing and await touch(_preview_key(existing["preview_id"]), ttl_sec):
        await touch(_digest_key(digest), ttl_sec)
        logger.info(f"Reusing schedule preview {existing['preview_id']}")
        return existing["preview_id"], clean

    preview_id = str(uuid.uuid4())
    await set_json(_preview_key(preview_id), clean.model_dump(mode="json", by_alias=True), ttl_sec)
    await set_json(_digest_key(digest), {"preview_id": preview_id}, ttl_sec)
    logger.info(f"Stored schedule preview {preview_id} ({len(clean.items)} items)")
    return preview_id, clean


async def get_preview(preview_id: str) -> Optional[ScheduleResult]:
    raw = await get_json(_preview_key(preview_id))
    if raw is None:
        return None
    return ScheduleResult.model_validate(raw)
