import json
import logging

from simmer.infra.redis_client import get_redis

logger = logging.getLogger("simmer.bus")

def channel_for_session(session_id: str) -> str:
    return f"simmer:session:{session_id}"

async def publish_session_updated(session_id: str, status: str, at_ms: int):
    r = await get_redis()
    payload = {"type": "session_updated", "session_id": session_id, "status": status, "at_ms": at_ms}
    await r.publish(channel_for_session(session_id), json.dumps(payload))

async def notify_session_update(session_id: str, status: str, at_ms: int):
    """Best-effort publish; live streams still tick on their own without it."""
    try:
        await publish_session_updated(session_id, status, at_ms)
    except Exception as e:
        logger.error(f"Failed to publish session update for {session_id}: {e}")

async def subscribe_session(session_id: str):
    r = await get_redis()
    pubsub = r.pubsub()
    await pubsub.subscribe(channel_for_session(session_id))
    return pubsub
