import json
from simmer.infra.redis_client import get_redis

async def get_json(key: str):
    r = await get_redis()
    raw = await r.get(key)
    return json.loads(raw) if raw else None

async def set_json(key: str, value, ttl_sec: int):
    r = await get_redis()
    await r.set(key, json.dumps(value), ex=ttl_sec)

async def touch(key: str, ttl_sec: int) -> bool:
    """Extend the TTL of an existing key. Returns False if the key is gone."""
    r = await get_redis()
    return bool(await r.expire(key, ttl_sec))
