from fastapi import APIRouter, Depends

from simmer.deps import get_session_control
from simmer.infra.redis_client import get_redis
from simmer.services.session_control import SessionControl

router = APIRouter()


@router.get("/ready")
async def ready(control: SessionControl = Depends(get_session_control)):
    redis_ok = False
    try:
        r = await get_redis()
        redis_ok = bool(await r.ping())
    except Exception:
        pass
    return {"ok": True, "redis_ok": redis_ok, "sessions": len(control.registry)}
