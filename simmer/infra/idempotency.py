"""Idempotency-Key handling for create requests.

A key moves through two records in Redis: ``processing`` while the first
request runs (short TTL, claimed with SET NX), then ``done`` with the
response body and the id of the resource it created. Retries with the
same key and body get the stored response back with ``Idempotent-Replay:
true``.
"""

import hashlib, json, logging
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from simmer.infra.redis_client import get_redis

logger = logging.getLogger("simmer.idempotency")

DONE_TTL_SEC = 60 * 60 * 24
PROCESSING_TTL_SEC = 60

REPLAY_HEADER = "Idempotent-Replay"
IN_FLIGHT_DETAIL = "Request with this Idempotency-Key is still processing. Retry shortly."


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_request(method: str, path: str, body_bytes: bytes) -> str:
    h = hashlib.sha256()
    for part in (method.encode("utf-8"), path.encode("utf-8"), body_bytes or b""):
        h.update(part)
        h.update(b"|")
    return h.hexdigest()


def idempotency_redis_key(route_key: str, idem_key: str) -> str:
    return f"simmer:idemp:{route_key}:{idem_key}"


def _record(state: str, req_hash: str, **fields) -> str:
    record = {
        "state": state,
        "request_hash": req_hash,
        "status": None,
        "body": None,
        "resource_id": None,
        "at": _iso_now(),
    }
    record.update(fields)
    return json.dumps(record)


def _replay(record: dict) -> JSONResponse:
    headers = {REPLAY_HEADER: "true"}
    if record.get("resource_id"):
        headers["X-Resource-Id"] = record["resource_id"]
    return JSONResponse(content=record.get("body"), status_code=int(record.get("status") or 200), headers=headers)


async def idempotency_precheck(
    request: Request, *, route_key: str, required: bool = False
) -> Union[tuple[str, str, bytes], JSONResponse, None]:
    """Gate a mutating request on its Idempotency-Key header.

    Returns:
        (redis_key, request_hash, body_bytes) if the caller should proceed,
        a JSONResponse if a stored response should be replayed, or None if
        no key was sent and the route does not require one.

    Raises:
        HTTPException 400 if the header is required but missing,
        HTTPException 409 if the key is reused with a different payload or
        the first request with this key is still in flight.
    """
    idem_key = request.headers.get("Idempotency-Key")
    if not idem_key:
        if required:
            raise HTTPException(status_code=400, detail="Missing Idempotency-Key header")
        return None

    body_bytes = await request.body()
    req_hash = _hash_request(request.method, request.url.path, body_bytes)
    rkey = idempotency_redis_key(route_key, idem_key)
    r = await get_redis()

    raw = await r.get(rkey)
    if raw:
        record = json.loads(raw)
        if record.get("request_hash") != req_hash:
            raise HTTPException(status_code=409, detail="Idempotency-Key reused with different request payload")
        if record.get("state") == "done":
            logger.info(f"Replaying {route_key} response for resource {record.get('resource_id')}")
            return _replay(record)
        raise HTTPException(status_code=409, detail=IN_FLIGHT_DETAIL)

    # SET NX: a concurrent request with the same key loses here
    if not await r.set(rkey, _record("processing", req_hash), ex=PROCESSING_TTL_SEC, nx=True):
        raise HTTPException(status_code=409, detail=IN_FLIGHT_DETAIL)

    return (rkey, req_hash, body_bytes)


async def idempotency_store_result(
    redis_key: str, req_hash: str, *, status: int, body: dict, resource_id: Optional[str] = None
):
    """Record the finished response and the id of what it created."""
    r = await get_redis()
    await r.set(
        redis_key,
        _record("done", req_hash, status=int(status), body=body, resource_id=resource_id),
        ex=DONE_TTL_SEC,
    )


async def idempotency_clear_key(redis_key: str):
    """Drop the processing marker so the client can retry after a failure."""
    try:
        r = await get_redis()
        await r.delete(redis_key)
    except Exception as e:
        logger.warning(f"Failed to clear idempotency key {redis_key}: {e}")
