# crash_backend/app/event_log.py

import os
import json
import datetime
import asyncio
import httpx
import logging
from typing import Optional, Dict, Any

CLICKHOUSE_ENABLED = os.getenv("CLICKHOUSE_ENABLED", "0") == "1"
CLICKHOUSE_HOST = os.getenv("CLICKHOUSE_HOST", "http://localhost:8123/")
CLICKHOUSE_USER = os.getenv("CLICKHOUSE_USER", "default")
CLICKHOUSE_PASSWORD = os.getenv("CLICKHOUSE_PASSWORD", "")
CLICKHOUSE_DB = os.getenv("CLICKHOUSE_DB", "default")
CLICKHOUSE_TABLE = os.getenv("CLICKHOUSE_TABLE", "crash_events")

logger = logging.getLogger("uvicorn.error")

_reachable_lock = asyncio.Lock()
_reachable = False
_last_error: Optional[str] = None


def _auth_tuple():
    return (CLICKHOUSE_USER, CLICKHOUSE_PASSWORD) if (CLICKHOUSE_USER or CLICKHOUSE_PASSWORD) else None


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


async def _exec(client: httpx.AsyncClient, sql: str, *, database: str | None = None) -> None:
    params = {"query": sql}
    if database:
        params["database"] = database
    r = await client.post(CLICKHOUSE_HOST, params=params, auth=_auth_tuple())
    r.raise_for_status()


async def _ping_with_retries(client: httpx.AsyncClient, attempts: int = 3) -> None:
    delay = 0.5
    last_exc: Optional[Exception] = None
    for _ in range(attempts):
        try:
            await _exec(client, "SELECT 1")
            return
        except httpx.HTTPError as e:
            last_exc = e
            await asyncio.sleep(delay)
            delay = min(delay * 1.8, 5.0)
    raise last_exc if last_exc else RuntimeError("Unknown CH ping error")


async def ensure_clickhouse() -> Dict[str, Any]:
    """Pings ClickHouse once and remembers that it answered. Never raises."""
    global _reachable, _last_error

    status = {
        "enabled": CLICKHOUSE_ENABLED,
        "host": CLICKHOUSE_HOST,
        "db": CLICKHOUSE_DB,
        "table": CLICKHOUSE_TABLE,
        "reachable": False,
        "error": None,
    }
    if not CLICKHOUSE_ENABLED:
        status["error"] = "CLICKHOUSE_ENABLED=0"
        return status

    async with _reachable_lock:
        if not _reachable:
            try:
                async with _client(timeout=5.0) as client:
                    await _ping_with_retries(client)
                _reachable = True
            except (httpx.HTTPError, RuntimeError) as e:
                _last_error = f"CH ping failed: {e}"
                status["error"] = _last_error
                return status

    status["reachable"] = True
    return status


async def log_event(event_type: str, payload: dict | None = None) -> None:
    """Appends one engine event to the ClickHouse table. Failures are logged, not raised."""
    if not CLICKHOUSE_ENABLED:
        return
    st = await ensure_clickhouse()
    if not st.get("reachable"):
        return

    row = {
        "ts": datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
        "event_type": event_type,
        "payload": json.dumps(payload or {}, ensure_ascii=False),
    }
    data_to_send = json.dumps(row, ensure_ascii=False) + "\n"
    params = {"query": f"INSERT INTO {CLICKHOUSE_TABLE} FORMAT JSONEachRow", "database": CLICKHOUSE_DB}

    try:
        async with _client(timeout=5.0) as client:
            resp = await client.post(CLICKHOUSE_HOST, params=params, content=data_to_send.encode("utf-8"), auth=_auth_tuple())
            if resp.status_code >= 400:
                logger.warning(f"[CH] insert {CLICKHOUSE_TABLE} failed: status={resp.status_code} body={resp.text!r}")
    except httpx.HTTPError as e:
        logger.warning(f"[CH] insert {CLICKHOUSE_TABLE} exception: {e}")
