# ingres/api/ratelimit.py
import logging
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ingres.services.kv import KVStore

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _hit(kv_provider: Callable[[], KVStore], key: str, window_seconds: int) -> int:
    kv = kv_provider()
    count = kv.incr(key)
    if count == 1:
        kv.expire(key, window_seconds)
    return count


def make_rate_limiter(
    kv_provider: Callable[[], KVStore],
    limit: int,
    window_seconds: int,
    path_prefix: str = "/api/ingres",
):
    """Fixed-window counter per client IP, kept in the KV tier.

    Register with ``app.middleware("http")(make_rate_limiter(...))``.
    KV calls block (Redis), so they run in the threadpool.
    A KV failure lets the request through.
    """

    async def rate_limit(request: Request, call_next):
        if limit <= 0 or not request.url.path.startswith(path_prefix):
            return await call_next(request)

        key = f"ratelimit:{client_ip(request)}"
        try:
            count = await run_in_threadpool(_hit, kv_provider, key, window_seconds)
        except Exception as e:
            logger.warning("rate limiter unavailable: %s", e)
            return await call_next(request)

        if count > limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests"},
                headers={"Retry-After": str(window_seconds)},
            )
        return await call_next(request)

    return rate_limit
