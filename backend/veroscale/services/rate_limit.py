"""Perimeter rate limiting: fixed window per client IP, counted in Redis."""
from __future__ import annotations

import ipaddress
import logging

import redis
from redis.exceptions import RedisError
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..domain_errors import DomainError
from ..problem_details import build_problem_details_response

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"
EXEMPT_PATHS = {"/", "/api/health"}

_redis_client = None


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    return _redis_client


def get_client_ip(request: Request) -> str:
    if settings.TRUST_PROXY_HEADERS:
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            try:
                ipaddress.ip_address(real_ip)
                return real_ip
            except ValueError:
                pass

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For may contain a list: client, proxy1, proxy2
            candidate = forwarded.split(",")[0].strip()
            try:
                ipaddress.ip_address(candidate)
                return candidate
            except ValueError:
                pass

    if request.client:
        return request.client.host
    return "unknown"


def _incr_with_ttl(key: str, ttl_seconds: int) -> tuple[int, int]:
    """
    Increment a Redis counter and ensure it has an expiry.
    Returns (value, ttl_remaining_seconds).
    """
    r = _get_redis()
    value = r.incr(key)
    if value == 1:
        r.expire(key, ttl_seconds)
    ttl = r.ttl(key)
    if ttl is None or ttl < 0:
        ttl = ttl_seconds
    return int(value), int(ttl)


def check_rate_limit(request: Request) -> int | None:
    """Count the request; return seconds to wait when over a limit, else None."""
    if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
        return None

    ip = get_client_ip(request)
    window = settings.RATE_LIMIT_WINDOW_SECONDS
    try:
        if request.method == "POST" and request.url.path == LOGIN_PATH:
            attempts, ttl = _incr_with_ttl(f"rl:login:ip:{ip}", window)
            if attempts > settings.RATE_LIMIT_LOGIN_MAX_REQUESTS:
                return ttl

        hits, ttl = _incr_with_ttl(f"rl:api:ip:{ip}", window)
        if hits > settings.RATE_LIMIT_MAX_REQUESTS:
            return ttl
    except RedisError:
        # Fail open if Redis is down to avoid a total API outage.
        logger.exception("Redis error during rate limiting (fail-open)")
    return None


async def rate_limit_middleware(request: Request, call_next):
    if not settings.RATE_LIMIT_ENABLED:
        return await call_next(request)

    # redis-py is blocking; keep it off the event loop.
    retry_after = await run_in_threadpool(check_rate_limit, request)
    if retry_after is not None:
        logger.warning("Rate limit exceeded for %s on %s", get_client_ip(request), request.url.path)
        response: JSONResponse = build_problem_details_response(
            DomainError(
                code="RATE_LIMITED",
                http_status=429,
                message="Too many requests. Try again later.",
                details={"retry_after": retry_after},
            )
        )
        response.headers["Retry-After"] = str(retry_after)
        return response
    return await call_next(request)
