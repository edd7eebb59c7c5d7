from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol

import redis

from rottie_connect.core.errors import ErrorCode, VerificationError

_LOG = logging.getLogger("rottie.rate_limit")


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    def __init__(self):
        self._data: dict[str, tuple[int, datetime]] = {}
        self._lock = Lock()

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = datetime.now(timezone.utc)
        with self._lock:
            count, expires_at = self._data.get(key, (0, now))
            if expires_at <= now:
                count = 0
                expires_at = now + timedelta(seconds=max(int(window_seconds), 1))
            count += 1
            self._data[key] = (count, expires_at)
            retry_after = max(0, int((expires_at - now).total_seconds()))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=retry_after, current_value=count)


class RedisRateLimiter:
    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        count = int(self.client.incr(key))
        if count == 1:
            self.client.expire(key, int(max(window_seconds, 1)))
        ttl = int(self.client.ttl(key))
        if ttl < 0:
            ttl = int(max(window_seconds, 1))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=ttl, current_value=count)


def build_rate_limiter(redis_url: str) -> RateLimiter:
    try:
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisRateLimiter(client)
    except Exception:
        _LOG.warning("Redis limiter unavailable; fallback to in-memory limiter")
        return InMemoryRateLimiter()


@dataclass(frozen=True)
class EndpointLimits:
    window_seconds: int = 300
    send_limit: int = 10
    check_limit: int = 30

    def limit_for(self, action: str) -> int:
        return self.send_limit if action == "send" else self.check_limit


def _hash_key_part(value: str | None) -> str:
    raw = str(value or "").strip()
    if not raw:
        return "-"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:20]


def enforce_rate_limit(
    limiter: RateLimiter,
    limits: EndpointLimits,
    action: str,
    *,
    client_ip: str,
    phone_number: str | None,
) -> None:
    window = int(max(limits.window_seconds, 1))
    limit = int(max(limits.limit_for(action), 1))
    keys = [f"verify:{action}:ip:{_hash_key_part(client_ip)}"]
    if phone_number:
        keys.append(f"verify:{action}:phone:{_hash_key_part(phone_number)}")

    for key in keys:
        result = limiter.hit(key, limit=limit, window_seconds=window)
        if not result.allowed:
            retry_after = max(result.retry_after_seconds, 1)
            raise VerificationError(
                ErrorCode.RATE_LIMITED,
                f"Too many verification requests. Retry in {retry_after} seconds.",
                retry_after_seconds=retry_after,
            )
