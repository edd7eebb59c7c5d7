from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import ContextManager, Iterator, Protocol

import redis
from redis.exceptions import LockError

_LOG = logging.getLogger("rottie.phone_locks")


class PhoneLockTimeout(Exception):
    pass


class PhoneLocks(Protocol):
    def hold(self, phone_number: str) -> ContextManager[None]:
        ...


class InMemoryPhoneLocks:
    """Per-number locks for a single process. Entries are dropped once released."""

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._guard = Lock()
        self._locks: dict[str, tuple[Lock, int]] = {}

    def _acquire_entry(self, phone_number: str) -> Lock:
        with self._guard:
            lock, users = self._locks.get(phone_number, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[phone_number] = (lock, users + 1)
            return lock

    def _release_entry(self, phone_number: str) -> None:
        with self._guard:
            lock, users = self._locks[phone_number]
            if users <= 1:
                del self._locks[phone_number]
            else:
                self._locks[phone_number] = (lock, users - 1)

    @contextmanager
    def hold(self, phone_number: str) -> Iterator[None]:
        lock = self._acquire_entry(phone_number)
        try:
            if not lock.acquire(timeout=self.timeout_seconds):
                raise PhoneLockTimeout(f"Timed out waiting for verification lock on {phone_number[-4:]}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_entry(phone_number)


class RedisPhoneLocks:
    def __init__(self, client: redis.Redis, timeout_seconds: float = 5.0):
        self.client = client
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def hold(self, phone_number: str) -> Iterator[None]:
        lock = self.client.lock(
            f"verify:lock:{phone_number}",
            timeout=self.timeout_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        if not lock.acquire():
            raise PhoneLockTimeout(f"Timed out waiting for verification lock on {phone_number[-4:]}")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                _LOG.warning("Verification lock for ***%s expired before release", phone_number[-4:])


def build_phone_locks(redis_url: str, timeout_seconds: float = 5.0) -> PhoneLocks:
    try:
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisPhoneLocks(client, timeout_seconds=timeout_seconds)
    except Exception:
        _LOG.warning("Redis unavailable; per-phone verification locks are process-local")
        return InMemoryPhoneLocks(timeout_seconds=timeout_seconds)
