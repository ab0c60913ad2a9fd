"""
Per-account mutual exclusion for balance updates.

Posting reads and rewrites Account.balance, so two postings that
touch the same account must not interleave. The posting engine
always takes SELECT ... FOR UPDATE row locks inside its
transaction; a lock manager adds an explicit critical section on
top of that, which is what keeps SQLite (no row locks) and
multi-process deployments behind a shared Redis correct.

Two backends:

1. LocalLockManager: one re-entrant lock per account id, shared by
   all threads of the process.
2. RedisLockManager: SET NX EX keys with a random token, so any
   number of processes can share one critical section per account.

Both expose acquire(account_id) -> release callable and raise
LockTimeoutError instead of blocking forever.

Usage:

    release = manager.acquire(account.id)
    try:
        ...
    finally:
        release()

The UnitOfWork is the only caller in the application; it holds
the releases until its transaction commits or rolls back.
"""

from __future__ import annotations

import threading
import time
import uuid
from functools import lru_cache
from typing import Callable

import redis

from ledger_core.config import get_settings
from ledger_core.exceptions import LockTimeoutError

Release = Callable[[], None]


class LocalLockManager:
    """
    In-process locks keyed by account id.

    Locks are re-entrant per thread and created on first use.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._locks: dict[int, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, account_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock

    def acquire(self, account_id: int) -> Release:
        lock = self._lock_for(account_id)
        if not lock.acquire(timeout=self.timeout):
            raise LockTimeoutError(
                f"Could not lock account {account_id} within {self.timeout}s",
                details={"account_id": account_id, "timeout": self.timeout},
            )
        return lock.release


class RedisLockManager:
    """
    Redis-backed locks keyed by account id.

    The TTL frees a key left behind by a crashed process. Release
    only deletes the key if it still holds our token, so a lock
    that expired and was taken by someone else is left alone.
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        client: redis.Redis,
        ttl: int = 30,
        timeout: float = 5.0,
        poll_interval: float = 0.05,
        namespace: str = "ledger:account",
    ) -> None:
        self.client = client
        self.ttl = ttl
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.namespace = namespace

    def key_for(self, account_id: int) -> str:
        return f"lock:{self.namespace}:{account_id}"

    def acquire(self, account_id: int) -> Release:
        key = self.key_for(account_id)
        token = str(uuid.uuid4())
        deadline = time.monotonic() + self.timeout

        while not self.client.set(key, token, nx=True, ex=self.ttl):
            if time.monotonic() >= deadline:
                raise LockTimeoutError(
                    f"Could not lock account {account_id} within {self.timeout}s",
                    details={"key": key, "timeout": self.timeout},
                )
            time.sleep(self.poll_interval)

        def release() -> None:
            self.client.eval(self.RELEASE_SCRIPT, 1, key, token)

        return release


@lru_cache()
def get_lock_manager() -> LocalLockManager | RedisLockManager:
    """
    Return the process-wide lock manager chosen by LOCK_BACKEND.

    Cached so every session in the process shares the same locks.
    """
    settings = get_settings()
    if settings.LOCK_BACKEND == "redis":
        return RedisLockManager(
            redis.Redis.from_url(settings.REDIS_URL),
            ttl=settings.LOCK_TTL_SECONDS,
            timeout=settings.LOCK_TIMEOUT_SECONDS,
        )
    return LocalLockManager(timeout=settings.LOCK_TIMEOUT_SECONDS)
