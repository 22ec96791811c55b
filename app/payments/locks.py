"""
Redis-based distributed lock for payment operations.

A refund is validated, sent to the gateway and applied in three steps.
The gateway call runs outside any database transaction, so row locks
alone cannot stop two refund requests for the same payment from both
passing validation. DistributedLock serializes those requests across
processes and servers.

Usage:
    from payments.locks import DistributedLock

    with DistributedLock(f"refund:{payment_id}", ttl=30, timeout=10):
        # Only one process refunds this payment at a time
        ...

Note:
    Reconciliation does not use this lock. It relies on
    select_for_update() row locks inside a single transaction.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

logger = logging.getLogger(__name__)


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - TTL releases locks held by crashed processes
        - Token-based ownership prevents release by another holder
        - Blocking and non-blocking acquisition modes
        - Context manager support

    Example:
        lock = DistributedLock("refund:123", ttl=30, blocking=True, timeout=5.0)
        try:
            with lock:
                refund()
        except LockAcquisitionError:
            # Another process is refunding the same payment
            ...

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Lock TTL in seconds
        blocking: If True, acquire() retries until the timeout
        timeout: Maximum wait time in seconds (only if blocking=True)
        poll_interval: Sleep between attempts in blocking mode
    """

    # Delete the key only if it still holds our token
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
        poll_interval: float = 0.05,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def _try_acquire(self, redis: Redis, token: str) -> bool:
        """Try once to acquire the lock."""
        return bool(redis.set(self.key, token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or was not released within the timeout (blocking)
        """
        token = str(uuid.uuid4())
        redis = self._get_redis()

        if self.blocking:
            deadline = time.monotonic() + self.timeout
            while True:
                if self._try_acquire(redis, token):
                    self._token = token
                    return True
                if time.monotonic() >= deadline:
                    break
                time.sleep(self.poll_interval)

            logger.warning(
                "Timed out waiting for lock",
                extra={"key": self.key, "timeout": self.timeout},
            )
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis, token):
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        self._token = token
        return True

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Returns:
            True if the lock was released, False if we did not hold it
            (never acquired, already released, or expired and taken over)
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        """Check if we currently hold the lock."""
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = [
    "DistributedLock",
]
