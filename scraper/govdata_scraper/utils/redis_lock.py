"""Redis locks that keep two vacuum runs of the same mode from overlapping."""
from __future__ import annotations

from typing import Any

from redis.exceptions import LockError

from ..logging import logger


def _client() -> Any:
    from ..config import settings
    import redis

    return redis.from_url(settings.redis_url)


class RunLock:
    """Token-owned lock around one vacuum run.

    Backed by redis-py's ``Lock``: the key holds a random token and both
    release and extend are compare-and-set, so a run whose lock expired
    can never drop the lock a later run now holds.

    When Redis is unreachable the run proceeds unlocked; overlapping runs
    only repeat work because every write is an idempotent upsert.
    """

    def __init__(self, name: str, timeout: int | None = None) -> None:
        if timeout is None:
            from ..config import settings

            timeout = settings.vacuum_config.run_lock_timeout_seconds
        self.name = name
        self.timeout = timeout
        self._lock: Any = None

    @property
    def owned(self) -> bool:
        return self._lock is not None

    def acquire(self) -> bool:
        """Try to take the lock without blocking. Returns True if the run may go ahead."""
        try:
            lock = _client().lock(self.name, timeout=self.timeout, blocking=False)
            acquired = lock.acquire()
        except Exception as exc:
            logger.warning("redis_lock_failed", lock=self.name, error=str(exc))
            return True
        if not acquired:
            logger.info("redis_lock_held", lock=self.name)
            return False
        self._lock = lock
        return True

    def extend(self) -> None:
        """Reset the TTL to the full timeout; called between sources."""
        if self._lock is None:
            return
        try:
            self._lock.reacquire()
        except LockError as exc:
            logger.error("redis_lock_lost", lock=self.name, error=str(exc))
            self._lock = None
        except Exception as exc:
            logger.warning("redis_lock_extend_failed", lock=self.name, error=str(exc))

    def release(self) -> None:
        if self._lock is None:
            return
        lock, self._lock = self._lock, None
        try:
            lock.release()
        except LockError as exc:
            logger.warning("redis_lock_not_owned", lock=self.name, error=str(exc))
        except Exception as exc:
            logger.warning("redis_unlock_failed", lock=self.name, error=str(exc))


def lock_is_held(name: str) -> bool:
    """True when some process holds ``name``; False if Redis cannot tell."""
    try:
        return bool(_client().exists(name))
    except Exception as exc:
        logger.warning("redis_lock_check_failed", lock=name, error=str(exc))
        return False
