"""
Redis-based distributed lock.

Used by the expiry sweeper so that only one process runs a sweep at a
time.  The sweep is idempotent on its own; the lock just keeps several
API workers from all calling the order-routing gateway for the same
overdue permits.

Acquire is ``SET NX EX``; release is an atomic check-and-delete (Lua)
so a holder whose TTL lapsed can never drop someone else's lock.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 300,
        namespace: str = "permits",
    ):
        self.redis = client
        self.key = f"{namespace}:lock:{key}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """Try once, without waiting.  Returns True on success."""
        self.held = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.held

    async def release(self) -> bool:
        """Release only if we still own the lock.  Returns True if deleted."""
        if not self.held:
            return False
        deleted = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        self.held = False
        return bool(deleted)

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
