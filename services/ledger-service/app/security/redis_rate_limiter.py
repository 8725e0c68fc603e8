"""Redis-backed limiter shared by every replica of the service."""

from __future__ import annotations

import time
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError

# KEYS[1] attempts zset, KEYS[2] sequence counter
# ARGV window_ms, max_attempts, now_ms
_ALLOW_SCRIPT: Final[str] = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], 0, tonumber(ARGV[3]) - tonumber(ARGV[1]))
if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[2]) then
    return 0
end
local seq = redis.call('INCR', KEYS[2])
redis.call('PEXPIRE', KEYS[2], ARGV[1])
redis.call('ZADD', KEYS[1], ARGV[3], ARGV[3] .. ':' .. seq)
redis.call('PEXPIRE', KEYS[1], ARGV[1])
return 1
"""


class RedisSlidingWindowRateLimiter:
    """Attempt limiter backed by one sorted set per key."""

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "ledger:attempts",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(_ALLOW_SCRIPT)

    def _keys(self, key: str) -> tuple[str, str]:
        attempts_key = f"{self._key_prefix}:{key}"
        return attempts_key, f"{attempts_key}:seq"

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        attempts_key, seq_key = self._keys(key)
        try:
            result = self._script(
                keys=[attempts_key, seq_key],
                args=[self._window_ms, self._max_requests, now_ms],
            )
            return int(result) == 1
        except ResponseError as exc:
            message = str(exc).lower()
            if "unknown command" in message and "eval" in message:
                return self._allow_without_lua(attempts_key, seq_key, now_ms)
            raise

    def reset(self, key: str) -> None:
        self._client.delete(*self._keys(key))

    def _allow_without_lua(self, attempts_key: str, seq_key: str, now_ms: int) -> bool:
        """Non-atomic variant for Redis-compatible servers without scripting."""
        self._client.zremrangebyscore(attempts_key, 0, now_ms - self._window_ms)
        if self._client.zcard(attempts_key) >= self._max_requests:
            return False
        seq = self._client.incr(seq_key)
        self._client.pexpire(seq_key, self._window_ms)
        self._client.zadd(attempts_key, {f"{now_ms}:{seq}": now_ms})
        self._client.pexpire(attempts_key, self._window_ms)
        return True
