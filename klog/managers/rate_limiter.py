"""
Per-client token bucket rate limiting.

Each client address gets a bucket holding up to ``burst`` tokens, refilled
at ``rate`` tokens per second; a request spends one token. Buckets live in a
fixed number of shards, each with its own lock, so concurrent requests from
different clients rarely contend. Buckets idle longer than ``idle_seconds``
are dropped by :meth:`IPRateLimiter.evict_idle`, which the scheduler runs.
"""

from dataclasses import dataclass
from hashlib import blake2b
from threading import Lock
from time import monotonic

from klog.configs import settings

DEFAULT_SHARDS = 16


@dataclass(slots=True)
class TokenBucket:
    tokens: float
    updated_at: float


@dataclass(frozen=True, slots=True)
class RateDecision:
    """Outcome of one rate limit check."""

    allowed: bool
    retry_after: float = 0.0


class _Shard:
    __slots__ = ("buckets", "lock")

    def __init__(self) -> None:
        self.buckets: dict[str, TokenBucket] = {}
        self.lock = Lock()


class IPRateLimiter:
    """
    Sharded map of token buckets keyed by client address.

    Attributes:
        rate: Tokens added per second.
        burst: Bucket capacity.
        idle_seconds: Age after which an untouched bucket may be evicted.
    """

    def __init__(
        self,
        rate: float = settings.RATE_LIMIT_PER_SECOND,
        burst: int = settings.RATE_LIMIT_BURST,
        idle_seconds: float = settings.RATE_LIMIT_IDLE_SECONDS,
        shards: int = DEFAULT_SHARDS,
    ) -> None:
        if rate <= 0 or burst < 1:
            mssg = "Rate must be positive and burst at least 1"
            raise ValueError(mssg)
        self.rate = rate
        self.burst = burst
        self.idle_seconds = idle_seconds
        self._shards = [_Shard() for _ in range(shards)]

    def _shard_for(self, key: str) -> _Shard:
        digest = blake2b(key.encode("utf-8"), digest_size=4).digest()
        return self._shards[int.from_bytes(digest) % len(self._shards)]

    def check(self, key: str, now: float | None = None) -> RateDecision:
        """
        Spend one token for ``key`` if available.

        Args:
            key: Client identifier, usually the remote address.
            now: Monotonic clock reading, for tests.

        Returns:
            RateDecision: Whether the request may proceed and, if not, how
            long until a token is available.
        """
        now = monotonic() if now is None else now
        shard = self._shard_for(key)
        with shard.lock:
            bucket = shard.buckets.get(key)
            if bucket is None:
                bucket = shard.buckets[key] = TokenBucket(tokens=self.burst, updated_at=now)
            elapsed = max(now - bucket.updated_at, 0.0)
            bucket.tokens = min(self.burst, bucket.tokens + elapsed * self.rate)
            bucket.updated_at = now
            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return RateDecision(allowed=True)
            return RateDecision(allowed=False, retry_after=(1 - bucket.tokens) / self.rate)

    def evict_idle(self, now: float | None = None) -> int:
        """
        Drop buckets untouched for longer than ``idle_seconds``.

        An evicted client starts again with a full bucket, which an idle
        bucket would have refilled to anyway.

        Returns:
            int: Number of buckets removed.
        """
        now = monotonic() if now is None else now
        cutoff = now - self.idle_seconds
        removed = 0
        for shard in self._shards:
            with shard.lock:
                stale = [key for key, b in shard.buckets.items() if b.updated_at < cutoff]
                for key in stale:
                    del shard.buckets[key]
                removed += len(stale)
        return removed

    def __len__(self) -> int:
        return sum(len(shard.buckets) for shard in self._shards)
