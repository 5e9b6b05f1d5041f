"""
Redis Cache-Aside Layer

Provides:
- get-or-compute reads with per-resource TTL classes
- Direct get/set/delete with JSON serialization
- Bulk invalidation by key pattern (bounded SCAN)
- Explicit connection lifecycle (disconnected/connecting/ready/failed)

Every operation checks the lifecycle state first. Anything other than
READY turns the layer into a pass-through: reads miss, writes are skipped
and get_or_set simply runs the compute function. Store errors are logged
and counted, never raised, so the cache only ever affects latency.

Configuration (see ticketdesk.config.Settings):
- REDIS_URL: Redis connection string
- ENABLE_CACHE: Enable/disable caching (default: true)
- CACHE_SOCKET_TIMEOUT: Socket connect/read timeout in seconds
- CACHE_MAX_SCAN_KEYS: Upper bound on keys visited by one pattern delete

Key namespaces:
- moderators:*            roster of assignable moderators/admins
- moderator:{id}:skills   per-moderator skill entries
- tickets:*               ticket lists and details
- counts:* / stats:*      dashboard counters
- session:{id}            user sessions
"""
import inspect
import json
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

import redis.asyncio as redis
from pydantic_core import to_jsonable_python

from ticketdesk.config import get_settings
from ticketdesk.models.schemas import CacheState, CacheStats
from ticketdesk.utils.logger import get_logger

logger = get_logger(__name__)

SCAN_COUNT = 100


class CacheTTL:
    """TTL classes in seconds"""
    MODERATOR_SKILLS = 3600   # 1 hour, skills change infrequently
    TICKET_STATS = 300        # 5 minutes
    USER_SESSION = 86400      # 24 hours
    RECENT_TICKETS = 180      # 3 minutes, ticket lists and details
    TICKET_COUNTS = 60        # 1 minute, dashboard counters
    MODERATOR_LIST = 1800     # 30 minutes, assignable roster
    DEFAULT = 300


class CacheKeys:
    """Cache key builders"""

    @staticmethod
    def moderator_skills(moderator_id: str) -> str:
        return f"moderator:{moderator_id}:skills"

    @staticmethod
    def all_moderators() -> str:
        return "moderators:all"

    @staticmethod
    def moderators_with_skills() -> str:
        return "moderators:with-skills"

    @staticmethod
    def ticket_stats(user_id: str, role: str) -> str:
        return f"stats:tickets:{role}:{user_id}"

    @staticmethod
    def ticket_list(scope: str, status: Optional[str] = None, page: int = 1) -> str:
        return f"tickets:list:{scope}:{status or 'all'}:page:{page}"

    @staticmethod
    def recent_tickets(limit: int = 10) -> str:
        return f"tickets:recent:{limit}"

    @staticmethod
    def ticket_detail(ticket_id: str, scope: str) -> str:
        return f"tickets:detail:{ticket_id}:{scope}"

    @staticmethod
    def ticket_counts(user_id: str, role: str) -> str:
        return f"counts:tickets:{role}:{user_id}"

    @staticmethod
    def user_session(user_id: str) -> str:
        return f"session:{user_id}"


ComputeFn = Callable[[], Union[Any, Awaitable[Any]]]


async def _call(compute_fn: ComputeFn) -> Any:
    """Run a sync or async compute function"""
    result = compute_fn()
    if inspect.isawaitable(result):
        result = await result
    return result


# ==================== Redis Client ====================

class RedisCache:
    """Redis cache-aside client with explicit connection state."""

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[redis.Redis] = None,
        enabled: Optional[bool] = None,
        max_scan_keys: Optional[int] = None,
        socket_timeout: Optional[float] = None,
    ):
        """
        Initialize cache client.

        Args:
            url: Redis URL (settings.redis_url if None)
            client: Pre-built redis.asyncio client (built from url on connect if None)
            enabled: Override settings.cache_configured (ENABLE_CACHE and a REDIS_URL)
            max_scan_keys: Upper bound on keys visited per delete_pattern
            socket_timeout: Connect/read timeout in seconds
        """
        settings = get_settings()
        self.url = url or settings.redis_url
        self.client = client
        self.enabled = settings.cache_configured if enabled is None else enabled
        self.max_scan_keys = max_scan_keys or settings.cache_max_scan_keys
        self.socket_timeout = socket_timeout or settings.cache_socket_timeout
        self._state = CacheState.DISCONNECTED
        self._hits = 0
        self._misses = 0
        self._errors = 0

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == CacheState.READY and self.client is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> bool:
        """
        Connect and ping Redis.

        Returns:
            True when the cache is READY. On failure the state is FAILED and
            every operation runs in pass-through mode.
        """
        if not self.enabled or (self.client is None and not self.url):
            logger.info("Cache disabled or REDIS_URL unset, running without Redis")
            self._state = CacheState.DISCONNECTED
            return False

        self._state = CacheState.CONNECTING
        try:
            if self.client is None:
                self.client = redis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=self.socket_timeout,
                    socket_timeout=self.socket_timeout,
                )
            await self.client.ping()
            self._state = CacheState.READY
            logger.info("Redis connected", extra={"redis_url": self.url})
            return True
        except Exception as e:
            self._state = CacheState.FAILED
            logger.warning(f"Redis connection failed: {e}, running without cache")
            return False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self.client is not None:
            try:
                await self.client.aclose()
                logger.info("Redis disconnected")
            except Exception as e:
                logger.warning(f"Error closing Redis connection: {e}")
        self._state = CacheState.DISCONNECTED

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _record_error(self, operation: str, key: str, error: Exception) -> None:
        self._errors += 1
        logger.warning(
            f"cache_{operation}_failed: {error}",
            extra={"operation": operation, "key": key, "error": str(error)},
        )

    async def _read(self, key: str) -> Tuple[bool, Any]:
        """Return (hit, value); any store error counts as a miss."""
        if not self.is_ready:
            return False, None

        try:
            raw = await self.client.get(key)
        except Exception as e:
            self._record_error("get", key, e)
            return False, None

        if raw is None:
            self._misses += 1
            return False, None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._record_error("decode", key, e)
            return False, None

        self._hits += 1
        logger.debug("cache_hit", extra={"key": key})
        return True, value

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value (deserialized from JSON) or None if not found
        """
        _, value = await self._read(key)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (serialized to JSON; pydantic models allowed)
            ttl: Time-to-live in seconds (default: CacheTTL.DEFAULT)

        Returns:
            True if stored, False otherwise
        """
        if not self.is_ready:
            return False

        try:
            serialized = json.dumps(value, default=to_jsonable_python)
            await self.client.set(key, serialized, ex=int(ttl or CacheTTL.DEFAULT))
            logger.debug("cache_set", extra={"key": key, "ttl": ttl})
            return True
        except Exception as e:
            self._record_error("set", key, e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.is_ready:
            return False

        try:
            await self.client.delete(key)
            logger.debug("cache_deleted", extra={"key": key})
            return True
        except Exception as e:
            self._record_error("delete", key, e)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a glob pattern.

        SCAN is used instead of KEYS and at most ``max_scan_keys`` keys are
        visited, so one call never walks an unbounded keyspace.

        Args:
            pattern: Key pattern (e.g., "tickets:*")

        Returns:
            Number of keys deleted
        """
        if not self.is_ready:
            return 0

        deleted = 0
        visited = 0
        batch = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=SCAN_COUNT):
                batch.append(key)
                visited += 1
                if len(batch) >= SCAN_COUNT:
                    deleted += await self.client.delete(*batch)
                    batch = []
                if visited >= self.max_scan_keys:
                    logger.warning(
                        f"Pattern delete stopped after {visited} keys",
                        extra={"pattern": pattern},
                    )
                    break

            if batch:
                deleted += await self.client.delete(*batch)

            if deleted:
                logger.info(
                    f"Invalidated {deleted} cache keys matching {pattern}",
                    extra={"pattern": pattern, "count": deleted},
                )
            return deleted
        except Exception as e:
            self._record_error("delete_pattern", pattern, e)
            return deleted

    async def get_or_set(
        self,
        key: str,
        compute_fn: ComputeFn,
        ttl: Optional[int] = None
    ) -> Any:
        """
        Cache-aside read.

        Returns the cached value on a hit. On a miss (or when the store is
        unavailable) ``compute_fn`` runs exactly once; a non-None result is
        written back best-effort. Errors raised by ``compute_fn`` propagate.

        Args:
            key: Cache key
            compute_fn: Sync or async zero-argument callable producing the value
            ttl: Time-to-live in seconds

        Returns:
            Cached or freshly computed value
        """
        if not self.is_ready:
            return await _call(compute_fn)

        hit, value = await self._read(key)
        if hit:
            return value

        value = await _call(compute_fn)
        if value is not None:
            await self.set(key, value, ttl=ttl)
        return value

    async def invalidate_resource(self, resource: str) -> int:
        """Invalidate every entry of a resource namespace (e.g. "tickets")."""
        return await self.delete_pattern(f"{resource}:*")

    async def clear(self) -> bool:
        """Clear the whole cache database (use with caution!)."""
        if not self.is_ready:
            return False

        try:
            await self.client.flushdb()
            logger.warning("Cache cleared (FLUSHDB)")
            return True
        except Exception as e:
            self._record_error("clear", "*", e)
            return False

    def stats(self) -> CacheStats:
        """In-process hit/miss/error counters and connection state."""
        return CacheStats(
            state=self._state,
            hits=self._hits,
            misses=self._misses,
            errors=self._errors,
        )


# ==================== Global Cache Instance ====================

_cache: Optional[RedisCache] = None


def get_cache() -> RedisCache:
    """Process-wide cache instance (created lazily, not yet connected)."""
    global _cache
    if _cache is None:
        _cache = RedisCache()
    return _cache
