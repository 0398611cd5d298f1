"""Moving-window rate limiting for chat requests.

``RateLimiter`` holds the policy (N requests per trailing window) and
delegates bookkeeping to a ``limits`` storage backend. ``MemoryStorage`` is
process-local and resets on restart; the Redis storage built in
``educonnect.infrastructure.redis`` shares the window across processes.
"""
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.errors import StorageError
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter

from educonnect.core.logging import get_logger

logger = get_logger(__name__)

CHAT_NAMESPACE = "chat"


class RateLimiter:
    """Admit at most ``max_requests`` calls per identity per trailing window.

    Args:
        storage: ``limits`` storage; in-memory when omitted
        max_requests: Calls admitted per window
        window_seconds: Length of the trailing window

    Example:
        >>> limiter = RateLimiter(max_requests=10, window_seconds=60)
        >>> limiter.allow("student-42")
        True
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        max_requests: int = 10,
        window_seconds: int = 60,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.limit = RateLimitItemPerSecond(max_requests, window_seconds)
        self.strategy = MovingWindowRateLimiter(self.storage)

    @property
    def backend(self) -> str:
        schemes = getattr(self.storage, "STORAGE_SCHEME", None)
        return schemes[0] if schemes else type(self.storage).__name__

    def allow(self, identity: str) -> bool:
        """Record one call for ``identity`` if the window has room.

        A storage outage admits the call rather than blocking chat.
        """
        try:
            allowed = self.strategy.hit(self.limit, CHAT_NAMESPACE, identity)
        except StorageError as e:
            logger.error(
                f"Rate limit check failed for {identity}: {e.storage_error}",
                extra={"owner_id": identity},
            )
            return True

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {identity}",
                extra={"owner_id": identity},
            )
        return allowed

    def reset(self) -> None:
        self.storage.reset()
