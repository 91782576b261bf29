"""In-memory registry of revoked (logged-out) tokens.

Tokens are stored by SHA-256 fingerprint together with their own expiry.
An entry is harmless once that expiry (plus skew) has passed, so pruning is
only there to bound memory. One registry is built per application and
handed to whoever needs it.
"""

import asyncio
import hashlib
import threading
import time
from collections.abc import Callable

from gatehouse.core.logging import get_logger

logger = get_logger(__name__)


def fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationRegistry:
    """Thread-safe set of revoked tokens."""

    def __init__(
        self,
        clock_skew_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, float | None] = {}
        self._lock = threading.Lock()
        self._clock_skew_seconds = clock_skew_seconds
        self._clock = clock
        self._pruner: asyncio.Task[None] | None = None

    def revoke(self, token: str, expires_at: float | None = None) -> None:
        """Revoke a token. Revoking twice is a no-op.

        Args:
            token: The raw bearer token.
            expires_at: The token's ``exp`` claim, used only for pruning.
                Entries without one are kept until ``clear``.
        """
        key = fingerprint(token)
        with self._lock:
            if key in self._entries:
                return
            self._entries[key] = expires_at
        logger.info("Token revoked", token_fingerprint=key[:12])

    def is_revoked(self, token: str) -> bool:
        key = fingerprint(token)
        with self._lock:
            return key in self._entries

    def prune(self) -> int:
        """Drop entries whose token can no longer verify anyway.

        Returns:
            Number of entries removed.
        """
        threshold = self._clock() - self._clock_skew_seconds
        with self._lock:
            expired = [
                key
                for key, expires_at in self._entries.items()
                if expires_at is not None and expires_at <= threshold
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Pruned revoked tokens", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_pruner(self, interval_seconds: float) -> None:
        """Prune periodically on the running event loop."""
        if interval_seconds <= 0 or self._pruner is not None:
            return
        self._pruner = asyncio.create_task(self._prune_forever(interval_seconds))
        logger.info("Revocation pruner started", interval_seconds=interval_seconds)

    async def stop_pruner(self) -> None:
        if self._pruner is None:
            return
        self._pruner.cancel()
        try:
            await self._pruner
        except asyncio.CancelledError:
            pass
        self._pruner = None
        logger.info("Revocation pruner stopped")

    async def _prune_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.prune()
