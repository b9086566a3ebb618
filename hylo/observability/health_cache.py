"""TTL cache of provider health snapshots.

Replaces module-level status caches: the cache is an explicit object passed
to whoever needs it, and takes an injectable clock so tests can control
expiry deterministically.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from hylo.core import constants
from hylo.providers.base import LLMProvider, ProviderName, ProviderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time availability of one provider.

    Only availability and status are cached. Capacity and metrics change
    with every request, so the evaluator reads them from the provider
    directly.
    """

    provider: ProviderName
    available: bool
    status: ProviderStatus
    expires_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "available": self.available,
            "status": self.status.value,
            "expires_at": self.expires_at,
        }


class HealthCache:
    """Maps provider -> HealthSnapshot with pull-through refresh.

    Args:
        ttl_seconds: Snapshot lifetime; 0 refreshes on every read
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = constants.HEALTH_CACHE_TTL if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[ProviderName, HealthSnapshot] = {}
        self.hits = 0
        self.misses = 0

    async def snapshot(self, name: ProviderName, provider: LLMProvider) -> HealthSnapshot:
        """Return a fresh snapshot, checking the provider if the cached one expired.

        An availability check that raises marks the provider unavailable
        until the next refresh.
        """
        cached = self._entries.get(name)
        if cached is not None and self._clock() < cached.expires_at:
            self.hits += 1
            return cached

        self.misses += 1
        try:
            available = bool(await provider.is_available())
            status = provider.get_status() if available else ProviderStatus.UNAVAILABLE
        except Exception as e:
            logger.warning("Health check for %s failed: %s", name.value, e)
            available, status = False, ProviderStatus.UNAVAILABLE

        snapshot = HealthSnapshot(
            provider=name,
            available=available,
            status=status,
            expires_at=self._clock() + self.ttl_seconds,
        )
        self._entries[name] = snapshot
        if cached is not None and cached.available != snapshot.available:
            logger.info(
                "Provider %s availability changed: %s -> %s",
                name.value, cached.available, snapshot.available,
            )
        return snapshot

    async def snapshot_many(
        self, providers: Iterable[Tuple[ProviderName, LLMProvider]]
    ) -> Dict[ProviderName, HealthSnapshot]:
        """Snapshot several providers concurrently, preserving input order."""
        items = list(providers)
        snapshots = await asyncio.gather(*(self.snapshot(n, p) for n, p in items))
        return {name: snap for (name, _), snap in zip(items, snapshots)}

    def peek(self, name: ProviderName) -> Optional[HealthSnapshot]:
        """Return the cached snapshot without refreshing, or None if expired."""
        cached = self._entries.get(name)
        if cached is None or self._clock() >= cached.expires_at:
            return None
        return cached

    def invalidate(self, name: Optional[ProviderName] = None) -> None:
        if name is None:
            self._entries.clear()
        else:
            self._entries.pop(name, None)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
