import threading
import time
from dataclasses import dataclass

from .regions import EndpointDescriptor, normalize_url

MANIFEST_CACHE_TTL_SECONDS = 5 * 60
FAILURE_COOLDOWN_SECONDS = 30


class ManifestCache:
    """Resolved candidate lists keyed by manifest source URL.

    Entries expire by wall-clock comparison on read; nothing evicts them.
    """

    def __init__(self, ttl_seconds: float = MANIFEST_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, list[EndpointDescriptor]]] = {}
        self._lock = threading.Lock()

    def get(self, source_url: str) -> list[EndpointDescriptor] | None:
        with self._lock:
            entry = self._entries.get(source_url)
        if entry is None:
            return None
        expires_at, endpoints = entry
        if time.time() >= expires_at:
            return None
        return list(endpoints)

    def put(self, source_url: str, endpoints: list[EndpointDescriptor]) -> None:
        with self._lock:
            self._entries[source_url] = (time.time() + self.ttl_seconds, list(endpoints))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class FailureCooldownTracker:
    """Remembers endpoints that failed recently so probing can skip them."""

    def __init__(self, cooldown_seconds: float = FAILURE_COOLDOWN_SECONDS):
        self.cooldown_seconds = cooldown_seconds
        self._failed_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def in_cooldown(self, url: str) -> bool:
        with self._lock:
            failed_at = self._failed_at.get(normalize_url(url))
        if failed_at is None:
            return False
        return time.time() - failed_at < self.cooldown_seconds

    def mark_failed(self, url: str) -> None:
        with self._lock:
            self._failed_at[normalize_url(url)] = time.time()

    def mark_succeeded(self, url: str) -> None:
        with self._lock:
            self._failed_at.pop(normalize_url(url), None)

    def clear(self) -> None:
        with self._lock:
            self._failed_at.clear()


@dataclass
class DiscoveryContext:
    """Caller-owned state shared across discovery calls.

    Calls made without a context share nothing.
    """

    manifest_cache: ManifestCache | None = None
    cooldown: FailureCooldownTracker | None = None

    @classmethod
    def default(cls) -> "DiscoveryContext":
        return cls(manifest_cache=ManifestCache(), cooldown=FailureCooldownTracker())
