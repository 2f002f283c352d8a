"""Tracked resolution-cache entries."""
import time
from dataclasses import dataclass, field
from typing import Optional
from .probe import ProbeResult, NOT_TESTED

# New entries look this old so the scheduler treats them as overdue
BACKDATE_SECONDS = 600.0

SOURCE_CACHE = "cache"
SOURCE_WATCH = "watch"


@dataclass
class CacheEntry:
    """A hostname from the local resolver cache (or the watch list) and its last probe."""

    hostname: str
    ip_address: str = ""
    record_type: str = "A"
    ttl: Optional[int] = None
    source: str = SOURCE_CACHE
    last_result: ProbeResult = NOT_TESTED
    last_tested_at: float = field(default_factory=lambda: time.monotonic() - BACKDATE_SECONDS)
    is_stale: bool = field(init=False)

    def __post_init__(self):
        # Fixed at creation, never recomputed by probing
        self.is_stale = self.ttl is not None and self.ttl <= 0

    @classmethod
    def watched(cls, hostname: str, now: Optional[float] = None) -> "CacheEntry":
        """Create an entry for a watched hostname that is not taken from the cache dump."""
        if now is None:
            now = time.monotonic()
        return cls(hostname=hostname, source=SOURCE_WATCH, last_tested_at=now - BACKDATE_SECONDS)

    @property
    def is_reachable(self) -> bool:
        return self.last_result.succeeded

    @property
    def last_response_time(self) -> Optional[float]:
        """Milliseconds taken by the last successful probe, None otherwise."""
        return self.last_result.elapsed_ms

    def record_result(self, result: ProbeResult, tested_at: float):
        """Store the outcome of a probe."""
        self.last_result = result
        self.last_tested_at = tested_at
        if result.succeeded and self.source == SOURCE_WATCH and result.address:
            self.ip_address = result.address
