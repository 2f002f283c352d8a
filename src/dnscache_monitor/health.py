"""Aggregate health statistics and the flush recommendation."""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from .cache import CacheEntry
from .config import (
    logger,
    SLOW_THRESHOLD_MS,
    SLOW_RESOLVER_MS,
    FLUSH_MIN_HEALTH_PCT,
    FLUSH_MIN_ENTRIES,
    FLUSH_MAX_AVG_MS,
    FLUSH_MIN_REACHABLE,
    FLUSH_STALE_FRACTION,
    CACHE_HIT_THRESHOLD_MS,
)
from .probe import ProbeResult

STATUS_NO_DATA = "no-data"
STATUS_DEGRADED = "degraded"
STATUS_SLOW = "slow"
STATUS_GOOD = "good"

REASON_LOW_HEALTH = "low-health"
REASON_HIGH_LATENCY = "high-latency"
REASON_STALE = "stale-entries"


@dataclass
class HealthThresholds:
    """Policy constants for the health evaluation."""
    slow_threshold_ms: float = SLOW_THRESHOLD_MS
    slow_resolver_ms: float = SLOW_RESOLVER_MS
    min_health_pct: float = FLUSH_MIN_HEALTH_PCT
    min_entries: int = FLUSH_MIN_ENTRIES
    max_avg_ms: float = FLUSH_MAX_AVG_MS
    min_reachable: int = FLUSH_MIN_REACHABLE
    stale_fraction: float = FLUSH_STALE_FRACTION


@dataclass
class AggregateStats:
    """Summary of the entry set after one evaluation."""

    total_entries: int = 0
    reachable_entries: int = 0
    stale_entries: int = 0
    timeout_entries: int = 0
    slow_entries: int = 0
    avg_response_time: float = 0.0
    health_percentage: float = 0.0
    needs_flush: bool = False
    flush_reasons: List[str] = field(default_factory=list)
    status: str = STATUS_NO_DATA

    def log_stats(self):
        """Log the current health summary."""
        logger.info("=== Cache Health ===")
        logger.info(
            f"Entries: {self.total_entries}, Reachable: {self.reachable_entries} "
            f"({self.health_percentage:.1f}%), Stale: {self.stale_entries}, "
            f"Timeouts: {self.timeout_entries}, Slow: {self.slow_entries}, "
            f"Avg response: {self.avg_response_time:.1f}ms"
        )
        if self.needs_flush:
            logger.warning(f"Status: {self.status.upper()} - flush recommended ({', '.join(self.flush_reasons)})")
        else:
            logger.info(f"Status: {self.status.upper()}")


def evaluate(entries: Iterable[CacheEntry], thresholds: Optional[HealthThresholds] = None) -> AggregateStats:
    """
    Recompute AggregateStats from the current entries.

    Every entry that is not reachable (failed, timed out or not yet tested)
    counts as a timeout entry.
    """
    if thresholds is None:
        thresholds = HealthThresholds()

    stats = AggregateStats()
    total_time = 0.0
    for entry in entries:
        stats.total_entries += 1
        if entry.is_stale:
            stats.stale_entries += 1
        if entry.is_reachable:
            stats.reachable_entries += 1
            total_time += entry.last_response_time
            if entry.last_response_time > thresholds.slow_threshold_ms:
                stats.slow_entries += 1
        else:
            stats.timeout_entries += 1

    if stats.reachable_entries:
        stats.avg_response_time = total_time / stats.reachable_entries
    if stats.total_entries:
        stats.health_percentage = 100.0 * stats.reachable_entries / stats.total_entries

    if stats.health_percentage < thresholds.min_health_pct and stats.total_entries > thresholds.min_entries:
        stats.flush_reasons.append(REASON_LOW_HEALTH)
    if stats.avg_response_time > thresholds.max_avg_ms and stats.reachable_entries >= thresholds.min_reachable:
        stats.flush_reasons.append(REASON_HIGH_LATENCY)
    if stats.stale_entries > stats.total_entries * thresholds.stale_fraction:
        stats.flush_reasons.append(REASON_STALE)
    stats.needs_flush = bool(stats.flush_reasons)

    if stats.total_entries == 0:
        stats.status = STATUS_NO_DATA
    elif REASON_LOW_HEALTH in stats.flush_reasons or REASON_STALE in stats.flush_reasons:
        stats.status = STATUS_DEGRADED
    elif REASON_HIGH_LATENCY in stats.flush_reasons or stats.avg_response_time > thresholds.slow_resolver_ms:
        stats.status = STATUS_SLOW
    else:
        stats.status = STATUS_GOOD
    return stats


@dataclass
class QueryCounters:
    """
    Running counters over every scheduled probe since the last reset.

    There is no instrumentation of the OS cache, so "hits" are an estimate:
    a successful probe faster than ``hit_threshold_ms`` is assumed to have
    been answered from the cache.
    """

    total_queries: int = 0
    successful_queries: int = 0
    estimated_cache_hits: int = 0
    estimated_cache_misses: int = 0
    slow_queries: int = 0
    hit_threshold_ms: float = CACHE_HIT_THRESHOLD_MS
    slow_threshold_ms: float = SLOW_THRESHOLD_MS

    def record(self, result: ProbeResult):
        """Count one probe result."""
        self.total_queries += 1
        if not result.succeeded:
            return
        self.successful_queries += 1
        if result.elapsed_ms < self.hit_threshold_ms:
            self.estimated_cache_hits += 1
        else:
            self.estimated_cache_misses += 1
        if result.elapsed_ms > self.slow_threshold_ms:
            self.slow_queries += 1

    @property
    def estimated_hit_ratio(self) -> float:
        """Estimated cache hit ratio as a percentage of successful probes."""
        if self.successful_queries == 0:
            return 0.0
        return (self.estimated_cache_hits / self.successful_queries) * 100

    def reset(self):
        self.total_queries = 0
        self.successful_queries = 0
        self.estimated_cache_hits = 0
        self.estimated_cache_misses = 0
        self.slow_queries = 0

    def log_stats(self):
        logger.info(
            f"Queries: {self.total_queries} ({self.successful_queries} ok), "
            f"Estimated cache hits: {self.estimated_cache_hits} / misses: {self.estimated_cache_misses} "
            f"({self.estimated_hit_ratio:.1f}% est. hit ratio, <{self.hit_threshold_ms:.0f}ms), "
            f"Slow: {self.slow_queries}"
        )
