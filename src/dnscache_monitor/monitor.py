"""Monitor object and tick loop."""
import asyncio
import signal
import socket
import time
from typing import List, Optional, Sequence
import httpx
from .backends import CacheBackend, CacheCommandError, create_backend, discover_configured_resolver
from .benchmark import ResolverBenchmark, UNKNOWN_ADDRESS
from .cache import CacheEntry
from .config import (
    logger,
    TICK_INTERVAL,
    SUB_INTERVAL,
    REFRESH_INTERVAL,
    STATS_LOG_INTERVAL,
    WATCH_HOSTNAMES,
)
from .health import AggregateStats, HealthThresholds, QueryCounters, evaluate
from .importer import import_snapshot
from .probe import ProbeResult, ResolutionProbe
from .scheduler import EntryScheduler


class MonitorInitError(Exception):
    """The monitor cannot start (no name resolution or no shutdown signalling)."""


def check_resolution_available(host: str = "localhost"):
    """Raise MonitorInitError if the host resolution API is unusable."""
    try:
        socket.getaddrinfo(host, None)
    except OSError as e:
        raise MonitorInitError(f"Name resolution is not available: {e}") from e


class CacheMonitor:
    """
    Owns the entry set, health statistics, counters and resolver table.

    All state is mutated from the tick loop or from the trigger methods,
    which are expected to run on the same event loop.
    """

    def __init__(
        self,
        backend: CacheBackend,
        probe: ResolutionProbe,
        benchmark: ResolverBenchmark,
        scheduler: Optional[EntryScheduler] = None,
        thresholds: Optional[HealthThresholds] = None,
        watch_hostnames: Sequence[str] = WATCH_HOSTNAMES,
        tick_interval: float = TICK_INTERVAL,
        sub_interval: float = SUB_INTERVAL,
        refresh_interval: float = REFRESH_INTERVAL,
        stats_log_interval: float = STATS_LOG_INTERVAL,
        clock=time.monotonic,
    ):
        self.backend = backend
        self.probe = probe
        self.benchmark = benchmark
        self.scheduler = scheduler or EntryScheduler(probe.resolve, clock=clock)
        self.thresholds = thresholds or HealthThresholds()
        self.watch_hostnames = list(watch_hostnames)
        self.tick_interval = tick_interval
        self.sub_interval = sub_interval
        self.refresh_interval = refresh_interval
        self.stats_log_interval = stats_log_interval
        self.clock = clock

        self.entries: List[CacheEntry] = []
        self.stats = AggregateStats()
        self.counters = QueryCounters(slow_threshold_ms=self.thresholds.slow_threshold_ms)
        self.paused = False
        self.last_tick_at: Optional[float] = None
        self.last_refresh_at: Optional[float] = None
        self.last_stats_log_at: Optional[float] = None
        self._import_pending = True

    # --- Tick ---

    async def _on_probe(self, entry: CacheEntry, result: ProbeResult):
        self.counters.record(result)
        if self.benchmark.is_due(self.counters.total_queries):
            await self.benchmark.run_round(entry.hostname, self.probe.resolve)

    async def tick(self):
        """Run one tick: refresh if due, probe within budget, re-evaluate."""
        now = self.clock()
        refresh_due = (
            self.refresh_interval > 0
            and self.last_refresh_at is not None
            and now - self.last_refresh_at >= self.refresh_interval
        )
        if self._import_pending or refresh_due:
            await self.refresh_entries()

        probed = await self.scheduler.run_cycle(self.entries, self._on_probe)
        self.stats = evaluate(self.entries, self.thresholds)
        self.last_tick_at = now
        logger.debug(
            f"Tick: probed {probed}/{len(self.entries)}, health {self.stats.health_percentage:.1f}%"
        )

    def _tick_due(self, now: float) -> bool:
        if self.paused:
            return False
        return self.last_tick_at is None or now - self.last_tick_at >= self.tick_interval

    async def run(self, stop_event: asyncio.Event):
        """
        Drive ticks until ``stop_event`` is set.

        The loop wakes every ``sub_interval`` seconds so that pausing,
        triggers and shutdown are noticed quickly while ticks keep their
        own, longer period.
        """
        logger.info(
            f"Monitoring {len(self.watch_hostnames)} watched hostnames, "
            f"tick every {self.tick_interval:g}s, budget {self.scheduler.budget} per tick"
        )
        while not stop_event.is_set():
            now = self.clock()
            if self._tick_due(now):
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Tick failed: {e}")
                    self.last_tick_at = now

            if self.last_stats_log_at is None or now - self.last_stats_log_at >= self.stats_log_interval:
                self.log_stats()
                self.last_stats_log_at = now

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.sub_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Monitor stopped.")

    def log_stats(self):
        if self.paused:
            logger.info("Monitoring is PAUSED")
        self.stats.log_stats()
        self.counters.log_stats()
        if self.benchmark.enabled:
            self.benchmark.log_stats()

    # --- Triggers ---

    def _watched_entries(self, now: float) -> List[CacheEntry]:
        return [CacheEntry.watched(hostname, now) for hostname in self.watch_hostnames]

    async def refresh_entries(self) -> bool:
        """
        Re-import the cache dump and replace the entry set.

        The current entries stay in place if the dump cannot be obtained.

        Returns:
            True if the entry set was replaced
        """
        self._import_pending = False
        now = self.clock()
        self.last_refresh_at = now
        try:
            text = await asyncio.to_thread(self.backend.dump_cache)
        except CacheCommandError as e:
            logger.warning(f"Cache refresh failed, keeping {len(self.entries)} entries: {e}")
            return False

        imported = import_snapshot(text, now=now)
        entries = self._watched_entries(now)
        seen = {e.hostname.lower() for e in entries}
        entries.extend(e for e in imported if e.hostname.lower() not in seen)
        self.entries = entries
        self.scheduler.reset()
        if imported:
            logger.info(f"Loaded {len(imported)} cache entries ({len(self.entries)} tracked)")
        else:
            logger.info("No A records found in the resolver cache (cache may be empty)")
        return True

    async def flush_now(self) -> bool:
        """Flush the OS cache, clear entries and statistics, and force a re-import."""
        flushed = await asyncio.to_thread(self.backend.flush_cache)
        self.entries = []
        self.stats = AggregateStats()
        self.counters.reset()
        self.scheduler.reset()
        self._import_pending = True
        if flushed:
            logger.info("DNS cache flushed. Statistics reset.")
        else:
            logger.warning("DNS cache flush was not performed. Statistics reset.")
        await self.refresh_entries()
        return flushed

    def reset_statistics(self):
        """Zero statistics and resolver counters, keeping the entries."""
        self.stats = AggregateStats()
        self.counters.reset()
        self.benchmark.reset_counters()
        logger.info("Statistics reset.")

    def toggle_pause(self) -> bool:
        self.paused = not self.paused
        logger.info(f"Monitoring {'paused' if self.paused else 'resumed'}")
        return self.paused

    def toggle_comparison(self) -> bool:
        """Switch the resolver comparison on or off; switching on re-reads the configured resolver."""
        self.benchmark.enabled = not self.benchmark.enabled
        if self.benchmark.enabled:
            self.benchmark.rebuild(discover_configured_resolver(self.backend))
        return self.benchmark.enabled

    def set_configured_resolver(self, address: Optional[str]):
        """Rebuild the resolver table if the configured resolver changed."""
        if (address or UNKNOWN_ADDRESS) != self.benchmark.configured_resolver:
            self.benchmark.rebuild(address)

    async def test_hostname(self, hostname: str) -> ProbeResult:
        """Probe an arbitrary hostname once without touching the tracked entries."""
        result = await self.probe.resolve(hostname)
        if result.succeeded:
            logger.info(f"Test {hostname}: {result.elapsed_ms:.0f}ms -> {result.address}")
        else:
            logger.info(f"Test {hostname}: {result.status.value}")
        return result


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event):
    """Set ``stop_event`` on SIGINT/SIGTERM."""
    def signal_handler():
        logger.info("Shutdown signal received.")
        stop_event.set()

    try:
        loop.add_signal_handler(signal.SIGTERM, signal_handler)
        loop.add_signal_handler(signal.SIGINT, signal_handler)
        return
    except NotImplementedError:
        logger.debug("Loop signal handlers not supported, falling back to signal.signal")

    try:
        signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(signal_handler))
        signal.signal(signal.SIGTERM, lambda *_: loop.call_soon_threadsafe(signal_handler))
    except (ValueError, OSError) as e:
        raise MonitorInitError(f"Cannot install shutdown signal handlers: {e}") from e


async def main():
    """Monitor entry point."""
    try:
        backend = create_backend()
        configured = discover_configured_resolver(backend)
        benchmark = ResolverBenchmark(configured)
    except ValueError as e:
        raise MonitorInitError(f"Invalid configuration: {e}") from e
    logger.info(f"Cache backend: {backend.name}, configured resolver: {configured or 'unknown'}")

    stop_event = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop_event)

    async with httpx.AsyncClient() as client:
        probe = ResolutionProbe(client=client)
        monitor = CacheMonitor(backend, probe, benchmark)
        await monitor.run(stop_event)
