"""Per-tick selection of cache entries to re-probe."""
import time
from typing import Awaitable, Callable, List, Optional
from .cache import CacheEntry
from .config import logger, TEST_BUDGET, OVERDUE_WINDOW, MIN_RETEST_INTERVAL
from .probe import ProbeResult

ProbeFn = Callable[[str], Awaitable[ProbeResult]]
ProbeHook = Callable[[CacheEntry, ProbeResult], Awaitable[None]]


class EntryScheduler:
    """
    Chooses which entries to probe each tick under a fixed budget.

    Starved entries (not tested within ``overdue_window``) go first, oldest
    first. Any remaining budget is spent on a round-robin sweep that resumes
    where the previous tick stopped, skipping entries tested less than
    ``min_retest_interval`` seconds ago.
    """

    def __init__(
        self,
        probe: ProbeFn,
        budget: int = TEST_BUDGET,
        overdue_window: float = OVERDUE_WINDOW,
        min_retest_interval: float = MIN_RETEST_INTERVAL,
        clock=time.monotonic,
    ):
        if budget < 1:
            raise ValueError("Test budget must be at least 1")
        self.probe = probe
        self.budget = budget
        self.overdue_window = overdue_window
        self.min_retest_interval = min_retest_interval
        self.clock = clock
        self.cursor = 0

    def reset(self):
        """Restart the round-robin sweep from the first entry."""
        self.cursor = 0

    async def _test(self, entry: CacheEntry, on_probe: Optional[ProbeHook]) -> ProbeResult:
        result = await self.probe(entry.hostname)
        entry.record_result(result, self.clock())
        if on_probe is not None:
            await on_probe(entry, result)
        return result

    async def run_cycle(self, entries: List[CacheEntry], on_probe: Optional[ProbeHook] = None) -> int:
        """
        Probe at most ``budget`` entries.

        Args:
            entries: The entry set, mutated in place
            on_probe: Awaited after every probe with the entry and its result

        Returns:
            Number of entries probed
        """
        if not entries:
            self.cursor = 0
            return 0

        now = self.clock()
        tested = set()

        starved = [e for e in entries if now - e.last_tested_at > self.overdue_window]
        starved.sort(key=lambda e: e.last_tested_at)
        for entry in starved[:self.budget]:
            await self._test(entry, on_probe)
            tested.add(id(entry))

        remaining = self.budget - len(tested)
        count = len(entries)
        self.cursor %= count
        scanned = 0
        while remaining > 0 and scanned < count:
            entry = entries[(self.cursor + scanned) % count]
            scanned += 1
            if id(entry) in tested:
                continue
            if now - entry.last_tested_at > self.min_retest_interval:
                await self._test(entry, on_probe)
                tested.add(id(entry))
                remaining -= 1
        self.cursor = (self.cursor + scanned) % count

        logger.debug(
            f"Scheduler cycle: {len(tested)} probed ({min(len(starved), self.budget)} starved), "
            f"cursor at {self.cursor}/{count}"
        )
        return len(tested)
