"""Comparison of the configured resolver against well-known public resolvers."""
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from .config import (
    logger,
    KNOWN_RESOLVERS,
    DOH_ENDPOINTS,
    BENCHMARK_CADENCE,
    BENCHMARK_ENABLED,
    BENCHMARK_TRANSPORT,
)
from .probe import ProbeResult

RATING_UNTESTED = "untested"
RATING_EXCELLENT = "excellent"
RATING_GOOD = "good"
RATING_POOR = "poor"

DEFAULT_NAME = "Current"
UNKNOWN_ADDRESS = "unknown"

ResolverProbeFn = Callable[..., Awaitable[ProbeResult]]


@dataclass
class ResolverProbeTarget:
    """A resolver in the comparison table with its running results."""
    name: str
    ip_address: str
    is_default: bool = False
    doh_url: Optional[str] = None
    avg_response_time: float = 0.0
    success_count: int = 0
    total_tests: int = 0

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage, 0 when untested."""
        if self.total_tests == 0:
            return 0.0
        return (self.success_count / self.total_tests) * 100

    @property
    def rating(self) -> str:
        if self.total_tests == 0:
            return RATING_UNTESTED
        if self.success_rate >= 90 and self.avg_response_time <= 50:
            return RATING_EXCELLENT
        if self.success_rate >= 80 and self.avg_response_time <= 100:
            return RATING_GOOD
        return RATING_POOR

    def record_success(self, response_time: float):
        """Record a successful probe taking ``response_time`` milliseconds."""
        self.total_tests += 1
        self.success_count += 1
        self.avg_response_time = (
            self.avg_response_time * (self.success_count - 1) + response_time
        ) / self.success_count

    def record_failure(self):
        self.total_tests += 1

    def reset(self):
        self.avg_response_time = 0.0
        self.success_count = 0
        self.total_tests = 0


class ResolverBenchmark:
    """Keeps the resolver table and probes the alternatives on a query-count cadence."""

    def __init__(
        self,
        configured_resolver: Optional[str],
        known_resolvers: Sequence[Tuple[str, str]] = KNOWN_RESOLVERS,
        cadence: int = BENCHMARK_CADENCE,
        enabled: bool = BENCHMARK_ENABLED,
        transport: str = BENCHMARK_TRANSPORT,
        doh_endpoints: Dict[str, str] = DOH_ENDPOINTS,
    ):
        """
        Initialize the benchmark table.

        Args:
            configured_resolver: Address of the host's resolver, None if unknown
            known_resolvers: ``(name, ip)`` pairs of public resolvers to compare
            cadence: Run a round on every ``cadence``-th probe
            enabled: Whether rounds run at all
            transport: ``udp`` or ``doh`` for probing the alternatives
            doh_endpoints: DoH URL per resolver address
        """
        if cadence < 1:
            raise ValueError("Benchmark cadence must be at least 1")
        if transport not in ("udp", "doh"):
            raise ValueError(f"Unknown benchmark transport: {transport}")
        self.known_resolvers = list(known_resolvers)
        self.cadence = cadence
        self.enabled = enabled
        self.transport = transport
        self.doh_endpoints = dict(doh_endpoints)
        self.targets: List[ResolverProbeTarget] = []
        self.rebuild(configured_resolver)

    @property
    def configured_resolver(self) -> str:
        return self.targets[0].ip_address

    def rebuild(self, configured_resolver: Optional[str]):
        """Recreate the table around a (possibly new) configured resolver."""
        current = configured_resolver or UNKNOWN_ADDRESS
        self.targets = [ResolverProbeTarget(name=DEFAULT_NAME, ip_address=current, is_default=True)]
        for name, ip in self.known_resolvers:
            if ip == current:
                continue
            self.targets.append(ResolverProbeTarget(name=name, ip_address=ip, doh_url=self.doh_endpoints.get(ip)))
        logger.info(
            f"Resolver comparison table: current {current}, "
            f"{len(self.targets) - 1} alternatives"
        )

    def is_due(self, query_count: int) -> bool:
        """Whether the probe numbered ``query_count`` should trigger a round."""
        return self.enabled and query_count > 0 and query_count % self.cadence == 0

    async def run_round(self, hostname: str, probe: ResolverProbeFn) -> int:
        """
        Probe every non-default resolver once for ``hostname``.

        Args:
            hostname: Name to resolve
            probe: ``probe(hostname, resolver=..., doh_url=...)`` coroutine

        Returns:
            Number of resolvers that answered
        """
        answered = 0
        for target in self.targets:
            if target.is_default:
                continue
            if self.transport == "doh" and target.doh_url:
                result = await probe(hostname, doh_url=target.doh_url)
            else:
                result = await probe(hostname, resolver=target.ip_address)
            if result.succeeded:
                target.record_success(result.elapsed_ms)
                answered += 1
            else:
                target.record_failure()
        logger.debug(f"Benchmark round for {hostname}: {answered}/{len(self.targets) - 1} answered")
        return answered

    def reset_counters(self):
        for target in self.targets:
            target.reset()

    def get_stats(self) -> List[dict]:
        """
        Get the comparison table.

        Returns:
            List of dictionaries, one per resolver, default first
        """
        stats = []
        for target in self.targets:
            stats.append({
                'name': target.name,
                'ip_address': target.ip_address,
                'is_default': target.is_default,
                'total_tests': target.total_tests,
                'success_rate': f"{target.success_rate:.0f}%",
                'avg_response_time': f"{target.avg_response_time:.0f}ms",
                'rating': target.rating,
            })
        return stats

    def log_stats(self):
        """Log the comparison table."""
        logger.info("=== Resolver Comparison ===")
        for stat in self.get_stats():
            marker = "*" if stat['is_default'] else " "
            logger.info(
                f"{marker} {stat['name']} ({stat['ip_address']}) - "
                f"Tests: {stat['total_tests']}, "
                f"Success Rate: {stat['success_rate']}, "
                f"Avg Response Time: {stat['avg_response_time']}, "
                f"Rating: {stat['rating'].upper()}"
            )
