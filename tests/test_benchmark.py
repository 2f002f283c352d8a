"""Unit tests for the resolver comparison benchmark."""
import pytest
from unittest.mock import AsyncMock
from dnscache_monitor.benchmark import (
    ResolverProbeTarget,
    ResolverBenchmark,
    RATING_UNTESTED,
    RATING_EXCELLENT,
    RATING_GOOD,
    RATING_POOR,
    UNKNOWN_ADDRESS,
)
from dnscache_monitor.probe import ProbeResult, ProbeStatus

KNOWN = [
    ("Google", "8.8.8.8"),
    ("Cloudflare", "1.1.1.1"),
    ("Quad9", "9.9.9.9"),
]
DOH = {"1.1.1.1": "https://cloudflare-dns.com/dns-query"}


def ok(ms):
    return ProbeResult(ProbeStatus.SUCCESS, ms, "93.184.216.34")


class TestResolverProbeTarget:
    """Tests for ResolverProbeTarget."""

    def test_initialization(self):
        """Test a new target is untested."""
        target = ResolverProbeTarget(name="Google", ip_address="8.8.8.8")

        assert target.is_default is False
        assert target.avg_response_time == 0.0
        assert target.success_count == 0
        assert target.total_tests == 0
        assert target.success_rate == 0.0
        assert target.rating == RATING_UNTESTED

    def test_incremental_mean(self):
        """Test that 40ms then 60ms averages to exactly 50ms."""
        target = ResolverProbeTarget(name="Google", ip_address="8.8.8.8")

        target.record_success(40)
        target.record_success(60)

        assert target.avg_response_time == 50
        assert target.success_count == 2
        assert target.total_tests == 2

    def test_failures_do_not_move_average(self):
        """Test that failures count as tests but not in the average."""
        target = ResolverProbeTarget(name="Google", ip_address="8.8.8.8")

        target.record_failure()
        assert target.avg_response_time == 0.0
        target.record_success(30)
        target.record_failure()

        assert target.avg_response_time == 30
        assert target.success_count == 1
        assert target.total_tests == 3
        assert target.success_count <= target.total_tests
        assert target.success_rate == pytest.approx(33.33, rel=0.01)

    @pytest.mark.parametrize("successes,failures,ms,rating", [
        (10, 0, 50, RATING_EXCELLENT),
        (9, 1, 20, RATING_EXCELLENT),
        (9, 1, 51, RATING_GOOD),
        (8, 2, 100, RATING_GOOD),
        (8, 2, 101, RATING_POOR),
        (7, 3, 10, RATING_POOR),
        (0, 5, 0, RATING_POOR),
    ])
    def test_rating(self, successes, failures, ms, rating):
        """Test rating boundaries."""
        target = ResolverProbeTarget(name="X", ip_address="192.0.2.1")
        for _ in range(successes):
            target.record_success(ms)
        for _ in range(failures):
            target.record_failure()

        assert target.rating == rating

    def test_reset(self):
        """Test that reset zeroes the running results."""
        target = ResolverProbeTarget(name="Google", ip_address="8.8.8.8")
        target.record_success(40)
        target.record_failure()

        target.reset()

        assert target.avg_response_time == 0.0
        assert target.success_count == 0
        assert target.total_tests == 0


class TestResolverBenchmark:
    """Tests for ResolverBenchmark."""

    def test_table_seeded_with_default(self):
        """Test that the configured resolver comes first and is the only default."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=KNOWN)

        assert benchmark.targets[0].name == "Current"
        assert benchmark.targets[0].ip_address == "192.168.1.1"
        assert [t.is_default for t in benchmark.targets].count(True) == 1
        assert [t.ip_address for t in benchmark.targets[1:]] == ["8.8.8.8", "1.1.1.1", "9.9.9.9"]
        assert benchmark.configured_resolver == "192.168.1.1"

    def test_duplicate_of_configured_excluded(self):
        """Test that a public resolver equal to the configured one is left out."""
        benchmark = ResolverBenchmark("1.1.1.1", known_resolvers=KNOWN)

        addresses = [t.ip_address for t in benchmark.targets]
        assert addresses == ["1.1.1.1", "8.8.8.8", "9.9.9.9"]
        assert benchmark.targets[0].is_default is True

    def test_unknown_configured_resolver(self):
        """Test the table when the configured resolver could not be found."""
        benchmark = ResolverBenchmark(None, known_resolvers=KNOWN)

        assert benchmark.targets[0].ip_address == UNKNOWN_ADDRESS
        assert benchmark.targets[0].is_default is True
        assert len(benchmark.targets) == 4

    def test_doh_urls_attached(self):
        """Test that DoH endpoints are attached by address."""
        benchmark = ResolverBenchmark("10.0.0.1", known_resolvers=KNOWN, doh_endpoints=DOH)

        by_ip = {t.ip_address: t for t in benchmark.targets}
        assert by_ip["1.1.1.1"].doh_url == "https://cloudflare-dns.com/dns-query"
        assert by_ip["8.8.8.8"].doh_url is None

    @pytest.mark.parametrize("count,due", [(0, False), (1, False), (7, False), (8, True), (16, True), (17, False)])
    def test_is_due_cadence(self, count, due):
        """Test that rounds run on every 8th query."""
        benchmark = ResolverBenchmark("10.0.0.1", known_resolvers=KNOWN, cadence=8)
        assert benchmark.is_due(count) is due

    def test_is_due_disabled(self):
        """Test that a disabled benchmark never runs."""
        benchmark = ResolverBenchmark("10.0.0.1", known_resolvers=KNOWN, cadence=1, enabled=False)
        assert benchmark.is_due(8) is False

    def test_invalid_settings(self):
        """Test that bad cadence and transport are rejected."""
        with pytest.raises(ValueError):
            ResolverBenchmark("10.0.0.1", known_resolvers=KNOWN, cadence=0)
        with pytest.raises(ValueError):
            ResolverBenchmark("10.0.0.1", known_resolvers=KNOWN, transport="tcp")

    @pytest.mark.asyncio
    async def test_round_probes_non_default_only(self):
        """Test that each alternative is probed once via the resolver override."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=KNOWN)
        probe = AsyncMock(return_value=ok(25.0))

        answered = await benchmark.run_round("www.example.com", probe)

        assert answered == 3
        assert probe.call_count == 3
        resolvers = [c.kwargs["resolver"] for c in probe.call_args_list]
        assert resolvers == ["8.8.8.8", "1.1.1.1", "9.9.9.9"]
        assert all(c.args == ("www.example.com",) for c in probe.call_args_list)
        assert benchmark.targets[0].total_tests == 0
        assert all(t.total_tests == 1 and t.success_count == 1 for t in benchmark.targets[1:])

    @pytest.mark.asyncio
    async def test_round_counts_failures(self):
        """Test that failed probes increment tests but not successes."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=KNOWN)
        probe = AsyncMock(side_effect=[ok(40.0), ProbeResult(ProbeStatus.TIMEOUT), ok(20.0)])

        answered = await benchmark.run_round("www.example.com", probe)

        assert answered == 2
        google, cloudflare, quad9 = benchmark.targets[1:]
        assert (google.success_count, google.total_tests, google.avg_response_time) == (1, 1, 40.0)
        assert (cloudflare.success_count, cloudflare.total_tests, cloudflare.avg_response_time) == (0, 1, 0.0)
        assert quad9.avg_response_time == 20.0

    @pytest.mark.asyncio
    async def test_round_doh_transport(self):
        """Test that the doh transport uses DoH URLs where available."""
        benchmark = ResolverBenchmark(
            "192.168.1.1", known_resolvers=KNOWN, transport="doh", doh_endpoints=DOH
        )
        probe = AsyncMock(return_value=ok(30.0))

        await benchmark.run_round("www.example.com", probe)

        kwargs = [c.kwargs for c in probe.call_args_list]
        assert kwargs == [
            {"resolver": "8.8.8.8"},
            {"doh_url": "https://cloudflare-dns.com/dns-query"},
            {"resolver": "9.9.9.9"},
        ]

    @pytest.mark.asyncio
    async def test_running_average_across_rounds(self):
        """Test the average accumulates over rounds."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=[("Google", "8.8.8.8")])

        await benchmark.run_round("a.example.com", AsyncMock(return_value=ok(40.0)))
        await benchmark.run_round("b.example.com", AsyncMock(return_value=ok(60.0)))

        assert benchmark.targets[1].avg_response_time == 50

    def test_reset_counters_keeps_table(self):
        """Test that resetting counters keeps the resolvers."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=KNOWN)
        benchmark.targets[1].record_success(40)

        benchmark.reset_counters()

        assert len(benchmark.targets) == 4
        assert all(t.total_tests == 0 for t in benchmark.targets)

    def test_rebuild_for_new_resolver(self):
        """Test that a changed configured resolver rebuilds the table."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=KNOWN)
        benchmark.targets[1].record_success(40)

        benchmark.rebuild("8.8.8.8")

        assert benchmark.configured_resolver == "8.8.8.8"
        assert [t.ip_address for t in benchmark.targets] == ["8.8.8.8", "1.1.1.1", "9.9.9.9"]
        assert all(t.total_tests == 0 for t in benchmark.targets)

    def test_get_stats(self):
        """Test the stats table format."""
        benchmark = ResolverBenchmark("192.168.1.1", known_resolvers=[("Google", "8.8.8.8")])
        benchmark.targets[1].record_success(20)

        stats = benchmark.get_stats()

        assert stats[0]['is_default'] is True
        assert stats[0]['rating'] == RATING_UNTESTED
        assert stats[1] == {
            'name': 'Google',
            'ip_address': '8.8.8.8',
            'is_default': False,
            'total_tests': 1,
            'success_rate': '100%',
            'avg_response_time': '20ms',
            'rating': RATING_EXCELLENT,
        }
