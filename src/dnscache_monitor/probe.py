"""Timed single-shot name resolution probes."""
import asyncio
import socket
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import httpx
from dnslib import DNSRecord, QTYPE, RCODE
from dnslib.dns import DNSError
from dnslib.label import DNSLabelError
from .config import logger, PROBE_TIMEOUT_MS


class ProbeStatus(Enum):
    """Outcome of a single resolution attempt."""
    NOT_TESTED = "not-tested"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ProbeResult:
    """Result of one probe; ``elapsed_ms`` is only set on success."""
    status: ProbeStatus
    elapsed_ms: Optional[float] = None
    address: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ProbeStatus.SUCCESS


NOT_TESTED = ProbeResult(ProbeStatus.NOT_TESTED)


class NoAddressError(Exception):
    """Raised internally when a lookup completes without an address."""


def _first_a_record(response: DNSRecord) -> Optional[str]:
    """Return the first A record address of a parsed response."""
    if response.header.rcode != RCODE.NOERROR:
        return None
    for rr in response.rr:
        if rr.rtype == QTYPE.A:
            return str(rr.rdata)
    return None


def query_udp(hostname: str, resolver: str, timeout: float) -> Optional[str]:
    """
    Send one A query for ``hostname`` straight to ``resolver`` over UDP.

    Args:
        hostname: The name to resolve
        resolver: IP address of the DNS server to ask
        timeout: Socket timeout in seconds

    Returns:
        The first A record address, or None if the answer had none
    """
    q = DNSRecord.question(hostname, "A")
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.settimeout(timeout)
        sock.sendto(q.pack(), (resolver, 53))
        response_data, _ = sock.recvfrom(512)
    return _first_a_record(DNSRecord.parse(response_data))


class ResolutionProbe:
    """
    Wraps one name-resolution call with a monotonic timer.

    The probe never retries and never raises for resolution problems: every
    outcome comes back as a ProbeResult. Anything slower than ``timeout_ms``
    is reported as a timeout, even when an answer eventually arrived.
    """

    def __init__(
        self,
        timeout_ms: float = PROBE_TIMEOUT_MS,
        client: Optional[httpx.AsyncClient] = None,
        clock=time.monotonic,
    ):
        """
        Initialize the probe.

        Args:
            timeout_ms: Ceiling for a single attempt, in milliseconds
            client: HTTP client used for DNS-over-HTTPS attempts
            clock: Monotonic clock returning seconds
        """
        self.timeout_ms = timeout_ms
        self.client = client
        self.clock = clock

    async def resolve(
        self,
        hostname: str,
        resolver: Optional[str] = None,
        doh_url: Optional[str] = None,
    ) -> ProbeResult:
        """
        Resolve ``hostname`` once and time it.

        Without an override the host's resolution API is used. ``doh_url``
        takes precedence over ``resolver`` when both are given.
        """
        timeout = self.timeout_ms / 1000.0
        start = self.clock()
        try:
            if doh_url:
                address = await asyncio.wait_for(self._lookup_doh(hostname, doh_url, timeout), timeout)
            elif resolver:
                address = await asyncio.wait_for(
                    asyncio.to_thread(query_udp, hostname, resolver, timeout), timeout
                )
            else:
                address = await asyncio.wait_for(self._lookup_system(hostname), timeout)
        except (asyncio.TimeoutError, socket.timeout, httpx.TimeoutException):
            logger.debug(f"Probe {hostname} via {doh_url or resolver or 'system'} timed out")
            return ProbeResult(ProbeStatus.TIMEOUT)
        except (OSError, ValueError, httpx.HTTPError, NoAddressError, DNSError, DNSLabelError) as e:
            logger.debug(f"Probe {hostname} via {doh_url or resolver or 'system'} failed: {e}")
            return ProbeResult(ProbeStatus.FAILED)

        elapsed_ms = (self.clock() - start) * 1000.0
        if address is None:
            return ProbeResult(ProbeStatus.FAILED)
        if elapsed_ms > self.timeout_ms:
            return ProbeResult(ProbeStatus.TIMEOUT)
        return ProbeResult(ProbeStatus.SUCCESS, elapsed_ms=elapsed_ms, address=address)

    async def _lookup_system(self, hostname: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
        if not infos:
            raise NoAddressError(f"no addresses for {hostname}")
        return infos[0][4][0]

    async def _lookup_doh(self, hostname: str, doh_url: str, timeout: float) -> Optional[str]:
        if self.client is None:
            raise NoAddressError("no HTTP client configured for DoH probes")
        headers = {
            "Content-Type": "application/dns-message",
            "Accept": "application/dns-message"
        }
        data = DNSRecord.question(hostname, "A").pack()
        resp = await self.client.post(doh_url, content=data, headers=headers, timeout=timeout)
        resp.raise_for_status()
        return _first_a_record(DNSRecord.parse(resp.content))
