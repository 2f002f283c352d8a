"""Configuration module for dnscache-monitor."""
import os
import logging

# --- Tick loop ---
TICK_INTERVAL = float(os.getenv('TICK_INTERVAL', 15))
SUB_INTERVAL = float(os.getenv('SUB_INTERVAL', 0.2))
REFRESH_INTERVAL = float(os.getenv('REFRESH_INTERVAL', 300))
STATS_LOG_INTERVAL = float(os.getenv('STATS_LOG_INTERVAL', 60))

# --- Probing ---
PROBE_TIMEOUT_MS = float(os.getenv('PROBE_TIMEOUT_MS', 3000))
TEST_BUDGET = int(os.getenv('TEST_BUDGET', 10))
OVERDUE_WINDOW = float(os.getenv('OVERDUE_WINDOW', 300))
MIN_RETEST_INTERVAL = float(os.getenv('MIN_RETEST_INTERVAL', 15))

# WATCH_HOSTNAMES is a comma-separated list, always probed alongside the cache
_watch_env = os.getenv(
    'WATCH_HOSTNAMES',
    'www.google.com,www.microsoft.com,www.github.com,www.x.com,www.bluesky.com,www.facebook.com'
)
WATCH_HOSTNAMES = [h.strip() for h in _watch_env.split(',') if h.strip()]

# --- Health thresholds ---
SLOW_THRESHOLD_MS = float(os.getenv('SLOW_THRESHOLD_MS', 200))
SLOW_RESOLVER_MS = float(os.getenv('SLOW_RESOLVER_MS', 150))
FLUSH_MIN_HEALTH_PCT = float(os.getenv('FLUSH_MIN_HEALTH_PCT', 60))
FLUSH_MIN_ENTRIES = int(os.getenv('FLUSH_MIN_ENTRIES', 10))
FLUSH_MAX_AVG_MS = float(os.getenv('FLUSH_MAX_AVG_MS', 300))
FLUSH_MIN_REACHABLE = int(os.getenv('FLUSH_MIN_REACHABLE', 5))
FLUSH_STALE_FRACTION = float(os.getenv('FLUSH_STALE_FRACTION', 0.5))
# Responses faster than this are counted as *estimated* cache hits
CACHE_HIT_THRESHOLD_MS = float(os.getenv('CACHE_HIT_THRESHOLD_MS', 50))

# --- Resolver comparison ---
BENCHMARK_ENABLED = os.getenv('BENCHMARK_ENABLED', 'true').lower() == 'true'
BENCHMARK_CADENCE = int(os.getenv('BENCHMARK_CADENCE', 8))
BENCHMARK_TRANSPORT = os.getenv('BENCHMARK_TRANSPORT', 'udp').lower()
CONFIGURED_RESOLVER = os.getenv('CONFIGURED_RESOLVER', '').strip() or None

# KNOWN_RESOLVERS is a comma-separated list of Name=ip pairs
_known_env = os.getenv(
    'KNOWN_RESOLVERS',
    'Google=8.8.8.8,Google2=8.8.4.4,Cloudflare=1.1.1.1,Cloudflare2=1.0.0.1,'
    'OpenDNS=208.67.222.222,OpenDNS2=208.67.220.220,Quad9=9.9.9.9,Quad9-2=149.112.112.112'
)
KNOWN_RESOLVERS = [
    (name.strip(), ip.strip())
    for name, _, ip in (pair.partition('=') for pair in _known_env.split(','))
    if name.strip() and ip.strip()
]

# DoH endpoints for the public resolvers that offer one, keyed by address
DOH_ENDPOINTS = {
    '8.8.8.8': 'https://dns.google/dns-query',
    '8.8.4.4': 'https://dns.google/dns-query',
    '1.1.1.1': 'https://cloudflare-dns.com/dns-query',
    '1.0.0.1': 'https://cloudflare-dns.com/dns-query',
    '208.67.222.222': 'https://doh.opendns.com/dns-query',
    '208.67.220.220': 'https://doh.opendns.com/dns-query',
    '9.9.9.9': 'https://dns.quad9.net/dns-query',
    '149.112.112.112': 'https://dns.quad9.net/dns-query',
}

# --- Cache source ---
CACHE_BACKEND = os.getenv('CACHE_BACKEND', 'auto').lower()
CACHE_DUMP_FILE = os.getenv('CACHE_DUMP_FILE', '')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# --- Logging Setup ---
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("dnscache-monitor")
