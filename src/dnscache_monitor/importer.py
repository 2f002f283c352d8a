"""Parser for the text dump of the operating system resolver cache."""
import re
import time
from typing import Dict, Iterable, List, Optional, Tuple
from .cache import CacheEntry, BACKDATE_SECONDS
from .config import logger

# Keys as printed by "ipconfig /displaydns"
KEY_NAME = "record name"
KEY_TYPE = "record type"
KEY_TTL = "time to live"
KEY_ADDRESS = "a (host) record"

A_RECORD_TYPES = {"1", "a"}

_SEPARATOR = re.compile(r"^\s*-{4,}\s*$")
# "Record Name . . . . . : www.example.com" -> ("Record Name", "www.example.com")
_KEY_VALUE = re.compile(r"^\s*(?P<key>[^:]*?)[\s.]*:\s?(?P<value>.*)$")


def split_key_value(line: str) -> Optional[Tuple[str, str]]:
    """
    Split a dotted-leader ``Key . . . : value`` line.

    Returns:
        ``(lowercased key, stripped value)`` or None if the line has no key
    """
    match = _KEY_VALUE.match(line)
    if not match:
        return None
    key = match.group("key").strip().lower()
    if not key:
        return None
    return key, match.group("value").strip()


def _iter_blocks(lines: Iterable[str]) -> Iterable[Dict[str, str]]:
    """Yield the accumulated fields of every block that has a record name."""
    block: Dict[str, str] = {}
    for line in lines:
        if _SEPARATOR.match(line):
            if block.get(KEY_NAME):
                yield block
            block = {}
            continue
        pair = split_key_value(line)
        if pair is None:
            continue
        key, value = pair
        if key == KEY_NAME and block.get(KEY_NAME):
            # Next record of a multi-record group
            yield block
            block = {}
        block[key] = value
    if block.get(KEY_NAME):
        yield block


def _to_entry(block: Dict[str, str], now: float) -> Optional[CacheEntry]:
    hostname = block.get(KEY_NAME, "").strip().rstrip(".")
    address = block.get(KEY_ADDRESS, "").strip()
    record_type = block.get(KEY_TYPE, "").strip()
    if record_type.lower() not in A_RECORD_TYPES or not hostname or not address:
        return None
    try:
        ttl = int(block.get(KEY_TTL, "0"))
    except ValueError:
        ttl = 0
    return CacheEntry(
        hostname=hostname,
        ip_address=address,
        record_type="A",
        ttl=ttl,
        last_tested_at=now - BACKDATE_SECONDS,
    )


def import_snapshot(text: Optional[str], now: Optional[float] = None) -> List[CacheEntry]:
    """
    Turn a resolver cache dump into de-duplicated A-record entries.

    Unrecognized lines are skipped; an empty or unparsable dump gives an
    empty list rather than an error. When a hostname appears more than
    once the first occurrence is kept.

    Args:
        text: Raw dump text, may be None
        now: Monotonic timestamp used to backdate ``last_tested_at``

    Returns:
        List of CacheEntry in dump order
    """
    if not text:
        return []
    if now is None:
        now = time.monotonic()

    entries = []
    seen = set()
    for block in _iter_blocks(text.splitlines()):
        entry = _to_entry(block, now)
        if entry is None:
            continue
        key = entry.hostname.lower()
        if key in seen:
            continue
        seen.add(key)
        entries.append(entry)

    logger.debug(f"Imported {len(entries)} A-record entries from cache dump")
    return entries
