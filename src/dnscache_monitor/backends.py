"""Access to the operating system resolver cache (dump, flush, configured server)."""
import locale
import platform
import subprocess
from pathlib import Path
from typing import List, Optional
from .config import logger, CACHE_BACKEND, CACHE_DUMP_FILE, CONFIGURED_RESOLVER
from .importer import split_key_value

RESOLV_CONF = "/etc/resolv.conf"
COMMAND_TIMEOUT = 10


def console_encoding() -> str:
    """Code page used by console programs such as ``ipconfig``."""
    if platform.system() == "Windows":
        return "oem"
    return locale.getpreferredencoding(False)


class CacheCommandError(Exception):
    """A cache dump or flush command could not be run."""


def read_resolv_conf(path: str = RESOLV_CONF) -> Optional[str]:
    """Return the first ``nameserver`` address of a resolv.conf file, if any."""
    try:
        text = Path(path).read_text()
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return None
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            return parts[1]
    return None


class CacheBackend:
    """No cache source: dumps are empty and flushes do nothing."""

    name = "none"

    def dump_cache(self) -> str:
        return ""

    def flush_cache(self) -> bool:
        return False

    def configured_resolver(self) -> Optional[str]:
        """Address of the resolver the host is configured to use."""
        return read_resolv_conf()


class FileCacheBackend(CacheBackend):
    """Reads a previously captured cache dump from a file."""

    name = "file"

    def __init__(self, path: str):
        self.path = Path(path)

    def dump_cache(self) -> str:
        try:
            return self.path.read_text(errors="replace")
        except OSError as e:
            raise CacheCommandError(f"Cannot read cache dump {self.path}: {e}") from e

    def flush_cache(self) -> bool:
        logger.info(f"File backend has no cache to flush ({self.path})")
        return False


class IpconfigCacheBackend(CacheBackend):
    """
    Windows DNS client cache via ``ipconfig``.

    Output is decoded from the console (OEM) code page with undecodable
    bytes replaced.
    """

    name = "ipconfig"

    def __init__(self, encoding: Optional[str] = None):
        self.encoding = encoding or console_encoding()

    def _run(self, args: List[str]) -> str:
        try:
            result = subprocess.run(
                ["ipconfig", *args],
                capture_output=True, timeout=COMMAND_TIMEOUT,
            )
        except subprocess.TimeoutExpired as e:
            raise CacheCommandError(f"ipconfig {' '.join(args)} timed out") from e
        except OSError as e:
            raise CacheCommandError(f"ipconfig {' '.join(args)} failed: {e}") from e
        if result.returncode != 0:
            stderr = result.stderr.decode(self.encoding, errors="replace").strip()
            raise CacheCommandError(f"ipconfig {' '.join(args)} exited with {result.returncode}: {stderr}")
        return result.stdout.decode(self.encoding, errors="replace")

    def dump_cache(self) -> str:
        return self._run(["/displaydns"])

    def flush_cache(self) -> bool:
        try:
            self._run(["/flushdns"])
        except CacheCommandError as e:
            logger.warning(f"DNS cache flush failed: {e}")
            return False
        return True

    def configured_resolver(self) -> Optional[str]:
        try:
            output = self._run(["/all"])
        except CacheCommandError as e:
            logger.warning(f"Could not read network configuration: {e}")
            return None
        for line in output.splitlines():
            pair = split_key_value(line)
            if pair and pair[0] == "dns servers" and pair[1]:
                return pair[1].split()[0]
        return None


def create_backend(kind: str = CACHE_BACKEND, dump_file: str = CACHE_DUMP_FILE) -> CacheBackend:
    """
    Build the cache backend selected by configuration.

    ``auto`` picks the file backend when a dump file is configured,
    ``ipconfig`` on Windows, and the empty backend otherwise.
    """
    if kind == "auto":
        if dump_file:
            kind = "file"
        elif platform.system() == "Windows":
            kind = "ipconfig"
        else:
            kind = "none"

    if kind == "file":
        if not dump_file:
            raise ValueError("CACHE_BACKEND=file requires CACHE_DUMP_FILE")
        return FileCacheBackend(dump_file)
    if kind == "ipconfig":
        return IpconfigCacheBackend()
    if kind == "none":
        return CacheBackend()
    raise ValueError(f"Unknown cache backend: {kind}")


def discover_configured_resolver(backend: CacheBackend, override: Optional[str] = CONFIGURED_RESOLVER) -> Optional[str]:
    """Return the configured resolver address, preferring an explicit override."""
    if override:
        return override
    return backend.configured_resolver()
