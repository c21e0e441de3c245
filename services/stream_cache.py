"""
Stream Cache - holds the current snapshot and per-URL health state

This service is responsible for:
1. Publishing refreshed channels/streams/categories as one immutable snapshot
2. Filtering out unusable stream URLs before they enter the cache
3. Reconciling validation/health state when a refresh replaces the snapshot
4. Answering health, validation and demotion queries per stream URL

The snapshot and the health maps are only written by `apply_refresh` and
`record_validation`; readers always get a whole snapshot.
"""

import ipaddress
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

from models import Category, Channel, Stream

logger = logging.getLogger(__name__)

HEALTH_NEUTRAL = 50
HEALTH_HEALTHY = 100
HEALTH_FAILED = 0
HEALTH_DEMOTED = 0

DEFAULT_DENYLIST = ("pluto.tv",)
ALLOWED_SCHEMES = {"http", "https"}
LOOPBACK_HOSTS = {"localhost", "localhost.localdomain"}


@dataclass(frozen=True)
class Snapshot:
    """Coherent view of the cache contents at one refresh"""

    streams: Tuple[Stream, ...] = ()
    channels: Tuple[Channel, ...] = ()
    categories: Tuple[Category, ...] = ()
    last_updated: float = 0.0


@dataclass
class RefreshResult:
    """Outcome of replacing the snapshot"""

    channels: int
    streams: int
    categories: int
    filtered: int
    last_updated: float
    new_urls: List[str] = field(default_factory=list)
    demoted_urls: List[str] = field(default_factory=list)


def _host_matches(host: str, denied: str) -> bool:
    return host == denied or host.endswith("." + denied)


def is_usable_stream_url(url: Optional[str], denylist_hosts: Iterable[str] = DEFAULT_DENYLIST) -> bool:
    """
    Check whether a stream URL may enter the cache.

    Rejects empty URLs, non-http(s) schemes, loopback or link-local hosts and
    denylisted hosts.
    """
    if not url or not url.strip():
        return False

    try:
        parsed = urlparse(url.strip())
        host = (parsed.hostname or "").lower()
    except ValueError:
        return False

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host:
        return False

    if host in LOOPBACK_HOSTS:
        return False
    try:
        address = ipaddress.ip_address(host)
        if address.is_loopback or address.is_link_local or address.is_unspecified:
            return False
    except ValueError:
        pass

    for denied in denylist_hosts:
        denied = denied.strip().lower()
        if denied and _host_matches(host, denied):
            return False

    return True


class StreamCache:
    """In-memory store of the latest snapshot plus validation and health state"""

    def __init__(self, denylist_hosts: Optional[Iterable[str]] = None):
        self._lock = threading.RLock()
        self._snapshot = Snapshot()
        self._validated: Dict[str, bool] = {}
        self._health: Dict[str, int] = {}
        self._demoted: Set[str] = set()
        self._denylist: Tuple[str, ...] = tuple(denylist_hosts) if denylist_hosts is not None else DEFAULT_DENYLIST
        self._blocked_channels: Set[str] = set()

    # ------------------------------------------------------------------
    # Snapshot reads
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def get_streams(self) -> List[Stream]:
        return list(self._snapshot.streams)

    def get_channels(self) -> List[Channel]:
        return list(self._snapshot.channels)

    def get_categories(self) -> List[Category]:
        return list(self._snapshot.categories)

    @property
    def last_updated(self) -> float:
        return self._snapshot.last_updated

    def is_empty(self) -> bool:
        return not self._snapshot.streams

    def get_stream(self, url: str) -> Optional[Stream]:
        for stream in self._snapshot.streams:
            if stream.url == url:
                return stream
        return None

    # ------------------------------------------------------------------
    # Denylist
    # ------------------------------------------------------------------

    @property
    def denylist(self) -> Tuple[str, ...]:
        return self._denylist

    def set_denylist(self, hosts: Iterable[str]):
        """Replace the denylist; applies from the next refresh on"""
        with self._lock:
            self._denylist = tuple(h.strip().lower() for h in hosts if h and h.strip())

    def set_blocked_channels(self, channel_ids: Iterable[str]):
        """Channels whose streams are never cached; applies from the next refresh on"""
        with self._lock:
            self._blocked_channels = {c for c in channel_ids if c}

    @property
    def blocked_channels(self) -> Set[str]:
        return set(self._blocked_channels)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def filter_streams(self, streams: Iterable[Stream]) -> List[Stream]:
        """Drop unusable, duplicate (first occurrence wins) and blocked-channel streams"""
        denylist = self._denylist
        blocked = self._blocked_channels
        kept: List[Stream] = []
        seen: Set[str] = set()
        for stream in streams:
            if stream.url in seen or stream.channel in blocked:
                continue
            if not is_usable_stream_url(stream.url, denylist):
                continue
            seen.add(stream.url)
            kept.append(stream)
        return kept

    def apply_refresh(
        self,
        channels: List[Channel],
        streams: List[Stream],
        categories: List[Category],
        now: Optional[float] = None,
    ) -> RefreshResult:
        """
        Replace the snapshot with freshly normalized records and reconcile state.

        URLs that vanished since the previous snapshot are demoted: their
        validated flag is cleared and their health drops to HEALTH_DEMOTED.
        Their history is kept, so a URL that later reappears is still demoted
        until a fresh check succeeds. URLs present in both snapshots keep
        their state; URLs never seen before start neutral.
        """
        working = self.filter_streams(streams)
        filtered = len(streams) - len(working)
        if self._blocked_channels:
            channels = [c for c in channels if c.id not in self._blocked_channels]

        with self._lock:
            previous = self._snapshot
            old_urls = {s.url for s in previous.streams}
            new_urls = {s.url for s in working}

            vanished = sorted(old_urls - new_urls)
            for url in vanished:
                self._validated.pop(url, None)
                self._health[url] = HEALTH_DEMOTED
                self._demoted.add(url)

            timestamp = time.time() if now is None else now
            self._snapshot = Snapshot(
                streams=tuple(working),
                channels=tuple(channels),
                categories=tuple(categories),
                last_updated=max(timestamp, previous.last_updated),
            )

        fresh = [s.url for s in working if s.url not in old_urls]

        if vanished:
            logger.info(f"Demoted {len(vanished)} stream(s) no longer listed by their source")

        return RefreshResult(
            channels=len(channels),
            streams=len(working),
            categories=len(categories),
            filtered=filtered,
            last_updated=self._snapshot.last_updated,
            new_urls=fresh,
            demoted_urls=vanished,
        )

    # ------------------------------------------------------------------
    # Health and validation state
    # ------------------------------------------------------------------

    def get_health(self, url: str) -> int:
        return self._health.get(url, HEALTH_NEUTRAL)

    def has_health(self, url: str) -> bool:
        return url in self._health

    def is_stream_validated(self, url: str) -> bool:
        return self._validated.get(url) is True

    def is_demoted(self, url: str) -> bool:
        return url in self._demoted

    def record_validation(self, url: str, is_valid: bool):
        """Store a check outcome; health is reset, never decayed"""
        with self._lock:
            self._validated[url] = is_valid
            if is_valid:
                self._health[url] = HEALTH_HEALTHY
                self._demoted.discard(url)
            else:
                self._health[url] = HEALTH_FAILED

    def health_summary(self) -> Dict[str, int]:
        """Counts of cached streams by health state"""
        summary = {"validated": 0, "failed": 0, "demoted": 0, "unknown": 0}
        with self._lock:
            for stream in self._snapshot.streams:
                url = stream.url
                if url in self._demoted:
                    summary["demoted"] += 1
                elif self._validated.get(url) is True:
                    summary["validated"] += 1
                elif self._validated.get(url) is False:
                    summary["failed"] += 1
                else:
                    summary["unknown"] += 1
        return summary
