"""
Stream Manager - owns the stream cache and everything that feeds or reads it

This service is responsible for:
1. Composing playlist source, normalizer, cache, validator, selector and scheduler
2. Running the refresh step (fetch -> parse -> normalize -> reconcile)
3. Exposing the consumer read API, which never raises
4. Falling back to the catalog API while the cache is empty

Construct one instance per application (or per test) and pass it to
whatever serves consumers; there is no module-level singleton.
"""

import logging
from typing import Any, Dict, List, Optional

from error_handling import FetchError, ValidationError
from models import Category, Channel, Country, Logo, Stream
from services.catalog_service import CatalogService
from services.normalizer import to_categories, to_channels, to_streams
from services.playlist_service import PlaylistService
from services.scheduler import DEFAULT_INTERVAL_MINUTES, DEFAULT_STARTUP_SAMPLE, RefreshScheduler
from services.stream_cache import RefreshResult, StreamCache, is_usable_stream_url
from services.stream_selector import StreamSelector
from services.stream_validator import DEFAULT_TIMEOUT_SECONDS, StreamValidator

logger = logging.getLogger(__name__)

DEFAULT_MAX_COUNTRIES = 10


class StreamManager:
    """Composition root and consumer-facing API of the stream cache"""

    def __init__(
        self,
        playlist_service: Optional[PlaylistService] = None,
        catalog_service: Optional[CatalogService] = None,
        cache: Optional[StreamCache] = None,
        max_countries: int = DEFAULT_MAX_COUNTRIES,
        refresh_interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
        validation_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        trust_opaque_responses: bool = True,
        startup_validation_sample: int = DEFAULT_STARTUP_SAMPLE,
        on_refresh=None,
    ):
        self.playlist_service = playlist_service or PlaylistService()
        self.catalog_service = catalog_service or CatalogService()
        self.cache = cache or StreamCache()
        self.max_countries = max_countries

        self.validator = StreamValidator(
            self.cache,
            timeout_seconds=validation_timeout_seconds,
            trust_opaque_responses=trust_opaque_responses,
        )
        self.selector = StreamSelector(self.cache)
        self.scheduler = RefreshScheduler(
            self._refresh_snapshot,
            validate_fn=self.validator.validate,
            interval_minutes=refresh_interval_minutes,
            startup_sample=startup_validation_sample,
            on_refresh=on_refresh,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self):
        """Blocking startup refresh, startup validation sample, then the refresh timer"""
        self.scheduler.initialize()

    def destroy(self):
        self.scheduler.destroy()

    @property
    def initialized(self) -> bool:
        return self.scheduler.initialized

    def refresh(self) -> Optional[RefreshResult]:
        """Refresh now; None if it failed or another refresh is running"""
        return self.scheduler.run_refresh()

    def load_more_countries(self, additional_count: int = 10) -> Optional[RefreshResult]:
        """Widen the set of country playlists and refresh"""
        available = len(self.playlist_service.countries)
        self.max_countries = min(available, self.max_countries + max(0, additional_count))
        logger.info(f"Loading {additional_count} more countries (now {self.max_countries})")
        return self.refresh()

    def _refresh_snapshot(self) -> RefreshResult:
        """
        The refresh step: fetch all sources, normalize, publish.

        Raises:
            FetchError: when no source produced any entries; the previous
                snapshot stays in place
        """
        entries, succeeded = self.playlist_service.get_all_entries(self.max_countries)
        if not entries:
            raise FetchError(
                self.playlist_service.base_url,
                f"No streams loaded ({succeeded} of {self.max_countries} sources answered)",
            )

        channels = to_channels(entries)
        streams = to_streams(entries)
        categories = to_categories(entries)
        return self.cache.apply_refresh(channels, streams, categories)

    def apply_settings(
        self,
        refresh_interval_minutes: Optional[float] = None,
        validation_timeout_seconds: Optional[float] = None,
        trust_opaque_responses: Optional[bool] = None,
        startup_validation_sample: Optional[int] = None,
        max_countries: Optional[int] = None,
        denylist_hosts: Optional[List[str]] = None,
        playlist_base_url: Optional[str] = None,
        catalog_api_url: Optional[str] = None,
    ):
        """Apply changed settings to the live instance; None leaves a setting as is"""
        if refresh_interval_minutes is not None:
            self.scheduler.interval_minutes = refresh_interval_minutes
        if validation_timeout_seconds is not None:
            self.validator.timeout_seconds = float(validation_timeout_seconds)
        if trust_opaque_responses is not None:
            self.validator.trust_opaque_responses = trust_opaque_responses
        if startup_validation_sample is not None:
            self.scheduler.startup_sample = max(0, int(startup_validation_sample))
        if max_countries is not None:
            self.max_countries = max_countries
        if denylist_hosts is not None:
            self.cache.set_denylist(denylist_hosts)
        if playlist_base_url:
            self.playlist_service.base_url = playlist_base_url.rstrip("/")
        if catalog_api_url:
            self.catalog_service.base_url = catalog_api_url.rstrip("/")

    # ------------------------------------------------------------------
    # Consumer read API
    # ------------------------------------------------------------------

    def get_channels(self) -> List[Channel]:
        channels = self.cache.get_channels()
        if channels:
            return channels
        return self._from_catalog(self.catalog_service.get_channels, "channels")

    def get_streams(self) -> List[Stream]:
        streams = self.cache.get_streams()
        if streams:
            return streams
        return self._from_catalog(self.catalog_service.get_streams, "streams")

    def get_categories(self) -> List[Category]:
        categories = self.cache.get_categories()
        if categories:
            return categories
        return self._from_catalog(self.catalog_service.get_categories, "categories")

    def get_logos(self) -> List[Logo]:
        return self._from_catalog(self.catalog_service.get_logos, "logos")

    def get_countries(self) -> List[Country]:
        return self._from_catalog(self.catalog_service.get_countries, "countries")

    def get_available_countries(self) -> List[str]:
        return self.playlist_service.get_available_countries()

    def _from_catalog(self, loader, label):
        try:
            records = loader()
        except FetchError as e:
            logger.warning(f"Catalog {label} unavailable: {e}")
            return []
        logger.info(f"Serving {len(records)} {label} from catalog API")
        return records

    def refresh_blocklist(self) -> int:
        """Load the catalog blocklist; blocked channels are dropped from the next refresh on"""
        try:
            blocked = self.catalog_service.get_blocklist()
        except FetchError as e:
            logger.warning(f"Catalog blocklist unavailable: {e}")
            return 0
        self.cache.set_blocked_channels(blocked)
        logger.info(f"Loaded {len(blocked)} blocked channel(s)")
        return len(blocked)

    def validate(self, url: str) -> bool:
        return self.validator.validate(url)

    def check_stream(self, url: str) -> Dict[str, Any]:
        """
        Check a cached stream on behalf of a client.

        Raises:
            ValidationError: when the URL is not a usable stream URL or is not
                part of the current snapshot
        """
        if not is_usable_stream_url(url, self.cache.denylist):
            raise ValidationError("Stream URL is not allowed")
        if self.cache.get_stream(url) is None:
            raise ValidationError("Stream URL is not in the cache")

        result = self.validator.check(url)
        result["warning"] = self.validator.get_stream_warning(url)
        return result

    def get_stream_warning(self, url: str) -> Optional[str]:
        return self.validator.get_stream_warning(url)

    def is_stream_validated(self, url: str) -> bool:
        return self.cache.is_stream_validated(url)

    def best_stream_for(self, channel_id: str) -> Optional[Stream]:
        return self.selector.best_stream_for(channel_id)

    def stream_status(self, url: str) -> Dict[str, Any]:
        return {
            "url": url,
            "cached": self.cache.get_stream(url) is not None,
            "validated": self.cache.is_stream_validated(url),
            "health": self.cache.get_health(url),
            "demoted": self.cache.is_demoted(url),
            "warning": self.validator.get_stream_warning(url),
        }

    def status(self) -> Dict[str, Any]:
        snapshot = self.cache.snapshot()
        return {
            "channels": len(snapshot.channels),
            "streams": len(snapshot.streams),
            "categories": len(snapshot.categories),
            "last_updated": snapshot.last_updated or None,
            "max_countries": self.max_countries,
            "health": self.cache.health_summary(),
            "scheduler": self.scheduler.get_status(),
        }
