"""
Background scheduler for periodic stream cache refresh
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional

from services.stream_cache import RefreshResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_STARTUP_SAMPLE = 5


class RefreshScheduler:
    """
    Runs the refresh step once at startup and then on a fixed interval.

    Only one refresh runs at a time: a tick or manual request arriving while
    a refresh is in flight is dropped, not queued.
    """

    def __init__(
        self,
        refresh_fn: Callable[[], RefreshResult],
        validate_fn: Optional[Callable[[str], bool]] = None,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
        startup_sample: int = DEFAULT_STARTUP_SAMPLE,
        on_refresh: Optional[Callable[[bool, Optional[RefreshResult]], None]] = None,
    ):
        """
        Args:
            refresh_fn: Fetches sources and publishes a snapshot; raises on failure
            validate_fn: Validates one stream URL (used for the startup sample)
            interval_minutes: Minutes between refreshes
            startup_sample: Freshly seen streams validated after the startup refresh
            on_refresh: Called with (success, result) after every refresh attempt
        """
        self.refresh_fn = refresh_fn
        self.validate_fn = validate_fn
        self.interval_minutes = interval_minutes
        self.startup_sample = max(0, int(startup_sample))
        self.on_refresh = on_refresh

        self.initialized = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._refresh_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()

        self.last_refresh_at: Optional[datetime] = None
        self.last_refresh_status: Optional[str] = None
        self.skipped_ticks = 0

    @property
    def interval_seconds(self) -> float:
        return max(1.0, float(self.interval_minutes) * 60)

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_lock.locked()

    def initialize(self):
        """
        Startup sequence: blocking refresh, startup validation sample, timer.

        Repeated calls while initialized are no-ops; after destroy() the whole
        sequence runs again.
        """
        with self._lifecycle_lock:
            if self.initialized:
                logger.info("Refresh scheduler already initialized")
                return

            logger.info("Initializing stream cache")
            skipped_before = self.skipped_ticks
            result = self.run_refresh()
            if result is not None:
                self._validate_sample(result.new_urls)
            elif self.skipped_ticks > skipped_before:
                logger.warning("Startup refresh skipped: another refresh is in progress; startup validation not run")
            else:
                logger.warning("Startup refresh failed; startup validation not run")
            self._start_timer()
            self.initialized = True

    def destroy(self):
        """Cancel the timer and reset the initialized flag"""
        with self._lifecycle_lock:
            self._stop_event.set()
            if self.thread:
                self.thread.join(timeout=5)
            self.thread = None
            self.initialized = False
        logger.info("Refresh scheduler stopped")

    def run_refresh(self) -> Optional[RefreshResult]:
        """
        Run one refresh unless another is already in flight.

        Returns:
            The RefreshResult, or None if the refresh failed or was skipped
        """
        if not self._refresh_lock.acquire(blocking=False):
            self.skipped_ticks += 1
            logger.warning("Refresh already in progress, skipping")
            return None

        try:
            try:
                result = self.refresh_fn()
            except Exception as e:
                logger.error(f"Stream refresh failed, serving previous snapshot: {e}")
                self._record(False, None)
                return None

            logger.info(
                f"Stream cache refreshed: {result.channels} channels, "
                f"{result.streams} streams, {result.categories} categories "
                f"({result.filtered} filtered, {len(result.demoted_urls)} demoted)"
            )
            self._record(True, result)
            return result
        finally:
            self._refresh_lock.release()

    def get_status(self) -> dict:
        return {
            "initialized": self.initialized,
            "running": self.running,
            "refresh_in_progress": self.refresh_in_progress,
            "interval_minutes": self.interval_minutes,
            "last_refresh": self.last_refresh_at.isoformat() if self.last_refresh_at else None,
            "last_refresh_status": self.last_refresh_status,
            "skipped_ticks": self.skipped_ticks,
        }

    def _record(self, success: bool, result: Optional[RefreshResult]):
        self.last_refresh_at = datetime.now(timezone.utc)
        self.last_refresh_status = "success" if success else "error"
        if self.on_refresh:
            try:
                self.on_refresh(success, result)
            except Exception as e:
                logger.warning(f"Refresh hook failed: {e}")

    def _validate_sample(self, urls: List[str]):
        if not self.validate_fn or not self.startup_sample or not urls:
            return

        sample = urls[: self.startup_sample]
        logger.info(f"Validating {len(sample)} stream(s) after startup")
        with ThreadPoolExecutor(max_workers=len(sample)) as executor:
            results = list(executor.map(self._validate_isolated, sample))
        logger.info(f"Startup validation: {sum(results)}/{len(sample)} reachable")

    def _validate_isolated(self, url: str) -> bool:
        try:
            return bool(self.validate_fn(url))
        except Exception as e:
            logger.warning(f"Startup validation of {url} failed: {e}")
            return False

    def _start_timer(self):
        self._stop_event = threading.Event()
        self.thread = threading.Thread(target=self._run, args=(self._stop_event,), daemon=True)
        self.thread.start()
        logger.info(f"Refresh timer armed (interval: {self.interval_minutes} minutes)")

    def _run(self, stop_event: threading.Event):
        """Timer loop - a failed refresh never stops the next tick"""
        while not stop_event.wait(self.interval_seconds):
            try:
                logger.info("Auto-refreshing streams")
                self.run_refresh()
            except Exception as e:
                logger.error(f"Error in refresh scheduler: {e}")
