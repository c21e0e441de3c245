"""
Playlist Service - retrieves per-country playlists from the upstream source
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import requests

from error_handling import FetchError
from models import Entry
from services.playlist_parser import parse_playlist

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://raw.githubusercontent.com/iptv-org/iptv/master/streams"

# Order matters: a refresh loads the first `max_countries` codes
# fmt: off
COUNTRIES = [
    "at", "de", "ch", "us", "uk", "ca", "au", "fr", "es", "it",
    "nl", "be", "se", "no", "dk", "fi", "pl", "cz", "hu", "ro",
    "bg", "gr", "tr", "ru", "ua", "br", "mx", "ar", "cl", "pe",
    "jp", "kr", "cn", "in", "id", "th", "vn", "ph", "my", "sg",
    "za", "eg", "ma", "ng", "ke", "il", "ae", "sa", "qa", "kw",
]
# fmt: on


class PlaylistService:
    """Service for fetching and parsing playlists from the upstream source"""

    def __init__(self, base_url=DEFAULT_BASE_URL, countries=None, timeout=30, max_workers=8):
        self.base_url = base_url.rstrip("/")
        self.countries = list(countries) if countries is not None else list(COUNTRIES)
        self.timeout = timeout
        self.max_workers = max(1, int(max_workers))

    def country_url(self, country_code: str) -> str:
        return f"{self.base_url}/{country_code.lower()}.m3u"

    def fetch_playlist(self, url: str) -> str:
        """
        Fetch raw playlist text.

        Raises:
            FetchError: on network failure or a non-success status
        """
        logger.debug(f"Fetching playlist {url}")
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"Failed to fetch {url}: {e}") from e

        if not response.ok:
            raise FetchError(url, status_code=response.status_code)

        return response.text

    def get_playlist_entries(self, url: str) -> List[Entry]:
        return parse_playlist(self.fetch_playlist(url))

    def get_country_entries(self, country_code: str) -> List[Entry]:
        """Fetch and parse one country's playlist (raises FetchError)"""
        url = self.country_url(country_code)
        logger.info(f"Fetching {country_code.upper()} streams from {url}")
        return self.get_playlist_entries(url)

    def get_all_entries(self, max_countries: int = 10) -> Tuple[List[Entry], int]:
        """
        Fetch the first `max_countries` country playlists as one batch.

        A failing source contributes no entries instead of aborting the batch.

        Returns:
            (entries in country order, number of sources fetched successfully)
        """
        countries = self.countries[: max(0, max_countries)]
        if not countries:
            return [], 0

        logger.info(f"Loading streams from {len(countries)} countries")

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(countries))) as executor:
            results = list(executor.map(self._fetch_country_isolated, countries))

        entries: List[Entry] = []
        succeeded = 0
        for country_entries in results:
            if country_entries is None:
                continue
            succeeded += 1
            entries.extend(country_entries)

        logger.info(f"Loaded {len(entries)} entries from {succeeded}/{len(countries)} countries")
        return entries, succeeded

    def _fetch_country_isolated(self, country_code: str) -> Optional[List[Entry]]:
        try:
            return self.get_country_entries(country_code)
        except FetchError as e:
            logger.warning(f"Failed to load {country_code}: {e}")
            return None

    def get_available_countries(self) -> List[str]:
        return list(self.countries)
