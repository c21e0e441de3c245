"""
Catalog Service - client for the upstream JSON catalog API

The catalog publishes channels, streams, categories, logos, countries and a
blocklist as JSON arrays. It is the fallback source when the playlist cache
has nothing to serve.
"""

import logging
from typing import List

import requests

from error_handling import FetchError
from models import Category, Channel, Country, Logo, Stream
from schemas import CategorySchema, ChannelSchema, CountrySchema, LogoSchema, StreamSchema, load_records

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_URL = "https://iptv-org.github.io/api"


class CatalogService:
    """Service for reading the upstream catalog API"""

    def __init__(self, base_url=DEFAULT_CATALOG_URL, timeout=30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _make_request(self, resource):
        """
        GET one catalog resource and decode it.

        Raises:
            FetchError: on network failure, non-success status or invalid JSON
        """
        url = f"{self.base_url}/{resource}.json"
        logger.debug(f"Fetching catalog resource {url}")

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(url, status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"Failed to fetch {url}: {e}") from e
        except ValueError as e:
            raise FetchError(url, f"Invalid JSON from {url}") from e

    def get_channels(self) -> List[Channel]:
        return load_records(ChannelSchema, self._make_request("channels"))

    def get_streams(self) -> List[Stream]:
        return load_records(StreamSchema, self._make_request("streams"))

    def get_categories(self) -> List[Category]:
        return load_records(CategorySchema, self._make_request("categories"))

    def get_logos(self) -> List[Logo]:
        return load_records(LogoSchema, self._make_request("logos"))

    def get_countries(self) -> List[Country]:
        return load_records(CountrySchema, self._make_request("countries"))

    def get_blocklist(self) -> List[str]:
        """
        Blocked entries as plain strings.

        Entries may be bare strings or objects; objects contribute their
        'channel' value.
        """
        payload = self._make_request("blocklist")
        if not isinstance(payload, list):
            return []

        blocked = []
        for item in payload:
            if isinstance(item, str):
                blocked.append(item)
            elif isinstance(item, dict) and item.get("channel"):
                blocked.append(str(item["channel"]))
        return blocked
