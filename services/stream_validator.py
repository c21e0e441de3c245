"""
Stream Validator - bounded-time liveness checks for stream URLs

A check is a single HEAD request. Its outcome resets the URL's health in the
cache: healthy on success, failed on anything else.
"""

import logging
from typing import Any, Dict, Optional

import requests

from services.stream_cache import StreamCache

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3.0
WARNING_HEALTH_THRESHOLD = 30

# HEAD refused by the server: the resource status stays hidden from us
OPAQUE_STATUS_CODES = {405, 501}

LOW_HEALTH_WARNING = "This stream may have connection issues"
DEMOTED_WARNING = "This stream is no longer listed by its source and may be offline"

RESULT_SUCCESS = "success"
RESULT_OPAQUE = "opaque"
RESULT_HTTP_ERROR = "http_error"
RESULT_TIMEOUT = "timeout"
RESULT_CONNECTION_FAILED = "connection_failed"
RESULT_CACHED = "cached"


class StreamValidator:
    """Checks stream URLs and writes the outcome back into the cache"""

    def __init__(
        self,
        cache: StreamCache,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        trust_opaque_responses: bool = True,
    ):
        self.cache = cache
        self.timeout_seconds = float(timeout_seconds)
        self.trust_opaque_responses = trust_opaque_responses

    def validate(self, url: str) -> bool:
        """
        Check whether a stream URL is reachable.

        A URL already validated in the cache is answered without a request.
        Failed or demoted URLs are always checked again.
        """
        return self.check(url)["valid"]

    def check(self, url: str) -> Dict[str, Any]:
        """
        Validate a URL and describe the outcome.

        Returns:
            Dict with url, valid, result (one of the RESULT_* values),
            http_status_code and error_message where applicable
        """
        if self.cache.is_stream_validated(url):
            return {"url": url, "valid": True, "result": RESULT_CACHED}

        outcome = self._request_outcome(url)
        valid = outcome["result"] == RESULT_SUCCESS or (
            outcome["result"] == RESULT_OPAQUE and self.trust_opaque_responses
        )
        self.cache.record_validation(url, valid)

        logger.debug(f"Check {url}: {outcome['result']} (valid={valid})")
        return {"url": url, "valid": valid, **outcome}

    def _request_headers(self, url: str) -> Dict[str, str]:
        headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
        stream = self.cache.get_stream(url)
        if stream is not None:
            if stream.http_referrer:
                headers["Referer"] = stream.http_referrer
            if stream.user_agent:
                headers["User-Agent"] = stream.user_agent
        return headers

    def _request_outcome(self, url: str) -> Dict[str, Any]:
        timeout = (self.timeout_seconds, self.timeout_seconds)
        try:
            response = requests.head(
                url,
                headers=self._request_headers(url),
                allow_redirects=True,
                timeout=timeout,
            )
        except requests.exceptions.Timeout:
            return {
                "result": RESULT_TIMEOUT,
                "error_message": f"No response within {self.timeout_seconds:g} seconds",
            }
        except requests.exceptions.RequestException as e:
            return {"result": RESULT_CONNECTION_FAILED, "error_message": str(e)[:500]}

        status = response.status_code
        if response.ok:
            return {"result": RESULT_SUCCESS, "http_status_code": status}
        if status in OPAQUE_STATUS_CODES:
            return {"result": RESULT_OPAQUE, "http_status_code": status}
        return {"result": RESULT_HTTP_ERROR, "http_status_code": status}

    def get_stream_warning(self, url: str) -> Optional[str]:
        """Advisory caution for a stream, or None. Never blocks playback."""
        if self.cache.is_demoted(url):
            return DEMOTED_WARNING
        if self.cache.has_health(url) and self.cache.get_health(url) < WARNING_HEALTH_THRESHOLD:
            return LOW_HEALTH_WARNING
        return None
