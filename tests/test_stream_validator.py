"""
Tests for the stream validator
"""
from unittest.mock import Mock, patch

import pytest
import requests

from models import Stream
from services.stream_cache import HEALTH_FAILED, HEALTH_HEALTHY, StreamCache
from services.stream_validator import (
    DEMOTED_WARNING,
    LOW_HEALTH_WARNING,
    RESULT_CACHED,
    RESULT_CONNECTION_FAILED,
    RESULT_HTTP_ERROR,
    RESULT_OPAQUE,
    RESULT_SUCCESS,
    RESULT_TIMEOUT,
    StreamValidator,
)

DEAD_URL = "http://dead.example/a.m3u8"
LIVE_URL = "http://live.example/a.m3u8"


def head_response(status_code):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    return response


@pytest.fixture
def cache():
    return StreamCache()


@pytest.fixture
def validator(cache):
    return StreamValidator(cache, timeout_seconds=3)


class TestValidate:
    """Tests for probing stream URLs"""

    @patch("requests.head")
    def test_reachable_stream(self, mock_head, validator, cache):
        """Test a 2xx answer marks the stream healthy and validated"""
        mock_head.return_value = head_response(200)

        assert validator.validate(LIVE_URL) is True
        assert cache.is_stream_validated(LIVE_URL) is True
        assert cache.get_health(LIVE_URL) == HEALTH_HEALTHY

    @patch("requests.head")
    def test_validated_stream_answered_from_cache(self, mock_head, validator):
        """Test a validated URL is not checked again"""
        mock_head.return_value = head_response(200)

        validator.validate(LIVE_URL)
        result = validator.check(LIVE_URL)

        assert result["result"] == RESULT_CACHED
        assert result["valid"] is True
        mock_head.assert_called_once()

    @patch("requests.head")
    def test_timeout_fails_stream(self, mock_head, validator, cache):
        """Test a check with no answer in time fails the stream"""
        mock_head.side_effect = requests.exceptions.Timeout("timed out")

        assert validator.validate(DEAD_URL) is False
        assert cache.get_health(DEAD_URL) == HEALTH_FAILED
        assert cache.is_stream_validated(DEAD_URL) is False

    @patch("requests.head")
    def test_failed_stream_checked_again(self, mock_head, validator):
        """Test failures are never cached"""
        mock_head.side_effect = requests.exceptions.Timeout("timed out")

        validator.validate(DEAD_URL)
        validator.validate(DEAD_URL)

        assert mock_head.call_count == 2

    @patch("requests.head")
    def test_check_is_bounded(self, mock_head, cache):
        """Test the configured timeout is passed to the request"""
        mock_head.return_value = head_response(200)

        StreamValidator(cache, timeout_seconds=1.5).validate(LIVE_URL)

        assert mock_head.call_args.kwargs["timeout"] == (1.5, 1.5)
        assert mock_head.call_args.kwargs["allow_redirects"] is True

    @patch("requests.head")
    def test_connection_failure(self, mock_head, validator):
        mock_head.side_effect = requests.exceptions.ConnectionError("refused")

        result = validator.check(DEAD_URL)

        assert result["valid"] is False
        assert result["result"] == RESULT_CONNECTION_FAILED
        assert "refused" in result["error_message"]

    @patch("requests.head")
    def test_http_error_status(self, mock_head, validator):
        mock_head.return_value = head_response(404)

        result = validator.check(DEAD_URL)

        assert result["valid"] is False
        assert result["result"] == RESULT_HTTP_ERROR
        assert result["http_status_code"] == 404

    @patch("requests.head")
    def test_success_result(self, mock_head, validator):
        mock_head.return_value = head_response(204)

        result = validator.check(LIVE_URL)

        assert result == {"url": LIVE_URL, "valid": True, "result": RESULT_SUCCESS, "http_status_code": 204}

    @patch("requests.head")
    def test_opaque_response_trusted(self, mock_head, validator):
        """Test a refused HEAD counts as reachable by default"""
        mock_head.return_value = head_response(405)

        result = validator.check(LIVE_URL)

        assert result["result"] == RESULT_OPAQUE
        assert result["valid"] is True

    @patch("requests.head")
    def test_opaque_response_untrusted(self, mock_head, cache):
        """Test a refused HEAD fails when opaque answers are not trusted"""
        mock_head.return_value = head_response(501)
        validator = StreamValidator(cache, trust_opaque_responses=False)

        assert validator.validate(LIVE_URL) is False
        assert cache.get_health(LIVE_URL) == HEALTH_FAILED

    @patch("requests.head")
    def test_stream_headers_sent(self, mock_head, validator, cache):
        """Test a cached stream's referrer and user agent go with the request"""
        mock_head.return_value = head_response(200)
        cache.apply_refresh(
            [],
            [Stream(channel="c", url=LIVE_URL, http_referrer="http://site.example/", user_agent="Player/1.0")],
            [],
        )

        validator.validate(LIVE_URL)

        headers = mock_head.call_args.kwargs["headers"]
        assert headers["Referer"] == "http://site.example/"
        assert headers["User-Agent"] == "Player/1.0"
        assert headers["Cache-Control"] == "no-cache"


class TestStreamWarning:
    """Tests for advisory warnings"""

    def test_no_warning_for_unchecked_stream(self, validator):
        """Test a neutral stream carries no warning"""
        assert validator.get_stream_warning(LIVE_URL) is None

    @patch("requests.head")
    def test_failed_stream_warning(self, mock_head, validator):
        mock_head.side_effect = requests.exceptions.Timeout("timed out")

        validator.validate(DEAD_URL)

        assert validator.get_stream_warning(DEAD_URL) == LOW_HEALTH_WARNING

    @patch("requests.head")
    def test_healthy_stream_no_warning(self, mock_head, validator):
        mock_head.return_value = head_response(200)

        validator.validate(LIVE_URL)

        assert validator.get_stream_warning(LIVE_URL) is None

    def test_demoted_stream_warning(self, validator, cache):
        """Test a stream dropped by its source is flagged"""
        cache.apply_refresh([], [Stream(channel="c", url=LIVE_URL)], [])
        cache.apply_refresh([], [], [])

        assert validator.get_stream_warning(LIVE_URL) == DEMOTED_WARNING
