"""
Tests for Catalog Service
"""
from unittest.mock import Mock, patch

import pytest
import requests

from error_handling import FetchError
from services.catalog_service import CatalogService

BASE_URL = "https://catalog.example.com/api"


def json_response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestCatalogService:
    """Test suite for CatalogService"""

    @patch("requests.get")
    def test_get_channels(self, mock_get):
        """Test channel records load and invalid items are skipped"""
        mock_get.return_value = json_response(
            [
                {"id": "news.at", "name": "News AT", "country": "AT", "categories": ["news"], "is_nsfw": False},
                {"name": "No Id"},
                {"id": "music.de", "name": "Music DE", "country": None},
            ]
        )
        service = CatalogService(BASE_URL)

        channels = service.get_channels()

        assert [c.id for c in channels] == ["news.at", "music.de"]
        assert channels[0].categories == ["news"]
        assert channels[1].country == "Unknown"
        mock_get.assert_called_once_with(f"{BASE_URL}/channels.json", timeout=30)

    @patch("requests.get")
    def test_get_streams(self, mock_get):
        """Test the catalog 'referrer' field maps onto http_referrer"""
        mock_get.return_value = json_response(
            [
                {"channel": "news.at", "url": "http://cdn.example.com/n.m3u8", "referrer": "http://news.example.com/"},
                {"channel": None, "url": "http://cdn.example.com/orphan.m3u8"},
            ]
        )
        service = CatalogService(BASE_URL)

        streams = service.get_streams()

        assert streams[0].http_referrer == "http://news.example.com/"
        assert streams[1].channel == ""

    @patch("requests.get")
    def test_get_categories_and_countries(self, mock_get):
        mock_get.side_effect = [
            json_response([{"id": "news", "name": "News"}]),
            json_response([{"code": "AT", "name": "Austria", "flag": "x"}]),
        ]
        service = CatalogService(BASE_URL)

        assert service.get_categories()[0].name == "News"
        assert service.get_countries()[0].code == "AT"

    @patch("requests.get")
    def test_get_logos(self, mock_get):
        """Test logos keyed by channel are loaded"""
        mock_get.return_value = json_response([{"channel": "news.at", "url": "http://img.example.com/n.png"}])
        service = CatalogService(BASE_URL)

        logos = service.get_logos()

        assert logos[0].id == "news.at"
        assert logos[0].url == "http://img.example.com/n.png"

    @patch("requests.get")
    def test_non_list_payload(self, mock_get):
        mock_get.return_value = json_response({"error": "unexpected"})
        service = CatalogService(BASE_URL)

        assert service.get_channels() == []
        assert service.get_blocklist() == []

    @patch("requests.get")
    def test_http_error(self, mock_get):
        """Test a non-success status raises FetchError"""
        response = json_response([])
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=Mock(status_code=503))
        mock_get.return_value = response
        service = CatalogService(BASE_URL)

        with pytest.raises(FetchError) as exc_info:
            service.get_channels()

        assert exc_info.value.status_code == 503

    @patch("requests.get")
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("unreachable")
        service = CatalogService(BASE_URL)

        with pytest.raises(FetchError):
            service.get_streams()

    @patch("requests.get")
    def test_invalid_json(self, mock_get):
        response = json_response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response
        service = CatalogService(BASE_URL)

        with pytest.raises(FetchError) as exc_info:
            service.get_categories()

        assert "Invalid JSON" in str(exc_info.value)

    @patch("requests.get")
    def test_get_blocklist(self, mock_get):
        """Test blocklist entries may be strings or objects"""
        mock_get.return_value = json_response(
            ["bad.channel", {"channel": "worse.channel", "reason": "dmca"}, {"reason": "no channel"}, 42]
        )
        service = CatalogService(BASE_URL)

        assert service.get_blocklist() == ["bad.channel", "worse.channel"]
