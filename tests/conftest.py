"""
Pytest configuration and shared fixtures for test suite

Provides Flask app, database, client and stream manager fixtures for testing.
"""
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test database URI BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STREAM_CACHE_AUTOSTART"] = "false"

# Import app and models AFTER setting environment
import app as app_module
from models import db as _db
from routes import streams as streams_routes
from services.catalog_service import CatalogService
from services.playlist_parser import parse_playlist
from services.playlist_service import PlaylistService
from services.stream_cache import StreamCache
from services.stream_manager import StreamManager

SAMPLE_PLAYLIST = """#EXTM3U
#EXTINF:-1 tvg-id="news.at" tvg-logo="http://img.example.com/news.png" group-title="News" tvg-country="AT" tvg-language="German",News AT HD
http://cdn.example.com/news/index.m3u8
#EXTINF:-1 tvg-id="news.at" group-title="Politics",News AT SD
#EXTVLCOPT:http-referrer=http://news.example.com/
http://backup.example.com/news.ts
#EXTINF:-1,Music 24
https://music.example.com/live.m3u8
"""


@pytest.fixture(scope="function")
def app():
    """
    Create Flask app configured for testing

    Uses in-memory SQLite database that's reset between tests.
    """
    # Get the Flask app instance
    flask_app = app_module.app

    # Configure for testing
    flask_app.config["TESTING"] = True

    # Create all tables
    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """
    Flask test client for making HTTP requests

    Use client.get(), client.post(), etc. to test routes.
    """
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """
    Database fixture with app context

    Provides access to db.session for direct database operations.
    """
    with app.app_context():
        yield _db


@pytest.fixture
def sample_entries():
    """Three entries for two channels"""
    return parse_playlist(SAMPLE_PLAYLIST)


@pytest.fixture
def playlist_service(sample_entries):
    """Playlist source double answering with the sample playlist"""
    service = MagicMock(spec=PlaylistService)
    service.base_url = "https://playlists.example.com/streams"
    service.countries = ["at", "de", "ch"]
    service.get_all_entries.return_value = (sample_entries, 1)
    service.get_available_countries.return_value = ["at", "de", "ch"]
    return service


@pytest.fixture
def catalog_service():
    """Catalog double with nothing to offer"""
    service = MagicMock(spec=CatalogService)
    service.get_channels.return_value = []
    service.get_streams.return_value = []
    service.get_categories.return_value = []
    service.get_logos.return_value = []
    service.get_countries.return_value = []
    service.get_blocklist.return_value = []
    return service


@pytest.fixture
def stream_manager(app, playlist_service, catalog_service):
    """
    Stream manager over test doubles, installed for the API routes

    Not initialized: no timer thread runs. Call refresh() to load the sample.
    """
    manager = StreamManager(
        playlist_service=playlist_service,
        catalog_service=catalog_service,
        cache=StreamCache(),
        max_countries=1,
        refresh_interval_minutes=60,
        startup_validation_sample=0,
        on_refresh=app_module.record_refresh,
    )
    previous = streams_routes._stream_manager
    streams_routes.set_stream_manager(manager)
    yield manager
    manager.destroy()
    streams_routes.set_stream_manager(previous)


@pytest.fixture
def loaded_manager(stream_manager):
    """Stream manager holding the sample snapshot"""
    stream_manager.refresh()
    return stream_manager
