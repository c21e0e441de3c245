#!/usr/bin/env python3
"""
Stream Cache - live-TV stream aggregation with health tracking

Application entry point with blueprint registration:
  - routes/streams.py - Channel/stream/category listings, best stream, stream health
  - routes/cache.py - Refresh control, cache status, catalog lookups
  - routes/settings.py - Cache configuration
"""

import logging
import os
import threading
from datetime import datetime, timezone

from flask import Flask
from flask_cors import CORS

from error_handling import register_error_handlers
from models import CacheConfig, SyncMetadata, db
from services.catalog_service import CatalogService
from services.playlist_service import PlaylistService
from services.stream_cache import StreamCache
from services.stream_manager import StreamManager

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///stream_cache.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

# The refresh hook writes from the scheduler thread
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "connect_args": {
        "timeout": 30,
        "check_same_thread": False,
    },
    "pool_pre_ping": True,
}

# Initialize extensions
CORS(app)
db.init_app(app)

# Register error handlers
register_error_handlers(app)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ============================================================================
# Stream Manager
# ============================================================================


def _load_settings():
    """Read cache settings, falling back to built-in defaults"""
    with app.app_context():
        db.create_all()
        settings = {
            "refresh_interval_minutes": CacheConfig.get_int("refresh_interval_minutes", 30),
            "validation_timeout_seconds": CacheConfig.get_float("validation_timeout_seconds", 3.0),
            "trust_opaque_responses": CacheConfig.get_bool("trust_opaque_responses", True),
            "startup_validation_sample": CacheConfig.get_int("startup_validation_sample", 5),
            "max_countries": CacheConfig.get_int("max_countries", 10),
            "playlist_base_url": CacheConfig.get("playlist_base_url"),
            "catalog_api_url": CacheConfig.get("catalog_api_url"),
            "denylist_hosts": CacheConfig.get_list("denylist_hosts"),
        }

    # Environment override for the refresh interval
    env_interval = os.getenv("REFRESH_INTERVAL_MINUTES")
    if env_interval:
        try:
            settings["refresh_interval_minutes"] = int(env_interval)
        except ValueError:
            logger.warning(f"Ignoring invalid REFRESH_INTERVAL_MINUTES={env_interval!r}")
    return settings


def record_refresh(success, result):
    """Persist the outcome of a refresh so it survives restarts"""
    with app.app_context():
        SyncMetadata.set("last_refresh", datetime.now(timezone.utc).isoformat())
        SyncMetadata.set("last_refresh_status", "success" if success else "error")


def create_stream_manager(settings):
    return StreamManager(
        playlist_service=PlaylistService(base_url=settings["playlist_base_url"]),
        catalog_service=CatalogService(base_url=settings["catalog_api_url"]),
        cache=StreamCache(denylist_hosts=settings["denylist_hosts"]),
        max_countries=settings["max_countries"],
        refresh_interval_minutes=settings["refresh_interval_minutes"],
        validation_timeout_seconds=settings["validation_timeout_seconds"],
        trust_opaque_responses=settings["trust_opaque_responses"],
        startup_validation_sample=settings["startup_validation_sample"],
        on_refresh=record_refresh,
    )


stream_manager = create_stream_manager(_load_settings())

# ============================================================================
# Register Blueprints
# ============================================================================

from routes.cache import cache_bp
from routes.settings import settings_bp
from routes.streams import set_stream_manager, streams_bp

app.register_blueprint(streams_bp)
app.register_blueprint(cache_bp)
app.register_blueprint(settings_bp)

# Pass stream manager to the API blueprints
set_stream_manager(stream_manager)

# Start the cache in the background; readers get the catalog fallback until
# the first refresh lands
if os.getenv("STREAM_CACHE_AUTOSTART", "true").lower() == "true":
    threading.Thread(target=stream_manager.initialize, name="stream-cache-init", daemon=True).start()
    logger.info("Stream cache initialization started")


# ============================================================================
# CLI Commands
# ============================================================================


@app.cli.command()
def init_db():
    """Initialize the database"""
    db.create_all()
    print("Database initialized!")


@app.cli.command()
def refresh():
    """Run one stream refresh and print the result"""
    result = stream_manager.refresh()
    if result is None:
        print("Refresh failed")
    else:
        print(f"{result.channels} channels, {result.streams} streams, {result.categories} categories")


# ============================================================================
# Application Entry Point
# ============================================================================


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    debug = os.getenv("DEBUG", "False").lower() == "true"

    logger.info(f"Starting Stream Cache on port {port}")

    try:
        app.run(host="0.0.0.0", port=port, debug=debug)
    finally:
        stream_manager.destroy()
