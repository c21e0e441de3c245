"""
Data models for the Stream Cache service

Two kinds of models live here:
  - Plain dataclass records (Entry, Channel, Stream, Category, Logo, Country)
    that flow through parsing, normalization and the in-memory cache.
  - Database models for configuration and persistent refresh state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


# ============================================================================
# Stream Records
# ============================================================================


@dataclass
class Entry:
    """One #EXTINF + URL pair from a playlist, before normalization"""

    title: str
    url: str
    tvg_id: Optional[str] = None
    tvg_name: Optional[str] = None
    logo: Optional[str] = None
    group: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None
    http_referrer: Optional[str] = None
    user_agent: Optional[str] = None
    timeshift: Optional[str] = None


@dataclass
class Channel:
    id: str
    name: str
    country: str = "Unknown"
    categories: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    logo: Optional[str] = None
    website: Optional[str] = None


@dataclass
class Stream:
    """A playable source for a channel. The URL is its identity."""

    channel: str
    url: str
    title: Optional[str] = None
    http_referrer: Optional[str] = None
    user_agent: Optional[str] = None
    quality: Optional[str] = None
    timeshift: Optional[str] = None

    @property
    def is_hls(self) -> bool:
        return ".m3u8" in self.url.lower()


@dataclass
class Category:
    id: str
    name: str


@dataclass
class Logo:
    id: str
    url: str


@dataclass
class Country:
    code: str
    name: str


# ============================================================================
# Persistent State
# ============================================================================


class SyncMetadata(db.Model):  # type: ignore[name-defined]
    """Stores refresh state to persist across restarts"""

    __tablename__ = "sync_metadata"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)  # e.g., 'last_refresh'
    value = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @staticmethod
    def get(key, default=None):
        """Get a metadata value by key"""
        record = SyncMetadata.query.filter_by(key=key).first()
        return record.value if record else default

    @staticmethod
    def set(key, value):
        """Set a metadata value by key"""
        record = SyncMetadata.query.filter_by(key=key).first()
        if record:
            record.value = value
            record.updated_at = datetime.utcnow()
        else:
            record = SyncMetadata(key=key, value=value)
            db.session.add(record)
        db.session.commit()
        return record


class CacheConfig(db.Model):  # type: ignore[name-defined]
    """
    Global configuration for the stream cache.

    Stores settings that control:
    - How often playlists are re-fetched
    - How stream checks are bounded and judged
    - Which upstream sources are used
    """

    __tablename__ = "cache_config"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    DEFAULTS = {
        "refresh_interval_minutes": ("30", "Minutes between playlist refreshes"),
        "validation_timeout_seconds": ("3", "Seconds before a stream check is abandoned"),
        "trust_opaque_responses": (
            "true",
            "Count checks the server refuses to answer (HEAD 405/501) as reachable",
        ),
        "startup_validation_sample": ("5", "Number of streams validated right after startup"),
        "max_countries": ("10", "Number of country playlists loaded per refresh"),
        "playlist_base_url": (
            "https://raw.githubusercontent.com/iptv-org/iptv/master/streams",
            "Base URL of the per-country playlist files",
        ),
        "catalog_api_url": ("https://iptv-org.github.io/api", "Base URL of the JSON catalog API"),
        "denylist_hosts": ("pluto.tv", "Comma-separated hosts whose streams are never cached"),
    }

    @staticmethod
    def get(key, default=None):
        """Get a config value by key, with fallback to defaults."""
        record = CacheConfig.query.filter_by(key=key).first()
        if record:
            return record.value
        if key in CacheConfig.DEFAULTS:
            return CacheConfig.DEFAULTS[key][0]
        return default

    @staticmethod
    def get_int(key, default=0):
        """Get a config value as integer."""
        value = CacheConfig.get(key)
        try:
            return int(value) if value else default
        except (ValueError, TypeError):
            return default

    @staticmethod
    def get_float(key, default=0.0):
        """Get a config value as float."""
        value = CacheConfig.get(key)
        try:
            return float(value) if value else default
        except (ValueError, TypeError):
            return default

    @staticmethod
    def get_bool(key, default=False):
        """Get a config value as boolean."""
        value = CacheConfig.get(key)
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    @staticmethod
    def get_list(key):
        """Get a comma-separated config value as a list of stripped items."""
        value = CacheConfig.get(key) or ""
        return [item.strip() for item in value.split(",") if item.strip()]

    @staticmethod
    def set(key, value, description=None):
        """Set a config value."""
        record = CacheConfig.query.filter_by(key=key).first()
        if record:
            record.value = str(value)
            record.updated_at = datetime.utcnow()
            if description:
                record.description = description
        else:
            desc = description
            if not desc and key in CacheConfig.DEFAULTS:
                desc = CacheConfig.DEFAULTS[key][1]
            record = CacheConfig(key=key, value=str(value), description=desc)
            db.session.add(record)
        db.session.commit()
        return record

    @staticmethod
    def get_all():
        """Get all config values as a dict, including defaults."""
        result = {}
        for key, (value, description) in CacheConfig.DEFAULTS.items():
            result[key] = {"value": value, "description": description}
        for record in CacheConfig.query.all():
            result[record.key] = {"value": record.value, "description": record.description}
        return result
