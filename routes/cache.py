"""
Cache routes - refresh control and cache status
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import handle_errors
from models import SyncMetadata
from routes.streams import get_stream_manager
from schemas import CountrySchema, LoadMoreSchema, LogoSchema, validate_request_data

logger = logging.getLogger(__name__)

# Create blueprint
cache_bp = Blueprint("cache", __name__)


def _refresh_response(result, manager):
    if result is None:
        in_progress = manager.scheduler.refresh_in_progress
        if in_progress:
            return jsonify({"success": False, "error": "A refresh is already in progress"}), 409
        return jsonify({"success": False, "error": "Refresh failed, serving previous snapshot"}), 502

    return jsonify(
        {
            "success": True,
            "channels": result.channels,
            "streams": result.streams,
            "categories": result.categories,
            "filtered": result.filtered,
            "new_streams": len(result.new_urls),
            "demoted_streams": len(result.demoted_urls),
            "last_updated": result.last_updated,
        }
    )


@cache_bp.route("/api/cache/status", methods=["GET"])
@handle_errors(default_message="Error fetching cache status")
def get_cache_status():
    """Snapshot counts, health summary, scheduler state and persisted refresh info"""
    status = get_stream_manager().status()
    status["persisted"] = {
        "last_refresh": SyncMetadata.get("last_refresh"),
        "last_refresh_status": SyncMetadata.get("last_refresh_status"),
    }
    return jsonify({"success": True, **status})


@cache_bp.route("/api/cache/refresh", methods=["POST"])
@handle_errors(default_message="Error refreshing streams")
def refresh_cache():
    """Refresh the cache now"""
    manager = get_stream_manager()
    return _refresh_response(manager.refresh(), manager)


@cache_bp.route("/api/cache/load-more", methods=["POST"])
@handle_errors(default_message="Error loading more countries")
@validate_request_data(LoadMoreSchema)
def load_more_countries():
    """Widen the set of country playlists and refresh"""
    manager = get_stream_manager()
    result = manager.load_more_countries(request.validated_data["count"])
    return _refresh_response(result, manager)


@cache_bp.route("/api/cache/blocklist", methods=["POST"])
@handle_errors(default_message="Error loading blocklist")
def refresh_blocklist():
    """Reload the catalog blocklist (applies from the next refresh on)"""
    count = get_stream_manager().refresh_blocklist()
    return jsonify({"success": True, "blocked_channels": count})


@cache_bp.route("/api/countries", methods=["GET"])
@handle_errors(default_message="Error fetching countries")
def get_countries():
    """
    Countries known to the catalog plus the playlist country codes

    Query parameters:
    - source (optional): 'playlists' to only list playlist country codes
    """
    manager = get_stream_manager()
    available = manager.get_available_countries()
    if request.args.get("source") == "playlists":
        return jsonify({"success": True, "available": available})

    countries = manager.get_countries()
    return jsonify({"success": True, "available": available, "countries": CountrySchema(many=True).dump(countries)})


@cache_bp.route("/api/logos", methods=["GET"])
@handle_errors(default_message="Error fetching logos")
def get_logos():
    logos = get_stream_manager().get_logos()
    return jsonify({"success": True, "count": len(logos), "logos": LogoSchema(many=True).dump(logos)})
