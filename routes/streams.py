"""
Stream routes - consumer read API over the stream cache

This module provides endpoints that:
1. List cached channels, streams and categories
2. Pick the best stream for a channel
3. Report and refresh the health of individual stream URLs
"""

import logging

from flask import Blueprint, jsonify, request

from error_handling import ResourceNotFoundError, ServiceUnavailableError, ValidationError, handle_errors
from schemas import CategorySchema, ChannelSchema, StreamSchema, StreamValidateSchema, validate_request_data

logger = logging.getLogger(__name__)

# Create blueprint
streams_bp = Blueprint("streams", __name__)

# Store stream manager reference (set by app.py)
_stream_manager = None


def set_stream_manager(manager):
    """Set the stream manager instance used by the API routes"""
    global _stream_manager
    _stream_manager = manager


def get_stream_manager():
    if _stream_manager is None:
        raise ServiceUnavailableError("Stream cache is not configured")
    return _stream_manager


# ============================================================================
# Listings
# ============================================================================


@streams_bp.route("/api/channels", methods=["GET"])
@handle_errors(default_message="Error fetching channels")
def get_channels():
    """
    Get all channels

    Query parameters:
    - category (optional): Only channels in this category label
    - country (optional): Only channels from this country code
    """
    category = request.args.get("category")
    country = request.args.get("country")

    channels = get_stream_manager().get_channels()
    if category:
        channels = [c for c in channels if category in c.categories]
    if country:
        channels = [c for c in channels if (c.country or "").lower() == country.lower()]

    return jsonify({"success": True, "count": len(channels), "channels": ChannelSchema(many=True).dump(channels)})


@streams_bp.route("/api/streams", methods=["GET"])
@handle_errors(default_message="Error fetching streams")
def get_streams():
    """
    Get all streams

    Query parameters:
    - channel (optional): Only streams of this channel id
    """
    channel_id = request.args.get("channel")

    streams = get_stream_manager().get_streams()
    if channel_id:
        streams = [s for s in streams if s.channel == channel_id]

    return jsonify({"success": True, "count": len(streams), "streams": StreamSchema(many=True).dump(streams)})


@streams_bp.route("/api/categories", methods=["GET"])
@handle_errors(default_message="Error fetching categories")
def get_categories():
    categories = get_stream_manager().get_categories()
    return jsonify(
        {"success": True, "count": len(categories), "categories": CategorySchema(many=True).dump(categories)}
    )


# ============================================================================
# Selection and Health
# ============================================================================


@streams_bp.route("/api/channels/<path:channel_id>/best-stream", methods=["GET"])
@handle_errors(default_message="Error selecting stream")
def get_best_stream(channel_id):
    """Best cached stream for a channel, with its advisory warning"""
    manager = get_stream_manager()
    stream = manager.best_stream_for(channel_id)
    if stream is None:
        raise ResourceNotFoundError(f"No streams for channel {channel_id}")

    return jsonify(
        {
            "success": True,
            "stream": StreamSchema().dump(stream),
            "validated": manager.is_stream_validated(stream.url),
            "warning": manager.get_stream_warning(stream.url),
        }
    )


@streams_bp.route("/api/streams/status", methods=["GET"])
@handle_errors(default_message="Error fetching stream status")
def get_stream_status():
    """
    Health state of one stream URL

    Query parameters:
    - url (required): The stream URL
    """
    url = request.args.get("url", "").strip()
    if not url:
        raise ValidationError("url is required")

    return jsonify({"success": True, **get_stream_manager().stream_status(url)})


@streams_bp.route("/api/streams/validate", methods=["POST"])
@handle_errors(default_message="Error validating stream")
@validate_request_data(StreamValidateSchema)
def validate_stream():
    """Check a stream URL now (answered from cache if already validated)"""
    url = request.validated_data["url"].strip()
    result = get_stream_manager().check_stream(url)
    return jsonify({"success": True, **result})
