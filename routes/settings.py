"""
Settings routes - stream cache configuration management
"""

import logging

from flask import Blueprint, jsonify, request
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from error_handling import ResourceNotFoundError, ValidationError, error_response, handle_db_error, handle_errors
from models import CacheConfig, db
from routes.streams import get_stream_manager
from schemas import CacheConfigUpdateSchema, validate_config_value, validate_request_data

settings_bp = Blueprint("settings", __name__)
logger = logging.getLogger(__name__)


# Setting key -> typed reader; keys match StreamManager.apply_settings keywords
LIVE_SETTINGS = {
    "refresh_interval_minutes": lambda: CacheConfig.get_int("refresh_interval_minutes", 30),
    "validation_timeout_seconds": lambda: CacheConfig.get_float("validation_timeout_seconds", 3.0),
    "trust_opaque_responses": lambda: CacheConfig.get_bool("trust_opaque_responses", True),
    "startup_validation_sample": lambda: CacheConfig.get_int("startup_validation_sample", 5),
    "max_countries": lambda: CacheConfig.get_int("max_countries", 10),
    "denylist_hosts": lambda: CacheConfig.get_list("denylist_hosts"),
    "playlist_base_url": lambda: CacheConfig.get("playlist_base_url"),
    "catalog_api_url": lambda: CacheConfig.get("catalog_api_url"),
}


def apply_config(manager, key):
    """Push one stored setting into a live stream manager"""
    reader = LIVE_SETTINGS.get(key)
    if reader is None:
        return
    manager.apply_settings(**{key: reader()})


@settings_bp.route("/api/settings", methods=["GET"])
@handle_errors(default_message="Error fetching settings")
def get_settings():
    """Get all cache settings, including defaults."""
    return jsonify({"success": True, "settings": CacheConfig.get_all()})


@settings_bp.route("/api/settings/<key>", methods=["GET"])
@handle_errors(default_message="Error fetching setting")
def get_setting(key):
    """Get a specific setting by key."""
    value = CacheConfig.get(key)
    if value is None:
        raise ResourceNotFoundError("Setting not found")

    description = None
    if key in CacheConfig.DEFAULTS:
        description = CacheConfig.DEFAULTS[key][1]
    record = CacheConfig.query.filter_by(key=key).first()
    if record and record.description:
        description = record.description

    return jsonify({"success": True, "key": key, "value": value, "description": description})


@settings_bp.route("/api/settings/<key>", methods=["PUT"])
@handle_errors(default_message="Error updating setting")
@validate_request_data(CacheConfigUpdateSchema)
def update_setting(key):
    """Update a setting value and apply it to the running cache."""
    if key not in CacheConfig.DEFAULTS:
        raise ResourceNotFoundError("Setting not found")

    data = request.validated_data
    try:
        value = validate_config_value(key, data["value"])
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid value for {key}", details={"value": e.messages})

    if isinstance(value, bool):
        value = "true" if value else "false"

    try:
        CacheConfig.set(key, value, data.get("description"))
    except SQLAlchemyError as e:
        db.session.rollback()
        message, status = handle_db_error(e, f"updating setting {key}")
        return error_response(message, status)

    apply_config(get_stream_manager(), key)
    logger.info(f"Setting {key} updated to {value}")

    return jsonify({"success": True, "key": key, "value": str(value), "message": "Setting updated successfully"})


@settings_bp.route("/api/settings/<key>", methods=["DELETE"])
@handle_errors(default_message="Error deleting setting")
def delete_setting(key):
    """Delete a setting (revert to default)."""
    record = CacheConfig.query.filter_by(key=key).first()
    if not record:
        raise ResourceNotFoundError("Setting not found")

    try:
        db.session.delete(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        message, status = handle_db_error(e, f"deleting setting {key}")
        return error_response(message, status)

    apply_config(get_stream_manager(), key)

    return jsonify({"success": True, "message": "Setting deleted (reverted to default)"})
