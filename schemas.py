"""
Marshmallow schemas for serialization and input validation

Record schemas dump cache records for the HTTP API and load catalog API
payloads into the same dataclasses. Request schemas validate API input.
"""
from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validates

from models import Category, Channel, Country, Logo, Stream

# ============================================================================
# Record Schemas
# ============================================================================


class ChannelSchema(Schema):
    """Channel record (cache and catalog API)"""

    id = fields.Str(required=True)
    name = fields.Str(required=True)
    country = fields.Str(load_default="Unknown", allow_none=True)
    categories = fields.List(fields.Str(), load_default=list)
    languages = fields.List(fields.Str(), load_default=list)
    logo = fields.Str(load_default=None, allow_none=True)
    website = fields.Str(load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def make_channel(self, data, **kwargs):
        data["country"] = data.get("country") or "Unknown"
        return Channel(**data)


class StreamSchema(Schema):
    """Stream record (cache and catalog API)"""

    channel = fields.Str(required=True, allow_none=True)
    url = fields.Str(required=True)
    title = fields.Str(load_default=None, allow_none=True)
    http_referrer = fields.Str(load_default=None, allow_none=True)
    user_agent = fields.Str(load_default=None, allow_none=True)
    quality = fields.Str(load_default=None, allow_none=True)
    timeshift = fields.Str(load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def accept_referrer_alias(self, data, **kwargs):
        """The catalog API names the referrer header 'referrer'"""
        if isinstance(data, dict) and "referrer" in data and "http_referrer" not in data:
            data = dict(data)
            data["http_referrer"] = data.pop("referrer")
        return data

    @post_load
    def make_stream(self, data, **kwargs):
        data["channel"] = data.get("channel") or ""
        return Stream(**data)


class CategorySchema(Schema):
    id = fields.Str(required=True)
    name = fields.Str(required=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def make_category(self, data, **kwargs):
        return Category(**data)


class LogoSchema(Schema):
    id = fields.Str(required=True)
    url = fields.Str(required=True)

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def accept_channel_alias(self, data, **kwargs):
        """Catalog logos are keyed by their channel id"""
        if isinstance(data, dict) and "channel" in data and "id" not in data:
            data = dict(data)
            data["id"] = data.pop("channel")
        return data

    @post_load
    def make_logo(self, data, **kwargs):
        return Logo(**data)


class CountrySchema(Schema):
    code = fields.Str(required=True)
    name = fields.Str(required=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def make_country(self, data, **kwargs):
        return Country(**data)


def load_records(schema_class, payload):
    """
    Load a JSON array into records, skipping items that fail validation.

    Returns:
        List of records (empty when the payload is not a list)
    """
    if not isinstance(payload, list):
        return []

    schema = schema_class()
    records = []
    for item in payload:
        try:
            records.append(schema.load(item))
        except ValidationError:
            continue
    return records


# ============================================================================
# Request Schemas
# ============================================================================


class StreamValidateSchema(Schema):
    """Schema for requesting a stream check"""

    url = fields.Str(required=True, validate=lambda x: 1 <= len(x) <= 2048)

    @validates("url")
    def validate_url(self, value):
        if not value.strip():
            raise ValidationError("URL cannot be empty or whitespace")


class LoadMoreSchema(Schema):
    """Schema for loading additional country playlists"""

    count = fields.Int(load_default=10, validate=lambda x: 1 <= x <= 50)


class CacheConfigUpdateSchema(Schema):
    """Schema for updating one cache setting"""

    value = fields.Raw(required=True)
    description = fields.Str(validate=lambda x: len(x) <= 500)


# Per-key validation of setting values
CACHE_CONFIG_FIELDS = {
    "refresh_interval_minutes": fields.Int(validate=lambda x: 1 <= x <= 1440),
    "validation_timeout_seconds": fields.Float(validate=lambda x: 0.5 <= x <= 30),
    "trust_opaque_responses": fields.Bool(),
    "startup_validation_sample": fields.Int(validate=lambda x: 0 <= x <= 50),
    "max_countries": fields.Int(validate=lambda x: 1 <= x <= 50),
    "playlist_base_url": fields.Url(schemes={"http", "https"}),
    "catalog_api_url": fields.Url(schemes={"http", "https"}),
    "denylist_hosts": fields.Str(validate=lambda x: len(x) <= 2000),
}


def validate_config_value(key, value):
    """
    Validate and normalize a setting value.

    Raises:
        ValidationError: if the key is unknown or the value is invalid
    """
    field = CACHE_CONFIG_FIELDS.get(key)
    if field is None:
        raise ValidationError(f"Unknown setting: {key}")
    return field.deserialize(value)


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_request_data(schema_class):
    """
    Decorator to validate request data using a Marshmallow schema

    Usage:
        @bp.route('/api/resource', methods=['POST'])
        @validate_request_data(ResourceSchema)
        def create_resource():
            data = request.validated_data

    Returns 400 Bad Request with validation errors if data is invalid.
    """
    from functools import wraps

    from flask import jsonify, request

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                schema = schema_class()
                validated_data = schema.load(request.get_json(silent=True) or {})
                request.validated_data = validated_data
                return f(*args, **kwargs)
            except ValidationError as err:
                return jsonify({"success": False, "error": "Validation failed", "validation_errors": err.messages}), 400

        return wrapper

    return decorator
