"""
Error types and HTTP error handling for the application

Provides:
- Domain errors raised by the stream cache (FetchError)
- Consistent JSON error response format
- Error handler decorator for route handlers
- Flask error handlers for common HTTP errors
"""
import logging
import traceback
from functools import wraps

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# Domain Errors
# ============================================================================


class StreamCacheError(Exception):
    """Base class for errors raised inside the stream cache"""

    pass


class FetchError(StreamCacheError):
    """Raise when an upstream source cannot be retrieved"""

    def __init__(self, url, message=None, status_code=None):
        self.url = url
        self.status_code = status_code
        if message is None:
            if status_code is not None:
                message = f"Failed to fetch {url}: HTTP {status_code}"
            else:
                message = f"Failed to fetch {url}"
        super().__init__(message)


# ============================================================================
# HTTP Errors (for raising in routes)
# ============================================================================


class ResourceNotFoundError(Exception):
    """Raise when a requested resource doesn't exist (404)"""

    pass


class ValidationError(ValueError):
    """Raise when input validation fails (400)"""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.details = details


class ServiceUnavailableError(Exception):
    """Raise when service/dependency is unavailable (503)"""

    pass


# ============================================================================
# Error Response Format
# ============================================================================


def error_response(message, status_code=400, details=None):
    """
    Create a standardized error response

    Args:
        message: User-friendly error message
        status_code: HTTP status code
        details: Optional additional details (dict)

    Returns:
        tuple: (response, status_code)
    """
    response = {"success": False, "error": message}

    if details:
        response["details"] = details

    return jsonify(response), status_code


# ============================================================================
# Error Handler Decorator
# ============================================================================


def handle_errors(default_message="An error occurred", log_errors=True, include_traceback_in_dev=False):
    """
    Decorator to handle exceptions in route handlers

    Usage:
        @bp.route('/api/resource')
        @handle_errors(default_message="Error fetching resource")
        def my_route():
            ...

    Args:
        default_message: Fallback message if exception has no message
        log_errors: If True, logs errors to logger
        include_traceback_in_dev: If True and app.debug=True, includes traceback
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HTTPException:
                # Let Flask handle abort()
                raise
            except ServiceUnavailableError as e:
                if log_errors:
                    logger.warning(f"Service unavailable in {f.__name__}: {e}")
                return error_response(str(e) or "Service temporarily unavailable", 503)

            except ResourceNotFoundError as e:
                if log_errors:
                    logger.warning(f"Resource not found in {f.__name__}: {e}")
                return error_response(str(e) or "Resource not found", 404)

            except FetchError as e:
                if log_errors:
                    logger.warning(f"Upstream fetch failed in {f.__name__}: {e}")
                return error_response(str(e) or "Upstream source unavailable", 502)

            except ValidationError as e:
                if log_errors:
                    logger.warning(f"Validation error in {f.__name__}: {e}")
                return error_response(str(e) or "Validation error", 400, e.details)

            except ValueError as e:
                if log_errors:
                    logger.warning(f"Value error in {f.__name__}: {e}")
                return error_response(str(e) or default_message, 400)

            except Exception as exc:
                if log_errors:
                    logger.error(f"Unexpected error in {f.__name__}", exc_info=True)

                from flask import current_app

                if current_app.config.get("DEBUG") and include_traceback_in_dev:
                    details = {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}
                    return error_response(str(exc), 500, details)
                return error_response(default_message or "An internal error occurred", 500)

        return wrapper

    return decorator


# ============================================================================
# Flask Error Handlers (register these in app.py)
# ============================================================================


def register_error_handlers(app):
    """
    Register global error handlers for the Flask app

    Call this in app.py after creating the Flask app:
        register_error_handlers(app)
    """

    @app.errorhandler(404)
    def not_found(error):
        return error_response("Resource not found", 404)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response("Bad request", 400)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response("Method not allowed", 405)

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)

        if app.config.get("DEBUG"):
            return error_response(str(error), 500)
        return error_response("An internal error occurred", 500)

    @app.errorhandler(503)
    def service_unavailable(error):
        return error_response("Service temporarily unavailable", 503)


# ============================================================================
# Database Error Helpers
# ============================================================================


def handle_db_error(e, operation="database operation"):
    """
    Handle database errors safely

    Args:
        e: The exception
        operation: Description of what was being attempted

    Returns:
        tuple: (error_message, status_code)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    if isinstance(e, IntegrityError):
        logger.warning(f"Database integrity error during {operation}: {e}")
        return "Database constraint violation.", 400

    elif isinstance(e, OperationalError):
        logger.error(f"Database operational error during {operation}: {e}", exc_info=True)
        return "Database is temporarily unavailable", 503

    else:
        logger.error(f"Database error during {operation}: {e}", exc_info=True)
        return "A database error occurred", 500
