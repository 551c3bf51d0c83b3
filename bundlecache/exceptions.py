"""
bundlecache - Custom Exceptions and Exception Handlers
"""
import structlog
from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger('exceptions')


class BundleCacheException(Exception):
    """Base exception for bundlecache"""
    status_code = 400

    def __init__(self, message: str, code: str = "BUNDLECACHE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class ValidationException(BundleCacheException):
    """Malformed client input; raised before the store is touched"""
    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        logger.warning(f"Validation error: {message}", field=field)

    def to_dict(self):
        data = super().to_dict()
        if self.field:
            data['field'] = self.field
        return data


class UpstreamUnavailableException(BundleCacheException):
    """The store page could not be fetched at all; the caller should retry later"""
    status_code = 503

    def __init__(self, message: str = "The Steam store is unavailable, try again later", url: str = None):
        super().__init__(message, code="UPSTREAM_UNAVAILABLE")
        self.url = url
        logger.error(f"Upstream error: {message}", url=url)


def register_exception_handlers(app):
    """Register exception handlers with Flask app"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """Handle HTTP exceptions"""
        return jsonify({
            'error': True,
            'code': e.name.upper().replace(' ', '_'),
            'message': e.description
        }), e.code

    @app.errorhandler(BundleCacheException)
    def handle_bundlecache_exception(e):
        """Handle bundlecache exceptions, status comes from the exception class"""
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        """Handle errors raised by the store"""
        logger.error(f"Store error: {e}", exc_info=True)
        return jsonify({
            'error': True,
            'code': 'DATABASE_ERROR',
            'message': 'A database error occurred'
        }), 500

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        """Handle all other exceptions"""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'error': True,
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred'
        }), 500
