"""
API Response Utilities - Standardized responses for the bundle endpoints
"""

from flask import jsonify
import logging

logger = logging.getLogger(__name__)


# API Error Codes
class ErrorCode:
    SUCCESS = "SUCCESS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"


def success_response(data=None, message=None, status_code=200):
    """
    Standard success response format for API endpoints
    """
    response = {"code": ErrorCode.SUCCESS, "success": True}

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    return jsonify(response), status_code


def error_response(error_code=ErrorCode.INTERNAL_ERROR, message=None, details=None, status_code=400):
    """
    Standard error response format for API endpoints
    """
    response = {"code": error_code, "success": False}

    if message:
        response["message"] = message
    elif error_code == ErrorCode.NOT_FOUND:
        response["message"] = "Resource not found"
    elif error_code == ErrorCode.VALIDATION_ERROR:
        response["message"] = "Invalid request parameters"
    elif error_code == ErrorCode.UPSTREAM_UNAVAILABLE:
        response["message"] = "Upstream service unavailable"
    else:
        response["message"] = "An unexpected error occurred"

    if details:
        response["details"] = details

    if error_code == ErrorCode.INTERNAL_ERROR:
        logger.error(f"{error_code}: {message} | Details: {details}")

    return jsonify(response), status_code

