# Overview: Service error taxonomy shared by services and routes.

"""
Every failure a service can report maps to one HTTP status and a stable
machine-readable code. Routes catch ServiceError, roll back, and answer with
error_response(); anything else is an unexpected 500.
"""
from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    """Base class for expected, user-reportable failures."""

    status_code = 500
    code = "SERVICE_ERROR"
    default_message = "Service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidInputError(ServiceError):
    """400: malformed or missing fields."""
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid input"


class UnauthorizedError(ServiceError):
    """401: bad or missing admin credential or integration token."""
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Not authorized"


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"
    default_message = "Integration token expired"


class SystemBlockedError(ServiceError):
    """403: the counting window is closed."""
    status_code = 403
    code = "SYSTEM_BLOCKED"
    default_message = "System is blocked for counting"


class IntegrationDisabledError(ServiceError):
    status_code = 403
    code = "INTEGRATION_DISABLED"
    default_message = "Integration is disabled"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class DuplicateSubmissionError(ServiceError):
    """409: the store already has a completed count. Expected, not exceptional."""
    status_code = 409
    code = "ALREADY_SUBMITTED"
    default_message = "This store has already submitted its count"


class ConfigurationError(ServiceError):
    """500: a required server secret or credential is missing."""
    status_code = 500
    code = "CONFIGURATION_ERROR"
    default_message = "Server configuration error"


class UpstreamStoreError(ServiceError):
    """500: the database rejected or failed an operation."""
    status_code = 500
    code = "STORE_ERROR"
    default_message = "Database operation failed"


def error_response(exc: ServiceError):
    return jsonify({"error": str(exc), "code": exc.code}), exc.status_code
