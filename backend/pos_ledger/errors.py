# Overview: Domain error kinds shared by services and routes.

from __future__ import annotations


class PosError(Exception):
    """Base class for expected, reportable failures."""

    error_type = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError, ValueError):
    """Malformed or missing input."""

    error_type = "validation_error"
    http_status = 400


class ConflictError(PosError):
    """Business rule conflict (duplicate active barcode, checkout already in flight)."""

    error_type = "conflict"
    http_status = 409


class AuthenticationError(PosError):
    """No active session where one is required."""

    error_type = "authentication_error"
    http_status = 401


class NotFoundError(PosError):
    error_type = "not_found"
    http_status = 404


class InsufficientStockError(PosError):
    """Stock exhaustion detected at commit time."""

    error_type = "insufficient_stock"
    http_status = 409


class RemoteStoreError(PosError):
    """The backing store rejected or could not perform an operation."""

    error_type = "remote_store_error"
    http_status = 503


class SaleCreationFailed(PosError):
    error_type = "sale_creation_failed"
    http_status = 500
