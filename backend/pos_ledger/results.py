# Overview: Uniform success/failure result shape returned by public service operations.

from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import PosError, RemoteStoreError
from .extensions import db


@dataclass
class Result:
    """
    Outcome of a public service operation.

    Callers must check `success` before using `data`. Exceptions never cross
    the service boundary; they are converted here.
    """
    success: bool
    data: Any = None
    error: str | None = None
    error_type: str | None = None
    details: dict = field(default_factory=dict)
    http_status: int = 200

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: PosError) -> "Result":
        return cls(
            success=False,
            error=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            http_status=exc.http_status,
        )

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "data": self.data}
        payload = {"success": False, "error": self.error, "error_type": self.error_type}
        if self.details:
            payload["details"] = self.details
        return payload


def service_operation(description: str):
    """
    Wrap a raising service function so it returns a Result.

    Domain failures are logged at WARNING; store failures are logged with
    traceback and reported as RemoteStoreError. The session is rolled back
    in both cases so no partial write survives the failed operation.
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return Result.ok(f(*args, **kwargs))
            except PosError as exc:
                db.session.rollback()
                current_app.logger.warning("Failed to %s: %s", description, exc.message)
                return Result.fail(exc)
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception("Failed to %s", description)
                return Result.fail(RemoteStoreError(f"Store error while trying to {description}"))
        return wrapper
    return decorator
