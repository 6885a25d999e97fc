"""
errors.py — Battle Room Error Taxonomy
=======================================
Every rejected operation surfaces as one of these typed failures.
The HTTP layer renders them as {"error": {"code", "message", "details"}}.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MatchError(Exception):
    """Base failure. Subclasses pin ``code`` and the HTTP ``status``."""

    code = "MATCH_ERROR"
    status = 400
    default_message = "Request rejected"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class InvalidArgument(MatchError):
    code, status, default_message = "INVALID_ARGUMENT", 422, "Invalid input"


class NotFound(MatchError):
    code, status, default_message = "NOT_FOUND", 404, "Resource not found"


class Unauthorized(MatchError):
    code, status, default_message = "UNAUTHORIZED", 401, "Not allowed"


class InvalidState(MatchError):
    code, status, default_message = "INVALID_STATE", 409, "Transition not allowed"


class Conflict(MatchError):
    code, status, default_message = "CONFLICT", 409, "Conflicting update"


class StaleWrite(Exception):
    """Raised by a repository when a save carries an outdated version."""

    def __init__(self, match_id: str, expected_version: int):
        self.match_id = match_id
        self.expected_version = expected_version
        super().__init__(f"Stale write on match {match_id} (expected version {expected_version})")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MatchError)
    async def match_error_handler(request: Request, exc: MatchError):
        return JSONResponse(status_code=exc.status, content=exc.to_body())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        body = {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if app.debug else "Internal server error",
                "details": {},
            }
        }
        return JSONResponse(status_code=500, content=body)
