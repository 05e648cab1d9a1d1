"""
Application error taxonomy and the FastAPI handlers that map it to HTTP responses.

- ConfigurationError: a required environment value is missing (fatal at startup)
- ValidationError: an insert/select payload failed schema checks (caller must fix input)
- NotFoundError: a referenced row does not exist
- ProviderError: the hosted model call failed (never retried here)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChatAPIError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"

    def __init__(self, message: str, *, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "errorType": self.error_type}
        if self.details is not None:
            body["errors"] = self.details
        return body


class ConfigurationError(ChatAPIError):
    error_type = "configuration_error"


class ValidationError(ChatAPIError, ValueError):
    status_code = 422
    error_type = "validation_error"

    @classmethod
    def from_pydantic(cls, exc, *, entity: str) -> "ValidationError":
        # Keep only JSON-safe fields; pydantic's ctx may hold exception objects.
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return cls(f"Invalid {entity} payload", details=details)


class NotFoundError(ChatAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ProviderError(ChatAPIError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "provider_error"

    def __init__(self, message: str, *, model: str | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.model = model


async def _handle_chat_api_error(request: Request, exc: ChatAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatAPIError, _handle_chat_api_error)
