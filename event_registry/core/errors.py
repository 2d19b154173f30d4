"""Typed registry failures and the handler that turns them into JSON responses."""

import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Base class for failures callers are expected to handle."""

    status_code = 400
    code = "registry_error"
    default_message = "Registry operation failed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(RegistryError):
    status_code = 422
    code = "validation_error"
    default_message = "Invalid input."


class Unauthorized(RegistryError):
    status_code = 403
    code = "unauthorized"
    default_message = "Only the event organizer can do that."


class NotFound(RegistryError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class AlreadyClaimed(RegistryError):
    status_code = 409
    code = "already_claimed"

    def __init__(self, claim_id: int | None = None, message: str | None = None):
        self.claim_id = claim_id
        super().__init__(message or "You already claimed this item; edit your existing claim instead.")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["claim_id"] = self.claim_id
        return payload


class CapacityExceeded(RegistryError):
    status_code = 409
    code = "capacity_exceeded"

    def __init__(self, remaining: int, requested: int | None = None):
        self.remaining = max(0, remaining)
        self.requested = requested
        if self.remaining == 0:
            message = "No more of this item is available."
        else:
            message = f"Only {self.remaining} left, please choose a smaller quantity."
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["remaining"] = self.remaining
        payload["requested"] = self.requested
        return payload


class Busy(RegistryError):
    """Retriable: the item is contended or the store did not answer in time."""

    status_code = 503
    code = "busy"
    default_message = "The registry is busy, please try again."
    retry_after_seconds = 1


def coerce_enum(enum_cls: type[Enum], value, field: str) -> str:
    """Return the enum value for ``value``, or raise ValidationError naming the allowed values."""
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} {value!r}; expected one of: {allowed}.") from None


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        headers = None
        if isinstance(exc, Busy):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
