import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for failures a user can recover from by retrying or fixing input."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailure(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(PortalError):
    status_code = status.HTTP_403_FORBIDDEN


class TransientIOFailure(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StoreError(Exception):
    """Raised by a store when the underlying read or write fails."""


async def portal_error_handler(request: Request, exc: PortalError):
    if isinstance(exc, TransientIOFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(PortalError, portal_error_handler)
