"""Error taxonomy shared by the Revision Store, the Release Reconciler and the routers."""
import logging
from typing import Optional

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

logger = logging.getLogger(__name__)


class RedirectoryError(Exception):
    """Base class for every error the API turns into a status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(RedirectoryError):
    """Recipe, revision or package does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND


class EmptyError(NotFoundError):
    """Latest revision requested on a node that has no revisions."""


class UnsupportedBackendError(RedirectoryError):
    """Reference does not target the supported release host."""

    status_code = status.HTTP_403_FORBIDDEN


class RemoteStoreError(RedirectoryError):
    """The release store rejected a read or a write."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str = "", upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        # Client errors from upstream (bad token, missing repo) are the caller's to fix.
        if upstream_status is not None and 400 <= upstream_status < 500:
            self.status_code = upstream_status


class SizeMismatchError(RedirectoryError):
    """Declared upload length disagrees with the body actually received."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCapabilityError(RedirectoryError):
    """Signed upload URL is expired, forged, or used for a different file."""

    status_code = status.HTTP_403_FORBIDDEN


class BadRequestError(RedirectoryError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(RedirectoryError):
    status_code = status.HTTP_401_UNAUTHORIZED


async def handle_redirectory_errors(request: Request, exc: RedirectoryError) -> PlainTextResponse:
    """Translate a domain error into its status code with a plain-text message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {
                    "msg": error["msg"],
                    "input": str(error.get("input")),
                }
                for error in errors
            ]
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates out of a route."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
