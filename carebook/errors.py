import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Operation failed"


class BackendError(Exception):
    """
    Raised by a backend client when a table or auth call fails.
    """


class AuthError(BackendError):
    """
    Bad credentials, an unknown/expired token, or a duplicate sign-up.
    """


async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    # callers only ever see the generic message
    logger.error(f"Backend call failed for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": GENERIC_FAILURE})


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.warning(f"Authentication failed for {request.url.path}: {exc}")
    return JSONResponse(status_code=401, content={"detail": str(exc)})
