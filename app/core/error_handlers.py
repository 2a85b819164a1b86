import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.core.errors import AnalysisError, PhotoError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, message: str, exc: Exception = None) -> JSONResponse:
    content = {"error": error, "message": message}
    if exc is not None and get_settings().is_development:
        content["details"] = {"type": type(exc).__name__}
        if isinstance(exc, AnalysisError):
            content["details"]["reason"] = exc.reason
    return JSONResponse(status_code=status_code, content=content)


async def photo_error_handler(request: Request, exc: PhotoError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error}: {exc.message} [{request.method} {request.url.path}]")
    else:
        logger.warning(f"{exc.error}: {exc.message} [{request.method} {request.url.path}]")
    return _error_response(exc.status_code, exc.error, exc.message, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", errors)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error_response(exc.status_code, "Endpoint not found", f"{request.method} {request.url.path} does not exist")
    return _error_response(exc.status_code, "Request failed", str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = str(exc) if get_settings().is_development else "Something went wrong"
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", message, exc)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(PhotoError, photo_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
