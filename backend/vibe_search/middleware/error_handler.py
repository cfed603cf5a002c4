"""Global error handler middleware."""
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vibe_search.exceptions import (
    CatalogStoreError,
    DimensionMismatch,
    EmbeddingProviderError,
    ProductNotFoundError,
    SearchValidationError,
    VibeSearchError,
)
from vibe_search.schemas.common import ErrorDetail

logger = structlog.get_logger()


# Checked in order; the first matching class wins.
_DOMAIN_ERRORS: list[tuple[type[VibeSearchError], int, str]] = [
    (SearchValidationError, 400, "Bad Request"),
    (ProductNotFoundError, 404, "Not Found"),
    (EmbeddingProviderError, 502, "Bad Gateway"),
    (CatalogStoreError, 503, "Service Unavailable"),
    (DimensionMismatch, 500, "Internal Server Error"),
]


def problem(status: int, title: str, detail: str, error_type: str = "about:blank") -> dict:
    return ErrorDetail(type=error_type, title=title, status=status, detail=detail).model_dump(exclude_none=True)


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(VibeSearchError)
    async def domain_error_handler(request: Request, exc: VibeSearchError) -> JSONResponse:
        status, title = 500, "Internal Server Error"
        for error_class, error_status, error_title in _DOMAIN_ERRORS:
            if isinstance(exc, error_class):
                status, title = error_status, error_title
                break

        if status >= 500:
            logger.error("domain_error", path=request.url.path, error=str(exc), error_class=type(exc).__name__)
        detail = exc.message if status < 500 or status in (502, 503) else "An unexpected error occurred."
        return JSONResponse(status_code=status, content=problem(status, title, detail))

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content=problem(400, "Bad Request", str(exc)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=problem(500, "Internal Server Error", "An unexpected error occurred."),
        )
