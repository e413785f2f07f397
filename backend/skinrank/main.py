import uuid

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from skinrank.api.routes import health, recommend
from skinrank.config import settings
from skinrank.errors import ConfigurationError
from skinrank.logging import configure_logging

configure_logging()

logger = structlog.get_logger()

app = FastAPI(
    title="skinrank API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
)


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    *,
    retryable: bool,
) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "retryable": retryable},
    )
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a request ID to every request and its log entries.

    The ID is taken from the X-Request-ID header when present, bound into
    structlog context vars, and echoed back on the response.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return the ErrorResponse shape instead of FastAPI's default 422 body."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _error_response(
        request, 422, "validation_error", "; ".join(messages), retryable=False
    )


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(
    request: Request,
    exc: ConfigurationError,
) -> JSONResponse:
    logger.error("configuration_error", path=request.url.path, error=str(exc))
    return _error_response(request, 500, "configuration_error", str(exc), retryable=False)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request, 500, "internal_error", "An unexpected error occurred", retryable=True
    )


app.include_router(health.router)
app.include_router(recommend.router, prefix="/api/v1")


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    logger.info("server_starting", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
