from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.router import api_router
from app.core.exceptions import AppError, ConfigurationError
from app.core.logging import configure_logging
from app.core.metrics import get_metrics_payload
from app.core.request_context import reset_request_id, set_request_id
from app.core.settings import settings
from app.core.telemetry import setup_telemetry
from app.db.base import Base
from app.db.session import dispose_engine, get_engine, init_engine
from app.services.storage import build_storage_client


logger = logging.getLogger("app")

_PLACEHOLDER_SECRETS = {"change-me", "changeme", "secret"}

_HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _is_quiet_request(method: str, path: str) -> bool:
    return method == "GET" and path in {"/health", "/metrics"}


def _require_auth_secret() -> None:
    secret = settings.auth_jwt_secret
    if not secret or secret in _PLACEHOLDER_SECRETS:
        raise ConfigurationError("AUTH_JWT_SECRET must be set to a non-placeholder value")


@asynccontextmanager
async def lifespan(app: FastAPI):
    _require_auth_secret()
    configure_logging(settings.log_level, settings.log_file)

    init_engine(settings.database_url)

    setup_telemetry(app)

    if settings.db_auto_create and settings.database_url.startswith("sqlite"):
        engine = get_engine()
        Base.metadata.create_all(bind=engine)

    app.state.storage = build_storage_client(settings)
    try:
        yield
    finally:
        app.state.storage.close()
        dispose_engine()


app = FastAPI(title="canvas-backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        request_logger = logger.debug if _is_quiet_request(request.method, request.url.path) else logger.info
        request_logger(
            "request_complete",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers["x-request-id"] = request_id
        return response
    finally:
        reset_request_id(token)


def _error_response(request: Request, status_code: int, message: str, code: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code, "request_id": request_id},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("app_error", extra={"code": exc.code, "error": str(exc)}, exc_info=exc)
    else:
        logger.info("app_error", extra={"code": exc.code, "status": exc.status_code, "error": str(exc)})
    return _error_response(request, exc.status_code, exc.detail, exc.code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    response = _error_response(request, exc.status_code, str(exc.detail), code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid input')}" if location else "invalid input"
    return _error_response(request, 400, message, "VALIDATION_ERROR")


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error_response(request, 400, str(exc), "VALIDATION_ERROR")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", exc_info=exc)
    return _error_response(request, 500, "Internal server error", "INTERNAL_ERROR")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics_endpoint():
    return PlainTextResponse(get_metrics_payload(), media_type="text/plain; version=0.0.4; charset=utf-8")


app.include_router(api_router)
