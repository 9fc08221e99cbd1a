# backend/evently/main.py

import logging
import time
import traceback
import uuid
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from evently.core.config import settings
from evently.core.email import EmailSender
from evently.core.errors import install_request_id_logging, log_exception_with_context
from evently.core.request_context import (
    clear_db_metrics,
    get_db_metrics,
    get_request_id,
    reset_db_metrics,
    set_request_id,
)

# --- Logging setup ---
# The record factory runs for every record, so %(request_id)s never raises KeyError
# even for third-party loggers the filter is not attached to.
_old_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _old_factory(*args, **kwargs)
    if not hasattr(record, "request_id"):
        record.request_id = "-"
    return record


logging.setLogRecordFactory(_record_factory)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s request_id=%(request_id)s %(message)s",
)
install_request_id_logging()

logger = logging.getLogger("evently")

enable_docs = settings.enable_docs
logger.info("Startup: environment=%s enable_docs=%s", settings.environment, enable_docs)
logger.info("DB backend detected: %s", (settings.database_url or "").split(":", 1)[0] or "unknown")

SLOW_HTTP_MS = float(settings.slow_http_ms)

# --- App setup ---
app = FastAPI(
    title="Evently API",
    version=settings.version,
    openapi_url="/api/v1/openapi.json" if enable_docs else None,
    docs_url="/api/v1/docs" if enable_docs else None,
    redoc_url="/api/v1/redoc" if enable_docs else None,
)

app.state.mailer = EmailSender(settings)
logger.info("Email provider: %s", settings.email_provider)


def _get_request_id(request: Request) -> str:
    """
    Use an incoming request id if a proxy supplied one, otherwise generate one.
    """
    incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
    if incoming and incoming.strip():
        return incoming.strip()[:128]
    return uuid.uuid4().hex


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def _rid_from_request(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid.strip():
        return rid
    rid = get_request_id()
    if rid and rid != "-":
        return rid
    return uuid.uuid4().hex


def _error_payload(code: str, message: str, request_id: str, extra: Optional[dict] = None) -> dict:
    """
    Standard error contract: code/message/request_id at the top level,
    with `detail` kept for clients that parse the FastAPI default shape.
    """
    payload: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": request_id,
        "detail": {"code": code, "message": message},
    }
    if extra:
        payload.update(extra)
    return payload


def _http_exception_payload(exc: HTTPException, *, request_id: str) -> dict:
    """
    Dict details (raised via core.errors.http_error) are merged into payload["detail"],
    so the domain code (INVITE_EXPIRED, BAD_TOKEN, ...) reaches the client intact.
    """
    code = f"HTTP_{exc.status_code}"

    if isinstance(exc.detail, dict):
        msg = exc.detail.get("message")
        if not isinstance(msg, str) or not msg.strip():
            msg = "Request failed."

        merged_detail: dict[str, Any] = {"code": code, "message": msg}
        merged_detail.update(exc.detail)
        return _error_payload(code=code, message=msg, request_id=request_id, extra={"detail": merged_detail})

    msg = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return _error_payload(code=code, message=msg, request_id=request_id)


# --- Exception handlers ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = _rid_from_request(request)
    resp = JSONResponse(
        status_code=exc.status_code,
        content=_http_exception_payload(exc, request_id=request_id),
        headers=getattr(exc, "headers", None),
    )
    resp.headers["X-Request-ID"] = request_id
    return resp


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _rid_from_request(request)
    resp = JSONResponse(
        status_code=422,
        content=_error_payload(
            code="VALIDATION_ERROR",
            message="Validation error. Check request body/query parameters.",
            request_id=request_id,
            extra={"errors": jsonable_encoder(exc.errors())},
        ),
    )
    resp.headers["X-Request-ID"] = request_id
    return resp


# --- Observability middleware: request id + timing + structured logs ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    request_id = _get_request_id(request)
    request.state.request_id = request_id
    set_request_id(request_id)
    reset_db_metrics()

    start = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = getattr(response, "status_code", 200) or 200
        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        if isinstance(e, (HTTPException, RequestValidationError)):
            raise

        log_exception_with_context(
            "Unhandled error",
            request_id=request_id,
            extra={"method": request.method, "path": request.url.path},
        )

        extra: dict[str, Any] = {}
        if settings.debug:
            extra = {
                "error": str(e),
                "traceback_last_lines": traceback.format_exc().splitlines()[-10:],
            }
        resp = JSONResponse(
            status_code=500,
            content=_error_payload(
                code="INTERNAL_ERROR",
                message="Internal Server Error",
                request_id=request_id,
                extra=extra,
            ),
        )
        resp.headers["X-Request-ID"] = request_id
        return resp

    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        m = get_db_metrics()

        # key=value so the line stays grep-friendly
        log_fn = logger.warning if duration_ms >= SLOW_HTTP_MS else logger.info
        log_fn(
            "req method=%s path=%s status=%s duration_ms=%.2f db_total_ms=%.2f db_q=%s db_slowest_ms=%.2f ip=%s",
            request.method,
            request.url.path,
            status_code,
            duration_ms,
            m.total_ms,
            m.query_count,
            m.slowest_ms,
            _client_ip(request),
        )

        if m.total_ms >= float(settings.slow_db_total_ms):
            logger.warning(
                "slow_db_total method=%s path=%s status=%s db_total_ms=%.2f db_q=%s db_slowest_ms=%.2f slowest_sql=%s",
                request.method,
                request.url.path,
                status_code,
                m.total_ms,
                m.query_count,
                m.slowest_ms,
                m.slowest_sql_head if settings.log_db_sql else "-",
            )

        clear_db_metrics()
        set_request_id(None)


# --- CORS setup ---
allowed = settings.origins_list()
logger.info("CORS allow_origins=%s", allowed)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
from evently.api.v1 import (  # noqa: E402
    analytics,
    auth,
    events,
    health,
    invites,
    preview,
    rsvp,
    verification,
    webhooks,
)

app.include_router(health.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(verification.router, prefix="/api/v1")
app.include_router(events.router, prefix="/api/v1")
app.include_router(invites.router, prefix="/api/v1")
app.include_router(invites.lookup_router, prefix="/api/v1")  # public token lookup
app.include_router(rsvp.router, prefix="/api/v1")
app.include_router(preview.router, prefix="/api/v1")
app.include_router(preview.public_router, prefix="/api/v1")  # public preview page
app.include_router(analytics.router, prefix="/api/v1")
app.include_router(webhooks.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
def root():
    if enable_docs:
        return RedirectResponse(url="/api/v1/docs")
    return {"status": "Evently API is running. See /api/v1/health."}
