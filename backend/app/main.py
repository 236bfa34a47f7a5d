from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from psycopg import errors as pg_errors
import time
import uuid
from datetime import datetime, timezone
from .routers.journal import router as journal_router
from .routers.accounts import router as accounts_router
from .routers.audit import router as audit_router
from .config import settings
from .deps import require_org_access
from .db import get_admin_conn, close_pools
from .logs import json_log
from .oa_client import OAError

app = FastAPI(title="Ledger BFF API", version=settings.api_version)
STARTED_AT_UTC = datetime.now(timezone.utc)


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or "startup"


# Ledger service errors: pass client errors through, anything else is a bad gateway.
@app.exception_handler(OAError)
def _oa_error(req: Request, exc: OAError):
    if 400 <= exc.status_code < 500:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    json_log(
        "error",
        "oa.request.unavailable",
        request_id=_current_request_id(req),
        path=req.url.path,
        status_code=exc.status_code,
        error=exc.detail,
    )
    content = {"detail": "ledger service unavailable"}
    if settings.env in {"local", "dev"}:
        content["error"] = exc.detail
    return JSONResponse(status_code=502, content=content)


# Map common DB constraint errors to 4xx so clients get actionable responses.
@app.exception_handler(pg_errors.ForeignKeyViolation)
def _foreign_key_violation(_req: Request, exc: Exception):
    content = {"detail": "invalid reference"}
    if settings.env in {"local", "dev"}:
        content["error"] = str(exc)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(pg_errors.UniqueViolation)
def _unique_violation(_req: Request, exc: Exception):
    content = {"detail": "conflict"}
    if settings.env in {"local", "dev"}:
        content["error"] = str(exc)
    return JSONResponse(status_code=409, content=content)


@app.exception_handler(RequestValidationError)
def _request_validation_error(_req: Request, exc: Exception):
    content = {"detail": "validation failed"}
    if settings.env in {"local", "dev"} and hasattr(exc, "errors"):
        content["errors"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=content)


@app.exception_handler(Exception)
def _unhandled_exception(req: Request, exc: Exception):
    rid = _current_request_id(req)
    json_log(
        "error",
        "http.request.unhandled",
        request_id=rid,
        method=req.method,
        path=req.url.path,
        error=str(exc),
    )
    content = {"detail": "internal error", "request_id": rid}
    if settings.env in {"local", "dev"}:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# Correlation id + basic structured request logging.
@app.middleware("http")
async def _request_logging(request: Request, call_next):
    rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
    request.state.request_id = rid
    started = time.time()
    path = request.url.path
    method = request.method
    client_ip = (request.client.host if request.client else None)

    try:
        response = await call_next(request)
    except Exception as exc:
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "error",
            "http.request.error",
            request_id=rid,
            method=method,
            path=path,
            client_ip=client_ip,
            duration_ms=dur_ms,
            error=str(exc),
        )
        raise

    response.headers["X-Request-Id"] = rid
    response.headers["X-Content-Type-Options"] = "nosniff"
    if not path.startswith("/health"):
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "info",
            "http.request",
            request_id=rid,
            method=method,
            path=path,
            status_code=response.status_code,
            client_ip=client_ip,
            duration_ms=dur_ms,
        )
    return response

# The web client runs on a different origin during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(journal_router, dependencies=[Depends(require_org_access)])
app.include_router(accounts_router, dependencies=[Depends(require_org_access)])
app.include_router(audit_router, dependencies=[Depends(require_org_access)])

@app.on_event("startup")
def _startup():
    ok, err = _db_health()
    if ok:
        json_log("info", "startup.db_connected", env=settings.env, version=settings.api_version)
    else:
        json_log("warning", "startup.db_probe_failed", env=settings.env, error=err)

@app.on_event("shutdown")
def _shutdown():
    close_pools()


def _db_health():
    try:
        with get_admin_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, str(exc)


@app.get("/")
def root():
    return {"status": "ok", "service": "api"}


@app.get("/health")
def health(req: Request):
    request_id = _current_request_id(req)
    ok, err = _db_health()
    content = {
        "status": "ok" if ok else "degraded",
        "env": settings.env,
        "db": "ok" if ok else "down",
        "service": "ledger-bff",
        "version": settings.api_version,
        "started_at": STARTED_AT_UTC.isoformat(),
        "request_id": request_id,
    }
    if not ok:
        if settings.env in {"local", "dev"}:
            content["error"] = err
        return JSONResponse(status_code=503, content=content)
    return content


@app.get("/health/live")
def health_live(req: Request):
    return {
        "status": "ok",
        "env": settings.env,
        "service": "ledger-bff",
        "request_id": _current_request_id(req),
    }


@app.get("/meta")
def meta():
    return {
        "service": "ledger-bff",
        "version": settings.api_version,
        "env": settings.env,
        "uptime_seconds": int((datetime.now(timezone.utc) - STARTED_AT_UTC).total_seconds()),
        "started_at": STARTED_AT_UTC.isoformat(),
        "journal_strict_lines": settings.journal_strict_lines,
    }
