"""FastAPI application entry point.

Starts the CHRONYX tax computation API.

Usage:
    uvicorn chronyx_tax.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chronyx_tax.config import settings
from chronyx_tax.database import close_db, init_db, is_db_available
from chronyx_tax.errors import ConfigurationError, TaxEngineError
from chronyx_tax.routers import tax
from chronyx_tax.services.rule_repository import configure_rule_source

# ── Logging ──────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan (startup + shutdown) ────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting CHRONYX tax API on port %s …", settings.APP_PORT)
    await init_db()
    await configure_rule_source()
    yield
    await close_db()
    logger.info("Application shutdown complete.")


# ── Application factory ──────────────────────────────────────────────────

app = FastAPI(
    title="CHRONYX Tax API",
    description=(
        "Progressive income-tax calculation for Indian taxpayers.  Applies "
        "slab rates, the Section 87A rebate, surcharge and cess under the "
        "old and new regimes, compares both, audits filing readiness and suggests deductions."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-level timing middleware ──────────────────────────────────────

@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


# ── Error responses ──────────────────────────────────────────────────────

def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build a standard {error: {code, message, details}} response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or []}},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields are a client error (400)."""
    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _error_response(400, "INVALID_INPUT", "Request validation failed", details)


@app.exception_handler(TaxEngineError)
async def tax_engine_exception_handler(request: Request, exc: TaxEngineError):
    if isinstance(exc, ConfigurationError):
        logger.error("Tax rule configuration fault on %s: %s", request.url.path, exc.message)
        return _error_response(
            exc.status_code, exc.code, "Tax rules are not available for this request."
        )
    return _error_response(exc.status_code, exc.code, exc.message)


_HTTP_CODES = {401: "UNAUTHORIZED", 403: "FORBIDDEN", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    response = _error_response(exc.status_code, code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. Please check the logs."},
    )


# ── Register routers ─────────────────────────────────────────────────────
app.include_router(tax.router)


# ── Health check ──────────────────────────────────────────────────────────

@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "port": settings.APP_PORT,
        "database": "connected" if is_db_available() else "unavailable",
        "rules_source": settings.RULES_SOURCE,
    }


# ── Dev entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chronyx_tax.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=True,
    )
