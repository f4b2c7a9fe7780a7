"""
Bundle Navigator API
====================

FastAPI application for legal bundle analysis.

Endpoints (all under /api/v1, scoped by X-Org-Id):
- POST   /cases/{case_id}/bundles/phase-a                   - Quick preview
- POST   /cases/{case_id}/bundles/full                      - Start chunked analysis
- POST   /cases/{case_id}/bundles/{bundle_id}/continue      - Next batch of chunks
- GET    /cases/{case_id}/bundle                            - Latest bundle status
- DELETE /cases/{case_id}/bundles                           - Delete case bundles
- GET    /cases/{case_id}/bundles/{bundle_id}/toc           - Table of contents
- GET    /cases/{case_id}/bundles/{bundle_id}/timeline      - Merged timeline
- GET    /cases/{case_id}/bundles/{bundle_id}/issues        - Issues map
- GET    /cases/{case_id}/bundles/{bundle_id}/contradictions
- GET    /cases/{case_id}/bundles/{bundle_id}/overview
- GET    /cases/{case_id}/bundles/{bundle_id}/search?q=
- GET    /health

Run with:
    uvicorn bundle_navigator.api:app --host 0.0.0.0 --port 8000
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_bundles import close_chunk_extractor, router as bundles_router
from .config import get_settings, get_llm_mode
from .db.session import init_db
from .errors import BundleServiceError
from .schemas import HealthResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Bundle Navigator",
    description="Phase A summaries, resumable chunked analysis and navigation views for legal bundles",
    version=get_settings().service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _parse_cors_origins(raw: str) -> List[str]:
    origins: List[str] = []
    for item in raw.split(","):
        origin = item.strip().strip('"').strip("'").rstrip("/")
        if origin:
            origins.append(origin)
    return origins


CORS_ALLOW_ORIGINS = _parse_cors_origins(os.environ.get(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000,http://127.0.0.1:8000"
))

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(bundles_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup():
    settings = get_settings()
    for warning in settings.validate_llm_config():
        logger.warning(warning)
    init_db()
    logger.info(f"Bundle Navigator started (llm_mode={settings.llm_mode.value}, chunk_size={settings.chunk_size})")


@app.on_event("shutdown")
async def on_shutdown():
    """Cleanup on shutdown"""
    await close_chunk_extractor()
    logger.info("Bundle Navigator stopped")


# =============================================================================
# Errors
# =============================================================================

_STATUS_CODES = {
    400: "VALIDATION",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _build_error_payload(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        }
    }


@app.exception_handler(BundleServiceError)
async def bundle_error_handler(request: Request, exc: BundleServiceError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_payload(_STATUS_CODES.get(exc.status_code, "HTTP_ERROR"), message),
    )


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Structured validation errors without echoing inputs."""
    sanitized_errors = [
        {"loc": err.get("loc"), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_build_error_payload("VALIDATION", "Invalid request", {"errors": sanitized_errors}),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.error("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return JSONResponse(
        status_code=500,
        content=_build_error_payload("INTERNAL_ERROR", "Internal server error", {"exception": exc.__class__.__name__}),
    )


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        llm_mode=get_llm_mode(),
        timestamp=datetime.now()
    )
