import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import analysis, auth, health_report
from app.config import settings
from app.services.analysis_errors import AnalysisError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pawlog", version="0.1.0")


# =============================================================================
# CSRF Origin Validation Middleware
# =============================================================================


def request_source_host(request: Request) -> Optional[str]:
    """Host named by Origin, else Referer; None when neither is sent."""
    source = request.headers.get("origin") or request.headers.get("referer")
    if not source:
        return None
    return urlparse(source).netloc


class CSRFOriginMiddleware(BaseHTTPMiddleware):
    """
    Reject cookie-authenticated writes from other sites.

    POST, PUT, PATCH and DELETE need an Origin (or Referer) whose host equals
    the Host header. Safe methods and health checks pass through.
    """

    SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
    EXEMPT_PATHS = {"/health"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.SAFE_METHODS or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        expected_host = request.headers.get("host", "")
        source_host = request_source_host(request)
        if source_host != expected_host:
            logger.warning(
                "CSRF check failed: source=%s expected=%s %s %s",
                source_host,
                expected_host,
                request.method,
                request.url.path,
            )
            return JSONResponse(
                status_code=403,
                content={"success": False, "error": "Origin validation failed"},
            )
        return await call_next(request)


app.add_middleware(CSRFOriginMiddleware)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    """
    Render pipeline failures as {success, error, details}.

    Only the user-safe message is rendered; raw model text and internal
    errors stay in the server logs.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.user_message,
            "details": {"timestamp": datetime.now(timezone.utc).isoformat()},
        },
    )


# Include routers
app.include_router(auth.router)
app.include_router(analysis.router)
app.include_router(health_report.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
