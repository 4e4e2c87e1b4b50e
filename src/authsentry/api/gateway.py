"""API Gateway - FastAPI application fronting assess-risk and sweep."""

import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authsentry.api.schemas import (
    AssessRiskRequest,
    ErrorResponse,
    FingerprintRequest,
    LoginEventRequest,
    RecordResponse,
    SweepRequest,
)
from authsentry.api.service import RiskService
from authsentry.common.config.settings import get_config
from authsentry.common.exceptions import (
    AuthSentryError,
    DuplicateFingerprint,
    InvalidEvent,
    StoreUnavailable,
    SweepPartialFailure,
)
from authsentry.data.schemas.alert import SweepReport
from authsentry.data.schemas.risk_assessment import RiskAssessment
from authsentry.data.stores.bounded import shutdown_store_executor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("authsentry_api")

# Seconds clients should wait before retrying after a store outage
RETRY_AFTER_SECONDS = 1


class ServiceManager:
    """Thread-safe service singleton manager."""

    _instance: Optional[RiskService] = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_service(cls) -> RiskService:
        """Get or create the risk service instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = RiskService()
                    cls._initialized = True
                    logger.info("RiskService initialized")
        return cls._instance

    @classmethod
    def set_service(cls, service: RiskService) -> None:
        """Install a pre-built service (tests, embedding)."""
        with cls._lock:
            cls._instance = service
            cls._initialized = True

    @classmethod
    def shutdown(cls) -> None:
        """Shutdown the service and release resources."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
                cls._instance = None
                cls._initialized = False

                logger.info("RiskService shutdown complete")


def get_service() -> RiskService:
    """Get the risk service instance."""
    return ServiceManager.get_service()


# =============================================================================
# CORS CONFIGURATION
# =============================================================================

def get_cors_origins() -> List[str]:
    """Get allowed CORS origins from environment.

    In production, set AUTHSENTRY_CORS_ORIGINS to a comma-separated list
    of allowed origins.
    """
    origins_env = os.environ.get("AUTHSENTRY_CORS_ORIGINS", "")

    if origins_env:
        return [origin.strip() for origin in origins_env.split(",") if origin.strip()]

    if os.environ.get("AUTHSENTRY_ENVIRONMENT", "development") == "production":
        logger.warning(
            "AUTHSENTRY_CORS_ORIGINS not set in production. CORS will be disabled."
        )
        return []

    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("AuthSentry API starting up...")
    service = get_service()
    if service.config.sweep_scheduler_enabled:
        service.start_scheduler()
    logger.info("AuthSentry API ready")

    yield

    logger.info("AuthSentry API shutting down...")
    ServiceManager.shutdown()
    shutdown_store_executor()
    logger.info("AuthSentry API shutdown complete")


environment = os.environ.get("AUTHSENTRY_ENVIRONMENT", "development")
enable_docs_default = "false" if environment == "production" else "true"
enable_docs = os.environ.get("AUTHSENTRY_ENABLE_DOCS", enable_docs_default).lower() == "true"

app = FastAPI(
    title="AuthSentry API",
    description="Login risk scoring and aggregate attack detection.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if enable_docs else None,
    redoc_url="/redoc" if enable_docs else None,
)


cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_response(
    request: Request,
    status_code: int,
    exc: AuthSentryError,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = exc.to_dict()
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=body["error"],
            message=body["message"],
            details=body["details"],
            retryable=body["retryable"],
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(InvalidEvent)
async def invalid_event_handler(request: Request, exc: InvalidEvent) -> JSONResponse:
    """Malformed login events."""
    logger.warning(
        "Invalid event",
        extra={"request_id": getattr(request.state, "request_id", None), "error": exc.message}
    )
    return _error_response(request, 400, exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request bodies that fail schema validation are invalid events too."""
    invalid = InvalidEvent(
        "Request failed validation",
        details={"errors": [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
            for error in exc.errors()
        ]},
    )
    return _error_response(request, 400, invalid)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    """History store outage; the caller should retry."""
    logger.error(
        "Store unavailable",
        extra={"request_id": getattr(request.state, "request_id", None), "error": exc.message}
    )
    return _error_response(
        request, 503, exc, headers={"Retry-After": str(RETRY_AFTER_SECONDS)}
    )


@app.exception_handler(DuplicateFingerprint)
async def duplicate_fingerprint_handler(request: Request, exc: DuplicateFingerprint) -> JSONResponse:
    return _error_response(request, 409, exc)


@app.exception_handler(SweepPartialFailure)
async def sweep_partial_failure_handler(request: Request, exc: SweepPartialFailure) -> JSONResponse:
    """Sweep finished but some detectors failed; the partial report is attached."""
    exc.details["report"] = exc.report.model_dump(mode="json")
    return _error_response(request, 500, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Handle validation errors."""
    request_id = getattr(request.state, "request_id", None)
    logger.warning(
        "Validation error",
        extra={"request_id": request_id, "error": str(exc)}
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="validation_error",
            message=str(exc),
            request_id=request_id,
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors.

    Logs full exception for debugging but returns sanitized message to client.
    """
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "Unexpected error",
        extra={"request_id": request_id, "error_type": type(exc).__name__}
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred",
            request_id=request_id,
        ).model_dump(),
    )


# =============================================================================
# MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to each request for tracing."""
    request_id = f"req_{uuid4().hex[:12]}"
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# =============================================================================
# ENDPOINTS
# =============================================================================

_error_responses = {
    400: {"description": "Invalid event", "model": ErrorResponse},
    503: {"description": "History store unavailable, retry later", "model": ErrorResponse},
}


@app.post(
    "/assess-risk",
    response_model=RiskAssessment,
    responses=_error_responses,
    summary="Score a login attempt",
)
def assess_risk(request: AssessRiskRequest) -> RiskAssessment:
    """Score one login event against the user's history."""
    service = get_service()
    logger.info(
        "Assessing login",
        extra={"event_id": request.event.event_id, "user_id": request.event.user_id}
    )
    return service.assess(request)


@app.post(
    "/sweep",
    response_model=SweepReport,
    responses=_error_responses,
    summary="Run an aggregate sweep now",
)
def run_sweep(request: SweepRequest) -> SweepReport:
    """Sweep recent history for brute force, floods and takeover probes."""
    report = get_service().sweep(request)
    logger.info(
        "Sweep complete",
        extra={"alerts": len(report.alerts), "errors": sorted(report.errors)}
    )
    return report


@app.post("/events", response_model=RecordResponse, status_code=201, responses=_error_responses)
def record_event(request: LoginEventRequest) -> RecordResponse:
    """Append a login event to history."""
    return RecordResponse(id=get_service().record_event(request))


@app.post("/fingerprints", response_model=RecordResponse, status_code=201, responses=_error_responses)
def record_fingerprint(request: FingerprintRequest) -> RecordResponse:
    """Hash and store a device fingerprint."""
    return RecordResponse(id=get_service().record_fingerprint(request))


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "authsentry-api"}


@app.get("/ready")
async def readiness_check() -> dict:
    """Readiness check endpoint.

    Returns 503 until the service singleton is initialized.
    """
    if not ServiceManager._initialized:
        raise HTTPException(status_code=503, detail="not_ready")
    return {"status": "ready", "service": "authsentry-api"}


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "authsentry.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.is_development,
        log_level="info",
    )
