"""API Gateway - FastAPI application for authentication and admin endpoints."""

import logging
import secrets
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Union
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shareguard.api.schemas import (
    BlockUserRequest,
    ChallengeResponse,
    ErrorResponse,
    LoginBody,
    LoginResponse,
    MessageResponse,
    SessionListResponse,
    SessionView,
    SignupRequest,
    SignupResponse,
    TerminateSessionRequest,
    TrustSummary,
    VerifyOTPRequest,
)
from shareguard.api.service import AuthService
from shareguard.auth.tokens import TokenClaims
from shareguard.common.config import get_config
from shareguard.common.logging import configure_logging
from shareguard.common.exceptions import (
    DependencyUnavailable,
    InvalidToken,
    RateLimited,
    ShareGuardError,
    SuspiciousActivity,
)
from shareguard.data.schemas import Severity
from shareguard.orchestration.login_flow import LoginChallenge

configure_logging(get_config().log_level.value)
logger = logging.getLogger("shareguard.api")


class ServiceManager:
    """Thread-safe service singleton manager."""

    _instance: Optional[AuthService] = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_service(cls) -> AuthService:
        """Get or create the auth service instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = AuthService()
                    cls._initialized = True
                    logger.info("AuthService initialized")
        return cls._instance

    @classmethod
    def shutdown(cls) -> None:
        """Shutdown the service and release resources."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
                cls._instance = None
                cls._initialized = False

                logger.info("AuthService shutdown complete")


def get_service() -> AuthService:
    """Get the auth service instance."""
    return ServiceManager.get_service()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("ShareGuard API Gateway starting up...")
    get_service()
    logger.info("ShareGuard API Gateway ready")

    yield

    logger.info("ShareGuard API Gateway shutting down...")
    ServiceManager.shutdown()

    from shareguard.orchestration.login_flow import _shutdown_shared_executor
    _shutdown_shared_executor()

    logger.info("ShareGuard API Gateway shutdown complete")


config = get_config()

app = FastAPI(
    title="ShareGuard API Gateway",
    description="Adaptive login risk scoring and concurrent-session enforcement.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if config.docs_enabled else None,
    redoc_url="/redoc" if config.docs_enabled else None,
)


def get_cors_origins() -> List[str]:
    """Allowed CORS origins; permissive only in development."""
    if config.cors_origins:
        return config.cors_origins
    if config.is_production:
        logger.warning(
            "SHAREGUARD_CORS_ORIGINS not set in production. CORS will be disabled."
        )
        return []
    return ["*"]


cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Admin-Key"],
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_body(exc: ShareGuardError, request_id: Optional[str]) -> Dict[str, Any]:
    body = ErrorResponse(request_id=request_id, **exc.to_dict())
    if isinstance(exc, RateLimited):
        body.retry_after = exc.retry_after
    if isinstance(exc, SuspiciousActivity) and exc.warnings:
        body.warnings = exc.warnings
    return body.model_dump(by_alias=True, exclude_none=True)


@app.exception_handler(DependencyUnavailable)
async def dependency_error_handler(request: Request, exc: DependencyUnavailable) -> JSONResponse:
    """Backing service unreachable at a point where no neutral fallback exists."""
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Dependency unavailable",
        extra={"request_id": request_id, "dependency": exc.details.get("dependency")},
    )
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=exc.code,
            message="Service temporarily unavailable",
            request_id=request_id,
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(ShareGuardError)
async def shareguard_error_handler(request: Request, exc: ShareGuardError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    request_id = getattr(request.state, "request_id", None)
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "Request rejected",
        extra={"request_id": request_id, "error_code": exc.code, "status": exc.status_code},
    )
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc, request_id),
        headers=headers,
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
        ).model_dump(exclude_none=True),
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
# DEPENDENCIES
# =============================================================================

def current_claims(
    authorization: Optional[str] = Header(default=None),
    service: AuthService = Depends(get_service),
) -> TokenClaims:
    """Resolve the bearer token to a live session."""
    if not authorization:
        raise InvalidToken("No token provided")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise InvalidToken("Invalid token format")
    return service.authenticate_token(token.strip())


def require_admin(
    x_admin_key: Optional[str] = Header(default=None),
    service: AuthService = Depends(get_service),
) -> None:
    expected = service.config.admin_key
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Unauthorized")


def _remote_addr(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(
    body: SignupRequest,
    request: Request,
    service: AuthService = Depends(get_service),
) -> SignupResponse:
    """Create an account."""
    client_ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip() or _remote_addr(request)
    user = service.signup(body.email, body.password, body.plan, client_ip=client_ip)
    return SignupResponse(user_id=user.user_id, email=user.email, plan=user.plan)


@app.post(
    "/auth/login",
    response_model=Union[LoginResponse, ChallengeResponse],
    response_model_exclude_none=True,
    responses={
        400: {"description": "Invalid credentials", "model": ErrorResponse},
        403: {"description": "Suspicious activity or suspended", "model": ErrorResponse},
        429: {"description": "Rate limited", "model": ErrorResponse},
    },
    summary="Authenticate and open a session",
    description=(
        "Runs the risk pipeline. Returns a token, or an OTP challenge when the "
        "device is new and low-trust or the location change is impossible."
    ),
)
def login(
    body: LoginBody,
    request: Request,
    service: AuthService = Depends(get_service),
) -> Union[LoginResponse, ChallengeResponse]:
    outcome = service.login(
        body.email,
        body.password,
        dict(request.headers),
        client_fingerprint=body.fingerprint,
        remote_addr=_remote_addr(request),
    )
    if isinstance(outcome, LoginChallenge):
        return ChallengeResponse(
            reason=outcome.reason,
            trust_score=TrustSummary(**outcome.trust_score) if outcome.trust_score else None,
        )

    logger.info(
        "Login complete",
        extra={"device_id": outcome.device_id, "active_sessions": outcome.active_sessions},
    )
    return LoginResponse(
        token=outcome.token,
        device_id=outcome.device_id,
        trust_score=TrustSummary(**outcome.trust_score),
        active_sessions=outcome.active_sessions,
        max_sessions=outcome.max_sessions,
    )


@app.post("/auth/verify-otp", response_model=MessageResponse)
def verify_otp(
    body: VerifyOTPRequest,
    request: Request,
    service: AuthService = Depends(get_service),
) -> MessageResponse:
    """Approve the requesting device with the emailed code."""
    service.verify_otp(
        body.email,
        body.otp,
        dict(request.headers),
        client_fingerprint=body.fingerprint,
        remote_addr=_remote_addr(request),
    )
    return MessageResponse(message="OTP verified. Device approved. Please login again.")


@app.post("/auth/logout", response_model=MessageResponse)
def logout(
    claims: TokenClaims = Depends(current_claims),
    service: AuthService = Depends(get_service),
) -> MessageResponse:
    service.logout(claims)
    return MessageResponse(message="Logged out successfully")


@app.get("/auth/sessions", response_model=SessionListResponse)
def list_sessions(
    claims: TokenClaims = Depends(current_claims),
    service: AuthService = Depends(get_service),
) -> SessionListResponse:
    sessions = [SessionView(**view) for view in service.list_sessions(claims)]
    return SessionListResponse(
        sessions=sessions,
        total=len(sessions),
        max_sessions=service.max_sessions(claims.user_id),
    )


@app.delete("/auth/sessions/{device_id}", response_model=MessageResponse)
def terminate_own_session(
    device_id: str,
    claims: TokenClaims = Depends(current_claims),
    service: AuthService = Depends(get_service),
) -> MessageResponse:
    """Terminate another of the caller's sessions."""
    if not service.terminate_session(claims, device_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return MessageResponse(message="Session terminated")


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@app.get("/admin/dashboard", dependencies=[Depends(require_admin)])
def admin_dashboard(service: AuthService = Depends(get_service)) -> Dict[str, Any]:
    return service.dashboard.snapshot().model_dump(mode="json")


@app.get("/admin/users/{user_id}", dependencies=[Depends(require_admin)])
def admin_user_detail(user_id: str, service: AuthService = Depends(get_service)) -> Dict[str, Any]:
    detail = service.dashboard.user_detail(user_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="User not found")
    return detail


@app.post("/admin/sessions/terminate", dependencies=[Depends(require_admin)])
def admin_terminate_session(
    body: TerminateSessionRequest,
    service: AuthService = Depends(get_service),
) -> Dict[str, Any]:
    terminated = service.dashboard.terminate_session(body.user_id, body.device_id)
    return {"message": "Session terminated successfully", "terminated": terminated}


@app.post("/admin/users/block", dependencies=[Depends(require_admin)])
def admin_block_user(
    body: BlockUserRequest,
    service: AuthService = Depends(get_service),
) -> Dict[str, Any]:
    result = service.dashboard.block_user(body.user_id, body.duration)
    return {"message": f"User blocked for {body.duration} seconds", **result}


@app.get("/admin/alerts", dependencies=[Depends(require_admin)])
def admin_alerts(
    limit: int = Query(default=50, ge=1, le=500),
    severity: Optional[Severity] = None,
    service: AuthService = Depends(get_service),
) -> Dict[str, Any]:
    store = service.alert_store
    alerts = store.by_severity(severity, limit) if severity else store.recent(limit)
    return {"total": len(alerts), "alerts": [a.model_dump(mode="json") for a in alerts]}


@app.get("/admin/alerts/stats", dependencies=[Depends(require_admin)])
def admin_alert_stats(service: AuthService = Depends(get_service)) -> Dict[str, Any]:
    return {**service.alert_store.stats(), "delivery": service.dispatcher.get_stats()}


@app.get("/admin/reports/suspicious", dependencies=[Depends(require_admin)])
def admin_suspicious_report(service: AuthService = Depends(get_service)) -> Dict[str, Any]:
    return service.dashboard.suspicious_report()


@app.get("/admin/reports/revenue-leakage", dependencies=[Depends(require_admin)])
def admin_revenue_leakage(service: AuthService = Depends(get_service)) -> Dict[str, Any]:
    return service.dashboard.revenue_leakage_report()


@app.get("/admin/analytics/sessions-timeline", dependencies=[Depends(require_admin)])
def admin_sessions_timeline(
    hours: int = Query(default=24, ge=1, le=720),
    service: AuthService = Depends(get_service),
) -> Dict[str, Any]:
    return {"hours": hours, "timeline": service.dashboard.sessions_timeline(hours)}


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "shareguard-gateway"}


@app.get("/ready")
async def readiness_check() -> dict:
    """Readiness check endpoint.

    Returns 503 until the service singleton is initialized.
    """
    if not ServiceManager._initialized:
        raise HTTPException(status_code=503, detail="not_ready")
    return {"status": "ready", "service": "shareguard-gateway"}


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shareguard.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.debug,
        log_level="info",
    )
