"""
Application entry point for the myITReturn consent demo.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.sessions import SessionMiddleware

from myitreturn.auth_service.oidc import OIDCError
from myitreturn.auth_service.router import router as session_router
from myitreturn.common.logger import get_logger
from myitreturn.consent_service.router import router as consent_router
from myitreturn.core.audit_middleware import AuditMiddleware
from myitreturn.core.config import settings
from myitreturn.core.dependencies import LoginRequired
from myitreturn.core.rate_limit import limiter, rate_limit_exceeded_handler
from myitreturn.itr_service.router import router as itr_router
from myitreturn.registration_service.router import router as registration_router
from myitreturn.user_service.router import router as user_router

logger = get_logger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


# =========================================================
# Lifespan
# =========================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting application",
        extra={
            "env": settings.ENV,
            "oidc_configured": bool(settings.VERIFY_DISCOVERY_URL),
            "privacy_api_configured": bool(settings.privacy_base_url),
        },
    )
    yield


# =========================================================
# App Init
# =========================================================
app = FastAPI(
    lifespan=lifespan,
    title="myITReturn Demo",
    version="1.0.0",
)

# =========================================================
# Middleware (last added runs first)
# =========================================================
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(AuditMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    max_age=settings.SESSION_MAX_AGE_SECONDS,
    same_site="lax",
    https_only=settings.is_production,
)

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    if exc.api:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Not authenticated"},
        )
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


@app.exception_handler(OIDCError)
async def oidc_error_handler(request: Request, exc: OIDCError):
    logger.error("OIDC unavailable", extra={"error": str(exc)})
    return PlainTextResponse(
        "Sign-in is not available right now. See server logs for details.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# =========================================================
# Request Logging
# =========================================================
@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info(
        "Request handled",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
        },
    )
    return response


# =========================================================
# Routers
# =========================================================
app.include_router(session_router)
app.include_router(user_router)
app.include_router(registration_router)
app.include_router(itr_router)
app.include_router(consent_router)

logger.info(
    "API routers registered",
    extra={"routers": ["session", "users", "register", "itr", "consent"]},
)


# =========================================================
# Health
# =========================================================
@app.get("/health")
def health_check():
    return {"status": "ok", "env": settings.ENV}


if not settings.is_production:

    @app.get("/__routes")
    def list_routes():
        """List registered routes (development helper)."""
        return {
            "routes": [
                {"path": route.path, "methods": sorted(route.methods or [])}
                for route in app.routes
                if getattr(route, "methods", None)
            ]
        }


if STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


# Initialize Sentry
if settings.is_production and settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            StarletteIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=settings.ENV,
    )
    logger.info("Sentry initialized for error tracking")
