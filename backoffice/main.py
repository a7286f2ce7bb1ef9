"""
Main FastAPI Application

Entry point for the back-office API.
Configures middleware, routes, error handlers, and startup/shutdown events.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice import __version__
from backoffice.api.endpoints import (
    airtable,
    api_keys,
    audit_logs,
    auth,
    billing,
    external,
    leads,
    members,
    organizations,
    pipelines,
    settings as settings_endpoints,
    stages,
)
from backoffice.config import get_settings
from backoffice.database import engine, init_db
from backoffice.middleware.organization import OrganizationContextMiddleware
from backoffice.middleware.rate_limit import RateLimitMiddleware
from backoffice.utils.logging import get_logger, setup_logging

settings = get_settings()

# Setup logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Dev only; production schemas are managed by migrations
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    if not settings.STRIPE_SECRET_KEY:
        logger.info("STRIPE_SECRET_KEY not set, billing routes disabled")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Back-Office API",
    description="Multi-tenant back-office: organizations, members, API keys, billing, audit logs and a lead pipeline",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# Session cookies need explicit origins; "*" is not allowed with credentials
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5000",
    "http://localhost:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Middleware added last runs first: the organization context must be set
# before the rate limiter reads it.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(OrganizationContextMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================
# Every error body is {"error": message}.

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Domain errors (core.exceptions) and framework 404/405s."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.status_code} on {request.method} {request.url.path}: {exc.detail}",
            extra={"organization_id": getattr(request.state, "organization_id", None)}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None) or {}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing input is a 400, with the first problem as the message."""
    errors = exc.errors()
    message = "Invalid input"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Don't expose internal errors in production.
    Log full details but return generic error to client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "organization_id": getattr(request.state, "organization_id", None)
        }
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"error": f"{type(exc).__name__}: {exc}"}
        )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__,
        "billing": bool(settings.STRIPE_SECRET_KEY),
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Back-Office API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Register API routers, all under /api
for router_module in (
    auth,
    organizations,
    members,
    api_keys,
    settings_endpoints,
    audit_logs,
    billing,
    pipelines,
    stages,
    leads,
    airtable,
    external,
):
    app.include_router(router_module.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    uvicorn.run(
        "backoffice.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
