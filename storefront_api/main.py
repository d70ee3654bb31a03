"""
Main FastAPI Application

Entry point for the retail directory and storefront API.
Configures middleware, routes, error handlers and startup/shutdown.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
import time
from contextlib import asynccontextmanager

from storefront_api import __version__
from storefront_api.config import get_settings
from storefront_api.database import engine, direct_engine, init_db
from storefront_api.middleware.tenant import TenantMiddleware
from storefront_api.middleware.rate_limit import RateLimitMiddleware
from storefront_api.utils.logging import setup_logging, get_logger
from storefront_api.core.exceptions import (
    AuthenticationError,
    TenantIsolationError
)

from storefront_api.api.endpoints import (
    admin,
    auth,
    categories,
    directory,
    directory_listing,
    featured,
    feed,
    feed_jobs,
    items,
    orders,
    payments,
    recommendations,
    reviews,
    stripe_webhooks,
    taxonomy,
    tenants,
    users,
)

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Tables are created here in development only; production runs migrations
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    direct_engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Storefront Directory API",
    description="Multi-tenant retail directory, storefront, orders, payments and Google Merchant feeds",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

allowed_origins = [
    settings.PUBLIC_WEB_URL,
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if settings.ENVIRONMENT != "development" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


# Starlette runs the last-added middleware first. The rate limiter reads
# the tenant, so TenantMiddleware is added after it.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(TenantMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Schema validation failures are client errors: 400 with field details."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": errors, "type": "validation_error"})
    )


@app.exception_handler(TenantIsolationError)
async def tenant_isolation_error_handler(request: Request, exc: TenantIsolationError):
    logger.error(
        f"TENANT ISOLATION VIOLATION: {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "tenant_isolation_error"}
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "authentication_error"},
        headers=exc.headers or {}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    Full details go to the log; clients only see them in DEBUG.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "type": type(exc).__name__}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"}
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
        "version": __version__
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": "Storefront Directory API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Tenant routes
app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(tenants.router, prefix="/api/v1")
app.include_router(items.router, prefix="/api/v1")
app.include_router(categories.router, prefix="/api/v1")
app.include_router(feed.router, prefix="/api/v1")
app.include_router(feed_jobs.router, prefix="/api/v1")
app.include_router(directory_listing.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(featured.router, prefix="/api/v1")
app.include_router(recommendations.analytics_router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

# Public routes
app.include_router(directory.router, prefix="/api/v1")
app.include_router(featured.storefront_router, prefix="/api/v1")
app.include_router(taxonomy.router, prefix="/api/v1")
app.include_router(recommendations.router, prefix="/api/v1")
app.include_router(reviews.router, prefix="/api/v1")
app.include_router(admin.telemetry_router, prefix="/api/v1")

# Signed by Stripe, not versioned with the API
app.include_router(stripe_webhooks.router)


if __name__ == "__main__":
    import uvicorn

    logger.info("=" * 80)
    logger.info("Storefront Directory API")
    logger.info("=" * 80)
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info("=" * 80)

    uvicorn.run(
        "storefront_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
