"""Inkwell Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from inkwell.logging_config import setup_inkwell_logging
from inkwell.marketplace.errors import InvalidTokenError, MarketplaceError, UnauthorizedError

from .config import get_settings
from .context import AppContext
from .logging_config import get_logger
from .rate_limit import limiter
from .routes import admin_router, auth_router, jobs_router, writer_router

logger = get_logger("main")

# Error kind -> HTTP status
ERROR_STATUS = {
    "validation": 400,
    "precondition": 400,
    "not_found": 404,
    "conflict": 409,
    "storage": 502,
    "auth": 403,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    setup_inkwell_logging(settings.log_level, service="backend")
    ctx = AppContext.create(settings)
    ctx.startup()
    app.state.context = ctx
    logger.info(
        f"Starting Inkwell Backend API | storage={settings.storage_backend} | "
        f"matching={settings.matching_mode} | debug={settings.debug}"
    )
    yield
    # Shutdown
    ctx.shutdown()
    logger.info("Shutting down Inkwell Backend API")


app = FastAPI(
    title="Inkwell Backend API",
    description="Writing job marketplace: clients post, writers bid, admins assign and review",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Map marketplace errors to HTTP responses by kind."""
    headers = None
    if isinstance(exc, InvalidTokenError):
        status_code = 401
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, UnauthorizedError):
        status_code = 403
    else:
        status_code = ERROR_STATUS.get(exc.kind, 500)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.kind} | {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} | {exc.kind} | {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind},
        headers=headers,
    )


# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(jobs_router)
app.include_router(writer_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "inkwell-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health(request: Request):
    """Detailed health check with actual database verification."""
    ctx: AppContext = request.app.state.context

    if ctx.db is None:
        db_status = "memory"
    else:
        db_status = "disconnected"
        try:
            # Simple query to verify connection
            ctx.db.table("users").select("id").limit(1).execute()
            db_status = "connected"
        except Exception as e:
            db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status in ("connected", "memory") else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
        "matching_mode": ctx.settings.matching_mode,
    }
