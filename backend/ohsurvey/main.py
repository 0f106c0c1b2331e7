from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from ohsurvey.core.config import settings
from ohsurvey.core.database import init_db, close_db
from ohsurvey.core.exceptions import SurveyAppError, error_response
from ohsurvey.core.logging_config import logger
from ohsurvey.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from ohsurvey.core.rate_limiter import limiter, rate_limit_exceeded_handler
from ohsurvey.api.v1.router import api_router
from ohsurvey.services.autosave import autosave_service
from ohsurvey.services.session_registry import session_registry
from slowapi.errors import RateLimitExceeded
import ohsurvey.models  # noqa: F401  Import models so metadata knows about them


def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    if settings.AUTOSAVE_ENABLED and settings.AUTOSAVE_INTERVAL_SECONDS <= 0:
        logger.warning("[Startup] WARNING: AUTOSAVE_INTERVAL_SECONDS must be positive, autosave disabled")
        return False

    logger.info("[Startup] ✓ Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    autosave_ok = validate_critical_config()

    await init_db()
    logger.info("[Startup] Database tables ready")

    autosave_running = settings.AUTOSAVE_ENABLED and autosave_ok
    if autosave_running:
        await autosave_service.start()
    else:
        logger.info("Autosave service disabled")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")

    # Final flush happens inside stop()
    if autosave_running:
        await autosave_service.stop()
    session_registry.clear()

    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Occupational health noise survey service (SANS 10083)",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE_MB * 1024 * 1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(SurveyAppError)
async def survey_app_exception_handler(request: Request, exc: SurveyAppError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, request.url.path)
    else:
        logger.warning(f"{exc.code}: {exc.message}", extra={"event_type": "app_error", "error_code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "open_sessions": len(session_registry),
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


def run():
    """Console entry point"""
    import uvicorn
    uvicorn.run(
        "ohsurvey.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
