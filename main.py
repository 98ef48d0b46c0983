# main.py
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Settings and monitoring
from settings import get_settings
settings = get_settings()

# Initialize Sentry error monitoring (if configured)
if settings.SENTRY_DSN:
    import sentry_sdk
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.1,  # 10% sampling for performance (free tier friendly)
    )
    print(f"Sentry initialized for {settings.ENVIRONMENT} environment")

# Database initialization
from database import init_db

# Import routers
from routers import pos_sync

# Import scheduler
from scheduler import start_scheduler, shutdown_scheduler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, version="1.0.0")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "An internal error occurred. Please try again later."}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)."""
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request", "details": jsonable_encoder(exc.errors())}
    )


# Initialize database and scheduler on startup
@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info("Database tables and reference categories ready")
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    shutdown_scheduler()
    logger.info("Background scheduler stopped")

# CORS configuration - use environment-specific origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# Include API routers
app.include_router(pos_sync.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Liveness probe"""
    return {"status": "ok", "app": settings.APP_NAME}
