"""
FastAPI application entry point for the event payout engine.
"""
import logging
import multiprocessing
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from payout_engine.config import settings
from payout_engine.logging_config import setup_logging
from payout_engine.rate_limit import limiter
from payout_engine.routers import admin, cron, destinations, earnings, payouts, verification, withdrawals
from payout_engine.services.email_service import drain_background_tasks
from payout_engine.services.scheduler import start_scheduler, stop_scheduler

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up Payout Engine API...")

    # Only start the scheduler on SpawnProcess-1 (master worker)
    # This prevents duplicate settlement runs when running with multiple uvicorn workers
    current_process_name = multiprocessing.current_process().name
    is_master = current_process_name == "SpawnProcess-1"

    if is_master:
        start_scheduler()
    else:
        logger.info(f"Skipping background tasks on {current_process_name}")

    yield
    # Shutdown
    logger.info("Shutting down Payout Engine API...")
    if is_master:
        stop_scheduler()
    await drain_background_tasks()


app = FastAPI(
    title="Payout Engine API",
    description="Organizer earnings, payouts and withdrawals for the ticketing platform",
    version="0.1.0",
    lifespan=lifespan
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path and response status."""
    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Cache-Control"] = "no-store"
    return response

# Register routers
app.include_router(earnings.router, tags=["earnings"])
app.include_router(payouts.router, tags=["payouts"])
app.include_router(withdrawals.router, tags=["withdrawals"])
app.include_router(destinations.router, tags=["destinations"])
app.include_router(verification.router, tags=["verification"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(cron.router, tags=["cron"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
