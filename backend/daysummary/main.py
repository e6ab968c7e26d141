from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from daysummary.api.routes import day_summary, health, usage
from daysummary.config import get_settings
from daysummary.core.error_handlers import (
    day_summary_exception_handler,
    generic_exception_handler,
    pydantic_validation_handler,
)
from daysummary.core.exceptions import DaySummaryException
from daysummary.core.logging import get_logger, setup_logging
from daysummary.core.middleware import PermissiveCORSMiddleware, RequestLoggingMiddleware
from daysummary.core.rate_limit import limiter, rate_limit_exceeded_handler
from daysummary.database import init_db

settings = get_settings()

# Initialize structured logging
setup_logging(debug=settings.debug, level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("application_startup", app_name=settings.app_name)
    init_db()
    logger.info("database_initialized")

    yield

    logger.info("application_shutdown")


app = FastAPI(
    title=settings.app_name,
    description="Daily nutrition, training and recovery summaries",
    version="0.1.0",
    root_path="",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS last so it wraps everything, preflight included
app.add_middleware(PermissiveCORSMiddleware)

# Register exception handlers
app.add_exception_handler(DaySummaryException, day_summary_exception_handler)
app.add_exception_handler(RequestValidationError, pydantic_validation_handler)
app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(day_summary.router, prefix="/api/day-summary", tags=["day-summary"])
app.include_router(usage.router, prefix="/api/usage", tags=["usage"])


@app.get("/")
async def root():
    return {"message": "Day Summary API", "version": "0.1.0"}
