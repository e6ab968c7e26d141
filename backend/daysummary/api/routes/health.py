"""Health check endpoints for monitoring service status."""

import asyncio
import time
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from daysummary.api.deps import get_llm_service
from daysummary.database import get_db
from daysummary.services.openai_service import OpenAIService

router = APIRouter(tags=["health"])


class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class DependencyHealth(BaseModel):
    """Health status of a single dependency."""
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Full health check response."""
    status: HealthStatus
    version: str
    dependencies: Dict[str, DependencyHealth]


async def check_database(db: Session) -> DependencyHealth:
    """Check database connectivity."""
    try:
        start = time.perf_counter()
        db.execute(text("SELECT 1"))
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(
            status=HealthStatus.HEALTHY,
            latency_ms=round(latency, 2),
        )
    except Exception as e:
        return DependencyHealth(
            status=HealthStatus.UNHEALTHY,
            message=str(e),
        )


async def check_openai(llm: OpenAIService) -> DependencyHealth:
    """Check OpenAI reachability. The summary falls back to a template without it."""
    try:
        start = time.perf_counter()
        is_healthy = await llm.health_check()
        latency = (time.perf_counter() - start) * 1000

        if is_healthy:
            return DependencyHealth(
                status=HealthStatus.HEALTHY,
                latency_ms=round(latency, 2),
            )
        return DependencyHealth(
            status=HealthStatus.DEGRADED,
            message="OpenAI not reachable",
        )
    except Exception as e:
        return DependencyHealth(
            status=HealthStatus.DEGRADED,
            message=str(e),
        )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Session = Depends(get_db),
    llm: OpenAIService = Depends(get_llm_service),
) -> HealthResponse:
    """
    Comprehensive health check with dependency status.

    Returns status of all dependencies:
    - database: summaries cannot be built without it
    - openai: narrative text (optional, degraded when missing)
    """
    db_health, openai_health = await asyncio.gather(
        check_database(db),
        check_openai(llm),
    )

    dependencies = {
        "database": db_health,
        "openai": openai_health,
    }

    if db_health.status == HealthStatus.UNHEALTHY:
        overall = HealthStatus.UNHEALTHY
    elif any(d.status != HealthStatus.HEALTHY for d in dependencies.values()):
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    return HealthResponse(
        status=overall,
        version="0.1.0",
        dependencies=dependencies,
    )


@router.get("/health/live")
async def liveness():
    """
    Kubernetes liveness probe - is the application running?

    This endpoint always returns 200 if the app is responding.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(db: Session = Depends(get_db)):
    """
    Kubernetes readiness probe - can the app handle traffic?

    Returns 200 if the database is reachable, 503 otherwise.
    """
    db_health = await check_database(db)

    if db_health.status == HealthStatus.UNHEALTHY:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": db_health.message},
        )

    return {"status": "ready"}
