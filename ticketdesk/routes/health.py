"""
Health check endpoints with dependency monitoring

Provides two endpoints:
- GET /api/v1/health - Basic health check
- GET /api/v1/health/dependencies - Supabase and Redis status
"""
import time
from datetime import datetime, timezone
from typing import Dict, Optional
from fastapi import APIRouter, status
from pydantic import BaseModel, Field
from supabase import create_client
import asyncio

from ticketdesk.config import get_settings
from ticketdesk.models.schemas import CacheState
from ticketdesk.services.cache import get_cache
from ticketdesk.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])

APP_VERSION = "1.0.0"

# Application start time for uptime calculation
APP_START_TIME = time.time()

# Cache for dependency check results (30 seconds TTL)
_dependency_cache: Optional["DependencyHealth"] = None
_cache_timestamp: float = 0.0
CACHE_TTL_SECONDS = 30.0

CRITICAL_SERVICES = ["supabase"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_now, description="Check timestamp")
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str = Field(..., description="Dependency name")
    status: str = Field(..., description="Status: healthy, degraded, unhealthy")
    latency_ms: Optional[float] = Field(None, description="Response latency in milliseconds")
    error_message: Optional[str] = Field(None, description="Error message if unhealthy")


class DependencyHealth(BaseModel):
    """Dependency health check response"""
    overall_status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    dependencies: Dict[str, DependencyStatus] = Field(..., description="Individual dependency statuses")
    checked_at: datetime = Field(default_factory=_now, description="Check timestamp")


# ============================================================================
# Dependency Check Functions
# ============================================================================

async def check_supabase() -> DependencyStatus:
    """
    Check Supabase database connectivity

    Returns:
        DependencyStatus with health information
    """
    try:
        if not settings.supabase_url or not settings.supabase_key:
            return DependencyStatus(
                name="supabase",
                status="unhealthy",
                error_message="Supabase credentials not configured"
            )

        start = time.time()
        client = create_client(settings.supabase_url, settings.supabase_key)

        await asyncio.wait_for(
            asyncio.to_thread(
                lambda: client.table("users").select("id").limit(1).execute()
            ),
            timeout=5.0
        )

        latency = (time.time() - start) * 1000
        return DependencyStatus(name="supabase", status="healthy", latency_ms=round(latency, 2))

    except asyncio.TimeoutError:
        logger.error("Supabase health check timed out")
        return DependencyStatus(
            name="supabase",
            status="unhealthy",
            error_message="Request timed out after 5 seconds"
        )
    except Exception as e:
        logger.error(f"Supabase health check failed: {e}")
        return DependencyStatus(name="supabase", status="unhealthy", error_message=str(e))


async def check_redis() -> DependencyStatus:
    """
    Check Redis cache connectivity

    The cache is optional, so a missing or failed connection is reported
    as degraded rather than unhealthy.
    """
    cache = get_cache()
    if not cache.is_ready:
        return DependencyStatus(
            name="redis",
            status="degraded",
            error_message=f"Cache {cache.state.value}, serving uncached reads"
        )

    try:
        start = time.time()
        await asyncio.wait_for(cache.client.ping(), timeout=5.0)
        latency = (time.time() - start) * 1000
        return DependencyStatus(name="redis", status="healthy", latency_ms=round(latency, 2))
    except asyncio.TimeoutError:
        logger.warning("Redis health check timed out")
        return DependencyStatus(
            name="redis",
            status="degraded",
            error_message="Ping timed out after 5 seconds"
        )
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return DependencyStatus(name="redis", status="degraded", error_message=str(e))


async def check_all_dependencies() -> Dict[str, DependencyStatus]:
    """
    Check all external dependencies in parallel

    Returns:
        Dictionary mapping dependency names to their status
    """
    dep_names = ["supabase", "redis"]
    results = await asyncio.gather(
        check_supabase(),
        check_redis(),
        return_exceptions=True
    )

    dependencies = {}
    for name, result in zip(dep_names, results):
        if isinstance(result, Exception):
            logger.error(f"Unexpected error checking {name}: {result}")
            dependencies[name] = DependencyStatus(
                name=name,
                status="unhealthy",
                error_message=f"Unexpected error: {str(result)}"
            )
        else:
            dependencies[name] = result

    return dependencies


def determine_overall_status(dependencies: Dict[str, DependencyStatus]) -> str:
    """
    Overall system status from dependency health

    Rules:
    - Any critical service (Supabase) unhealthy → "unhealthy"
    - Anything else degraded/unhealthy → "degraded"
    - All healthy → "healthy"
    """
    for service in CRITICAL_SERVICES:
        if service in dependencies and dependencies[service].status == "unhealthy":
            return "unhealthy"

    if any(dep.status in ["degraded", "unhealthy"] for dep in dependencies.values()):
        return "degraded"

    return "healthy"


# ============================================================================
# API Endpoints
# ============================================================================

@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns basic application health status and uptime"
)
async def basic_health_check() -> HealthResponse:
    """Always 200 with uptime; external dependencies are not checked."""
    uptime = time.time() - APP_START_TIME
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=APP_VERSION,
        uptime_seconds=round(uptime, 2)
    )


@router.get(
    "/dependencies",
    response_model=DependencyHealth,
    status_code=status.HTTP_200_OK,
    summary="Dependency health check",
    description="Checks Supabase and Redis and returns detailed status"
)
async def dependency_health_check() -> DependencyHealth:
    """
    Dependency health check endpoint

    Results are cached for 30 seconds to avoid hammering dependencies.
    """
    global _dependency_cache, _cache_timestamp

    current_time = time.time()
    if _dependency_cache and (current_time - _cache_timestamp) < CACHE_TTL_SECONDS:
        logger.debug("Returning cached dependency health check results")
        return _dependency_cache

    dependencies = await check_all_dependencies()
    response = DependencyHealth(
        overall_status=determine_overall_status(dependencies),
        dependencies=dependencies,
        checked_at=_now()
    )

    _dependency_cache = response
    _cache_timestamp = current_time

    unhealthy = [name for name, dep in dependencies.items() if dep.status == "unhealthy"]
    if unhealthy:
        logger.warning(f"Unhealthy dependencies: {', '.join(unhealthy)}")

    return response
