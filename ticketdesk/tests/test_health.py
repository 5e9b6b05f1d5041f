"""
Tests for health check endpoints

Tests both basic and dependency health checks. Dependency checks are
patched so no Supabase or Redis instance is needed.
"""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from ticketdesk.main import app
from ticketdesk.routes import health
from ticketdesk.routes.health import DependencyStatus, determine_overall_status
from ticketdesk.services.cache import RedisCache

client = TestClient(app)


def dep(name, status):
    return DependencyStatus(name=name, status=status)


@pytest.fixture(autouse=True)
def reset_dependency_cache():
    health._dependency_cache = None
    health._cache_timestamp = 0.0
    yield
    health._dependency_cache = None
    health._cache_timestamp = 0.0


class TestBasicHealthCheck:
    """Test basic health check endpoint"""

    def test_basic_health(self):
        response = client.get("/api/v1/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["uptime_seconds"] >= 0
        assert "timestamp" in data

    def test_root(self):
        response = client.get("/")
        assert response.json() == {"message": "Ticketdesk API", "version": "1.0.0"}


class TestDependencyHealthCheck:
    """Test dependency health check endpoint"""

    def test_all_healthy(self):
        with patch.object(health, "check_supabase", AsyncMock(return_value=dep("supabase", "healthy"))), \
                patch.object(health, "check_redis", AsyncMock(return_value=dep("redis", "healthy"))):
            response = client.get("/api/v1/health/dependencies")

        data = response.json()
        assert response.status_code == 200
        assert data["overall_status"] == "healthy"
        assert set(data["dependencies"]) == {"supabase", "redis"}

    def test_redis_down_is_degraded(self):
        with patch.object(health, "check_supabase", AsyncMock(return_value=dep("supabase", "healthy"))), \
                patch.object(health, "check_redis", AsyncMock(return_value=dep("redis", "degraded"))):
            data = client.get("/api/v1/health/dependencies").json()

        assert data["overall_status"] == "degraded"

    def test_check_exception_reported_unhealthy(self):
        with patch.object(health, "check_supabase", AsyncMock(side_effect=RuntimeError("boom"))), \
                patch.object(health, "check_redis", AsyncMock(return_value=dep("redis", "healthy"))):
            data = client.get("/api/v1/health/dependencies").json()

        assert data["overall_status"] == "unhealthy"
        assert "boom" in data["dependencies"]["supabase"]["error_message"]

    def test_results_cached(self):
        supabase_check = AsyncMock(return_value=dep("supabase", "healthy"))
        with patch.object(health, "check_supabase", supabase_check), \
                patch.object(health, "check_redis", AsyncMock(return_value=dep("redis", "healthy"))):
            client.get("/api/v1/health/dependencies")
            client.get("/api/v1/health/dependencies")

        supabase_check.assert_awaited_once()


class TestOverallStatus:

    def test_critical_service_unhealthy(self):
        deps = {"supabase": dep("supabase", "unhealthy"), "redis": dep("redis", "healthy")}
        assert determine_overall_status(deps) == "unhealthy"

    def test_optional_service_unhealthy(self):
        deps = {"supabase": dep("supabase", "healthy"), "redis": dep("redis", "unhealthy")}
        assert determine_overall_status(deps) == "degraded"


class TestProbes:

    @pytest.mark.asyncio
    async def test_redis_not_connected_is_degraded(self):
        with patch.object(health, "get_cache", return_value=RedisCache(enabled=False)):
            result = await health.check_redis()

        assert result.status == "degraded"
        assert "disconnected" in result.error_message

    @pytest.mark.asyncio
    async def test_redis_ready(self, cache):
        with patch.object(health, "get_cache", return_value=cache):
            result = await health.check_redis()

        assert result.status == "healthy"
        assert result.latency_ms is not None

    @pytest.mark.asyncio
    async def test_supabase_unconfigured(self):
        with patch.object(health.settings, "supabase_url", ""):
            result = await health.check_supabase()

        assert result.status == "unhealthy"
        assert result.error_message == "Supabase credentials not configured"
