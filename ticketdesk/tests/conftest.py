"""
pytest configuration and shared fixtures
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ticketdesk.services.cache import RedisCache
from ticketdesk.tests.factories import FakeRedis


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def cache(fake_redis) -> RedisCache:
    """Connected cache backed by FakeRedis"""
    redis_cache = RedisCache(client=fake_redis, enabled=True)
    await redis_cache.connect()
    return redis_cache


@pytest.fixture
def offline_cache() -> RedisCache:
    """Cache that was never connected (pass-through mode)"""
    return RedisCache(enabled=False)


@pytest.fixture
def mock_supabase():
    """Fixture for mock Supabase client with chainable query builder"""
    client = MagicMock()
    client.table.return_value = client
    client.select.return_value = client
    client.insert.return_value = client
    client.update.return_value = client
    client.eq.return_value = client
    client.neq.return_value = client
    client.in_.return_value = client
    client.order.return_value = client
    client.range.return_value = client
    client.limit.return_value = client
    client.execute.return_value = MagicMock(data=[], count=0)
    return client


@pytest.fixture
def user_repo():
    """UserRepository double with async methods"""
    repo = MagicMock()
    repo.list_candidates_async = AsyncMock(return_value=[])
    repo.list_all_async = AsyncMock(return_value=[])
    repo.get_by_id_async = AsyncMock(return_value=None)
    repo.get_by_email_async = AsyncMock(return_value=None)
    repo.first_admin_async = AsyncMock(return_value=None)
    repo.update_stats_async = AsyncMock(return_value=None)
    repo.mark_assigned_async = AsyncMock(return_value=None)
    repo.update_role_and_skills_async = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def ticket_repo():
    """TicketRepository double with async methods"""
    repo = MagicMock()
    repo.count_active_for_async = AsyncMock(return_value=0)
    repo.get_by_id_async = AsyncMock(return_value=None)
    repo.create_async = AsyncMock()
    repo.update_async = AsyncMock()
    repo.list_tickets_async = AsyncMock(return_value=[])
    repo.count_by_status_async = AsyncMock(return_value={})
    return repo
