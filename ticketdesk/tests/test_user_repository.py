"""
Unit tests for UserRepository

Tests:
- Repository initialization
- Candidate listing and lookups
- Stats, assignment and role/skill updates
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from ticketdesk.models.schemas import ModeratorCandidate, UserRole
from ticketdesk.repositories.user_repository import UserRepository


def user_row(user_id="m1", role="moderator", **overrides):
    row = {
        "id": user_id,
        "username": user_id,
        "email": f"{user_id}@example.com",
        "password": "hashed",
        "role": role,
        "skills": ["React", " SQL "],
        "total_tickets_resolved": None,
        "average_resolution_time_hours": None,
        "last_assigned_at": None,
        "created_at": "2024-01-01T00:00:00Z",
    }
    row.update(overrides)
    return row


@pytest.fixture
def user_repository(mock_supabase):
    return UserRepository(supabase_client=mock_supabase)


class TestRepositoryInitialization:

    def test_init_with_client(self, mock_supabase):
        repo = UserRepository(supabase_client=mock_supabase)
        assert repo.client == mock_supabase
        assert repo.table_name == "users"

    def test_init_default_client(self):
        with patch('supabase.create_client'):
            repo = UserRepository()
            assert repo.table_name == "users"


class TestReadOperations:

    def test_list_candidates(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row("m1"), user_row("a1", role="admin")]

        result = user_repository.list_candidates()

        assert [c.id for c in result] == ["m1", "a1"]
        assert all(isinstance(c, ModeratorCandidate) for c in result)
        mock_supabase.in_.assert_called_once_with("role", ["moderator", "admin"])

    def test_rows_are_normalized(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row()]

        candidate = user_repository.list_candidates()[0]

        assert candidate.skills == ["react", "sql"]
        assert candidate.total_tickets_resolved == 0
        assert candidate.average_resolution_time_hours == 24.0
        assert not hasattr(candidate, "password")

    def test_list_all_never_exposes_passwords(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row("u1", role="user"), user_row("a1", role="admin")]

        result = user_repository.list_all()

        assert [u.id for u in result] == ["u1", "a1"]
        assert all("password" not in u.model_dump() for u in result)
        mock_supabase.order.assert_called_once_with("created_at")

    def test_get_by_id_not_found(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = []
        assert user_repository.get_by_id("missing") is None

    def test_get_by_email(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row("u1", role="user")]

        user = user_repository.get_by_email("u1@example.com")

        assert user.role == UserRole.USER
        mock_supabase.eq.assert_called_with("email", "u1@example.com")

    def test_first_admin_orders_by_creation(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row("a1", role="admin")]

        admin = user_repository.first_admin()

        assert admin.id == "a1"
        mock_supabase.eq.assert_called_with("role", "admin")
        mock_supabase.order.assert_called_once_with("created_at")
        mock_supabase.limit.assert_called_once_with(1)

    def test_errors_propagate(self, user_repository, mock_supabase):
        mock_supabase.execute.side_effect = Exception("connection reset")

        with pytest.raises(Exception, match="connection reset"):
            user_repository.list_candidates()

    @pytest.mark.asyncio
    async def test_async_wrapper(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row("m1")]

        result = await user_repository.list_candidates_async()

        assert result[0].id == "m1"


class TestUpdateOperations:

    def test_update_stats(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [
            user_row(total_tickets_resolved=5, average_resolution_time_hours=22.0)
        ]

        result = user_repository.update_stats(
            "m1", total_tickets_resolved=5, average_resolution_time_hours=22.0
        )

        assert result.total_tickets_resolved == 5
        mock_supabase.update.assert_called_once_with({
            "total_tickets_resolved": 5,
            "average_resolution_time_hours": 22.0,
        })
        mock_supabase.eq.assert_called_with("id", "m1")

    def test_mark_assigned_writes_iso_timestamp(self, user_repository, mock_supabase):
        when = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        mock_supabase.execute.return_value.data = [user_row(last_assigned_at=when.isoformat())]

        result = user_repository.mark_assigned("m1", when)

        mock_supabase.update.assert_called_once_with({"last_assigned_at": "2025-03-01T12:00:00+00:00"})
        assert result.last_assigned_at == when

    def test_update_role_and_skills(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row(skills=["go"])]

        user_repository.update_role_and_skills("m1", role=UserRole.MODERATOR, skills=["go"])

        mock_supabase.update.assert_called_once_with({"role": "moderator", "skills": ["go"]})

    def test_update_role_and_skills_requires_changes(self, user_repository):
        with pytest.raises(ValueError, match="No updates provided"):
            user_repository.update_role_and_skills("m1")

    @pytest.mark.asyncio
    async def test_update_stats_async(self, user_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [user_row(total_tickets_resolved=1)]

        result = await user_repository.update_stats_async(
            "m1", total_tickets_resolved=1, average_resolution_time_hours=6.0
        )

        assert result.total_tickets_resolved == 1
