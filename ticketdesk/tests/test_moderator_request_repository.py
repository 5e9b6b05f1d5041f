"""
Unit tests for ModeratorRequestRepository

Tests:
- Repository initialization
- Create and lookups by applicant/status
- Pending review queue
- Decision write guarded on pending status
"""
from unittest.mock import patch

import pytest

from ticketdesk.models.schemas import (
    ModeratorRequest,
    ModeratorRequestCreate,
    ModeratorRequestStatus,
)
from ticketdesk.repositories.moderator_request_repository import ModeratorRequestRepository


def request_row(request_id="req-1", **overrides):
    row = {
        "id": request_id,
        "applicant_id": "user-1",
        "username": "alice",
        "email": "alice@example.com",
        "skills": ["Python"],
        "status": "pending",
        "reviewed_by": None,
        "rejected_at": None,
        "created_at": "2025-01-01T00:00:00Z",
    }
    row.update(overrides)
    return row


@pytest.fixture
def request_repository(mock_supabase):
    return ModeratorRequestRepository(supabase_client=mock_supabase)


class TestRepositoryInitialization:

    def test_init_with_client(self, mock_supabase):
        repo = ModeratorRequestRepository(supabase_client=mock_supabase)
        assert repo.client == mock_supabase
        assert repo.table_name == "moderator_requests"

    def test_init_default_client(self):
        with patch('supabase.create_client'):
            repo = ModeratorRequestRepository()
            assert repo.table_name == "moderator_requests"


class TestCreateAndRead:

    def test_create(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [request_row()]

        result = request_repository.create(ModeratorRequestCreate(
            applicant_id="user-1",
            username="alice",
            email="alice@example.com",
            skills=["python"],
        ))

        assert isinstance(result, ModeratorRequest)
        assert result.skills == ["python"]
        inserted = mock_supabase.insert.call_args.args[0]
        assert inserted["status"] == "pending"
        assert inserted["applicant_id"] == "user-1"

    def test_create_without_data_raises(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = []

        with pytest.raises(ValueError):
            request_repository.create(ModeratorRequestCreate(
                applicant_id="user-1", username="alice", email="alice@example.com"
            ))

    def test_get_by_id_not_found(self, request_repository):
        assert request_repository.get_by_id("missing") is None

    def test_latest_for_applicant(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [request_row(status="accepted")]

        result = request_repository.latest_for("user-1")

        assert result.status == ModeratorRequestStatus.ACCEPTED
        mock_supabase.eq.assert_called_once_with("applicant_id", "user-1")
        mock_supabase.order.assert_called_once_with("created_at", desc=True)
        mock_supabase.limit.assert_called_once_with(1)

    def test_latest_rejected_orders_by_rejection_time(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [
            request_row(status="rejected", rejected_at="2025-01-02T00:00:00Z")
        ]

        result = request_repository.latest_for("user-1", ModeratorRequestStatus.REJECTED)

        assert result.rejected_at is not None
        mock_supabase.eq.assert_any_call("status", "rejected")
        mock_supabase.order.assert_called_once_with("rejected_at", desc=True)

    def test_list_pending(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [request_row("req-2"), request_row("req-1")]

        result = request_repository.list_pending()

        assert [r.id for r in result] == ["req-2", "req-1"]
        mock_supabase.eq.assert_called_once_with("status", "pending")
        mock_supabase.order.assert_called_once_with("created_at", desc=True)

    @pytest.mark.asyncio
    async def test_async_wrapper(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [request_row()]

        result = await request_repository.latest_for_async("user-1", ModeratorRequestStatus.PENDING)

        assert result.id == "req-1"


class TestMarkDecided:

    def test_update_only_while_pending(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = [request_row(status="accepted", reviewed_by="mod-1")]

        result = request_repository.mark_decided("req-1", {"status": "accepted", "reviewed_by": "mod-1"})

        assert result.reviewed_by == "mod-1"
        mock_supabase.update.assert_called_once_with({"status": "accepted", "reviewed_by": "mod-1"})
        mock_supabase.eq.assert_any_call("id", "req-1")
        mock_supabase.eq.assert_any_call("status", "pending")

    def test_already_decided_returns_none(self, request_repository, mock_supabase):
        mock_supabase.execute.return_value.data = []

        assert request_repository.mark_decided("req-1", {"status": "rejected"}) is None

    def test_errors_propagate(self, request_repository, mock_supabase):
        mock_supabase.execute.side_effect = Exception("connection reset")

        with pytest.raises(Exception, match="connection reset"):
            request_repository.mark_decided("req-1", {"status": "rejected"})
