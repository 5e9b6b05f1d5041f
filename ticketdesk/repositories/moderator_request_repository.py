"""
Moderator Request Repository

Provides access to the `moderator_requests` table in Supabase: filing an
application, looking up an applicant's pending or last rejected request,
the staff review queue and the one-time decision write.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from ticketdesk.config import get_settings
from ticketdesk.models.schemas import (
    ModeratorRequest,
    ModeratorRequestCreate,
    ModeratorRequestStatus,
)
from ticketdesk.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()


class ModeratorRequestRepository:
    """Repository for moderator_requests table operations."""

    def __init__(self, supabase_client=None) -> None:
        if supabase_client is None:
            from supabase import create_client  # Lazy import for tests

            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
        else:
            self.client = supabase_client

        self.table_name = "moderator_requests"
        logger.info("ModeratorRequestRepository initialized for table: %s", self.table_name)

    def _first(self, response) -> Optional[ModeratorRequest]:
        if not response.data:
            return None
        return ModeratorRequest(**response.data[0])

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create(self, request: ModeratorRequestCreate) -> ModeratorRequest:
        """Insert a pending application."""
        try:
            response = self.client.table(self.table_name) \
                .insert(request.model_dump(mode="json")) \
                .execute()

            result = self._first(response)
            if result is None:
                raise ValueError("Failed to create moderator request")

            logger.info("Created moderator request %s for %s", result.id, result.applicant_id)
            return result

        except Exception as exc:
            logger.error("Failed to create moderator request: %s", exc)
            raise

    async def create_async(self, request: ModeratorRequestCreate) -> ModeratorRequest:
        return await asyncio.to_thread(self.create, request)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get_by_id(self, request_id: str) -> Optional[ModeratorRequest]:
        """Get request by ID, None if missing."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .eq("id", request_id) \
                .execute()

            return self._first(response)

        except Exception as exc:
            logger.error("Failed to get moderator request %s: %s", request_id, exc)
            raise

    async def get_by_id_async(self, request_id: str) -> Optional[ModeratorRequest]:
        return await asyncio.to_thread(self.get_by_id, request_id)

    def latest_for(
        self,
        applicant_id: str,
        status: Optional[ModeratorRequestStatus] = None
    ) -> Optional[ModeratorRequest]:
        """
        Most recent request by an applicant, optionally of one status.

        Rejected requests are ordered by rejection time, everything else by
        creation time.
        """
        try:
            query = self.client.table(self.table_name) \
                .select("*") \
                .eq("applicant_id", applicant_id)

            order_by = "created_at"
            if status is not None:
                query = query.eq("status", status.value)
                if status == ModeratorRequestStatus.REJECTED:
                    order_by = "rejected_at"

            response = query \
                .order(order_by, desc=True) \
                .limit(1) \
                .execute()

            return self._first(response)

        except Exception as exc:
            logger.error("Failed to get latest request for %s: %s", applicant_id, exc)
            raise

    async def latest_for_async(
        self,
        applicant_id: str,
        status: Optional[ModeratorRequestStatus] = None
    ) -> Optional[ModeratorRequest]:
        return await asyncio.to_thread(self.latest_for, applicant_id, status)

    def list_pending(self) -> List[ModeratorRequest]:
        """Review queue, newest first."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .eq("status", ModeratorRequestStatus.PENDING.value) \
                .order("created_at", desc=True) \
                .execute()

            return [ModeratorRequest(**row) for row in response.data or []]

        except Exception as exc:
            logger.error("Failed to list pending moderator requests: %s", exc)
            raise

    async def list_pending_async(self) -> List[ModeratorRequest]:
        return await asyncio.to_thread(self.list_pending)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def mark_decided(self, request_id: str, updates: Dict[str, Any]) -> Optional[ModeratorRequest]:
        """
        Write a decision, only while the request is still pending.

        Returns:
            Updated request, or None when it was already decided (or is gone)
        """
        try:
            response = self.client.table(self.table_name) \
                .update(updates) \
                .eq("id", request_id) \
                .eq("status", ModeratorRequestStatus.PENDING.value) \
                .execute()

            return self._first(response)

        except Exception as exc:
            logger.error("Failed to decide moderator request %s: %s", request_id, exc)
            raise

    async def mark_decided_async(
        self,
        request_id: str,
        updates: Dict[str, Any]
    ) -> Optional[ModeratorRequest]:
        return await asyncio.to_thread(self.mark_decided, request_id, updates)
