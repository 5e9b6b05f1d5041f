"""
Ticket Repository for CRUD operations on the tickets table

Features:
- Create / read / update with Supabase
- Role-scoped listing (all tickets or a creator's own) with pagination
- Active-workload counts per moderator for assignment scoring
- Status counts for dashboards
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from ticketdesk.config import get_settings
from ticketdesk.models.schemas import Ticket, TicketCreate, TicketStatus
from ticketdesk.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class TicketRepository:
    """Repository for tickets table operations"""

    def __init__(self, supabase_client=None):
        """
        Initialize repository with Supabase client

        Args:
            supabase_client: Supabase client instance (uses default if None)
        """
        if supabase_client is None:
            from supabase import create_client
            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
        else:
            self.client = supabase_client

        self.table_name = "tickets"
        logger.info(f"TicketRepository initialized for table: {self.table_name}")

    def create(self, ticket: TicketCreate) -> Ticket:
        """
        Create a new ticket

        Args:
            ticket: Ticket data to create

        Returns:
            Created Ticket
        """
        try:
            data = ticket.model_dump(mode="json")

            response = self.client.table(self.table_name).insert(data).execute()

            if not response.data:
                raise ValueError("Failed to create ticket")

            result = Ticket(**response.data[0])
            logger.info(f"Created ticket: {result.id}")
            return result

        except Exception as e:
            logger.error(f"Failed to create ticket: {e}")
            raise

    async def create_async(self, ticket: TicketCreate) -> Ticket:
        return await asyncio.to_thread(self.create, ticket)

    def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """
        Get ticket by ID

        Args:
            ticket_id: Ticket ID

        Returns:
            Ticket if found, None otherwise
        """
        try:
            response = self.client.table(self.table_name)\
                .select("*")\
                .eq("id", ticket_id)\
                .execute()

            if not response.data:
                return None

            return Ticket(**response.data[0])

        except Exception as e:
            logger.error(f"Failed to get ticket {ticket_id}: {e}")
            raise

    async def get_by_id_async(self, ticket_id: str) -> Optional[Ticket]:
        return await asyncio.to_thread(self.get_by_id, ticket_id)

    def list_tickets(
        self,
        created_by: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Ticket]:
        """
        List tickets newest first with optional filters

        Args:
            created_by: Restrict to tickets filed by this user
            status: Optional status filter
            limit: Maximum results (default 20)
            offset: Offset for pagination (default 0)

        Returns:
            List of Tickets
        """
        try:
            query = self.client.table(self.table_name).select("*")

            if created_by:
                query = query.eq("created_by", created_by)
            if status:
                query = query.eq("status", status.value)

            response = query\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()

            return [Ticket(**item) for item in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list tickets: {e}")
            raise

    async def list_tickets_async(self, **filters: Any) -> List[Ticket]:
        return await asyncio.to_thread(self.list_tickets, **filters)

    def count_active_for(self, moderator_id: str) -> int:
        """
        Count tickets assigned to a moderator that are not Completed

        Args:
            moderator_id: Assignee user ID

        Returns:
            Number of open tickets held by the moderator
        """
        try:
            response = self.client.table(self.table_name)\
                .select("id", count="exact")\
                .eq("assigned_to", moderator_id)\
                .neq("status", TicketStatus.COMPLETED.value)\
                .execute()

            return response.count or 0

        except Exception as e:
            logger.error(f"Failed to count active tickets for {moderator_id}: {e}")
            raise

    async def count_active_for_async(self, moderator_id: str) -> int:
        return await asyncio.to_thread(self.count_active_for, moderator_id)

    def count_by_status(self, created_by: Optional[str] = None) -> Dict[str, int]:
        """
        Count tickets per status

        Args:
            created_by: Restrict to tickets filed by this user

        Returns:
            Mapping of status value to count, plus "total"
        """
        try:
            counts: Dict[str, int] = {}
            for status in TicketStatus:
                query = self.client.table(self.table_name)\
                    .select("id", count="exact")\
                    .eq("status", status.value)
                if created_by:
                    query = query.eq("created_by", created_by)
                response = query.execute()
                counts[status.value] = response.count or 0

            counts["total"] = sum(counts.values())
            return counts

        except Exception as e:
            logger.error(f"Failed to count tickets by status: {e}")
            raise

    async def count_by_status_async(self, created_by: Optional[str] = None) -> Dict[str, int]:
        return await asyncio.to_thread(self.count_by_status, created_by)

    def update(self, ticket_id: str, updates: Dict[str, Any]) -> Ticket:
        """
        Update a ticket

        Args:
            ticket_id: Ticket ID
            updates: Fields to update (JSON-ready values)

        Returns:
            Updated Ticket
        """
        try:
            response = self.client.table(self.table_name)\
                .update(updates)\
                .eq("id", ticket_id)\
                .execute()

            if not response.data:
                raise ValueError(f"Ticket {ticket_id} not found")

            result = Ticket(**response.data[0])
            logger.info(f"Updated ticket: {result.id}")
            return result

        except Exception as e:
            logger.error(f"Failed to update ticket {ticket_id}: {e}")
            raise

    async def update_async(self, ticket_id: str, updates: Dict[str, Any]) -> Ticket:
        return await asyncio.to_thread(self.update, ticket_id, updates)
