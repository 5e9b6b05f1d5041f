"""
User Repository

Provides access to the `users` table in Supabase for the parts of a user
record that moderator assignment reads and writes: role, skills and
resolution statistics.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from ticketdesk.config import get_settings
from ticketdesk.models.schemas import ModeratorCandidate, UserRole, utcnow
from ticketdesk.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

CANDIDATE_ROLES = [UserRole.MODERATOR.value, UserRole.ADMIN.value]


class UserRepository:
    """Repository for users table operations."""

    def __init__(self, supabase_client=None) -> None:
        if supabase_client is None:
            from supabase import create_client  # Lazy import for tests

            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
        else:
            self.client = supabase_client

        self.table_name = "users"
        logger.info("UserRepository initialized for table: %s", self.table_name)

    @staticmethod
    def _deserialize(row: Dict[str, Any]) -> ModeratorCandidate:
        """Convert Supabase row into ModeratorCandidate (password never read)."""
        row = dict(row)
        row.pop("password", None)
        return ModeratorCandidate(**row)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def list_candidates(self) -> List[ModeratorCandidate]:
        """All users eligible for ticket assignment (moderators and admins)."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .in_("role", CANDIDATE_ROLES) \
                .execute()

            rows = response.data or []
            return [self._deserialize(row) for row in rows]

        except Exception as exc:
            logger.error("Failed to list moderator candidates: %s", exc)
            raise

    async def list_candidates_async(self) -> List[ModeratorCandidate]:
        return await asyncio.to_thread(self.list_candidates)

    def list_all(self) -> List[ModeratorCandidate]:
        """Every user account, oldest first (password never read)."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .order("created_at") \
                .execute()

            return [self._deserialize(row) for row in response.data or []]

        except Exception as exc:
            logger.error("Failed to list users: %s", exc)
            raise

    async def list_all_async(self) -> List[ModeratorCandidate]:
        return await asyncio.to_thread(self.list_all)

    def get_by_id(self, user_id: str) -> Optional[ModeratorCandidate]:
        """Get user by ID, None if missing."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .eq("id", user_id) \
                .execute()

            if not response.data:
                return None

            return self._deserialize(response.data[0])

        except Exception as exc:
            logger.error("Failed to get user %s: %s", user_id, exc)
            raise

    async def get_by_id_async(self, user_id: str) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.get_by_id, user_id)

    def get_by_email(self, email: str) -> Optional[ModeratorCandidate]:
        """Get user by email, None if missing."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .eq("email", email) \
                .limit(1) \
                .execute()

            if not response.data:
                return None

            return self._deserialize(response.data[0])

        except Exception as exc:
            logger.error("Failed to get user by email: %s", exc)
            raise

    async def get_by_email_async(self, email: str) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.get_by_email, email)

    def first_admin(self) -> Optional[ModeratorCandidate]:
        """Oldest admin account, used when no moderator can be selected."""
        try:
            response = self.client.table(self.table_name) \
                .select("*") \
                .eq("role", UserRole.ADMIN.value) \
                .order("created_at") \
                .limit(1) \
                .execute()

            if not response.data:
                return None

            return self._deserialize(response.data[0])

        except Exception as exc:
            logger.error("Failed to get fallback admin: %s", exc)
            raise

    async def first_admin_async(self) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.first_admin)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def _update(self, user_id: str, updates: Dict[str, Any]) -> Optional[ModeratorCandidate]:
        response = self.client.table(self.table_name) \
            .update(updates) \
            .eq("id", user_id) \
            .execute()

        if not response.data:
            return None

        return self._deserialize(response.data[0])

    def update_stats(
        self,
        user_id: str,
        *,
        total_tickets_resolved: int,
        average_resolution_time_hours: float
    ) -> Optional[ModeratorCandidate]:
        """Write resolution statistics for a moderator."""
        try:
            return self._update(user_id, {
                "total_tickets_resolved": total_tickets_resolved,
                "average_resolution_time_hours": average_resolution_time_hours,
            })

        except Exception as exc:
            logger.error("Failed to update stats for user %s: %s", user_id, exc)
            raise

    async def update_stats_async(self, user_id: str, **stats: Any) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.update_stats, user_id, **stats)

    def mark_assigned(
        self,
        user_id: str,
        assigned_at: Optional[datetime] = None
    ) -> Optional[ModeratorCandidate]:
        """Stamp last_assigned_at, which drives round-robin tie-breaking."""
        try:
            when = assigned_at or utcnow()
            return self._update(user_id, {"last_assigned_at": when.isoformat()})

        except Exception as exc:
            logger.error("Failed to mark user %s as assigned: %s", user_id, exc)
            raise

    async def mark_assigned_async(
        self,
        user_id: str,
        assigned_at: Optional[datetime] = None
    ) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.mark_assigned, user_id, assigned_at)

    def update_role_and_skills(
        self,
        user_id: str,
        *,
        role: Optional[UserRole] = None,
        skills: Optional[List[str]] = None
    ) -> Optional[ModeratorCandidate]:
        """Change role and/or skill tags."""
        try:
            updates: Dict[str, Any] = {}
            if role is not None:
                updates["role"] = role.value
            if skills is not None:
                updates["skills"] = skills

            if not updates:
                raise ValueError("No updates provided")

            return self._update(user_id, updates)

        except Exception as exc:
            logger.error("Failed to update role/skills for user %s: %s", user_id, exc)
            raise

    async def update_role_and_skills_async(
        self,
        user_id: str,
        **updates: Any
    ) -> Optional[ModeratorCandidate]:
        return await asyncio.to_thread(self.update_role_and_skills, user_id, **updates)
