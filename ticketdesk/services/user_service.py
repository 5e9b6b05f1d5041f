"""
User role and skill management

Role and skill changes alter who can be assigned and how they score, so
every write here drops the moderator roster entries from the cache.
"""
from typing import Iterable, List, Optional, Union

from ticketdesk.exceptions import (
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from ticketdesk.models.schemas import ModeratorCandidate, RequestUser, UserRole
from ticketdesk.repositories.user_repository import UserRepository
from ticketdesk.services.cache import CacheKeys, RedisCache
from ticketdesk.utils.logger import get_logger
from ticketdesk.utils.validators import normalize_skills, validate_email

logger = get_logger(__name__)

SkillsInput = Optional[Union[str, Iterable[str]]]


class UserService:
    """Admin-facing user updates"""

    def __init__(self, user_repo: UserRepository, cache: RedisCache):
        self.user_repo = user_repo
        self.cache = cache

    async def _invalidate_roster(self, user_id: str) -> None:
        await self.cache.delete(CacheKeys.moderators_with_skills())
        await self.cache.delete(CacheKeys.all_moderators())
        await self.cache.delete(CacheKeys.moderator_skills(user_id))

    async def list_users(self, actor: RequestUser) -> List[ModeratorCandidate]:
        """
        Every account, without passwords (admin only)

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        if actor.role != UserRole.ADMIN:
            raise PermissionDeniedError("Only admins can list users")
        return await self.user_repo.list_all_async()

    async def update_user(
        self,
        actor: RequestUser,
        email: str,
        skills: SkillsInput = None,
        role: Optional[UserRole] = None
    ) -> ModeratorCandidate:
        """
        Change a user's role and skills (admin only)

        An empty skills input keeps the current skills.

        Raises:
            PermissionDeniedError: Actor is not an admin
            ValidationError: Malformed email
            UserNotFoundError: No user with that email
        """
        if actor.role != UserRole.ADMIN:
            raise PermissionDeniedError("Only admins can update users")

        email = (email or "").strip()
        if not validate_email(email):
            raise ValidationError("Invalid email format", {"email": email})

        user = await self.user_repo.get_by_email_async(email)
        if user is None:
            raise UserNotFoundError(f"User {email} not found")

        new_skills = normalize_skills(skills) or user.skills
        updated = await self.user_repo.update_role_and_skills_async(
            user.id,
            role=role or user.role,
            skills=new_skills,
        )
        await self._invalidate_roster(user.id)

        logger.info(f"Updated user {user.id}: role={(role or user.role).value}")
        return updated or user

    async def promote_to_moderator(
        self,
        user_id: str,
        skills: SkillsInput = None
    ) -> ModeratorCandidate:
        """
        Grant the moderator role, merging new skills into existing ones

        Raises:
            UserNotFoundError: Unknown user
        """
        user = await self.user_repo.get_by_id_async(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        merged = normalize_skills(list(user.skills) + normalize_skills(skills))
        role = UserRole.ADMIN if user.role == UserRole.ADMIN else UserRole.MODERATOR
        updated = await self.user_repo.update_role_and_skills_async(
            user.id,
            role=role,
            skills=merged,
        )
        await self._invalidate_roster(user.id)

        logger.info(f"Promoted user {user.id} to {role.value} with {len(merged)} skills")
        return updated or user
