"""
Moderator application workflow

Users apply with a list of skills; staff review the pending queue and
accept or reject each application exactly once. Acceptance promotes the
applicant through UserService, which merges the skills and drops the
roster cache. A rejection starts a cooldown before the applicant may
apply again.
"""
import math
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ticketdesk.config import get_settings
from ticketdesk.exceptions import (
    ModeratorRequestNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from ticketdesk.models.schemas import (
    ModeratorRequest,
    ModeratorRequestCreate,
    ModeratorRequestStatus,
    ModeratorRequestView,
    RequestUser,
    UserRole,
    utcnow,
)
from ticketdesk.repositories.moderator_request_repository import ModeratorRequestRepository
from ticketdesk.services.user_service import SkillsInput, UserService
from ticketdesk.utils.logger import get_logger
from ticketdesk.utils.validators import normalize_skills, sanitize_input, validate_email

logger = get_logger(__name__)

DECISIONS = {
    "accept": ModeratorRequestStatus.ACCEPTED,
    "reject": ModeratorRequestStatus.REJECTED,
}


def cooldown_remaining(
    rejected_at: Optional[datetime],
    now: datetime,
    cooldown_hours: float = 72.0
) -> int:
    """
    Whole hours left before a rejected applicant may reapply

    Partial hours round up, so 71.5 elapsed hours of a 72h cooldown
    leaves 1. Returns 0 once the cooldown has fully elapsed.
    """
    if rejected_at is None:
        return 0
    if rejected_at.tzinfo is None:
        rejected_at = rejected_at.replace(tzinfo=timezone.utc)

    elapsed = (now - rejected_at).total_seconds() / 3600
    if elapsed >= cooldown_hours:
        return 0
    return math.ceil(cooldown_hours - elapsed)


class ModeratorRequestService:
    """Filing, listing and deciding moderator applications"""

    def __init__(
        self,
        request_repo: ModeratorRequestRepository,
        user_service: UserService,
        cooldown_hours: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.request_repo = request_repo
        self.user_service = user_service
        self.cooldown_hours = (
            get_settings().moderator_request_cooldown_hours
            if cooldown_hours is None else cooldown_hours
        )
        self.clock = clock

    async def create_request(
        self,
        applicant: RequestUser,
        username: str,
        email: str,
        skills: SkillsInput = None
    ) -> ModeratorRequest:
        """
        File an application to become a moderator

        Raises:
            ValidationError: Admin applicant, bad input, a pending request
                already exists, or the rejection cooldown is still running
                (remaining hours in ``details["cooldown_hours"]``)
        """
        if applicant.role == UserRole.ADMIN:
            raise ValidationError("Admins cannot apply to be moderators")

        username = sanitize_input(username or "", max_length=100)
        email = (email or "").strip()
        if not username:
            raise ValidationError("Username is required")
        if not validate_email(email):
            raise ValidationError("Invalid email format", {"email": email})

        pending = await self.request_repo.latest_for_async(
            applicant.id, ModeratorRequestStatus.PENDING
        )
        if pending is not None:
            raise ValidationError("You already have a pending request", {"request_id": pending.id})

        rejected = await self.request_repo.latest_for_async(
            applicant.id, ModeratorRequestStatus.REJECTED
        )
        if rejected is not None:
            wait = cooldown_remaining(rejected.rejected_at, self.clock(), self.cooldown_hours)
            if wait:
                raise ValidationError(
                    f"You were recently rejected. Please wait {wait} more hour(s) before reapplying.",
                    {"cooldown_hours": wait},
                )

        request = await self.request_repo.create_async(ModeratorRequestCreate(
            applicant_id=applicant.id,
            username=username,
            email=email,
            skills=normalize_skills(skills),
        ))
        logger.info(f"Moderator request {request.id} filed by {applicant.id}")
        return request

    async def get_my_request(self, applicant: RequestUser) -> ModeratorRequestView:
        """Caller's most recent request and any remaining cooldown"""
        request = await self.request_repo.latest_for_async(applicant.id)

        cooldown = 0
        if request is not None and request.status == ModeratorRequestStatus.REJECTED:
            cooldown = cooldown_remaining(request.rejected_at, self.clock(), self.cooldown_hours)

        return ModeratorRequestView(request=request, cooldown_hours=cooldown)

    async def list_pending(self, actor: RequestUser) -> List[ModeratorRequest]:
        """
        Pending applications, newest first (staff only)

        Raises:
            PermissionDeniedError: Caller is a plain user
        """
        if not actor.role.is_staff:
            raise PermissionDeniedError("Not allowed")
        return await self.request_repo.list_pending_async()

    async def decide(
        self,
        actor: RequestUser,
        request_id: str,
        action: str
    ) -> ModeratorRequest:
        """
        Accept or reject a pending application

        Raises:
            ValidationError: Unknown action, or the request was already decided
            PermissionDeniedError: Caller is a plain user
            ModeratorRequestNotFoundError: Unknown request
        """
        status = DECISIONS.get(action)
        if status is None:
            raise ValidationError("Invalid action", {"allowed": list(DECISIONS)})
        if not actor.role.is_staff:
            raise PermissionDeniedError("Not allowed")

        request = await self.request_repo.get_by_id_async(request_id)
        if request is None:
            raise ModeratorRequestNotFoundError(request_id)
        if request.status != ModeratorRequestStatus.PENDING:
            raise ValidationError("Request already processed", {"status": request.status.value})

        updates = {"status": status.value, "reviewed_by": actor.id}
        if status == ModeratorRequestStatus.REJECTED:
            updates["rejected_at"] = self.clock().isoformat()

        decided = await self.request_repo.mark_decided_async(request.id, updates)
        if decided is None:
            # Another reviewer got there between the read and the write
            raise ValidationError("Request already processed")

        if status == ModeratorRequestStatus.ACCEPTED:
            try:
                await self.user_service.promote_to_moderator(request.applicant_id, request.skills)
            except UserNotFoundError:
                logger.warning(
                    f"Accepted request {request.id} but applicant {request.applicant_id} no longer exists"
                )

        logger.info(f"Moderator request {request.id} {status.value} by {actor.id}")
        return decided
