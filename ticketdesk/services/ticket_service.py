"""
Ticket lifecycle service

Reads go through the cache-aside layer keyed by caller scope, filters and
page. Every write invalidates the key namespaces it can make stale.
`process_new_ticket` is the ticket-created pipeline: classify, pick a
moderator, persist the assignment.
"""
import inspect
from typing import Awaitable, Callable, List, Optional, Union

from ticketdesk.exceptions import (
    PermissionDeniedError,
    TicketNotFoundError,
    ValidationError,
)
from ticketdesk.models.schemas import (
    AssignmentResult,
    Priority,
    RequestUser,
    Ticket,
    TicketAnalysis,
    TicketComment,
    TicketCounts,
    TicketCreate,
    TicketStatus,
    UserRole,
    utcnow,
)
from ticketdesk.repositories.ticket_repository import TicketRepository
from ticketdesk.repositories.user_repository import UserRepository
from ticketdesk.services.assignment import ModeratorSelector, ModeratorStatsUpdater
from ticketdesk.services.cache import CacheKeys, CacheTTL, RedisCache
from ticketdesk.utils.fallback import degrade_on_error
from ticketdesk.utils.logger import get_logger
from ticketdesk.utils.validators import sanitize_input

logger = get_logger(__name__)

Classifier = Callable[[Ticket], Awaitable[Optional[Union[TicketAnalysis, dict]]]]

PAGE_SIZE = 20


def coerce_priority(value: Optional[str]) -> Priority:
    """Classifier priority as a Priority; anything but an exact Low/Medium/High is Medium"""
    try:
        return Priority(value)
    except ValueError:
        return Priority.MEDIUM



def _coerce_status(status: Union[TicketStatus, str]) -> TicketStatus:
    try:
        return TicketStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {status}",
            {"allowed": [s.value for s in TicketStatus]},
        )


def _scope(user: RequestUser) -> str:
    return "all" if user.role.is_staff else f"user:{user.id}"


def _can_work_on(user: RequestUser, ticket: Ticket) -> bool:
    """Admins, or the moderator the ticket is assigned to"""
    if user.role == UserRole.ADMIN:
        return True
    return user.role == UserRole.MODERATOR and ticket.assigned_to == user.id


class TicketService:
    """Ticket reads, writes and new-ticket assignment"""

    def __init__(
        self,
        ticket_repo: TicketRepository,
        user_repo: UserRepository,
        cache: RedisCache,
        selector: ModeratorSelector,
        stats_updater: ModeratorStatsUpdater,
        classifier: Optional[Classifier] = None
    ):
        self.ticket_repo = ticket_repo
        self.user_repo = user_repo
        self.cache = cache
        self.selector = selector
        self.stats_updater = stats_updater
        self.classifier = classifier

    async def _invalidate(self, *resources: str) -> None:
        for resource in resources:
            await self.cache.invalidate_resource(resource)

    async def _require_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self.ticket_repo.get_by_id_async(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create_ticket(self, user: RequestUser, title: str, description: str) -> Ticket:
        """
        File a new ticket in To-Do

        Raises:
            ValidationError: Title or description missing
        """
        title = sanitize_input(title or "", max_length=500)
        description = sanitize_input(description or "")
        if not title or not description:
            raise ValidationError("Title and description are required")

        ticket = await self.ticket_repo.create_async(TicketCreate(
            title=title,
            description=description,
            created_by=user.id,
        ))
        await self._invalidate("tickets", "counts")
        return ticket

    @degrade_on_error(default=None, logger=logger, event="ticket_classification_failed")
    async def _classify(self, ticket: Ticket) -> Optional[TicketAnalysis]:
        if self.classifier is None:
            return None

        result = self.classifier(ticket)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        return TicketAnalysis.model_validate(result)

    async def process_new_ticket(self, ticket_id: str) -> AssignmentResult:
        """
        Classify a freshly created ticket and assign a moderator

        Falls back to the first admin when no moderator can be selected;
        leaves the ticket unassigned when there is no admin either.

        Raises:
            TicketNotFoundError: Ticket no longer exists
        """
        ticket = await self._require_ticket(ticket_id)
        await self.ticket_repo.update_async(ticket.id, {"status": TicketStatus.TODO.value})

        analysis = await self._classify(ticket)
        skills: List[str] = []
        priority: Optional[Priority] = None
        if analysis is not None:
            priority = coerce_priority(analysis.priority)
            skills = analysis.related_skills
            await self.ticket_repo.update_async(ticket.id, {
                "priority": priority.value,
                "helpful_notes": analysis.helpful_notes,
                "status": TicketStatus.IN_PROGRESS.value,
                "related_skills": skills,
            })

        moderator = await self.selector.select_moderator(skills)
        used_fallback = False
        if moderator is None:
            moderator = await self.user_repo.first_admin_async()
            used_fallback = moderator is not None

        assignee = moderator.id if moderator else None
        await self.ticket_repo.update_async(ticket.id, {"assigned_to": assignee})
        if assignee:
            await self.user_repo.mark_assigned_async(assignee)
            # last_assigned_at feeds the round-robin tie-break
            await self.cache.delete(CacheKeys.moderators_with_skills())
            logger.info(f"Ticket {ticket.id} assigned to {assignee} (fallback={used_fallback})")
        else:
            logger.warning(f"Ticket {ticket.id} left unassigned, no moderator or admin found")

        await self._invalidate("tickets", "counts")

        return AssignmentResult(
            ticket_id=ticket.id,
            assigned_to=assignee,
            used_admin_fallback=used_fallback,
            priority=priority,
            related_skills=skills,
        )

    async def update_status(
        self,
        user: RequestUser,
        ticket_id: str,
        status: Union[TicketStatus, str]
    ) -> Ticket:
        """
        Move a ticket through the workflow

        A transition into Completed stamps completed_at and records the
        resolution in the assignee's statistics.

        Raises:
            ValidationError: Unknown status
            TicketNotFoundError: Ticket missing
            PermissionDeniedError: Caller is neither admin nor the assignee
        """
        new_status = _coerce_status(status)

        ticket = await self._require_ticket(ticket_id)
        if not _can_work_on(user, ticket):
            raise PermissionDeniedError("Not allowed to update this ticket")

        updates = {"status": new_status.value}
        completing = (
            new_status == TicketStatus.COMPLETED
            and ticket.status != TicketStatus.COMPLETED
        )
        completed_at = utcnow()
        if completing:
            updates["completed_at"] = completed_at.isoformat()
        elif new_status != TicketStatus.COMPLETED:
            updates["completed_at"] = None

        updated = await self.ticket_repo.update_async(ticket.id, updates)

        if completing and ticket.assigned_to:
            await self.stats_updater.record_completion(
                ticket.assigned_to, ticket.created_at, completed_at
            )

        await self._invalidate("tickets", "counts", "stats")
        return updated

    async def add_comment(
        self,
        user: RequestUser,
        ticket_id: str,
        text: str
    ) -> List[TicketComment]:
        """
        Append a comment to the ticket thread

        Only an admin or the assigned moderator may start a thread; once it
        exists the ticket's creator can reply.

        Raises:
            ValidationError: Empty comment
            TicketNotFoundError: Ticket missing
            PermissionDeniedError: Caller may not comment
        """
        text = sanitize_input(text or "")
        if not text:
            raise ValidationError("Comment text is required")

        ticket = await self._require_ticket(ticket_id)
        staff_allowed = _can_work_on(user, ticket)

        if not ticket.comments:
            if not staff_allowed:
                raise PermissionDeniedError("Not allowed to initiate comment")
        elif not staff_allowed and not (
            user.role == UserRole.USER and ticket.created_by == user.id
        ):
            raise PermissionDeniedError("Not allowed to comment")

        comments = ticket.comments + [
            TicketComment(author_id=user.id, text=text, role=user.role)
        ]
        updated = await self.ticket_repo.update_async(ticket.id, {
            "comments": [c.model_dump(mode="json") for c in comments],
        })

        await self._invalidate("tickets")
        return updated.comments

    # ------------------------------------------------------------------
    # Cached reads
    # ------------------------------------------------------------------
    async def list_tickets(
        self,
        user: RequestUser,
        status: Optional[Union[TicketStatus, str]] = None,
        page: int = 1
    ) -> List[Ticket]:
        """
        Staff see every ticket, users only their own; newest first

        Raises:
            ValidationError: Unknown status or page below 1
        """
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if status is not None:
            status = _coerce_status(status)

        created_by = None if user.role.is_staff else user.id
        rows = await self.cache.get_or_set(
            CacheKeys.ticket_list(_scope(user), status.value if status else None, page),
            lambda: self.ticket_repo.list_tickets_async(
                created_by=created_by,
                status=status,
                limit=PAGE_SIZE,
                offset=(page - 1) * PAGE_SIZE,
            ),
            ttl=CacheTTL.RECENT_TICKETS,
        )
        return [Ticket.model_validate(row) for row in rows or []]

    async def get_ticket(self, user: RequestUser, ticket_id: str) -> Ticket:
        """
        Ticket detail visible to the caller

        Raises:
            TicketNotFoundError: Missing, or filed by someone else
        """
        async def fetch() -> Optional[Ticket]:
            ticket = await self.ticket_repo.get_by_id_async(ticket_id)
            if ticket is None:
                return None
            if not user.role.is_staff and ticket.created_by != user.id:
                return None
            return ticket

        row = await self.cache.get_or_set(
            CacheKeys.ticket_detail(ticket_id, _scope(user)),
            fetch,
            ttl=CacheTTL.RECENT_TICKETS,
        )
        if row is None:
            raise TicketNotFoundError(ticket_id)
        return Ticket.model_validate(row)

    async def ticket_counts(self, user: RequestUser) -> TicketCounts:
        """Per-status counts for the caller's dashboard"""
        created_by = None if user.role.is_staff else user.id
        counts = await self.cache.get_or_set(
            CacheKeys.ticket_counts(user.id, user.role.value),
            lambda: self.ticket_repo.count_by_status_async(created_by),
            ttl=CacheTTL.TICKET_COUNTS,
        )
        return dict(counts)
