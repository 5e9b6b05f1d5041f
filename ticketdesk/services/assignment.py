"""
Intelligent moderator assignment

Scores every moderator/admin on three independent signals and picks the
best one for a ticket:

- skill match: share of the ticket's required skills covered by the
  moderator's skill tags (bidirectional substring match)
- availability: inverse of current open-ticket load, capped at capacity
- performance: historical average resolution time against a target

final = 0.5 * skill + 0.3 * availability + 0.2 * performance

When the top two final scores fall inside the tie band, everyone within
the band of the leader is re-ranked by last assignment time (never
assigned first), which spreads work round-robin among equals.

Workload is read and the assignment written by the caller in separate,
non-transactional steps. Two tickets processed concurrently can both see
the same moderator as least loaded; scores are a soft heuristic so this
skew is accepted rather than locked against.
"""
import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel

from ticketdesk.config import Settings, get_settings
from ticketdesk.models.schemas import ModeratorCandidate, ModeratorScore, ScoreBreakdown
from ticketdesk.repositories.ticket_repository import TicketRepository
from ticketdesk.repositories.user_repository import UserRepository
from ticketdesk.services.cache import CacheKeys, CacheTTL, RedisCache
from ticketdesk.utils.fallback import degrade_on_error
from ticketdesk.utils.logger import get_logger

logger = get_logger(__name__)

_NEVER_ASSIGNED = datetime.min.replace(tzinfo=timezone.utc)


class AssignmentPolicy(BaseModel):
    """Weights and thresholds used by moderator scoring"""
    skill_weight: float = 0.5
    availability_weight: float = 0.3
    performance_weight: float = 0.2
    max_capacity: int = 10
    target_resolution_hours: float = 24.0
    tie_band: float = 0.05
    neutral_skill_score: float = 0.5
    new_moderator_score: float = 0.7

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AssignmentPolicy":
        settings = settings or get_settings()
        return cls(
            skill_weight=settings.assignment_skill_weight,
            availability_weight=settings.assignment_availability_weight,
            performance_weight=settings.assignment_performance_weight,
            max_capacity=settings.assignment_max_capacity,
            target_resolution_hours=settings.assignment_target_resolution_hours,
            tie_band=settings.assignment_tie_band,
            neutral_skill_score=settings.assignment_neutral_skill_score,
            new_moderator_score=settings.assignment_new_moderator_score,
        )


# ============================================================================
# Scoring functions
# ============================================================================

def skill_match_score(
    required_skills: Optional[Sequence[str]],
    moderator_skills: Optional[Sequence[str]],
    neutral_score: float = 0.5
) -> float:
    """
    Fraction of required skills matched by the moderator's skills

    A required skill matches when it contains, or is contained in, any of
    the moderator's skills (case-insensitive). Each required skill counts
    at most once.

    Args:
        required_skills: Skills extracted from ticket analysis
        moderator_skills: Skills listed on the moderator profile
        neutral_score: Returned when the ticket has no required skills

    Returns:
        Score between 0 and 1
    """
    if not required_skills:
        return neutral_score
    if not moderator_skills:
        return 0.0

    required = [s.lower().strip() for s in required_skills]
    available = [s.lower().strip() for s in moderator_skills]

    matched = 0
    for ticket_skill in required:
        for mod_skill in available:
            if ticket_skill in mod_skill or mod_skill in ticket_skill:
                matched += 1
                break

    return matched / len(required)


def availability_score(active_tickets: int, max_capacity: int = 10) -> float:
    """
    Inverse workload ratio

    Args:
        active_tickets: Open tickets currently assigned to the moderator
        max_capacity: Recommended maximum open tickets per moderator

    Returns:
        1.0 when idle, 0.0 at or above capacity
    """
    if max_capacity <= 0 or active_tickets >= max_capacity:
        return 0.0
    return 1 - max(active_tickets, 0) / max_capacity


def performance_score(
    avg_resolution_hours: float,
    total_resolved: int,
    target_hours: float = 24.0,
    new_moderator_score: float = 0.7
) -> float:
    """
    Historical performance against the resolution-time target

    Moderators with no resolved tickets get a neutral score. Past the
    target the score drops by half for every full target period of excess
    time, floored at 0.

    Args:
        avg_resolution_hours: Average hours to resolve a ticket
        total_resolved: Tickets resolved to date
        target_hours: Target resolution time
        new_moderator_score: Score for moderators without history

    Returns:
        Score between 0 and 1
    """
    if total_resolved == 0:
        return new_moderator_score

    if avg_resolution_hours <= target_hours:
        return 1.0

    penalty = (avg_resolution_hours - target_hours) / target_hours
    return max(0.0, 1 - penalty * 0.5)


def score_moderator(
    moderator: ModeratorCandidate,
    required_skills: Optional[Sequence[str]],
    active_tickets: int,
    policy: AssignmentPolicy
) -> ModeratorScore:
    """Compute the component and final scores for one candidate"""
    skill = skill_match_score(required_skills, moderator.skills, policy.neutral_skill_score)
    availability = availability_score(active_tickets, policy.max_capacity)
    performance = performance_score(
        moderator.average_resolution_time_hours,
        moderator.total_tickets_resolved,
        policy.target_resolution_hours,
        policy.new_moderator_score,
    )
    final = (
        skill * policy.skill_weight
        + availability * policy.availability_weight
        + performance * policy.performance_weight
    )

    return ModeratorScore(
        moderator=moderator,
        scores=ScoreBreakdown(
            skill_match=skill,
            availability=availability,
            performance=performance,
            final=final,
        ),
        active_tickets_count=active_tickets,
    )


def _last_assigned_key(score: ModeratorScore) -> datetime:
    assigned_at = score.moderator.last_assigned_at
    if assigned_at is None:
        return _NEVER_ASSIGNED
    if assigned_at.tzinfo is None:
        return assigned_at.replace(tzinfo=timezone.utc)
    return assigned_at


def pick_moderator(
    ranked: List[ModeratorScore],
    tie_band: float = 0.05
) -> Optional[ModeratorScore]:
    """
    Pick the winner from candidates sorted by final score (descending)

    If the leader is less than ``tie_band`` ahead of the runner-up, the
    least recently assigned candidate within the band wins.
    """
    if not ranked:
        return None

    top = ranked[0].scores.final
    if len(ranked) > 1 and abs(top - ranked[1].scores.final) < tie_band:
        contenders = [s for s in ranked if abs(s.scores.final - top) < tie_band]
        contenders.sort(key=_last_assigned_key)
        return contenders[0]

    return ranked[0]


# ============================================================================
# Services
# ============================================================================

class ModeratorSelector:
    """Selects the best moderator for a ticket's required skills"""

    def __init__(
        self,
        user_repo: UserRepository,
        ticket_repo: TicketRepository,
        cache: RedisCache,
        policy: Optional[AssignmentPolicy] = None
    ):
        self.user_repo = user_repo
        self.ticket_repo = ticket_repo
        self.cache = cache
        self.policy = policy or AssignmentPolicy.from_settings()

    async def load_roster(self) -> List[ModeratorCandidate]:
        """Moderators and admins, read through the roster cache"""
        rows = await self.cache.get_or_set(
            CacheKeys.moderators_with_skills(),
            self.user_repo.list_candidates_async,
            ttl=CacheTTL.MODERATOR_LIST,
        )
        return [ModeratorCandidate.model_validate(row) for row in rows or []]

    async def score_candidates(
        self,
        required_skills: Optional[Sequence[str]]
    ) -> List[ModeratorScore]:
        """
        Score every candidate, best first

        Open-ticket counts are read directly (never cached) and fetched
        concurrently for all candidates.

        Raises:
            Exception: Propagates repository failures
        """
        roster = await self.load_roster()
        if not roster:
            return []

        counts = await asyncio.gather(*[
            self.ticket_repo.count_active_for_async(moderator.id)
            for moderator in roster
        ])

        scored = [
            score_moderator(moderator, required_skills, count, self.policy)
            for moderator, count in zip(roster, counts)
        ]
        scored.sort(key=lambda s: s.scores.final, reverse=True)
        return scored

    @degrade_on_error(default=None, logger=logger, event="moderator_selection_failed")
    async def select_moderator(
        self,
        required_skills: Optional[Sequence[str]]
    ) -> Optional[ModeratorCandidate]:
        """
        Best moderator for the given skills

        Returns:
            Selected candidate, or None when nobody is eligible or the data
            could not be read. None means "leave unassigned or fall back",
            not "retry".
        """
        ranked = await self.score_candidates(required_skills)
        if not ranked:
            logger.warning("No moderators or admins available for assignment")
            return None

        winner = pick_moderator(ranked, self.policy.tie_band)
        logger.info(
            f"Selected moderator {winner.moderator.id} "
            f"(score={winner.scores.final:.3f}, candidates={len(ranked)})",
            extra={
                "moderator_id": winner.moderator.id,
                "skill_match": winner.scores.skill_match,
                "availability": winner.scores.availability,
                "performance": winner.scores.performance,
            },
        )
        return winner.moderator


def resolution_hours(created_at: datetime, completed_at: datetime) -> float:
    """Elapsed hours between creation and completion (naive = UTC)"""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    return (completed_at - created_at).total_seconds() / 3600


class ModeratorStatsUpdater:
    """Keeps moderator resolution statistics current"""

    def __init__(self, user_repo: UserRepository, cache: RedisCache):
        self.user_repo = user_repo
        self.cache = cache

    @degrade_on_error(default=None, logger=logger, event="moderator_stats_update_failed")
    async def record_completion(
        self,
        candidate_id: str,
        created_at: datetime,
        completed_at: datetime
    ) -> None:
        """
        Fold one completed ticket into the moderator's running average

        Must be called once per transition into Completed; a second call
        for the same ticket counts it twice. Unknown moderators are ignored.

        Args:
            candidate_id: Moderator who held the ticket
            created_at: Ticket creation time
            completed_at: Time the ticket was completed
        """
        moderator = await self.user_repo.get_by_id_async(candidate_id)
        if moderator is None:
            logger.info(f"Skipping stats update, moderator {candidate_id} not found")
            return None

        elapsed = resolution_hours(created_at, completed_at)
        total = moderator.total_tickets_resolved
        current_avg = moderator.average_resolution_time_hours
        new_avg = (current_avg * total + elapsed) / (total + 1)

        await self.user_repo.update_stats_async(
            candidate_id,
            total_tickets_resolved=total + 1,
            average_resolution_time_hours=new_avg,
        )
        logger.info(
            f"Updated stats for moderator {candidate_id}: "
            f"resolved={total + 1}, avg_hours={new_avg:.2f}"
        )

        await self.cache.delete(CacheKeys.moderators_with_skills())
        await self.cache.delete(CacheKeys.moderator_skills(candidate_id))
        return None
