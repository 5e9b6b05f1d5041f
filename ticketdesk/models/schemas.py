"""
Pydantic models for Ticketdesk

Schemas match the Supabase `users` and `tickets` tables plus the value
objects passed between the assignment, cache and ticket services.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, List

from pydantic import BaseModel, Field, field_validator, ConfigDict

from ticketdesk.utils.validators import normalize_skills


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class UserRole(str, Enum):
    """Account roles"""
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @property
    def is_staff(self) -> bool:
        return self in (UserRole.MODERATOR, UserRole.ADMIN)


class TicketStatus(str, Enum):
    """Valid ticket statuses"""
    TODO = "To-Do"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class Priority(str, Enum):
    """Valid ticket priorities"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ModeratorRequestStatus(str, Enum):
    """Review state of a moderator application"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class CacheState(str, Enum):
    """Lifecycle of the cache client connection"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


# ============================================================================
# Database Models (matching Supabase tables)
# ============================================================================

class ModeratorCandidate(BaseModel):
    """
    User record as seen by moderator assignment.

    Attributes:
        id: User identifier
        username: Display name
        email: Contact address
        role: moderator or admin (plain users are never candidates)
        skills: Normalized skill tags (lowercase, deduplicated)
        total_tickets_resolved: Tickets completed to date
        average_resolution_time_hours: Running mean, seeded at 24h
        last_assigned_at: Last time a ticket was assigned, None until first
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, description="User ID")
    username: Optional[str] = Field(None, description="Username")
    email: Optional[str] = Field(None, description="Email address")
    role: UserRole = Field(UserRole.USER, description="Account role")
    skills: List[str] = Field(default_factory=list, description="Skill tags")
    total_tickets_resolved: int = Field(0, ge=0, description="Tickets resolved to date")
    average_resolution_time_hours: float = Field(
        24.0, ge=0, description="Running average resolution time (hours)"
    )
    last_assigned_at: Optional[datetime] = Field(None, description="Last assignment timestamp")
    created_at: Optional[datetime] = Field(None, description="Account creation timestamp")

    @field_validator('skills', mode='before')
    @classmethod
    def validate_skills(cls, v):
        """Normalize tags; accepts list, comma string or null"""
        return normalize_skills(v)

    @field_validator('total_tickets_resolved', mode='before')
    @classmethod
    def default_resolved(cls, v):
        return 0 if v is None else v

    @field_validator('average_resolution_time_hours', mode='before')
    @classmethod
    def default_average(cls, v):
        # Unset or zero averages read as the 24h seed value
        return 24.0 if not v else v


class TicketComment(BaseModel):
    """Comment on a ticket thread"""
    author_id: str
    text: str = Field(..., min_length=1)
    role: UserRole
    created_at: datetime = Field(default_factory=utcnow)


class Ticket(BaseModel):
    """
    Ticket model matching the `tickets` table.

    `completed_at` is stamped on the transition into Completed and is the
    completion instant used for moderator statistics.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, description="Ticket ID")
    title: str = Field(..., min_length=1, description="Ticket title")
    description: str = Field(..., min_length=1, description="Problem description")
    status: TicketStatus = Field(TicketStatus.TODO, description="Workflow status")
    created_by: str = Field(..., description="Creator user ID")
    assigned_to: Optional[str] = Field(None, description="Assigned moderator ID")
    priority: Optional[Priority] = Field(None, description="Priority from classification")
    deadline: Optional[datetime] = None
    helpful_notes: Optional[str] = None
    related_skills: List[str] = Field(default_factory=list)
    comments: List[TicketComment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator('related_skills', 'comments', mode='before')
    @classmethod
    def default_lists(cls, v):
        return [] if v is None else v


class TicketCreate(BaseModel):
    """Schema for creating a ticket (without generated fields)"""
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1, max_length=10000)
    created_by: str = Field(..., min_length=1)
    status: TicketStatus = TicketStatus.TODO


class ModeratorRequest(BaseModel):
    """
    Application to become a moderator, matching the `moderator_requests` table.

    Skills are the applicant's claimed tags; they are merged into the user
    record on acceptance. `rejected_at` starts the reapplication cooldown.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, description="Request ID")
    applicant_id: str = Field(..., min_length=1, description="Applicant user ID")
    username: str = Field(..., min_length=1, description="Applicant display name")
    email: str = Field(..., min_length=1, description="Applicant contact address")
    skills: List[str] = Field(default_factory=list, description="Claimed skill tags")
    status: ModeratorRequestStatus = Field(ModeratorRequestStatus.PENDING, description="Review state")
    reviewed_by: Optional[str] = Field(None, description="Staff member who decided")
    rejected_at: Optional[datetime] = Field(None, description="Rejection timestamp")
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator('skills', mode='before')
    @classmethod
    def validate_skills(cls, v):
        return normalize_skills(v)


class ModeratorRequestCreate(BaseModel):
    """Schema for filing a moderator application"""
    applicant_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=1)
    skills: List[str] = Field(default_factory=list)
    status: ModeratorRequestStatus = ModeratorRequestStatus.PENDING


# ============================================================================
# Service Models
# ============================================================================

class RequestUser(BaseModel):
    """Authenticated caller, as handed over by the auth layer"""
    id: str
    role: UserRole = UserRole.USER


class TicketAnalysis(BaseModel):
    """Output of the external ticket classifier"""
    priority: Optional[str] = None
    helpful_notes: Optional[str] = None
    related_skills: List[str] = Field(default_factory=list)

    @field_validator('related_skills', mode='before')
    @classmethod
    def validate_related_skills(cls, v):
        return [] if v is None else v


class ScoreBreakdown(BaseModel):
    """Component scores for one candidate, each in [0, 1]"""
    skill_match: float
    availability: float
    performance: float
    final: float


class ModeratorScore(BaseModel):
    """Scored candidate as produced by the moderator selector"""
    moderator: ModeratorCandidate
    scores: ScoreBreakdown
    active_tickets_count: int = 0


class AssignmentResult(BaseModel):
    """Outcome of processing a new ticket"""
    ticket_id: str
    assigned_to: Optional[str] = None
    used_admin_fallback: bool = False
    priority: Optional[Priority] = None
    related_skills: List[str] = Field(default_factory=list)


class CacheStats(BaseModel):
    """In-process cache counters"""
    state: CacheState
    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total else 0.0


TicketCounts = Dict[str, int]


class ModeratorRequestView(BaseModel):
    """Applicant's latest request plus hours left before reapplying"""
    request: Optional[ModeratorRequest] = None
    cooldown_hours: int = 0
