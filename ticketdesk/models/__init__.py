"""
Pydantic models for Ticketdesk
"""

from ticketdesk.models.schemas import (
    # Enums
    UserRole,
    TicketStatus,
    Priority,
    ModeratorRequestStatus,
    CacheState,

    # Database Models
    ModeratorCandidate,
    Ticket,
    TicketComment,
    TicketCreate,
    ModeratorRequest,
    ModeratorRequestCreate,

    # Service Models
    RequestUser,
    TicketAnalysis,
    ScoreBreakdown,
    ModeratorScore,
    AssignmentResult,
    CacheStats,
    TicketCounts,
    ModeratorRequestView,
)

__all__ = [
    # Enums
    "UserRole",
    "TicketStatus",
    "Priority",
    "ModeratorRequestStatus",
    "CacheState",

    # Database Models
    "ModeratorCandidate",
    "Ticket",
    "TicketComment",
    "TicketCreate",
    "ModeratorRequest",
    "ModeratorRequestCreate",

    # Service Models
    "RequestUser",
    "TicketAnalysis",
    "ScoreBreakdown",
    "ModeratorScore",
    "AssignmentResult",
    "CacheStats",
    "TicketCounts",
    "ModeratorRequestView",
]
