"""
Business Logic Services
"""
from .cache import RedisCache, CacheKeys, CacheTTL, get_cache
from .assignment import AssignmentPolicy, ModeratorSelector, ModeratorStatsUpdater
from .ticket_service import TicketService
from .user_service import UserService
from .moderator_request_service import ModeratorRequestService

__all__ = [
    "RedisCache",
    "CacheKeys",
    "CacheTTL",
    "get_cache",
    "AssignmentPolicy",
    "ModeratorSelector",
    "ModeratorStatsUpdater",
    "TicketService",
    "UserService",
    "ModeratorRequestService",
]
