"""
Repositories package for database operations

Provides repository classes for operations on:
- users table (UserRepository)
- tickets table (TicketRepository)
- moderator_requests table (ModeratorRequestRepository)
"""
from ticketdesk.repositories.user_repository import UserRepository
from ticketdesk.repositories.ticket_repository import TicketRepository
from ticketdesk.repositories.moderator_request_repository import ModeratorRequestRepository

__all__ = [
    "UserRepository",
    "TicketRepository",
    "ModeratorRequestRepository",
]
