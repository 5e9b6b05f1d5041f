"""
Exception hierarchy for ticket and user operations

Cache, selection and stats paths never raise; these are for the
operations whose failures the caller must act on.
"""
from typing import Any, Dict, Optional


class TicketDeskError(Exception):
    """Base exception for all ticketdesk errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TicketDeskError):
    """Invalid input (400)."""

    status_code = 400


class PermissionDeniedError(TicketDeskError):
    """Caller's role does not allow the operation (403)."""

    status_code = 403


class TicketNotFoundError(TicketDeskError):
    """Ticket missing or not visible to the caller (404)."""

    status_code = 404

    def __init__(self, ticket_id: str, details: Optional[Dict[str, Any]] = None):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found", details)


class UserNotFoundError(TicketDeskError):
    """User record missing (404)."""

    status_code = 404


class ModeratorRequestNotFoundError(TicketDeskError):
    """Moderator application missing (404)."""

    status_code = 404

    def __init__(self, request_id: str, details: Optional[Dict[str, Any]] = None):
        self.request_id = request_id
        super().__init__(f"Moderator request {request_id} not found", details)
