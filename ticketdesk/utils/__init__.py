"""
Utility functions
"""
from ticketdesk.utils.logger import setup_logger, get_logger
from ticketdesk.utils.fallback import degrade_on_error
from ticketdesk.utils.validators import (
    normalize_skills,
    validate_email,
    sanitize_input
)

__all__ = [
    "setup_logger",
    "get_logger",
    "degrade_on_error",
    "normalize_skills",
    "validate_email",
    "sanitize_input",
]
