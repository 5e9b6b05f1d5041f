"""
Ticketdesk: support ticket backend with moderator assignment and Redis caching
"""

__version__ = "1.0.0"
