"""
Input validation utilities
"""
import re
from typing import Iterable, List, Optional, Union

_WHITESPACE = re.compile(r"\s+")


def normalize_skills(skills: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """
    Normalize skill tags

    Accepts either a comma-separated string ("React, node.js") or a list.
    Tags are trimmed, lowercased and inner whitespace is collapsed; empty
    tags are dropped and duplicates removed keeping first-seen order.

    Args:
        skills: Raw skills input

    Returns:
        Normalized list of skill tags
    """
    if not skills:
        return []

    if isinstance(skills, str):
        raw = skills.split(",")
    else:
        raw = list(skills)

    normalized: List[str] = []
    seen = set()
    for skill in raw:
        if skill is None:
            continue
        tag = _WHITESPACE.sub(" ", str(skill).strip().lower())
        if tag and tag not in seen:
            seen.add(tag)
            normalized.append(tag)

    return normalized


def validate_email(email: str) -> bool:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def sanitize_input(text: str, max_length: int = 10000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    # Remove null bytes
    text = text.replace('\x00', '')

    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
