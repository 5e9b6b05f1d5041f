"""
Tests for validators and the degrade-on-error decorator
"""
import logging

import pytest

from ticketdesk.exceptions import TicketNotFoundError, ValidationError
from ticketdesk.utils.fallback import degrade_on_error
from ticketdesk.utils.validators import normalize_skills, sanitize_input, validate_email


class TestNormalizeSkills:

    def test_comma_string(self):
        assert normalize_skills("React,  Node.js , ,react") == ["react", "node.js"]

    def test_list_collapses_whitespace(self):
        assert normalize_skills(["Machine   Learning", None, "SQL"]) == ["machine learning", "sql"]

    @pytest.mark.parametrize("value", [None, "", []])
    def test_empty(self, value):
        assert normalize_skills(value) == []


def test_sanitize_input():
    assert sanitize_input("  hi\x00 there  ") == "hi there"
    assert sanitize_input("abcdef", max_length=3) == "abc"


def test_validate_email():
    assert validate_email("ops@example.com")
    assert not validate_email("not-an-email")


def test_exception_status_codes():
    error = TicketNotFoundError("t1")
    assert error.status_code == 404
    assert error.message == "Ticket t1 not found"
    assert ValidationError("bad").status_code == 400


class TestDegradeOnError:

    @pytest.mark.asyncio
    async def test_returns_result(self):
        @degrade_on_error(default=[])
        async def ok():
            return [1]

        assert await ok() == [1]

    @pytest.mark.asyncio
    async def test_returns_default_and_logs(self, caplog):
        @degrade_on_error(default="fallback", event="lookup_failed")
        async def broken():
            raise RuntimeError("store offline")

        with caplog.at_level(logging.WARNING):
            assert await broken() == "fallback"

        assert "lookup_failed: store offline" in caplog.text

    @pytest.mark.asyncio
    async def test_preserves_metadata(self):
        @degrade_on_error()
        async def named():
            """doc"""

        assert named.__name__ == "named"
        assert named.__doc__ == "doc"
