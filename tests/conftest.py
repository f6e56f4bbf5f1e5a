"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def gmail() -> MagicMock:
    """GmailClient stand-in: every mailbox call is an AsyncMock that succeeds."""
    g = MagicMock()
    g.search_message_ids = AsyncMock(return_value=[])
    g.get_email = AsyncMock()
    g.get_message_headers = AsyncMock(return_value={})
    g.archive = AsyncMock()
    g.apply_label = AsyncMock()
    g.create_draft = AsyncMock(return_value="draft_1")
    g.get_calendar_events = AsyncMock(return_value=[])
    return g


@pytest.fixture
def llm() -> MagicMock:
    """LLMClient stand-in; set generate_with_system.return_value / side_effect per test."""
    m = MagicMock()
    m.generate_with_system = AsyncMock(return_value="[]")
    return m
