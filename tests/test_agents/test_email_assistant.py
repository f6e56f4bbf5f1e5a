"""Tests for EmailAssistantAgent and the agent registry."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console

from chief_of_staff.agents.base import Agent, AgentRunError
from chief_of_staff.agents.email_assistant import EmailAssistantAgent
from chief_of_staff.agents.registry import AGENTS, get_agent_spec
from chief_of_staff.config import AssistantConfig
from chief_of_staff.inbox.pipeline import FetchError
from chief_of_staff.inbox.types import PipelineResult
from chief_of_staff.mcp.gmail_client import MCPError

_MODULE = "chief_of_staff.agents.email_assistant"

CONFIG = AssistantConfig(user_email="me@corp.com", anthropic_api_key="sk-test")


def _fake_gmail_client(events: list[str]):
    @asynccontextmanager
    async def factory(**kwargs: object):
        events.append("open")
        try:
            yield MagicMock()
        finally:
            events.append("close")

    return factory


class TestRegistry:
    def test_email_assistant_registered(self) -> None:
        spec = get_agent_spec("email-assistant")
        assert spec is not None
        assert spec is AGENTS["email-assistant"]
        assert spec.description

    def test_unknown_name(self) -> None:
        assert get_agent_spec("nope") is None

    def test_factory_builds_an_agent(self) -> None:
        agent = AGENTS["email-assistant"].factory()
        assert isinstance(agent, Agent)
        assert agent.name == "email-assistant"


class TestEmailAssistantRun:
    async def test_prints_briefing(self) -> None:
        console = Console(record=True, width=120)
        events: list[str] = []
        pipeline = MagicMock()
        pipeline.run = AsyncMock(return_value=PipelineResult())

        with patch(f"{_MODULE}.gmail_client", _fake_gmail_client(events)), patch(
            f"{_MODULE}.InboxPipeline", return_value=pipeline
        ), patch(f"{_MODULE}.LLMClient"):
            await EmailAssistantAgent(CONFIG, console=console).run()

        assert events == ["open", "close"]
        output = console.export_text()
        assert "Urgent Actions (Pinned):" in output
        assert "0 pinned" in output

    async def test_missing_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("USER_GOOGLE_EMAIL", raising=False)
        with patch(f"{_MODULE}.gmail_client") as gmail_client:
            with pytest.raises(AgentRunError, match="ANTHROPIC_API_KEY, USER_GOOGLE_EMAIL"):
                await EmailAssistantAgent().run()
        gmail_client.assert_not_called()

    async def test_fetch_failure_closes_session_then_raises(self) -> None:
        events: list[str] = []
        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=FetchError("Could not list recent emails"))

        with patch(f"{_MODULE}.gmail_client", _fake_gmail_client(events)), patch(
            f"{_MODULE}.InboxPipeline", return_value=pipeline
        ), patch(f"{_MODULE}.LLMClient"):
            with pytest.raises(AgentRunError, match="Could not list recent emails"):
                await EmailAssistantAgent(CONFIG, console=Console(record=True)).run()

        assert events == ["open", "close"]

    async def test_error_after_connecting_is_not_a_connection_failure(self) -> None:
        events: list[str] = []
        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=MCPError("Tool 'get_events' returned error"))

        with patch(f"{_MODULE}.gmail_client", _fake_gmail_client(events)), patch(
            f"{_MODULE}.InboxPipeline", return_value=pipeline
        ), patch(f"{_MODULE}.LLMClient"):
            with pytest.raises(MCPError, match="get_events"):
                await EmailAssistantAgent(CONFIG, console=Console(record=True)).run()

        assert events == ["open", "close"]

    async def test_connection_failure(self) -> None:
        @asynccontextmanager
        async def failing(**kwargs: object):
            raise MCPError("Failed to connect after 5 attempts")
            yield  # pragma: no cover

        with patch(f"{_MODULE}.gmail_client", failing), patch(f"{_MODULE}.LLMClient"):
            with pytest.raises(AgentRunError, match="Could not connect"):
                await EmailAssistantAgent(CONFIG, console=Console(record=True)).run()
