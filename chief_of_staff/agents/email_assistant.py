"""Email assistant agent — the inbox pipeline plus a printed daily briefing."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack

from rich.console import Console

from chief_of_staff.agents.base import AgentRunError
from chief_of_staff.briefing.generator import print_briefing, render_briefing
from chief_of_staff.config import AssistantConfig, ConfigError
from chief_of_staff.inbox.pipeline import FetchError, InboxPipeline
from chief_of_staff.inbox.types import PipelineResult
from chief_of_staff.llm.client import LLMClient
from chief_of_staff.mcp.gmail_client import MCPError, gmail_client

logger = logging.getLogger(__name__)

NAME = "email-assistant"
DESCRIPTION = (
    "Chief of staff for your inbox: triages email, drafts replies, "
    "and watches for stalled threads and missing meeting links"
)


class EmailAssistantAgent:
    """Runs one inbox pass with a Gmail client that lives only for that run.

    Usage::

        await EmailAssistantAgent().run()
    """

    name = NAME
    description = DESCRIPTION

    def __init__(
        self,
        config: AssistantConfig | None = None,
        console: Console | None = None,
    ) -> None:
        self._config = config
        self._console = console

    async def run(self) -> None:
        """Run the pipeline and print the briefing.

        Raises:
            AgentRunError: on missing configuration, an unreachable mailbox,
                or a failed fetch stage.
        """
        try:
            config = self._config or AssistantConfig.from_env()
            config.require_credentials()
        except ConfigError as exc:
            raise AgentRunError(str(exc)) from exc

        result = await self._run_pipeline(config)
        print_briefing(render_briefing(result), console=self._console)

    async def _run_pipeline(self, config: AssistantConfig) -> PipelineResult:
        llm = LLMClient(api_key=config.anthropic_api_key)
        async with AsyncExitStack() as stack:
            try:
                gmail = await stack.enter_async_context(
                    gmail_client(user_email=config.user_email)
                )
            except (MCPError, ValueError, OSError) as exc:
                raise AgentRunError(f"Could not connect to Google Workspace: {exc}") from exc

            try:
                return await InboxPipeline(gmail, llm, config).run()
            except FetchError as exc:
                logger.error("Email assistant aborted: %s", exc)
                raise AgentRunError(str(exc)) from exc
