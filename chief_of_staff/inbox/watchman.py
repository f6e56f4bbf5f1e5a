"""The Watchman — latency, missing meeting link, and spiral detection."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from chief_of_staff.inbox.drafter import create_reply_draft
from chief_of_staff.inbox.parsing import parse_interventions
from chief_of_staff.inbox.prompts import (
    LINK_REQUEST_BODY,
    SYSTEM_INSTRUCTION,
    build_watchman_prompt,
    local_now,
)
from chief_of_staff.inbox.types import Intervention, InterventionAction, ParseFailure
from chief_of_staff.llm.client import LLMError
from chief_of_staff.mcp.types import CalendarEvent, RawEmail

if TYPE_CHECKING:
    from chief_of_staff.llm.client import LLMClient
    from chief_of_staff.mcp.gmail_client import GmailClient

logger = logging.getLogger(__name__)


class Watchman:
    """Asks the model for interventions, then acts on the ones that need it.

    Interventions are handled in the order the model returned them, without
    de-duplication: two draft-requests for one thread create two drafts.

    ``clock`` returns the current local time; tests pass a fixed one.
    """

    def __init__(
        self,
        llm: LLMClient,
        gmail: GmailClient,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._llm = llm
        self._gmail = gmail
        self._clock = clock

    async def watch(
        self,
        emails: list[RawEmail],
        events: list[CalendarEvent],
        work_hours_start: int,
        work_hours_end: int,
    ) -> list[Intervention]:
        """Return the interventions that were handled successfully. Never raises."""
        if not emails:
            return []

        prompt = build_watchman_prompt(
            emails, events, work_hours_start, work_hours_end, self._clock()
        )
        try:
            reply = await self._llm.generate_with_system(SYSTEM_INSTRUCTION, prompt)
        except LLMError as exc:
            logger.error("Watchman model call failed: %s", exc)
            return []

        parsed = parse_interventions(reply)
        if isinstance(parsed, ParseFailure):
            logger.error("Could not parse watchman interventions: %s", parsed.reason)
            logger.debug("Unparseable watchman reply: %r", parsed.raw)
            return []

        handled: list[Intervention] = []
        for intervention in parsed:
            try:
                await self._handle(intervention, emails)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Failed to handle %s intervention (email=%s thread=%s): %s",
                    intervention.kind.value,
                    intervention.email_id,
                    intervention.thread_id,
                    exc,
                )
                continue
            handled.append(intervention)
        return handled

    async def _handle(self, intervention: Intervention, emails: list[RawEmail]) -> None:
        if intervention.action == InterventionAction.NUDGE:
            logger.info("  ⚠ Latency: %s", intervention.message)
        elif intervention.action == InterventionAction.FLAG:
            logger.info("  ⚑ Spiral: %s", intervention.message)
        elif intervention.action == InterventionAction.DRAFT_REQUEST:
            email = resolve_reference(intervention, emails)
            if email is None:
                raise LookupError(
                    f"no candidate email matches id={intervention.email_id!r} "
                    f"thread={intervention.thread_id!r}"
                )
            await create_reply_draft(self._gmail, email, LINK_REQUEST_BODY)
            logger.info("  ✓ Drafted link request: %s", email.subject[:50])


def resolve_reference(intervention: Intervention, emails: list[RawEmail]) -> RawEmail | None:
    """Find the email an intervention points at: by id, or by thread when no id is given."""
    if intervention.email_id:
        return next((e for e in emails if e.id == intervention.email_id), None)
    if intervention.thread_id:
        return next((e for e in emails if e.thread_id == intervention.thread_id), None)
    return None
