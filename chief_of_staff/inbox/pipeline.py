"""Inbox pipeline — fetch → classify+apply → partition → draft → watch.

Stages run strictly in sequence on a single task: triage actions are all
applied before partitioning, every draft exists before the Watchman runs.
Only the fetch stage can abort a run; the later stages degrade to empty
results on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from chief_of_staff.inbox.classifier import Classifier
from chief_of_staff.inbox.drafter import Drafter
from chief_of_staff.inbox.prompts import local_now
from chief_of_staff.inbox.types import (
    DEFAULT_NOISE_LABEL,
    SUPPRESSING_ACTIONS,
    VIP_LABEL,
    ClassificationDecision,
    Partition,
    PipelineResult,
    TriageAction,
)
from chief_of_staff.inbox.watchman import Watchman
from chief_of_staff.mcp.types import CalendarEvent, RawEmail

if TYPE_CHECKING:
    from chief_of_staff.config import AssistantConfig
    from chief_of_staff.llm.client import LLMClient
    from chief_of_staff.mcp.gmail_client import GmailClient

logger = logging.getLogger(__name__)

#: Message IDs listed by the search, and how many of those are fetched in full.
MAX_LISTED = 100
MAX_FETCHED = 50

#: How far ahead the Watchman looks for meetings.
CALENDAR_HORIZON = timedelta(hours=48)


class FetchError(Exception):
    """Raised when the recent-message window cannot be listed; aborts the run."""


# ── Partitioning ───────────────────────────────────────────────────────────────


def partition_emails(
    emails: list[RawEmail],
    decisions: list[ClassificationDecision],
) -> Partition:
    """Split a run's messages by classifier decision.

    Messages without a decision are important candidates.  With duplicate
    decisions for one id the first one counts, matching the classifier.
    """
    by_id: dict[str, ClassificationDecision] = {}
    for decision in decisions:
        by_id.setdefault(decision.email_id, decision)

    suppressed: list[RawEmail] = []
    important: list[RawEmail] = []
    vip: list[RawEmail] = []
    for email in emails:
        decision = by_id.get(email.id)
        action = decision.action if decision else None
        if action in SUPPRESSING_ACTIONS:
            suppressed.append(email)
            continue
        important.append(email)
        if action == TriageAction.VIP:
            vip.append(email)
    return Partition(suppressed=suppressed, important_candidates=important, vip=vip)


# ── Triage side effects ────────────────────────────────────────────────────────


async def apply_decisions(
    gmail: GmailClient,
    emails: list[RawEmail],
    decisions: list[ClassificationDecision],
) -> None:
    """Archive / label / pin each message. A failure only skips that message."""
    by_id = {e.id: e for e in emails}
    logger.info("Processing %d triage decision(s)...", len(decisions))
    for decision in decisions:
        email = by_id.get(decision.email_id)
        if email is None:
            continue
        subject = email.subject[:50]
        try:
            if decision.action == TriageAction.ARCHIVE:
                await gmail.archive(email.id)
                logger.info("  ✓ Archived: %s", subject)
            elif decision.action == TriageAction.LABEL:
                label = decision.label_name or DEFAULT_NOISE_LABEL
                await gmail.apply_label(email.id, label)
                logger.info("  ✓ Labeled %r: %s", label, subject)
            elif decision.action == TriageAction.VIP:
                await gmail.apply_label(email.id, VIP_LABEL)
                logger.info("  ✓ Marked as VIP: %s", subject)
            else:
                logger.info("  → Important: %s", subject)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to apply triage action %s to email %s: %s",
                decision.action.value,
                email.id,
                exc,
            )


# ── Pipeline ───────────────────────────────────────────────────────────────────


class InboxPipeline:
    """Runs one inbox pass against a live GmailClient.

    All state is per-instance and per-run; construct a new pipeline (and a new
    client) for each run.

    Usage::

        async with gmail_client() as gmail:
            result = await InboxPipeline(gmail, LLMClient(), config).run()
    """

    def __init__(
        self,
        gmail: GmailClient,
        llm: LLMClient,
        config: AssistantConfig,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._gmail = gmail
        self._config = config
        self._clock = clock
        self._classifier = Classifier(llm)
        self._drafter = Drafter(llm, gmail)
        self._watchman = Watchman(llm, gmail, clock=clock)

    async def run(self) -> PipelineResult:
        """Run every stage and return the collected results.

        Raises:
            FetchError: if the message window cannot be listed.
        """
        logger.info("=== Fetch ===")
        emails = await self.fetch()
        if not emails:
            logger.info("No recent emails to process")
            return PipelineResult()

        logger.info("=== Triage ===")
        decisions = await self._classifier.classify(
            emails, self._config.vip_domains, self._config.vip_senders
        )
        await apply_decisions(self._gmail, emails, decisions)
        partition = partition_emails(emails, decisions)
        logger.info(
            "Partition: %d suppressed, %d important, %d VIP",
            len(partition.suppressed),
            len(partition.important_candidates),
            len(partition.vip),
        )

        logger.info("=== Drafter ===")
        drafts = await self._drafter.draft(partition.important_candidates)

        logger.info("=== Watchman ===")
        events = await self.fetch_events()
        interventions = await self._watchman.watch(
            partition.watch_candidates,
            events,
            self._config.work_hours_start,
            self._config.work_hours_end,
        )

        return PipelineResult(
            messages=emails,
            decisions=decisions,
            vip=partition.vip,
            drafts=drafts,
            interventions=interventions,
        )

    async def fetch(self) -> list[RawEmail]:
        """Return up to MAX_FETCHED messages from the lookback window.

        A message whose content cannot be fetched is logged and left out.
        """
        since = self._clock() - timedelta(hours=self._config.lookback_hours)
        query = f"after:{int(since.timestamp())}"
        try:
            ids = await self._gmail.search_message_ids(query, max_results=MAX_LISTED)
        except Exception as exc:
            raise FetchError(f"Could not list recent emails ({query}): {exc}") from exc

        logger.info("Found %d recent email(s)", len(ids))
        emails: list[RawEmail] = []
        for email_id in ids[:MAX_FETCHED]:
            try:
                emails.append(await self._gmail.get_email(email_id))
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to fetch email %s: %s", email_id, exc)
        return emails

    async def fetch_events(self) -> list[CalendarEvent]:
        """Calendar events in the next 48 hours; [] if the calendar is unavailable."""
        now = self._clock()
        try:
            return await self._gmail.get_calendar_events(
                now + CALENDAR_HORIZON, time_min=now
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch calendar events: %s", exc)
            return []
