"""Batch triage classifier — one model call per run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chief_of_staff.inbox.parsing import parse_decisions
from chief_of_staff.inbox.prompts import SYSTEM_INSTRUCTION, build_triage_prompt
from chief_of_staff.inbox.types import ClassificationDecision, ParseFailure
from chief_of_staff.llm.client import LLMError
from chief_of_staff.mcp.types import RawEmail

if TYPE_CHECKING:
    from chief_of_staff.llm.client import LLMClient

logger = logging.getLogger(__name__)

#: Messages sent to the model in one triage call.
MAX_CLASSIFY = 50


class Classifier:
    """Sends a batch of message summaries to the model and decodes its decisions.

    The classifier only decides; applying archive/label actions is the
    pipeline's job.

    Usage::

        classifier = Classifier(LLMClient())
        decisions = await classifier.classify(emails, ["acme.com"], [])
    """

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def classify(
        self,
        emails: list[RawEmail],
        vip_domains: list[str],
        vip_senders: list[str],
    ) -> list[ClassificationDecision]:
        """Return at most one decision per known message. Never raises.

        Unparseable output or a failed model call yields ``[]``: every
        message then flows on as not-suppressed, not-VIP.
        """
        if not emails:
            return []

        batch = emails[:MAX_CLASSIFY]
        prompt = build_triage_prompt(batch, vip_domains, vip_senders)
        try:
            reply = await self._llm.generate_with_system(SYSTEM_INSTRUCTION, prompt)
        except LLMError as exc:
            logger.error("Triage model call failed for %d email(s): %s", len(batch), exc)
            return []

        parsed = parse_decisions(reply)
        if isinstance(parsed, ParseFailure):
            logger.error("Could not parse triage decisions: %s", parsed.reason)
            logger.debug("Unparseable triage reply: %r", parsed.raw)
            return []

        return _reconcile(parsed, {e.id for e in batch})


def _reconcile(
    decisions: list[ClassificationDecision],
    known_ids: set[str],
) -> list[ClassificationDecision]:
    """Drop decisions for unknown ids; on duplicates the first decision wins."""
    kept: dict[str, ClassificationDecision] = {}
    for decision in decisions:
        if decision.email_id not in known_ids:
            logger.debug("Ignoring decision for unknown email %s", decision.email_id)
            continue
        if decision.email_id in kept:
            logger.debug(
                "Ignoring duplicate decision %s for email %s",
                decision.action.value,
                decision.email_id,
            )
            continue
        kept[decision.email_id] = decision
    return list(kept.values())
