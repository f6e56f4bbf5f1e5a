"""Reply drafter — one model call and one Gmail draft per important email."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from chief_of_staff.inbox.prompts import SKIP_DRAFT, SYSTEM_INSTRUCTION, build_draft_prompt
from chief_of_staff.inbox.types import TERMINAL_LABELS, DraftRecord
from chief_of_staff.mcp.types import RawEmail

if TYPE_CHECKING:
    from chief_of_staff.llm.client import LLMClient
    from chief_of_staff.mcp.gmail_client import GmailClient

logger = logging.getLogger(__name__)

#: Emails drafted per run; the rest are skipped, not queued.
MAX_DRAFTS = 20

_TICKET_SENDER_MARKERS = ("jira", "atlassian")
_TICKET_SUBJECT_MARKERS = ("[jira]",)
_DOC_COMMENT_SENDER_MARKERS = ("docs.google.com", "google docs")
_DOC_COMMENT_SUBJECT_MARKERS = ("commented on",)

_ECHOED_HEADER = re.compile(r"^(To|Subject|From):.*$", re.MULTILINE)


def has_terminal_label(email: RawEmail) -> bool:
    """True if the message is already sent by me or already has a draft."""
    return any(label.upper() in TERMINAL_LABELS for label in email.labels)


def is_system_notification(email: RawEmail) -> bool:
    """Cheap sender/subject check for ticket-tracker and doc-comment mail."""
    sender = email.sender.lower()
    subject = email.subject.lower()
    is_ticket = any(m in sender for m in _TICKET_SENDER_MARKERS) or any(
        m in subject for m in _TICKET_SUBJECT_MARKERS
    )
    is_doc_comment = any(m in sender for m in _DOC_COMMENT_SENDER_MARKERS) or any(
        m in subject for m in _DOC_COMMENT_SUBJECT_MARKERS
    )
    return is_ticket or is_doc_comment


def is_skip_sentinel(reply: str) -> bool:
    return reply.strip().upper() == SKIP_DRAFT


def clean_draft_body(reply: str) -> str:
    """Remove To:/Subject:/From: lines the model may have echoed."""
    return _ECHOED_HEADER.sub("", reply).strip()


def reply_subject(subject: str) -> str:
    return subject if subject.lower().startswith("re:") else f"Re: {subject}"


def resolve_reply_to(headers: dict[str, str], email: RawEmail) -> str:
    """Reply-To header, then From header, then the snapshot's sender."""
    return headers.get("reply-to") or headers.get("from") or email.sender


async def create_reply_draft(gmail: GmailClient, email: RawEmail, body: str) -> str:
    """Create a draft threaded under email and return its draft ID.

    Shared with the Watchman, whose link requests are threaded the same way.
    """
    headers = await gmail.get_message_headers(email.id)
    message_id = headers.get("message-id") or email.id
    references = " ".join(filter(None, [headers.get("references"), headers.get("message-id")]))
    return await gmail.create_draft(
        resolve_reply_to(headers, email),
        reply_subject(email.subject),
        body,
        thread_id=email.thread_id or None,
        in_reply_to=message_id,
        references=references or None,
    )


class Drafter:
    """Creates reply drafts for important emails.

    Pre-filters run before any model call, in order: terminal labels
    (SENT/DRAFT), then the system-notification heuristic.  The model itself
    gets a second chance to refuse by answering SKIP_DRAFT.
    """

    def __init__(self, llm: LLMClient, gmail: GmailClient) -> None:
        self._llm = llm
        self._gmail = gmail

    async def draft(self, emails: list[RawEmail]) -> list[DraftRecord]:
        """Draft replies for up to MAX_DRAFTS emails. Never raises."""
        batch = emails[:MAX_DRAFTS]
        if len(emails) > MAX_DRAFTS:
            logger.info("Drafting first %d of %d important email(s)", MAX_DRAFTS, len(emails))

        records: list[DraftRecord] = []
        for email in batch:
            try:
                record = await self._draft_one(email)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to create draft for email %s: %s", email.id, exc)
                continue
            if record is not None:
                records.append(record)
        return records

    async def _draft_one(self, email: RawEmail) -> DraftRecord | None:
        if has_terminal_label(email):
            logger.debug("Skipped (already replied/drafted): %s", email.id)
            return None
        if is_system_notification(email):
            logger.info("  ⊘ Skipped (system notification): %s", email.subject[:50])
            return None

        reply = await self._llm.generate_with_system(SYSTEM_INSTRUCTION, build_draft_prompt(email))
        if is_skip_sentinel(reply):
            logger.info("  ⊘ Skipped (model judged system notification): %s", email.subject[:50])
            return None

        draft_id = await create_reply_draft(self._gmail, email, clean_draft_body(reply))
        logger.info("  ✓ Draft created: %s", email.subject[:50])
        return DraftRecord(email_id=email.id, draft_id=draft_id, subject=email.subject)
