"""Tests for the reply Drafter — model and Gmail are mocked."""

from unittest.mock import MagicMock

import pytest

from chief_of_staff.inbox.drafter import (
    MAX_DRAFTS,
    Drafter,
    clean_draft_body,
    create_reply_draft,
    is_system_notification,
    reply_subject,
    resolve_reply_to,
)
from chief_of_staff.inbox.types import DraftRecord
from chief_of_staff.mcp.types import RawEmail


def make_email(**kwargs: object) -> RawEmail:
    defaults: dict[str, object] = dict(
        id="msg_1",
        thread_id="thread_1",
        sender="alice@example.com",
        subject="Lunch on Thursday?",
        snippet="Are you free...",
        body="Are you free for lunch on Thursday?",
        labels=["INBOX", "UNREAD"],
    )
    return RawEmail(**{**defaults, **kwargs})  # type: ignore[arg-type]


# ── Helpers ────────────────────────────────────────────────────────────────────


class TestReplySubject:
    @pytest.mark.parametrize(
        ("subject", "expected"),
        [
            ("Lunch?", "Re: Lunch?"),
            ("Re: Lunch?", "Re: Lunch?"),
            ("RE: Lunch?", "RE: Lunch?"),
        ],
    )
    def test_prefix_added_once(self, subject: str, expected: str) -> None:
        assert reply_subject(subject) == expected


class TestCleanDraftBody:
    def test_strips_echoed_headers(self) -> None:
        reply = "To: alice@example.com\nSubject: Re: Lunch\n\nYes, Thursday works.\nFrom: me"
        assert clean_draft_body(reply) == "Yes, Thursday works."

    def test_keeps_inline_mentions(self) -> None:
        assert clean_draft_body("Forwarded to: Bob") == "Forwarded to: Bob"

    def test_lowercase_lines_are_body_text(self) -> None:
        reply = "Sounds good.\nto: be confirmed by Friday"
        assert clean_draft_body(reply) == "Sounds good.\nto: be confirmed by Friday"


class TestIsSystemNotification:
    @pytest.mark.parametrize(
        "email",
        [
            make_email(sender="jira@acme.atlassian.net"),
            make_email(subject="[JIRA] PROJ-12 assigned to you"),
            make_email(sender="comments-noreply@docs.google.com"),
            make_email(subject="Bob commented on Q3 plan"),
        ],
    )
    def test_detected(self, email: RawEmail) -> None:
        assert is_system_notification(email)

    def test_personal_email_is_not(self) -> None:
        assert not is_system_notification(make_email())


class TestResolveReplyTo:
    def test_order(self) -> None:
        email = make_email()
        assert resolve_reply_to({"reply-to": "team@x.com", "from": "a@x.com"}, email) == "team@x.com"
        assert resolve_reply_to({"from": "a@x.com"}, email) == "a@x.com"
        assert resolve_reply_to({}, email) == "alice@example.com"


class TestCreateReplyDraft:
    async def test_threads_under_original(self, gmail: MagicMock) -> None:
        gmail.get_message_headers.return_value = {
            "from": "Alice <alice@example.com>",
            "message-id": "<abc@mail.example.com>",
        }
        draft_id = await create_reply_draft(gmail, make_email(), "Sure.")
        assert draft_id == "draft_1"
        gmail.create_draft.assert_called_once_with(
            "Alice <alice@example.com>",
            "Re: Lunch on Thursday?",
            "Sure.",
            thread_id="thread_1",
            in_reply_to="<abc@mail.example.com>",
            references="<abc@mail.example.com>",
        )

    async def test_falls_back_to_gmail_id(self, gmail: MagicMock) -> None:
        await create_reply_draft(gmail, make_email(thread_id=""), "Sure.")
        kwargs = gmail.create_draft.call_args.kwargs
        assert kwargs["in_reply_to"] == "msg_1"
        assert kwargs["thread_id"] is None


# ── Drafter ────────────────────────────────────────────────────────────────────


class TestDrafter:
    async def test_creates_draft(self, llm: MagicMock, gmail: MagicMock) -> None:
        llm.generate_with_system.return_value = "Yes, Thursday works for me."
        records = await Drafter(llm, gmail).draft([make_email()])
        assert records == [DraftRecord("msg_1", "draft_1", "Lunch on Thursday?")]
        args = gmail.create_draft.call_args.args
        assert args[1] == "Re: Lunch on Thursday?"
        assert args[2] == "Yes, Thursday works for me."

    @pytest.mark.parametrize("label", ["SENT", "DRAFT"])
    async def test_terminal_label_skips_model(
        self, llm: MagicMock, gmail: MagicMock, label: str
    ) -> None:
        records = await Drafter(llm, gmail).draft([make_email(labels=["INBOX", label])])
        assert records == []
        llm.generate_with_system.assert_not_called()
        gmail.create_draft.assert_not_called()

    async def test_system_notification_skips_model(self, llm: MagicMock, gmail: MagicMock) -> None:
        email = make_email(sender="jira@acme.atlassian.net", subject="[JIRA] PROJ-1 updated")
        assert await Drafter(llm, gmail).draft([email]) == []
        llm.generate_with_system.assert_not_called()

    async def test_skip_sentinel_creates_nothing(self, llm: MagicMock, gmail: MagicMock) -> None:
        llm.generate_with_system.return_value = "  skip_draft \n"
        assert await Drafter(llm, gmail).draft([make_email()]) == []
        gmail.create_draft.assert_not_called()

    async def test_echoed_headers_removed(self, llm: MagicMock, gmail: MagicMock) -> None:
        llm.generate_with_system.return_value = "Subject: Re: Lunch\nTo: alice@example.com\nSounds good!"
        await Drafter(llm, gmail).draft([make_email()])
        assert gmail.create_draft.call_args.args[2] == "Sounds good!"

    async def test_capped(self, llm: MagicMock, gmail: MagicMock) -> None:
        llm.generate_with_system.return_value = "Sure."
        emails = [make_email(id=f"m{i}") for i in range(MAX_DRAFTS + 3)]
        records = await Drafter(llm, gmail).draft(emails)
        assert len(records) == MAX_DRAFTS
        assert gmail.create_draft.await_count == MAX_DRAFTS
        assert records[-1].email_id == f"m{MAX_DRAFTS - 1}"

    async def test_failure_continues_batch(self, llm: MagicMock, gmail: MagicMock) -> None:
        llm.generate_with_system.return_value = "Sure."
        gmail.create_draft.side_effect = [RuntimeError("Gmail 500"), "draft_2"]
        records = await Drafter(llm, gmail).draft([make_email(id="m1"), make_email(id="m2")])
        assert records == [DraftRecord("m2", "draft_2", "Lunch on Thursday?")]

    async def test_model_failure_continues_batch(self, llm: MagicMock, gmail: MagicMock) -> None:
        from chief_of_staff.llm.client import LLMError

        llm.generate_with_system.side_effect = [LLMError("down"), "Sure."]
        records = await Drafter(llm, gmail).draft([make_email(id="m1"), make_email(id="m2")])
        assert [r.email_id for r in records] == ["m2"]
