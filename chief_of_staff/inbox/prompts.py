"""System instruction and prompt builders for triage, drafting, and the Watchman."""

from datetime import datetime
from html.parser import HTMLParser

from chief_of_staff.mcp.types import CalendarEvent, RawEmail

# Maximum characters of email body sent for drafting — applied after HTML
# stripping, so this represents actual text content rather than raw markup.
BODY_CHAR_LIMIT = 4_000

#: Exact reply the model gives when a message should not get a draft.
SKIP_DRAFT = "SKIP_DRAFT"

#: Body of the reply drafted when a meeting is missing its location / video link.
LINK_REQUEST_BODY = (
    "Looking forward to this. Please send over the Zoom/Google Meet link when "
    "you have a moment so I can lock it in."
)


# ── HTML stripper ───────────────────────────────────────────────────────────────


class _HTMLStripper(HTMLParser):
    """Collects visible text nodes, skipping <style> and <script> content."""

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in ("style", "script"):
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in ("style", "script") and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        text = data.strip()
        if text and not self._skip_depth:
            self._parts.append(text)

    def get_text(self) -> str:
        return " ".join(self._parts)


def strip_html(text: str) -> str:
    """Return plain text from an HTML string.

    If the input doesn't look like HTML, or stripping produces nothing, the
    original string is returned unchanged.
    """
    if "<" not in text:
        return text
    stripper = _HTMLStripper()
    stripper.feed(text)
    stripper.close()
    return stripper.get_text() or text


def email_body_text(email: RawEmail) -> str:
    """Plain body, else HTML body (stripped), else snippet."""
    if email.body:
        return email.body
    if email.html_body:
        return strip_html(email.html_body)
    return email.snippet or ""


def local_now() -> datetime:
    """Timezone-aware local time; the Calendar API rejects naive timestamps."""
    return datetime.now().astimezone()


def is_within_work_hours(now: datetime, start_hour: int, end_hour: int) -> bool:
    return start_hour <= now.hour < end_hour


# ── System instruction ─────────────────────────────────────────────────────────

SYSTEM_INSTRUCTION = """\
Role and objective
You are my chief of staff for email. The goal is not Inbox Zero but more focus \
per hour: you are a defensive layer against noise and a proactive engine for \
logistics. You organise first and ask for approval afterwards.

1. Triage (the gatekeeper)
Archive, or label "Low Priority", anything in the noise floor:
- Marketing and newsletters, unless from a VIP domain.
- System notifications (Jira, Slack, Asana, ...) where I am not tagged or named \
in the first three lines.
- Calendar accept/decline notifications that carry no new text.
Messages from VIP stakeholders, family, or my manager are pinned.

2. Drafting (executive function)
Every important email gets a reply draft waiting for review.
- Simple question: draft a yes/no answer with a line of context.
- Complex message: bullet the sender's points, then a structured reply outline.
- Tone: concise, decisive, warm but professional.
Never draft replies to Jira/Atlassian ticket notifications or Google Docs \
comment notifications; those are handled in the tools themselves.

3. The Watchman (behavioural and logistical monitoring)
- Latency: an important message left unanswered for more than 4 hours during \
work hours gets a nudge: "This has sat for 4 hours. Do you want to reply, \
delegate, or archive?"
- Missing link: if an email confirms a meeting in the next 48 hours and the \
calendar event has no location or video link, request a reply asking the \
organiser for the link.
- Spiral: a thread with more than 3 back-and-forth exchanges and no resolution \
is flagged with a suggestion to move it to a 10-minute call.

When asked for JSON, reply with the JSON array only."""


# ── Prompt builders ────────────────────────────────────────────────────────────


def build_triage_prompt(
    emails: list[RawEmail],
    vip_domains: list[str],
    vip_senders: list[str],
) -> str:
    """One prompt covering every message in the batch plus the VIP allow-list."""
    vip_lines = [f"Domain: {d}" for d in vip_domains] + [f"Sender: {s}" for s in vip_senders]
    vip_text = "\n".join(vip_lines) or "none specified"

    email_blocks = "\n---\n".join(
        f"ID: {e.id}\nFrom: {e.sender}\nSubject: {e.subject}\n"
        f"Snippet: {e.snippet}\nDate: {e.date or 'unknown'}"
        for e in emails
    )

    return (
        "Classify each of the following emails.\n"
        "1. Is it noise (marketing, newsletters, system notifications, calendar "
        "confirmations without new context)? Use \"archive\" or \"label\".\n"
        f"2. Is it from a VIP?\nVIP list:\n{vip_text}\nUse \"vip\".\n"
        "3. Is it important and does it need a reply? Use \"important\".\n\n"
        "Return a JSON array with exactly one object per email:\n"
        '{"id": "<email id>", "action": "archive" | "label" | "important" | "vip", '
        '"labelName": "Low Priority" (only when action is "label"), '
        '"reason": "<short explanation>"}\n\n'
        f"Emails:\n{email_blocks}"
    )


def build_draft_prompt(email: RawEmail) -> str:
    """Prompt for a single reply draft, truncated to BODY_CHAR_LIMIT characters of body."""
    body = email_body_text(email)
    body_preview = body[:BODY_CHAR_LIMIT]
    if len(body) > BODY_CHAR_LIMIT:
        body_preview += "\n[… email truncated …]"

    return (
        "Draft a reply to this email.\n\n"
        "If it is a Jira/Atlassian ticket notification, a Google Docs comment "
        "notification, or any other system notification that should be handled "
        f"in the application itself, reply with ONLY the text {SKIP_DRAFT}.\n\n"
        "Otherwise:\n"
        "- Simple question: a yes/no answer plus context.\n"
        "- Complex email: a bulleted summary of the sender's points and a "
        "structured reply.\n"
        "Tone: concise, decisive, warm but professional.\n\n"
        "Original email:\n"
        f"From: {email.sender}\n"
        f"Subject: {email.subject}\n"
        f"Date: {email.date or 'unknown'}\n\n"
        f"{body_preview}\n\n"
        "Write only the reply body — no To/Subject/From headers."
    )


def build_watchman_prompt(
    emails: list[RawEmail],
    events: list[CalendarEvent],
    work_hours_start: int,
    work_hours_end: int,
    now: datetime,
) -> str:
    """Prompt for latency, missing-link, and spiral detection.

    Work-hours membership is computed here, not left to the model.
    """
    in_work_hours = is_within_work_hours(now, work_hours_start, work_hours_end)

    email_blocks = "\n---\n".join(
        f"ID: {e.id}\nThread ID: {e.thread_id}\nFrom: {e.sender}\n"
        f"Subject: {e.subject}\nDate: {e.date or 'unknown'}\nSnippet: {e.snippet}"
        for e in emails
    ) or "None"
    event_blocks = "\n---\n".join(
        f"Summary: {ev.summary}\nStart: {ev.start}\n"
        f"Location: {ev.location or 'None'}\n"
        f"Video link: {ev.video_link or 'None'}\n"
        f"Conference data: {'Yes' if ev.has_conference else 'No'}\n"
        f"Has location or video link: {'Yes' if ev.has_logistics else 'No'}"
        for ev in events
    ) or "None"

    return (
        "Run the Watchman checks over these important emails.\n\n"
        f"Current time: {now.isoformat()}\n"
        f"Work hours: {work_hours_start}:00-{work_hours_end}:00\n"
        f"Currently within work hours: {'YES' if in_work_hours else 'NO'}\n\n"
        "1. Latency: important emails older than 4 hours, only if currently "
        "within work hours.\n"
        "2. Missing link: emails about a meeting in the calendar below whose "
        "event has no location and no video link.\n"
        "3. Spiral: threads with more than 3 exchanges and no resolution.\n\n"
        f"Important emails:\n{email_blocks}\n\n"
        f"Upcoming calendar events (next 48 hours):\n{event_blocks}\n\n"
        "Return a JSON array (empty if nothing is found) of objects:\n"
        '{"type": "latency" | "missing-link" | "spiral", '
        '"action": "nudge" | "draft-request" | "flag", '
        '"emailId": "<email id or null>", "threadId": "<thread id or null>", '
        '"message": "<what to tell me>"}'
    )
