"""Google Workspace MCP client — wraps workspace-mcp Gmail and Calendar tools behind a typed async API."""

import asyncio
import json
import logging
import os
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.types import TextContent

from chief_of_staff.mcp.types import CalendarEvent, RawEmail

logger = logging.getLogger(__name__)

# Gmail system label IDs (not user-created; used directly without cache lookup)
_INBOX = "INBOX"

# JSON-decoded value from an MCP tool response
_JsonValue = dict[str, Any] | list[Any] | str | None


class MCPError(Exception):
    """Raised when a workspace-mcp tool call returns an error."""


class GmailClient:
    """Thin async wrapper around the workspace-mcp Gmail and Calendar tools.

    Holds a single MCP session for the lifetime of one agent run.  Use the
    `gmail_client()` context manager to construct and tear down correctly.
    """

    def __init__(self, session: ClientSession, user_email: str) -> None:
        self._session = session
        self._user_email = user_email
        self._label_cache: dict[str, str] = {}  # label name → label ID

    # ── Messages ───────────────────────────────────────────────────────────────

    async def search_message_ids(self, query: str, max_results: int = 100) -> list[str]:
        """Return the IDs of messages matching a Gmail search query — no content fetch."""
        raw = await self._call(
            "search_gmail_messages",
            {"query": query, "page_size": max_results,
             "user_google_email": self._user_email},
        )
        return self._parse_search_ids(raw)

    async def get_email(self, email_id: str) -> RawEmail:
        """Return a single email with full body."""
        raw = await self._call(
            "get_gmail_message_content",
            {"message_id": email_id, "user_google_email": self._user_email},
        )
        if isinstance(raw, str):
            emails = self._parse_batch_emails(raw)
            if emails:
                return emails[0]
            raise MCPError(f"Could not parse message {email_id} from response")
        if isinstance(raw, dict):
            return self._parse_email_dict(raw)
        raise MCPError(f"Unexpected response type for message {email_id}: {type(raw)}")

    async def get_message_headers(self, email_id: str) -> dict[str, str]:
        """Return the message's headers with lower-cased names (``from``, ``message-id`` …)."""
        raw = await self._call(
            "get_gmail_message_content",
            {"message_id": email_id, "user_google_email": self._user_email},
        )
        if isinstance(raw, dict):
            return self._parse_headers_dict(raw)
        if isinstance(raw, str):
            return self._parse_headers_text(raw)
        raise MCPError(f"Unexpected response type for message {email_id}: {type(raw)}")

    async def archive(self, email_id: str) -> None:
        """Archive an email by removing it from the inbox."""
        await self._call(
            "modify_gmail_message_labels",
            {"message_id": email_id, "remove_label_ids": [_INBOX],
             "user_google_email": self._user_email},
        )
        logger.debug("Archived message %s", email_id)

    async def create_draft(
        self,
        to: str,
        subject: str,
        body: str,
        *,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
        references: str | None = None,
    ) -> str:
        """Create a draft (a threaded reply when thread_id is given) and return its ID.

        Returns an empty string if the server confirmed the draft without an ID.
        """
        arguments: dict[str, Any] = {
            "to": to,
            "subject": subject,
            "body": body,
            "user_google_email": self._user_email,
        }
        if thread_id:
            arguments["thread_id"] = thread_id
        if in_reply_to:
            arguments["in_reply_to"] = in_reply_to
            arguments["references"] = references or in_reply_to

        raw = await self._call("draft_gmail_message", arguments)
        draft_id = self._parse_draft_id(raw)
        if not draft_id:
            logger.warning("Draft for %r created but no draft ID in response: %r", subject, raw)
        logger.debug("Created draft %s (thread=%s)", draft_id, thread_id)
        return draft_id

    # ── Labels ─────────────────────────────────────────────────────────────────

    async def apply_label(self, email_id: str, label_name: str) -> None:
        """Add a label to an email, creating the label first if needed."""
        label_id = await self.get_or_create_label(label_name)
        await self._call(
            "modify_gmail_message_labels",
            {"message_id": email_id, "add_label_ids": [label_id],
             "user_google_email": self._user_email},
        )
        logger.debug("Applied label %r (id=%s) to message %s", label_name, label_id, email_id)

    async def get_or_create_label(self, label_name: str) -> str:
        """Return the label ID, creating the label in Gmail if it doesn't exist."""
        if label_name not in self._label_cache:
            await self._refresh_label_cache()
        if label_name not in self._label_cache:
            return await self.create_label(label_name)
        return self._label_cache[label_name]

    async def create_label(self, label_name: str) -> str:
        """Create a Gmail label and return its ID.

        If the label already exists (found in cache), returns the cached ID
        without making an MCP call.
        """
        cached = self._label_cache.get(label_name)
        if cached:
            return cached

        await self._call("manage_gmail_label", {"name": label_name, "action": "create",
                                                "user_google_email": self._user_email})
        await self._refresh_label_cache()

        label_id = self._label_cache.get(label_name)
        if label_id is None:
            raise MCPError(
                f"Label {label_name!r} was created but is missing from Gmail label list"
            )
        logger.info("Created Gmail label: %s (id=%s)", label_name, label_id)
        return label_id

    # ── Calendar ───────────────────────────────────────────────────────────────

    async def get_calendar_events(
        self,
        time_max: datetime,
        *,
        time_min: datetime | None = None,
        max_results: int = 25,
    ) -> list[CalendarEvent]:
        """Return primary-calendar events starting between time_min (default: now) and time_max."""
        start = time_min or datetime.now(timezone.utc)
        raw = await self._call(
            "get_events",
            {
                "calendar_id": "primary",
                "time_min": start.isoformat(),
                "time_max": time_max.isoformat(),
                "max_results": max_results,
                "detailed": True,
                "user_google_email": self._user_email,
            },
        )
        return self._parse_events(raw)

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _refresh_label_cache(self) -> None:
        """Rebuild the name → ID cache from the live Gmail label list."""
        raw = await self._call(
            "list_gmail_labels", {"user_google_email": self._user_email}
        )
        if isinstance(raw, list):
            # Legacy JSON list response
            self._label_cache = {
                str(lbl["name"]): str(lbl["id"])
                for lbl in raw
                if isinstance(lbl, dict) and "name" in lbl and "id" in lbl
            }
        elif isinstance(raw, str):
            # Current workspace-mcp returns formatted text:
            #   • LabelName (ID: label_id)
            self._label_cache = {}
            for match in re.finditer(r"•\s+(.+?)\s+\(ID:\s+(.+?)\)", raw):
                self._label_cache[match.group(1)] = match.group(2)
        else:
            logger.warning("Unexpected response from list_gmail_labels: %r", raw)
            return
        logger.debug("Label cache refreshed: %d labels", len(self._label_cache))

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> _JsonValue:
        """Call a workspace-mcp tool and return the parsed JSON result.

        Raises MCPError if the tool returns an error.  Plain-string responses
        (e.g. "Draft created!") are returned as-is.
        """
        logger.debug("MCP → %s %s", tool_name, arguments)
        result = await self._session.call_tool(tool_name, arguments)

        if result.isError:
            raise MCPError(f"Tool {tool_name!r} returned error: {result.content}")

        if not result.content:
            return None

        text: str | None = None
        for item in result.content:
            if isinstance(item, TextContent):
                text = item.text
                break

        if text is None:
            return None

        try:
            parsed: _JsonValue = json.loads(text)
            return parsed
        except json.JSONDecodeError:
            return text

    @staticmethod
    def _parse_search_ids(raw: _JsonValue) -> list[str]:
        """Extract message IDs from a search response (text or JSON list)."""
        if isinstance(raw, list):
            return [
                str(m.get("message_id", ""))
                for m in raw
                if isinstance(m, dict) and m.get("message_id")
            ]
        if isinstance(raw, str):
            return re.findall(r"Message ID:\s*(\S+)", raw)
        return []

    @staticmethod
    def _parse_batch_emails(raw: _JsonValue) -> list[RawEmail]:
        """Parse one or more emails from a batch/single content response.

        workspace-mcp returns text blocks like::

            Message ID: abc123
            Thread ID: thr456
            Subject: Hello
            From: alice@example.com
            Date: Mon, 1 Jan 2026 12:00:00 +0000
            To: <bob@example.com>
            Labels: INBOX, UNREAD

            Body text follows after a blank line...

        ``Thread ID`` and ``Labels`` are optional; older servers omit them.
        """
        if isinstance(raw, list):
            return [
                GmailClient._parse_email_dict(m)
                for m in raw
                if isinstance(m, dict)
            ]
        if not isinstance(raw, str):
            return []

        emails: list[RawEmail] = []
        blocks = re.split(r"(?=^Message ID:)", raw, flags=re.MULTILINE)
        for block in blocks:
            block = block.strip()
            if not block.startswith("Message ID:"):
                continue

            headers = GmailClient._parse_headers_text(block)
            body = ""
            header_end = re.search(r"\n\s*\n", block)
            if header_end:
                body = block[header_end.end():].strip()

            to_raw = headers.get("to", "")
            recipient = re.sub(r"^<|>$", "", to_raw) if to_raw else None
            labels = [lbl.strip() for lbl in headers.get("labels", "").split(",") if lbl.strip()]
            is_html = bool(re.match(r"\s*<(!doctype|html|div|table|body)", body, re.IGNORECASE))

            emails.append(RawEmail(
                id=headers.get("message id", ""),
                thread_id=headers.get("thread id", ""),
                sender=headers.get("from", ""),
                recipient=recipient,
                subject=headers.get("subject") or "(no subject)",
                snippet=body[:200] if body else "",
                body=None if is_html else (body or None),
                html_body=body if is_html else None,
                labels=labels,
                date=headers.get("date") or None,
            ))
        return emails

    @staticmethod
    def _parse_email_dict(data: dict[str, Any]) -> RawEmail:
        """Map a raw MCP message dict to a RawEmail dataclass (legacy JSON)."""
        body_raw = data.get("body", "")
        html_raw = data.get("html_body", data.get("body_html", ""))
        recipient_raw = data.get("to", "")
        date_raw = data.get("date", "")

        return RawEmail(
            id=str(data.get("message_id", data.get("id", ""))),
            thread_id=str(data.get("thread_id", "")),
            sender=str(data.get("from", "")),
            recipient=str(recipient_raw) if recipient_raw else None,
            subject=str(data.get("subject") or "(no subject)"),
            snippet=str(data.get("snippet", "")),
            body=str(body_raw) if body_raw else None,
            html_body=str(html_raw) if html_raw else None,
            labels=list(data.get("labels", data.get("label_ids", []))),
            date=str(date_raw) if date_raw else None,
        )

    @staticmethod
    def _parse_headers_text(text: str) -> dict[str, str]:
        """Parse the ``Name: value`` header block that precedes the first blank line."""
        headers: dict[str, str] = {}
        for line in text.strip().splitlines():
            if not line.strip():
                break
            name, sep, value = line.partition(":")
            if sep and name.strip():
                headers.setdefault(name.strip().lower(), value.strip())
        return headers

    @staticmethod
    def _parse_headers_dict(data: dict[str, Any]) -> dict[str, str]:
        """Normalise headers from a JSON message, whether nested or flattened."""
        headers: dict[str, str] = {}
        nested = data.get("headers")
        if isinstance(nested, dict):
            headers.update({str(k).lower(): str(v) for k, v in nested.items()})
        elif isinstance(nested, list):
            # Gmail API payload shape: [{"name": "From", "value": "..."}]
            for item in nested:
                if isinstance(item, dict) and "name" in item:
                    headers.setdefault(str(item["name"]).lower(), str(item.get("value", "")))
        for key in ("from", "to", "subject", "date", "reply-to", "message-id", "references"):
            if data.get(key) and key not in headers:
                headers[key] = str(data[key])
        return headers

    @staticmethod
    def _parse_draft_id(raw: _JsonValue) -> str:
        if isinstance(raw, dict):
            return str(raw.get("draft_id") or raw.get("id") or "")
        if isinstance(raw, str):
            match = re.search(r"Draft ID:\s*(\S+)", raw)
            return match.group(1) if match else ""
        return ""

    @staticmethod
    def _parse_events(raw: _JsonValue) -> list[CalendarEvent]:
        """Parse events from a JSON list (Calendar API shape) or workspace-mcp text."""
        if isinstance(raw, dict):
            raw = raw.get("items", [])
        if isinstance(raw, list):
            return [
                GmailClient._parse_event_dict(item)
                for item in raw
                if isinstance(item, dict)
            ]
        if not isinstance(raw, str):
            return []

        # Text format, one event per block:
        #   - "Strategy call" (Starts: 2026-03-03T10:00:00Z, Ends: ...) ID: evt1 | Link: ...
        #     Location: Room 4
        events: list[CalendarEvent] = []
        blocks = re.split(r'(?=^\s*-\s+")', raw, flags=re.MULTILINE)
        for block in blocks:
            head = re.match(r'\s*-\s+"(?P<summary>.*?)"\s+\(Starts:\s*(?P<start>[^,)]+)', block)
            if not head:
                continue
            event_id = re.search(r"\bID:\s*(\S+)", block)
            location = re.search(r"^\s*Location:\s*(.+)$", block, re.MULTILINE)
            video = re.search(r"https://(?:meet\.google\.com|[\w.-]*zoom\.us|teams\.microsoft\.com)\S*", block)
            location_text = location.group(1).strip() if location else None
            if location_text and location_text.lower() in {"none", "no location"}:
                location_text = None
            events.append(CalendarEvent(
                id=event_id.group(1) if event_id else "",
                summary=head.group("summary") or "(No title)",
                start=head.group("start").strip(),
                location=location_text,
                video_link=video.group(0) if video else None,
            ))
        return events

    @staticmethod
    def _parse_event_dict(data: dict[str, Any]) -> CalendarEvent:
        start = data.get("start") or {}
        if isinstance(start, dict):
            start_text = str(start.get("dateTime") or start.get("date") or "")
        else:
            start_text = str(start)
        conference = data.get("conferenceData")
        video_link = data.get("hangoutLink")
        if not video_link and isinstance(conference, dict):
            for entry in conference.get("entryPoints", []):
                if isinstance(entry, dict) and entry.get("entryPointType") == "video":
                    video_link = entry.get("uri")
                    break
        return CalendarEvent(
            id=str(data.get("id", "")),
            summary=str(data.get("summary") or "(No title)"),
            start=start_text,
            location=str(data["location"]) if data.get("location") else None,
            video_link=str(video_link) if video_link else None,
            has_conference=bool(conference),
        )


_MCP_CONNECT_RETRIES = 5
_MCP_RETRY_DELAY_SECONDS = 3


@asynccontextmanager
async def gmail_client(
    *,
    user_email: str | None = None,
    server_command: str | None = None,
) -> AsyncIterator[GmailClient]:
    """Async context manager that yields a connected, ready-to-use GmailClient.

    Spawns `workspace-mcp` (Gmail + Calendar tools) as a subprocess via the
    MCP stdio transport, initialises the session, warms the label cache, and
    tears everything down cleanly on exit.

    Only the connection handshake is retried (``workspace-mcp`` binds a port
    for its internal OAuth server and crashes if a previous instance still
    holds it).  Errors raised by the caller inside the block propagate as-is.

    Args:
        user_email: Google account email. Falls back to USER_GOOGLE_EMAIL env var.
        server_command: Command used to launch the MCP server.
                        Defaults to GMAIL_MCP_SERVER_PATH env var (or "uvx").

    Example::

        async with gmail_client() as client:
            ids = await client.search_message_ids("newer_than:2d")
    """
    email = user_email or os.environ.get("USER_GOOGLE_EMAIL", "")
    if not email:
        raise ValueError(
            "user_email must be provided or USER_GOOGLE_EMAIL env var must be set"
        )

    cmd = server_command or os.environ.get("GMAIL_MCP_SERVER_PATH", "uvx")
    _cmd_basename = os.path.basename(cmd).lower().replace(".exe", "")
    args = (
        ["workspace-mcp", "--tools", "gmail", "calendar"]
        if _cmd_basename == "uvx"
        else []
    )

    mcp_port = os.environ.get("WORKSPACE_MCP_PORT", "18741")

    server_params = StdioServerParameters(
        command=cmd,
        args=args,
        env={
            **os.environ,
            "GOOGLE_OAUTH_CLIENT_ID": os.environ.get("GOOGLE_OAUTH_CLIENT_ID", ""),
            "GOOGLE_OAUTH_CLIENT_SECRET": os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
            "USER_GOOGLE_EMAIL": email,
            "MCP_SINGLE_USER_MODE": "1",
            "WORKSPACE_MCP_PORT": mcp_port,
            "PYTHONUTF8": "1",
        },
    )

    for attempt in range(1, _MCP_CONNECT_RETRIES + 1):
        connected = False
        try:
            async with stdio_client(server_params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    client = GmailClient(session, email)
                    await client._refresh_label_cache()
                    connected = True
                    logger.info("Google Workspace MCP client connected (%s)", email)
                    yield client
                    return
        except Exception as exc:
            if connected or attempt == _MCP_CONNECT_RETRIES:
                raise
            logger.warning(
                "MCP server connection failed (attempt %d/%d): %s — retrying in %ds",
                attempt,
                _MCP_CONNECT_RETRIES,
                exc,
                _MCP_RETRY_DELAY_SECONDS,
            )
            await asyncio.sleep(_MCP_RETRY_DELAY_SECONDS)

    raise MCPError(f"Failed to connect after {_MCP_CONNECT_RETRIES} attempts")
