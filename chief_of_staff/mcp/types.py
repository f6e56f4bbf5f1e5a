"""Data types shared across MCP client modules."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RawEmail:
    """A snapshot of one Gmail message, taken once per pipeline run.

    Archive/label requests made during a run are not reflected back into the
    snapshot, so ``labels`` always holds the labels seen at fetch time.
    """

    id: str
    thread_id: str
    sender: str
    subject: str
    snippet: str
    labels: list[str] = field(default_factory=list)
    body: str | None = None        # plain-text part
    html_body: str | None = None   # HTML part
    recipient: str | None = None
    date: str | None = None


@dataclass(frozen=True)
class CalendarEvent:
    """An upcoming calendar event, reduced to what the Watchman needs."""

    id: str
    summary: str
    start: str
    location: str | None = None
    video_link: str | None = None
    has_conference: bool = False

    @property
    def has_logistics(self) -> bool:
        """True if attendees know where to go: a location or any video link."""
        return bool(self.location or self.video_link or self.has_conference)
