"""Types for the inbox triage → draft → watch pipeline."""

from dataclasses import dataclass, field
from enum import Enum

from chief_of_staff.mcp.types import RawEmail


class TriageAction(str, Enum):
    """What the classifier decided to do with a message."""

    ARCHIVE = "archive"
    LABEL = "label"
    IMPORTANT = "important"
    VIP = "vip"


#: Actions that take a message out of the drafting / watching flow.
SUPPRESSING_ACTIONS = frozenset({TriageAction.ARCHIVE, TriageAction.LABEL})


class InterventionKind(str, Enum):
    LATENCY = "latency"
    MISSING_LINK = "missing-link"
    SPIRAL = "spiral"


class InterventionAction(str, Enum):
    """NUDGE and FLAG are advisory; DRAFT_REQUEST mutates the mailbox."""

    NUDGE = "nudge"
    DRAFT_REQUEST = "draft-request"
    FLAG = "flag"


# ── Gmail labels ───────────────────────────────────────────────────────────────

DEFAULT_NOISE_LABEL = "Low Priority"
VIP_LABEL = "VIP"

#: System labels that mean a reply already exists or is in progress.
TERMINAL_LABELS = frozenset({"SENT", "DRAFT"})


# ── Records ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClassificationDecision:
    """One triage decision for one message, as returned by the classifier."""

    email_id: str
    action: TriageAction
    label_name: str | None = None   # only meaningful for TriageAction.LABEL
    reason: str = ""                # advisory; never used for control flow


@dataclass(frozen=True)
class DraftRecord:
    email_id: str
    draft_id: str
    subject: str


@dataclass(frozen=True)
class Intervention:
    """A Watchman detection and the action taken (or suggested) for it."""

    kind: InterventionKind
    action: InterventionAction
    message: str
    email_id: str | None = None
    thread_id: str | None = None


@dataclass(frozen=True)
class ParseFailure:
    """Model output that could not be decoded into typed records."""

    reason: str
    raw: str = ""


@dataclass(frozen=True)
class Partition:
    """How the classifier decisions split a run's messages.

    ``important_candidates`` keeps fetch order; it includes VIP messages and
    messages the classifier said nothing about.
    """

    suppressed: list[RawEmail] = field(default_factory=list)
    important_candidates: list[RawEmail] = field(default_factory=list)
    vip: list[RawEmail] = field(default_factory=list)

    @property
    def watch_candidates(self) -> list[RawEmail]:
        """important_candidates ∪ vip, de-duplicated by message id, order kept."""
        seen: set[str] = set()
        merged: list[RawEmail] = []
        for email in [*self.important_candidates, *self.vip]:
            if email.id not in seen:
                seen.add(email.id)
                merged.append(email)
        return merged


@dataclass(frozen=True)
class PipelineResult:
    """Everything one run produced; the briefing is rendered from this alone."""

    messages: list[RawEmail] = field(default_factory=list)
    decisions: list[ClassificationDecision] = field(default_factory=list)
    vip: list[RawEmail] = field(default_factory=list)
    drafts: list[DraftRecord] = field(default_factory=list)
    interventions: list[Intervention] = field(default_factory=list)
