"""Daily briefing — a read-only projection of one pipeline run."""

from __future__ import annotations

from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from chief_of_staff.inbox.types import InterventionKind, PipelineResult

_MAX_PINNED = 10
_KIND_MARKER: dict[InterventionKind, str] = {
    InterventionKind.LATENCY: "[latency]",
    InterventionKind.MISSING_LINK: "[missing link]",
    InterventionKind.SPIRAL: "[spiral]",
}


def render_briefing(result: PipelineResult) -> str:
    """Render the three briefing sections as plain text. Mutates nothing."""
    lines: list[str] = ["Urgent Actions (Pinned):"]
    if not result.vip:
        lines.append("  None")
    for email in result.vip[:_MAX_PINNED]:
        lines.append(f"  • {email.subject[:60]}")
        lines.append(f"    From: {email.sender[:50]}")

    lines.append("")
    lines.append("Drafts Ready for Review:")
    if not result.drafts:
        lines.append("  None")
    for draft in result.drafts:
        lines.append(f"  • {draft.subject[:60]}")

    lines.append("")
    lines.append("Interventions:")
    if not result.interventions:
        lines.append("  None")
    for intervention in result.interventions:
        lines.append(f"  {_KIND_MARKER[intervention.kind]} {intervention.message}")

    lines.append("")
    lines.append(
        f"{len(result.vip)} pinned · {len(result.drafts)} draft(s) · "
        f"{len(result.interventions)} intervention(s)"
    )
    return "\n".join(lines)


def print_briefing(text: str, console: Console | None = None, today: date | None = None) -> None:
    day = (today or date.today()).isoformat()
    (console or Console(width=200)).print(
        Panel(
            Text(text),
            title=f"[bold]Daily Briefing — {day}[/bold]",
            border_style="green",
        )
    )
