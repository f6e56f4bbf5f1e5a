"""Decoders for untrusted JSON embedded in model replies.

Every decoder returns either a list of typed records or a ParseFailure and
never raises on bad model output.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from chief_of_staff.inbox.types import (
    DEFAULT_NOISE_LABEL,
    ClassificationDecision,
    Intervention,
    InterventionAction,
    InterventionKind,
    ParseFailure,
    TriageAction,
)

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


def extract_json_array(text: str) -> list[Any] | ParseFailure:
    """Return the first top-level JSON array literal found in text.

    Models often wrap JSON in prose or markdown fences, so every ``[`` is tried
    as a starting point until one decodes to a list.
    """
    start = text.find("[")
    while start != -1:
        try:
            value, _end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)
    return ParseFailure("no JSON array literal in model reply", raw=text[:500])


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_decisions(text: str) -> list[ClassificationDecision] | ParseFailure:
    """Decode classifier output into decisions.

    A record without an id, or with an unknown action, is skipped; the other
    records are kept.  Only a reply with no array, or with a non-object item,
    is a ParseFailure.
    """
    items = extract_json_array(text)
    if isinstance(items, ParseFailure):
        return items

    decisions: list[ClassificationDecision] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            return ParseFailure(f"decision #{index} is not an object", raw=text[:500])
        email_id = _str_or_none(item.get("id"))
        if email_id is None:
            logger.debug("Skipping decision #%d: no id", index)
            continue
        try:
            action = TriageAction(str(item.get("action", "")).strip().lower())
        except ValueError:
            logger.debug(
                "Skipping decision #%d for %s: unknown action %r",
                index,
                email_id,
                item.get("action"),
            )
            continue
        label_name = None
        if action == TriageAction.LABEL:
            label_name = _str_or_none(item.get("labelName")) or DEFAULT_NOISE_LABEL
        decisions.append(ClassificationDecision(
            email_id=email_id,
            action=action,
            label_name=label_name,
            reason=str(item.get("reason") or ""),
        ))
    return decisions


def parse_interventions(text: str) -> list[Intervention] | ParseFailure:
    """Decode Watchman output into interventions, preserving model order.

    Records with an unknown type or action are skipped.
    """
    items = extract_json_array(text)
    if isinstance(items, ParseFailure):
        return items

    interventions: list[Intervention] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            return ParseFailure(f"intervention #{index} is not an object", raw=text[:500])
        try:
            kind = InterventionKind(str(item.get("type", "")).strip().lower())
            action = InterventionAction(str(item.get("action", "")).strip().lower())
        except ValueError as exc:
            logger.debug("Skipping intervention #%d: %s", index, exc)
            continue
        interventions.append(Intervention(
            kind=kind,
            action=action,
            message=str(item.get("message") or ""),
            email_id=_str_or_none(item.get("emailId")),
            thread_id=_str_or_none(item.get("threadId")),
        ))
    return interventions
