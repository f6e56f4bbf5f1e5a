"""Tests for decoding JSON out of model replies."""

from chief_of_staff.inbox.parsing import extract_json_array, parse_decisions, parse_interventions
from chief_of_staff.inbox.types import (
    ClassificationDecision,
    Intervention,
    InterventionAction,
    InterventionKind,
    ParseFailure,
    TriageAction,
)


# ── extract_json_array ─────────────────────────────────────────────────────────


class TestExtractJsonArray:
    def test_bare_array(self) -> None:
        assert extract_json_array('[{"a": 1}]') == [{"a": 1}]

    def test_array_inside_markdown_fence(self) -> None:
        text = 'Here you go:\n```json\n[{"id": "m1"}]\n```\nDone.'
        assert extract_json_array(text) == [{"id": "m1"}]

    def test_skips_bracketed_prose_before_array(self) -> None:
        text = 'Notes [see below] and then [1, 2]'
        assert extract_json_array(text) == [1, 2]

    def test_no_array_is_failure(self) -> None:
        result = extract_json_array("I could not classify these emails.")
        assert isinstance(result, ParseFailure)

    def test_malformed_array_is_failure(self) -> None:
        assert isinstance(extract_json_array('[{"id": "m1",'), ParseFailure)

    def test_empty_array(self) -> None:
        assert extract_json_array("[]") == []


# ── parse_decisions ────────────────────────────────────────────────────────────


class TestParseDecisions:
    def test_all_actions(self) -> None:
        text = (
            '[{"id": "m1", "action": "archive", "reason": "newsletter"},'
            ' {"id": "m2", "action": "VIP"},'
            ' {"id": "m3", "action": "label", "labelName": "Receipts"},'
            ' {"id": "m4", "action": "important"}]'
        )
        assert parse_decisions(text) == [
            ClassificationDecision("m1", TriageAction.ARCHIVE, reason="newsletter"),
            ClassificationDecision("m2", TriageAction.VIP),
            ClassificationDecision("m3", TriageAction.LABEL, label_name="Receipts"),
            ClassificationDecision("m4", TriageAction.IMPORTANT),
        ]

    def test_label_without_name_defaults_to_low_priority(self) -> None:
        [decision] = parse_decisions('[{"id": "m1", "action": "label"}]')
        assert decision.label_name == "Low Priority"

    def test_label_name_ignored_for_other_actions(self) -> None:
        [decision] = parse_decisions('[{"id": "m1", "action": "archive", "labelName": "X"}]')
        assert decision.label_name is None

    def test_unknown_action_skips_only_that_record(self) -> None:
        text = '[{"id": "m1", "action": "archive"}, {"id": "m2", "action": "snooze"}]'
        assert parse_decisions(text) == [ClassificationDecision("m1", TriageAction.ARCHIVE)]

    def test_missing_or_null_id_skipped(self) -> None:
        text = '[{"action": "archive"}, {"id": null, "action": "vip"}, {"id": "m3", "action": "vip"}]'
        assert parse_decisions(text) == [ClassificationDecision("m3", TriageAction.VIP)]

    def test_non_object_item_fails(self) -> None:
        assert isinstance(parse_decisions('["m1"]'), ParseFailure)

    def test_prose_reply_fails(self) -> None:
        assert isinstance(parse_decisions("Sorry, no."), ParseFailure)


# ── parse_interventions ────────────────────────────────────────────────────────


class TestParseInterventions:
    def test_decodes_in_order(self) -> None:
        text = (
            '[{"type": "spiral", "action": "flag", "threadId": "t1", "message": "Move to a call"},'
            ' {"type": "missing-link", "action": "draft-request", "emailId": "m2",'
            ' "threadId": null, "message": "No link"}]'
        )
        assert parse_interventions(text) == [
            Intervention(
                InterventionKind.SPIRAL, InterventionAction.FLAG, "Move to a call", thread_id="t1"
            ),
            Intervention(
                InterventionKind.MISSING_LINK,
                InterventionAction.DRAFT_REQUEST,
                "No link",
                email_id="m2",
            ),
        ]

    def test_empty_array_means_nothing_found(self) -> None:
        assert parse_interventions("[]") == []

    def test_unknown_type_skipped(self) -> None:
        text = '[{"type": "birthday", "action": "nudge", "message": "x"}]'
        assert parse_interventions(text) == []

    def test_unknown_action_skipped(self) -> None:
        text = '[{"type": "latency", "action": "escalate", "message": "x"}]'
        assert parse_interventions(text) == []

    def test_valid_records_survive_an_invalid_neighbour(self) -> None:
        text = (
            '[{"type": "meeting-conflict", "action": "flag", "message": "x"},'
            ' {"type": "latency", "action": "nudge", "emailId": "m1", "message": "4 hours"}]'
        )
        assert parse_interventions(text) == [
            Intervention(InterventionKind.LATENCY, InterventionAction.NUDGE, "4 hours", email_id="m1"),
        ]
