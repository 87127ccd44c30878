"""Unit tests for the evidence validator and strict/lenient enforcement."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from liftdiag.models import (
    ComponentSummary,
    Confidence,
    EventLink,
    LinkedPart,
    Pattern,
    ValidationResult,
)
from liftdiag.validation.validator import EvidenceIntegrityViolation, EvidenceValidator, enforce


@pytest.fixture
def timeline(build_timeline, rr001_records):
    # evt_001 visit, evt_002 breakdown, evt_003 visit, evt_004 part replacement
    return build_timeline(**rr001_records)


def _part(**overrides) -> LinkedPart:
    fields = dict(
        part_id="part_001",
        part_name="Osram Power supply TFOS02550",
        repair_request_number="RR-001",
        part_event_id="evt_004",
        component="Power Supply",
        replacement_date=date(2024, 12, 5),
        linked_visit_event_id="evt_003",
        linked_breakdown_event_id="evt_002",
        confidence=Confidence.HIGH,
    )
    fields.update(overrides)
    return LinkedPart(**fields)


def _pattern(**overrides) -> Pattern:
    fields = dict(
        pattern_id="pat_001",
        description="Power Supply: 2 events",
        frequency=2,
        evidence_event_ids=("evt_001", "evt_002"),
        component="Power Supply",
        tag="technical",
    )
    fields.update(overrides)
    # Bypass construction checks to exercise the validator on bad patterns
    return Pattern.model_construct(**fields)


class TestEvidenceValidator:
    """Every reference must resolve to an event of the right kind."""

    def test_valid_graph(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part()],
            patterns=[_pattern()],
            event_links=[
                EventLink(
                    source_event_id="evt_003",
                    target_event_id="evt_002",
                    relation="visited_during_breakdown",
                )
            ],
            components=[ComponentSummary(component_name="Power Supply", pattern_ids=("pat_001",))],
        )
        assert result == ValidationResult(valid=True, violations=())

    def test_unresolved_visit_id(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part(linked_visit_event_id="evt_099")]
        )

        assert not result.valid
        assert len(result.violations) == 1
        assert "evt_099 not in timeline" in result.violations[0]

    def test_visit_id_pointing_at_wrong_kind(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part(linked_visit_event_id="evt_002")]
        )

        assert not result.valid
        assert "is a breakdown, expected visit" in result.violations[0]

    def test_unresolved_breakdown_and_part_event(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part(linked_breakdown_event_id="evt_050", part_event_id="evt_051")]
        )
        assert len(result.violations) == 2

    def test_empty_links_are_valid(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part(linked_visit_event_id=None, linked_breakdown_event_id=None)]
        )
        assert result.valid

    def test_duplicate_part_key(self, timeline):
        result = EvidenceValidator(timeline).validate(
            linked_parts=[_part(), _part(part_id="part_002")]
        )

        assert not result.valid
        assert "duplicate part key" in result.violations[0]

    def test_pattern_below_frequency_floor(self, timeline):
        result = EvidenceValidator(timeline).validate(
            patterns=[_pattern(frequency=1, evidence_event_ids=("evt_001",))]
        )

        assert not result.valid
        assert any("below 2" in v for v in result.violations)

    def test_pattern_without_evidence(self, timeline):
        result = EvidenceValidator(timeline).validate(patterns=[_pattern(evidence_event_ids=())])

        assert not result.valid
        assert any("no evidence" in v for v in result.violations)

    def test_pattern_frequency_mismatch(self, timeline):
        result = EvidenceValidator(timeline).validate(patterns=[_pattern(frequency=3)])
        assert any("does not match" in v for v in result.violations)

    def test_pattern_unresolved_evidence(self, timeline):
        result = EvidenceValidator(timeline).validate(
            patterns=[_pattern(evidence_event_ids=("evt_001", "evt_404"))]
        )
        assert result.violations == ("pattern pat_001: evidence id evt_404 not in timeline",)

    def test_event_link_wrong_kinds(self, timeline):
        result = EvidenceValidator(timeline).validate(
            event_links=[
                EventLink(
                    source_event_id="evt_002",
                    target_event_id="evt_003",
                    relation="visited_during_breakdown",
                )
            ]
        )
        assert len(result.violations) == 2

    def test_component_summary_references(self, timeline):
        result = EvidenceValidator(timeline).validate(
            patterns=[_pattern()],
            components=[
                ComponentSummary(
                    component_name="Power Supply",
                    issue_event_ids=("evt_002", "evt_777"),
                    pattern_ids=("pat_001", "pat_009"),
                )
            ],
        )
        assert len(result.violations) == 2

    def test_validation_does_not_mutate(self, timeline):
        part = _part(linked_visit_event_id="evt_099")
        EvidenceValidator(timeline).validate(linked_parts=[part])
        assert part.linked_visit_event_id == "evt_099"


class TestEnforce:
    """Strict raises, lenient warns."""

    def test_valid_result_passes_through(self):
        result = ValidationResult(valid=True)
        assert enforce(result, strict=True) is result

    def test_strict_raises(self):
        result = ValidationResult(valid=False, violations=("a", "b"))

        with pytest.raises(EvidenceIntegrityViolation) as exc_info:
            enforce(result, strict=True)

        assert exc_info.value.result is result
        assert "2 evidence violation(s)" in str(exc_info.value)

    def test_lenient_logs_warning(self, caplog):
        result = ValidationResult(valid=False, violations=("pattern pat_001: no evidence event ids",))

        with caplog.at_level(logging.WARNING, logger="liftdiag.validation.validator"):
            returned = enforce(result, strict=False)

        assert returned is result
        assert "pat_001" in caplog.text
