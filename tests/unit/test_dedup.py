"""Unit tests for linked-part deduplication."""

from __future__ import annotations

from datetime import date

from liftdiag.linking.dedup import Deduplicator
from liftdiag.models import Confidence, LinkedPart
from tests.factories import visit_row


def _linked(
    rr: str = "RR-1",
    name: str = "Door contact",
    visit: str | None = None,
    confidence: Confidence = Confidence.LOW,
    part_id: str = "part_001",
) -> LinkedPart:
    return LinkedPart(
        part_id=part_id,
        part_name=name,
        repair_request_number=rr,
        component="Door Contact",
        replacement_date=date(2024, 3, 5),
        linked_visit_event_id=visit,
        confidence=confidence,
    )


class TestDeduplicator:
    """One entry per (part name, repair request number)."""

    def test_unique_parts_untouched(self):
        parts = [_linked("RR-1"), _linked("RR-2"), _linked("RR-1", name="Roller")]

        result = Deduplicator().deduplicate(parts)

        assert result.parts == parts
        assert result.removed_count == 0
        assert result.duplicates == {}

    def test_entry_with_visit_preferred(self):
        without = _linked(part_id="part_001")
        with_visit = _linked(visit="evt_002", part_id="part_002")

        result = Deduplicator().deduplicate([without, with_visit])

        assert result.parts == [with_visit]
        assert result.removed_count == 1
        assert result.duplicates == {("Door contact", "RR-1"): 2}

    def test_higher_confidence_preferred(self):
        medium = _linked(visit="evt_001", confidence=Confidence.MEDIUM, part_id="part_001")
        high = _linked(visit="evt_003", confidence=Confidence.HIGH, part_id="part_002")

        result = Deduplicator().deduplicate([medium, high])

        assert result.parts == [high]

    def test_earliest_linked_visit_preferred(self, build_timeline):
        timeline = build_timeline(
            visits=[visit_row("2024-03-02"), visit_row("2024-03-03"), visit_row("2024-03-04")]
        )
        later = _linked(visit="evt_003", confidence=Confidence.HIGH, part_id="part_001")
        earlier = _linked(visit="evt_001", confidence=Confidence.HIGH, part_id="part_002")

        result = Deduplicator(timeline).deduplicate([later, earlier])

        assert result.parts == [earlier]

    def test_full_tie_keeps_first_encountered(self):
        first = _linked(part_id="part_001")
        second = _linked(part_id="part_002")

        result = Deduplicator().deduplicate([first, second])

        assert result.parts[0].part_id == "part_001"

    def test_output_keeps_first_occurrence_order(self):
        parts = [
            _linked("RR-2", part_id="part_001"),
            _linked("RR-1", part_id="part_002"),
            _linked("RR-2", visit="evt_001", part_id="part_003"),
        ]

        result = Deduplicator().deduplicate(parts)

        assert [p.repair_request_number for p in result.parts] == ["RR-2", "RR-1"]
        assert result.parts[0].part_id == "part_003"

    def test_idempotent(self, build_timeline):
        timeline = build_timeline(visits=[visit_row("2024-03-02"), visit_row("2024-03-04")])
        parts = [
            _linked("RR-1", part_id="part_001"),
            _linked("RR-1", visit="evt_002", confidence=Confidence.MEDIUM, part_id="part_002"),
            _linked("RR-1", visit="evt_001", confidence=Confidence.MEDIUM, part_id="part_003"),
            _linked("RR-2", part_id="part_004"),
        ]
        dedup = Deduplicator(timeline)

        once = dedup.deduplicate(parts)
        twice = dedup.deduplicate(once.parts)

        assert twice.parts == once.parts
        assert twice.removed_count == 0
        assert [p.part_id for p in once.parts] == ["part_003", "part_004"]
