"""Evidence integrity checks on the correlated event graph.

Every id that a linked part, pattern, event link or component summary
references must resolve to a timeline event of the expected kind. Problems
are reported, never repaired: the caller decides whether a violation is
fatal (strict) or a warning (lenient).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from liftdiag.config import MIN_PATTERN_FREQUENCY_FLOOR
from liftdiag.models import (
    ComponentSummary,
    EventLink,
    LinkedPart,
    Pattern,
    RecordKind,
    ValidationResult,
)
from liftdiag.timeline.builder import Timeline

logger = logging.getLogger(__name__)

_LINK_KINDS = {
    "visited_during_breakdown": (RecordKind.VISIT, RecordKind.BREAKDOWN),
    "raised_during_visit": (RecordKind.MAINTENANCE_ISSUE, RecordKind.VISIT),
}


class EvidenceIntegrityViolation(Exception):
    """Raised in strict mode when the evidence graph fails validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        summary = "; ".join(result.violations[:5])
        more = len(result.violations) - 5
        if more > 0:
            summary += f" (+{more} more)"
        super().__init__(f"{len(result.violations)} evidence violation(s): {summary}")


class EvidenceValidator:
    """Walks every cross-reference of a correlation run."""

    def __init__(self, timeline: Timeline):
        self.timeline = timeline

    def validate(
        self,
        linked_parts: Iterable[LinkedPart] = (),
        patterns: Iterable[Pattern] = (),
        event_links: Iterable[EventLink] = (),
        components: Iterable[ComponentSummary] = (),
    ) -> ValidationResult:
        """Validate all references against the timeline.

        Returns:
            ValidationResult listing every violation found
        """
        violations: list[str] = []
        pattern_ids: set[str] = set()

        violations.extend(self._check_parts(list(linked_parts)))

        for pattern in patterns:
            pattern_ids.add(pattern.pattern_id)
            violations.extend(self._check_pattern(pattern))

        for link in event_links:
            violations.extend(self._check_link(link))

        for summary in components:
            violations.extend(self._check_component(summary, pattern_ids))

        return ValidationResult(valid=not violations, violations=tuple(violations))

    def _check_parts(self, parts: list[LinkedPart]) -> list[str]:
        violations: list[str] = []
        seen: set[tuple[str, str]] = set()

        for part in parts:
            label = f"linked part {part.repair_request_number} ({part.part_name})"

            if part.part_key in seen:
                violations.append(f"{label}: duplicate part key")
            seen.add(part.part_key)

            violations.extend(
                self._check_ref(label, "part event", part.part_event_id, RecordKind.PART_REPLACEMENT)
            )
            violations.extend(
                self._check_ref(label, "linked visit", part.linked_visit_event_id, RecordKind.VISIT)
            )
            violations.extend(
                self._check_ref(
                    label, "linked breakdown", part.linked_breakdown_event_id, RecordKind.BREAKDOWN
                )
            )

        return violations

    def _check_pattern(self, pattern: Pattern) -> list[str]:
        label = f"pattern {pattern.pattern_id}"
        violations: list[str] = []

        if pattern.frequency < MIN_PATTERN_FREQUENCY_FLOOR:
            violations.append(
                f"{label}: frequency {pattern.frequency} below {MIN_PATTERN_FREQUENCY_FLOOR}"
            )
        if not pattern.evidence_event_ids:
            violations.append(f"{label}: no evidence event ids")
        elif pattern.frequency != len(pattern.evidence_event_ids):
            violations.append(
                f"{label}: frequency {pattern.frequency} does not match "
                f"{len(pattern.evidence_event_ids)} evidence id(s)"
            )

        for event_id in pattern.evidence_event_ids:
            if self.timeline.get(event_id) is None:
                violations.append(f"{label}: evidence id {event_id} not in timeline")

        return violations

    def _check_link(self, link: EventLink) -> list[str]:
        label = f"event link {link.source_event_id}->{link.target_event_id}"
        source_kind, target_kind = _LINK_KINDS[link.relation]
        return self._check_ref(label, "source", link.source_event_id, source_kind) + self._check_ref(
            label, "target", link.target_event_id, target_kind
        )

    def _check_component(self, summary: ComponentSummary, pattern_ids: set[str]) -> list[str]:
        label = f"component {summary.component_name}"
        violations: list[str] = []

        for event_id in summary.issue_event_ids:
            if self.timeline.get(event_id) is None:
                violations.append(f"{label}: event id {event_id} not in timeline")
        for pattern_id in summary.pattern_ids:
            if pattern_id not in pattern_ids:
                violations.append(f"{label}: unknown pattern {pattern_id}")

        return violations

    def _check_ref(
        self, label: str, field: str, event_id: str | None, expected: RecordKind
    ) -> list[str]:
        if event_id is None:
            return []
        event = self.timeline.get(event_id)
        if event is None:
            return [f"{label}: {field} id {event_id} not in timeline"]
        if event.kind is not expected:
            return [f"{label}: {field} id {event_id} is a {event.kind.value}, expected {expected.value}"]
        return []


def enforce(result: ValidationResult, strict: bool) -> ValidationResult:
    """Apply the strict/lenient policy to a validation result.

    Raises:
        EvidenceIntegrityViolation: If the result is invalid and strict is True
    """
    if result.valid:
        return result
    if strict:
        raise EvidenceIntegrityViolation(result)

    logger.warning(
        f"Evidence validation failed with {len(result.violations)} violation(s): "
        + "; ".join(result.violations)
    )
    return result
