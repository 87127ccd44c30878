"""Recurring-problem detection over breakdowns and maintenance issues."""

from __future__ import annotations

import logging

from liftdiag.config import MIN_PATTERN_FREQUENCY_FLOOR
from liftdiag.linking.components import UNKNOWN_COMPONENT, ComponentResolver
from liftdiag.models import Breakdown, MaintenanceIssue, Pattern, RecordKind, TimelineEvent
from liftdiag.normalization.text import fold_text, translate_state_key
from liftdiag.timeline.builder import Timeline

logger = logging.getLogger(__name__)

UNSPECIFIED_TAG = "unspecified"


def format_pattern_id(sequence: int) -> str:
    return f"pat_{sequence:03d}"


class PatternDetector:
    """Groups issue and breakdown events by (component, problem/origin tag)."""

    def __init__(self, components: ComponentResolver, min_frequency: int = 2):
        """Initialize detector.

        Args:
            components: Shared component derivation
            min_frequency: Minimum group size (never below 2)
        """
        self.components = components
        self.min_frequency = max(MIN_PATTERN_FREQUENCY_FLOOR, min_frequency)

    def detect(self, timeline: Timeline) -> list[Pattern]:
        """Detect patterns.

        Groups smaller than min_frequency are discarded entirely. Patterns are
        numbered in order of each group's first evidence event.

        Args:
            timeline: Unit timeline

        Returns:
            List of Pattern, every evidence id drawn from the timeline
        """
        groups: dict[tuple[str, str], list[TimelineEvent]] = {}
        labels: dict[tuple[str, str], tuple[str, str]] = {}

        for event in timeline:
            grouping = self.group_of(event)
            if grouping is None:
                continue
            component, tag = grouping
            key = (fold_text(component), fold_text(tag))
            groups.setdefault(key, []).append(event)
            labels.setdefault(key, (component, tag))

        patterns: list[Pattern] = []
        for key, events in groups.items():
            if len(events) < self.min_frequency:
                continue
            component, tag = labels[key]
            patterns.append(
                Pattern(
                    pattern_id=format_pattern_id(len(patterns) + 1),
                    description=_describe(component, tag, events),
                    frequency=len(events),
                    evidence_event_ids=tuple(e.event_id for e in events),
                    component=component,
                    tag=tag,
                    correlation_notes=_correlation_notes(events),
                )
            )

        logger.info(
            f"Pattern detection: {len(groups)} group(s), {len(patterns)} pattern(s) "
            f"at frequency >= {self.min_frequency}"
        )
        return patterns

    def group_of(self, event: TimelineEvent) -> tuple[str, str] | None:
        """(component, tag) of an event, or None for kinds that are not grouped."""
        record = event.source_ref

        if isinstance(record, MaintenanceIssue):
            component = self.components.for_issue(record)
            tag = record.problem_code
        elif isinstance(record, Breakdown):
            component = self.components.for_breakdown(record)
            tag = record.origin_tag
        else:
            return None

        return (component or UNKNOWN_COMPONENT, tag or UNSPECIFIED_TAG)


def _describe(component: str, tag: str, events: list[TimelineEvent]) -> str:
    readable = translate_state_key(tag) if tag != UNSPECIFIED_TAG else "unspecified problem"
    kinds = {e.kind for e in events}
    if kinds == {RecordKind.BREAKDOWN}:
        noun = "breakdowns"
    elif kinds == {RecordKind.MAINTENANCE_ISSUE}:
        noun = "maintenance issues"
    else:
        noun = "events"
    return f"{component}: {len(events)} {noun} tagged {readable}"


def _correlation_notes(events: list[TimelineEvent]) -> str:
    """Adjacency facts about a group: kind counts, time span, open items."""
    breakdowns = [e.source_ref for e in events if e.kind is RecordKind.BREAKDOWN]
    issues = [e.source_ref for e in events if e.kind is RecordKind.MAINTENANCE_ISSUE]

    counts = []
    if breakdowns:
        counts.append(f"{len(breakdowns)} breakdown(s)")
    if issues:
        counts.append(f"{len(issues)} maintenance issue(s)")

    first, last = events[0].day, events[-1].day
    notes = [
        f"{' and '.join(counts)} between {first} and {last} ({(last - first).days} days)"
    ]

    unresolved = sum(1 for issue in issues if not issue.resolved)
    if unresolved:
        notes.append(f"{unresolved} unresolved")
    ongoing = sum(1 for breakdown in breakdowns if breakdown.is_ongoing)
    if ongoing:
        notes.append(f"{ongoing} ongoing")

    return "; ".join(notes)
