"""Per-component aggregation of breakdowns, maintenance issues and patterns."""

from __future__ import annotations

from collections.abc import Iterable

from liftdiag.models import ComponentSummary, Pattern, RecordKind
from liftdiag.normalization.text import fold_text
from liftdiag.patterns.detector import PatternDetector
from liftdiag.timeline.builder import Timeline


def summarize_components(
    timeline: Timeline, patterns: Iterable[Pattern], detector: PatternDetector
) -> list[ComponentSummary]:
    """Build one summary per component, sorted by component name.

    ``issue_event_ids`` lists every breakdown and maintenance issue event
    attributed to the component, in timeline order.

    Args:
        timeline: Unit timeline
        patterns: Detected patterns
        detector: Detector whose component rule attributes events

    Returns:
        List of ComponentSummary
    """
    names: dict[str, str] = {}
    event_ids: dict[str, list[str]] = {}
    breakdown_counts: dict[str, int] = {}
    issue_counts: dict[str, int] = {}
    pattern_ids: dict[str, list[str]] = {}

    for event in timeline:
        grouping = detector.group_of(event)
        if grouping is None:
            continue
        component = grouping[0]
        key = fold_text(component)
        names.setdefault(key, component)
        event_ids.setdefault(key, []).append(event.event_id)
        if event.kind is RecordKind.BREAKDOWN:
            breakdown_counts[key] = breakdown_counts.get(key, 0) + 1
        else:
            issue_counts[key] = issue_counts.get(key, 0) + 1

    for pattern in patterns:
        key = fold_text(pattern.component)
        names.setdefault(key, pattern.component)
        pattern_ids.setdefault(key, []).append(pattern.pattern_id)

    return [
        ComponentSummary(
            component_name=names[key],
            issue_event_ids=tuple(event_ids.get(key, [])),
            pattern_ids=tuple(pattern_ids.get(key, [])),
            breakdown_count=breakdown_counts.get(key, 0),
            maintenance_issue_count=issue_counts.get(key, 0),
        )
        for key in sorted(names, key=lambda k: (names[k].lower(), k))
    ]
