"""Adjacency links between timeline events.

Records which visits happened while the unit was broken down and at which
visit each maintenance issue was raised. These links describe co-occurrence
only; no causality is inferred.
"""

from __future__ import annotations

import logging

from liftdiag.models import Breakdown, EventLink, RecordKind, TimelineEvent
from liftdiag.normalization.dates import day_distance
from liftdiag.timeline.builder import Timeline

logger = logging.getLogger(__name__)


class EventLinker:
    """Builds visited_during_breakdown and raised_during_visit links."""

    def __init__(self, issue_visit_days: int = 1):
        self.issue_visit_days = issue_visit_days

    def link(self, timeline: Timeline) -> list[EventLink]:
        links = self.visits_during_breakdowns(timeline) + self.issues_at_visits(timeline)
        logger.debug(f"Event links: {len(links)}")
        return links

    def visits_during_breakdowns(self, timeline: Timeline) -> list[EventLink]:
        """Link each visit to every breakdown whose span contains it.

        An ongoing breakdown is open ended. When either the visit or the
        breakdown start has no known time, containment is checked on dates.
        """
        visits = timeline.of_kind(RecordKind.VISIT)
        links: list[EventLink] = []

        for breakdown_event in timeline.of_kind(RecordKind.BREAKDOWN):
            breakdown = breakdown_event.source_ref
            if not isinstance(breakdown, Breakdown):
                continue

            for visit_event in visits:
                if _within(visit_event, breakdown):
                    links.append(
                        EventLink(
                            source_event_id=visit_event.event_id,
                            target_event_id=breakdown_event.event_id,
                            relation="visited_during_breakdown",
                        )
                    )

        return links

    def issues_at_visits(self, timeline: Timeline) -> list[EventLink]:
        """Link each maintenance issue to its closest visit within issue_visit_days."""
        visits = timeline.of_kind(RecordKind.VISIT)
        links: list[EventLink] = []

        for issue_event in timeline.of_kind(RecordKind.MAINTENANCE_ISSUE):
            nearby = [
                (day_distance(issue_event.timestamp, visit.timestamp), i, visit)
                for i, visit in enumerate(visits)
                if day_distance(issue_event.timestamp, visit.timestamp) <= self.issue_visit_days
            ]
            if not nearby:
                continue

            _, _, closest = min(nearby, key=lambda item: (item[0], item[1]))
            links.append(
                EventLink(
                    source_event_id=issue_event.event_id,
                    target_event_id=closest.event_id,
                    relation="raised_during_visit",
                )
            )

        return links


def _within(visit_event: TimelineEvent, breakdown: Breakdown) -> bool:
    if visit_event.time_unknown or breakdown.time_unknown:
        if visit_event.day < breakdown.started_at.date():
            return False
        return breakdown.is_ongoing or visit_event.day <= breakdown.ended_at.date()

    if visit_event.timestamp < breakdown.started_at:
        return False
    return breakdown.is_ongoing or visit_event.timestamp <= breakdown.ended_at
