"""Part linkage: tie each replaced part to one visit and one breakdown.

For every completed part request with a part attached, the resolver picks
the single best corroborating visit inside the request window, derives the
affected component and links at most one related breakdown.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from enum import IntEnum
from typing import NamedTuple

from liftdiag.linking.components import UNKNOWN_COMPONENT, ComponentResolver
from liftdiag.linking.keywords import KeywordCatalog
from liftdiag.models import (
    Breakdown,
    Confidence,
    LinkedPart,
    MaintenanceIssue,
    PartRequest,
    RecordKind,
    TimelineEvent,
    Visit,
    VisitType,
)
from liftdiag.normalization.dates import day_distance
from liftdiag.normalization.text import (
    find_terms,
    fold_text,
    is_part_reference,
    significant_tokens,
)
from liftdiag.timeline.builder import Timeline

logger = logging.getLogger(__name__)


class LinkTier(IntEnum):
    """Visit candidate tiers, best first."""

    CORROBORATED_REPAIR = 1  # REPAIR visit whose comment names the action and the part
    REPAIR = 2  # REPAIR visit without textual corroboration
    CORROBORATED_OTHER = 3  # Other visit type with textual corroboration
    UNCORROBORATED = 4  # Fallback, closest date wins

    @property
    def confidence(self) -> Confidence:
        if self is LinkTier.CORROBORATED_REPAIR:
            return Confidence.HIGH
        if self in (LinkTier.REPAIR, LinkTier.CORROBORATED_OTHER):
            return Confidence.MEDIUM
        return Confidence.LOW


class VisitCandidate(NamedTuple):
    event: TimelineEvent
    tier: LinkTier
    distance_days: int
    position: int
    action_terms: list[str]
    part_terms: list[str]


def format_part_id(sequence: int) -> str:
    return f"part_{sequence:03d}"


class PartLinkageResolver:
    """Resolves part replacements against visits and breakdowns."""

    def __init__(
        self,
        catalog: KeywordCatalog,
        components: ComponentResolver,
        breakdown_link_days: int = 2,
        issue_visit_days: int = 1,
    ) -> None:
        """Initialize resolver.

        Args:
            catalog: Keyword catalog (action terms, component keywords)
            components: Shared component derivation
            breakdown_link_days: How many days before the replacement date a
                breakdown may have ended and still be linked
            issue_visit_days: Maximum day distance between a maintenance issue
                and the replacement for the issue's component code to be used
        """
        self.catalog = catalog
        self.components = components
        self.breakdown_link_days = breakdown_link_days
        self.issue_visit_days = issue_visit_days

    def resolve(self, timeline: Timeline) -> list[LinkedPart]:
        """Produce one LinkedPart per completed part replacement, in timeline order."""
        linked: list[LinkedPart] = []

        for event in timeline.of_kind(RecordKind.PART_REPLACEMENT):
            part = event.source_ref
            if not isinstance(part, PartRequest) or not part.is_replacement:
                continue
            linked.append(self.link(event, timeline, format_part_id(len(linked) + 1)))

        return linked

    def link(self, part_event: TimelineEvent, timeline: Timeline, part_id: str) -> LinkedPart:
        """Link one part replacement event.

        Args:
            part_event: Timeline event whose source is a completed PartRequest
            timeline: Full unit timeline
            part_id: Identifier for the resulting LinkedPart

        Returns:
            LinkedPart (low confidence with empty links when nothing corroborates it)

        Raises:
            ValueError: If the event is not a completed part request
        """
        part = part_event.source_ref
        if not isinstance(part, PartRequest) or part.completed_at is None:
            raise ValueError(f"{part_event.event_id} is not a completed part request")

        visit = self.select_visit(part, timeline)
        replacement_date = visit.event.day if visit else part.completed_at.date()

        component = self.components.for_part(part)
        breakdown_event = self.select_breakdown(component, replacement_date, timeline)

        if component is None and breakdown_event is not None:
            component = self.components.for_breakdown(breakdown_event.source_ref)
        if component is None:
            component = self._component_from_issues(replacement_date, timeline)

        confidence = visit.tier.confidence if visit else Confidence.LOW
        reason = _linking_reason(part, visit, breakdown_event)

        logger.debug(
            f"{part.repair_request_number}: visit={visit.event.event_id if visit else None} "
            f"breakdown={breakdown_event.event_id if breakdown_event else None} "
            f"confidence={confidence.value}"
        )

        return LinkedPart(
            part_id=part_id,
            part_name=part.part_name or "",
            repair_request_number=part.repair_request_number,
            part_family=part.part_family,
            part_sub_family=part.part_sub_family,
            part_event_id=part_event.event_id,
            component=component or UNKNOWN_COMPONENT,
            replacement_date=replacement_date,
            linked_visit_event_id=visit.event.event_id if visit else None,
            linked_breakdown_event_id=breakdown_event.event_id if breakdown_event else None,
            confidence=confidence,
            linking_reason=reason,
        )

    def select_visit(self, part: PartRequest, timeline: Timeline) -> VisitCandidate | None:
        """Pick the best visit in [requested date, completed date].

        Candidates are ranked by tier, then day distance to the completion
        date, then timeline position.

        Raises:
            ValueError: If the part request has no completion date
        """
        if part.completed_at is None:
            raise ValueError(f"{part.repair_request_number}: no completion date")
        window_start = part.requested_at.date()
        window_end = part.completed_at.date()

        if window_start > window_end:
            logger.warning(
                f"{part.repair_request_number}: completion {window_end} precedes "
                f"request {window_start}, no visit candidates"
            )
            return None

        terms = self.part_terms(part)
        candidates = [
            self._score(event, event.source_ref, part, terms, timeline)
            for event in timeline.of_kind(RecordKind.VISIT)
            if isinstance(event.source_ref, Visit) and window_start <= event.day <= window_end
        ]
        if not candidates:
            return None

        return min(candidates, key=lambda c: (c.tier, c.distance_days, c.position))

    def select_breakdown(
        self, component: str | None, replacement_date: date, timeline: Timeline
    ) -> TimelineEvent | None:
        """Pick the most recent related breakdown for a replacement.

        A breakdown is eligible when it started on or before the replacement
        date and is either still ongoing or ended no more than
        breakdown_link_days before it. With a known component its failure
        locations must overlap that component; without one, any breakdown
        carrying failure locations qualifies.
        """
        earliest_end = replacement_date - timedelta(days=self.breakdown_link_days)
        eligible: list[TimelineEvent] = []

        for event in timeline.of_kind(RecordKind.BREAKDOWN):
            breakdown = event.source_ref
            if not isinstance(breakdown, Breakdown):
                continue

            if breakdown.started_at.date() > replacement_date:
                continue
            if not breakdown.is_ongoing and breakdown.ended_at.date() < earliest_end:
                continue

            if component is None:
                if breakdown.failure_location_tags:
                    eligible.append(event)
            elif self.components.overlaps(component, breakdown.failure_location_tags):
                eligible.append(event)

        if not eligible:
            return None

        return max(eligible, key=lambda e: (e.timestamp, timeline.position(e.event_id)))

    def part_terms(self, part: PartRequest) -> list[str]:
        """Folded part-type terms used to corroborate a visit comment.

        Only part references (codes mixing letters and digits), tokens that are
        themselves component keywords, and the keyword expansion of the part's
        component count. Generic words such as "power" or "supply" alone do not.

        Example:
            "Osram Power supply TFOS02550" -> tfos02550, power supply, ups,
            battery, ...
        """
        texts = (part.part_name, part.part_family, part.part_sub_family)
        action_terms = {fold_text(term) for term in self.catalog.action_terms}

        terms = [
            token
            for token in significant_tokens(*texts)
            if token not in action_terms
            and (self.catalog.is_keyword(token) or is_part_reference(token))
        ]
        for text in texts:
            component = self.components.from_text(text)
            if component is None:
                continue
            for keyword in self.catalog.expansion(component):
                folded = fold_text(keyword)
                if folded and folded not in terms:
                    terms.append(folded)

        return terms

    def _score(
        self,
        event: TimelineEvent,
        visit: Visit,
        part: PartRequest,
        terms: list[str],
        timeline: Timeline,
    ) -> VisitCandidate:
        comment = fold_text(visit.comment)
        actions = self.catalog.action_terms_in(comment)
        hits = find_terms(comment, terms)
        corroborated = bool(actions and hits)

        if visit.visit_type is VisitType.REPAIR:
            tier = LinkTier.CORROBORATED_REPAIR if corroborated else LinkTier.REPAIR
        else:
            tier = LinkTier.CORROBORATED_OTHER if corroborated else LinkTier.UNCORROBORATED

        return VisitCandidate(
            event=event,
            tier=tier,
            distance_days=day_distance(event.timestamp, part.completed_at),
            position=timeline.position(event.event_id),
            action_terms=actions,
            part_terms=hits,
        )

    def _component_from_issues(self, replacement_date: date, timeline: Timeline) -> str | None:
        """Component code of the closest maintenance issue around the replacement."""
        nearby: list[tuple[int, int, MaintenanceIssue]] = []
        for event in timeline.of_kind(RecordKind.MAINTENANCE_ISSUE):
            issue = event.source_ref
            if not isinstance(issue, MaintenanceIssue):
                continue
            distance = day_distance(event.timestamp, replacement_date)
            if issue.component_code and distance <= self.issue_visit_days:
                nearby.append((distance, timeline.position(event.event_id), issue))

        if not nearby:
            return None

        _, _, issue = min(nearby, key=lambda item: (item[0], item[1]))
        return self.components.for_issue(issue)


def _linking_reason(
    part: PartRequest, visit: VisitCandidate | None, breakdown_event: TimelineEvent | None
) -> str:
    parts: list[str] = []

    if visit is None:
        parts.append(
            f"no visit between {part.requested_at.date()} and {part.completed_at.date()}"
        )
    else:
        source = visit.event.source_ref
        text = f"{source.visit_type.value} visit on {visit.event.day}"
        if visit.action_terms and visit.part_terms:
            text += (
                f" mentions {', '.join(visit.action_terms)}"
                f" and {', '.join(visit.part_terms)}"
            )
        elif visit.tier is LinkTier.UNCORROBORATED:
            text += f", closest to completion ({visit.distance_days} day(s))"
        parts.append(text)

    if breakdown_event is None:
        parts.append("no related breakdown")
    else:
        breakdown = breakdown_event.source_ref
        label = breakdown.breakdown_id or breakdown_event.event_id
        if breakdown.is_ongoing:
            parts.append(f"breakdown {label} ongoing since {breakdown_event.day}")
        else:
            parts.append(f"breakdown {label} ended {breakdown.ended_at.date()}")

    return "; ".join(parts)
