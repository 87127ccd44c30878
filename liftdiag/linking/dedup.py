"""Deduplication of linked parts on their (part name, repair request) key."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from liftdiag.models import LinkedPart
from liftdiag.timeline.builder import Timeline

logger = logging.getLogger(__name__)


class DedupResult:
    """Result of deduplicating linked parts.

    Attributes:
        parts: One LinkedPart per part key, in first-occurrence order
        removed_count: Number of entries dropped
        duplicates: Keys that had more than one entry, with their entry count
    """

    def __init__(
        self,
        parts: list[LinkedPart],
        removed_count: int = 0,
        duplicates: dict[tuple[str, str], int] | None = None,
    ):
        self.parts = parts
        self.removed_count = removed_count
        self.duplicates = duplicates or {}


class Deduplicator:
    """Collapses multiple LinkedPart entries for the same physical part."""

    def __init__(self, timeline: Timeline | None = None):
        """Initialize deduplicator.

        Args:
            timeline: Timeline used to order entries by linked visit position
                (without it, that tie-break is skipped)
        """
        self.timeline = timeline

    def deduplicate(self, parts: Iterable[LinkedPart]) -> DedupResult:
        """Keep exactly one entry per part key.

        Within a group the kept entry is, in priority order:
        1. One with a linked visit over one without
        2. Higher confidence
        3. Linked visit earliest in the timeline
        4. First encountered

        Applying this to its own output changes nothing.

        Args:
            parts: Linked parts, possibly with repeated keys

        Returns:
            DedupResult
        """
        groups: dict[tuple[str, str], list[tuple[int, LinkedPart]]] = {}
        for order, part in enumerate(parts):
            groups.setdefault(part.part_key, []).append((order, part))

        kept: list[LinkedPart] = []
        duplicates: dict[tuple[str, str], int] = {}
        removed = 0

        for key, group in groups.items():
            if len(group) > 1:
                duplicates[key] = len(group)
                removed += len(group) - 1
            _, best = min(group, key=lambda item: self._rank(*item))
            kept.append(best)

        if duplicates:
            logger.warning(
                f"Duplicate part keys resolved: {len(duplicates)} key(s), "
                f"{removed} entr{'y' if removed == 1 else 'ies'} removed"
            )

        return DedupResult(parts=kept, removed_count=removed, duplicates=duplicates)

    def _rank(self, order: int, part: LinkedPart) -> tuple[int, int, int, int]:
        has_visit = part.linked_visit_event_id is not None
        visit_position = (
            self.timeline.position(part.linked_visit_event_id) if self.timeline else 0
        )
        return (0 if has_visit else 1, -part.confidence.rank, visit_position, order)
