"""Component derivation shared by part linkage and pattern detection.

A component name is derived the same way wherever it is needed so that a
replaced part, the breakdown it is linked to and the pattern that groups
related issues all agree on what "Power Supply" or "Door Contact" means.
"""

from __future__ import annotations

from rapidfuzz import fuzz

from liftdiag.linking.keywords import KeywordCatalog
from liftdiag.models import Breakdown, MaintenanceIssue, PartRequest
from liftdiag.normalization.text import fold_text, translate_state_key

UNKNOWN_COMPONENT = "Unknown"


class ComponentResolver:
    """Keyword-priority component derivation with RapidFuzz overlap checks."""

    def __init__(self, catalog: KeywordCatalog, match_threshold: int = 85) -> None:
        """Initialize resolver.

        Args:
            catalog: Component keyword catalog
            match_threshold: Minimum RapidFuzz token_set_ratio (0-100) for two
                component names to be treated as overlapping
        """
        self.catalog = catalog
        self.match_threshold = match_threshold

    def from_text(self, text: str | None) -> str | None:
        return self.catalog.match_component(text)

    def for_part(self, part: PartRequest) -> str | None:
        """Component from the part itself.

        Priority order:
        1. Keyword match on the part name
        2. Keyword match on sub-family, then family
        3. Literal sub-family, then family text

        Returns:
            Component name, or None when the part carries no usable text
        """
        for text in (part.part_name, part.part_sub_family, part.part_family):
            component = self.from_text(text)
            if component:
                return component

        for text in (part.part_sub_family, part.part_family):
            if text and text.strip():
                return text.strip()

        return None

    def for_breakdown(self, breakdown: Breakdown) -> str | None:
        """Component of a breakdown from its failure location tags."""
        for tag in breakdown.failure_location_tags:
            component = self.from_text(tag)
            if component:
                return component

        if breakdown.failure_location_tags:
            return breakdown.failure_location_tags[0]
        return None

    def for_issue(self, issue: MaintenanceIssue) -> str | None:
        """Component of a maintenance issue from its coded component key."""
        plain = translate_state_key(issue.component_code)
        if not plain:
            return None
        return self.from_text(plain) or plain

    def same_component(self, a: str | None, b: str | None) -> bool:
        """Check whether two component names or tags refer to the same component.

        Both sides are first mapped through the keyword catalog ("UPS unit"
        becomes "Power Supply"); otherwise RapidFuzz token_set_ratio on the
        folded text decides, so "Door" overlaps "Landing Door" but not "Motor".
        """
        if not a or not b:
            return False

        left = fold_text(self.from_text(a) or a)
        right = fold_text(self.from_text(b) or b)
        if not left or not right:
            return False
        if left == right:
            return True

        return fuzz.token_set_ratio(left, right) >= self.match_threshold

    def overlaps(self, component: str | None, tags: tuple[str, ...]) -> bool:
        return any(self.same_component(component, tag) for tag in tags)
