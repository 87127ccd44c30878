"""liftdiag Pydantic models for normalized records and the evidence graph.

All models are frozen: every stage consumes the previous stage's result and
builds new objects instead of mutating them. Attribute names are snake_case;
JSON output uses camelCase aliases.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from liftdiag.config import MIN_PATTERN_FREQUENCY_FLOOR


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class VisitType(str, Enum):
    """Visit categories reported by the field service system."""

    REGULAR = "REGULAR"
    REPAIR = "REPAIR"
    BREAKDOWN_CALLOUT = "BREAKDOWN_CALLOUT"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    OTHER = "OTHER"


class RecordKind(str, Enum):
    """Source record kinds, declared in timeline tie-break order."""

    VISIT = "visit"
    BREAKDOWN = "breakdown"
    MAINTENANCE_ISSUE = "maintenance_issue"
    PART_REPLACEMENT = "part_replacement"

    @property
    def priority(self) -> int:
        """Tie-break rank when two events share a timestamp (lower first)."""
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {
    RecordKind.VISIT: 0,
    RecordKind.BREAKDOWN: 1,
    RecordKind.MAINTENANCE_ISSUE: 2,
    RecordKind.PART_REPLACEMENT: 3,
}


class Confidence(str, Enum):
    """Confidence tier of a part-to-visit linkage."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class Visit(_Frozen):
    """Service visit (completed task) on the unit."""

    occurred_at: datetime
    time_unknown: bool = False
    engineer_name: str | None = None
    visit_type: VisitType = VisitType.OTHER
    end_status: str | None = None
    comment: str = ""
    origin_tag: str | None = None
    component_tag: str | None = None
    source_index: int = 0


class Breakdown(_Frozen):
    """Period during which the unit was out of service."""

    breakdown_id: str | None = None
    started_at: datetime
    ended_at: datetime | None = None  # None = still ongoing
    time_unknown: bool = False
    duration_minutes: float | None = None
    origin_tag: str | None = None
    failure_location_tags: tuple[str, ...] = ()
    visited_during_breakdown: bool = False
    source_index: int = 0

    @property
    def is_ongoing(self) -> bool:
        return self.ended_at is None


class MaintenanceIssue(_Frozen):
    """Anomaly raised by an engineer while answering a maintenance checklist."""

    occurred_at: datetime
    time_unknown: bool = False
    component_code: str | None = None
    problem_code: str | None = None
    question: str | None = None
    answer: str | None = None
    resolved: bool = False
    source_index: int = 0


class PartRequest(_Frozen):
    """Engineer-raised repair request, possibly carrying a part."""

    repair_request_number: str
    requested_at: datetime
    completed_at: datetime | None = None  # Only kept when status is DONE
    status: str = ""
    has_part_attached: bool = False
    part_name: str | None = None
    part_family: str | None = None
    part_sub_family: str | None = None
    time_unknown: bool = False
    source_index: int = 0

    @property
    def is_done(self) -> bool:
        return self.status.upper() == "DONE"

    @property
    def is_replacement(self) -> bool:
        """Completed request with a part attached (a physical replacement)."""
        return self.is_done and self.has_part_attached and self.completed_at is not None

    @property
    def part_key(self) -> tuple[str, str]:
        return (self.part_name or "", self.repair_request_number)

    @property
    def occurred_at(self) -> datetime:
        """Timeline position: completion date when DONE, request date otherwise."""
        if self.is_done and self.completed_at is not None:
            return self.completed_at
        return self.requested_at


SourceRecord = Union[Visit, Breakdown, MaintenanceIssue, PartRequest]


class TimelineEvent(_Frozen):
    """One entry of the unit timeline, addressable by its evidence id."""

    event_id: str
    timestamp: datetime
    kind: RecordKind
    time_unknown: bool = False
    source_ref: SourceRecord

    @property
    def day(self) -> date:
        return self.timestamp.date()


class LinkedPart(_Frozen):
    """A replaced part with its corroborating visit and breakdown."""

    part_id: str
    part_name: str
    repair_request_number: str
    part_family: str | None = None
    part_sub_family: str | None = None
    part_event_id: str | None = None
    component: str
    replacement_date: date
    linked_visit_event_id: str | None = None
    linked_breakdown_event_id: str | None = None
    confidence: Confidence = Confidence.LOW
    linking_reason: str = ""

    @property
    def part_key(self) -> tuple[str, str]:
        return (self.part_name, self.repair_request_number)


class Pattern(_Frozen):
    """Recurring (component, problem/origin) group backed by timeline evidence."""

    pattern_id: str
    description: str
    frequency: int
    evidence_event_ids: tuple[str, ...]
    component: str
    tag: str
    correlation_notes: str = ""

    @field_validator("frequency")
    @classmethod
    def validate_frequency(cls, v: int) -> int:
        if v < MIN_PATTERN_FREQUENCY_FLOOR:
            raise ValueError(
                f"frequency must be at least {MIN_PATTERN_FREQUENCY_FLOOR}"
            )
        return v

    @field_validator("evidence_event_ids")
    @classmethod
    def validate_evidence(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("evidence_event_ids must not be empty")
        return v


class EventLink(_Frozen):
    """Adjacency between two timeline events (no causality implied)."""

    source_event_id: str
    target_event_id: str
    relation: Literal["visited_during_breakdown", "raised_during_visit"]


class ComponentSummary(_Frozen):
    """Component-level aggregation of issues and patterns."""

    component_name: str
    issue_event_ids: tuple[str, ...] = ()
    pattern_ids: tuple[str, ...] = ()
    breakdown_count: int = 0
    maintenance_issue_count: int = 0


class ValidationResult(_Frozen):
    """Outcome of the evidence integrity walk."""

    valid: bool
    violations: tuple[str, ...] = ()


class RejectedRecord(_Frozen):
    """Raw record skipped by the normalizer."""

    kind: RecordKind
    index: int
    reason: str


class CorrelationResult(_Frozen):
    """Complete evidence graph for one engine run."""

    timeline: tuple[TimelineEvent, ...] = ()
    linked_parts: tuple[LinkedPart, ...] = ()
    patterns: tuple[Pattern, ...] = ()
    event_links: tuple[EventLink, ...] = ()
    components: tuple[ComponentSummary, ...] = ()
    validation: ValidationResult = Field(
        default_factory=lambda: ValidationResult(valid=True)
    )
    rejected_records: tuple[RejectedRecord, ...] = ()
    duplicates_removed: int = 0

    def to_output(self) -> dict[str, Any]:
        """JSON-ready output consumed by narrative and rendering collaborators."""
        return self.model_dump(mode="json", by_alias=True)
