"""Record normalization for the four raw source collections.

Coerces loosely typed source rows (dates, nullable fields, free text) into the
canonical record models. Field names from both the reporting source
(``completedDate``, ``globalComment``, ``stateStartDate``...) and the
canonical camelCase names (``occurredAt``, ``freeTextComment``...) are
accepted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from liftdiag.models import (
    Breakdown,
    MaintenanceIssue,
    PartRequest,
    RecordKind,
    RejectedRecord,
    SourceRecord,
    Visit,
    VisitType,
)
from liftdiag.normalization.dates import ParsedTimestamp, parse_timestamp

logger = logging.getLogger(__name__)


class MalformedRecord(ValueError):
    """Raw record is missing a required timestamp or has an unparseable date."""

    def __init__(self, kind: RecordKind, index: int, reason: str) -> None:
        super().__init__(f"{kind.value} record #{index}: {reason}")
        self.kind = kind
        self.index = index
        self.reason = reason


# Candidate source keys per canonical field, first non-empty wins
_VISIT_FIELDS = {
    "occurred_at": ("occurredAt", "completedDate", "date", "visitDate"),
    "engineer_name": ("engineerName", "fullName", "engineer"),
    "visit_type": ("visitType", "type"),
    "end_status": ("endStatus",),
    "comment": ("freeTextComment", "globalComment", "comment"),
    "origin_tag": ("originTag", "origin"),
    "component_tag": ("componentTag", "componentImpacted"),
}

_BREAKDOWN_FIELDS = {
    "breakdown_id": ("id", "breakdownId"),
    "started_at": ("startedAt", "startTime"),
    "ended_at": ("endedAt", "endTime"),
    "duration_minutes": ("durationMinutes", "minutesDuration"),
    "origin_tag": ("originTag", "origin"),
    "failure_location_tags": ("failureLocationTags", "failureLocations"),
    "visited_during_breakdown": ("visitedDuringBreakdown",),
}

_ISSUE_FIELDS = {
    "occurred_at": ("occurredAt", "completedDate", "date"),
    "component_code": ("componentCode", "stateKey", "component"),
    "problem_code": ("problemCode", "problemKey", "problem"),
    "question": ("question",),
    "answer": ("answer",),
    "resolved": ("resolved", "followUp"),
}

_PART_FIELDS = {
    "repair_request_number": ("repairRequestNumber",),
    "requested_at": ("requestedAt", "requestedDate"),
    "completed_at": ("completedAt", "stateStartDate"),
    "status": ("status",),
    "has_part_attached": ("hasPartAttached",),
    "part_name": ("partName",),
    "part_family": ("partFamily",),
    "part_sub_family": ("partSubFamily",),
}

_VISIT_TYPE_ALIASES = {
    "regular": VisitType.REGULAR,
    "maintenance": VisitType.REGULAR,
    "routine": VisitType.REGULAR,
    "repair": VisitType.REPAIR,
    "breakdown": VisitType.BREAKDOWN_CALLOUT,
    "breakdown callout": VisitType.BREAKDOWN_CALLOUT,
    "callout": VisitType.BREAKDOWN_CALLOUT,
    "callback": VisitType.BREAKDOWN_CALLOUT,
    "quarterly": VisitType.QUARTERLY,
    "semi annual": VisitType.SEMI_ANNUAL,
    "semiannual": VisitType.SEMI_ANNUAL,
}

_TRUE_VALUES = {"true", "yes", "y", "1", "oui", "resolved"}


class RecordNormalizer:
    """Pure coercion of raw rows into canonical records."""

    def __init__(self, ignored_problem_codes: Iterable[str] = ()) -> None:
        """Initialize normalizer.

        Args:
            ignored_problem_codes: Maintenance problem codes that are not real
                anomalies and are dropped by normalize_batch
        """
        self.ignored_problem_codes = {code.lower() for code in ignored_problem_codes}

    def normalize(self, kind: RecordKind, raw: Mapping[str, Any], index: int = 0) -> SourceRecord:
        """Normalize one raw record of the declared kind.

        Raises:
            MalformedRecord: If a required timestamp is missing or a date is unparseable
        """
        if not isinstance(raw, Mapping):
            raise MalformedRecord(kind, index, f"expected an object, got {type(raw).__name__}")

        if kind is RecordKind.VISIT:
            return self._visit(raw, index)
        if kind is RecordKind.BREAKDOWN:
            return self._breakdown(raw, index)
        if kind is RecordKind.MAINTENANCE_ISSUE:
            return self._issue(raw, index)
        return self._part_request(raw, index)

    def normalize_batch(
        self, kind: RecordKind, raws: Iterable[Mapping[str, Any]]
    ) -> tuple[list[SourceRecord], list[RejectedRecord]]:
        """Normalize a collection, skipping (not aborting on) malformed rows.

        Returns:
            Tuple of (records in input order, rejected rows)
        """
        records: list[SourceRecord] = []
        rejects: list[RejectedRecord] = []

        for index, raw in enumerate(raws):
            try:
                record = self.normalize(kind, raw, index)
            except MalformedRecord as e:
                logger.warning(f"Skipping malformed record: {e}")
                rejects.append(RejectedRecord(kind=kind, index=index, reason=e.reason))
                continue

            if isinstance(record, MaintenanceIssue) and self._is_ignored(record):
                logger.debug(f"Ignoring maintenance issue #{index} ({record.problem_code})")
                continue

            records.append(record)

        return records, rejects

    def _is_ignored(self, issue: MaintenanceIssue) -> bool:
        return bool(issue.problem_code) and issue.problem_code.lower() in self.ignored_problem_codes

    def _visit(self, raw: Mapping[str, Any], index: int) -> Visit:
        f = _pick_all(raw, _VISIT_FIELDS)
        occurred = _required_timestamp(RecordKind.VISIT, index, "occurredAt", f["occurred_at"])
        return Visit(
            occurred_at=occurred.value,
            time_unknown=occurred.time_unknown,
            engineer_name=_clean_str(f["engineer_name"]),
            visit_type=coerce_visit_type(f["visit_type"]),
            end_status=_clean_str(f["end_status"]),
            comment=_clean_str(f["comment"]) or "",
            origin_tag=_clean_str(f["origin_tag"]),
            component_tag=_clean_str(f["component_tag"]),
            source_index=index,
        )

    def _breakdown(self, raw: Mapping[str, Any], index: int) -> Breakdown:
        f = _pick_all(raw, _BREAKDOWN_FIELDS)
        started = _required_timestamp(RecordKind.BREAKDOWN, index, "startedAt", f["started_at"])
        ended = _optional_timestamp(RecordKind.BREAKDOWN, index, "endedAt", f["ended_at"])

        if ended is not None:
            # A date-only end cannot be compared below day granularity
            if ended.time_unknown or started.time_unknown:
                inverted = ended.value.date() < started.value.date()
            else:
                inverted = ended.value < started.value
            if inverted:
                raise MalformedRecord(RecordKind.BREAKDOWN, index, "endedAt is before startedAt")

        return Breakdown(
            breakdown_id=_clean_str(f["breakdown_id"]),
            started_at=started.value,
            ended_at=ended.value if ended else None,
            time_unknown=started.time_unknown,
            duration_minutes=_to_float(f["duration_minutes"]),
            origin_tag=_clean_str(f["origin_tag"]),
            failure_location_tags=_to_tags(f["failure_location_tags"]),
            visited_during_breakdown=_to_bool(f["visited_during_breakdown"]),
            source_index=index,
        )

    def _issue(self, raw: Mapping[str, Any], index: int) -> MaintenanceIssue:
        f = _pick_all(raw, _ISSUE_FIELDS)
        occurred = _required_timestamp(
            RecordKind.MAINTENANCE_ISSUE, index, "occurredAt", f["occurred_at"]
        )
        return MaintenanceIssue(
            occurred_at=occurred.value,
            time_unknown=occurred.time_unknown,
            component_code=_clean_str(f["component_code"]),
            problem_code=_clean_str(f["problem_code"]),
            question=_clean_str(f["question"]),
            answer=_clean_str(f["answer"]),
            resolved=_to_bool(f["resolved"]),
            source_index=index,
        )

    def _part_request(self, raw: Mapping[str, Any], index: int) -> PartRequest:
        kind = RecordKind.PART_REPLACEMENT
        f = _pick_all(raw, _PART_FIELDS)
        requested = _required_timestamp(kind, index, "requestedAt", f["requested_at"])
        status = (_clean_str(f["status"]) or "").upper()

        completed: Optional[ParsedTimestamp] = None
        if status == "DONE":
            completed = _required_timestamp(kind, index, "completedAt", f["completed_at"])

        rr_number = _clean_str(f["repair_request_number"])
        if rr_number is None:
            raise MalformedRecord(kind, index, "missing repairRequestNumber")

        return PartRequest(
            repair_request_number=rr_number,
            requested_at=requested.value,
            completed_at=completed.value if completed else None,
            status=status,
            has_part_attached=_to_bool(f["has_part_attached"]),
            part_name=_clean_str(f["part_name"]),
            part_family=_clean_str(f["part_family"]),
            part_sub_family=_clean_str(f["part_sub_family"]),
            time_unknown=(completed or requested).time_unknown,
            source_index=index,
        )


def coerce_visit_type(value: Any) -> VisitType:
    """Map a free-form visit type label to VisitType (unknown -> OTHER)."""
    text = _clean_str(value)
    if text is None:
        return VisitType.OTHER

    key = re.sub(r"[\s_\-]+", " ", text.lower()).strip()
    member = key.upper().replace(" ", "_")
    if member in VisitType.__members__:
        return VisitType[member]
    return _VISIT_TYPE_ALIASES.get(key, VisitType.OTHER)


def _pick_all(raw: Mapping[str, Any], fields: Mapping[str, tuple[str, ...]]) -> dict[str, Any]:
    return {name: _pick(raw, keys) for name, keys in fields.items()}


def _pick(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _required_timestamp(kind: RecordKind, index: int, label: str, value: Any) -> ParsedTimestamp:
    parsed = _optional_timestamp(kind, index, label, value)
    if parsed is None:
        raise MalformedRecord(kind, index, f"missing required timestamp {label}")
    return parsed


def _optional_timestamp(
    kind: RecordKind, index: int, label: str, value: Any
) -> Optional[ParsedTimestamp]:
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise MalformedRecord(kind, index, f"{label}: {e}") from e


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_VALUES


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = re.split(r"[,;|]", value)
    elif isinstance(value, Iterable):
        items = value
    else:
        items = [value]

    tags: list[str] = []
    for item in items:
        text = _clean_str(item)
        if text and text not in tags:
            tags.append(text)
    return tuple(tags)
