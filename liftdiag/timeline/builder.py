"""Timeline construction: merge, sort and assign stable evidence ids."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime

from liftdiag.models import (
    Breakdown,
    MaintenanceIssue,
    PartRequest,
    RecordKind,
    SourceRecord,
    TimelineEvent,
    Visit,
)

_KIND_OF = {
    Visit: RecordKind.VISIT,
    Breakdown: RecordKind.BREAKDOWN,
    MaintenanceIssue: RecordKind.MAINTENANCE_ISSUE,
    PartRequest: RecordKind.PART_REPLACEMENT,
}


def format_event_id(sequence: int) -> str:
    """Evidence id for the n-th (1-based) timeline event: evt_001, evt_002..."""
    return f"evt_{sequence:03d}"


def record_timestamp(record: SourceRecord) -> datetime:
    """Timestamp at which a record enters the timeline."""
    if isinstance(record, Breakdown):
        return record.started_at
    return record.occurred_at


class Timeline(Sequence[TimelineEvent]):
    """Ordered, immutable sequence of timeline events with id lookups."""

    def __init__(self, events: Iterable[TimelineEvent]) -> None:
        self._events: tuple[TimelineEvent, ...] = tuple(events)
        self._by_id = {event.event_id: event for event in self._events}
        self._position = {event.event_id: i for i, event in enumerate(self._events)}

    def __getitem__(self, index):  # type: ignore[override]
        return self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[TimelineEvent]:
        return iter(self._events)

    @property
    def events(self) -> tuple[TimelineEvent, ...]:
        return self._events

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._by_id)

    def get(self, event_id: str | None) -> TimelineEvent | None:
        if event_id is None:
            return None
        return self._by_id.get(event_id)

    def position(self, event_id: str | None) -> int:
        """Index of an event in timeline order (unknown ids sort last)."""
        if event_id is None:
            return len(self._events)
        return self._position.get(event_id, len(self._events))

    def of_kind(self, kind: RecordKind) -> list[TimelineEvent]:
        return [event for event in self._events if event.kind is kind]


class TimelineBuilder:
    """Merges normalized collections into one chronologically ordered Timeline."""

    def build(
        self,
        visits: Iterable[Visit] = (),
        breakdowns: Iterable[Breakdown] = (),
        issues: Iterable[MaintenanceIssue] = (),
        part_requests: Iterable[PartRequest] = (),
    ) -> Timeline:
        """Build the timeline.

        Ordering: ascending timestamp, then kind priority
        (visit < breakdown < maintenance_issue < part_replacement), then the
        record's original input position. Ids are assigned after sorting, so
        identical input always yields identical ids.
        """
        records: list[SourceRecord] = [
            *visits,
            *breakdowns,
            *issues,
            *part_requests,
        ]

        records.sort(
            key=lambda r: (record_timestamp(r), _KIND_OF[type(r)].priority, r.source_index)
        )

        events = []
        for sequence, record in enumerate(records, start=1):
            events.append(
                TimelineEvent(
                    event_id=format_event_id(sequence),
                    timestamp=record_timestamp(record),
                    kind=_KIND_OF[type(record)],
                    time_unknown=record.time_unknown,
                    source_ref=record,
                )
            )

        return Timeline(events)
