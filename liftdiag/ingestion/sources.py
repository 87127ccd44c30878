"""Retrieval boundary: parallel fetch of a unit's four record collections.

The four fetches are independent and run concurrently. A failed fetch
degrades to an empty collection for that kind and is reported in
``CollectionResult.errors``; the engine tolerates partial input.
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

import structlog

from liftdiag.models import RecordKind
from liftdiag.normalization.dates import parse_timestamp

logger = structlog.get_logger()

_PAYLOAD_LIST_KEYS = ("data", "rows", "values")

_FILENAMES = {
    RecordKind.VISIT: "visits.json",
    RecordKind.BREAKDOWN: "breakdowns.json",
    RecordKind.MAINTENANCE_ISSUE: "maintenance_issues.json",
    RecordKind.PART_REPLACEMENT: "part_requests.json",
}

# First present key gives the date used for lookback filtering
_DATE_KEYS = {
    RecordKind.VISIT: ("occurredAt", "completedDate", "date", "visitDate"),
    RecordKind.BREAKDOWN: ("startedAt", "startTime"),
    RecordKind.MAINTENANCE_ISSUE: ("occurredAt", "completedDate", "date"),
    RecordKind.PART_REPLACEMENT: ("requestedAt", "requestedDate"),
}

# Completed part requests are dated by their replacement, not their request
_PART_DONE_DATE_KEYS = ("completedAt", "stateStartDate")

_UNIT_KEYS = ("unitId", "deviceId", "unit_id")


class RecordSource(Protocol):
    """Anything that can return one raw record collection for a unit and window."""

    async def fetch(
        self, kind: RecordKind, unit_id: str, since: datetime, until: datetime
    ) -> Any: ...


class CollectionResult:
    """Raw records collected for one unit.

    Attributes:
        unit_id: Unit the records belong to
        since, until: Lookback window
        records: Raw rows per record kind (empty list for failed fetches)
        errors: One entry per failed fetch: {"kind", "error"}
        stats: Fetch counters
    """

    def __init__(self, unit_id: str, since: datetime, until: datetime):
        self.unit_id = unit_id
        self.since = since
        self.until = until
        self.records: dict[RecordKind, list[dict[str, Any]]] = {kind: [] for kind in RecordKind}
        self.errors: list[dict[str, str]] = []
        self.stats: dict[str, int] = {
            "fetches_attempted": 0,
            "fetches_succeeded": 0,
            "fetches_failed": 0,
            "total_records": 0,
        }

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)

    def engine_input(self) -> dict[str, Any]:
        """Keyword arguments for CorrelationEngine.run."""
        return {
            "visits": self.records[RecordKind.VISIT],
            "breakdowns": self.records[RecordKind.BREAKDOWN],
            "maintenance_issues": self.records[RecordKind.MAINTENANCE_ISSUE],
            "part_requests": self.records[RecordKind.PART_REPLACEMENT],
            "unit_id": self.unit_id,
        }


def parse_source_payload(payload: Any) -> list[dict[str, Any]]:
    """Coerce a reporting-source payload into a list of row objects.

    Accepted shapes: a JSON string of any shape below, a list of rows,
    ``{"data" | "rows" | "values": [...]}``, an object whose first
    list-valued key holds the rows, or a single row object.

    Raises:
        ValueError: If a string payload is not valid JSON or the shape is unsupported
    """
    if payload is None:
        return []

    if isinstance(payload, (str, bytes)):
        if not payload.strip():
            return []
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"Payload is not valid JSON: {e}") from e

    if isinstance(payload, list):
        return list(payload)

    if isinstance(payload, dict):
        for key in _PAYLOAD_LIST_KEYS:
            if isinstance(payload.get(key), list):
                return list(payload[key])
        for value in payload.values():
            if isinstance(value, list):
                return list(value)
        return [payload] if payload else []

    raise ValueError(f"Unsupported payload type: {type(payload).__name__}")


async def collect_unit_records(
    source: RecordSource,
    unit_id: str,
    days_back: int = 90,
    until: datetime | None = None,
) -> CollectionResult:
    """Fetch all four collections for a unit in parallel.

    Args:
        source: Record source
        unit_id: Unit identifier
        days_back: Lookback window in days
        until: End of the window (defaults to now, local wall-clock time)

    Returns:
        CollectionResult; failed fetches leave an empty collection and an error entry
    """
    until = until or datetime.now()
    since = until - timedelta(days=days_back)
    result = CollectionResult(unit_id, since, until)

    kinds = list(RecordKind)
    result.stats["fetches_attempted"] = len(kinds)

    logger.info("collect_started", unit_id=unit_id, since=since.isoformat(), until=until.isoformat())
    outcomes = await asyncio.gather(
        *(_fetch_one(source, kind, unit_id, since, until) for kind in kinds)
    )

    for outcome in outcomes:
        kind = outcome["kind"]
        if outcome["success"]:
            result.stats["fetches_succeeded"] += 1
            result.records[kind] = outcome["records"]
            result.stats["total_records"] += len(outcome["records"])
        else:
            result.stats["fetches_failed"] += 1
            result.errors.append({"kind": kind.value, "error": outcome["error"]})

    logger.info(
        "collect_complete",
        unit_id=unit_id,
        succeeded=result.stats["fetches_succeeded"],
        failed=result.stats["fetches_failed"],
        records=result.stats["total_records"],
    )
    return result


async def _fetch_one(
    source: RecordSource, kind: RecordKind, unit_id: str, since: datetime, until: datetime
) -> dict[str, Any]:
    start_time = time.perf_counter()
    try:
        payload = await source.fetch(kind, unit_id, since, until)
        records = parse_source_payload(payload)
    except Exception as e:
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.error("fetch_failed", kind=kind.value, unit_id=unit_id, error=str(e), duration_ms=duration_ms)
        return {"success": False, "kind": kind, "error": f"{type(e).__name__}: {e}"}

    return {"success": True, "kind": kind, "records": records}


class JsonDirectorySource:
    """Reads raw collections from JSON files in a directory.

    Layout: ``<root>/<unit_id>/visits.json`` when a per-unit directory
    exists, otherwise ``<root>/visits.json`` (likewise for
    ``breakdowns.json``, ``maintenance_issues.json`` and
    ``part_requests.json``). A missing file is an empty collection. Rows
    carrying a unit id for another unit, or dated outside the window, are
    skipped; rows with unparseable dates are kept for the normalizer to reject.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    async def fetch(
        self, kind: RecordKind, unit_id: str, since: datetime, until: datetime
    ) -> list[dict[str, Any]]:
        path = self._directory(unit_id) / _FILENAMES[kind]
        if not path.exists():
            return []

        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        rows = parse_source_payload(text)
        return [row for row in rows if self._keep(row, kind, unit_id, since, until)]

    def _directory(self, unit_id: str) -> Path:
        unit_dir = self.root / unit_id
        return unit_dir if unit_id and unit_dir.is_dir() else self.root

    @staticmethod
    def _keep(row: Any, kind: RecordKind, unit_id: str, since: datetime, until: datetime) -> bool:
        if not isinstance(row, dict):
            return True

        for key in _UNIT_KEYS:
            if row.get(key) is not None and str(row[key]) != unit_id:
                return False

        start = None
        if kind is RecordKind.PART_REPLACEMENT and str(row.get("status") or "").upper() == "DONE":
            start = _row_date(row, _PART_DONE_DATE_KEYS)
        if start is None:
            start = _row_date(row, _DATE_KEYS[kind])
        if start is None:
            return True
        if start > until.date():
            return False

        if kind is RecordKind.BREAKDOWN:
            # Breakdowns that began earlier but were still open inside the window are kept
            end = _row_date(row, ("endedAt", "endTime"))
            return end is None or end >= since.date()

        return start >= since.date()


def _row_date(row: dict[str, Any], keys: tuple[str, ...]) -> date | None:
    for key in keys:
        if row.get(key) in (None, ""):
            continue
        try:
            parsed = parse_timestamp(row[key])
        except ValueError:
            return None
        return parsed.value.date() if parsed else None
    return None
