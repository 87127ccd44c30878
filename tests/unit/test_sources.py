"""Unit tests for the record retrieval boundary."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from liftdiag.ingestion.sources import (
    JsonDirectorySource,
    collect_unit_records,
    parse_source_payload,
)
from liftdiag.models import RecordKind

UNTIL = datetime(2024, 12, 31)


class FakeSource:
    """In-memory source; kinds listed in ``failing`` raise."""

    def __init__(self, payloads: dict[RecordKind, object], failing: tuple[RecordKind, ...] = ()):
        self.payloads = payloads
        self.failing = failing
        self.calls: list[tuple[RecordKind, str, datetime, datetime]] = []

    async def fetch(self, kind, unit_id, since, until):
        self.calls.append((kind, unit_id, since, until))
        if kind in self.failing:
            raise ConnectionError("reporting backend unavailable")
        return self.payloads.get(kind, [])


class TestParseSourcePayload:
    """Payload shapes returned by reporting sources."""

    def test_list(self):
        assert parse_source_payload([{"a": 1}]) == [{"a": 1}]

    def test_json_string(self):
        assert parse_source_payload('{"data": [{"a": 1}, {"a": 2}]}') == [{"a": 1}, {"a": 2}]

    @pytest.mark.parametrize("key", ["data", "rows", "values"])
    def test_wrapped_rows(self, key):
        assert parse_source_payload({key: [{"a": 1}]}) == [{"a": 1}]

    def test_first_list_valued_key(self):
        assert parse_source_payload({"count": 1, "visits": [{"a": 1}]}) == [{"a": 1}]

    def test_single_row_object(self):
        assert parse_source_payload({"a": 1}) == [{"a": 1}]

    def test_empty_payloads(self):
        assert parse_source_payload(None) == []
        assert parse_source_payload("  ") == []
        assert parse_source_payload({}) == []

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_source_payload("{broken")

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported payload type"):
            parse_source_payload(42)


class TestCollectUnitRecords:
    """Parallel fetch with per-kind failure isolation."""

    @pytest.mark.asyncio
    async def test_collects_all_kinds(self):
        source = FakeSource(
            {
                RecordKind.VISIT: [{"occurredAt": "2024-12-01"}],
                RecordKind.PART_REPLACEMENT: {"data": [{"repairRequestNumber": "RR-1"}]},
            }
        )

        result = await collect_unit_records(source, "LIFT-42", days_back=30, until=UNTIL)

        assert len(source.calls) == 4
        assert {call[1] for call in source.calls} == {"LIFT-42"}
        assert source.calls[0][2] == datetime(2024, 12, 1)
        assert result.records[RecordKind.VISIT] == [{"occurredAt": "2024-12-01"}]
        assert result.records[RecordKind.PART_REPLACEMENT] == [{"repairRequestNumber": "RR-1"}]
        assert result.records[RecordKind.BREAKDOWN] == []
        assert result.stats["fetches_succeeded"] == 4
        assert result.stats["total_records"] == 2
        assert not result.is_partial

    @pytest.mark.asyncio
    async def test_failed_fetch_degrades_to_empty(self):
        source = FakeSource(
            {RecordKind.VISIT: [{"occurredAt": "2024-12-01"}]},
            failing=(RecordKind.BREAKDOWN,),
        )

        result = await collect_unit_records(source, "LIFT-42", until=UNTIL)

        assert result.is_partial
        assert result.records[RecordKind.BREAKDOWN] == []
        assert result.records[RecordKind.VISIT] == [{"occurredAt": "2024-12-01"}]
        assert result.stats["fetches_failed"] == 1
        assert result.errors == [
            {"kind": "breakdown", "error": "ConnectionError: reporting backend unavailable"}
        ]

    @pytest.mark.asyncio
    async def test_engine_input_runs(self, engine, rr001_records):
        source = FakeSource(
            {
                RecordKind.VISIT: rr001_records["visits"],
                RecordKind.BREAKDOWN: rr001_records["breakdowns"],
                RecordKind.PART_REPLACEMENT: rr001_records["part_requests"],
            }
        )

        collection = await collect_unit_records(source, "LIFT-42", until=UNTIL)
        result = engine.run(**collection.engine_input())

        assert result.linked_parts[0].linked_visit_event_id == "evt_003"


class TestJsonDirectorySource:
    """Reading collections from JSON files."""

    @pytest.mark.asyncio
    async def test_reads_unit_directory(self, tmp_path):
        unit_dir = tmp_path / "LIFT-42"
        unit_dir.mkdir()
        (unit_dir / "visits.json").write_text(
            json.dumps([{"occurredAt": "2024-12-01"}, {"occurredAt": "2023-01-01"}]),
            encoding="utf-8",
        )

        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.VISIT, "LIFT-42", datetime(2024, 10, 1), UNTIL
        )

        assert rows == [{"occurredAt": "2024-12-01"}]

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.BREAKDOWN, "LIFT-42", datetime(2024, 10, 1), UNTIL
        )
        assert rows == []

    @pytest.mark.asyncio
    async def test_filters_other_units(self, tmp_path):
        (tmp_path / "part_requests.json").write_text(
            json.dumps(
                {
                    "data": [
                        {"unitId": "LIFT-42", "requestedAt": "2024-12-01"},
                        {"unitId": "LIFT-7", "requestedAt": "2024-12-01"},
                        {"requestedAt": "2024-12-02"},
                    ]
                }
            ),
            encoding="utf-8",
        )

        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.PART_REPLACEMENT, "LIFT-42", datetime(2024, 10, 1), UNTIL
        )

        assert rows == [
            {"unitId": "LIFT-42", "requestedAt": "2024-12-01"},
            {"requestedAt": "2024-12-02"},
        ]

    @pytest.mark.asyncio
    async def test_completed_parts_filtered_on_replacement_date(self, tmp_path):
        (tmp_path / "part_requests.json").write_text(
            json.dumps(
                [
                    {"requestedAt": "2024-01-01", "status": "DONE", "completedAt": "2024-03-20"},
                    {"requestedDate": "2024-01-01", "status": "DONE", "stateStartDate": "2024-03-21"},
                    {"requestedAt": "2024-01-01", "status": "DONE", "completedAt": "2024-02-10"},
                    {"requestedAt": "2024-01-01", "status": "ORDERED", "completedAt": "2024-03-20"},
                    {"requestedAt": "2024-03-10", "status": "ORDERED"},
                ]
            ),
            encoding="utf-8",
        )

        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.PART_REPLACEMENT, "LIFT-42", datetime(2024, 3, 1), datetime(2024, 3, 31)
        )

        assert [row.get("completedAt") or row.get("stateStartDate") for row in rows] == [
            "2024-03-20",
            "2024-03-21",
            None,
        ]

    @pytest.mark.asyncio
    async def test_keeps_breakdown_open_into_window(self, tmp_path):
        (tmp_path / "breakdowns.json").write_text(
            json.dumps(
                [
                    {"startedAt": "2024-09-20T08:00:00", "endedAt": None},
                    {"startedAt": "2024-09-20T08:00:00", "endedAt": "2024-10-02T08:00:00"},
                    {"startedAt": "2024-09-20T08:00:00", "endedAt": "2024-09-21T08:00:00"},
                ]
            ),
            encoding="utf-8",
        )

        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.BREAKDOWN, "LIFT-42", datetime(2024, 10, 1), UNTIL
        )

        assert len(rows) == 2
        assert rows[0]["endedAt"] is None

    @pytest.mark.asyncio
    async def test_unparseable_date_kept_for_normalizer(self, tmp_path):
        (tmp_path / "visits.json").write_text(
            json.dumps([{"occurredAt": "not a date"}]), encoding="utf-8"
        )

        rows = await JsonDirectorySource(tmp_path).fetch(
            RecordKind.VISIT, "LIFT-42", datetime(2024, 10, 1), UNTIL
        )

        assert rows == [{"occurredAt": "not a date"}]
