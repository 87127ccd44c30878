"""Pytest configuration and fixtures for liftdiag tests.

Provides the RR-001 sample unit history and helpers that turn raw rows into
a timeline without going through the full engine.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from liftdiag.config import EngineConfig, reset_config
from liftdiag.engine import CorrelationEngine
from liftdiag.linking.components import ComponentResolver
from liftdiag.linking.keywords import KeywordCatalog
from liftdiag.linking.resolver import PartLinkageResolver
from liftdiag.models import RecordKind
from liftdiag.normalization.normalizer import RecordNormalizer
from liftdiag.timeline.builder import Timeline, TimelineBuilder

Rows = list[dict[str, Any]]


@pytest.fixture(autouse=True)
def _fresh_config():
    """Each test sees configuration rebuilt from its own environment."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def catalog() -> KeywordCatalog:
    """Keyword catalog with built-in defaults."""
    return KeywordCatalog()


@pytest.fixture
def components(catalog: KeywordCatalog) -> ComponentResolver:
    return ComponentResolver(catalog, match_threshold=85)


@pytest.fixture
def resolver(catalog: KeywordCatalog, components: ComponentResolver) -> PartLinkageResolver:
    return PartLinkageResolver(catalog, components, breakdown_link_days=2, issue_visit_days=1)


@pytest.fixture
def engine(catalog: KeywordCatalog) -> CorrelationEngine:
    """Lenient engine with default thresholds and built-in keywords."""
    return CorrelationEngine(EngineConfig(), catalog)


@pytest.fixture
def build_timeline() -> Callable[..., Timeline]:
    """Normalize raw rows and build a timeline from them."""

    def _build(
        visits: Rows = (),
        breakdowns: Rows = (),
        maintenance_issues: Rows = (),
        part_requests: Rows = (),
    ) -> Timeline:
        normalizer = RecordNormalizer()
        return TimelineBuilder().build(
            visits=normalizer.normalize_batch(RecordKind.VISIT, visits)[0],
            breakdowns=normalizer.normalize_batch(RecordKind.BREAKDOWN, breakdowns)[0],
            issues=normalizer.normalize_batch(RecordKind.MAINTENANCE_ISSUE, maintenance_issues)[0],
            part_requests=normalizer.normalize_batch(RecordKind.PART_REPLACEMENT, part_requests)[0],
        )

    return _build


@pytest.fixture
def rr001_records() -> dict[str, Rows]:
    """Sample unit history: one UPS battery replacement during a power supply breakdown."""
    return {
        "visits": [
            {
                "completedDate": "2024-12-01",
                "fullName": "J. Martin",
                "visitType": "REGULAR",
                "globalComment": "Routine maintenance completed. All systems operational.",
            },
            {
                "completedDate": "2024-12-05",
                "fullName": "A. Dupont",
                "visitType": "REPAIR",
                "globalComment": "Supplied and fitted new UPS battery. System tested OK.",
            },
        ],
        "breakdowns": [
            {
                "id": "bd-001",
                "startTime": "2024-12-04T10:30:00",
                "endTime": "2024-12-05T14:00:00",
                "originTag": "technical",
                "failureLocations": ["Power Supply"],
            }
        ],
        "maintenance_issues": [],
        "part_requests": [
            {
                "repairRequestNumber": "RR-001",
                "partName": "Osram Power supply TFOS02550",
                "requestedDate": "2024-12-04",
                "status": "DONE",
                "stateStartDate": "2024-12-05",
                "hasPartAttached": True,
            }
        ],
    }

