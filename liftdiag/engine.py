"""Correlation engine: normalizes, orders, links, groups and validates one unit's records.

Stages run strictly forward on immutable results:

    Normalizer -> Timeline -> {Resolver, Detector, EventLinker}
        -> Deduplicator -> Component summaries -> Validator

The engine is synchronous and keeps no state between runs; identical input
always yields identical output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from liftdiag.config import EngineConfig
from liftdiag.linking.components import ComponentResolver
from liftdiag.linking.dedup import Deduplicator
from liftdiag.linking.events import EventLinker
from liftdiag.linking.keywords import KeywordCatalog
from liftdiag.linking.resolver import PartLinkageResolver, format_part_id
from liftdiag.models import CorrelationResult, RecordKind, RejectedRecord
from liftdiag.normalization.normalizer import RecordNormalizer
from liftdiag.patterns.components import summarize_components
from liftdiag.patterns.detector import PatternDetector
from liftdiag.timeline.builder import TimelineBuilder
from liftdiag.validation.validator import EvidenceValidator, enforce

logger = structlog.get_logger()

RawRecords = Iterable[Mapping[str, Any]]


class CorrelationEngine:
    """Evidence correlation for a single unit per invocation.

    Usage:
        engine = CorrelationEngine(EngineConfig(strict_validation=True))
        result = engine.run(visits=..., breakdowns=..., maintenance_issues=..., part_requests=...)
        payload = result.to_output()
    """

    def __init__(self, config: EngineConfig | None = None, catalog: KeywordCatalog | None = None):
        """Initialize engine.

        Args:
            config: Engine configuration (defaults when omitted)
            catalog: Keyword catalog (loaded from config.keywords_path when omitted)

        Raises:
            ConfigurationError: If the keyword file is invalid
        """
        self.config = config or EngineConfig()
        self.catalog = catalog or KeywordCatalog(self.config.keywords_path)

        self.normalizer = RecordNormalizer(self.config.ignored_problem_codes)
        self.timeline_builder = TimelineBuilder()
        self.components = ComponentResolver(self.catalog, self.config.component_match_threshold)
        self.resolver = PartLinkageResolver(
            self.catalog,
            self.components,
            breakdown_link_days=self.config.breakdown_link_days,
            issue_visit_days=self.config.issue_visit_days,
        )
        self.detector = PatternDetector(self.components, self.config.min_pattern_frequency)
        self.event_linker = EventLinker(self.config.issue_visit_days)

    def run(
        self,
        visits: RawRecords = (),
        breakdowns: RawRecords = (),
        maintenance_issues: RawRecords = (),
        part_requests: RawRecords = (),
        unit_id: str | None = None,
    ) -> CorrelationResult:
        """Correlate one unit's raw record collections.

        Args:
            visits: Raw visit rows
            breakdowns: Raw breakdown rows
            maintenance_issues: Raw maintenance issue rows
            part_requests: Raw part request rows
            unit_id: Unit identifier, bound to log context only

        Returns:
            CorrelationResult

        Raises:
            EvidenceIntegrityViolation: If validation fails and strict_validation is set
        """
        with structlog.contextvars.bound_contextvars(unit_id=unit_id):
            return self._run(visits, breakdowns, maintenance_issues, part_requests)

    def _run(
        self,
        visits: RawRecords,
        breakdowns: RawRecords,
        maintenance_issues: RawRecords,
        part_requests: RawRecords,
    ) -> CorrelationResult:
        rejected: list[RejectedRecord] = []
        normalized = {}
        for kind, raws in (
            (RecordKind.VISIT, visits),
            (RecordKind.BREAKDOWN, breakdowns),
            (RecordKind.MAINTENANCE_ISSUE, maintenance_issues),
            (RecordKind.PART_REPLACEMENT, part_requests),
        ):
            records, rejects = self.normalizer.normalize_batch(kind, raws)
            normalized[kind] = records
            rejected.extend(rejects)

        if rejected:
            logger.warning("records_rejected", count=len(rejected))

        timeline = self.timeline_builder.build(
            visits=normalized[RecordKind.VISIT],
            breakdowns=normalized[RecordKind.BREAKDOWN],
            issues=normalized[RecordKind.MAINTENANCE_ISSUE],
            part_requests=normalized[RecordKind.PART_REPLACEMENT],
        )

        linked = self.resolver.resolve(timeline)
        patterns = self.detector.detect(timeline)
        event_links = self.event_linker.link(timeline)

        dedup = Deduplicator(timeline).deduplicate(linked)
        if dedup.removed_count:
            logger.warning(
                "duplicate_part_keys",
                keys=[list(key) for key in dedup.duplicates],
                removed=dedup.removed_count,
            )

        # Surviving parts are renumbered so ids stay contiguous
        linked_parts = [
            part.model_copy(update={"part_id": format_part_id(sequence)})
            for sequence, part in enumerate(dedup.parts, start=1)
        ]

        components = summarize_components(timeline, patterns, self.detector)

        validation = EvidenceValidator(timeline).validate(
            linked_parts=linked_parts,
            patterns=patterns,
            event_links=event_links,
            components=components,
        )
        if not validation.valid:
            logger.warning("validation_failed", violations=len(validation.violations))
        enforce(validation, self.config.strict_validation)

        logger.info(
            "correlation_complete",
            events=len(timeline),
            linked_parts=len(linked_parts),
            patterns=len(patterns),
            event_links=len(event_links),
            valid=validation.valid,
        )

        return CorrelationResult(
            timeline=timeline.events,
            linked_parts=tuple(linked_parts),
            patterns=tuple(patterns),
            event_links=tuple(event_links),
            components=tuple(components),
            validation=validation,
            rejected_records=tuple(rejected),
            duplicates_removed=dedup.removed_count,
        )
