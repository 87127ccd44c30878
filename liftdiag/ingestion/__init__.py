"""Record collection boundary.

Fetches a unit's four raw record collections in parallel and parses
lookback windows from free-text context.
"""

from liftdiag.ingestion.lookback import parse_days_from_context
from liftdiag.ingestion.sources import (
    CollectionResult,
    JsonDirectorySource,
    collect_unit_records,
    parse_source_payload,
)

__all__ = [
    "CollectionResult",
    "JsonDirectorySource",
    "collect_unit_records",
    "parse_days_from_context",
    "parse_source_payload",
]
