"""Record normalization: dates, free text and raw source rows."""

from liftdiag.normalization.normalizer import MalformedRecord, RecordNormalizer

__all__ = ["MalformedRecord", "RecordNormalizer"]
