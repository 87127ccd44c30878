"""Part linkage: component derivation, visit/breakdown linking and deduplication."""

from liftdiag.linking.dedup import DedupResult, Deduplicator
from liftdiag.linking.resolver import LinkTier, PartLinkageResolver

__all__ = ["DedupResult", "Deduplicator", "LinkTier", "PartLinkageResolver"]
