"""Evidence integrity validation."""

from liftdiag.validation.validator import EvidenceIntegrityViolation, EvidenceValidator, enforce

__all__ = ["EvidenceIntegrityViolation", "EvidenceValidator", "enforce"]
