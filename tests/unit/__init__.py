"""Unit tests for liftdiag modules."""
