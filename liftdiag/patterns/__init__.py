"""Recurring problem detection and per-component summaries."""
