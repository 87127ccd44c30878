"""Chronological timeline with stable evidence ids."""
