"""Taste-to-lead: vibe matching and virtual staging pipeline."""

__version__ = "0.1.0"
