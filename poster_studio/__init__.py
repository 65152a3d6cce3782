"""Poster Studio: branded poster editor with a confirmation-gated design prompt."""

__version__ = "1.0.0"
