"""Duplicate-detection sample."""

from .sample import receive, run, send

__all__ = ["receive", "run", "send"]
