"""Shared routine checklists whose tasks reset themselves on a rolling schedule."""

__version__ = "0.1.0"
