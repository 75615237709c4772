"""Destructive wipe orchestrator for block storage devices."""

__version__ = "0.1.0"
