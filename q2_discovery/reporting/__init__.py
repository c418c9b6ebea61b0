"""Reporting module - JSON reports of discovery cycles."""

from .json_reporter import JsonReporter

__all__ = ["JsonReporter"]
