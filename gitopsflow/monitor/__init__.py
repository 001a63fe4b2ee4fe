"""Terminal rendering of Pipeline Run reports."""

from gitopsflow.monitor.renderer import ReportRenderer

__all__ = ["ReportRenderer"]
