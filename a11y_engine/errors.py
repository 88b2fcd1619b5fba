"""Exceptions raised by the Web Accessibility Engine."""

from __future__ import annotations

from typing import Optional


class A11yError(Exception):
    """Base class for analysis failures; ``target`` names what failed."""

    def __init__(self, message: str, target: Optional[str] = None) -> None:
        super().__init__(message)
        self.target = target


class InvalidTargetError(A11yError, ValueError):
    """Raised when a project path or URL is unusable before analysis starts."""


class PageAnalysisError(A11yError):
    """Raised when the primary target of a run cannot be analysed."""


class AnalysisTimeoutError(PageAnalysisError):
    """Raised when a page load or audit exceeds its time limit."""


class NoResultsError(A11yError):
    """Raised when a report is requested before any analysis has run."""
