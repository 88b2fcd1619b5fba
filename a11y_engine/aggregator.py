"""Merge analysis results into one severity-ranked view."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List

from .errors import NoResultsError
from .models import AccessibilityIssue, AnalysisResult
from .wcag_rules import SEVERITY_RANK

logger = logging.getLogger(__name__)


def severity_rank(issue: AccessibilityIssue) -> int:
    return SEVERITY_RANK.get(issue.severity, len(SEVERITY_RANK))


def rank_issues(issues: Iterable[AccessibilityIssue]) -> List[AccessibilityIssue]:
    """Order by severity; ``sorted`` is stable so ties keep insertion order."""
    return sorted(issues, key=severity_rank)


def aggregate(results: Iterable[AnalysisResult]) -> AnalysisResult:
    """
    Combine ``results`` into a single ranked result.

    The summary is recomputed from the merged issue list rather than summed
    from the per-run summaries.  With no results the outcome is an empty,
    all-zero result; with one result it is that result re-ranked.
    """
    results = list(results)
    merged: List[AccessibilityIssue] = []
    for result in results:
        merged.extend(result.issues)

    analysis_types = {r.analysis_type for r in results}
    analysis_type = analysis_types.pop() if len(analysis_types) == 1 else "combined"
    project_paths = {r.project_path for r in results if r.project_path}
    urls = {r.url for r in results if r.url}
    pages: List[str] = []
    for result in results:
        pages.extend(p for p in result.pages if p not in pages)

    return AnalysisResult(
        issues=rank_issues(merged),
        analysis_type=analysis_type,
        project_path=project_paths.pop() if len(project_paths) == 1 else None,
        url=urls.pop() if len(urls) == 1 else None,
        pages=pages,
    )


class AnalysisSession:
    """
    Accumulates results across analysis calls for one front-end session.

    ``add`` is the only shared write point and is guarded by a lock so
    concurrent tool calls can append safely.
    """

    def __init__(self) -> None:
        self._results: List[AnalysisResult] = []
        self._lock = threading.Lock()

    def add(self, result: AnalysisResult) -> None:
        with self._lock:
            self._results.append(result)
        logger.info(
            "Recorded %s result with %d issues (%d results in session)",
            result.analysis_type,
            len(result.issues),
            len(self._results),
        )

    @property
    def results(self) -> List[AnalysisResult]:
        with self._lock:
            return list(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def aggregate(self) -> AnalysisResult:
        return aggregate(self.results)

    def require_results(self) -> AnalysisResult:
        """Aggregate for reporting; reporting on an empty session is an error."""
        results = self.results
        if not results:
            raise NoResultsError(
                "No analysis results available. Please run static or dynamic analysis first."
            )
        return aggregate(results)
