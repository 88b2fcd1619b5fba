"""Tests for result aggregation and per-session accumulation."""

from __future__ import annotations

import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from a11y_engine.aggregator import AnalysisSession, aggregate, rank_issues
from a11y_engine.errors import NoResultsError
from a11y_engine.models import AccessibilityIssue, AnalysisResult


def _issue(issue_id: str, severity: str, source: str = "static") -> AccessibilityIssue:
    return AccessibilityIssue(
        id=issue_id,
        rule=issue_id,
        severity=severity,
        wcag_level="A",
        wcag_criterion="1.1.1",
        description="",
        help_text="",
        wcag_url="",
        source=source,
    )


def _static(*issues, project_path="/srv/app"):
    return AnalysisResult(issues=issues, analysis_type="static", project_path=project_path)


def _dynamic(*issues, url="https://app.test/", pages=()):
    return AnalysisResult(issues=issues, analysis_type="dynamic", url=url, pages=pages)


class TestAggregate:
    def test_empty_input_is_empty_combined(self):
        result = aggregate([])
        assert result.issues == ()
        assert result.analysis_type == "combined"
        assert result.summary.to_dict() == {
            "total": 0, "critical": 0, "serious": 0, "moderate": 0, "minor": 0,
        }

    def test_single_result_keeps_type_and_target(self):
        result = aggregate([_static(_issue("a", "minor"), _issue("b", "critical"))])
        assert result.analysis_type == "static"
        assert result.project_path == "/srv/app"
        assert [i.id for i in result.issues] == ["b", "a"]

    def test_mixed_types_are_combined(self):
        result = aggregate([_static(_issue("s", "moderate")), _dynamic(_issue("d", "serious", "dynamic"))])
        assert result.analysis_type == "combined"
        assert result.project_path == "/srv/app"
        assert result.url == "https://app.test/"
        assert [i.id for i in result.issues] == ["d", "s"]

    def test_sort_is_stable_within_severity(self):
        first = _static(_issue("s1", "serious"), _issue("m1", "minor"), _issue("s2", "serious"))
        second = _dynamic(_issue("s3", "serious", "dynamic"), _issue("c1", "critical", "dynamic"))
        result = aggregate([first, second])
        assert [i.id for i in result.issues] == ["c1", "s1", "s2", "s3", "m1"]

    def test_summary_matches_issue_list(self):
        result = aggregate([
            _static(_issue("a", "critical"), _issue("b", "minor")),
            _static(_issue("c", "critical"), _issue("d", "moderate")),
        ])
        summary = result.summary
        assert summary.total == len(result.issues) == 4
        assert summary.critical + summary.serious + summary.moderate + summary.minor == summary.total
        assert summary.critical == 2

    def test_idempotent_on_combined_output(self):
        once = aggregate([_static(_issue("a", "minor"), _issue("b", "serious")), _dynamic(_issue("c", "critical"))])
        twice = aggregate([once])
        assert [i.id for i in twice.issues] == [i.id for i in once.issues]
        assert twice.summary == once.summary

    def test_distinct_targets_are_dropped(self):
        result = aggregate([_dynamic(url="https://a.test/"), _dynamic(url="https://b.test/")])
        assert result.url is None

    def test_pages_merged_without_duplicates(self):
        result = aggregate([
            _dynamic(pages=("https://app.test/a",)),
            _dynamic(pages=("https://app.test/a", "https://app.test/b")),
        ])
        assert result.pages == ("https://app.test/a", "https://app.test/b")

    def test_rank_issues_unknown_severity_sorts_last(self):
        ranked = rank_issues([_issue("x", "unknown"), _issue("y", "minor")])
        assert [i.id for i in ranked] == ["y", "x"]


class TestAnalysisSession:
    def test_accumulates_and_aggregates(self):
        session = AnalysisSession()
        session.add(_static(_issue("a", "minor")))
        session.add(_dynamic(_issue("b", "critical", "dynamic")))
        assert len(session.results) == 2
        assert [i.id for i in session.aggregate().issues] == ["b", "a"]

    def test_results_is_a_copy(self):
        session = AnalysisSession()
        session.add(_static())
        session.results.clear()
        assert len(session.results) == 1

    def test_clear_empties_session(self):
        session = AnalysisSession()
        session.add(_static(_issue("a", "minor")))
        session.clear()
        assert session.results == []
        assert session.aggregate().summary.total == 0

    def test_require_results_on_empty_session(self):
        with pytest.raises(NoResultsError):
            AnalysisSession().require_results()

    def test_concurrent_adds_are_not_lost(self):
        session = AnalysisSession()
        threads = [
            threading.Thread(target=session.add, args=(_static(_issue(str(n), "minor")),))
            for n in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(session.results) == 20
