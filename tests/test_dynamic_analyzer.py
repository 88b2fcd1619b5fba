"""Tests for dynamic analysis and axe-core result normalization."""

from __future__ import annotations

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from a11y_engine.dynamic_analyzer import (
    DynamicAnalyzer,
    extract_wcag_info,
    map_impact,
    normalize_violations,
    run_dynamic_analysis,
)
from a11y_engine.errors import AnalysisTimeoutError, InvalidTargetError, PageAnalysisError


# ---------------------------------------------------------------------------
# Fake browser capability
# ---------------------------------------------------------------------------

def _violation(rule="image-alt", impact="critical", tags=("wcag2a", "wcag111"), nodes=1):
    return {
        "id": rule,
        "impact": impact,
        "tags": list(tags),
        "description": f"{rule} description",
        "help": f"{rule} help",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.9/{rule}",
        "nodes": [
            {"html": f"<img id='n{i}'>", "target": [f"#n{i}"]} for i in range(nodes)
        ],
    }


class FakeSession:
    """Stands in for the Playwright capability; records what was opened and closed."""

    def __init__(self, audits=None, failures=None, delays=None):
        self.audits = audits or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.opened = []
        self.closed = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True

    async def load_page(self, url, timeout_ms, wait_for_selector=None):
        self.opened.append(url)
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        if url in self.failures:
            raise self.failures[url]
        return url

    async def run_audit(self, handle):
        return self.audits.get(handle, {"violations": []})

    async def close(self, handle):
        self.closed.append(handle)


def _run(session, url, pages=None, timeout_ms=30_000):
    return run_dynamic_analysis(
        url, pages=pages, timeout_ms=timeout_ms, session_factory=lambda: session
    )


# ---------------------------------------------------------------------------
# Tests: normalization
# ---------------------------------------------------------------------------

class TestNormalize:
    def test_one_issue_per_node(self):
        issues = normalize_violations({"violations": [_violation(nodes=3)]})
        assert len(issues) == 3
        assert {i.rule for i in issues} == {"image-alt"}
        assert [i.selector for i in issues] == ["#n0", "#n1", "#n2"]
        assert all(i.help_text == "image-alt help" for i in issues)
        assert all(i.source == "dynamic" and i.file is None for i in issues)

    def test_ids_unique_and_page_scoped(self):
        raw = {"violations": [_violation(nodes=2), _violation(rule="label", nodes=1)]}
        ids = [i.id for i in normalize_violations(raw, "https://a.test/")]
        assert len(set(ids)) == 3
        assert ids[0] == "https://a.test/#axe-image-alt-0-0"

    def test_unknown_impact_maps_to_minor(self):
        issues = normalize_violations({"violations": [_violation(impact="blocker")]})
        assert issues[0].severity == "minor"

    @pytest.mark.parametrize("impact", ["critical", "serious", "moderate", "minor"])
    def test_known_impacts_map_directly(self, impact):
        assert map_impact(impact) == impact

    def test_missing_impact_maps_to_minor(self):
        assert map_impact(None) == "minor"
        assert map_impact(["serious"]) == "minor"

    def test_malformed_input_never_raises(self):
        assert normalize_violations(None) == []
        assert normalize_violations({"violations": None}) == []
        raw = {"violations": ["junk", {"id": "x", "nodes": ["junk", {}]}]}
        issues = normalize_violations(raw)
        assert len(issues) == 2
        assert issues[0].selector is None
        assert issues[0].wcag_criterion == "Unknown"

    def test_nested_shadow_dom_target_is_flattened(self):
        raw = {"violations": [{**_violation(), "nodes": [{"html": "<b>", "target": [["#host", "b"]]}]}]}
        assert normalize_violations(raw)[0].selector == "#host, b"


class TestWcagInfo:
    def test_level_from_tag_tokens(self):
        assert extract_wcag_info(["wcag2a"])[0] == "A"
        assert extract_wcag_info(["wcag2aa"])[0] == "AA"
        assert extract_wcag_info(["wcag21aa"])[0] == "AA"
        assert extract_wcag_info(["wcag2aaa"])[0] == "AAA"

    def test_criterion_from_compact_tag(self):
        assert extract_wcag_info(["cat.color", "wcag2aa", "wcag143"]) == ("AA", "1.4.3")
        assert extract_wcag_info(["wcag21aa", "wcag1410"]) == ("AA", "1.4.10")

    def test_criterion_from_dotted_tag(self):
        assert extract_wcag_info(["wcag2a", "1.1.1"]) == ("A", "1.1.1")

    def test_no_wcag_tag_falls_back(self):
        assert extract_wcag_info(["best-practice", "cat.semantics"]) == ("AA", "Unknown")
        assert extract_wcag_info([]) == ("AA", "Unknown")

    def test_level_without_criterion(self):
        assert extract_wcag_info(["wcag2a"]) == ("A", "Unknown")


# ---------------------------------------------------------------------------
# Tests: analyzer orchestration
# ---------------------------------------------------------------------------

class TestDynamicAnalyzer:
    def test_primary_and_secondary_pages(self):
        session = FakeSession(
            audits={
                "https://app.test/": {"violations": [_violation()]},
                "https://app.test/about": {"violations": [_violation(rule="label", impact="serious")]},
            }
        )
        result = _run(session, "https://app.test/", pages=["https://app.test/about"])
        assert result.analysis_type == "dynamic"
        assert result.url == "https://app.test/"
        assert result.pages == ("https://app.test/about",)
        assert [i.rule for i in result.issues] == ["image-alt", "label"]
        assert result.summary.total == 2
        assert sorted(session.closed) == sorted(session.opened)
        assert session.exited

    def test_secondary_failure_is_isolated(self, caplog):
        session = FakeSession(
            audits={"https://app.test/": {"violations": [_violation()]}},
            failures={"https://app.test/broken": RuntimeError("net::ERR_FAILED")},
        )
        result = _run(session, "https://app.test/", pages=["https://app.test/broken"])
        assert len(result.issues) == 1
        assert result.pages == ()
        assert "https://app.test/broken" in caplog.text

    def test_primary_failure_aborts_and_cancels_secondaries(self):
        session = FakeSession(
            failures={"https://app.test/": RuntimeError("net::ERR_NAME_NOT_RESOLVED")},
            delays={"https://app.test/slow": 5},
        )
        with pytest.raises(PageAnalysisError) as info:
            _run(session, "https://app.test/", pages=["https://app.test/slow"])
        assert info.value.target == "https://app.test/"
        assert isinstance(info.value.__cause__, RuntimeError)
        assert not isinstance(info.value, AnalysisTimeoutError)
        assert session.exited

    def test_timeout_is_distinct_error(self):
        session = FakeSession(delays={"https://app.test/": 1})
        with pytest.raises(AnalysisTimeoutError) as info:
            _run(session, "https://app.test/", timeout_ms=50)
        assert "50 ms" in str(info.value)
        assert session.exited

    def test_handle_closed_when_audit_fails(self):
        class FailingAudit(FakeSession):
            async def run_audit(self, handle):
                raise RuntimeError("axe not loaded")

        session = FailingAudit()
        with pytest.raises(PageAnalysisError):
            _run(session, "https://app.test/")
        assert session.closed == ["https://app.test/"]

    @pytest.mark.parametrize("url", ["", "not a url", "ftp://files.test/", "file:///tmp/x.html"])
    def test_invalid_url_is_input_error(self, url):
        session = FakeSession()
        with pytest.raises(InvalidTargetError):
            _run(session, url)
        assert not session.entered

    def test_invalid_secondary_url_is_input_error(self):
        with pytest.raises(InvalidTargetError):
            _run(FakeSession(), "https://app.test/", pages=["javascript:alert(1)"])

    def test_analyze_is_awaitable(self):
        analyzer = DynamicAnalyzer(lambda: FakeSession())
        result = asyncio.run(analyzer.analyze("http://localhost:4200/"))
        assert result.issues == ()

    def test_browser_start_failure_is_page_error(self):
        class NoBrowser(FakeSession):
            async def __aenter__(self):
                raise RuntimeError("Executable doesn't exist at /ms-playwright/chromium")

        with pytest.raises(PageAnalysisError) as info:
            _run(NoBrowser(), "https://app.test/")
        assert info.value.target == "https://app.test/"
        assert "Failed to start browser" in str(info.value)
        assert isinstance(info.value.__cause__, RuntimeError)
