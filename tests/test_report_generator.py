"""Tests for the PDF accessibility report and the Markdown summary."""

from __future__ import annotations

import os
import sys

import pytest
import fitz  # PyMuPDF

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from a11y_engine.aggregator import aggregate
from a11y_engine.models import AccessibilityIssue, AnalysisResult
from a11y_engine.report_generator import format_summary, generate_accessibility_report


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_SAMPLE_ISSUES = [
    AccessibilityIssue(
        id="src/app/home.html#img-alt-0",
        rule_id="img-alt",
        rule="Images must have alternative text",
        severity="critical",
        wcag_level="A",
        wcag_criterion="1.1.1",
        description="All img elements must have an alt attribute",
        help_text="Add an alt attribute that describes the image.",
        wcag_url="https://www.w3.org/WAI/WCAG21/Understanding/non-text-content.html",
        element='<img src="logo.png">',
        selector="img",
        file="src/app/home.html",
        line=12,
        source="static",
    ),
    AccessibilityIssue(
        id="https://app.test/#axe-color-contrast-0-0",
        rule_id="color-contrast",
        rule="color-contrast",
        severity="serious",
        wcag_level="AA",
        wcag_criterion="1.4.3",
        description="Ensures the contrast between foreground and background colors meets thresholds",
        help_text="Elements must have sufficient color contrast",
        wcag_url="https://dequeuniversity.com/rules/axe/4.9/color-contrast",
        element="<p class='muted'>Fine print</p>",
        selector="p.muted",
        source="dynamic",
    ),
    AccessibilityIssue(
        id="src/styles.scss#focus-visible-0",
        rule_id="focus-visible",
        rule="Focus indicators must be visible",
        severity="serious",
        wcag_level="AA",
        wcag_criterion="2.4.7",
        description="Interactive elements must have visible focus indicators",
        help_text="Provide a :focus style when removing the default outline.",
        wcag_url="https://www.w3.org/WAI/WCAG21/Understanding/focus-visible.html",
        element="outline: none",
        file="src/styles.scss",
        line=3,
        source="static",
    ),
]


def _combined(issues=_SAMPLE_ISSUES) -> AnalysisResult:
    return aggregate([
        AnalysisResult(issues=issues, analysis_type="static", project_path="/srv/shop"),
        AnalysisResult(issues=(), analysis_type="dynamic", url="https://app.test/",
                       pages=("https://app.test/cart",)),
    ])


def _text(pdf_bytes: bytes) -> str:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    text = "".join(doc[i].get_text() for i in range(doc.page_count))
    doc.close()
    return text


# ---------------------------------------------------------------------------
# Tests: PDF
# ---------------------------------------------------------------------------


class TestReportGenerator:
    def test_returns_valid_pdf_bytes(self):
        result = generate_accessibility_report(_combined())
        assert isinstance(result, bytes)
        assert result[:5] == b"%PDF-"

    def test_report_can_be_opened_by_pymupdf(self):
        doc = fitz.open(stream=generate_accessibility_report(_combined()), filetype="pdf")
        assert doc.page_count >= 1
        doc.close()

    def test_report_contains_targets(self):
        text = _text(generate_accessibility_report(_combined()))
        assert "combined" in text
        assert "/srv/shop" in text
        assert "https://app.test/" in text
        assert "https://app.test/cart" in text

    def test_report_contains_issue_rules_and_locations(self):
        text = _text(generate_accessibility_report(_combined()))
        assert "Images must have alternative text" in text
        assert "color-contrast" in text
        assert "src/app/home.html:12" in text
        assert "p.muted" in text

    def test_report_contains_severity_counts(self):
        text = _text(generate_accessibility_report(_combined()))
        assert "Critical: 1" in text
        assert "Serious: 2" in text
        assert "Moderate: 0" in text
        assert "Total: 3" in text

    def test_wcag_links_can_be_omitted(self):
        with_links = _text(generate_accessibility_report(_combined()))
        without = _text(generate_accessibility_report(_combined(), include_wcag_links=False))
        assert "dequeuniversity.com" in with_links
        assert "dequeuniversity.com" not in without

    def test_report_with_no_issues(self):
        text = _text(generate_accessibility_report(_combined(issues=())))
        assert "No accessibility issues" in text
        assert "Total: 0" in text

    def test_report_metadata_title_is_set(self):
        pdf = generate_accessibility_report(_combined(), title="Shop audit")
        doc = fitz.open(stream=pdf, filetype="pdf")
        assert doc.metadata.get("title") == "Shop audit"
        doc.close()
        assert "Shop audit" in _text(pdf)

    def test_report_with_many_issues_spans_multiple_pages(self):
        """A large number of issues should produce a multi-page report."""
        many_issues = [
            AccessibilityIssue(
                id=f"src/page{i}.html#img-alt-0",
                rule_id="img-alt",
                rule="Images must have alternative text",
                severity="critical",
                wcag_level="A",
                wcag_criterion="1.1.1",
                description="All img elements must have an alt attribute",
                help_text="Add an alt attribute that describes the image.",
                wcag_url="https://www.w3.org/WAI/WCAG21/Understanding/non-text-content.html",
                element=f'<img src="hero-{i}.png">',
                file=f"src/page{i}.html",
                line=i + 1,
                source="static",
            )
            for i in range(40)
        ]
        pdf = generate_accessibility_report(_combined(issues=many_issues))
        doc = fitz.open(stream=pdf, filetype="pdf")
        assert doc.page_count > 1
        doc.close()


# ---------------------------------------------------------------------------
# Tests: Markdown summary
# ---------------------------------------------------------------------------


class TestFormatSummary:
    def test_lists_counts_and_top_issues(self):
        text = format_summary(_combined())
        assert "**Total Issues Found:** 3" in text
        assert "[CRITICAL] **Critical:** 1 issues" in text
        assert "1. [CRITICAL] **Images must have alternative text** (1.1.1)" in text
        assert "File: src/app/home.html:12" in text
        assert "Element: p.muted" in text

    def test_truncates_after_limit(self):
        text = format_summary(_combined(), limit=1)
        assert "*...and 2 more issues*" in text
        assert "color-contrast" not in text

    def test_no_truncation_note_within_limit(self):
        assert "more issues" not in format_summary(_combined())

    @pytest.mark.parametrize("limit", [0, 3])
    def test_empty_result(self, limit):
        text = format_summary(AnalysisResult(issues=(), analysis_type="static"), limit=limit)
        assert "**Total Issues Found:** 0" in text
        assert "more issues" not in text
