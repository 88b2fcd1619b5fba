"""Render aggregated accessibility results as a PDF report or Markdown summary."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from .models import AccessibilityIssue, AnalysisResult
from .wcag_rules import SEVERITIES

Color = Tuple[float, float, float]

# ---------------------------------------------------------------------------
# Palette and page geometry
# ---------------------------------------------------------------------------

SEVERITY_COLORS = {
    "critical": (0.78, 0.10, 0.12),
    "serious": (0.88, 0.45, 0.08),
    "moderate": (0.72, 0.58, 0.05),
    "minor": (0.38, 0.38, 0.42),
}
SEVERITY_MARKERS = {sev: f"[{sev.upper()}]" for sev in SEVERITIES}

BANNER = (0.12, 0.27, 0.42)
TEXT = (0.15, 0.15, 0.18)
MUTED = (0.42, 0.42, 0.46)
LINK = (0.05, 0.28, 0.68)
OK = (0.10, 0.50, 0.20)
DIVIDER = (0.78, 0.78, 0.80)

PAGE_SIZE = fitz.paper_size("letter")
MARGIN = 54
BOTTOM = PAGE_SIZE[1] - 40


class _Canvas:
    """Cursor over a growing document; starts a page whenever one fills up."""

    def __init__(self, doc: fitz.Document, footer: str) -> None:
        self.doc = doc
        self.footer = footer
        self.page: Optional[fitz.Page] = None
        self.y = 0.0
        self.width = PAGE_SIZE[0] - 2 * MARGIN

    def reserve(self, height: float) -> None:
        if self.page is None or self.y + height > BOTTOM:
            self._start_page()

    def _start_page(self) -> None:
        self.page = self.doc.new_page(width=PAGE_SIZE[0], height=PAGE_SIZE[1])
        self.y = MARGIN
        footer_y = PAGE_SIZE[1] - 28
        self.page.insert_text((MARGIN, footer_y), self.footer, fontsize=7, color=MUTED)
        self.page.insert_text(
            (PAGE_SIZE[0] - MARGIN - 32, footer_y),
            f"Page {self.doc.page_count}",
            fontsize=7,
            color=MUTED,
        )

    def text(
        self,
        content: str,
        size: float = 10,
        color: Color = TEXT,
        bold: bool = False,
        indent: float = 0,
        after: float = 2,
    ) -> None:
        font = "hebo" if bold else "helv"
        leading = size * 1.35
        for line in _wrap_text(content, font, size, self.width - indent):
            self.reserve(leading)
            self.page.insert_text(
                (MARGIN + indent, self.y + size), line, fontsize=size, fontname=font, color=color
            )
            self.y += leading
        self.y += after

    def divider(self) -> None:
        self.reserve(8)
        self.page.draw_line(
            (MARGIN, self.y), (PAGE_SIZE[0] - MARGIN, self.y), color=DIVIDER, width=0.5
        )
        self.y += 8

    def banner(self, title: str) -> None:
        self.reserve(60)
        box = fitz.Rect(MARGIN, self.y, PAGE_SIZE[0] - MARGIN, self.y + 46)
        self.page.draw_rect(box, color=BANNER, fill=BANNER)
        self.page.insert_text(
            (MARGIN + 12, self.y + 29), title, fontsize=18, fontname="hebo", color=(1, 1, 1)
        )
        self.y += 58


def generate_accessibility_report(
    result: AnalysisResult,
    title: str = "Accessibility Analysis Report",
    include_wcag_links: bool = True,
) -> bytes:
    """Return a self-contained PDF (as bytes) listing the issues in ``result``.

    Parameters
    ----------
    result:
        Usually the output of ``aggregate``; issues are printed in the order
        given, so pass a ranked result.
    title:
        Heading printed in the report banner and stored as PDF metadata.
    include_wcag_links:
        Print the WCAG reference URL under each issue.
    """
    doc = fitz.open()
    canvas = _Canvas(doc, f"{title} - generated {datetime.now(timezone.utc):%Y-%m-%d %H:%M UTC}")
    summary = result.summary

    canvas.banner(title)
    canvas.text(f"Analysis Type: {result.analysis_type}", size=11, bold=True)
    canvas.text(f"Timestamp: {result.timestamp}")
    if result.project_path:
        canvas.text(f"Project: {result.project_path}")
    if result.url:
        canvas.text(f"URL: {result.url}")
    for extra in result.pages:
        canvas.text(f"Also analysed: {extra}", size=9, color=MUTED, indent=8)

    canvas.divider()
    canvas.text("Issue Summary", size=12, bold=True, after=4)
    for sev in SEVERITIES:
        canvas.text(f"{sev.capitalize()}: {getattr(summary, sev)}", color=SEVERITY_COLORS[sev], indent=8)
    canvas.text(f"Total: {summary.total}", bold=True, indent=8, after=8)

    canvas.divider()
    canvas.text("Detailed Issues", size=13, bold=True, after=6)
    if not result.issues:
        canvas.text(
            "No accessibility issues were detected by the checks performed. "
            "Automated checks cover only part of WCAG; manual review is still required.",
            color=OK,
        )
    for number, issue in enumerate(result.issues, 1):
        _draw_issue(canvas, number, issue, include_wcag_links)

    doc.set_metadata({"title": title, "subject": "WCAG accessibility analysis"})
    data = doc.tobytes()
    doc.close()
    return data


def _draw_issue(canvas: _Canvas, number: int, issue: AccessibilityIssue, with_link: bool) -> None:
    # Keep the heading on the same page as its first detail line
    canvas.reserve(48)
    canvas.text(
        f"{number}. [{issue.severity.capitalize()}] {issue.rule}",
        bold=True,
        color=SEVERITY_COLORS.get(issue.severity, TEXT),
    )
    canvas.text(
        f"WCAG {issue.wcag_criterion} (Level {issue.wcag_level})  |  {issue.source}  |  "
        f"{_location(issue)}",
        size=8,
        color=MUTED,
        indent=12,
    )
    if issue.description:
        canvas.text(issue.description, size=9, indent=12)
    if issue.element:
        canvas.text(f"Element: {issue.element[:200]}", size=8, color=MUTED, indent=12)
    if issue.help_text:
        canvas.text(f"How to fix: {issue.help_text}", size=9, color=MUTED, indent=12)
    if with_link and issue.wcag_url:
        canvas.text(issue.wcag_url, size=8, color=LINK, indent=12)
    canvas.y += 4


def format_summary(result: AnalysisResult, limit: int = 10) -> str:
    """Return a Markdown summary listing the first ``limit`` issues."""
    summary = result.summary
    lines = [
        "# Accessibility Analysis Summary",
        "",
        f"**Analysis Type:** {result.analysis_type}",
        f"**Timestamp:** {result.timestamp}",
        f"**Total Issues Found:** {summary.total}",
        "",
        "## Issue Breakdown by Severity:",
    ]
    for sev in SEVERITIES:
        lines.append(f"- {SEVERITY_MARKERS[sev]} **{sev.capitalize()}:** {getattr(summary, sev)} issues")

    lines += ["", "## Top Issues Found:"]
    for index, issue in enumerate(result.issues[:limit], 1):
        lines.append(
            f"{index}. {SEVERITY_MARKERS.get(issue.severity, '')} **{issue.rule}** "
            f"({issue.wcag_criterion})"
        )
        lines.append(f"   {issue.description}")
        lines.append(f"   {_location(issue)}")
    remaining = len(result.issues) - limit
    if remaining > 0:
        lines += ["", f"*...and {remaining} more issues*"]
    return "\n".join(lines)


def _location(issue: AccessibilityIssue) -> str:
    if issue.file:
        return f"File: {issue.file}" + (f":{issue.line}" if issue.line else "")
    return f"Element: {issue.selector or issue.element or 'N/A'}"


def _wrap_text(text: str, fontname: str, fontsize: float, max_width: float) -> List[str]:
    """Greedy word wrap measured with the PDF base font."""
    font = fitz.Font(fontname)
    lines: List[str] = []
    line = ""
    for word in text.split():
        trial = f"{line} {word}" if line else word
        if line and font.text_length(trial, fontsize=fontsize) > max_width:
            lines.append(line)
            line = word
        else:
            line = trial
    if line:
        lines.append(line)
    return lines or [""]
