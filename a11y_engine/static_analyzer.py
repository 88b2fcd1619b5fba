"""Static accessibility scanner for web project sources."""

from __future__ import annotations

import fnmatch
import logging
import re
from collections import defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from .errors import InvalidTargetError
from .models import AccessibilityIssue, AnalysisResult
from .rules import DEFAULT_RULES, Rule, RuleContext, RuleSet, evaluate

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE_PATTERNS = ("**/*.ts", "**/*.html", "**/*.scss", "**/*.css")
DEFAULT_EXCLUDE_PATTERNS = ("node_modules/**", "dist/**", "**/*.spec.ts", "**/*.test.ts")

MARKUP_EXTENSIONS = frozenset({".html", ".htm"})
COMPONENT_EXTENSIONS = frozenset({".ts"})
STYLESHEET_EXTENSIONS = frozenset({".css", ".scss", ".less"})

_COMPONENT_MARKERS = ("@Component", "templateUrl", "styleUrls")
_INLINE_TEMPLATE_RE = re.compile(r"template\s*:\s*`([^`]*)`", re.DOTALL)
_NGFOR_RE = re.compile(r"\*ngFor\s*=\s*(\"[^\"]*\"|'[^']*')")
_OUTLINE_NONE_RE = re.compile(r"outline\s*:\s*none", re.IGNORECASE)
_FOCUS_SELECTORS = (":focus", ":focus-visible", ":focus-within")
_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


class StaticAnalyzer:
    """
    Scans a project tree for accessibility issues without running it.

    Checks implemented
    ------------------
    Markup (.html)        — element rules (img alt, form labels, button
                            names, ARIA names, aria-expanded) and heading
                            hierarchy
    Components (.ts)      — inline templates re-run through the markup
                            checks; *ngFor without trackBy
    Stylesheets (.css…)   — ``outline: none`` with no focus styles in the file

    One unreadable or unparsable file never aborts the run: it is logged and
    contributes no issues.
    """

    def __init__(self, rules: RuleSet = DEFAULT_RULES) -> None:
        self.rules = rules
        self.issues: List[AccessibilityIssue] = []
        self._counters: Dict[str, int] = defaultdict(int)
        self._file = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        project_path: str,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
    ) -> AnalysisResult:
        """Scan ``project_path`` and return a fresh static result."""
        root = Path(project_path)
        if not str(project_path).strip() or not root.is_dir():
            raise InvalidTargetError(
                f"Project path is not a readable directory: {project_path}",
                target=str(project_path),
            )
        try:
            next(root.iterdir(), None)
        except OSError as exc:
            raise InvalidTargetError(
                f"Project path cannot be read: {project_path}: {exc}",
                target=str(project_path),
            ) from exc
        for patterns in (include_patterns, exclude_patterns):
            if isinstance(patterns, str):
                raise InvalidTargetError(
                    "Glob patterns must be a list of strings", target=patterns
                )

        logger.info("Starting static analysis of: %s", project_path)
        files = self.find_files(
            root,
            include_patterns or DEFAULT_INCLUDE_PATTERNS,
            exclude_patterns or DEFAULT_EXCLUDE_PATTERNS,
        )
        logger.info("Found %d files to analyze", len(files))

        issues: List[AccessibilityIssue] = []
        for path in files:
            issues.extend(self.analyze_file(path, root))

        result = AnalysisResult(
            issues=issues, analysis_type="static", project_path=str(project_path)
        )
        logger.info("Static analysis completed. Found %d issues.", len(issues))
        return result

    @staticmethod
    def find_files(
        root: Path, include_patterns: Sequence[str], exclude_patterns: Sequence[str]
    ) -> List[Path]:
        """Return the deduplicated, sorted files matched by the include globs."""
        seen = set()
        for pattern in include_patterns:
            try:
                matches = list(root.glob(pattern))
            except (NotImplementedError, ValueError) as exc:
                # Absolute or empty patterns cannot be anchored at the project root
                raise InvalidTargetError(
                    f"Unsupported include pattern {pattern!r}: {exc}", target=pattern
                ) from exc
            for path in matches:
                if not path.is_file():
                    continue
                relative = path.relative_to(root).as_posix()
                if _is_excluded(relative, exclude_patterns):
                    continue
                seen.add(path)
        return sorted(seen)

    def analyze_file(self, path: Path, root: Path) -> List[AccessibilityIssue]:
        """Analyze a single file; failures are logged and yield no issues."""
        self.issues = []
        self._counters = defaultdict(int)
        self._file = path.relative_to(root).as_posix()
        extension = path.suffix.lower()
        try:
            content = path.read_text(encoding="utf-8")
            if extension in MARKUP_EXTENSIONS:
                self._check_markup(content)
            elif extension in COMPONENT_EXTENSIONS:
                self._check_component(content)
            elif extension in STYLESHEET_EXTENSIONS:
                self._check_stylesheet(content)
        except Exception as exc:
            logger.warning("Failed to analyze file %s: %s", path, exc)
            return []
        return self.issues

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_id(self, rule_id: str) -> str:
        index = self._counters[rule_id]
        self._counters[rule_id] += 1
        return f"{self._file}#{rule_id}-{index}"

    def _add(self, rule: Rule, **kwargs) -> None:
        """Add an issue, filling the fixed metadata from ``rule``."""
        kwargs.setdefault("help_text", rule.message)
        self.issues.append(
            AccessibilityIssue(
                id=self._new_id(rule.id),
                rule_id=rule.id,
                rule=rule.name,
                severity=rule.severity,
                wcag_level=rule.wcag_level,
                wcag_criterion=rule.wcag_criterion,
                description=rule.description,
                wcag_url=rule.help_url,
                file=self._file,
                source="static",
                **kwargs,
            )
        )

    # ------------------------------------------------------------------
    # Check: markup element rules and heading hierarchy
    # ------------------------------------------------------------------

    def _check_markup(self, content: str, line_offset: int = 0) -> None:
        soup = BeautifulSoup(content, "html.parser")
        context = RuleContext.for_document(soup)

        for rule in self.rules.element_rules():
            for element in soup.select(rule.selector):
                if evaluate(rule, element, context) is False:
                    self._add(
                        rule,
                        element=_snippet(element),
                        selector=element.name,
                        line=_line_of(element, line_offset),
                    )

        heading_rule = self.rules.get("heading-hierarchy")
        if heading_rule is not None:
            self._check_heading_hierarchy(soup, heading_rule, context, line_offset)

    def _check_heading_hierarchy(
        self, soup: BeautifulSoup, rule: Rule, context: RuleContext, line_offset: int
    ) -> None:
        previous_level: Optional[int] = None
        for heading in soup.find_all(_HEADING_TAGS):
            current_level = int(heading.name[1])
            if previous_level is None:
                # The first heading is the baseline and is never flagged
                previous_level = current_level
                continue
            verdict = evaluate(rule, heading, replace(context, previous_heading_level=previous_level))
            if verdict is False:
                self._add(
                    rule,
                    help_text=(
                        f"Use h{previous_level + 1} instead of h{current_level} "
                        "to maintain proper heading hierarchy."
                    ),
                    element=f"<{heading.name}>",
                    selector=heading.name,
                    line=_line_of(heading, line_offset),
                )
            # Each skip is measured against the heading right before it
            previous_level = current_level

    # ------------------------------------------------------------------
    # Check: Angular component sources
    # ------------------------------------------------------------------

    def _check_component(self, content: str) -> None:
        if not any(marker in content for marker in _COMPONENT_MARKERS):
            return

        for match in _INLINE_TEMPLATE_RE.finditer(content):
            offset = content.count("\n", 0, match.start(1))
            self._check_markup(match.group(1), line_offset=offset)

        rule = self.rules.get("ngfor-trackby")
        if rule is None:
            return
        context = RuleContext()
        for directive in _NGFOR_RE.finditer(content):
            if evaluate(rule, directive.group(0), context) is False:
                self._add(
                    rule,
                    element=directive.group(0),
                    line=content.count("\n", 0, directive.start()) + 1,
                )

    # ------------------------------------------------------------------
    # Check: stylesheets removing focus outlines
    # ------------------------------------------------------------------

    def _check_stylesheet(self, content: str) -> None:
        rule = self.rules.get("focus-visible")
        if rule is None:
            return
        # File-wide: any focus selector anywhere in the file counts as a replacement
        context = RuleContext(has_focus_styles=any(s in content for s in _FOCUS_SELECTORS))
        for occurrence in _OUTLINE_NONE_RE.finditer(content):
            if evaluate(rule, occurrence.group(0), context) is False:
                self._add(
                    rule,
                    element=occurrence.group(0),
                    line=content.count("\n", 0, occurrence.start()) + 1,
                )


def run_static_analysis(
    project_path: str,
    include_patterns: Optional[Sequence[str]] = None,
    exclude_patterns: Optional[Sequence[str]] = None,
) -> AnalysisResult:
    return StaticAnalyzer().analyze(project_path, include_patterns, exclude_patterns)


def _is_excluded(relative: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(relative, pattern):
            return True
        # "**/x" should also match "x" at the project root
        if pattern.startswith("**/") and fnmatch.fnmatch(relative, pattern[3:]):
            return True
    return False


def _snippet(element) -> str:
    attrs = "".join(
        f' {name}="{" ".join(value) if isinstance(value, list) else value}"'
        for name, value in element.attrs.items()
    )
    return f"<{element.name}{attrs}>"


def _line_of(element, line_offset: int) -> Optional[int]:
    line = getattr(element, "sourceline", None)
    if line is None:
        return None
    return line + line_offset
