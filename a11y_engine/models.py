"""Issue and result data shapes shared by the static and dynamic analyzers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class AccessibilityIssue:
    """A single accessibility violation found by one analysis pass."""

    id: str
    rule: str
    severity: str       # "critical" | "serious" | "moderate" | "minor"
    wcag_level: str     # "A" | "AA" | "AAA"
    wcag_criterion: str  # dotted id such as "1.1.1", or "Unknown"
    description: str
    help_text: str
    wcag_url: str
    source: str         # "static" | "dynamic"
    rule_id: str = ""
    element: Optional[str] = None
    selector: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "rule": self.rule,
            "severity": self.severity,
            "wcagLevel": self.wcag_level,
            "wcagCriterion": self.wcag_criterion,
            "description": self.description,
            "helpText": self.help_text,
            "wcagUrl": self.wcag_url,
            "element": self.element,
            "selector": self.selector,
            "file": self.file,
            "line": self.line,
            "source": self.source,
        }


@dataclass(frozen=True)
class Summary:
    total: int = 0
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    minor: int = 0

    @classmethod
    def from_issues(cls, issues: Iterable[AccessibilityIssue]) -> "Summary":
        counts = {"critical": 0, "serious": 0, "moderate": 0, "minor": 0}
        total = 0
        for issue in issues:
            total += 1
            if issue.severity in counts:
                counts[issue.severity] += 1
        return cls(total=total, **counts)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "critical": self.critical,
            "serious": self.serious,
            "moderate": self.moderate,
            "minor": self.minor,
        }


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AnalysisResult:
    """
    Outcome of one analysis run.

    ``summary`` is always derived from ``issues``; it cannot be set
    independently, so the counts never drift from the issue list.
    """

    issues: Tuple[AccessibilityIssue, ...]
    analysis_type: str  # "static" | "dynamic" | "combined"
    timestamp: str = field(default_factory=utc_timestamp)
    project_path: Optional[str] = None
    url: Optional[str] = None
    pages: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable of issues but store an immutable tuple
        object.__setattr__(self, "issues", tuple(self.issues))
        object.__setattr__(self, "pages", tuple(self.pages))

    @property
    def summary(self) -> Summary:
        return Summary.from_issues(self.issues)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "issues": [i.to_dict() for i in self.issues],
            "summary": self.summary.to_dict(),
            "analysisType": self.analysis_type,
            "timestamp": self.timestamp,
        }
        if self.project_path is not None:
            data["projectPath"] = self.project_path
        if self.url is not None:
            data["url"] = self.url
        if self.pages:
            data["pages"] = list(self.pages)
        return data
