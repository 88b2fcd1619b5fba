"""
Declarative catalog of accessibility checks.

Each rule carries fixed WCAG metadata and a pure predicate
``check(element, context) -> bool`` where ``True`` means compliant.
Element rules declare a CSS ``selector`` and are applied to every matching
markup element.  Contextual rules (heading hierarchy, trackBy, focus styles)
are driven by the caller, which tracks state across elements and passes it
in through :class:`RuleContext`.  Rules with no selector and no caller are
covered only by the in-browser audit.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .wcag_rules import SEVERITIES, WCAG_LEVELS

logger = logging.getLogger(__name__)

CATEGORIES = ("html", "aria", "angular", "keyboard", "color", "semantic")

TEXT_INPUT_TYPES = frozenset({"text", "email", "password", "number", "tel", "url"})
ROLES_REQUIRING_NAMES = frozenset({"button", "link", "menuitem", "option", "tab", "treeitem"})


@dataclass(frozen=True)
class RuleContext:
    """State a predicate may consult besides the element itself."""

    label_targets: frozenset = frozenset()
    previous_heading_level: int = 0
    has_focus_styles: bool = False

    @classmethod
    def for_document(cls, document: Any) -> "RuleContext":
        """Build a context for a parsed markup document (BeautifulSoup tree)."""
        targets = frozenset(
            label["for"] for label in document.find_all("label") if label.get("for")
        )
        return cls(label_targets=targets)


Predicate = Callable[[Any, RuleContext], bool]


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    description: str
    wcag_criterion: str
    wcag_level: str
    severity: str
    category: str
    check: Predicate
    message: str
    help_url: str
    selector: Optional[str] = None
    contextual: bool = False

    def __post_init__(self) -> None:
        if self.severity not in SEVERITIES:
            raise ValueError(f"Rule {self.id!r} has unknown severity {self.severity!r}")
        if self.wcag_level not in WCAG_LEVELS:
            raise ValueError(f"Rule {self.id!r} has unknown WCAG level {self.wcag_level!r}")
        if self.category not in CATEGORIES:
            raise ValueError(f"Rule {self.id!r} has unknown category {self.category!r}")

    @property
    def applies_to_elements(self) -> bool:
        return self.selector is not None and not self.contextual


# ----------------------------------------------------------------------
# Predicates
# ----------------------------------------------------------------------


def _has_value(element: Any, attr: str) -> bool:
    value = element.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return bool(value and value.strip())


def _has_accessible_text(element: Any) -> bool:
    return bool(element.get_text(strip=True)) or _has_value(element, "aria-label") or _has_value(
        element, "aria-labelledby"
    )


def check_img_alt(element: Any, context: RuleContext) -> bool:
    # alt="" marks a decorative image; only a missing attribute is a violation
    return element.name != "img" or element.has_attr("alt")


def check_form_label(element: Any, context: RuleContext) -> bool:
    if element.name == "input":
        input_type = (element.get("type") or "text").strip().lower()
        if input_type not in TEXT_INPUT_TYPES:
            return True
    elif element.name not in ("textarea", "select"):
        return True
    if _has_value(element, "aria-label") or _has_value(element, "aria-labelledby"):
        return True
    element_id = element.get("id")
    return bool(element_id) and element_id in context.label_targets


def check_button_name(element: Any, context: RuleContext) -> bool:
    return element.name != "button" or _has_accessible_text(element)


def check_role_name(element: Any, context: RuleContext) -> bool:
    role = (element.get("role") or "").strip().lower()
    if role in ROLES_REQUIRING_NAMES:
        return _has_accessible_text(element)
    return True


def check_aria_expanded(element: Any, context: RuleContext) -> bool:
    role = (element.get("role") or "").strip().lower()
    if role == "button" and element.get("aria-controls"):
        return element.has_attr("aria-expanded")
    return True


def check_heading_level(element: Any, context: RuleContext) -> bool:
    level = int(element.name[1])
    return level <= context.previous_heading_level + 1


def check_ngfor_trackby(directive: str, context: RuleContext) -> bool:
    return "trackBy" in directive


def check_focus_replacement(occurrence: str, context: RuleContext) -> bool:
    return context.has_focus_styles


def audited_in_browser(element: Any, context: RuleContext) -> bool:
    """Placeholder predicate for rules only the in-browser audit can decide."""
    return True


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------

HTML_RULES: List[Rule] = [
    Rule(
        id="img-alt",
        name="Images must have alt attributes",
        description=(
            "Image elements must have an alt attribute to provide alternative "
            "text for screen readers."
        ),
        wcag_criterion="1.1.1",
        wcag_level="A",
        severity="serious",
        category="html",
        check=check_img_alt,
        message=(
            "Add an alt attribute that describes the image content or use alt=\"\" "
            "for decorative images."
        ),
        help_url="https://www.w3.org/TR/WCAG20/#text-equiv-all",
        selector="img",
    ),
    Rule(
        id="form-labels",
        name="Form inputs must have labels",
        description=(
            "Form input elements must have associated labels to be accessible "
            "to screen readers."
        ),
        wcag_criterion="1.3.1",
        wcag_level="A",
        severity="serious",
        category="html",
        check=check_form_label,
        message=(
            "Add a <label> element with a \"for\" attribute matching the input's id, "
            "or use aria-label or aria-labelledby."
        ),
        help_url="https://www.w3.org/TR/WCAG20/#content-structure-separation-programmatic",
        selector="input, textarea, select",
    ),
    Rule(
        id="button-name",
        name="Buttons must have accessible names",
        description="All button elements must have accessible names for screen readers.",
        wcag_criterion="4.1.2",
        wcag_level="A",
        severity="serious",
        category="html",
        check=check_button_name,
        message="Add text content to the button or use aria-label or aria-labelledby attributes.",
        help_url="https://www.w3.org/TR/WCAG20/#ensure-compat-rsv",
        selector="button",
    ),
    Rule(
        id="heading-hierarchy",
        name="Heading levels should not be skipped",
        description="Heading levels should be used in sequential order without skipping levels.",
        wcag_criterion="1.3.1",
        wcag_level="AA",
        severity="moderate",
        category="semantic",
        check=check_heading_level,
        message="Use headings in sequential order (h1, h2, h3, etc.) without skipping levels.",
        help_url="https://www.w3.org/TR/WCAG20/#content-structure-separation-programmatic",
        selector="h1, h2, h3, h4, h5, h6",
        contextual=True,
    ),
]

ARIA_RULES: List[Rule] = [
    Rule(
        id="aria-labels",
        name="Elements with ARIA roles must have accessible names",
        description="Elements with interactive ARIA roles must have accessible names.",
        wcag_criterion="4.1.2",
        wcag_level="A",
        severity="serious",
        category="aria",
        check=check_role_name,
        message="Elements with interactive ARIA roles must have accessible names.",
        help_url="https://www.w3.org/TR/WCAG20/#ensure-compat-rsv",
        selector="[role]",
    ),
    Rule(
        id="aria-expanded",
        name="Expandable elements should have aria-expanded",
        description=(
            "Elements that can be expanded or collapsed should have the "
            "aria-expanded attribute."
        ),
        wcag_criterion="4.1.2",
        wcag_level="A",
        severity="moderate",
        category="aria",
        check=check_aria_expanded,
        message="Add aria-expanded attribute to indicate the expanded/collapsed state.",
        help_url="https://www.w3.org/TR/WCAG20/#ensure-compat-rsv",
        selector="[aria-controls]",
    ),
]

ANGULAR_RULES: List[Rule] = [
    Rule(
        id="ngfor-trackby",
        name="*ngFor should use trackBy for accessibility",
        description=(
            "Using trackBy in *ngFor helps screen readers maintain context when "
            "list items change."
        ),
        wcag_criterion="2.4.3",
        wcag_level="AA",
        severity="minor",
        category="angular",
        check=check_ngfor_trackby,
        message="Add trackBy function to *ngFor directive to improve performance and accessibility.",
        help_url="https://www.w3.org/TR/WCAG20/#navigation-mechanisms-focus-order",
        contextual=True,
    ),
    Rule(
        id="angular-focus-management",
        name="Angular components should manage focus appropriately",
        description=(
            "Angular components that show/hide content should manage focus for "
            "screen readers."
        ),
        wcag_criterion="2.4.3",
        wcag_level="AA",
        severity="moderate",
        category="angular",
        check=audited_in_browser,
        message=(
            "Ensure focus is managed when dynamically showing/hiding content in "
            "Angular components."
        ),
        help_url="https://www.w3.org/TR/WCAG20/#navigation-mechanisms-focus-order",
    ),
]

KEYBOARD_RULES: List[Rule] = [
    Rule(
        id="keyboard-focus",
        name="Interactive elements must be keyboard accessible",
        description="All interactive elements must be reachable and operable via keyboard.",
        wcag_criterion="2.1.1",
        wcag_level="A",
        severity="serious",
        category="keyboard",
        check=audited_in_browser,
        message="Ensure interactive elements are keyboard accessible with proper tabindex values.",
        help_url="https://www.w3.org/TR/WCAG20/#keyboard-operation-keyboard-operable",
    ),
    Rule(
        id="focus-visible",
        name="Do not remove focus indicators without replacement",
        description=(
            "Removing focus indicators without providing alternative focus styles "
            "makes it difficult for keyboard users to navigate."
        ),
        wcag_criterion="2.4.7",
        wcag_level="AA",
        severity="serious",
        category="keyboard",
        check=check_focus_replacement,
        message=(
            "If you remove the default outline, provide alternative focus styles "
            "using :focus or :focus-visible."
        ),
        help_url="https://www.w3.org/TR/WCAG20/#navigation-mechanisms-focus-visible",
        contextual=True,
    ),
]

COLOR_RULES: List[Rule] = [
    Rule(
        id="color-contrast",
        name="Text must have sufficient color contrast",
        description="Text must have a contrast ratio of at least 4.5:1 against its background.",
        wcag_criterion="1.4.3",
        wcag_level="AA",
        severity="serious",
        category="color",
        check=audited_in_browser,
        message="Ensure text has a contrast ratio of at least 4.5:1 against its background color.",
        help_url="https://www.w3.org/TR/WCAG20/#visual-audio-contrast-contrast",
    ),
    Rule(
        id="color-only-info",
        name="Information should not be conveyed by color alone",
        description="Information conveyed by color should also be available through other means.",
        wcag_criterion="1.4.1",
        wcag_level="A",
        severity="moderate",
        category="color",
        check=audited_in_browser,
        message="Provide additional indicators (text, icons, patterns) beyond color to convey information.",
        help_url="https://www.w3.org/TR/WCAG20/#visual-audio-contrast-without-color",
    ),
]

ALL_RULES: List[Rule] = HTML_RULES + ARIA_RULES + ANGULAR_RULES + KEYBOARD_RULES + COLOR_RULES


class RuleSet:
    """Rule registry with lookup indices maintained as rules are registered."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._by_id: Dict[str, Rule] = {}
        self._by_category: Dict[str, List[Rule]] = defaultdict(list)
        self._by_level: Dict[str, List[Rule]] = defaultdict(list)
        self._by_severity: Dict[str, List[Rule]] = defaultdict(list)
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        if rule.id in self._by_id:
            raise ValueError(f"Duplicate rule id: {rule.id}")
        self._by_id[rule.id] = rule
        self._by_category[rule.category].append(rule)
        self._by_level[rule.wcag_level].append(rule)
        self._by_severity[rule.severity].append(rule)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def by_category(self, category: str) -> Tuple[Rule, ...]:
        return tuple(self._by_category.get(category, ()))

    def by_level(self, level: str) -> Tuple[Rule, ...]:
        return tuple(self._by_level.get(level, ()))

    def by_severity(self, severity: str) -> Tuple[Rule, ...]:
        return tuple(self._by_severity.get(severity, ()))

    def element_rules(self) -> Tuple[Rule, ...]:
        return tuple(r for r in self._by_id.values() if r.applies_to_elements)


DEFAULT_RULES = RuleSet(ALL_RULES)


def get_rule(rule_id: str) -> Optional[Rule]:
    return DEFAULT_RULES.get(rule_id)


def rules_by_category(category: str) -> Tuple[Rule, ...]:
    return DEFAULT_RULES.by_category(category)


def rules_by_level(level: str) -> Tuple[Rule, ...]:
    return DEFAULT_RULES.by_level(level)


def rules_by_severity(severity: str) -> Tuple[Rule, ...]:
    return DEFAULT_RULES.by_severity(severity)


def evaluate(rule: Rule, element: Any, context: RuleContext) -> Optional[bool]:
    """
    Run ``rule`` against ``element``.

    Returns the predicate's verdict, or ``None`` when the predicate raised:
    that is a tooling fault, so the rule is skipped for this element and a
    warning is logged.
    """
    try:
        return bool(rule.check(element, context))
    except Exception as exc:
        logger.warning("Rule %s failed on %r; skipping: %s", rule.id, _describe(element), exc)
        return None


def _describe(element: Any) -> str:
    name = getattr(element, "name", None)
    return f"<{name}>" if name else str(element)[:60]
