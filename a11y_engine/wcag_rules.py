"""WCAG 2.0 success-criterion metadata used by the Web Accessibility Engine."""

WCAG_BASE_URL = "https://www.w3.org/TR/WCAG20/"

WCAG_RULES: dict = {
    "1.1.1": {
        "title": "Non-text Content",
        "level": "A",
        "category": "Perceivable",
        "description": (
            "All non-text content that is presented to the user has a text "
            "alternative that serves the equivalent purpose."
        ),
        "techniques": ["H37", "H36", "H35", "H53"],
        "help_url": "https://www.w3.org/TR/WCAG20/#text-equiv-all",
    },
    "1.3.1": {
        "title": "Info and Relationships",
        "level": "A",
        "category": "Perceivable",
        "description": (
            "Information, structure, and relationships conveyed through presentation "
            "can be programmatically determined or are available in text."
        ),
        "techniques": ["H44", "H65", "H71", "H85"],
        "help_url": "https://www.w3.org/TR/WCAG20/#content-structure-separation-programmatic",
    },
    "1.4.1": {
        "title": "Use of Color",
        "level": "A",
        "category": "Perceivable",
        "description": (
            "Color is not used as the only visual means of conveying information, "
            "indicating an action, prompting a response, or distinguishing a visual element."
        ),
        "techniques": ["G14", "G205", "G182"],
        "help_url": "https://www.w3.org/TR/WCAG20/#visual-audio-contrast-without-color",
    },
    "1.4.3": {
        "title": "Contrast (Minimum)",
        "level": "AA",
        "category": "Perceivable",
        "description": (
            "The visual presentation of text has a contrast ratio of at least 4.5:1. "
            "Large text requires at least 3:1."
        ),
        "techniques": ["G18", "G145", "G174"],
        "help_url": "https://www.w3.org/TR/WCAG20/#visual-audio-contrast-contrast",
    },
    "2.1.1": {
        "title": "Keyboard",
        "level": "A",
        "category": "Operable",
        "description": "All functionality of the content is operable through a keyboard interface.",
        "techniques": ["G202", "H91"],
        "help_url": "https://www.w3.org/TR/WCAG20/#keyboard-operation-keyboard-operable",
    },
    "2.4.1": {
        "title": "Bypass Blocks",
        "level": "A",
        "category": "Operable",
        "description": (
            "A mechanism is available to bypass blocks of content that are "
            "repeated on multiple Web pages."
        ),
        "techniques": ["G1", "G123", "G124"],
        "help_url": "https://www.w3.org/TR/WCAG20/#navigation-mechanisms-skip",
    },
    "2.4.3": {
        "title": "Focus Order",
        "level": "A",
        "category": "Operable",
        "description": (
            "Focusable components receive focus in an order that preserves "
            "meaning and operability."
        ),
        "techniques": ["G59", "H4", "C27"],
        "help_url": "https://www.w3.org/TR/WCAG20/#navigation-mechanisms-focus-order",
    },
    "2.4.7": {
        "title": "Focus Visible",
        "level": "AA",
        "category": "Operable",
        "description": (
            "Any keyboard operable user interface has a mode of operation where "
            "the keyboard focus indicator is visible."
        ),
        "techniques": ["G149", "C15", "G165"],
        "help_url": "https://www.w3.org/TR/WCAG20/#navigation-mechanisms-focus-visible",
    },
    "3.1.1": {
        "title": "Language of Page",
        "level": "A",
        "category": "Understandable",
        "description": "The default human language of each Web page can be programmatically determined.",
        "techniques": ["H57"],
        "help_url": "https://www.w3.org/TR/WCAG20/#meaning-doc-lang-id",
    },
    "4.1.1": {
        "title": "Parsing",
        "level": "A",
        "category": "Robust",
        "description": (
            "In content implemented using markup languages, elements have "
            "complete start and end tags."
        ),
        "techniques": ["G134", "G192", "H88"],
        "help_url": "https://www.w3.org/TR/WCAG20/#ensure-compat-parses",
    },
    "4.1.2": {
        "title": "Name, Role, Value",
        "level": "A",
        "category": "Robust",
        "description": (
            "For all user interface components, the name and role can be "
            "programmatically determined; states, properties, and values that can "
            "be set by the user can be programmatically set."
        ),
        "techniques": ["G135", "H91"],
        "help_url": "https://www.w3.org/TR/WCAG20/#ensure-compat-rsv",
    },
}

# Severities in priority order; the index is the sort rank used for reports
SEVERITIES = ("critical", "serious", "moderate", "minor")
SEVERITY_RANK = {sev: rank for rank, sev in enumerate(SEVERITIES)}

WCAG_LEVELS = ("A", "AA", "AAA")
