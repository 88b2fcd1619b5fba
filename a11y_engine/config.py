"""Environment-driven settings for the Web Accessibility Engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

TIMEOUT_ENV = "A11Y_TIMEOUT_MS"
AXE_SCRIPT_URL_ENV = "A11Y_AXE_SCRIPT_URL"
CACHE_DIR_ENV = "A11Y_CACHE_DIR"
CACHE_MAX_AGE_ENV = "A11Y_CACHE_MAX_AGE_HOURS"
LOG_LEVEL_ENV = "A11Y_LOG_LEVEL"

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_AXE_SCRIPT_URL = "https://unpkg.com/axe-core@latest/axe.min.js"
DEFAULT_CACHE_DIR = Path(".cache") / "wcag"
DEFAULT_CACHE_MAX_AGE_HOURS = 24.0
DEFAULT_LOG_LEVEL = "INFO"

USER_AGENT = "A11y-Robot/1.0.0 (Accessibility Analysis Tool)"


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the analyzers and the web front end."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    axe_script_url: str = DEFAULT_AXE_SCRIPT_URL
    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_max_age_hours: float = DEFAULT_CACHE_MAX_AGE_HOURS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from the current environment."""

        return cls(
            timeout_ms=int(_parse_positive(os.getenv(TIMEOUT_ENV), DEFAULT_TIMEOUT_MS)),
            axe_script_url=os.getenv(AXE_SCRIPT_URL_ENV) or DEFAULT_AXE_SCRIPT_URL,
            cache_dir=Path(os.getenv(CACHE_DIR_ENV) or DEFAULT_CACHE_DIR),
            cache_max_age_hours=_parse_positive(
                os.getenv(CACHE_MAX_AGE_ENV), DEFAULT_CACHE_MAX_AGE_HOURS
            ),
            log_level=(os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper(),
        )


def _parse_positive(raw: str | None, default: float) -> float:
    if not raw or not raw.strip():
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    if parsed <= 0:
        return default
    return parsed
