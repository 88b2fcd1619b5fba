"""WCAG guideline lookup with a JSON file cache and a built-in fallback."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from .config import USER_AGENT, Settings
from .wcag_rules import WCAG_BASE_URL, WCAG_LEVELS, WCAG_RULES

logger = logging.getLogger(__name__)

_GUIDELINE_HEADER_RE = re.compile(r"^(\d+\.\d+)\s+(.+)$")
_CRITERION_HEADER_RE = re.compile(r"^(\d+\.\d+\.\d+)\s+(.+?)\s+\(Level\s+(A{1,3})\)$")


def default_guidelines() -> List[Dict[str, Any]]:
    """Guideline records built from the bundled success-criterion table."""
    return [
        {
            "id": criterion,
            "level": rule["level"],
            "title": rule["title"],
            "description": rule["description"],
            "techniques": list(rule.get("techniques", [])),
            "url": rule["help_url"],
        }
        for criterion, rule in WCAG_RULES.items()
    ]


class WcagService:
    """Serves WCAG guideline records, fetching from the W3C at most once a day."""

    def __init__(self, settings: Optional[Settings] = None, session=None) -> None:
        settings = settings or Settings.from_env()
        self.cache_file = Path(settings.cache_dir) / "guidelines.json"
        self.max_age = timedelta(hours=settings.cache_max_age_hours)
        self.http = session or requests.Session()
        self._guidelines: Optional[List[Dict[str, Any]]] = None

    def get_guidelines(
        self, criterion: Optional[str] = None, level: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        if level is not None and level not in WCAG_LEVELS:
            raise ValueError(f"Unknown WCAG level: {level}")

        guidelines = self._load()
        if criterion:
            needle = criterion.lower()
            guidelines = [
                g
                for g in guidelines
                if needle in g["id"].lower()
                or needle in g["title"].lower()
                or needle in g["description"].lower()
            ]
        if level:
            guidelines = [g for g in guidelines if g["level"] == level]

        logger.info("Retrieved %d WCAG guidelines", len(guidelines))
        return guidelines

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _load(self) -> List[Dict[str, Any]]:
        if self._guidelines is not None:
            return self._guidelines

        cached = self._load_from_cache()
        if cached is not None:
            self._guidelines = cached
            return cached

        logger.info("Fetching WCAG guidelines from web...")
        self._guidelines = self._fetch()
        self._save_to_cache(self._guidelines)
        return self._guidelines

    def _load_from_cache(self) -> Optional[List[Dict[str, Any]]]:
        if not self.cache_file.exists():
            return None
        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
            stamp = datetime.fromisoformat(data["timestamp"])
            if stamp.tzinfo is None:
                stamp = stamp.replace(tzinfo=timezone.utc)
            guidelines = data["guidelines"]
            if not isinstance(guidelines, list) or not all(map(_is_record, guidelines)):
                raise ValueError("cached guidelines have an unexpected shape")
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to load WCAG cache: %s", exc)
            return None

        if datetime.now(timezone.utc) - stamp > self.max_age:
            logger.info("WCAG cache expired, will fetch from web")
            return None
        logger.info("Loaded %d WCAG guidelines from cache", len(guidelines))
        return guidelines

    def _save_to_cache(self, guidelines: List[Dict[str, Any]]) -> None:
        record = {
            "guidelines": guidelines,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(json.dumps(record, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save WCAG cache: %s", exc)

    # ------------------------------------------------------------------
    # Fetch and parse
    # ------------------------------------------------------------------

    def _fetch(self) -> List[Dict[str, Any]]:
        try:
            response = self.http.get(
                WCAG_BASE_URL, timeout=30, headers={"User-Agent": USER_AGENT}
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to fetch WCAG guidelines from web: %s", exc)
            return default_guidelines()

        guidelines = parse_guidelines(response.text)
        if not guidelines:
            logger.warning("No guidelines parsed from %s; using built-in set", WCAG_BASE_URL)
            return default_guidelines()
        logger.info("Loaded %d WCAG guidelines from web", len(guidelines))
        return guidelines


def _is_record(entry: Any) -> bool:
    return isinstance(entry, dict) and all(
        isinstance(entry.get(key), str) for key in ("id", "level", "title", "description")
    )


def parse_guidelines(html: str) -> List[Dict[str, Any]]:
    """Parse the WCAG 2.0 recommendation page into guideline records."""
    soup = BeautifulSoup(html, "html.parser")
    guidelines: List[Dict[str, Any]] = []

    for section in soup.select(".guideline"):
        header = section.find("h3")
        match = _GUIDELINE_HEADER_RE.match(header.get_text(" ", strip=True)) if header else None
        if not match:
            continue
        guideline_id, title = match.groups()
        paragraph = section.find("p")
        guidelines.append(
            {
                "id": guideline_id,
                "level": "A",  # guidelines carry no level of their own
                "title": title,
                "description": paragraph.get_text(" ", strip=True) if paragraph else "",
                "techniques": [],
                "url": f"{WCAG_BASE_URL}#{guideline_id.replace('.', '-')}",
            }
        )

        for sc in section.select(".sc"):
            sc_header = sc.find("h4")
            sc_match = (
                _CRITERION_HEADER_RE.match(sc_header.get_text(" ", strip=True))
                if sc_header
                else None
            )
            if not sc_match:
                continue
            sc_id, sc_title, sc_level = sc_match.groups()
            sc_paragraph = sc.find("p")
            guidelines.append(
                {
                    "id": sc_id,
                    "level": sc_level,
                    "title": sc_title,
                    "description": sc_paragraph.get_text(" ", strip=True) if sc_paragraph else "",
                    "techniques": [
                        t.get_text(" ", strip=True)
                        for t in sc.select(".technique")
                        if t.get_text(strip=True)
                    ],
                    "url": f"{WCAG_BASE_URL}#{sc_id.replace('.', '-')}",
                }
            )

    return guidelines
