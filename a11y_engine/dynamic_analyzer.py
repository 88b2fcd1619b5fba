"""Dynamic accessibility analysis of rendered pages via Playwright and axe-core."""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import AsyncExitStack
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import DEFAULT_AXE_SCRIPT_URL, DEFAULT_TIMEOUT_MS, USER_AGENT
from .errors import AnalysisTimeoutError, InvalidTargetError, PageAnalysisError
from .models import AccessibilityIssue, AnalysisResult

logger = logging.getLogger(__name__)


_IMPACT_TO_SEVERITY = {
    "critical": "critical",
    "serious": "serious",
    "moderate": "moderate",
    "minor": "minor",
}
_LEVEL_TAG_RE = re.compile(r"^wcag\d+(a+)$", re.IGNORECASE)
_COMPACT_CRITERION_RE = re.compile(r"^wcag(\d)(\d)(\d+)$", re.IGNORECASE)
_DOTTED_CRITERION_RE = re.compile(r"^\d+\.\d+\.\d+$")


# ----------------------------------------------------------------------
# Browser capability
# ----------------------------------------------------------------------


class PlaywrightSession:
    """
    Browser-automation capability backed by headless Chromium.

    Used as an async context manager; the browser and its context live for
    one ``DynamicAnalyzer.analyze`` call and are closed on every exit path.
    """

    def __init__(self, axe_script_url: str = DEFAULT_AXE_SCRIPT_URL) -> None:
        self.axe_script_url = axe_script_url
        self._playwright = None
        self._browser = None
        self._context = None

    async def __aenter__(self) -> "PlaywrightSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=[
                    "--force-prefers-reduced-motion",
                    "--disable-features=TranslateUI",
                    "--no-sandbox",
                ],
            )
            self._context = await self._browser.new_context(
                reduced_motion="reduce",
                color_scheme="light",
                viewport={"width": 1280, "height": 720},
                user_agent=USER_AGENT,
            )
        except BaseException:
            await self._shutdown()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._shutdown()

    async def load_page(self, url: str, timeout_ms: int, wait_for_selector: Optional[str] = None):
        page = await self._context.new_page()
        try:
            page.set_default_timeout(timeout_ms)
            page.set_default_navigation_timeout(timeout_ms)
            logger.info("Navigating to: %s", url)
            await page.goto(url, wait_until="networkidle")
            if wait_for_selector:
                logger.info("Waiting for selector: %s", wait_for_selector)
                await page.wait_for_selector(wait_for_selector)
            await page.wait_for_load_state("domcontentloaded")
        except BaseException:
            await page.close()
            raise
        return page

    async def run_audit(self, page) -> Dict[str, Any]:
        await page.add_script_tag(url=self.axe_script_url)
        await page.wait_for_function("() => typeof window.axe !== 'undefined'")
        logger.info("Running axe-core analysis on: %s", page.url)
        return await page.evaluate("async () => await window.axe.run()")

    async def close(self, page) -> None:
        await page.close()

    async def _shutdown(self) -> None:
        # Each step runs even if an earlier one failed
        try:
            if self._context is not None:
                await self._context.close()
        except PlaywrightError as exc:
            logger.warning("Failed to close browser context: %s", exc)
        finally:
            self._context = None
            try:
                if self._browser is not None:
                    await self._browser.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close browser: %s", exc)
            finally:
                self._browser = None
                if self._playwright is not None:
                    await self._playwright.stop()
                    self._playwright = None


SessionFactory = Callable[[], Any]


# ----------------------------------------------------------------------
# Analyzer
# ----------------------------------------------------------------------


class DynamicAnalyzer:
    """
    Audits a primary URL and optional secondary pages in a live browser.

    The primary page is load-bearing: if it fails the run fails and any
    secondary page still in flight is cancelled.  Secondary pages are
    best-effort: a failure is logged and the page contributes no issues.
    Nothing is retried.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self.session_factory = session_factory or PlaywrightSession

    async def analyze(
        self,
        url: str,
        pages: Optional[Sequence[str]] = None,
        wait_for_selector: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> AnalysisResult:
        _validate_url(url)
        pages = list(pages or [])
        for page_url in pages:
            _validate_url(page_url)
        if timeout_ms <= 0:
            raise InvalidTargetError(f"Timeout must be positive, got {timeout_ms}", target=url)

        logger.info("Starting dynamic analysis of: %s", url)
        async with AsyncExitStack() as stack:
            try:
                session = await stack.enter_async_context(self.session_factory())
            except Exception as exc:
                logger.error("Failed to start browser for %s: %s", url, exc)
                raise PageAnalysisError(
                    f"Failed to start browser for {url}: {exc}", target=url
                ) from exc

            primary = asyncio.ensure_future(
                self._analyze_page(session, url, wait_for_selector, timeout_ms)
            )
            secondary = [
                asyncio.ensure_future(
                    self._analyze_page(session, page_url, wait_for_selector, timeout_ms)
                )
                for page_url in pages
            ]
            try:
                issues = list(await primary)
            except BaseException:
                for task in secondary:
                    task.cancel()
                await asyncio.gather(*secondary, return_exceptions=True)
                raise

            outcomes = await asyncio.gather(*secondary, return_exceptions=True)
            analyzed_pages: List[str] = []
            for page_url, outcome in zip(pages, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning("Failed to analyze page %s: %s", page_url, outcome)
                    continue
                analyzed_pages.append(page_url)
                issues.extend(outcome)

        logger.info("Dynamic analysis completed. Found %d issues.", len(issues))
        return AnalysisResult(
            issues=issues, analysis_type="dynamic", url=url, pages=analyzed_pages
        )

    async def _analyze_page(
        self, session, url: str, wait_for_selector: Optional[str], timeout_ms: int
    ) -> List[AccessibilityIssue]:
        try:
            raw = await asyncio.wait_for(
                self._load_and_audit(session, url, wait_for_selector, timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as exc:
            logger.error("Timed out analyzing %s after %d ms", url, timeout_ms)
            raise AnalysisTimeoutError(
                f"Timed out after {timeout_ms} ms analyzing {url}", target=url
            ) from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Failed to analyze page %s: %s", url, exc)
            raise PageAnalysisError(f"Failed to analyze {url}: {exc}", target=url) from exc
        return normalize_violations(raw, url)

    async def _load_and_audit(self, session, url, wait_for_selector, timeout_ms):
        handle = await session.load_page(url, timeout_ms, wait_for_selector)
        try:
            return await session.run_audit(handle)
        finally:
            await session.close(handle)


def run_dynamic_analysis(
    url: str,
    pages: Optional[Sequence[str]] = None,
    wait_for_selector: Optional[str] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    session_factory: Optional[SessionFactory] = None,
) -> AnalysisResult:
    """Synchronous entry point that drives :meth:`DynamicAnalyzer.analyze`."""
    analyzer = DynamicAnalyzer(session_factory)
    return asyncio.run(analyzer.analyze(url, pages, wait_for_selector, timeout_ms))


# ----------------------------------------------------------------------
# Normalization of axe-core results
# ----------------------------------------------------------------------


def normalize_violations(raw: Any, page_url: str = "") -> List[AccessibilityIssue]:
    """
    Expand axe-core ``violations`` into one issue per affected node.

    Malformed entries are tolerated: missing fields become empty strings and
    an unknown impact maps to ``minor``.
    """
    issues: List[AccessibilityIssue] = []
    if not isinstance(raw, dict):
        return issues
    # Page prefix keeps ids unique when several pages are audited in one run
    prefix = f"{page_url}#" if page_url else ""

    for index, violation in enumerate(raw.get("violations") or []):
        if not isinstance(violation, dict):
            continue
        rule_id = str(violation.get("id") or "unknown")
        severity = map_impact(violation.get("impact"))
        level, criterion = extract_wcag_info(violation.get("tags") or [])

        for node_index, node in enumerate(violation.get("nodes") or []):
            node = node if isinstance(node, dict) else {}
            issues.append(
                AccessibilityIssue(
                    id=f"{prefix}axe-{rule_id}-{index}-{node_index}",
                    rule_id=rule_id,
                    rule=rule_id,
                    severity=severity,
                    wcag_level=level,
                    wcag_criterion=criterion,
                    description=str(violation.get("description") or ""),
                    help_text=str(violation.get("help") or ""),
                    wcag_url=str(violation.get("helpUrl") or ""),
                    element=node.get("html"),
                    selector=_join_target(node.get("target")),
                    file=None,
                    source="dynamic",
                )
            )
    if issues:
        logger.debug("Normalized %d issues from %s", len(issues), page_url or "page")
    return issues


def map_impact(impact: Any) -> str:
    return _IMPACT_TO_SEVERITY.get(impact, "minor") if isinstance(impact, str) else "minor"


def extract_wcag_info(tags: Sequence[Any]) -> Tuple[str, str]:
    """
    Derive ``(level, criterion)`` from axe tags.

    ``wcag2a`` → A, ``wcag2aa``/``wcag21aa`` → AA, ``wcag2aaa`` → AAA.
    ``wcag143`` or ``1.4.3`` → criterion ``1.4.3``.  Without any WCAG tag
    the level falls back to AA and the criterion to ``Unknown``.
    """
    level: Optional[str] = None
    criterion: Optional[str] = None
    saw_wcag = False
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if _DOTTED_CRITERION_RE.match(tag):
            criterion = criterion or tag
            continue
        if not tag.lower().startswith("wcag"):
            continue
        saw_wcag = True
        level_match = _LEVEL_TAG_RE.match(tag)
        if level_match and level is None:
            count = len(level_match.group(1))
            level = "A" if count == 1 else "AA" if count == 2 else "AAA"
            continue
        compact = _COMPACT_CRITERION_RE.match(tag)
        if compact and criterion is None:
            criterion = ".".join(compact.groups())

    if not saw_wcag and criterion is None:
        return "AA", "Unknown"
    return level or "AA", criterion or "Unknown"


def _join_target(target: Any) -> Optional[str]:
    if isinstance(target, (list, tuple)):
        return ", ".join(
            ", ".join(str(t) for t in part) if isinstance(part, (list, tuple)) else str(part)
            for part in target
        )
    if target is None:
        return None
    return str(target)


def _validate_url(url: str) -> None:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidTargetError(f"Invalid URL: {url!r}", target=url)
