"""Per-scenario resource holder: browser session, test data, evidence."""

import json
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Any

from playwright.async_api import async_playwright

from parabank.regression_suite.errors import SessionError
from parabank.regression_suite.models.suite_config import SuiteSettings

logger = logging.getLogger(__name__)

UI_TAG = "@ui"

BrowserLauncher = Callable[[SuiteSettings], Awaitable[tuple[Any, Any]]]


class ScenarioKind(Enum):
    """Whether a scenario drives the browser or only the API."""

    UI = "ui"
    API = "api"

    @classmethod
    def from_tags(cls, tags: Iterable[str]) -> "ScenarioKind":
        """UI when the tag set carries the UI marker, API otherwise."""
        for tag in tags:
            normalized = tag.strip().lower()
            if normalized == UI_TAG or f"@{normalized}" == UI_TAG:
                return cls.UI
        return cls.API


async def launch_chromium(settings: SuiteSettings) -> tuple[Any, Any]:
    """Start the Playwright driver and a Chromium process.

    Returns:
        Tuple of (playwright driver, browser)

    """
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=settings.headless,
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )
    except BaseException:
        await playwright.stop()
        raise
    return playwright, browser


def safe_filename(label: str) -> str:
    """Replace anything outside ``[A-Za-z0-9_-]`` with underscores."""
    return re.sub(r"[^A-Za-z0-9_-]", "_", label)


def evidence_timestamp(moment: datetime | None = None) -> str:
    """ISO timestamp with ``:`` and ``.`` made filesystem-safe."""
    moment = moment or datetime.now(timezone.utc)
    return re.sub(r"[:.]", "-", moment.isoformat())


class SessionContext:
    """Exclusively owned resources of one in-flight scenario.

    A context is created at scenario start and released at scenario end. It
    is never shared between scenarios and cannot be reused once released.
    """

    def __init__(
        self,
        scenario_name: str,
        settings: SuiteSettings,
        launcher: BrowserLauncher = launch_chromium,
    ) -> None:
        """Initialize an empty context; nothing is launched until acquire."""
        self.scenario_name = scenario_name
        self.settings = settings
        self._launcher = launcher
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._test_data: dict[str, Any] = {}
        self._evidence: list[Path] = []
        self._released = False

    @property
    def page(self) -> Any:
        """Current browser page, or None for API scenarios."""
        return self._page

    @property
    def has_browser(self) -> bool:
        """Whether a browser page is held."""
        return self._page is not None

    @property
    def evidence(self) -> list[Path]:
        """Evidence files written so far."""
        return list(self._evidence)

    @property
    def test_data(self) -> dict[str, Any]:
        """Snapshot of the scenario's test data."""
        return dict(self._test_data)

    def set_data(self, key: str, value: Any) -> None:
        """Store a value for later steps of this scenario."""
        self._test_data[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        """Fetch a value stored by an earlier step."""
        return self._test_data.get(key, default)

    async def acquire(self, kind: ScenarioKind) -> None:
        """Prepare resources for a scenario of the given kind.

        UI launches browser, context and page unless already held. API does
        no browser work.

        Raises:
            SessionError: If the context was released or the browser could
                not be started

        """
        if self._released:
            raise SessionError(
                f"Session for '{self.scenario_name}' was already released"
            )
        if kind is ScenarioKind.API or self._page is not None:
            return

        logger.info(f"Launching browser for scenario: {self.scenario_name}")
        try:
            if self._browser is None:
                self._playwright, self._browser = await self._launcher(self.settings)
            if self._context is None:
                self._context = await self._browser.new_context(
                    viewport={"width": 1280, "height": 720},
                    ignore_https_errors=True,
                )
            page = await self._context.new_page()
        except Exception as e:
            logger.error(f"Browser launch failed for '{self.scenario_name}': {e}")
            await self._close_handles()
            raise SessionError(
                f"Could not acquire browser session for '{self.scenario_name}': {e}"
            ) from e

        timeout_ms = self.settings.page_timeout * 1000
        page.set_default_timeout(timeout_ms)
        page.set_default_navigation_timeout(timeout_ms)
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        self._page = page

    def _on_console(self, message: Any) -> None:
        if message.type == "error":
            logger.warning(f"Console error [{self.scenario_name}]: {message.text}")

    def _on_page_error(self, error: Any) -> None:
        logger.warning(f"Page error [{self.scenario_name}]: {error}")

    async def release(self) -> None:
        """Close page, context and browser in that order. Never raises.

        Safe to call more than once and after a failed acquire.
        """
        if self._released:
            return
        self._released = True
        await self._close_handles()
        self._test_data.clear()

    async def _close_handles(self) -> None:
        for name in ("_page", "_context", "_browser"):
            handle = getattr(self, name)
            if handle is None:
                continue
            setattr(self, name, None)
            try:
                await handle.close()
            except Exception as e:
                logger.warning(
                    f"Failed to close {name[1:]} for '{self.scenario_name}': {e}"
                )

        if self._playwright is not None:
            playwright, self._playwright = self._playwright, None
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"Failed to stop playwright driver: {e}")

    async def navigate_to(self, path: str = "") -> None:
        """Open a page relative to the site base URL, launching if needed."""
        await self.acquire(ScenarioKind.UI)
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"
        await self._page.goto(url, wait_until="networkidle")

    async def capture_evidence(
        self,
        label: str | None = None,
        *,
        status: str = "failed",
        error: str | None = None,
        duration: float = 0.0,
    ) -> list[Path]:
        """Write failure evidence and return the written paths.

        With a page: a full-page PNG screenshot, the page markup and a JSON
        debug bundle. Without one: only the JSON bundle. Capture problems are
        logged, never raised.
        """
        directory = self.settings.screenshots_dir
        name = safe_filename(label or self.scenario_name)
        stem = f"failed-{name}-{evidence_timestamp()}"
        written: list[Path] = []

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create evidence directory {directory}: {e}")
            return written

        current_url: str | None = None
        if self._page is not None:
            try:
                current_url = self._page.url
                screenshot = directory / f"{stem}.png"
                await self._page.screenshot(path=str(screenshot), full_page=True)
                written.append(screenshot)
            except Exception as e:
                logger.warning(f"Screenshot capture failed: {e}")

            try:
                markup = directory / f"{stem}.html"
                markup.write_text(await self._page.content(), encoding="utf-8")
                written.append(markup)
            except Exception as e:
                logger.warning(f"Page markup capture failed: {e}")

        bundle = {
            "scenario": self.scenario_name,
            "status": status,
            "error": error,
            "url": current_url,
            "duration": duration,
            "testData": self._test_data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            debug = directory / f"{stem}.json"
            debug.write_text(
                json.dumps(bundle, indent=2, default=str), encoding="utf-8"
            )
            written.append(debug)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Debug bundle capture failed: {e}")

        self._evidence.extend(written)
        logger.info(
            f"Captured {len(written)} evidence file(s) for '{self.scenario_name}'"
        )
        return written

    async def capture_step_screenshot(self, step_name: str) -> Path | None:
        """Screenshot after a step when per-step capture is enabled."""
        if not self.settings.screenshot_on_step or self._page is None:
            return None

        directory = self.settings.screenshots_dir
        path = directory / (
            f"step-{safe_filename(self.scenario_name)}-{safe_filename(step_name)}-"
            f"{evidence_timestamp()}.png"
        )
        try:
            directory.mkdir(parents=True, exist_ok=True)
            await self._page.screenshot(path=str(path), full_page=True)
        except Exception as e:
            logger.warning(f"Failed to take step screenshot: {e}")
            return None
        self._evidence.append(path)
        return path

    async def __aenter__(self) -> "SessionContext":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
