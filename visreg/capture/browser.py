"""Built-in browser capture using Playwright, for projects without a screenshot test suite."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from playwright.async_api import Browser, async_playwright

from visreg.errors import CaptureError
from visreg.models.config import CaptureConfig, PageTarget, ViewportConfig

from .runner import CaptureResult, verify_screenshots

logger = logging.getLogger(__name__)


def screenshot_name(page: PageTarget, viewport: ViewportConfig) -> str:
    return f"{page.name}-{viewport.name}.png"


def page_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


class BrowserCapture:
    """Visits every configured page at every viewport and saves full-page screenshots."""

    def __init__(self, config: CaptureConfig, working_directory: Path):
        self.config = config
        self.output_dir = (working_directory / config.screenshot_directory).resolve()

    def run(self) -> CaptureResult:
        return asyncio.run(self.capture())

    async def capture(self) -> CaptureResult:
        if not self.config.pages:
            raise CaptureError("No pages configured for browser capture")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        failures: list[str] = []
        logger.info(
            "Capturing %d page(s) at %d viewport(s) from %s",
            len(self.config.pages), len(self.config.viewports), self.config.base_url,
        )

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                for viewport in self.config.viewports:
                    for page in self.config.pages:
                        name = screenshot_name(page, viewport)
                        try:
                            await self._capture_one(browser, page, viewport)
                            logger.info("Captured %s", name)
                        except Exception as e:
                            logger.warning("Screenshot failed for %s: %s", name, e)
                            failures.append(name)
            finally:
                await browser.close()

        if failures:
            raise CaptureError(
                f"{len(failures)} screenshot(s) could not be captured: {', '.join(failures)}"
            )
        return verify_screenshots(self.output_dir)

    async def _capture_one(self, browser: Browser, target: PageTarget, viewport: ViewportConfig) -> None:
        context = await browser.new_context(
            viewport={"width": viewport.width, "height": viewport.height},
            reduced_motion="reduce",
            color_scheme="light",
        )
        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            await page.goto(page_url(self.config.base_url, target.path))
            await page.wait_for_load_state("networkidle")
            await page.evaluate("window.scrollTo(0, 0)")
            await page.wait_for_timeout(self.config.settle_delay_ms)
            await page.screenshot(
                path=str(self.output_dir / screenshot_name(target, viewport)),
                full_page=True,
                animations="disabled",
            )
        finally:
            await context.close()
