"""Page content retrieval: plain HTTP fetch first, headless Chromium as fallback."""

from __future__ import annotations

import asyncio
import html as html_lib
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import aiohttp
from playwright.async_api import Browser, Error as PlaywrightError, async_playwright

from ..config import Config
from ..errors import RenderBusyError, RenderError
from ..utils.domains import ensure_url

logger = logging.getLogger(__name__)

# Resource types aborted during headless renders
BLOCKED_RESOURCE_TYPES = {"image", "stylesheet", "font", "media"}

HTML_CONTENT_TYPE_RE = re.compile(r"text/html|application/xhtml\+xml", re.IGNORECASE)
SPA_ROOT_RE = re.compile(r"<div[^>]+id=[\"'](?:root|app)[\"'][^>]*>", re.IGNORECASE)
SPA_BUNDLE_RE = re.compile(r"chunk|webpack|vite|react|vue", re.IGNORECASE)
SPA_MIN_TEXT_LENGTH = 200
MAX_LIGHT_REDIRECTS = 3

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


class ContentSource(str, Enum):
    LIGHT_FETCH = "light_fetch"
    HEADLESS_RENDER = "headless_render"
    FAILED = "failed"


@dataclass
class PageContent:
    """Fetched page: raw HTML, visible text and which path produced them."""

    url: str
    html: str = ""
    text: str = ""
    source: ContentSource = ContentSource.FAILED
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.source is not ContentSource.FAILED


def html_to_text(html: str) -> str:
    """Strip scripts, styles, comments and tags; unescape entities; collapse whitespace."""
    if not html or not isinstance(html, str):
        return ""
    text = _SCRIPT_RE.sub(" ", html)
    text = _STYLE_RE.sub(" ", text)
    text = _COMMENT_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = html_lib.unescape(text).replace("\xa0", " ")
    return _WS_RE.sub(" ", text).strip()


def looks_like_spa(html: str, text: str, min_text_length: int = SPA_MIN_TEXT_LENGTH) -> bool:
    """Client-rendered shell: a root mount node, bundler fingerprints and almost no text."""
    if not html:
        return False
    return bool(SPA_ROOT_RE.search(html) and SPA_BUNDLE_RE.search(html)) and len(text) < min_text_length


class BrowserRenderer:
    """Headless Chromium wrapper. The browser starts on first use."""

    def __init__(self, timeout: float = 15.0, settle_delay: float = 1.0, headless: bool = True):
        self.timeout = int(timeout * 1000)  # Convert to ms
        self.settle_delay = settle_delay
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self):
        """Start the browser instance."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-dev-shm-usage",
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-gpu",
                "--no-first-run",
            ],
        )
        logger.info("Browser started")

    async def stop(self):
        """Stop the browser instance."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Browser stopped")

    async def render(self, url: str) -> tuple[str, str]:
        """Return (html, visible text). Raises RenderError."""
        if not self._browser:
            try:
                await self.start()
            except PlaywrightError as e:
                raise RenderError(f"Browser unavailable: {str(e)[:200]}") from e

        context = None
        page = None
        try:
            context = await self._browser.new_context(ignore_https_errors=True, locale="en-US")
            page = await context.new_page()

            async def handle_route(route):
                if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
                    await route.abort()
                else:
                    await route.continue_()

            await page.route("**/*", handle_route)
            await page.goto(url, timeout=self.timeout, wait_until="domcontentloaded")
            await asyncio.sleep(self.settle_delay)

            html = await page.content()
            text = await page.evaluate("() => document.body ? document.body.innerText : ''")
        except PlaywrightError as e:
            raise RenderError(f"Render failed: {str(e)[:200]}") from e
        finally:
            if page:
                await page.close()
            if context:
                await context.close()

        if not html:
            raise RenderError("Render returned an empty document")
        return html, text or ""


class RenderPipeline:
    """Light fetch with headless fallback. Headless renders run one at a time."""

    def __init__(self, config: Config, renderer: Optional[BrowserRenderer] = None):
        self.config = config
        self.renderer = renderer or BrowserRenderer(
            timeout=config.render_timeout,
            settle_delay=config.render_settle_delay,
            headless=config.render_headless,
        )
        self._slot = asyncio.Semaphore(1)

    @asynccontextmanager
    async def render_slot(self):
        """Hold the single render slot. Raises RenderBusyError if the wait exceeds the queue timeout."""
        try:
            await asyncio.wait_for(self._slot.acquire(), timeout=self.config.render_queue_timeout)
        except asyncio.TimeoutError:
            raise RenderBusyError()
        try:
            yield
        finally:
            self._slot.release()

    async def light_fetch(self, url: str) -> tuple[Optional[str], str]:
        """Plain GET. Returns (html, reason); html is None when this path is unusable."""
        timeout = aiohttp.ClientTimeout(total=self.config.fetch_timeout)
        headers = {"User-Agent": self.config.fetch_user_agent}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(url, allow_redirects=True, max_redirects=MAX_LIGHT_REDIRECTS) as resp:
                    if resp.status >= 400:
                        return None, f"HTTP {resp.status}"
                    content_type = resp.headers.get("Content-Type", "")
                    if not HTML_CONTENT_TYPE_RE.search(content_type):
                        return None, "non-HTML content"
                    html = await resp.text(errors="replace")
        except asyncio.TimeoutError:
            return None, "timed out"
        except aiohttp.ClientError as e:
            return None, f"request failed: {e}"
        return html, ""

    async def render(self, url: str) -> tuple[str, str]:
        async with self.render_slot():
            return await self.renderer.render(url)

    async def fetch_content(self, url: str) -> PageContent:
        url = ensure_url(url)
        result = PageContent(url=url)

        html, reason = await self.light_fetch(url)
        if html is not None:
            text = html_to_text(html)
            if not looks_like_spa(html, text):
                result.html, result.text = html, text
                result.source = ContentSource.LIGHT_FETCH
                return result
            reason = "single-page application shell"
        logger.info("Light fetch unusable for %s (%s), rendering", url, reason)

        try:
            html, text = await self.render(url)
        except (RenderBusyError, RenderError) as e:
            logger.warning("Content unavailable for %s: %s", url, e)
            result.error = str(e)
            return result

        result.html = html
        result.text = text or html_to_text(html)
        result.source = ContentSource.HEADLESS_RENDER
        return result

    async def close(self):
        await self.renderer.stop()
