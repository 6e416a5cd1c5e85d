"""Tests for page retrieval: light fetch, SPA detection and the render slot."""

import asyncio

import aiohttp
import pytest
from playwright.async_api import Error as PlaywrightError

from scamscan.analyzer.render import (
    BrowserRenderer,
    ContentSource,
    RenderPipeline,
    html_to_text,
    looks_like_spa,
)
from scamscan.errors import RenderBusyError, RenderError

SPA_SHELL = (
    "<html><head><script src='/assets/index-3f2a.chunk.js'></script></head>"
    "<body><div id=\"root\"></div></body></html>"
)
STATIC_PAGE = "<html><body><h1>Acme Savings</h1><p>" + "Plain static content. " * 20 + "</p></body></html>"


class _FakeRenderer:
    def __init__(self, html="<html><body>rendered</body></html>", text="rendered text", error=None):
        self.html = html
        self.text = text
        self.error = error
        self.calls: list[str] = []
        self.stopped = False

    async def render(self, url):
        self.calls.append(url)
        if self.error:
            raise self.error
        return self.html, self.text

    async def stop(self):
        self.stopped = True


def _pipeline(config, renderer, light_result):
    pipeline = RenderPipeline(config, renderer=renderer)

    async def light_fetch(url):
        return light_result

    pipeline.light_fetch = light_fetch
    return pipeline


def test_html_to_text_strips_markup():
    html = "<html><style>p{}</style><script>var x=1;</script><!-- c --><p>Hello&nbsp;<b>world</b> &amp; co</p></html>"
    assert html_to_text(html) == "Hello world & co"


def test_spa_shell_detection():
    assert looks_like_spa(SPA_SHELL, html_to_text(SPA_SHELL))
    assert not looks_like_spa(STATIC_PAGE, html_to_text(STATIC_PAGE))


@pytest.mark.asyncio
async def test_static_page_uses_light_fetch(config):
    renderer = _FakeRenderer()
    pipeline = _pipeline(config, renderer, (STATIC_PAGE, ""))

    page = await pipeline.fetch_content("acme.example")

    assert page.url == "https://acme.example"
    assert page.source is ContentSource.LIGHT_FETCH
    assert page.text.startswith("Acme Savings")
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_spa_shell_is_rendered(config):
    renderer = _FakeRenderer(text="Connect wallet to claim reward")
    pipeline = _pipeline(config, renderer, (SPA_SHELL, ""))

    page = await pipeline.fetch_content("https://spa.example")

    assert page.source is ContentSource.HEADLESS_RENDER
    assert page.text == "Connect wallet to claim reward"
    assert renderer.calls == ["https://spa.example"]


@pytest.mark.asyncio
async def test_both_paths_failing_is_reported(config):
    renderer = _FakeRenderer(error=RenderError("Render failed: net::ERR_NAME_NOT_RESOLVED"))
    pipeline = _pipeline(config, renderer, (None, "timed out"))

    page = await pipeline.fetch_content("https://gone.example")

    assert not page.ok
    assert page.source is ContentSource.FAILED
    assert "ERR_NAME_NOT_RESOLVED" in page.error


@pytest.mark.asyncio
async def test_render_slot_rejects_when_busy(config):
    config.render_queue_timeout = 0.05
    pipeline = RenderPipeline(config, renderer=_FakeRenderer())

    async with pipeline.render_slot():
        with pytest.raises(RenderBusyError, match="render queue full"):
            async with pipeline.render_slot():
                pass

    # released again afterwards
    async with pipeline.render_slot():
        pass


@pytest.mark.asyncio
async def test_busy_render_degrades_to_failed_content(config):
    config.render_queue_timeout = 0.05
    pipeline = _pipeline(config, _FakeRenderer(), (None, "HTTP 403"))

    async with pipeline.render_slot():
        page = await pipeline.fetch_content("https://busy.example")

    assert page.source is ContentSource.FAILED
    assert "Server busy" in page.error


@pytest.mark.asyncio
async def test_close_stops_renderer(config):
    renderer = _FakeRenderer()
    pipeline = RenderPipeline(config, renderer=renderer)
    await pipeline.close()
    assert renderer.stopped


class _FakeResponse:
    def __init__(self, status, content_type, body=""):
        self.status = status
        self.headers = {"Content-Type": content_type}
        self._body = body

    async def text(self, errors="strict"):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error
        self.kwargs: dict = {}

    def get(self, url, **kwargs):
        self.kwargs = kwargs
        if self._error:
            raise self._error
        return self._response

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response,error,expected",
    [
        (_FakeResponse(200, "text/html; charset=utf-8", STATIC_PAGE), None, (STATIC_PAGE, "")),
        (_FakeResponse(404, "text/html"), None, (None, "HTTP 404")),
        (_FakeResponse(200, "application/json", "{}"), None, (None, "non-HTML content")),
        (None, asyncio.TimeoutError(), (None, "timed out")),
    ],
)
async def test_light_fetch(monkeypatch, config, response, error, expected):
    session = _FakeSession(response=response, error=error)
    monkeypatch.setattr(aiohttp, "ClientSession", lambda *args, **kwargs: session)
    pipeline = RenderPipeline(config, renderer=_FakeRenderer())

    assert await pipeline.light_fetch("https://site.example") == expected
    if response is not None:
        assert session.kwargs["max_redirects"] == 3


class _FakeRoute:
    def __init__(self, resource_type):
        self.request = type("Request", (), {"resource_type": resource_type})()
        self.outcome = None

    async def abort(self):
        self.outcome = "aborted"

    async def continue_(self):
        self.outcome = "continued"


class _FakePage:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.handler = None
        self.closed = False

    async def route(self, pattern, handler):
        self.handler = handler

    async def goto(self, url, timeout=None, wait_until=None):
        if self.goto_error:
            raise self.goto_error

    async def content(self):
        return "<html><body>Claim reward</body></html>"

    async def evaluate(self, script):
        return "Claim reward"

    async def close(self):
        self.closed = True


class _FakeContext:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class _FakeBrowser:
    def __init__(self, page):
        self.context = _FakeContext(page)

    async def new_context(self, **kwargs):
        return self.context


@pytest.mark.asyncio
async def test_browser_render_blocks_heavy_resources():
    page = _FakePage()
    renderer = BrowserRenderer(settle_delay=0)
    renderer._browser = _FakeBrowser(page)

    html, text = await renderer.render("https://spa.example")

    assert text == "Claim reward"
    assert "Claim reward" in html
    assert page.closed

    image, script = _FakeRoute("image"), _FakeRoute("script")
    await page.handler(image)
    await page.handler(script)
    assert image.outcome == "aborted"
    assert script.outcome == "continued"


@pytest.mark.asyncio
async def test_browser_navigation_error_becomes_render_error():
    page = _FakePage(goto_error=PlaywrightError("net::ERR_CONNECTION_REFUSED"))
    browser = _FakeBrowser(page)
    renderer = BrowserRenderer(settle_delay=0)
    renderer._browser = browser

    with pytest.raises(RenderError, match="ERR_CONNECTION_REFUSED"):
        await renderer.render("https://refused.example")

    assert page.closed
    assert browser.context.closed
