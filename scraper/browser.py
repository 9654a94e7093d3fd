"""
Headless-browser rendering for pages that block plain HTTP clients.

Used only when `scraper.browser_fallback` is enabled. One attempt per page:
a failed render is reported as None, same as a failed static fetch.
"""

import asyncio
import logging
import random
from typing import Optional

from playwright.async_api import async_playwright, TimeoutError as PWTimeout

logger = logging.getLogger(__name__)

# ── User-agent pool ───────────────────────────────────────────────────────────
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1440, "height": 900},
    {"width": 1366, "height": 768},
]

_BLOCK_SIGNALS = (
    "captcha",
    "access denied",
    "please verify you are human",
    "enable javascript and cookies",
    "checking your browser",
    "ddos-guard",
    "bot detected",
)

# Real articles mentioning these words are long; challenge pages are short
_BLOCK_PAGE_MAX_CHARS = 20_000


def is_blocked(html: str, status: int) -> bool:
    """Heuristics to detect a bot-block / CAPTCHA response."""
    if status in (403, 429, 503):
        return True
    if len(html or "") > _BLOCK_PAGE_MAX_CHARS:
        return False
    lower = (html or "").lower()
    return any(s in lower for s in _BLOCK_SIGNALS)


def _stealth_init_script() -> str:
    """JS injected into every page to mask automation fingerprints."""
    return """
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    window.chrome = { runtime: {}, app: {} };
    """


async def _render(url: str, timeout_ms: int) -> Optional[str]:
    ua = random.choice(USER_AGENTS)
    vp = random.choice(VIEWPORTS)

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=True,
            args=[
                "--no-sandbox",
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
            ],
        )
        try:
            context = await browser.new_context(
                user_agent=ua,
                viewport=vp,
                locale="en-US",
                java_script_enabled=True,
                accept_downloads=False,
            )
            await context.add_init_script(_stealth_init_script())
            page = await context.new_page()
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            # Let client-side rendering settle
            await asyncio.sleep(random.uniform(1.0, 2.0))
            status = response.status if response else 0
            html = await page.content()
        finally:
            await browser.close()

    if is_blocked(html, status):
        logger.warning("Browser render of %s still blocked (status=%d)", url, status)
        return None
    return html


def render_page(url: str, timeout: float = 30.0) -> Optional[str]:
    """Render `url` in headless Chromium and return the final HTML, or None."""
    logger.info("Rendering %s in headless browser", url)
    try:
        html = asyncio.run(_render(url, int(timeout * 1000)))
    except PWTimeout:
        logger.warning("Browser timeout on %s", url)
        return None
    except Exception as exc:
        logger.error("Browser render failed for %s: %s", url, exc)
        return None

    if html:
        logger.info("Rendered %s (%d chars)", url, len(html))
    return html
