"""
Scrape through Smart Proxy Manager

Launches Chromium with the proxy configured, attaches the interceptor and
loads one page. Static assets are fetched directly; everything else goes
through the proxy with a sticky session.

Usage:
    SPM_APIKEY=<key> python scrape_with_session.py https://toscrape.com
"""

import asyncio
import logging
import sys

from patchright.async_api import async_playwright

from smartproxy_interceptor import SmartProxyPlugin
from smartproxy_interceptor.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main(url: str) -> None:
    async with async_playwright() as p:
        browser = await p.chromium.launch(
            headless=True,
            proxy={
                "server": settings.spm_host,
                "username": settings.spm_apikey,
                "password": "",
            },
            # Without this, requests from embedded iframes are not paused
            args=["--disable-site-isolation-trials"],
        )
        page = await browser.new_page(ignore_https_errors=True)

        async with SmartProxyPlugin() as plugin:
            router = await plugin.attach(page)
            response = await page.goto(url, timeout=180000)
            logger.info(
                "Loaded %s: status=%s", page.url, response.status if response else None
            )
            logger.info("Session: %s", plugin.session.token)
            logger.info("Resolutions: %s", dict(router.resolutions))

        await browser.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "https://toscrape.com"))
