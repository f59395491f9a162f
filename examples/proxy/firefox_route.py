"""
Firefox through Smart Proxy Manager

Firefox has no devtools Fetch domain, so the interceptor falls back to
page.route. Proxy credentials come from the launch options because auth
challenges are not surfaced through routing.

Usage:
    SPM_APIKEY=<key> python firefox_route.py https://toscrape.com
"""

import asyncio
import logging
import sys

from patchright.async_api import async_playwright

from smartproxy_interceptor import SessionCreationFailed, SmartProxyPlugin
from smartproxy_interceptor.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def on_error(exc: Exception) -> None:
    if isinstance(exc, SessionCreationFailed):
        logger.error("Check your API key: %s", exc)


async def main(url: str) -> None:
    async with async_playwright() as p:
        browser = await p.firefox.launch(
            proxy={
                "server": settings.spm_host,
                "username": settings.spm_apikey,
                "password": "",
            },
        )
        page = await browser.new_page(ignore_https_errors=True)

        async with SmartProxyPlugin(static_bypass=False, on_error=on_error) as plugin:
            await plugin.attach(page)
            await page.goto(url, timeout=180000)
            logger.info("Title: %s", await page.title())

        await browser.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "https://toscrape.com"))
