"""Interception capability providers."""

import logging

from patchright.async_api import Error, Page

from smartproxy_interceptor.providers.base import InterceptionProvider, ProviderEvent
from smartproxy_interceptor.providers.cdp import CDPInterceptionProvider
from smartproxy_interceptor.providers.route import RouteInterceptionProvider

logger = logging.getLogger(__name__)


async def select_provider(page: Page) -> InterceptionProvider:
    """Pick the interception channel for ``page``.

    Chromium pages are paused through the Fetch domain, which sees responses
    and auth challenges; other engines fall back to routing. Persistent
    contexts have no browser object, so the engine is found by trying to open
    a devtools session, which only Chromium supports.
    """
    browser = page.context.browser
    if browser is not None:
        if browser.browser_type.name == "chromium":
            return CDPInterceptionProvider(page)
        return RouteInterceptionProvider(page)

    try:
        cdp_session = await page.context.new_cdp_session(page)
    except Error:
        logger.debug("No devtools session for page, using routing", exc_info=True)
        return RouteInterceptionProvider(page)
    return CDPInterceptionProvider(page, cdp_session=cdp_session)


__all__ = [
    "CDPInterceptionProvider",
    "InterceptionProvider",
    "ProviderEvent",
    "RouteInterceptionProvider",
    "select_provider",
]
