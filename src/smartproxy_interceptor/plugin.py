"""Plugin facade wiring the interception core to browser pages."""

import logging
import re
from collections.abc import Mapping
from types import TracebackType

import httpx
from patchright.async_api import Page

from smartproxy_interceptor import __version__
from smartproxy_interceptor.config import settings
from smartproxy_interceptor.core.auth import AuthChallengeResponder
from smartproxy_interceptor.core.bypass import BypassMatcher, RegexBypassMatcher
from smartproxy_interceptor.core.direct_fetch import DirectFetcher
from smartproxy_interceptor.core.router import ErrorHandler, InterceptionRouter
from smartproxy_interceptor.core.session import SessionManager
from smartproxy_interceptor.providers import InterceptionProvider, select_provider

logger = logging.getLogger(__name__)


class MissingApiKeyError(ValueError):
    """Raised when the plugin is created without a Smart Proxy Manager API key."""

    def __init__(self) -> None:
        super().__init__("spm_apikey is required")


class SmartProxyPlugin:
    """Routes a browser's pages through Smart Proxy Manager sessions.

    One plugin owns one proxy session, shared by every page attached to it.
    The browser itself must already be launched with the proxy configured.

    Usage as context manager (recommended):

        async with SmartProxyPlugin(apikey="...") as plugin:
            await plugin.attach(page)
            await page.goto("https://example.com")

    Or manually:

        plugin = SmartProxyPlugin(apikey="...")
        router = await plugin.attach(page)
        ...
        await plugin.aclose()
    """

    def __init__(
        self,
        apikey: str | None = None,
        spm_host: str | None = None,
        static_bypass: bool | None = None,
        static_bypass_regex: str | re.Pattern[str] | BypassMatcher | None = None,
        headers: Mapping[str, str | None] | None = None,
        framework: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.apikey = apikey if apikey is not None else settings.spm_apikey
        if not self.apikey:
            raise MissingApiKeyError

        self.spm_host = (spm_host or settings.spm_host).rstrip("/")
        self.static_bypass = (
            static_bypass if static_bypass is not None else settings.static_bypass
        )
        if static_bypass_regex is None or isinstance(
            static_bypass_regex, (str, re.Pattern)
        ):
            self.bypass_matcher: BypassMatcher = RegexBypassMatcher(static_bypass_regex)
        else:
            self.bypass_matcher = static_bypass_regex
        self.headers = dict(headers if headers is not None else settings.spm_headers)
        self.framework = framework or settings.framework
        self.on_error = on_error

        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=settings.session_timeout,
            follow_redirects=True,
            trust_env=False,
        )

        self.session = SessionManager(
            self.apikey,
            self.spm_host,
            self.client_identity,
            client=self._http_client,
        )
        self.fetcher = DirectFetcher(self._http_client, timeout=settings.bypass_timeout)
        self.responder = AuthChallengeResponder(self.apikey, self.spm_host)
        self._routers: dict[Page, InterceptionRouter] = {}

    def __repr__(self) -> str:
        return (
            f"SmartProxyPlugin(spm_host={self.spm_host!r}, "
            f"static_bypass={self.static_bypass}, "
            f"pages={len(self._routers)})"
        )

    async def __aenter__(self) -> "SmartProxyPlugin":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Detach every page and close HTTP clients, even on exception."""
        await self.aclose()

    @property
    def client_identity(self) -> str:
        """Return the client identity sent with every proxied request."""
        return f"zyte-smartproxy-{self.framework}-extra/{__version__}"

    async def attach(
        self,
        page: Page,
        provider: InterceptionProvider | None = None,
    ) -> InterceptionRouter:
        """Start intercepting ``page``.

        Args:
            page: Page to intercept. Attaching the same page twice returns the
                existing router.
            provider: Interception channel. Chosen from the browser engine
                if not given.

        Returns:
            The running router for the page.
        """
        if page in self._routers:
            return self._routers[page]

        provider = provider or await select_provider(page)
        router = InterceptionRouter(
            provider,
            self.session,
            self.fetcher,
            self.responder,
            bypass_matcher=self.bypass_matcher,
            static_bypass=self.static_bypass,
            extra_headers=self.headers,
            client_identity=self.client_identity,
            on_error=self.on_error,
        )
        await router.start()
        self._routers[page] = router
        logger.info("Intercepting page with %s provider", provider.name)
        return router

    async def detach(self, page: Page) -> bool:
        """Stop intercepting ``page``.

        Returns:
            True if the page was attached, False otherwise.
        """
        router = self._routers.pop(page, None)
        if router is None:
            return False
        await router.stop()
        return True

    async def aclose(self) -> None:
        """Detach all pages and close owned HTTP clients."""
        for page in list(self._routers):
            try:
                await self.detach(page)
            except Exception:
                logger.debug("Error detaching page during cleanup", exc_info=True)

        await self.session.aclose()
        await self.fetcher.aclose()
        if self._owns_client:
            await self._http_client.aclose()

    def get_router(self, page: Page) -> InterceptionRouter | None:
        return self._routers.get(page)

    @property
    def page_count(self) -> int:
        """Return the number of attached pages."""
        return len(self._routers)
