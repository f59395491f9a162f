"""Event-driven router deciding how every intercepted event is resolved."""

import asyncio
import inspect
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING

from smartproxy_interceptor.config import settings
from smartproxy_interceptor.core.auth import AuthChallengeResponder
from smartproxy_interceptor.core.bypass import BypassMatcher, RegexBypassMatcher
from smartproxy_interceptor.core.direct_fetch import BypassFailed, DirectFetcher
from smartproxy_interceptor.core.headers import build_request_headers, find_header
from smartproxy_interceptor.core.session import SessionCreationFailed, SessionManager
from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    InterceptedEvent,
    Resolution,
)

if TYPE_CHECKING:
    from smartproxy_interceptor.providers.base import InterceptionProvider, ProviderEvent

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[Exception], Awaitable[None] | None]


class InterceptionRouter:
    """Consumes a provider's event stream and resolves each event exactly once.

    Request-stage events are either fulfilled from a direct fetch (static
    assets) or continued through the proxy with the session headers.
    Response-stage events are checked for the bad-session signal. Auth
    challenges are answered by the responder. Nothing is resolved once the
    page has closed.

    Usage:

        router = InterceptionRouter(provider, session, fetcher, responder)
        await router.start()
        ...
        await router.stop()
    """

    def __init__(
        self,
        provider: "InterceptionProvider",
        session: SessionManager,
        fetcher: DirectFetcher,
        responder: AuthChallengeResponder,
        *,
        bypass_matcher: BypassMatcher | None = None,
        static_bypass: bool | None = None,
        extra_headers: Mapping[str, str | None] | None = None,
        client_identity: str | None = None,
        session_header: str | None = None,
        client_header: str | None = None,
        error_header: str | None = None,
        bad_session_value: str | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.provider = provider
        self.session = session
        self.fetcher = fetcher
        self.responder = responder
        self.bypass_matcher = bypass_matcher or RegexBypassMatcher()
        self.static_bypass = (
            static_bypass if static_bypass is not None else settings.static_bypass
        )
        self.extra_headers = dict(
            extra_headers if extra_headers is not None else settings.spm_headers
        )
        self.client_identity = client_identity or session.client_identity
        self.session_header = session_header or settings.session_header
        self.client_header = client_header or settings.client_header
        self.error_header = error_header or settings.error_header
        self.bad_session_value = bad_session_value or settings.bad_session_value
        self.on_error = on_error

        self.resolutions: Counter[Resolution] = Counter()
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return (
            f"InterceptionRouter(provider={self.provider!r}, "
            f"static_bypass={self.static_bypass}, "
            f"in_flight={len(self._tasks)})"
        )

    # -------------------------------------------------------------------------
    # Event loop
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Enable interception and consume events in the background."""
        if self._loop_task is not None:
            return
        await self.provider.enable()
        self._loop_task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Close the provider and wait for outstanding events to finish."""
        await self.provider.close()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

    async def run(self) -> None:
        """Consume events until the provider ends the stream.

        Each event is handled in its own task so a slow fetch or session
        creation never holds up the events behind it.
        """
        await self.provider.enable()

        while True:
            event = await self.provider.events.get()
            if event is None:
                break
            task = asyncio.create_task(self.handle(event))
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

        await self.wait_for_tasks()

    async def wait_for_tasks(self) -> None:
        """Wait for every in-flight event to be resolved."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return

        logger.error("Intercepted request failed: %s", exc, exc_info=exc)
        if self.on_error is not None:
            result = self.on_error(exc)
            if inspect.isawaitable(result):
                handler_task = asyncio.ensure_future(result)
                self._tasks.add(handler_task)
                handler_task.add_done_callback(self._tasks.discard)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def handle(self, event: "ProviderEvent") -> Resolution:
        """Resolve a single event.

        Returns:
            How the event was resolved.

        Raises:
            SessionCreationFailed: If a proxied request needed a session and
                none could be created. The event is failed (or dropped when
                the page is gone) before the error is raised.
        """
        if isinstance(event, AuthChallengeEvent):
            resolution = await self._handle_auth(event)
        elif event.is_response:
            resolution = await self._handle_response(event)
        else:
            resolution = await self._handle_request(event)

        self.resolutions[resolution] += 1
        return resolution

    async def _handle_request(self, event: InterceptedEvent) -> Resolution:
        if self.provider.is_page_closed():
            return Resolution.DROPPED

        if self.static_bypass and self.bypass_matcher.matches(event):
            try:
                payload = await self.fetcher.attempt_bypass(event)
            except BypassFailed as e:
                logger.debug("%s, continuing through proxy", e)
            else:
                if self.provider.is_page_closed():
                    return Resolution.DROPPED
                try:
                    await self.provider.fulfill_request(event.id, payload)
                except Exception:
                    logger.warning(
                        "Fulfilling %s failed, continuing through proxy",
                        event.url,
                        exc_info=True,
                    )
                else:
                    return Resolution.FULFILLED

        return await self._continue_through_proxy(event)

    async def _continue_through_proxy(self, event: InterceptedEvent) -> Resolution:
        if self.provider.is_page_closed():
            return Resolution.DROPPED

        try:
            token = await self.session.get_token()
        except SessionCreationFailed:
            if not self.provider.is_page_closed():
                await self.provider.fail_request(event.id)
                self.resolutions[Resolution.FAILED] += 1
            else:
                self.resolutions[Resolution.DROPPED] += 1
            raise

        headers = build_request_headers(
            event.request_headers,
            token,
            self.client_identity,
            self.extra_headers,
            session_header=self.session_header,
            client_header=self.client_header,
        )

        if self.provider.is_page_closed():
            return Resolution.DROPPED
        await self.provider.continue_request(event.id, headers)
        return Resolution.CONTINUED

    async def _handle_response(self, event: InterceptedEvent) -> Resolution:
        if self.is_bad_session(event):
            logger.info("Bad session reported for %s", event.url)
            self.session.invalidate()

        if self.provider.is_page_closed():
            return Resolution.DROPPED
        await self.provider.continue_request(event.id)
        return Resolution.CONTINUED

    async def _handle_auth(self, event: AuthChallengeEvent) -> Resolution:
        response = self.responder.respond(event)

        if self.provider.is_page_closed():
            return Resolution.DROPPED
        await self.provider.continue_with_auth(event.id, response)
        return Resolution.CONTINUED

    def is_bad_session(self, event: InterceptedEvent) -> bool:
        """Check if a response carries the proxy's bad-session signal."""
        value = find_header(event.response_headers, self.error_header)
        return value == self.bad_session_value

    @property
    def in_flight(self) -> int:
        """Return the number of events still being handled."""
        return len(self._tasks)
