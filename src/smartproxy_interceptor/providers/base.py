"""Abstract interception capability consumed by the router."""

import asyncio
import logging
from abc import ABC, abstractmethod

from patchright.async_api import Page

from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    AuthChallengeResponse,
    FulfillPayload,
    InterceptedEvent,
)

logger = logging.getLogger(__name__)

ProviderEvent = InterceptedEvent | AuthChallengeEvent


class InterceptionProvider(ABC):
    """Source of intercepted events for one page, plus the calls that resolve them.

    Events are delivered through ``events``; ``None`` marks the end of the
    stream (provider closed or page gone).
    """

    name: str = "base"

    def __init__(self, page: Page) -> None:
        self.page = page
        self.events: asyncio.Queue[ProviderEvent | None] = asyncio.Queue()
        self._enabled = False
        self._finished = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(enabled={self._enabled}, finished={self._finished})"

    async def enable(self) -> None:
        """Turn interception on. Idempotent."""
        if self._enabled:
            return
        self.page.on("close", self._on_page_close)
        await self._enable()
        self._enabled = True
        logger.debug("Enabled %s interception", self.name)

    async def close(self) -> None:
        """Turn interception off and end the event stream."""
        if self._enabled and not self.is_page_closed():
            await self._disable()
        self._enabled = False
        self._finish()

    def is_page_closed(self) -> bool:
        return self.page.is_closed()

    def emit(self, event: ProviderEvent) -> None:
        """Push an event onto the stream unless it already ended."""
        if self._finished:
            logger.debug("Ignoring event %s after stream end", event.id)
            return
        self.events.put_nowait(event)

    def _finish(self) -> None:
        if not self._finished:
            self._finished = True
            self.events.put_nowait(None)

    def _on_page_close(self, _page: Page | None = None) -> None:
        logger.debug("Page closed, ending %s event stream", self.name)
        self._finish()

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @abstractmethod
    async def _enable(self) -> None: ...

    async def _disable(self) -> None:
        """Undo _enable(). Only called while the page is still open."""

    @abstractmethod
    async def continue_request(
        self,
        event_id: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Let the paused event proceed, optionally with replaced headers."""

    @abstractmethod
    async def fulfill_request(self, event_id: str, payload: FulfillPayload) -> None:
        """Answer the paused request with ``payload``."""

    @abstractmethod
    async def fail_request(self, event_id: str, reason: str = "Failed") -> None:
        """Abort the paused request with a network error."""

    @abstractmethod
    async def continue_with_auth(
        self,
        event_id: str,
        response: AuthChallengeResponse,
    ) -> None:
        """Answer an authentication challenge."""
