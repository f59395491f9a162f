"""Interception through the declarative routing API (any browser engine)."""

import logging
import uuid

from patchright._impl._errors import TargetClosedError
from patchright.async_api import Page, Request, Response, Route

from smartproxy_interceptor.core.headers import pairs_to_headers
from smartproxy_interceptor.models.events import (
    AuthChallengeResponse,
    FulfillPayload,
    InterceptedEvent,
    Stage,
)
from smartproxy_interceptor.providers.base import InterceptionProvider

logger = logging.getLogger(__name__)

ROUTE_PATTERN = "**/*"

# Route.abort() takes lowercase error codes, devtools uses CamelCase reasons.
_ABORT_CODES = {
    "Failed": "failed",
    "Aborted": "aborted",
    "TimedOut": "timedout",
    "AccessDenied": "accessdenied",
    "ConnectionRefused": "connectionrefused",
    "ConnectionFailed": "connectionfailed",
    "InternetDisconnected": "internetdisconnected",
    "NameNotResolved": "namenotresolved",
    "BlockedByClient": "blockedbyclient",
}


class RouteInterceptionProvider(InterceptionProvider):
    """Intercepts requests with ``page.route`` and observes responses.

    Responses can't be paused through routing, so response-stage events are
    notifications only and resolving them does nothing. Proxy auth challenges
    are answered by the browser from its launch-time proxy credentials.
    """

    name = "route"

    def __init__(self, page: Page) -> None:
        super().__init__(page)
        self._routes: dict[str, Route] = {}

    async def _enable(self) -> None:
        self.page.on("response", self._on_response)
        await self.page.route(ROUTE_PATTERN, self._on_route)

    async def _disable(self) -> None:
        try:
            await self.page.unroute(ROUTE_PATTERN, self._on_route)
        except TargetClosedError:
            logger.debug("Page closed before unroute", exc_info=True)
        self.page.remove_listener("response", self._on_response)

    async def _on_route(self, route: Route, request: Request) -> None:
        headers = pairs_to_headers(
            (h["name"], h["value"]) for h in await request.headers_array()
        )
        event_id = str(uuid.uuid4())
        self._routes[event_id] = route
        logger.debug("on_route - %s", request.url)
        self.emit(
            InterceptedEvent(
                id=event_id,
                stage=Stage.REQUEST,
                method=request.method,
                url=request.url,
                request_headers=headers,
            )
        )

    def _on_response(self, response: Response) -> None:
        self.emit(
            InterceptedEvent(
                id=f"response-{uuid.uuid4()}",
                stage=Stage.RESPONSE,
                method=response.request.method,
                url=response.url,
                response_headers=list(response.headers.items()),
                response_status=response.status,
            )
        )

    def _take(self, event_id: str) -> Route | None:
        route = self._routes.pop(event_id, None)
        if route is None:
            logger.debug("No pending route for %s", event_id)
        return route

    async def continue_request(
        self,
        event_id: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        route = self._take(event_id)
        if route is None:
            return
        try:
            if headers is None:
                await route.continue_()
            else:
                await route.continue_(headers=headers)
        except TargetClosedError:
            logger.debug("Page closed before route continued", exc_info=True)

    async def fulfill_request(self, event_id: str, payload: FulfillPayload) -> None:
        route = self._take(event_id)
        if route is None:
            return
        try:
            await route.fulfill(
                status=payload.status,
                headers=pairs_to_headers(payload.headers),
                content_type=payload.content_type,
                body=payload.body,
            )
        except TargetClosedError:
            logger.debug("Page closed before route fulfilled", exc_info=True)

    async def fail_request(self, event_id: str, reason: str = "Failed") -> None:
        route = self._take(event_id)
        if route is None:
            return
        try:
            await route.abort(_ABORT_CODES.get(reason, "failed"))
        except TargetClosedError:
            logger.debug("Page closed before route aborted", exc_info=True)

    async def continue_with_auth(
        self,
        event_id: str,
        response: AuthChallengeResponse,
    ) -> None:
        logger.debug("Auth challenges are not routed; ignoring %s", event_id)

    @property
    def pending_count(self) -> int:
        """Return the number of routes waiting for a decision."""
        return len(self._routes)
