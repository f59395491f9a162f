"""Interception through the devtools Fetch domain (Chromium only)."""

import base64
import logging

from patchright._impl._errors import TargetClosedError
from patchright.async_api import CDPSession, Page

from smartproxy_interceptor.core.headers import headers_to_pairs
from smartproxy_interceptor.models.cdp import AuthRequiredParams, RequestPausedParams
from smartproxy_interceptor.models.events import AuthChallengeResponse, FulfillPayload
from smartproxy_interceptor.providers.base import InterceptionProvider

logger = logging.getLogger(__name__)


class CDPInterceptionProvider(InterceptionProvider):
    """Pauses every request and response of a page through a CDP session.

    Requests from embedded iframes are only paused if the browser was launched
    with ``--disable-site-isolation-trials``.
    """

    name = "cdp"

    def __init__(self, page: Page, cdp_session: CDPSession | None = None) -> None:
        super().__init__(page)
        self._cdp: CDPSession | None = cdp_session

    async def _enable(self) -> None:
        if self._cdp is None:
            self._cdp = await self.page.context.new_cdp_session(self.page)
        self._cdp.on("Fetch.requestPaused", self._on_request_paused)
        self._cdp.on("Fetch.authRequired", self._on_auth_required)
        await self._cdp.send(
            "Fetch.enable",
            {
                "patterns": [{"requestStage": "Request"}, {"requestStage": "Response"}],
                "handleAuthRequests": True,
            },
        )

    async def _disable(self) -> None:
        if self._cdp is None:
            return
        try:
            await self._cdp.send("Fetch.disable")
            await self._cdp.detach()
        except TargetClosedError:
            logger.debug("CDP session already closed", exc_info=True)
        self._cdp = None

    def _on_request_paused(self, params: dict) -> None:
        self.emit(RequestPausedParams.model_validate(params).to_event())

    def _on_auth_required(self, params: dict) -> None:
        self.emit(AuthRequiredParams.model_validate(params).to_event())

    async def _send(self, method: str, params: dict) -> None:
        if self._cdp is None:
            logger.debug("Dropping %s, CDP session not open", method)
            return
        try:
            await self._cdp.send(method, params)
        except TargetClosedError:
            logger.debug("Page closed before %s was sent", method, exc_info=True)

    async def continue_request(
        self,
        event_id: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        params: dict = {"requestId": event_id}
        if headers is not None:
            params["headers"] = headers_to_pairs(headers)
        await self._send("Fetch.continueRequest", params)

    async def fulfill_request(self, event_id: str, payload: FulfillPayload) -> None:
        await self._send(
            "Fetch.fulfillRequest",
            {
                "requestId": event_id,
                "responseCode": payload.status,
                "responseHeaders": [
                    {"name": name, "value": value} for name, value in payload.headers
                ],
                "body": base64.b64encode(payload.body).decode("ascii"),
            },
        )

    async def fail_request(self, event_id: str, reason: str = "Failed") -> None:
        await self._send(
            "Fetch.failRequest",
            {"requestId": event_id, "errorReason": reason},
        )

    async def continue_with_auth(
        self,
        event_id: str,
        response: AuthChallengeResponse,
    ) -> None:
        await self._send(
            "Fetch.continueWithAuth",
            {"requestId": event_id, "authChallengeResponse": response.to_cdp()},
        )
