"""Unit tests for interception providers with mocked Patchright objects."""

import base64
from unittest.mock import ANY, AsyncMock, MagicMock

import pytest
from patchright._impl._errors import TargetClosedError
from patchright.async_api import Error

from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    AuthChallengeResponse,
    ChallengeSource,
    FulfillPayload,
    InterceptedEvent,
    Stage,
)
from smartproxy_interceptor.providers import (
    CDPInterceptionProvider,
    RouteInterceptionProvider,
    select_provider,
)


def listener(mock_on: MagicMock, event_name: str):
    """Return the callback registered for ``event_name`` through ``.on()``."""
    for call in mock_on.call_args_list:
        if call.args[0] == event_name:
            return call.args[1]
    raise AssertionError(f"No listener registered for {event_name}")


@pytest.fixture
def mock_page():
    page = MagicMock()
    page.is_closed.return_value = False
    page.route = AsyncMock()
    page.unroute = AsyncMock()
    return page


@pytest.fixture
def mock_cdp(mock_page):
    cdp = MagicMock()
    cdp.send = AsyncMock()
    cdp.detach = AsyncMock()
    mock_page.context.new_cdp_session = AsyncMock(return_value=cdp)
    return cdp


PAUSED_REQUEST = {
    "requestId": "interception-1",
    "request": {
        "url": "https://x.test/a.css",
        "method": "GET",
        "headers": {"Accept": "text/css"},
    },
    "frameId": "frame",
    "resourceType": "Stylesheet",
}

PAUSED_RESPONSE = {
    **PAUSED_REQUEST,
    "responseStatusCode": 200,
    "responseHeaders": [{"name": "X-Crawlera-Error", "value": "bad_session_id"}],
}

AUTH_REQUIRED = {
    "requestId": "interception-2",
    "request": {"url": "https://x.test/", "method": "GET", "headers": {}},
    "frameId": "frame",
    "resourceType": "Document",
    "authChallenge": {
        "source": "Proxy",
        "origin": "http://proxy.zyte.com:8011",
        "scheme": "basic",
        "realm": "Zyte",
    },
}


# =============================================================================
# CDP Provider
# =============================================================================


class TestCDPEnable:
    """Tests for enabling Fetch interception."""

    async def test_enables_fetch_domain(self, mock_page, mock_cdp):
        """enable() should pause both stages and handle auth requests."""
        provider = CDPInterceptionProvider(mock_page)

        await provider.enable()

        mock_page.context.new_cdp_session.assert_awaited_once_with(mock_page)
        mock_cdp.send.assert_awaited_once_with(
            "Fetch.enable",
            {
                "patterns": [{"requestStage": "Request"}, {"requestStage": "Response"}],
                "handleAuthRequests": True,
            },
        )
        assert provider.is_enabled

    async def test_enable_idempotent(self, mock_page, mock_cdp):
        """Enabling twice should open only one CDP session."""
        provider = CDPInterceptionProvider(mock_page)

        await provider.enable()
        await provider.enable()

        assert mock_page.context.new_cdp_session.await_count == 1


class TestCDPEvents:
    """Tests for translating Fetch notifications into events."""

    async def test_request_paused(self, mock_page, mock_cdp):
        """A request-stage pause should become a request event."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        listener(mock_cdp.on, "Fetch.requestPaused")(PAUSED_REQUEST)

        event = provider.events.get_nowait()
        assert isinstance(event, InterceptedEvent)
        assert event.id == "interception-1"
        assert event.stage is Stage.REQUEST
        assert event.method == "GET"
        assert event.request_headers == {"Accept": "text/css"}

    async def test_response_paused(self, mock_page, mock_cdp):
        """A pause with a status code should become a response event."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        listener(mock_cdp.on, "Fetch.requestPaused")(PAUSED_RESPONSE)

        event = provider.events.get_nowait()
        assert event.stage is Stage.RESPONSE
        assert event.response_status == 200
        assert event.response_headers == [("X-Crawlera-Error", "bad_session_id")]

    async def test_response_error_is_response_stage(self, mock_page, mock_cdp):
        """A pause with only an error reason is still a response event."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        listener(mock_cdp.on, "Fetch.requestPaused")(
            {**PAUSED_REQUEST, "responseErrorReason": "ConnectionRefused"}
        )

        assert provider.events.get_nowait().stage is Stage.RESPONSE

    async def test_auth_required(self, mock_page, mock_cdp):
        """authRequired should become an auth challenge event."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        listener(mock_cdp.on, "Fetch.authRequired")(AUTH_REQUIRED)

        event = provider.events.get_nowait()
        assert isinstance(event, AuthChallengeEvent)
        assert event.source is ChallengeSource.PROXY
        assert event.origin == "http://proxy.zyte.com:8011"
        assert event.url == "https://x.test/"


class TestCDPResolution:
    """Tests for resolution commands."""

    async def test_continue_with_headers(self, mock_page, mock_cdp):
        """Headers should be sent as name/value entries."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.continue_request("id-1", {"X-Crawlera-Session": "tok"})

        mock_cdp.send.assert_awaited_with(
            "Fetch.continueRequest",
            {
                "requestId": "id-1",
                "headers": [{"name": "X-Crawlera-Session", "value": "tok"}],
            },
        )

    async def test_continue_without_headers(self, mock_page, mock_cdp):
        """No headers should leave the request untouched."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.continue_request("id-1")

        mock_cdp.send.assert_awaited_with("Fetch.continueRequest", {"requestId": "id-1"})

    async def test_fulfill_base64_body(self, mock_page, mock_cdp):
        """The body should be base64 encoded for the devtools channel."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.fulfill_request(
            "id-1", FulfillPayload(200, [("content-type", "text/css")], b"body{}")
        )

        mock_cdp.send.assert_awaited_with(
            "Fetch.fulfillRequest",
            {
                "requestId": "id-1",
                "responseCode": 200,
                "responseHeaders": [{"name": "content-type", "value": "text/css"}],
                "body": base64.b64encode(b"body{}").decode(),
            },
        )

    async def test_fail(self, mock_page, mock_cdp):
        """fail_request() should send Fetch.failRequest."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.fail_request("id-1")

        mock_cdp.send.assert_awaited_with(
            "Fetch.failRequest", {"requestId": "id-1", "errorReason": "Failed"}
        )

    async def test_continue_with_auth(self, mock_page, mock_cdp):
        """Auth answers should be sent with Fetch.continueWithAuth."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.continue_with_auth("id-2", AuthChallengeResponse.provide("key"))

        mock_cdp.send.assert_awaited_with(
            "Fetch.continueWithAuth",
            {
                "requestId": "id-2",
                "authChallengeResponse": {
                    "response": "ProvideCredentials",
                    "username": "key",
                    "password": "",
                },
            },
        )

    async def test_target_closed_not_raised(self, mock_page, mock_cdp):
        """Losing the race against page teardown should not raise."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()
        mock_cdp.send.side_effect = TargetClosedError()

        await provider.continue_request("id-1")


class TestCDPClose:
    """Tests for ending the event stream."""

    async def test_close_disables_fetch(self, mock_page, mock_cdp):
        """close() should disable Fetch, detach and end the stream."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        await provider.close()

        mock_cdp.send.assert_awaited_with("Fetch.disable")
        mock_cdp.detach.assert_awaited_once()
        assert provider.events.get_nowait() is None

    async def test_page_close_ends_stream(self, mock_page, mock_cdp):
        """The page close event should push the end marker once."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()

        listener(mock_page.on, "close")(mock_page)
        listener(mock_page.on, "close")(mock_page)
        listener(mock_cdp.on, "Fetch.requestPaused")(PAUSED_REQUEST)

        assert provider.events.get_nowait() is None
        assert provider.events.empty()

    async def test_close_after_page_closed(self, mock_page, mock_cdp):
        """Closing after the page is gone should not talk to the browser."""
        provider = CDPInterceptionProvider(mock_page)
        await provider.enable()
        mock_page.is_closed.return_value = True
        mock_cdp.send.reset_mock()

        await provider.close()

        mock_cdp.send.assert_not_awaited()


# =============================================================================
# Route Provider
# =============================================================================


def mock_request(url="https://x.test/a.css", method="GET"):
    request = MagicMock()
    request.url = url
    request.method = method
    request.headers_array = AsyncMock(
        return_value=[{"name": "accept", "value": "text/css"}]
    )
    return request


def mock_route():
    route = MagicMock()
    route.continue_ = AsyncMock()
    route.fulfill = AsyncMock()
    route.abort = AsyncMock()
    return route


class TestRouteProvider:
    """Tests for page.route based interception."""

    async def test_enable_routes_everything(self, mock_page):
        """enable() should register a catch-all route."""
        provider = RouteInterceptionProvider(mock_page)

        await provider.enable()

        mock_page.route.assert_awaited_once()
        assert mock_page.route.call_args.args[0] == "**/*"

    async def test_route_becomes_event(self, mock_page):
        """Routed requests should become request events."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        handler = mock_page.route.call_args.args[1]

        await handler(mock_route(), mock_request())

        event = provider.events.get_nowait()
        assert event.stage is Stage.REQUEST
        assert event.url == "https://x.test/a.css"
        assert event.request_headers == {"accept": "text/css"}
        assert provider.pending_count == 1

    async def test_continue_with_headers(self, mock_page):
        """continue_request() should continue the stored route once."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        route = mock_route()
        await mock_page.route.call_args.args[1](route, mock_request())
        event = provider.events.get_nowait()

        await provider.continue_request(event.id, {"X-Crawlera-Session": "tok"})
        await provider.continue_request(event.id, {"X-Crawlera-Session": "tok"})

        route.continue_.assert_awaited_once_with(headers={"X-Crawlera-Session": "tok"})
        assert provider.pending_count == 0

    async def test_fulfill_raw_body(self, mock_page):
        """fulfill_request() should pass raw bytes and the content type."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        route = mock_route()
        await mock_page.route.call_args.args[1](route, mock_request())
        event = provider.events.get_nowait()

        await provider.fulfill_request(
            event.id, FulfillPayload(200, [("content-type", "text/css")], b"body{}")
        )

        route.fulfill.assert_awaited_once_with(
            status=200,
            headers={"content-type": "text/css"},
            content_type="text/css",
            body=b"body{}",
        )

    async def test_fail_aborts(self, mock_page):
        """fail_request() should abort the route."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        route = mock_route()
        await mock_page.route.call_args.args[1](route, mock_request())
        event = provider.events.get_nowait()

        await provider.fail_request(event.id)

        route.abort.assert_awaited_once_with("failed")

    async def test_response_observed(self, mock_page):
        """Responses should be emitted and resolving them is a no-op."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        response = MagicMock()
        response.url = "https://x.test/"
        response.status = 200
        response.headers = {"x-crawlera-error": "bad_session_id"}
        response.request.method = "GET"

        listener(mock_page.on, "response")(response)
        event = provider.events.get_nowait()
        await provider.continue_request(event.id)

        assert event.stage is Stage.RESPONSE
        assert event.response_headers == [("x-crawlera-error", "bad_session_id")]

    async def test_target_closed_not_raised(self, mock_page):
        """A route that can't be continued because the page died should not raise."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()
        route = mock_route()
        route.continue_.side_effect = TargetClosedError()
        await mock_page.route.call_args.args[1](route, mock_request())
        event = provider.events.get_nowait()

        await provider.continue_request(event.id, {})

    async def test_close_unroutes(self, mock_page):
        """close() should remove the route and end the stream."""
        provider = RouteInterceptionProvider(mock_page)
        await provider.enable()

        await provider.close()

        mock_page.unroute.assert_awaited_once()
        assert provider.events.get_nowait() is None


# =============================================================================
# Provider Selection
# =============================================================================


class TestSelectProvider:
    """Tests for select_provider()."""

    async def test_chromium_uses_cdp(self, mock_page):
        """Chromium pages should use the devtools provider."""
        mock_page.context.browser.browser_type.name = "chromium"

        assert isinstance(await select_provider(mock_page), CDPInterceptionProvider)

    async def test_firefox_uses_route(self, mock_page):
        """Other engines should use routing."""
        mock_page.context.browser.browser_type.name = "firefox"

        assert isinstance(await select_provider(mock_page), RouteInterceptionProvider)

    async def test_persistent_chromium_uses_cdp(self, mock_page, mock_cdp):
        """A persistent Chromium context has no browser but opens a CDP session."""
        mock_page.context.browser = None

        provider = await select_provider(mock_page)
        await provider.enable()

        assert isinstance(provider, CDPInterceptionProvider)
        mock_page.context.new_cdp_session.assert_awaited_once_with(mock_page)
        mock_cdp.send.assert_any_await("Fetch.enable", ANY)

    async def test_persistent_other_engine_uses_route(self, mock_page):
        """Without a browser and without CDP support routing is used."""
        mock_page.context.browser = None
        mock_page.context.new_cdp_session = AsyncMock(
            side_effect=Error("CDP session is only available in Chromium")
        )

        assert isinstance(await select_provider(mock_page), RouteInterceptionProvider)
