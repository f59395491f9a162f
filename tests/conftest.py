"""Shared pytest fixtures."""

from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from smartproxy_interceptor.core.auth import AuthChallengeResponder
from smartproxy_interceptor.core.bypass import RegexBypassMatcher
from smartproxy_interceptor.core.direct_fetch import DirectFetcher
from smartproxy_interceptor.core.router import InterceptionRouter
from smartproxy_interceptor.core.session import SessionManager
from smartproxy_interceptor.models.events import (
    AuthChallengeResponse,
    FulfillPayload,
    InterceptedEvent,
    Stage,
)
from smartproxy_interceptor.providers.base import InterceptionProvider

API_KEY = "test-apikey"
PROXY_HOST = "http://proxy.test:8011"
CLIENT_IDENTITY = "zyte-smartproxy-patchright-extra/0.1.0"


class FakeProvider(InterceptionProvider):
    """In-memory provider recording every resolution call."""

    name = "fake"

    def __init__(self) -> None:
        page = MagicMock()
        page.is_closed.return_value = False
        super().__init__(page)
        self.calls: list[tuple] = []

    async def _enable(self) -> None:
        pass

    async def continue_request(self, event_id, headers=None) -> None:
        self.calls.append(("continue", event_id, headers))

    async def fulfill_request(self, event_id, payload: FulfillPayload) -> None:
        self.calls.append(("fulfill", event_id, payload))

    async def fail_request(self, event_id, reason="Failed") -> None:
        self.calls.append(("fail", event_id, reason))

    async def continue_with_auth(self, event_id, response: AuthChallengeResponse) -> None:
        self.calls.append(("auth", event_id, response))

    def close_page(self) -> None:
        self.page.is_closed.return_value = True


class ProxyStub:
    """httpx handler standing in for the proxy session API and origin servers.

    ``sessions`` holds the tokens (or responses) returned by successive
    session creation calls. ``assets`` maps URLs to direct fetch responses.
    """

    def __init__(self) -> None:
        self.sessions: list[str | httpx.Response] = ["session-1", "session-2", "session-3"]
        self.assets: dict[str, httpx.Response] = {}
        self.session_requests: list[httpx.Request] = []
        self.asset_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/sessions":
            self.session_requests.append(request)
            result = self.sessions[len(self.session_requests) - 1]
            if isinstance(result, httpx.Response):
                return result
            return httpx.Response(200, text=result)

        self.asset_requests.append(request)
        return self.assets.get(str(request.url), httpx.Response(404))


def make_event(
    url: str = "https://x.test/page",
    method: str = "GET",
    event_id: str = "req-1",
    headers: dict[str, str] | None = None,
) -> InterceptedEvent:
    return InterceptedEvent(
        id=event_id,
        stage=Stage.REQUEST,
        method=method,
        url=url,
        request_headers=headers if headers is not None else {"Accept": "*/*"},
    )


def make_response_event(
    headers: list[tuple[str, str]] | None = None,
    event_id: str = "resp-1",
    status: int = 200,
) -> InterceptedEvent:
    return InterceptedEvent(
        id=event_id,
        stage=Stage.RESPONSE,
        method="GET",
        url="https://x.test/page",
        response_headers=headers or [],
        response_status=status,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def proxy_stub() -> ProxyStub:
    return ProxyStub()


@pytest.fixture
async def http_client(proxy_stub):
    """AsyncClient answering from ProxyStub instead of the network."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(proxy_stub)) as client:
        yield client


@pytest.fixture
def session(http_client) -> SessionManager:
    return SessionManager(API_KEY, PROXY_HOST, CLIENT_IDENTITY, client=http_client)


@pytest.fixture
def make_router(provider, session, http_client) -> Callable[..., InterceptionRouter]:
    """Build a router over FakeProvider; bypass also matches .js for tests."""

    def _make(**kwargs) -> InterceptionRouter:
        kwargs.setdefault("bypass_matcher", RegexBypassMatcher(r"\.(?:js|css|png)$"))
        kwargs.setdefault("static_bypass", True)
        return InterceptionRouter(
            provider,
            session,
            DirectFetcher(http_client),
            AuthChallengeResponder(API_KEY, PROXY_HOST),
            **kwargs,
        )

    return _make
