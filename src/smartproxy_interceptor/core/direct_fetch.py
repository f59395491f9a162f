"""Direct fetch of static assets, bypassing the proxy."""

import logging
from types import TracebackType

import httpx

from smartproxy_interceptor.config import settings
from smartproxy_interceptor.models.events import FulfillPayload, InterceptedEvent

logger = logging.getLogger(__name__)

# httpx hands back a decoded body, so these no longer describe it.
_DROPPED_RESPONSE_HEADERS = frozenset({"content-encoding", "content-length"})

# Encodings httpx decodes without optional extras. The browser's own
# Accept-Encoding is replaced so the origin only picks from these.
_DECODABLE_ENCODINGS = frozenset({"identity", "gzip", "deflate"})
_ACCEPT_ENCODING = "gzip, deflate"


def _request_headers(event: InterceptedEvent) -> dict[str, str]:
    headers = {
        name: value
        for name, value in event.request_headers.items()
        if name.lower() != "accept-encoding"
    }
    headers["Accept-Encoding"] = _ACCEPT_ENCODING
    return headers


class BypassFailed(RuntimeError):
    """Raised when a direct fetch does not produce a usable 200 response."""

    def __init__(self, url: str, status: int | None = None) -> None:
        self.url = url
        self.status = status
        if status is None:
            super().__init__(f"Proxy bypass failed for {url}")
        else:
            super().__init__(f"Proxy bypass failed for {url}: HTTP {status}")


class DirectFetcher:
    """Fetches requests directly and turns the result into a fulfill payload.

    Usage as context manager:

        async with DirectFetcher() as fetcher:
            payload = await fetcher.attempt_bypass(event)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.bypass_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            trust_env=False,
        )

    def __repr__(self) -> str:
        return f"DirectFetcher(timeout={self.timeout})"

    async def __aenter__(self) -> "DirectFetcher":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def attempt_bypass(self, event: InterceptedEvent) -> FulfillPayload:
        """Fetch ``event.url`` directly with the event's own request headers.

        Accept-Encoding is limited to what httpx can decode, since the body is
        replayed to the browser already decoded.

        Args:
            event: Request-stage event to fetch.

        Returns:
            FulfillPayload with status 200, upstream headers and the body.

        Raises:
            BypassFailed: On any status other than 200, an undecodable
                content encoding, or any transport error.
        """
        try:
            response = await self._client.get(
                event.url,
                headers=_request_headers(event),
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BypassFailed(event.url) from e

        if response.status_code != 200:
            raise BypassFailed(event.url, response.status_code)

        encodings = [
            e.strip().lower()
            for e in response.headers.get("content-encoding", "").split(",")
            if e.strip()
        ]
        if any(e not in _DECODABLE_ENCODINGS for e in encodings):
            logger.debug(
                "Can't decode %s body for %s", response.headers["content-encoding"], event.url
            )
            raise BypassFailed(event.url, response.status_code)

        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if value is not None and name.lower() not in _DROPPED_RESPONSE_HEADERS
        ]
        logger.debug("Bypassed proxy for %s (%d bytes)", event.url, len(response.content))
        return FulfillPayload(status=200, headers=headers, body=response.content)
