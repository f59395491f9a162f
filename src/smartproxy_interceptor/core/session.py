"""Proxy session token lifecycle with single-flight creation."""

import asyncio
import logging
from types import TracebackType

import httpx

from smartproxy_interceptor.config import settings
from smartproxy_interceptor.models.events import SessionState

logger = logging.getLogger(__name__)


class SessionCreationFailed(RuntimeError):
    """Raised when the proxy refuses or cannot be reached to create a session."""

    def __init__(
        self,
        status: int | None = None,
        reason: str | None = None,
        body: str | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.body = body
        if status is None:
            super().__init__("Error creating SPM session: proxy unreachable")
        else:
            super().__init__(
                f"Error creating SPM session. Response: {status} {reason} {body}"
            )


class SessionManager:
    """Owns the proxy session token shared by every intercepted request.

    The token is created lazily on first use and reused until invalidate()
    is called. Concurrent get_token() calls while no token is set share a
    single creation request.

    Usage:

        async with SessionManager(api_key, proxy_host, client_identity) as sm:
            token = await sm.get_token()
            ...
            sm.invalidate()
    """

    def __init__(
        self,
        api_key: str,
        proxy_host: str | None = None,
        client_identity: str | None = None,
        *,
        client_header: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key
        self.proxy_host = (proxy_host or settings.spm_host).rstrip("/")
        self.client_identity = client_identity
        self.client_header = client_header or settings.client_header
        self.timeout = timeout if timeout is not None else settings.session_timeout

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout, trust_env=False)

        self._token: str | None = None
        self._state = SessionState.UNSET
        self._creating: asyncio.Task[str] | None = None
        self._creation_count = 0

    def __repr__(self) -> str:
        return f"SessionManager(proxy_host={self.proxy_host!r}, state={self._state.value})"

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel a pending creation and close the owned HTTP client."""
        if self._creating and not self._creating.done():
            self._creating.cancel()
        if self._owns_client:
            await self._client.aclose()

    async def get_token(self) -> str:
        """Return the active token, creating a session if there is none.

        Raises:
            SessionCreationFailed: If the creation request failed. Every
                caller waiting on the same creation receives this error.
        """
        if self._token is not None:
            return self._token

        if self._creating is None:
            self._state = SessionState.CREATING
            self._creating = asyncio.create_task(self._create())

        # Shielded so one caller being cancelled doesn't cancel the others.
        return await asyncio.shield(self._creating)

    def invalidate(self) -> None:
        """Forget the current token so the next get_token() creates a new one.

        A creation already in flight is not cancelled; its token is stored
        when it lands.
        """
        if self._token is not None:
            logger.info("Invalidating SPM session")
            logger.debug("Invalidated SPM session token %s", self._token)
        self._token = None
        if self._creating is None:
            self._state = (
                SessionState.INVALIDATED if self._creation_count else SessionState.UNSET
            )

    async def _create(self) -> str:
        try:
            token = await self._request_session()
        except SessionCreationFailed:
            self._state = SessionState.UNSET
            raise
        else:
            self._token = token
            self._state = SessionState.ACTIVE
            return token
        finally:
            self._creating = None

    async def _request_session(self) -> str:
        url = f"{self.proxy_host}/sessions"
        headers = {}
        if self.client_identity:
            headers[self.client_header] = self.client_identity

        self._creation_count += 1
        logger.debug("Creating SPM session at %s", url)

        try:
            response = await self._client.post(
                url,
                headers=headers,
                auth=httpx.BasicAuth(self._api_key, ""),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("SPM session request to %s failed: %s", url, e)
            raise SessionCreationFailed from e

        if not response.is_success:
            raise SessionCreationFailed(
                response.status_code,
                response.reason_phrase,
                response.text,
            )

        token = response.text.strip()
        # The token is a proxy credential; keep it out of INFO logs.
        logger.info("Created SPM session at %s", url)
        logger.debug("SPM session token %s", token)
        return token

    @property
    def token(self) -> str | None:
        """Return the current token without creating one."""
        return self._token

    @property
    def state(self) -> SessionState:
        """Return the session lifecycle state."""
        return self._state

    @property
    def creation_count(self) -> int:
        """Return how many creation requests have been sent."""
        return self._creation_count
