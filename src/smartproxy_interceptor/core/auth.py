"""Proxy authentication challenge responder."""

import logging

from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    AuthChallengeResponse,
    ChallengeSource,
)

logger = logging.getLogger(__name__)


class AuthChallengeResponder:
    """Answers challenges from the configured proxy with the API key.

    Challenges from any other origin, or raised by the target server, are
    left to the browser's default handling.
    """

    def __init__(self, api_key: str, proxy_host: str) -> None:
        self._api_key = api_key
        self.proxy_host = proxy_host.rstrip("/")

    def __repr__(self) -> str:
        return f"AuthChallengeResponder(proxy_host={self.proxy_host!r})"

    def is_proxy_challenge(self, challenge: AuthChallengeEvent) -> bool:
        return (
            challenge.source is ChallengeSource.PROXY
            and challenge.origin.rstrip("/") == self.proxy_host
        )

    def respond(self, challenge: AuthChallengeEvent) -> AuthChallengeResponse:
        if self.is_proxy_challenge(challenge):
            return AuthChallengeResponse.provide(self._api_key, "")

        logger.debug(
            "Deferring auth challenge from %s (%s) to default handling",
            challenge.origin,
            challenge.source.value,
        )
        return AuthChallengeResponse.default()
