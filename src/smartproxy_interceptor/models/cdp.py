"""Pydantic models for the devtools Fetch domain notifications."""

from pydantic import BaseModel, ConfigDict, Field

from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    ChallengeSource,
    InterceptedEvent,
    Stage,
)

# =============================================================================
# Shared Models
# =============================================================================


class _CDPModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class HeaderEntry(_CDPModel):
    """A single ``{name, value}`` header entry."""

    name: str
    value: str


class CDPRequest(_CDPModel):
    """The ``request`` object attached to Fetch notifications."""

    url: str = Field(description="Request URL")
    method: str = Field(description="HTTP request method")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Request headers as a name to value mapping",
    )


# =============================================================================
# Fetch.requestPaused
# =============================================================================


class RequestPausedParams(_CDPModel):
    """Parameters of a ``Fetch.requestPaused`` notification."""

    request_id: str = Field(alias="requestId")
    request: CDPRequest
    response_status_code: int | None = Field(default=None, alias="responseStatusCode")
    response_error_reason: str | None = Field(
        default=None, alias="responseErrorReason"
    )
    response_headers: list[HeaderEntry] | None = Field(
        default=None, alias="responseHeaders"
    )

    @property
    def is_response(self) -> bool:
        """Response-stage pauses carry either a status code or an error reason."""
        return (
            self.response_status_code is not None
            or self.response_error_reason is not None
        )

    def to_event(self) -> InterceptedEvent:
        response_headers = None
        if self.response_headers is not None:
            response_headers = [(h.name, h.value) for h in self.response_headers]

        return InterceptedEvent(
            id=self.request_id,
            stage=Stage.RESPONSE if self.is_response else Stage.REQUEST,
            method=self.request.method,
            url=self.request.url,
            request_headers=dict(self.request.headers),
            response_headers=response_headers,
            response_status=self.response_status_code,
        )


# =============================================================================
# Fetch.authRequired
# =============================================================================


class AuthChallenge(_CDPModel):
    """The ``authChallenge`` object of a ``Fetch.authRequired`` notification."""

    source: ChallengeSource = Field(default=ChallengeSource.SERVER)
    origin: str
    scheme: str | None = None
    realm: str | None = None


class AuthRequiredParams(_CDPModel):
    """Parameters of a ``Fetch.authRequired`` notification."""

    request_id: str = Field(alias="requestId")
    request: CDPRequest | None = None
    auth_challenge: AuthChallenge = Field(alias="authChallenge")

    def to_event(self) -> AuthChallengeEvent:
        return AuthChallengeEvent(
            id=self.request_id,
            origin=self.auth_challenge.origin,
            source=self.auth_challenge.source,
            scheme=self.auth_challenge.scheme,
            realm=self.auth_challenge.realm,
            url=self.request.url if self.request else None,
        )
