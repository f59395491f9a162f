"""Internal representations of intercepted network events and their resolutions."""

from dataclasses import dataclass, field
from enum import Enum


class Stage(str, Enum):
    """Interception stage of a paused network event."""

    REQUEST = "Request"
    RESPONSE = "Response"


class ChallengeSource(str, Enum):
    """Who issued an authentication challenge."""

    PROXY = "Proxy"
    SERVER = "Server"


class SessionState(str, Enum):
    """Lifecycle state of the proxy session token."""

    UNSET = "unset"
    CREATING = "creating"
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class Resolution(str, Enum):
    """Terminal outcome of a handled event."""

    CONTINUED = "continued"
    FULFILLED = "fulfilled"
    FAILED = "failed"
    DROPPED = "dropped"


@dataclass
class InterceptedEvent:
    """A request or response paused by the browser, waiting for a decision."""

    id: str
    stage: Stage
    method: str
    url: str
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: list[tuple[str, str]] | None = None
    response_status: int | None = None

    @property
    def is_response(self) -> bool:
        return self.stage is Stage.RESPONSE


@dataclass
class AuthChallengeEvent:
    """An HTTP authentication challenge raised while loading a request."""

    id: str
    origin: str
    source: ChallengeSource
    scheme: str | None = None
    realm: str | None = None
    url: str | None = None


@dataclass
class FulfillPayload:
    """Response used to answer a request without sending it to the network.

    The body is kept as raw bytes; providers convert it to whatever their
    resolution channel expects.
    """

    status: int
    headers: list[tuple[str, str]]
    body: bytes

    @property
    def content_type(self) -> str | None:
        for name, value in self.headers:
            if name.lower() == "content-type":
                return value
        return None


class AuthResponseKind(str, Enum):
    PROVIDE_CREDENTIALS = "ProvideCredentials"
    DEFAULT = "Default"


@dataclass(frozen=True)
class AuthChallengeResponse:
    """Answer to an authentication challenge."""

    kind: AuthResponseKind
    username: str | None = None
    password: str | None = None

    @classmethod
    def provide(cls, username: str, password: str = "") -> "AuthChallengeResponse":
        return cls(
            kind=AuthResponseKind.PROVIDE_CREDENTIALS,
            username=username,
            password=password,
        )

    @classmethod
    def default(cls) -> "AuthChallengeResponse":
        return cls(kind=AuthResponseKind.DEFAULT)

    def to_cdp(self) -> dict:
        """Convert to a devtools ``authChallengeResponse`` object."""
        if self.kind is AuthResponseKind.PROVIDE_CREDENTIALS:
            return {
                "response": self.kind.value,
                "username": self.username,
                "password": self.password,
            }
        return {"response": self.kind.value}
