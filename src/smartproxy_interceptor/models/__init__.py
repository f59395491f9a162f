"""Event models and devtools wire schemas."""

from smartproxy_interceptor.models.cdp import AuthRequiredParams, RequestPausedParams
from smartproxy_interceptor.models.events import (
    AuthChallengeEvent,
    AuthChallengeResponse,
    AuthResponseKind,
    ChallengeSource,
    FulfillPayload,
    InterceptedEvent,
    Resolution,
    SessionState,
    Stage,
)

__all__ = [
    "AuthChallengeEvent",
    "AuthChallengeResponse",
    "AuthRequiredParams",
    "AuthResponseKind",
    "ChallengeSource",
    "FulfillPayload",
    "InterceptedEvent",
    "RequestPausedParams",
    "Resolution",
    "SessionState",
    "Stage",
]
