"""Session-aware request interception for Smart Proxy Manager browser sessions."""

__version__ = "0.1.0"

from smartproxy_interceptor.core import (
    AuthChallengeResponder,
    BypassFailed,
    DirectFetcher,
    InterceptionRouter,
    RegexBypassMatcher,
    SessionCreationFailed,
    SessionManager,
    build_request_headers,
)
from smartproxy_interceptor.plugin import MissingApiKeyError, SmartProxyPlugin

__all__ = [
    "AuthChallengeResponder",
    "BypassFailed",
    "DirectFetcher",
    "InterceptionRouter",
    "MissingApiKeyError",
    "RegexBypassMatcher",
    "SessionCreationFailed",
    "SessionManager",
    "SmartProxyPlugin",
    "__version__",
    "build_request_headers",
]
