"""Interception and session lifecycle core."""

from smartproxy_interceptor.core.headers import (
    build_request_headers,
    find_header,
    headers_to_pairs,
    pairs_to_headers,
)
from smartproxy_interceptor.core.bypass import (
    BypassMatcher,
    RegexBypassMatcher,
    is_bypassable,
)
from smartproxy_interceptor.core.direct_fetch import BypassFailed, DirectFetcher
from smartproxy_interceptor.core.session import SessionCreationFailed, SessionManager
from smartproxy_interceptor.core.auth import AuthChallengeResponder
from smartproxy_interceptor.core.router import InterceptionRouter

__all__ = [
    "AuthChallengeResponder",
    "BypassFailed",
    "BypassMatcher",
    "DirectFetcher",
    "InterceptionRouter",
    "RegexBypassMatcher",
    "SessionCreationFailed",
    "SessionManager",
    "build_request_headers",
    "find_header",
    "headers_to_pairs",
    "pairs_to_headers",
    "is_bypassable",
]
