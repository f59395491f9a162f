"""Static content bypass classification."""

import re
from typing import Protocol

from smartproxy_interceptor.config import settings
from smartproxy_interceptor.models.events import InterceptedEvent


class BypassMatcher(Protocol):
    """Decides whether a request may be fetched directly, skipping the proxy."""

    def matches(self, event: InterceptedEvent) -> bool: ...


class RegexBypassMatcher:
    """Matches GET requests whose URL looks like a static asset.

    Usage:

        matcher = RegexBypassMatcher(r"\\.css$")
        matcher.matches(event)
    """

    def __init__(self, pattern: str | re.Pattern[str] | None = None) -> None:
        if pattern is None:
            pattern = settings.static_bypass_regex
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def __repr__(self) -> str:
        return f"RegexBypassMatcher(pattern={self.pattern.pattern!r})"

    def matches(self, event: InterceptedEvent) -> bool:
        return event.method.upper() == "GET" and bool(self.pattern.search(event.url))


def is_bypassable(
    event: InterceptedEvent,
    matcher: BypassMatcher | None = None,
) -> bool:
    """Check if ``event`` is eligible for a direct fetch.

    Response-stage events are never bypassable.
    """
    if event.is_response:
        return False
    return (matcher or RegexBypassMatcher()).matches(event)
