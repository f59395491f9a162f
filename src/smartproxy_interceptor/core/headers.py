"""Header merge policy for proxied requests."""

from collections.abc import Iterable, Mapping

from smartproxy_interceptor.config import settings


def _merge(target: dict[str, str], name: str, value: object) -> None:
    """Set ``name`` on ``target``, replacing any entry that differs only in case."""
    lowered = name.lower()
    for existing in [k for k in target if k.lower() == lowered]:
        del target[existing]
    if value is not None:
        target[name] = str(value)


def build_request_headers(
    original: Mapping[str, object | None],
    session_token: str | None,
    client_identity: str | None,
    static_overrides: Mapping[str, object | None] | None = None,
    *,
    session_header: str | None = None,
    client_header: str | None = None,
) -> dict[str, str]:
    """Build the headers a request is continued with through the proxy.

    Precedence, lowest to highest: original request headers, the session and
    client identity headers, then ``static_overrides``. Entries whose value is
    None are dropped instead of being emitted.

    Args:
        original: Headers the browser sent.
        session_token: Current proxy session token.
        client_identity: Client identity string, e.g. "name/1.0.0".
        static_overrides: User configured headers, applied last.
        session_header: Session header name. Defaults to settings.
        client_header: Client identity header name. Defaults to settings.

    Returns:
        New header mapping; the inputs are not modified.
    """
    session_header = session_header or settings.session_header
    client_header = client_header or settings.client_header

    headers: dict[str, str] = {}
    for name, value in original.items():
        _merge(headers, name, value)

    _merge(headers, session_header, session_token)
    _merge(headers, client_header, client_identity)

    for name, value in (static_overrides or {}).items():
        _merge(headers, name, value)

    return headers


def headers_to_pairs(headers: Mapping[str, object | None]) -> list[dict[str, str]]:
    """Convert a header mapping to devtools ``[{name, value}]`` entries."""
    return [
        {"name": name, "value": str(value)}
        for name, value in headers.items()
        if value is not None
    ]


def pairs_to_headers(pairs: Iterable[tuple[str, str | None]]) -> dict[str, str]:
    """Collapse ``(name, value)`` pairs into a mapping; later duplicates win."""
    return {name: value for name, value in pairs if value is not None}


def find_header(pairs: Iterable[tuple[str, str]] | None, name: str) -> str | None:
    """Case-insensitive lookup of the first header called ``name``."""
    if not pairs:
        return None
    lowered = name.lower()
    for header_name, value in pairs:
        if header_name.lower() == lowered:
            return value
    return None
