"""URL normalization for stored bookmark URLs."""

from urllib.parse import urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def canonicalize_url(url: str) -> str:
    """
    Canonical form used as the bookmark's unique url. The submitted string is kept separately.

    Rules:
    - trim surrounding whitespace
    - lowercase scheme and hostname
    - strip fragment
    - remove default ports (80 for http, 443 for https)
    - empty path becomes "/"; other paths and the query are left untouched
    Unparseable or host-less input is returned trimmed, so validation can reject it later.
    """
    raw = (url or "").strip()
    try:
        parsed = urlsplit(raw)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError:
        return raw
    if not host:
        return raw

    scheme = (parsed.scheme or "").lower()
    if port is not None and port == DEFAULT_PORTS.get(scheme):
        port = None

    if ":" in host:
        host = f"[{host}]"
    netloc = host if port is None else f"{host}:{port}"
    if parsed.username:
        userinfo = parsed.username + (f":{parsed.password}" if parsed.password else "")
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parsed.path or "/", parsed.query, ""))
