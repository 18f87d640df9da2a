"""Canonical bookmark URL: what counts as the same bookmark."""

import pytest

from apps.linkvault.services.url_utils import canonicalize_url


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://example.com", "https://example.com/"),
        ("  HTTPS://Example.COM/Path?q=1#frag ", "https://example.com/Path?q=1"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("https://example.com:443/a", "https://example.com/a"),
        ("https://example.com:8443/a", "https://example.com:8443/a"),
        ("http://user:pw@Example.com/", "http://user:pw@example.com/"),
        ("http://[::1]:8080/x", "http://[::1]:8080/x"),
    ],
)
def test_canonicalize(raw: str, expected: str) -> None:
    assert canonicalize_url(raw) == expected


@pytest.mark.parametrize("raw", ["not a url", "mailto:someone@example.com", "http://example.com:bad/"])
def test_unparseable_returned_trimmed(raw: str) -> None:
    assert canonicalize_url(f" {raw} ") == raw
