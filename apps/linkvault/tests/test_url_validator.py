"""URL validator: format/scheme checks before any DNS, SSRF classification of every resolved address."""

import ipaddress

import pytest

from apps.linkvault.services.result import Err, Ok
from apps.linkvault.services.state_machine import ArchiveState
from apps.linkvault.services.url_validator import (
    UrlValidator,
    ValidationReason,
    classify_address,
    reason_to_state,
    validate_url,
)
from tests._helpers import PUBLIC_IP, fake_resolver, public_resolver


def _validator(table: dict[str, list[str]] | None = None) -> UrlValidator:
    return UrlValidator(resolver=fake_resolver(table) if table is not None else public_resolver())


def test_public_https_url_passes() -> None:
    result = _validator().validate("https://example.com/")
    assert isinstance(result, Ok)
    assert result.data.hostname == "example.com"
    assert result.data.addresses == (PUBLIC_IP,)


@pytest.mark.parametrize(
    "url,reason",
    [
        ("http://127.0.0.1/x", ValidationReason.LOOPBACK),
        ("http://10.0.0.5/", ValidationReason.PRIVATE_IP),
        ("http://169.254.169.254/", ValidationReason.PRIVATE_IP),
        ("http://192.168.1.1/", ValidationReason.PRIVATE_IP),
        ("http://172.16.0.1/", ValidationReason.PRIVATE_IP),
        ("http://[::1]/", ValidationReason.LOOPBACK),
        ("http://[::ffff:127.0.0.1]/", ValidationReason.LOOPBACK),
        ("http://[fe80::1]/", ValidationReason.PRIVATE_IP),
        ("http://0.0.0.0/", ValidationReason.PRIVATE_IP),
        ("http://100.64.0.1/", ValidationReason.PRIVATE_IP),
    ],
)
def test_literal_non_public_addresses_blocked(url: str, reason: ValidationReason) -> None:
    resolver = fake_resolver({})
    result = UrlValidator(resolver=resolver).validate(url)
    assert isinstance(result, Err)
    assert result.kind == reason.value
    assert reason_to_state(result.kind) == ArchiveState.BLOCKED
    # literal IPs never hit DNS
    assert resolver.calls == []


def test_localhost_blocked_as_loopback() -> None:
    result = _validator().validate("http://localhost/admin")
    assert isinstance(result, Err)
    assert result.kind == "loopback"
    assert result.details["validation_reason"] == "loopback"


def test_any_private_address_in_dns_answer_blocks() -> None:
    table = {"mixed.example.com": [PUBLIC_IP, "10.0.0.7"]}
    result = _validator(table).validate("https://mixed.example.com/page")
    assert isinstance(result, Err)
    assert result.kind == "private_ip"
    assert result.details["address"] == "10.0.0.7"


@pytest.mark.parametrize(
    "url",
    ["", "   ", "not a url", "http://", "https:///path", "http://exa mple.com/", "http://example.com:99999/"],
)
def test_malformed_urls_are_invalid_format(url: str) -> None:
    result = _validator().validate(url)
    assert isinstance(result, Err)
    assert result.kind == "invalid_format"
    assert reason_to_state(result.kind) == ArchiveState.INVALID_URL


@pytest.mark.parametrize("url", ["ftp://example.com/file", "file:///etc/passwd", "javascript:alert(1)", "gopher://x/"])
def test_non_http_schemes_rejected_before_dns(url: str) -> None:
    resolver = fake_resolver({})
    result = UrlValidator(resolver=resolver).validate(url)
    assert isinstance(result, Err)
    assert result.kind == "unsupported_scheme"
    assert resolver.calls == []


def test_unresolvable_host_is_dns_failure() -> None:
    result = _validator({}).validate("https://nowhere.invalid/")
    assert isinstance(result, Err)
    assert result.kind == "dns_resolution_failed"
    assert reason_to_state(result.kind) == ArchiveState.INVALID_URL


def test_empty_dns_answer_is_dns_failure() -> None:
    result = _validator({"empty.example.com": []}).validate("https://empty.example.com/")
    assert isinstance(result, Err)
    assert result.kind == "dns_resolution_failed"


def test_hostname_is_idna_encoded_before_resolution() -> None:
    resolver = fake_resolver({"xn--bcher-kva.example": [PUBLIC_IP]})
    result = UrlValidator(resolver=resolver).validate("https://bücher.example/")
    assert isinstance(result, Ok)
    assert resolver.calls == ["xn--bcher-kva.example"]


def test_fragment_dropped_from_validated_url() -> None:
    result = _validator().validate("HTTPS://example.com/a?b=1#frag")
    assert isinstance(result, Ok)
    assert result.data.url == "https://example.com/a?b=1"


def test_classify_public_address_is_none() -> None:
    assert classify_address(ipaddress.ip_address(PUBLIC_IP)) is None
    assert classify_address(ipaddress.ip_address("2606:4700:4700::1111")) is None


def test_module_shortcut_uses_resolver() -> None:
    result = validate_url("http://intranet.example.com/", resolver=public_resolver())
    assert isinstance(result, Err)
    assert result.kind == "private_ip"
