"""HTTP fetcher for archival. Single URL, manual redirects, bounded time and size.

- every hop (initial URL and each redirect target) is re-validated for SSRF
- body is streamed and abandoned once max_content_size is exceeded
- permanent failures come back as Err(FetchError kind)
- timeouts raise FetchTimeoutError; the job runner retries those
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests
from urllib3.exceptions import ReadTimeoutError

from apps.linkvault.config import ArchiveConfig
from apps.linkvault.services.result import Err, Ok, Result
from apps.linkvault.services.url_validator import BLOCKING_REASONS, UrlValidator, ValidationReason

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024

FETCH_BLOCKED = "blocked"
FETCH_INVALID_URL = "invalid_url"
FETCH_HTTP_ERROR = "http_error"
FETCH_SIZE_LIMIT = "size_limit"
FETCH_REDIRECT_ERROR = "redirect_error"
FETCH_NETWORK_ERROR = "network_error"


class FetchTimeoutError(Exception):
    """Transient: connect/read timeout or total download deadline exceeded. Safe to retry."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


@dataclass(frozen=True)
class FetchedContent:
    body: str
    status: int
    final_url: str
    content_type: str
    headers: dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0
    redirects: tuple[str, ...] = ()


def _fetch_error(kind: str, message: str, url: str, http_status: int | None = None, **details: Any) -> Err:
    return Err(kind=kind, message=message, details={"url": url, "http_status": http_status, **details})


def _is_read_timeout(exc: requests.exceptions.ConnectionError) -> bool:
    """requests wraps a urllib3 ReadTimeoutError raised mid-body in ConnectionError."""
    arg = exc.args[0] if exc.args else None
    return isinstance(arg, ReadTimeoutError)


def _decode(body: bytes, response: requests.Response, content_type: str) -> str:
    encoding = response.encoding if "charset=" in content_type.lower() else None
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class HttpFetcher:
    """Fetches one URL under ArchiveConfig limits. session and validator are injectable for tests.

    Validated addresses are not pinned: requests resolves each host again on connect.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        validator: UrlValidator | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.validator = validator or UrlValidator()
        self._session = session
        self._owns_session = session is None

    def _client(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        self._session.headers.update({"User-Agent": self.config.user_agent})
        return self._session

    def close(self) -> None:
        """Close the session this fetcher created. An injected session belongs to the caller."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def fetch(self, url: str) -> Result:
        """
        Fetch url. Returns Ok(FetchedContent) or Err(kind in blocked|invalid_url|http_error|
        size_limit|redirect_error|network_error). Raises FetchTimeoutError on timeout.
        """
        started = time.monotonic()
        deadline = started + self.config.total_timeout
        client = self._client()
        current = url
        hops: list[str] = []

        logger.info("Fetching url=%s", url)
        while True:
            check = self.validator.validate(current)
            if isinstance(check, Err):
                return self._hop_rejected(check, url, current, hops)

            try:
                resp = client.get(
                    current,
                    timeout=self.config.timeout,
                    allow_redirects=False,
                    stream=True,
                )
            except requests.exceptions.Timeout as e:
                raise FetchTimeoutError(current, f"Timed out fetching {current}: {e}") from e
            except requests.exceptions.ConnectionError as e:
                return _fetch_error(FETCH_NETWORK_ERROR, f"Connection failed: {e}", current)
            except requests.exceptions.RequestException as e:
                return _fetch_error(FETCH_NETWORK_ERROR, f"HTTP fetch error: {e}", current)

            if resp.status_code not in REDIRECT_STATUSES:
                break

            location = resp.headers.get("Location")
            status = resp.status_code
            resp.close()
            if not location:
                return _fetch_error(
                    FETCH_REDIRECT_ERROR, "Redirect missing Location header", current, http_status=status
                )
            if len(hops) >= self.config.max_redirects:
                return _fetch_error(
                    FETCH_REDIRECT_ERROR,
                    f"Too many redirects (exceeded {self.config.max_redirects})",
                    current,
                    http_status=status,
                    redirects=hops,
                )
            current = urljoin(current, location)
            hops.append(current)
            logger.info("Redirect %s url=%s -> %s", status, url, current)
            if time.monotonic() > deadline:
                raise FetchTimeoutError(current, f"Total fetch time exceeded {self.config.total_timeout}s")

        with resp:
            content_type = resp.headers.get("Content-Type", "") or ""
            if not 200 <= resp.status_code < 300:
                reason = resp.reason or ""
                return _fetch_error(
                    FETCH_HTTP_ERROR,
                    f"HTTP {resp.status_code}: {reason}".strip(),
                    current,
                    http_status=resp.status_code,
                )

            declared = resp.headers.get("Content-Length")
            if declared and declared.strip().isdigit() and int(declared) > self.config.max_content_size:
                return self._size_exceeded(current, resp.status_code, int(declared))

            body = self._read_body(resp, current, deadline)
            if isinstance(body, Err):
                return body

            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "Fetched url=%s final_url=%s status=%s bytes=%d duration_ms=%d",
                url,
                current,
                resp.status_code,
                len(body),
                duration_ms,
            )
            return Ok(
                FetchedContent(
                    body=_decode(body, resp, content_type),
                    status=resp.status_code,
                    final_url=current,
                    content_type=content_type,
                    headers=dict(resp.headers),
                    duration_ms=duration_ms,
                    redirects=tuple(hops),
                )
            )

    def _read_body(self, resp: requests.Response, url: str, deadline: float) -> bytes | Err:
        limit = self.config.max_content_size
        buf = bytearray()
        try:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                buf.extend(chunk)
                if len(buf) > limit:
                    return self._size_exceeded(url, resp.status_code, len(buf))
                if time.monotonic() > deadline:
                    raise FetchTimeoutError(url, f"Total fetch time exceeded {self.config.total_timeout}s")
        except requests.exceptions.Timeout as e:
            raise FetchTimeoutError(url, f"Timed out reading {url}: {e}") from e
        except requests.exceptions.ConnectionError as e:
            if _is_read_timeout(e):
                raise FetchTimeoutError(url, f"Timed out reading {url}: {e}") from e
            return _fetch_error(FETCH_NETWORK_ERROR, f"Connection failed while reading body: {e}", url)
        except requests.exceptions.RequestException as e:
            return _fetch_error(FETCH_NETWORK_ERROR, f"HTTP fetch error: {e}", url)
        return bytes(buf)

    def _size_exceeded(self, url: str, status: int, seen: int) -> Err:
        max_mb = round(self.config.max_content_size / (1024.0 * 1024), 1)
        logger.info("size limit hit url=%s seen=%d limit=%d", url, seen, self.config.max_content_size)
        return _fetch_error(
            FETCH_SIZE_LIMIT,
            f"Content size exceeds {max_mb}MB limit",
            url,
            http_status=status,
            content_length=seen,
            max_size=self.config.max_content_size,
        )

    @staticmethod
    def _hop_rejected(check: Err, original_url: str, current: str, hops: list[str]) -> Err:
        reason = ValidationReason(check.kind)
        redirected = bool(hops)
        if reason in BLOCKING_REASONS:
            message = (
                f"Redirect to non-public address blocked (SSRF protection): {current}"
                if redirected
                else check.message
            )
            kind = FETCH_BLOCKED
        else:
            message = f"Redirect target rejected: {check.message}" if redirected else check.message
            kind = FETCH_REDIRECT_ERROR if redirected else FETCH_INVALID_URL
        return Err(
            kind=kind,
            message=message,
            details={
                "url": original_url,
                "http_status": None,
                "redirect_url": current if redirected else None,
                "validation_reason": reason.value,
            },
        )
