"""Archival pipeline configuration from environment. Built once at process start and passed to services."""

import os
from dataclasses import dataclass, replace

USER_AGENT_PRODUCT = "LinkVault/1.0"
ENV_PREFIX = "LINKVAULT_"


class ConfigError(ValueError):
    """Raised when configuration is missing or inconsistent."""

    pass


def _int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    try:
        return int(val.strip())
    except ValueError:
        return default


def _float(val: str | None, default: float) -> float:
    if val is None or val.strip() == "":
        return default
    try:
        return float(val.strip())
    except ValueError:
        return default


def _bool(val: str | None, default: bool) -> bool:
    if val is None or val.strip() == "":
        return default
    v = val.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def _env(name: str) -> str | None:
    return os.getenv(ENV_PREFIX + name)


@dataclass(frozen=True)
class ArchiveConfig:
    """Timeouts, limits, retry policy and User-Agent for content archival."""

    connect_timeout: float = 10.0
    read_timeout: float = 15.0
    total_timeout: float = 60.0
    max_redirects: int = 5
    max_content_size: int = 10 * 1024 * 1024
    max_retries: int = 3
    retry_backoff_base: float = 2.0
    user_agent_contact_url: str | None = None
    enabled: bool = True
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "ArchiveConfig":
        """Read LINKVAULT_* env vars. Invalid values fall back to defaults."""
        d = cls()
        return cls(
            connect_timeout=_float(_env("CONNECT_TIMEOUT"), d.connect_timeout),
            read_timeout=_float(_env("READ_TIMEOUT"), d.read_timeout),
            total_timeout=_float(_env("TOTAL_TIMEOUT"), d.total_timeout),
            max_redirects=_int(_env("MAX_REDIRECTS"), d.max_redirects),
            max_content_size=_int(_env("MAX_CONTENT_SIZE"), d.max_content_size),
            max_retries=_int(_env("MAX_RETRIES"), d.max_retries),
            retry_backoff_base=_float(_env("RETRY_BACKOFF_BASE"), d.retry_backoff_base),
            user_agent_contact_url=(_env("USER_AGENT_CONTACT_URL") or "").strip() or None,
            enabled=_bool(_env("ENABLED"), d.enabled),
            environment=(os.getenv("ENV") or os.getenv("ENVIRONMENT") or d.environment).strip().lower(),
        )

    @property
    def user_agent(self) -> str:
        """User-Agent header: product token plus contact URL."""
        contact = self.user_agent_contact_url or "https://github.com/linkvault/linkvault"
        return f"{USER_AGENT_PRODUCT} (+{contact})"

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) tuple for requests."""
        return (self.connect_timeout, self.read_timeout)

    def with_overrides(self, **changes) -> "ArchiveConfig":
        return replace(self, **changes)

    def validate(self) -> "ArchiveConfig":
        """Raise ConfigError on unusable settings. Returns self for chaining."""
        if self.environment == "production" and not self.user_agent_contact_url:
            raise ConfigError(
                "LINKVAULT_USER_AGENT_CONTACT_URL is required in production"
            )
        for name in ("connect_timeout", "read_timeout", "total_timeout", "retry_backoff_base"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.max_content_size <= 0:
            raise ConfigError("max_content_size must be positive")
        if self.max_redirects < 0:
            raise ConfigError("max_redirects must be >= 0")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be >= 1")
        return self
