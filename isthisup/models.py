"""Data models for availability checks and alerts."""

from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlparse


@dataclass(frozen=True)
class Target:
    """The monitored website.

    Attributes:
        url: Full URL that is checked.
    """

    url: str

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()

    @property
    def is_https(self) -> bool:
        """Whether certificate validation applies."""
        return self.scheme == "https"

    @property
    def host(self) -> str:
        """Network location without user info (host, plus port if explicit)."""
        return urlparse(self.url).netloc.rpartition("@")[2]

    @property
    def hostname(self) -> str | None:
        return urlparse(self.url).hostname

    @property
    def port(self) -> int | None:
        return urlparse(self.url).port

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"


@dataclass(frozen=True)
class CertificateInfo:
    """Leaf certificate details read during a TLS handshake.

    Attributes:
        hostname_verified: Whether the certificate matched the requested host.
        subject: Certificate subject common name, if present.
        expires_at: Certificate expiration timestamp (UTC).
    """

    hostname_verified: bool
    subject: str | None
    expires_at: datetime


@dataclass
class RetryState:
    """Attempt bookkeeping for a single availability check."""

    max_attempts: int
    delay: int
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(frozen=True)
class CheckVerdict:
    """Outcome of an availability check.

    Attributes:
        is_up: Whether the target is considered up.
        reason: Human-readable reason (logging only).
        attempts: Number of attempts made.
    """

    is_up: bool
    reason: str
    attempts: int = 0

    def __bool__(self) -> bool:
        return self.is_up


@dataclass(frozen=True)
class AlertEvent:
    """An incident to raise on the alert backend.

    Attributes:
        message: Summary text shown to the on-call operator.
        severity: Backend-specific severity ("critical" or "P1").
        dedup_key: Stable key derived from the target host.
    """

    message: str
    severity: str
    dedup_key: str
