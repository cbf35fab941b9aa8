"""TLS certificate validation for HTTPS targets."""

import logging
import socket
import ssl
from datetime import UTC, datetime, timedelta

from .models import CertificateInfo

logger = logging.getLogger(__name__)

# OpenSSL X509_V_ERR_HOSTNAME_MISMATCH
_HOSTNAME_MISMATCH = 62

DEFAULT_PORT = 443


class CertificateError(Exception):
    """Raised when a certificate check fails for one attempt."""

    pass


def _subject_common_name(cert: dict) -> str | None:
    """Extract the subject CN from a getpeercert() dict."""
    for rdn in cert.get("subject", ()):
        for key, value in rdn:
            if key == "commonName":
                return str(value)
    return None


def fetch_certificate(hostname: str, port: int = DEFAULT_PORT, timeout: float = 10) -> CertificateInfo:
    """Handshake with hostname:port and return the verified leaf certificate.

    Both sockets are closed before returning, whatever the outcome.

    Raises:
        CertificateError: On handshake failure or hostname mismatch.
    """
    context = ssl.create_default_context()

    try:
        with socket.create_connection((hostname, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=hostname) as ssl_sock:
                cert = ssl_sock.getpeercert()
    except ssl.SSLCertVerificationError as e:
        if e.verify_code == _HOSTNAME_MISMATCH:
            raise CertificateError(f"hostname mismatch: {e.verify_message}") from e
        raise CertificateError(f"connection/handshake error: {e}") from e
    except (ssl.SSLError, OSError, ValueError) as e:
        raise CertificateError(f"connection/handshake error: {e}") from e

    if not cert:
        raise CertificateError("connection/handshake error: no certificate returned by server")

    # notAfter format: 'Mon DD HH:MM:SS YYYY GMT'
    not_after_raw = cert.get("notAfter")
    if not not_after_raw or not isinstance(not_after_raw, str):
        raise CertificateError("certificate missing expiration date")

    try:
        expires_at = datetime.strptime(not_after_raw, "%b %d %H:%M:%S %Y %Z").replace(tzinfo=UTC)
    except ValueError as e:
        raise CertificateError(f"certificate has malformed expiration date: {not_after_raw}") from e

    return CertificateInfo(
        hostname_verified=True,
        subject=_subject_common_name(cert),
        expires_at=expires_at,
    )


def validate_certificate(
    host: str,
    min_validity: timedelta,
    timeout: float = 10,
    port: int = DEFAULT_PORT,
) -> tuple[bool, str]:
    """Check that host presents a matching certificate valid for min_validity.

    Args:
        host: Hostname to connect to and verify against.
        min_validity: Minimum remaining validity required.
        timeout: Connection timeout in seconds.
        port: TLS port.

    Returns:
        Tuple of (ok, reason). reason is "ok" on success.
    """
    try:
        info = fetch_certificate(host, port=port, timeout=timeout)
        if info.expires_at < datetime.now(UTC) + min_validity:
            raise CertificateError("certificate expires too soon")
    except CertificateError as e:
        return False, str(e)

    logger.debug("Certificate for %s valid until %s", host, info.expires_at.isoformat())
    return True, "ok"
