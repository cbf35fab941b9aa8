"""Tests for TLS certificate validation."""

import socket
import ssl
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from isthisup.certificate import CertificateError, fetch_certificate, validate_certificate


def _not_after(delta: timedelta) -> str:
    """Format an expiry like ssl.getpeercert() does."""
    return (datetime.now(UTC) + delta).strftime("%b %d %H:%M:%S %Y GMT")


def _cert(expires_in: timedelta, cn: str = "example.com") -> dict:
    return {
        "subject": ((("commonName", cn),),),
        "issuer": ((("organizationName", "Test CA"),),),
        "notAfter": _not_after(expires_in),
    }


class _FakeTLS:
    """Patches socket/ssl so a handshake returns a canned certificate."""

    def __init__(self, cert: dict | None = None, wrap_error: Exception | None = None) -> None:
        self.sock = MagicMock()
        self.sock.__enter__.return_value = self.sock
        self.sock.__exit__.return_value = False

        self.ssl_sock = MagicMock()
        self.ssl_sock.__enter__.return_value = self.ssl_sock
        self.ssl_sock.__exit__.return_value = False
        self.ssl_sock.getpeercert.return_value = cert

        self.context = MagicMock()
        if wrap_error is not None:
            self.context.wrap_socket.side_effect = wrap_error
        else:
            self.context.wrap_socket.return_value = self.ssl_sock

    def __enter__(self) -> "_FakeTLS":
        self._patches = [
            patch("isthisup.certificate.socket.create_connection", return_value=self.sock),
            patch("isthisup.certificate.ssl.create_default_context", return_value=self.context),
        ]
        self.create_connection = self._patches[0].start()
        self._patches[1].start()
        return self

    def __exit__(self, *exc) -> None:
        for p in self._patches:
            p.stop()


def _verification_error(code: int, message: str) -> ssl.SSLCertVerificationError:
    error = ssl.SSLCertVerificationError(1, f"[SSL: CERTIFICATE_VERIFY_FAILED] {message}")
    error.verify_code = code
    error.verify_message = message
    return error


class TestFetchCertificate:
    """Tests for fetch_certificate."""

    def test_returns_certificate_info(self) -> None:
        """Subject and expiry are read from the leaf certificate."""
        with _FakeTLS(_cert(timedelta(days=30))) as tls:
            info = fetch_certificate("example.com", timeout=5)

        tls.create_connection.assert_called_once_with(("example.com", 443), timeout=5)
        tls.context.wrap_socket.assert_called_once_with(tls.sock, server_hostname="example.com")
        assert info.hostname_verified is True
        assert info.subject == "example.com"
        assert info.expires_at.tzinfo is UTC

    def test_uses_explicit_port(self) -> None:
        with _FakeTLS(_cert(timedelta(days=30))) as tls:
            fetch_certificate("example.com", port=8443)

        assert tls.create_connection.call_args[0][0] == ("example.com", 8443)

    def test_missing_expiry_raises(self) -> None:
        cert = _cert(timedelta(days=30))
        del cert["notAfter"]
        with _FakeTLS(cert):
            with pytest.raises(CertificateError, match="missing expiration"):
                fetch_certificate("example.com")

    def test_empty_certificate_raises(self) -> None:
        with _FakeTLS({}):
            with pytest.raises(CertificateError, match="no certificate"):
                fetch_certificate("example.com")


class TestValidateCertificate:
    """Tests for validate_certificate."""

    def test_valid_certificate(self) -> None:
        """Certificate valid well past the horizon passes."""
        with _FakeTLS(_cert(timedelta(days=90))):
            assert validate_certificate("example.com", timedelta(days=5)) == (True, "ok")

    def test_expires_too_soon(self) -> None:
        """Certificate expiring in 2 days fails a 5 day limit."""
        with _FakeTLS(_cert(timedelta(days=2))):
            ok, reason = validate_certificate("example.com", timedelta(days=5))

        assert ok is False
        assert reason == "certificate expires too soon"

    def test_zero_limit_accepts_unexpired(self) -> None:
        with _FakeTLS(_cert(timedelta(hours=2))):
            ok, _ = validate_certificate("example.com", timedelta(0))
        assert ok is True

    def test_hostname_mismatch(self) -> None:
        """Certificate for another host is reported as a mismatch."""
        error = _verification_error(62, "Hostname mismatch, certificate is not valid for 'example.com'.")
        with _FakeTLS(wrap_error=error):
            ok, reason = validate_certificate("example.com", timedelta(days=5))

        assert ok is False
        assert reason.startswith("hostname mismatch")

    def test_untrusted_certificate_is_handshake_error(self) -> None:
        """Other verification failures are handshake errors."""
        error = _verification_error(18, "self-signed certificate")
        with _FakeTLS(wrap_error=error):
            ok, reason = validate_certificate("example.com", timedelta(days=5))

        assert ok is False
        assert reason.startswith("connection/handshake error")

    def test_connection_refused(self) -> None:
        """TCP failure is a handshake error."""
        with patch(
            "isthisup.certificate.socket.create_connection",
            side_effect=ConnectionRefusedError("refused"),
        ):
            ok, reason = validate_certificate("example.com", timedelta(days=5))

        assert ok is False
        assert reason.startswith("connection/handshake error")

    def test_unencodable_hostname(self) -> None:
        """IDNA encoding errors are handshake errors, not crashes."""
        with patch(
            "isthisup.certificate.socket.create_connection",
            side_effect=UnicodeError("label empty or too long"),
        ):
            ok, reason = validate_certificate("a" * 64 + ".example.com", timedelta(days=5))

        assert ok is False
        assert reason.startswith("connection/handshake error")

    def test_dns_failure(self) -> None:
        with patch(
            "isthisup.certificate.socket.create_connection",
            side_effect=socket.gaierror(-2, "Name or service not known"),
        ):
            ok, reason = validate_certificate("nope.invalid", timedelta(days=5))

        assert ok is False
        assert "handshake error" in reason

    def test_connection_closed_on_success(self) -> None:
        """Both sockets are closed after a successful check."""
        with _FakeTLS(_cert(timedelta(days=90))) as tls:
            validate_certificate("example.com", timedelta(days=5))

        tls.ssl_sock.__exit__.assert_called_once()
        tls.sock.__exit__.assert_called_once()

    def test_connection_closed_when_expiring(self) -> None:
        """Sockets are closed when the certificate is rejected."""
        with _FakeTLS(_cert(timedelta(days=1))) as tls:
            validate_certificate("example.com", timedelta(days=5))

        tls.ssl_sock.__exit__.assert_called_once()
        tls.sock.__exit__.assert_called_once()

    def test_connection_closed_on_handshake_failure(self) -> None:
        """Plain socket is closed when the TLS handshake fails."""
        error = _verification_error(62, "Hostname mismatch")
        with _FakeTLS(wrap_error=error) as tls:
            validate_certificate("example.com", timedelta(days=5))

        tls.sock.__exit__.assert_called_once()
