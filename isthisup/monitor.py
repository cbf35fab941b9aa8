"""Availability check with bounded retries, and the watchdog loop."""

import http.client
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from datetime import timedelta

from . import __version__
from .alerter import Notifier, create_notifier
from .certificate import DEFAULT_PORT, validate_certificate
from .config import Config
from .connectivity import ConnectivityProbe, OfflineError
from .models import CheckVerdict, RetryState, Target

logger = logging.getLogger(__name__)

USER_AGENT = f"isThisUp/{__version__}"


class HTTPCheckError(Exception):
    """Raised when the HTTP request fails or returns status >= 400."""

    pass


class _RedirectHandler(urllib.request.HTTPRedirectHandler):
    """Custom redirect handler that follows 307 and 308 redirects."""

    def http_error_307(self, req, fp, code, msg, headers):
        """Handle 307 Temporary Redirect."""
        return self._do_redirect(req, fp, code, msg, headers)

    def http_error_308(self, req, fp, code, msg, headers):
        """Handle 308 Permanent Redirect."""
        return self._do_redirect(req, fp, code, msg, headers)

    def _do_redirect(self, req, fp, code, msg, headers):
        """Follow redirect preserving the original method."""
        new_url = headers.get("Location")
        if new_url:
            new_req = urllib.request.Request(
                urllib.parse.urljoin(req.full_url, new_url),
                method=req.get_method(),
                headers=dict(req.headers),
            )
            return self.parent.open(new_req, timeout=req.timeout)
        return None


_opener = urllib.request.build_opener(_RedirectHandler())


def _http_get(url: str, timeout: int) -> int:
    """GET url and return the status code.

    Raises:
        HTTPCheckError: On transport error, timeout or status >= 400.
    """
    request = urllib.request.Request(
        url,
        method="GET",
        headers={"User-Agent": USER_AGENT},
    )
    try:
        with _opener.open(request, timeout=timeout) as response:
            status_code = response.status
    except urllib.error.HTTPError as e:
        status_code = e.code
        e.close()
    except urllib.error.URLError as e:
        reason = str(e.reason) if e.reason else "Connection failed"
        raise HTTPCheckError(f"Error performing request: {reason}") from e
    except TimeoutError as e:
        raise HTTPCheckError(f"Request timeout after {timeout}s") from e
    except OSError as e:
        raise HTTPCheckError(f"Error performing request: {e}") from e
    except http.client.HTTPException as e:
        raise HTTPCheckError(f"Error performing request: {e!r}") from e

    if status_code >= 400:
        raise HTTPCheckError(f"HTTP {status_code}")
    return status_code


def check_availability(
    target: Target,
    request_timeout: int,
    max_retry: int,
    retry_delay: int,
    min_cert_validity: timedelta,
) -> CheckVerdict:
    """Check the target until it answers or the retry budget is spent.

    Each attempt validates the certificate first for HTTPS targets, then
    performs a GET. Certificate and HTTP failures are retried alike, with a
    constant delay between attempts and no delay after the last one.

    Args:
        target: Website to check.
        request_timeout: Per-request timeout in seconds.
        max_retry: Maximum number of attempts.
        retry_delay: Seconds to sleep between attempts.
        min_cert_validity: Minimum remaining certificate validity.

    Returns:
        CheckVerdict; is_up is True iff an attempt succeeded.
    """
    state = RetryState(max_attempts=max_retry, delay=retry_delay)
    reason = "no attempt made"

    while not state.exhausted:
        if target.is_https:
            ok, reason = validate_certificate(
                target.hostname or "",
                min_cert_validity,
                timeout=request_timeout,
                port=target.port or DEFAULT_PORT,
            )
            if not ok:
                state.attempt += 1
                logger.warning("SSL check of %s failed. Retry %d of %d", target.url, state.attempt, state.max_attempts)
                logger.warning("%s", reason)
                if not state.exhausted:
                    time.sleep(state.delay)
                continue

        try:
            status_code = _http_get(target.url, request_timeout)
        except HTTPCheckError as e:
            reason = str(e)
            state.attempt += 1
            logger.warning("Check of %s failed. Retry %d of %d", target.url, state.attempt, state.max_attempts)
            logger.warning("%s", reason)
            if not state.exhausted:
                time.sleep(state.delay)
            continue

        return CheckVerdict(is_up=True, reason=f"HTTP {status_code}", attempts=state.attempt + 1)

    return CheckVerdict(is_up=False, reason=reason, attempts=state.attempt)


class Monitor:
    """Single-target watchdog loop.

    Each cycle probes connectivity, checks the target, and raises an alert
    when it is down. Runs in the calling thread until a fatal error.

    Example:
        monitor = Monitor(config)
        monitor.run()
    """

    def __init__(
        self,
        config: Config,
        probe: ConnectivityProbe | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._config = config
        self._target = Target(config.url)
        self._probe = probe or ConnectivityProbe()
        self._notifier = notifier or create_notifier(config.platform, config.api_key)

    @property
    def target(self) -> Target:
        return self._target

    def run_once(self) -> CheckVerdict:
        """Run a single probe/check/alert cycle.

        Raises:
            OfflineError: If this machine has no internet access.
            ProbePermissionError: If the ICMP probe cannot run.
            NotifierError: If the alert could not be delivered.
        """
        if not self._probe.is_online():
            raise OfflineError("Cannot connect to internet")

        verdict = check_availability(
            self._target,
            request_timeout=self._config.timeout,
            max_retry=self._config.retry,
            retry_delay=self._config.retry_timeout,
            min_cert_validity=timedelta(days=self._config.ssl_days_limit),
        )

        if verdict.is_up:
            logger.info("%s is up", self._target.url)
        else:
            logger.info("%s is down", self._target.url)
            logger.debug("Last failure: %s (%d attempts)", verdict.reason, verdict.attempts)
            self._notifier.send(self._target)

        return verdict

    def run(self) -> None:
        """Run cycles forever, sleeping config.sleep seconds between them."""
        logger.info("Monitoring %s every %ds", self._target.url, self._config.sleep)
        while True:
            self.run_once()
            time.sleep(self._config.sleep)
