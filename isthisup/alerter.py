"""Incident alerts for PagerDuty and OpsGenie."""

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlparse

import requests

from isthisup.config import ConfigError, Platform
from isthisup.models import AlertEvent, Target

logger = logging.getLogger(__name__)

PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"
OPSGENIE_ALERTS_URL = "https://api.eu.opsgenie.com/v2/alerts"

# Source field reported to PagerDuty.
ALERT_SOURCE = "isThisUp"

REQUEST_TIMEOUT = 10


class NotifierError(Exception):
    """Raised when an alert cannot be delivered."""

    pass


def host_alias(url: str) -> str:
    """Return the dedup key for a URL: its host with dots replaced by dashes.

    Example:
        host_alias("https://example.com/health") == "example-com"
    """
    host = urlparse(url).netloc.rpartition("@")[2]
    return host.replace(".", "-")


class Notifier(ABC):
    """Sends a single, deduplicated alert for a down target."""

    name: str = ""
    severity: str = ""
    endpoint: str = ""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ConfigError(f"{self.name} API key cannot be empty")
        self._api_key = api_key

    def build_event(self, target: Target) -> AlertEvent:
        return AlertEvent(
            message=f"{target.url} is not responding",
            severity=self.severity,
            dedup_key=host_alias(target.url),
        )

    @abstractmethod
    def build_payload(self, event: AlertEvent) -> dict:
        """Build the JSON body for the backend."""

    def build_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def send(self, target: Target) -> None:
        """Post one alert for target. No retry.

        Raises:
            NotifierError: On transport error or a response status above 400.
        """
        event = self.build_event(target)
        payload = self.build_payload(event)

        try:
            response = requests.post(
                self.endpoint,
                json=payload,
                headers=self.build_headers(),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise NotifierError(f"Cannot alert with {self.name}: {e}") from e

        if response.status_code > 400:
            raise NotifierError(f"Cannot alert with {self.name}: HTTP {response.status_code}")

        logger.info("Alert sent to %s for %s (dedup key %s)", self.name, target.url, event.dedup_key)


class PagerDutyNotifier(Notifier):
    """PagerDuty Events API v2."""

    name = "PagerDuty"
    severity = "critical"
    endpoint = PAGERDUTY_EVENTS_URL

    def build_payload(self, event: AlertEvent) -> dict:
        return {
            "routing_key": self._api_key,
            "event_action": "trigger",
            "dedup_key": event.dedup_key,
            "payload": {
                "summary": event.message,
                "source": ALERT_SOURCE,
                "severity": event.severity,
            },
        }


class OpsGenieNotifier(Notifier):
    """OpsGenie Alerts API v2 (EU instance)."""

    name = "OpsGenie"
    severity = "P1"
    endpoint = OPSGENIE_ALERTS_URL

    def build_payload(self, event: AlertEvent) -> dict:
        return {
            "message": event.message,
            "priority": event.severity,
            "alias": event.dedup_key,
        }

    def build_headers(self) -> dict[str, str]:
        headers = super().build_headers()
        headers["Authorization"] = f"GenieKey {self._api_key}"
        return headers


_NOTIFIERS: dict[Platform, type[Notifier]] = {
    Platform.PAGERDUTY: PagerDutyNotifier,
    Platform.OPSGENIE: OpsGenieNotifier,
}


def create_notifier(platform: Platform | str, api_key: str) -> Notifier:
    """Return the notifier for platform.

    Raises:
        ConfigError: If platform is not supported.
    """
    try:
        notifier_cls = _NOTIFIERS[Platform(platform)]
    except ValueError:
        raise ConfigError(f"Invalid platform: {platform!r}")
    return notifier_cls(api_key)


def dispatch(target: Target, api_key: str, platform: Platform | str) -> None:
    """Send one alert for target through the given backend."""
    create_notifier(platform, api_key).send(target)
