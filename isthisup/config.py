"""Configuration loader with type-safe dataclasses."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


class Platform(str, Enum):
    """Supported incident-management backends."""

    PAGERDUTY = "pagerduty"
    OPSGENIE = "opsgenie"


# Environment variable for each config field. Env values override the YAML file.
ENV_VARS = {
    "url": "URL",
    "platform": "PLATFORM",
    "api_key": "API_KEY",
    "sleep": "SLEEP",
    "timeout": "TIMEOUT",
    "retry": "RETRY",
    "retry_timeout": "RETRY_TIMEOUT",
    "ssl_days_limit": "SSL_DAYS_LIMIT",
}

# Older deployments spell the backend variable this way.
LEGACY_PLATFORM_VAR = "PLATEFORM"

INT_FIELDS = ("sleep", "timeout", "retry", "retry_timeout", "ssl_days_limit")


@dataclass(frozen=True)
class Config:
    """Watchdog configuration, built once at startup.

    Attributes:
        url: Target URL (http:// or https://).
        platform: Alert backend.
        api_key: PagerDuty routing key or OpsGenie API key.
        sleep: Seconds between check cycles.
        timeout: Per-request timeout in seconds.
        retry: Maximum check attempts per cycle.
        retry_timeout: Seconds to wait between attempts.
        ssl_days_limit: Minimum remaining certificate validity in days.
    """

    url: str
    platform: Platform
    api_key: str
    sleep: int
    timeout: int
    retry: int
    retry_timeout: int
    ssl_days_limit: int

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError("URL cannot be empty")
        if not self.url.startswith(("http://", "https://")):
            raise ConfigError(f"URL must start with http:// or https://, got '{self.url}'")
        parsed = urlparse(self.url)
        if not parsed.hostname:
            raise ConfigError(f"URL has no host: '{self.url}'")
        try:
            parsed.port
        except ValueError as e:
            raise ConfigError(f"URL has an invalid port: '{self.url}' ({e})")
        if not isinstance(self.platform, Platform):
            raise ConfigError(f"Invalid platform: {self.platform!r}")
        if not self.api_key:
            raise ConfigError("API_KEY cannot be empty")
        if self.sleep < 0:
            raise ConfigError(f"SLEEP must be non-negative (got {self.sleep})")
        if self.timeout < 1:
            raise ConfigError(f"TIMEOUT must be at least 1 second (got {self.timeout})")
        if self.retry < 1:
            raise ConfigError(f"RETRY must be at least 1 (got {self.retry})")
        if self.retry_timeout < 0:
            raise ConfigError(f"RETRY_TIMEOUT must be non-negative (got {self.retry_timeout})")
        if self.ssl_days_limit < 0:
            raise ConfigError(f"SSL_DAYS_LIMIT must be non-negative (got {self.ssl_days_limit})")


def _parse_platform(value: str) -> Platform:
    try:
        return Platform(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Platform)
        raise ConfigError(f"Invalid PLATFORM '{value}'. Must be one of: {choices}")


def _parse_int(key: str, value: object) -> int:
    """Parse an integer setting, rejecting bools and floats."""
    name = ENV_VARS[key]
    if isinstance(value, bool):
        raise ConfigError(f"{name} is not a valid int")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} is not a valid int")


def _read_config_file(config_path: str) -> dict:
    """Read the optional YAML file holding lower-case config keys."""
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    unknown = set(data) - set(ENV_VARS)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    return dict(data)


def _apply_env_overrides(config_data: dict, environ: Mapping[str, str]) -> dict:
    """Apply environment variable overrides to configuration.

    Every field maps to its upper-case variable (see ENV_VARS). PLATEFORM is
    honoured when PLATFORM is unset.
    """
    for key, name in ENV_VARS.items():
        value = environ.get(name)
        if value is not None:
            config_data[key] = value

    if ENV_VARS["platform"] not in environ:
        legacy = environ.get(LEGACY_PLATFORM_VAR)
        if legacy is not None:
            config_data["platform"] = legacy

    return config_data


def load_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Load and validate configuration from the environment.

    Args:
        config_path: Optional YAML file with base values.
        environ: Environment mapping, defaults to os.environ.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If a value is missing or invalid.
    """
    if environ is None:
        environ = os.environ

    data = _read_config_file(config_path) if config_path else {}
    data = _apply_env_overrides(data, environ)

    for key, name in ENV_VARS.items():
        if data.get(key) is None:
            raise ConfigError(f"No {name} env variable")

    ints = {key: _parse_int(key, data[key]) for key in INT_FIELDS}

    return Config(
        url=str(data["url"]).strip(),
        platform=_parse_platform(data["platform"]),
        api_key=str(data["api_key"]),
        **ints,
    )
