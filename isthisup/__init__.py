"""isThisUp - single-target website watchdog with PagerDuty/OpsGenie alerts."""

import argparse
import logging
import sys

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - start the watchdog."""
    _setup_logging(args.verbose)

    logger.info("isThisUp %s starting...", __version__)

    # Import here to allow logging setup first
    from .alerter import NotifierError
    from .config import ConfigError, load_config
    from .connectivity import OfflineError, ProbePermissionError
    from .monitor import Monitor

    # 1. Load configuration
    try:
        config = load_config(args.config)
        monitor = Monitor(config)
    except ConfigError as e:
        logger.error("Configuration error: %s. Quitting...", e)
        sys.exit(1)

    logger.info(
        "Target %s, alerts via %s, %d attempts %ds apart",
        config.url,
        config.platform.value,
        config.retry,
        config.retry_timeout,
    )

    # 2. Run until a fatal condition
    try:
        if args.once:
            verdict = monitor.run_once()
            sys.exit(0 if verdict.is_up else 1)
        monitor.run()
    except ProbePermissionError as e:
        logger.error("%s. Quitting...", e)
        sys.exit(1)
    except OfflineError as e:
        logger.error("%s. Quitting...", e)
        sys.exit(1)
    except NotifierError as e:
        logger.error("%s. Quitting...", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


def _cmd_test_alert(args: argparse.Namespace) -> None:
    """Execute the test-alert command - verify the alert backend."""
    _setup_logging(verbose=False)

    from .alerter import NotifierError, create_notifier
    from .config import ConfigError, load_config
    from .models import Target

    try:
        config = load_config(args.config)
        notifier = create_notifier(config.platform, config.api_key)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Sending test alert for {config.url} via {notifier.name}...")

    try:
        notifier.send(Target(config.url))
    except NotifierError as e:
        print(f"✗ FAILED: {e}")
        sys.exit(1)

    print("✓ SUCCESS")


def main() -> None:
    """Main entry point for the isthisup package."""
    parser = argparse.ArgumentParser(
        description="isThisUp - watch one website and alert PagerDuty or OpsGenie when it is down"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"isthisup {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Start the watchdog (default)",
    )
    run_parser.add_argument(
        "-c", "--config",
        default=None,
        help="Optional YAML file with base settings; environment variables take precedence",
    )
    run_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check cycle and exit (status 0 if up, 1 if down)",
    )
    run_parser.set_defaults(func=_cmd_run)

    # Test-alert subcommand
    test_alert_parser = subparsers.add_parser(
        "test-alert",
        help="Send a test alert through the configured platform",
    )
    test_alert_parser.add_argument(
        "-c", "--config",
        default=None,
        help="Optional YAML file with base settings",
    )
    test_alert_parser.set_defaults(func=_cmd_test_alert)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = None
        args.verbose = False
        args.once = False
        args.func = _cmd_run

    args.func(args)
