"""Internet connectivity probe using ICMP echo requests."""

import logging

from icmplib import NameLookupError, SocketPermissionError
from icmplib import ping as icmp_ping

logger = logging.getLogger(__name__)

# Well-known host that answers ICMP echo requests.
PROBE_HOST = "www.google.com"

# Number of echo requests per probe.
PROBE_COUNT = 3


class ProbePermissionError(Exception):
    """Raised when the privileged ICMP socket cannot be created."""

    pass


class OfflineError(Exception):
    """Raised when this machine has no internet access."""

    pass


class ConnectivityProbe:
    """Checks whether the host machine itself can reach the internet."""

    def __init__(self, host: str = PROBE_HOST, count: int = PROBE_COUNT) -> None:
        self.host = host
        self.count = count

    def is_online(self) -> bool:
        """Ping the probe host and report whether any reply came back.

        Raises:
            ProbePermissionError: If raw ICMP sockets are not permitted.
        """
        logger.info("Test internet connection")

        try:
            result = icmp_ping(self.host, count=self.count, privileged=True)
        except SocketPermissionError as e:
            raise ProbePermissionError(f"Cannot create privileged ICMP socket: {e}") from e
        except NameLookupError as e:
            logger.warning("Cannot resolve %s: %s", self.host, e)
            return False

        logger.debug(
            "Ping %s: %d sent, %d received",
            self.host,
            result.packets_sent,
            result.packets_received,
        )
        return result.packets_received > 0
