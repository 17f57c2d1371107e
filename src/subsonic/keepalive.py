"""MPD keepalive for the server.

MPD closes client connections that stay idle longer than its
connection_timeout. The keepalive thread pings MPD at a fixed interval
so the shared connection survives quiet periods.
"""

import logging
import threading
from typing import Optional


class Keepalive(threading.Thread):
    """Background thread sending periodic pings to the database.

    The first ping is sent as soon as the thread starts, then one per
    interval until stop_event is set. Failed pings are logged and never
    stop the loop.
    """

    def __init__(
        self,
        db,
        interval: float,
        stop_event: threading.Event,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize keepalive thread.

        Args:
            db: Database handle providing ping()
            interval: Seconds between pings, must be positive
            stop_event: Cancellation signal shared with the Server
            logger: Logger for ping failures
        """
        if interval <= 0:
            raise ValueError(f"keepalive interval must be positive, got {interval}")

        super().__init__(name="mpd-keepalive", daemon=True)
        self.db = db
        self.interval = interval
        self.stop_event = stop_event
        self.logger = logger or logging.getLogger(__name__)

    def run(self):
        self.logger.debug("Keepalive started (interval %ss)", self.interval)

        while True:
            try:
                self.db.ping()
            except Exception as e:
                self.logger.warning("failed to send keepalive message: %s", e)

            # Returns True as soon as the event is set, without waiting
            # out the rest of the interval
            if self.stop_event.wait(self.interval):
                break

        self.logger.debug("Keepalive stopped")
