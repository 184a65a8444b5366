"""Single-slot handoff between the reload watchers and the scheduler."""

import logging
import threading

logger = logging.getLogger(__name__)


class ReloadSlot:
    """Capacity-one channel that keeps only the latest published value.

    Publishing while a value is still unread replaces it. ``close()`` wakes
    any waiting consumer so it can observe shutdown.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._item = None
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def publish(self, item) -> bool:
        """Store *item* for the consumer. Returns False once closed."""
        with self._cond:
            if self._closed:
                return False
            if self._item is not None:
                logger.debug("Coalescing unread reload with a newer one")
            self._item = item
            self._cond.notify_all()
            return True

    def take(self, timeout: float | None = None):
        """Wait up to *timeout* seconds for a value; None on timeout or close."""
        with self._cond:
            self._cond.wait_for(lambda: self._item is not None or self._closed, timeout)
            item, self._item = self._item, None
            return item

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()
