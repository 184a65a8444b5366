"""Config reload triggers: SIGHUP requests, mtime polling, and watchdog events."""

import os
import logging
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from s3_log_generator.config import ConfigLoadError, ConfigStore
from s3_log_generator.handoff import ReloadSlot

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.5
POLL_INTERVAL = 1.0


def reload_and_publish(store: ConfigStore, slot: ReloadSlot) -> bool:
    """Re-read the config; publish it on success, keep the old one on failure."""
    try:
        config = store.reload()
    except ConfigLoadError as e:
        logger.error("Failed to reload config: %s", e)
        return False
    logger.info("Config reloaded successfully from %s", store.path)
    slot.publish(config)
    return True


class SignalReloader(threading.Thread):
    """Performs reloads requested from a signal handler.

    ``request()`` only sets an event, so it is safe to call from the handler;
    the file is read on this thread.
    """

    def __init__(self, store: ConfigStore, slot: ReloadSlot,
                 shutdown_event: threading.Event, wait_timeout: float = 0.5):
        super().__init__(name="signal-reloader", daemon=True)
        self._store = store
        self._slot = slot
        self._shutdown = shutdown_event
        self._wait_timeout = wait_timeout
        self._requested = threading.Event()

    def request(self):
        self._requested.set()

    def run(self):
        while not self._shutdown.is_set():
            if self._requested.wait(self._wait_timeout):
                self._requested.clear()
                if self._shutdown.is_set():
                    break
                logger.info("Reload requested, re-reading %s", self._store.path)
                reload_and_publish(self._store, self._slot)


class ConfigPoller(threading.Thread):
    """Reloads when the config file's modification time moves forward."""

    def __init__(self, store: ConfigStore, slot: ReloadSlot,
                 shutdown_event: threading.Event, interval: float = POLL_INTERVAL):
        super().__init__(name="config-poller", daemon=True)
        self._store = store
        self._slot = slot
        self._shutdown = shutdown_event
        self._interval = interval
        # The file as loaded at startup is already current.
        self._last_mtime = self._stat_mtime()

    def _stat_mtime(self) -> int | None:
        try:
            return os.stat(self._store.path).st_mtime_ns
        except OSError as e:
            logger.debug("Cannot stat %s: %s", self._store.path, e)
            return None

    def check(self) -> bool:
        """Reload once if the file changed since the last check."""
        mtime = self._stat_mtime()
        if mtime is None:
            return False
        if self._last_mtime is not None and mtime <= self._last_mtime:
            return False
        self._last_mtime = mtime
        logger.info("Config file %s changed, reloading", self._store.path)
        return reload_and_publish(self._store, self._slot)

    def run(self):
        while not self._shutdown.wait(self._interval):
            self.check()


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog handler that reloads when the config file is written or replaced.

    Saves often arrive as a burst (truncate, write, rename), so each event
    restarts a timer and the file is read only once it has been quiet for
    *debounce* seconds.
    """

    def __init__(self, store: ConfigStore, slot: ReloadSlot,
                 debounce: float = DEBOUNCE_SECONDS):
        super().__init__()
        self._store = store
        self._slot = slot
        self._target = os.path.abspath(store.path)
        self._debounce = debounce
        self._lock = threading.Lock()
        self._timer = None
        self._cancelled = False

    def on_modified(self, event):
        if not event.is_directory:
            self._handle(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event):
        # Editors often save by renaming a temp file over the original.
        if not event.is_directory:
            self._handle(event.dest_path)

    def _handle(self, path):
        if os.path.abspath(os.fsdecode(path)) != self._target:
            return
        with self._lock:
            if self._cancelled:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self):
        with self._lock:
            if self._cancelled:
                return
            self._timer = None
        logger.info("Config file %s changed, reloading", self._store.path)
        reload_and_publish(self._store, self._slot)

    def cancel(self):
        """Drop any pending reload and ignore further events."""
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def start_observer(handler: ConfigFileHandler, path: str) -> Observer:
    """Schedule *handler* on the directory holding *path* and start watching."""
    observer = Observer()
    watch_dir = os.path.dirname(os.path.abspath(path))
    observer.schedule(handler, watch_dir, recursive=False)
    observer.start()
    logger.info("Watching directory: %s", watch_dir)
    return observer
