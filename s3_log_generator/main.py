#!/usr/bin/env python3
"""S3 Access-Log Generator — Entry Point."""

import os
import sys
import signal
import argparse
import logging
import threading

from s3_log_generator.config import ConfigLoadError, ConfigStore, load_config
from s3_log_generator.engine import SynthesisEngine
from s3_log_generator.handoff import ReloadSlot
from s3_log_generator.scheduler import Scheduler
from s3_log_generator.sinks import SinkWriteError, build_sink
from s3_log_generator.watcher import (
    POLL_INTERVAL,
    ConfigFileHandler,
    ConfigPoller,
    SignalReloader,
    start_observer,
)

logger = logging.getLogger(__name__)

WATCH_MODES = ("off", "poll", "events")
JOIN_TIMEOUT = 5


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="S3 Access-Log Generator")
    parser.add_argument(
        "--config", required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--watch", choices=WATCH_MODES, default="off",
        help="Reload on file change: off (SIGHUP only), poll (mtime), events (watchdog)",
    )
    parser.add_argument(
        "--poll-interval", type=float, default=POLL_INTERVAL,
        help=f"Seconds between mtime checks in poll mode (default: {POLL_INTERVAL})",
    )
    parser.add_argument(
        "--log-level", default=os.environ.get("LOG_LEVEL", "INFO").upper(),
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level for operational messages on stderr (default: LOG_LEVEL or INFO)",
    )
    return parser


def close_sink(scheduler: Scheduler, sink) -> bool:
    """Close *sink* unless the scheduler thread may still be writing to it."""
    if scheduler.is_alive():
        logger.warning("Scheduler did not stop within %ss, leaving output open", JOIN_TIMEOUT)
        return False
    try:
        sink.close()
    except SinkWriteError as e:
        logger.error("Failed to close output: %s", e)
        return False
    return True


def main(argv=None) -> int:
    args = build_cli_parser().parse_args(argv)

    # Operational logging goes to stderr, generated events to the sink.
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [GENERATOR] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config)
    except ConfigLoadError as e:
        logger.error("Failed to load config: %s", e)
        return 1
    logger.info("Starting generator: rate=%d/s format=%s problematic_buckets=%d",
                config.rate, config.output_format, len(config.problematic_buckets))

    try:
        sink = build_sink(config)
    except SinkWriteError as e:
        logger.error("Failed to create output: %s", e)
        return 1

    store = ConfigStore(args.config, config)
    slot = ReloadSlot()
    shutdown_event = threading.Event()

    scheduler = Scheduler(SynthesisEngine(config), sink, slot, shutdown_event)
    reloader = SignalReloader(store, slot, shutdown_event)
    threads = [scheduler, reloader]
    observer = None
    file_handler = None

    if args.watch == "poll":
        threads.append(ConfigPoller(store, slot, shutdown_event, args.poll_interval))
    elif args.watch == "events":
        file_handler = ConfigFileHandler(store, slot)
        observer = start_observer(file_handler, args.config)

    def _shutdown_handler(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    def _reload_handler(signum, frame):
        logger.info("Received SIGHUP, reloading config...")
        reloader.request()

    signal.signal(signal.SIGINT, _shutdown_handler)
    signal.signal(signal.SIGTERM, _shutdown_handler)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _reload_handler)

    for t in threads:
        t.start()

    try:
        while not shutdown_event.wait(timeout=1):
            pass
    except KeyboardInterrupt:
        shutdown_event.set()

    logger.info("Shutting down...")
    scheduler.stop()
    if observer is not None:
        file_handler.cancel()
        observer.stop()
        observer.join(timeout=JOIN_TIMEOUT)
    for t in threads:
        t.join(timeout=JOIN_TIMEOUT)

    close_sink(scheduler, sink)

    logger.info("Stats: %d generated, %d written, %d failed, %d reloads",
                scheduler.generated, scheduler.written, scheduler.failed, scheduler.reloads)
    logger.info("Generator stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
