"""Scheduling loop: drives the engine at the configured rate and applies reloads."""

import logging
import threading
import time

from s3_log_generator.config import Config
from s3_log_generator.engine import GenerationError, SynthesisEngine
from s3_log_generator.handoff import ReloadSlot
from s3_log_generator.sinks import Sink, SinkWriteError

logger = logging.getLogger(__name__)

# Caps the effective rate at 1000 events/sec.
MIN_INTERVAL = 0.001


def tick_interval(rate: int) -> float:
    return max(1.0 / rate, MIN_INTERVAL)


class Scheduler(threading.Thread):
    """Owns the current engine and tick interval.

    Ticks and reloads are handled one at a time on this thread, so
    ``generate()`` and ``sink.write()`` never run concurrently.
    """

    def __init__(self, engine: SynthesisEngine, sink: Sink, reloads: ReloadSlot,
                 shutdown_event: threading.Event, engine_factory=SynthesisEngine):
        super().__init__(name="scheduler", daemon=True)
        self._engine = engine
        self._sink = sink
        self._reloads = reloads
        self._shutdown = shutdown_event
        self._engine_factory = engine_factory
        self._interval = tick_interval(engine.config.rate)

        self._generated = 0
        self._written = 0
        self._failed = 0
        self._reload_count = 0
        self._skipped = 0

    @property
    def engine(self) -> SynthesisEngine:
        return self._engine

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def generated(self) -> int:
        return self._generated

    @property
    def written(self) -> int:
        return self._written

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def reloads(self) -> int:
        return self._reload_count

    @property
    def skipped(self) -> int:
        return self._skipped

    def run(self):
        logger.info("Scheduler started: %d events/sec (interval %.4fs)",
                    self._engine.config.rate, self._interval)
        last_tick = time.monotonic()
        next_tick = last_tick + self._interval

        while not self._shutdown.is_set() and not self._reloads.closed:
            config = self._reloads.take(timeout=max(0.0, next_tick - time.monotonic()))
            if self._shutdown.is_set():
                break

            now = time.monotonic()
            if config is not None:
                self.apply_config(config)
                # Re-anchor on the last tick so the new interval applies from
                # here on without firing twice or skipping the next tick.
                next_tick = max(last_tick + self._interval, now)
                continue

            if now < next_tick:
                continue

            self.tick()
            last_tick = next_tick
            next_tick += self._interval

            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self._interval) + 1
                self._skipped += missed
                next_tick += missed * self._interval
                logger.debug("Falling behind, skipped %d tick(s)", missed)

        logger.info("Scheduler stopped")

    def tick(self):
        """Generate one event and hand it to the sink."""
        try:
            event = self._engine.generate()
        except GenerationError as e:
            self._failed += 1
            logger.error("Failed to generate log: %s", e)
            return
        self._generated += 1

        try:
            self._sink.write(event)
        except SinkWriteError as e:
            self._failed += 1
            logger.error("Failed to write log: %s", e)
            return
        self._written += 1

    def apply_config(self, config: Config):
        """Swap in a fresh engine built from *config* and adopt its rate."""
        self._engine = self._engine_factory(config)
        self._interval = tick_interval(config.rate)
        self._reload_count += 1
        logger.info("Generator updated with new config: %d events/sec (interval %.4fs)",
                    config.rate, self._interval)

    def stop(self):
        self._shutdown.set()
        self._reloads.close()
