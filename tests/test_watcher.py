"""Tests for the config reload triggers."""

import os
import threading

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from s3_log_generator.config import ConfigStore, load_config
from s3_log_generator.handoff import ReloadSlot
from s3_log_generator.watcher import (
    ConfigFileHandler,
    ConfigPoller,
    SignalReloader,
    reload_and_publish,
    start_observer,
)


@pytest.fixture
def store(write_config):
    path = write_config({"rate": 5})
    return ConfigStore(path, load_config(path))


def bump_mtime(path: str):
    """Push the file's mtime forward so coarse timestamps still register."""
    mtime = os.stat(path).st_mtime_ns + 2_000_000_000
    os.utime(path, ns=(mtime, mtime))


def write_invalid(path: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write("generator: {rate: -1}\n")


class TestReloadAndPublish:
    def test_success_publishes(self, store, write_config):
        slot = ReloadSlot()
        write_config({"rate": 20})
        assert reload_and_publish(store, slot) is True
        assert slot.take(timeout=0).rate == 20
        assert store.current.rate == 20

    def test_failure_keeps_previous(self, store, caplog):
        slot = ReloadSlot()
        previous = store.current
        write_invalid(store.path)
        assert reload_and_publish(store, slot) is False
        assert slot.take(timeout=0) is None
        assert store.current is previous
        assert "Failed to reload config" in caplog.text


class TestSignalReloader:
    def test_request_triggers_reload(self, store, write_config):
        slot = ReloadSlot()
        shutdown = threading.Event()
        reloader = SignalReloader(store, slot, shutdown, wait_timeout=0.05)
        reloader.start()
        try:
            write_config({"rate": 30})
            reloader.request()
            config = slot.take(timeout=2)
            assert config is not None
            assert config.rate == 30
        finally:
            shutdown.set()
            reloader.join(timeout=2)
        assert not reloader.is_alive()

    def test_invalid_file_publishes_nothing(self, store):
        slot = ReloadSlot()
        shutdown = threading.Event()
        reloader = SignalReloader(store, slot, shutdown, wait_timeout=0.05)
        reloader.start()
        try:
            write_invalid(store.path)
            reloader.request()
            assert slot.take(timeout=0.3) is None
            assert store.current.rate == 5
        finally:
            shutdown.set()
            reloader.join(timeout=2)


class TestConfigPoller:
    def test_unchanged_file_not_reloaded(self, store):
        poller = ConfigPoller(store, ReloadSlot(), threading.Event())
        assert poller.check() is False

    def test_newer_mtime_reloads_once(self, store, write_config):
        slot = ReloadSlot()
        poller = ConfigPoller(store, slot, threading.Event())
        write_config({"rate": 15})
        bump_mtime(store.path)

        assert poller.check() is True
        assert slot.take(timeout=0).rate == 15
        assert poller.check() is False

    def test_missing_file_skipped(self, store):
        poller = ConfigPoller(store, ReloadSlot(), threading.Event())
        os.unlink(store.path)
        assert poller.check() is False

    def test_invalid_change_keeps_config(self, store):
        slot = ReloadSlot()
        poller = ConfigPoller(store, slot, threading.Event())
        write_invalid(store.path)
        bump_mtime(store.path)
        assert poller.check() is False
        assert slot.take(timeout=0) is None
        assert store.current.rate == 5

    def test_thread_polls_until_shutdown(self, store, write_config):
        slot = ReloadSlot()
        shutdown = threading.Event()
        poller = ConfigPoller(store, slot, shutdown, interval=0.05)
        poller.start()
        try:
            write_config({"rate": 40})
            bump_mtime(store.path)
            config = slot.take(timeout=2)
            assert config is not None
            assert config.rate == 40
        finally:
            shutdown.set()
            poller.join(timeout=2)
        assert not poller.is_alive()


@pytest.fixture
def make_handler(store):
    """Build short-debounce handlers and cancel their timers afterwards."""
    handlers = []

    def _make(slot, debounce=0.05):
        handler = ConfigFileHandler(store, slot, debounce=debounce)
        handlers.append(handler)
        return handler

    yield _make

    for handler in handlers:
        handler.cancel()


def count_reloads(monkeypatch, store) -> list:
    calls = []
    reload = store.reload

    def _counting_reload():
        calls.append(1)
        return reload()

    monkeypatch.setattr(store, "reload", _counting_reload)
    return calls


class TestConfigFileHandler:
    def test_modified_event_reloads(self, store, write_config, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot)
        write_config({"rate": 12})
        handler.on_modified(FileModifiedEvent(store.path))
        assert slot.take(timeout=2).rate == 12

    def test_reload_waits_for_quiet_period(self, store, write_config, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot, debounce=0.3)
        write_config({"rate": 12})
        handler.on_modified(FileModifiedEvent(store.path))
        assert slot.take(timeout=0.1) is None
        assert slot.take(timeout=2).rate == 12

    def test_other_files_ignored(self, store, tmp_path, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot)
        handler.on_modified(FileModifiedEvent(str(tmp_path / "other.yaml")))
        handler.on_modified(DirModifiedEvent(str(tmp_path)))
        assert slot.take(timeout=0.3) is None

    def test_rapid_events_coalesce_into_one_reload(self, store, write_config,
                                                  make_handler, monkeypatch):
        calls = count_reloads(monkeypatch, store)
        slot = ReloadSlot()
        handler = make_handler(slot, debounce=0.2)
        for rate in (6, 7, 8):
            write_config({"rate": rate})
            handler.on_modified(FileModifiedEvent(store.path))

        assert slot.take(timeout=2).rate == 8
        assert slot.take(timeout=0.4) is None
        assert len(calls) == 1

    def test_truncate_then_write_loads_final_content(self, store, make_handler, monkeypatch):
        calls = count_reloads(monkeypatch, store)
        slot = ReloadSlot()
        handler = make_handler(slot, debounce=0.2)

        # A non-atomic save: the file is emptied, then rewritten.
        with open(store.path, "w", encoding="utf-8"):
            pass
        handler.on_modified(FileModifiedEvent(store.path))
        with open(store.path, "w", encoding="utf-8") as f:
            f.write("generator:\n  rate: 77\n")
        handler.on_modified(FileModifiedEvent(store.path))

        config = slot.take(timeout=2)
        assert config is not None
        assert config.rate == 77
        assert slot.take(timeout=0.4) is None
        assert len(calls) == 1
        assert store.current.rate == 77

    def test_failed_reload_then_fixed_file(self, store, write_config, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot)
        write_invalid(store.path)
        handler.on_modified(FileModifiedEvent(store.path))
        assert slot.take(timeout=0.3) is None
        assert store.current.rate == 5

        write_config({"rate": 8})
        handler.on_modified(FileModifiedEvent(store.path))
        assert slot.take(timeout=2).rate == 8

    def test_moved_over_config_reloads(self, store, write_config, tmp_path, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot)
        write_config({"rate": 9})
        handler.on_moved(FileMovedEvent(str(tmp_path / ".config.yaml.swp"), store.path))
        assert slot.take(timeout=2).rate == 9

    def test_cancel_drops_pending_reload(self, store, write_config, make_handler):
        slot = ReloadSlot()
        handler = make_handler(slot, debounce=0.1)
        write_config({"rate": 11})
        handler.on_modified(FileModifiedEvent(store.path))
        handler.cancel()
        handler.on_modified(FileModifiedEvent(store.path))
        assert slot.take(timeout=0.4) is None
        assert store.current.rate == 5

    def test_observer_picks_up_replaced_file(self, store, tmp_path, make_handler):
        slot = ReloadSlot()
        observer = start_observer(make_handler(slot), store.path)
        try:
            tmp = tmp_path / "config.yaml.tmp"
            tmp.write_text("generator:\n  rate: 33\n", encoding="utf-8")
            os.replace(tmp, store.path)
            config = slot.take(timeout=5)
            assert config is not None
            assert config.rate == 33
        finally:
            observer.stop()
            observer.join(timeout=5)
