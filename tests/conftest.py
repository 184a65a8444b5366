"""Shared pytest fixtures for the s3-log-generator test suite."""

import random

import pytest
import yaml

from s3_log_generator.config import Config
from s3_log_generator.engine import SynthesisEngine
from s3_log_generator.models import LogEvent
from s3_log_generator.sinks import Sink, SinkWriteError


class RecordingSink(Sink):
    """Keeps every written event in memory."""

    def __init__(self):
        self.events = []
        self.closed = False

    def write(self, event):
        self.events.append(event)

    def close(self):
        self.closed = True


class FailingSink(Sink):
    """Rejects every write."""

    def __init__(self):
        self.attempts = 0

    def write(self, event):
        self.attempts += 1
        raise SinkWriteError("broker unavailable")

    def close(self):
        pass


@pytest.fixture
def write_config(tmp_path):
    """Return a helper that dumps a ``generator`` section to a YAML file."""
    path = tmp_path / "config.yaml"

    def _write(generator: dict) -> str:
        path.write_text(yaml.safe_dump({"generator": generator}), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def config() -> Config:
    return Config.from_dict({})


@pytest.fixture
def engine(config) -> SynthesisEngine:
    return SynthesisEngine(config, rng=random.Random(42))


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def make_event():
    """Return a factory for LogEvent instances with sensible field values."""

    def _make(**overrides) -> LogEvent:
        fields = {
            "timestamp": "2024-05-01T12:30:45.123Z",
            "level": "info",
            "msg": "request",
            "request_id": "6f1c2a4e-0d8b-4f2a-9c51-7a3e5b9d2c10",
            "remote_host": "10.0.0.50",
            "method": "GET",
            "host": "s3.example.com",
            "uri": "/data-bucket/file.pdf",
            "namespace": "",
            "duration": 0.12,
            "api": "GetObject",
            "user": "ab" * 32,
            "status": 200,
            "bucket": "data-bucket",
            "object": "file.pdf",
        }
        fields.update(overrides)
        return LogEvent(**fields)

    return _make
