"""Output sinks: console (stdout) and Kafka."""

import json
import logging
import sys

from kafka import KafkaProducer
from kafka.errors import KafkaError

from s3_log_generator.config import Config
from s3_log_generator.formatters import get_formatter
from s3_log_generator.models import LogEvent

logger = logging.getLogger(__name__)

SEND_RETRIES = 3


class SinkWriteError(Exception):
    """Raised when a sink cannot deliver an event or cannot be opened."""


class Sink:
    """Consumes events one at a time."""

    def write(self, event: LogEvent):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError


class ConsoleSink(Sink):
    def __init__(self, output_format: str, stream=None):
        self._formatter = get_formatter(output_format)
        self._stream = stream or sys.stdout
        self._closed = False

    def write(self, event: LogEvent):
        try:
            self._stream.write(self._formatter(event) + "\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise SinkWriteError(f"failed to write log to console: {e}") from e

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise SinkWriteError(f"failed to flush console: {e}") from e


class KafkaSink(Sink):
    """Sends each event as a JSON message and waits for the broker ack."""

    def __init__(self, brokers, topic: str, producer=None):
        self._topic = topic
        if producer is None:
            try:
                producer = KafkaProducer(
                    bootstrap_servers=list(brokers),
                    value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                    acks="all",
                    retries=SEND_RETRIES,
                )
            except KafkaError as e:
                raise SinkWriteError(f"failed to create kafka producer: {e}") from e
        self._producer = producer

    def write(self, event: LogEvent):
        if self._producer is None:
            raise SinkWriteError("kafka sink is closed")
        try:
            metadata = self._producer.send(self._topic, event.to_dict()).get()
        except KafkaError as e:
            raise SinkWriteError(f"failed to send message to kafka: {e}") from e
        logger.debug("Message sent to partition %d at offset %d",
                     metadata.partition, metadata.offset)

    def close(self):
        if self._producer is None:
            return
        producer, self._producer = self._producer, None
        try:
            producer.flush()
            producer.close()
        except KafkaError as e:
            raise SinkWriteError(f"failed to close kafka producer: {e}") from e


def build_sink(config: Config) -> Sink:
    """Kafka when both brokers and topic are configured, else the console."""
    if config.kafka.enabled:
        sink = KafkaSink(config.kafka.brokers, config.kafka.topic)
        logger.info("Using Kafka output: topic=%s brokers=%s",
                    config.kafka.topic, ",".join(config.kafka.brokers))
        return sink
    logger.info("Using stdout output (format=%s)", config.output_format)
    return ConsoleSink(config.output_format)
