"""Synthesis engine: builds one S3 access-log event per call.

An engine is bound to a single config snapshot. When the config changes the
scheduler builds a new engine instead of mutating this one, so an event is
never produced from a half-updated weight table.
"""

import logging
import random
import uuid
from datetime import datetime, timezone

from s3_log_generator.catalog import OPERATIONS, OperationInfo
from s3_log_generator.config import Config, ProblematicBucket
from s3_log_generator.models import LogEvent, REQUEST_MSG, format_timestamp, level_for_status
from s3_log_generator.pools import (
    BUCKET_POOL,
    HOST_POOL,
    IP_POOL,
    OBJECT_PATH_POOL,
    USER_ID_BYTES,
    USER_POOL_SIZE,
)

logger = logging.getLogger(__name__)

NO_CONTENT_PROBABILITY = 0.1
FALLBACK_ERROR_STATUS = 500


class GenerationError(Exception):
    """Raised when an event cannot be assembled."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SynthesisEngine:
    def __init__(self, config: Config, rng: random.Random | None = None,
                 buckets: list[str] | None = None, clock=_utc_now):
        self._config = config
        self._rng = rng or random.Random()
        self._clock = clock

        self._operations = OPERATIONS
        self._weights = [config.operation_weights.get(op.name, 1.0) for op in self._operations]
        self._total_weight = sum(self._weights)
        if self._total_weight <= 0:
            logger.warning("All operation weights are zero, using a uniform distribution")
            self._weights = [1.0] * len(self._operations)
            self._total_weight = float(len(self._operations))

        self._buckets = list(buckets if buckets is not None else BUCKET_POOL)
        # Make every configured override reachable.
        for bucket in config.problematic_buckets:
            if bucket.name not in self._buckets:
                self._buckets.append(bucket.name)

        self._users = [self._rng.randbytes(USER_ID_BYTES).hex() for _ in range(USER_POOL_SIZE)]
        self._hosts = list(HOST_POOL)
        self._ips = list(IP_POOL)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def buckets(self) -> list[str]:
        return list(self._buckets)

    @property
    def users(self) -> list[str]:
        return list(self._users)

    def generate(self) -> LogEvent:
        """Synthesize a single access-log event."""
        try:
            op = self._select_operation()

            bucket = None
            obj = None
            if op.has_bucket:
                bucket = self._rng.choice(self._buckets)
                if op.has_object:
                    obj = self._rng.choice(OBJECT_PATH_POOL)

            problematic = self._config.lookup(bucket)
            is_error, status = self._determine_status(problematic)
            duration = self._generate_duration(is_error, problematic)

            return LogEvent(
                timestamp=format_timestamp(self._clock()),
                level=level_for_status(status),
                msg=REQUEST_MSG,
                request_id=self._new_uuid(),
                remote_host=self._rng.choice(self._ips),
                method=op.method,
                host=self._rng.choice(self._hosts),
                uri=self._build_uri(op, bucket, obj),
                namespace="",
                duration=round(duration, 3),
                api=op.name,
                user=self._rng.choice(self._users),
                status=status,
                bucket=bucket,
                object=obj,
            )
        except (IndexError, KeyError, ValueError, TypeError) as e:
            raise GenerationError(f"failed to generate event: {e}") from e

    def _select_operation(self) -> OperationInfo:
        """Weighted draw over the catalog by cumulative-sum inversion."""
        r = self._rng.random() * self._total_weight
        cumulative = 0.0
        for op, weight in zip(self._operations, self._weights):
            cumulative += weight
            if r < cumulative:
                return op
        # Only reachable through floating-point rounding.
        return self._operations[0]

    def _determine_status(self, problematic: ProblematicBucket | None) -> tuple[bool, int]:
        """Return (is_error, status)."""
        error_percent = self._config.defaults.error_percent
        if problematic is not None:
            error_percent *= problematic.error_multiplier

        if self._rng.random() * 100 < error_percent:
            dist = self._config.defaults.error_status_distribution
            if problematic is not None and problematic.error_status_distribution:
                dist = problematic.error_status_distribution
            return True, self._select_status(dist)

        if self._rng.random() < NO_CONTENT_PROBABILITY:
            return False, 204
        return False, 200

    def _select_status(self, dist: dict) -> int:
        """Weighted draw over *dist*, walking status codes in ascending order.

        Falls back to the lowest status code when the draw is unmatched or the
        weights sum to zero.
        """
        if not dist:
            return FALLBACK_ERROR_STATUS
        items = sorted(dist.items())
        total = sum(weight for _, weight in items)
        if total <= 0:
            return items[0][0]

        r = self._rng.random() * total
        cumulative = 0.0
        for status, weight in items:
            cumulative += weight
            if r < cumulative:
                return status
        return items[0][0]

    def _generate_duration(self, is_error: bool, problematic: ProblematicBucket | None) -> float:
        durations = self._config.defaults.duration
        if is_error:
            lo, hi = durations.error_min, durations.error_max
        else:
            lo, hi = durations.success_min, durations.success_max

        duration = lo + self._rng.random() * (hi - lo)
        if problematic is not None:
            duration *= problematic.duration_multiplier
        return duration

    def _build_uri(self, op: OperationInfo, bucket: str | None, obj: str | None) -> str:
        if not op.has_bucket:
            return "/"

        uri = f"/{bucket}"
        if op.has_object and obj:
            uri += f"/{obj}"

        if op.name == "ListObjectsV2":
            uri += "?list-type=2&max-keys=1000"
        elif op.name == "ListObjectsV1":
            uri += "?max-keys=1000"
        elif op.name == "UploadPart":
            uri += f"?partNumber={self._rng.randint(1, 10)}&uploadId={self._new_uuid()}"
        elif op.name == "CreateMultipartUpload":
            uri += "?uploads"
        elif op.name in ("CompleteMultipartUpload", "AbortMultipartUpload"):
            uri += f"?uploadId={self._new_uuid()}"
        return uri

    def _new_uuid(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))
