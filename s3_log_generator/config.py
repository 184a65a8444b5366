"""Configuration loading from a YAML file, with defaulting and validation."""

import math
import logging
from dataclasses import dataclass, field
from types import MappingProxyType

import yaml

from s3_log_generator.catalog import OPERATION_NAMES

logger = logging.getLogger(__name__)

DEFAULT_RATE = 10
DEFAULT_OUTPUT_FORMAT = "json"
DEFAULT_ERROR_PERCENT = 5.0
DEFAULT_ERROR_STATUS_DISTRIBUTION = {404: 40.0, 500: 30.0, 504: 20.0, 403: 10.0}
DEFAULT_SUCCESS_MIN = 0.05
DEFAULT_SUCCESS_MAX = 0.5
DEFAULT_ERROR_MIN = 0.01
DEFAULT_ERROR_MAX = 0.2
VALID_FORMATS = ("json", "text")


class ConfigLoadError(Exception):
    """Raised when the config file cannot be read, parsed, or validated."""


def _is_weight(value) -> bool:
    """True for a finite, non-negative int or float (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def _frozen(mapping) -> MappingProxyType:
    return MappingProxyType(dict(mapping))


def _section(data, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _number(data: dict, key: str, default: float, zero_is_unset: bool = True) -> float:
    """Read a non-negative number, substituting *default* when unset."""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ConfigLoadError(f"'{key}' must be a finite number, got {value!r}")
    if value < 0:
        raise ConfigLoadError(f"'{key}' must not be negative, got {value}")
    if value == 0 and zero_is_unset:
        return default
    return float(value)


def _parse_distribution(value, where: str) -> dict[int, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"'{where}' must be a mapping of status code to weight")
    dist = {}
    for status, weight in value.items():
        try:
            code = int(status)
        except (TypeError, ValueError):
            raise ConfigLoadError(f"'{where}': invalid status code {status!r}") from None
        if not _is_weight(weight):
            raise ConfigLoadError(f"'{where}': invalid weight {weight!r} for status {code}")
        dist[code] = float(weight)
    return dist


@dataclass(frozen=True)
class DurationRange:
    success_min: float = DEFAULT_SUCCESS_MIN
    success_max: float = DEFAULT_SUCCESS_MAX
    error_min: float = DEFAULT_ERROR_MIN
    error_max: float = DEFAULT_ERROR_MAX

    @classmethod
    def from_dict(cls, d: dict) -> "DurationRange":
        rng = cls(
            success_min=_number(d, "success_min", DEFAULT_SUCCESS_MIN),
            success_max=_number(d, "success_max", DEFAULT_SUCCESS_MAX),
            error_min=_number(d, "error_min", DEFAULT_ERROR_MIN),
            error_max=_number(d, "error_max", DEFAULT_ERROR_MAX),
        )
        if rng.success_min > rng.success_max:
            raise ConfigLoadError(
                f"success_min ({rng.success_min}) exceeds success_max ({rng.success_max})"
            )
        if rng.error_min > rng.error_max:
            raise ConfigLoadError(
                f"error_min ({rng.error_min}) exceeds error_max ({rng.error_max})"
            )
        return rng


@dataclass(frozen=True)
class Defaults:
    error_percent: float = DEFAULT_ERROR_PERCENT
    error_status_distribution: dict = field(
        default_factory=lambda: DEFAULT_ERROR_STATUS_DISTRIBUTION
    )
    duration: DurationRange = field(default_factory=DurationRange)

    def __post_init__(self):
        object.__setattr__(
            self, "error_status_distribution", _frozen(self.error_status_distribution)
        )

    @classmethod
    def from_dict(cls, d: dict) -> "Defaults":
        # An explicit 0 means "never fail"; only a missing value falls back.
        error_percent = _number(d, "error_percent", DEFAULT_ERROR_PERCENT, zero_is_unset=False)
        if error_percent > 100:
            raise ConfigLoadError(f"error_percent must be at most 100, got {error_percent}")
        dist = _parse_distribution(
            d.get("error_status_distribution"), "defaults.error_status_distribution"
        )
        return cls(
            error_percent=error_percent,
            error_status_distribution=dist or DEFAULT_ERROR_STATUS_DISTRIBUTION,
            duration=DurationRange.from_dict(_section(d, "duration")),
        )


@dataclass(frozen=True)
class ProblematicBucket:
    """Per-bucket override that amplifies error rate and/or latency."""

    name: str
    error_multiplier: float = 1.0
    duration_multiplier: float = 1.0
    error_status_distribution: dict = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "error_status_distribution", _frozen(self.error_status_distribution)
        )

    @classmethod
    def from_dict(cls, d) -> "ProblematicBucket":
        if not isinstance(d, dict) or not d.get("name"):
            raise ConfigLoadError(f"problematic bucket entry needs a name: {d!r}")
        name = str(d["name"])
        return cls(
            name=name,
            error_multiplier=_number(d, "error_multiplier", 1.0),
            duration_multiplier=_number(d, "duration_multiplier", 1.0),
            error_status_distribution=_parse_distribution(
                d.get("error_status_distribution"),
                f"problematic_buckets[{name}].error_status_distribution",
            ),
        )


@dataclass(frozen=True)
class KafkaSettings:
    brokers: tuple = ()
    topic: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.brokers) and bool(self.topic)

    @classmethod
    def from_dict(cls, d: dict) -> "KafkaSettings":
        brokers = d.get("brokers") or []
        if isinstance(brokers, str):
            brokers = [b.strip() for b in brokers.split(",") if b.strip()]
        if not isinstance(brokers, list):
            raise ConfigLoadError("'output.kafka.brokers' must be a list of host:port strings")
        return cls(brokers=tuple(str(b) for b in brokers), topic=str(d.get("topic") or ""))


@dataclass(frozen=True)
class Config:
    rate: int = DEFAULT_RATE
    output_format: str = DEFAULT_OUTPUT_FORMAT
    operation_weights: dict = field(default_factory=dict)
    defaults: Defaults = field(default_factory=Defaults)
    problematic_buckets: tuple = ()
    kafka: KafkaSettings = field(default_factory=KafkaSettings)

    def __post_init__(self):
        # Snapshots are shared across threads; expose mappings read-only.
        object.__setattr__(self, "operation_weights", _frozen(self.operation_weights))

    def lookup(self, bucket_name: str | None) -> ProblematicBucket | None:
        """Return the first override whose name matches exactly, if any."""
        if not bucket_name:
            return None
        for bucket in self.problematic_buckets:
            if bucket.name == bucket_name:
                return bucket
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build a validated Config from the parsed ``generator`` section."""
        rate = data.get("rate")
        if rate is None or rate == 0:
            rate = DEFAULT_RATE
        if isinstance(rate, bool) or not isinstance(rate, int):
            raise ConfigLoadError(f"'rate' must be an integer, got {rate!r}")
        if rate < 0:
            raise ConfigLoadError(f"'rate' must be positive, got {rate}")

        output_format = str(data.get("output_format") or DEFAULT_OUTPUT_FORMAT).strip().lower()
        if output_format not in VALID_FORMATS:
            raise ConfigLoadError(
                f"'output_format' must be one of {', '.join(VALID_FORMATS)}, got {output_format!r}"
            )

        weights = {}
        for name, weight in _section(data, "operation_weights").items():
            if name not in OPERATION_NAMES:
                logger.warning("Ignoring weight for unknown operation '%s'", name)
                continue
            if not _is_weight(weight):
                raise ConfigLoadError(f"invalid weight {weight!r} for operation '{name}'")
            weights[name] = float(weight)

        buckets = data.get("problematic_buckets") or []
        if not isinstance(buckets, list):
            raise ConfigLoadError("'problematic_buckets' must be a list")

        output = _section(data, "output")
        return cls(
            rate=rate,
            output_format=output_format,
            operation_weights=weights,
            defaults=Defaults.from_dict(_section(data, "defaults")),
            problematic_buckets=tuple(ProblematicBucket.from_dict(b) for b in buckets),
            kafka=KafkaSettings.from_dict(_section(output, "kafka")),
        )


def load_config(path: str) -> Config:
    """Read and validate the YAML config at *path*.

    Raises:
        ConfigLoadError: the file is unreadable, is not valid YAML, or holds
            values that fail validation.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigLoadError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"config file {path} must contain a mapping")
    return Config.from_dict(_section(data, "generator"))


class ConfigStore:
    """Holds the current config snapshot for one file path.

    A reload either swaps in a fully validated snapshot or leaves the
    current one untouched.
    """

    def __init__(self, path: str, config: Config):
        self._path = path
        self._current = config

    @property
    def path(self) -> str:
        return self._path

    @property
    def current(self) -> Config:
        return self._current

    def reload(self) -> Config:
        config = load_config(self._path)
        self._current = config
        return config
