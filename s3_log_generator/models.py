"""Access-log event data model."""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone

LEVEL_INFO = "info"
LEVEL_ERROR = "error"
REQUEST_MSG = "request"


@dataclass
class LogEvent:
    timestamp: str
    level: str
    msg: str
    request_id: str
    remote_host: str
    method: str
    host: str
    uri: str
    namespace: str
    duration: float
    api: str
    user: str
    status: int
    bucket: str | None = None
    object: str | None = None

    def to_dict(self) -> dict:
        """Serializable form; bucket/object keys only appear when set."""
        d = asdict(self)
        if not self.bucket:
            d.pop("bucket")
        if not self.object:
            d.pop("object")
        return d


def format_timestamp(dt: datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.123Z."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def level_for_status(status: int) -> str:
    if status >= 500 or status == 401:
        return LEVEL_ERROR
    return LEVEL_INFO
