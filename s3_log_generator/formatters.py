"""Event formatters: JSON and tab-separated text."""

import json

from s3_log_generator.models import LogEvent


def format_json(event: LogEvent) -> str:
    return json.dumps(event.to_dict())


def format_text(event: LogEvent) -> str:
    return (
        f"{event.timestamp}\t{event.level}\t{event.msg}\t"
        f"request_id={event.request_id}\tapi={event.api}\t"
        f"bucket={event.bucket or ''}\tobject={event.object or ''}\t"
        f"status={event.status}\tduration={event.duration:.3f}"
    )


def get_formatter(fmt: str):
    """Return the formatter function for the given format string."""
    formatters = {
        "json": format_json,
        "text": format_text,
    }
    return formatters[fmt]
