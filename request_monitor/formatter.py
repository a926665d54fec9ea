"""Output formatters for the CLI — aligned text table or NDJSON."""

import json
from typing import Callable

from request_monitor.models import LogRecord
from request_monitor.query import SearchResult

DETAIL_LABELS = (
    ("id", "ID"),
    ("timestamp", "Timestamp"),
    ("method", "Method"),
    ("url", "URL"),
    ("ip_address", "IP Address"),
    ("browser", "Browser"),
    ("device_type", "Device Type"),
    ("referer", "Referer"),
    ("status_code", "Status Code"),
    ("user_agent", "User Agent"),
)


def format_text(record: LogRecord) -> str:
    """One summary line: id, time, ip, status, method, url."""
    ts = record.timestamp.strftime("%Y-%m-%d %H:%M:%S") if record.timestamp else "-"
    return (
        f"{record.id:>6}  {ts}  {record.ip_address:<15}  {record.status_code:>3}  "
        f"{record.method:<6} {record.url}"
    )


def format_json(record: LogRecord) -> str:
    return json.dumps(record.to_dict())


def format_details(record: LogRecord) -> str:
    data = record.to_dict()
    width = max(len(label) for _, label in DETAIL_LABELS)
    return "\n".join(f"{label:<{width}}  {data[key]}" for key, label in DETAIL_LABELS)


def format_page_footer(result: SearchResult) -> str:
    return f"{result.total} items, page {result.current_page} of {result.total_pages}"


def get_formatter(output_format: str = "text") -> Callable[[LogRecord], str]:
    if output_format == "json":
        return format_json
    return format_text
