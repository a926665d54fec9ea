"""Value objects shared by the ingestor, store and query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

DESKTOP = "Desktop"
MOBILE = "Mobile"
TABLET = "Tablet"
DEVICE_TYPES = (DESKTOP, MOBILE, TABLET)

UNKNOWN = "Unknown"
DIRECT = "Direct"
DEFAULT_STATUS_CODE = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class LogRecord:
    method: str
    url: str
    ip_address: str = UNKNOWN
    browser: str = UNKNOWN
    device_type: str = DESKTOP
    referer: str = DIRECT
    status_code: int = DEFAULT_STATUS_CODE
    user_agent: str = UNKNOWN
    timestamp: datetime | None = None
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "method": self.method,
            "url": self.url,
            "ip_address": self.ip_address,
            "browser": self.browser,
            "device_type": self.device_type,
            "referer": self.referer,
            "status_code": self.status_code,
            "user_agent": self.user_agent,
        }


@dataclass(frozen=True)
class RequestDescriptor:
    """One inbound request as seen by the hosting environment.

    Header names are matched case-insensitively. ``remote_addr`` is the
    address of the direct peer, before any proxy headers are considered.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    status_code: int | None = DEFAULT_STATUS_CODE
    remote_addr: str | None = None

    def __post_init__(self):
        if not self.method or not self.method.strip():
            raise ValueError("request method must not be empty")
        if not self.url or not self.url.strip():
            raise ValueError("request url must not be empty")
        normalized = {str(k).lower(): str(v) for k, v in (self.headers or {}).items()}
        object.__setattr__(self, "headers", normalized)

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RequestDescriptor":
        return cls(
            method=payload["method"],
            url=payload["url"],
            headers=payload.get("headers") or {},
            status_code=payload.get("status_code", DEFAULT_STATUS_CODE),
            remote_addr=payload.get("remote_addr"),
        )


@dataclass(frozen=True)
class LogFilter:
    search: str | None = None
    device: str | None = None
    ip_address: str | None = None
    since: datetime | None = None
    until: datetime | None = None
