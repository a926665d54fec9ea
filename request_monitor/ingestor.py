"""Event ingestor — turns a raw request descriptor into a LogRecord.

All lookups are ordered tables evaluated top-down, first match wins.
"""

import ipaddress
import re

from request_monitor.models import (
    DEFAULT_STATUS_CODE,
    DESKTOP,
    DIRECT,
    MOBILE,
    TABLET,
    UNKNOWN,
    LogRecord,
    RequestDescriptor,
)

# Edge-reported client address first, raw forwarding chains after.
IP_HEADERS = (
    "CF-Connecting-IP",
    "Client-IP",
    "X-Forwarded-For",
    "X-Forwarded",
    "X-Cluster-Client-IP",
    "Forwarded-For",
    "Forwarded",
)

# Private and reserved ranges; addresses inside them are proxy hops, not clients.
NON_ROUTABLE_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "0.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "240.0.0.0/4",
        "fc00::/7",
        "::1/128",
        "::/128",
        "::ffff:0:0/96",
        "fe80::/10",
    )
)

# Edge and Opera carry Chrome and Safari tokens, Chrome carries Safari.
BROWSER_RULES = (
    ("Edge", re.compile(r"Edg/([0-9.]+)")),
    ("Opera", re.compile(r"(?:OPR|Opera)/([0-9.]+)")),
    ("Internet Explorer", re.compile(r"MSIE ([0-9.]+)")),
    ("Firefox", re.compile(r"Firefox/([0-9.]+)")),
    ("Chrome", re.compile(r"Chrome/([0-9.]+)")),
    ("Safari", re.compile(r"Safari/([0-9.]+)")),
)

MOBILE_PATTERN = re.compile(
    r"Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE
)
TABLET_PATTERN = re.compile(r"iPad|Tablet", re.IGNORECASE)


def is_public_ip(value: str) -> bool:
    """True if *value* is a syntactically valid, routable IP address."""
    try:
        addr = ipaddress.ip_address(value)
    except ValueError:
        return False
    return not any(
        addr.version == net.version and addr in net for net in NON_ROUTABLE_NETWORKS
    )


def first_public_ip(raw: str | None) -> str | None:
    """First routable address in a comma-separated header value, left to right."""
    if not raw:
        return None
    for token in raw.split(","):
        value = token.strip()
        if is_public_ip(value):
            return value
    return None


def resolve_client_ip(descriptor: RequestDescriptor) -> str:
    candidates = [descriptor.header(name) for name in IP_HEADERS]
    candidates.append(descriptor.remote_addr)

    for raw in candidates:
        found = first_public_ip(raw)
        if found:
            return found

    return descriptor.remote_addr or UNKNOWN


def classify_browser(user_agent: str | None) -> str:
    if not user_agent:
        return UNKNOWN
    for label, pattern in BROWSER_RULES:
        match = pattern.search(user_agent)
        if match:
            return f"{label} {match.group(1)}"
    return UNKNOWN


def classify_device(user_agent: str | None) -> str:
    if user_agent and MOBILE_PATTERN.search(user_agent):
        if TABLET_PATTERN.search(user_agent):
            return TABLET
        return MOBILE
    return DESKTOP


def _status_code(value) -> int:
    try:
        code = int(value)
    except (TypeError, ValueError):
        return DEFAULT_STATUS_CODE
    return code or DEFAULT_STATUS_CODE


def classify(descriptor: RequestDescriptor) -> LogRecord:
    """Build an unsaved LogRecord (no id, no timestamp) from *descriptor*."""
    user_agent = descriptor.header("User-Agent")
    return LogRecord(
        method=descriptor.method.strip().upper(),
        url=descriptor.url,
        ip_address=resolve_client_ip(descriptor),
        browser=classify_browser(user_agent),
        device_type=classify_device(user_agent),
        referer=descriptor.header("Referer") or DIRECT,
        status_code=_status_code(descriptor.status_code),
        user_agent=user_agent or UNKNOWN,
    )
