"""Capture gate — decides whether a request is an anonymous front-end page load.

Applied by the hosting layer before it hands a request to the ingestor.
"""

from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie
from urllib.parse import urlsplit

from request_monitor.models import RequestDescriptor


@dataclass(frozen=True)
class CaptureRules:
    excluded_prefixes: tuple[str, ...] = ("/admin", "/api/", "/health")
    auth_paths: tuple[str, ...] = ("/login", "/logout", "/register", "/wp-login.php", "/wp-register.php")
    session_cookies: tuple[str, ...] = ("session",)

    @classmethod
    def from_dict(cls, d: dict) -> "CaptureRules":
        defaults = cls()
        return cls(
            excluded_prefixes=tuple(d.get("excluded_prefixes", defaults.excluded_prefixes)),
            auth_paths=tuple(d.get("auth_paths", defaults.auth_paths)),
            session_cookies=tuple(d.get("session_cookies", defaults.session_cookies)),
        )


def is_admin_path(path: str, rules: CaptureRules) -> bool:
    return any(path.startswith(prefix) for prefix in rules.excluded_prefixes)


def is_auth_path(path: str, rules: CaptureRules) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in rules.auth_paths)


def is_programmatic(descriptor: RequestDescriptor) -> bool:
    requested_with = descriptor.header("X-Requested-With") or ""
    return requested_with.lower() == "xmlhttprequest"


def is_authenticated(descriptor: RequestDescriptor, rules: CaptureRules) -> bool:
    if descriptor.header("Authorization"):
        return True
    raw_cookie = descriptor.header("Cookie")
    if not raw_cookie:
        return False
    jar = SimpleCookie()
    try:
        jar.load(raw_cookie)
    except CookieError:
        return False
    return any(name in jar and jar[name].value for name in rules.session_cookies)


def should_capture(descriptor: RequestDescriptor, rules: CaptureRules | None = None) -> bool:
    """True only for anonymous, non-admin, non-auth, non-API page loads."""
    rules = rules or CaptureRules()
    path = urlsplit(descriptor.url).path or "/"

    if is_admin_path(path, rules) or is_auth_path(path, rules):
        return False
    if is_programmatic(descriptor):
        return False
    return not is_authenticated(descriptor, rules)
