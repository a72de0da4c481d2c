"""Shared coercion and validation helpers for Channex payloads"""

import re
from typing import Any, Optional
from urllib.parse import urlsplit

# Hostnames Channex rejects or that are obviously placeholders
_PLACEHOLDER_HOSTS = (
    re.compile(r"^test", re.IGNORECASE),
    re.compile(r"^example", re.IGNORECASE),
    re.compile(r"^invalid", re.IGNORECASE),
    re.compile(r"^localhost", re.IGNORECASE),
    re.compile(r"^127\.0\.0\.1", re.IGNORECASE),
)

_BAD_HOST_CHARS = re.compile(r"[\s<>{}|\\^`]")


def is_valid_url(value: Any) -> bool:
    """
    Strict URL check matching what Channex accepts:
    http(s) only, dotted hostname with a 2+ char TLD, no placeholder hosts.
    """
    if not value or not isinstance(value, str):
        return False

    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False

    if parts.scheme not in ("http", "https"):
        return False

    # netloc minus credentials and port; .hostname would drop bad characters
    hostname = parts.netloc.rsplit("@", 1)[-1].split(":", 1)[0]
    if not hostname or "." not in hostname:
        return False

    tld = hostname.split(".")[-1]
    if len(tld) < 2:
        return False

    if _BAD_HOST_CHARS.search(hostname):
        return False

    if any(pattern.search(hostname) for pattern in _PLACEHOLDER_HOSTS):
        return False

    return True


def to_bool(value: Any) -> bool:
    """Backend booleans arrive as true/false, 1/0 or "1"/"true" """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return False


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def pick(record: dict, *keys: str, default: Any = None) -> Any:
    """First non-None value among camelCase / snake_case spellings of a field"""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default
