"""Client identification from proxy headers.

The lookup order encodes which proxies are trusted:

1. ``X-Forwarded-For`` (first entry; set by the hosting edge)
2. ``CF-Connecting-IP`` (Cloudflare)
3. ``X-Real-IP``
4. The socket peer address
5. ``"unknown"``
"""

from __future__ import annotations

from typing import Mapping

UNKNOWN_CLIENT = "unknown"

_SINGLE_VALUE_HEADERS = ("cf-connecting-ip", "x-real-ip")


def _lowered(headers: Mapping[str, str]) -> dict[str, str]:
    # Starlette Headers are already case-insensitive; plain dicts are not.
    return {key.lower(): value for key, value in headers.items()}


def _forwarded_for(headers: Mapping[str, str], lowered: dict[str, str]) -> str:
    # Repeated X-Forwarded-For lines form one list, earliest hop first.
    getlist = getattr(headers, "getlist", None)
    if getlist is not None:
        return ", ".join(getlist("x-forwarded-for"))
    return lowered.get("x-forwarded-for") or ""


def get_client_ip(headers: Mapping[str, str], remote_addr: str | None = None) -> str:
    """Extract the client IP used as the rate limit partition key.

    Args:
        headers: Request headers (any case). Multi-value mappings such as
            Starlette Headers may carry several X-Forwarded-For lines.
        remote_addr: Socket peer address, if the server exposes one.

    Returns:
        The first non-blank candidate, or "unknown".

    Examples:
        >>> get_client_ip({"X-Forwarded-For": "203.0.113.1, 198.51.100.1"})
        '203.0.113.1'
        >>> get_client_ip({})
        'unknown'
    """

    lowered = _lowered(headers)

    forwarded_for = _forwarded_for(headers, lowered)
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    for name in _SINGLE_VALUE_HEADERS:
        value = (lowered.get(name) or "").strip()
        if value:
            return value

    if remote_addr and remote_addr.strip():
        return remote_addr.strip()

    return UNKNOWN_CLIENT
