from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import quote

# Characters encodeURIComponent leaves as-is
_SAFE = "-_.!~*'()"


def join_paths(*segments: Any) -> str:
    """
    Join URL segments with exactly one slash between them.

    Empty segments are skipped; the leading part of the first segment (scheme,
    host, leading slash) is preserved.
    """
    parts = [str(segment) for segment in segments if segment not in (None, "")]
    if not parts:
        return ""
    head = parts[0].rstrip("/") or ("/" if parts[0].startswith("/") else "")
    tail = [part.strip("/") for part in parts[1:] if part.strip("/")]
    if head == "/":
        return "/" + "/".join(tail)
    return "/".join([head] + tail)


def format_query_value(value: Any) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(timespec="milliseconds") + "Z"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_string(search_params: Optional[Mapping[str, Any]]) -> str:
    """
    Encode search params as ``key=value`` pairs joined by ``&``.

    ``None`` values are dropped, dates are rendered as ISO-8601 (UTC).
    """
    if not search_params:
        return ""
    return "&".join(
        f"{quote(str(key), safe=_SAFE)}={quote(format_query_value(value), safe=_SAFE)}"
        for key, value in search_params.items()
        if value is not None
    )


def build_url(
    base_url: str, endpoint: str, pathname: Any = "", search_params=None
) -> str:
    url = join_paths(base_url, endpoint, pathname)
    if search_params is not None:
        url += "?" + build_query_string(search_params)
    return url
