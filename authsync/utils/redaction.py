"""
Privacy Helpers.

Keeps OAuth secrets and personal data out of logs and analytics:

- :func:`redact_url` masks OAuth parameters in a URL's query and fragment.
- :func:`sanitize_params` strips PII keys from analytics parameters at
  every depth.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

__all__ = ["OAUTH_PARAMS", "PII_FIELDS", "redact_url", "sanitize_params"]

OAUTH_PARAMS: frozenset[str] = frozenset({
    "access_token",
    "refresh_token",
    "code",
    "id_token",
    "state",
})

PII_FIELDS: frozenset[str] = frozenset({
    "email",
    "name",
    "display_name",
    "phone",
    "password",
    "token",
    "access_token",
    "refresh_token",
    "sobriety_date",
    "relapse_date",
})

_MAX_DEPTH: int = 10
_MASK: str = "[redacted]"


def _redact_component(component: str) -> str:
    if not component:
        return component
    pairs = parse_qsl(component, keep_blank_values=True)
    if not pairs:
        return component
    return urlencode(
        [(key, _MASK if key in OAUTH_PARAMS else value) for key, value in pairs],
        safe="[]",
    )


def redact_url(url: str) -> str:
    """Return *url* with OAuth parameter values replaced by a mask.

    Unparseable input is replaced entirely rather than echoed back.
    """
    try:
        parts = urlsplit(url)
        return urlunsplit((
            parts.scheme,
            parts.netloc,
            parts.path,
            _redact_component(parts.query),
            _redact_component(parts.fragment),
        ))
    except (ValueError, TypeError, AttributeError):
        return "[unparseable url]"


def _sanitize(value: Any, visited: set[int], depth: int) -> Any:
    if depth > _MAX_DEPTH or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_sanitize(item, visited, depth + 1) for item in value]
    if isinstance(value, dict):
        marker = id(value)
        if marker in visited:
            return None
        visited.add(marker)
        cleaned = {
            key: _sanitize(item, visited, depth + 1)
            for key, item in value.items()
            if key not in PII_FIELDS
        }
        visited.discard(marker)
        return cleaned
    return value


def sanitize_params(params: dict[str, Any] | None) -> dict[str, Any]:
    """Copy *params* without any key listed in :data:`PII_FIELDS`.

    Cyclic branches become ``None``; recursion stops after ten levels.
    """
    if not params:
        return {}
    return _sanitize(params, set(), 0) or {}
