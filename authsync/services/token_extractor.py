"""
Deep-Link Token Extraction.

Pure functions that read an OAuth callback URL of the form::

    scheme://auth/callback[?access_token=..&refresh_token=..][#access_token=..&refresh_token=..]
    scheme://auth/callback#error=<code>&error_description=<text>

Precedence rules:

1. The fragment and the query are parsed independently.
2. An ``error`` parameter (in either part) means the OAuth flow failed;
   no tokens are returned.
3. A complete pair in the fragment wins.  The fragment is the provider's
   default delivery channel for the implicit grant.
4. A partial fragment pair is ignored and the query is tried instead.
5. Anything else yields ``None``.

Values are percent-decoded.  Empty values count as absent.  Malformed
URLs never raise.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlsplit

from authsync.models.auth_models import OAuthCallbackError, TokenPair

__all__ = ["extract_oauth_error", "extract_tokens", "looks_like_auth_callback"]

_CALLBACK_MARKERS: tuple[str, ...] = ("access_token", "refresh_token", "error")

Params = dict[str, list[str]]


def _split(url: str) -> Optional[tuple[Params, Params]]:
    """Return ``(fragment_params, query_params)``, or ``None`` if unparseable."""
    try:
        parts = urlsplit(url)
        fragment = parse_qs(parts.fragment, keep_blank_values=True)
        query = parse_qs(parts.query, keep_blank_values=True)
    except (ValueError, TypeError, AttributeError):
        return None
    return fragment, query


def _first(params: Params, key: str) -> Optional[str]:
    values = params.get(key)
    if not values:
        return None
    return values[0] or None


def _pair(params: Params) -> Optional[TokenPair]:
    access_token = _first(params, "access_token")
    refresh_token = _first(params, "refresh_token")
    if access_token and refresh_token:
        return TokenPair(access_token=access_token, refresh_token=refresh_token)
    return None


def looks_like_auth_callback(url: str) -> bool:
    """Cheap pre-filter: only URLs mentioning tokens or an error are parsed."""
    return isinstance(url, str) and any(marker in url for marker in _CALLBACK_MARKERS)


def extract_oauth_error(url: str) -> Optional[OAuthCallbackError]:
    """Return the OAuth error carried by *url*, fragment first, else ``None``."""
    split = _split(url)
    if split is None:
        return None
    for params in split:
        if "error" in params:
            return OAuthCallbackError(
                error=_first(params, "error") or "unknown",
                error_code=_first(params, "error_code"),
                error_description=_first(params, "error_description"),
            )
    return None


def extract_tokens(url: str) -> Optional[TokenPair]:
    """Extract the access/refresh token pair from an OAuth callback URL."""
    split = _split(url)
    if split is None:
        return None
    fragment, query = split

    if "error" in fragment or "error" in query:
        return None

    return _pair(fragment) or _pair(query)
