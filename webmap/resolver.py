"""Resolve possibly-relative link targets into absolute, canonical URLs.

Public API::

    from webmap.resolver import resolve, normalize_url, ResolutionError

    resolve("https://example.com/a/", "../b")        # 'https://example.com/b'
    resolve("https://example.com", "//other.com/x")  # 'https://other.com/x'

Canonical form: lower-case scheme and host, default ports dropped, dot
segments removed, an empty path becomes ``/``, backslashes in the path of
http(s) and file URLs become slashes and unsafe characters are
percent-encoded (existing escapes are kept as-is).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import AbstractSet
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

DEFAULT_SCHEMES: frozenset[str] = frozenset({"http", "https", "file"})

_DEFAULT_PORTS = {"http": 80, "https": 443}
# Schemes in which a backslash before any query or fragment means "/"
_SLASH_SCHEMES = frozenset({"http", "https", "file", "ftp", "ws", "wss"})
_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_BAD_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")
_INVALID_HOST_CHARS = re.compile(r"[\s<>\"{}|\\^`%/?#]")
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"


class ResolutionErrorKind(str, Enum):
    """Which side of a resolution failed."""

    INVALID_BASE = "invalid_base"
    INVALID_CANDIDATE = "invalid_candidate"


class ResolutionError(ValueError):
    """Raised when a candidate URL cannot be resolved against a base."""

    def __init__(
        self,
        kind: ResolutionErrorKind,
        base: str,
        candidate: str,
        reason: str = "",
    ):
        self.kind = kind
        self.base = base
        self.candidate = candidate
        self.reason = reason
        message = f"{kind.value}: cannot resolve {candidate!r} against {base!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


def resolve(
    base: str,
    candidate: str,
    *,
    schemes: AbstractSet[str] = DEFAULT_SCHEMES,
) -> str:
    """Resolve ``candidate`` against ``base`` and return a canonical absolute URL.

    Args:
        base: Absolute URL the candidate is relative to (usually a crawl root).
        candidate: Raw link target as found in markup.
        schemes: Schemes accepted for both the base and the result.

    Returns:
        The canonical absolute URL.

    Raises:
        ResolutionError: ``INVALID_BASE`` if ``base`` is not an absolute URL,
            ``INVALID_CANDIDATE`` if ``candidate`` is empty, malformed or uses
            an unsupported scheme.
    """
    try:
        canonical_base = _canonicalize(base.strip() if base else "", schemes)
    except ValueError as exc:
        raise ResolutionError(
            ResolutionErrorKind.INVALID_BASE, base, candidate, str(exc)
        ) from exc

    raw = candidate.strip() if candidate else ""
    try:
        raw = _backslashes_to_slashes(raw, urlsplit(canonical_base).scheme)
        _check_candidate(raw, schemes)
        return _canonicalize(urljoin(canonical_base, raw), schemes)
    except ValueError as exc:
        raise ResolutionError(
            ResolutionErrorKind.INVALID_CANDIDATE, base, candidate, str(exc)
        ) from exc


def normalize_url(url: str, *, schemes: AbstractSet[str] = DEFAULT_SCHEMES) -> str:
    """Canonicalize an absolute URL, raising ``ResolutionError`` if it is not one."""
    try:
        return _canonicalize(url.strip() if url else "", schemes)
    except ValueError as exc:
        raise ResolutionError(
            ResolutionErrorKind.INVALID_BASE, url, "", str(exc)
        ) from exc


def _check_candidate(raw: str, schemes: AbstractSet[str]) -> None:
    if not raw:
        raise ValueError("empty reference")
    if _BAD_PERCENT.search(raw):
        raise ValueError("malformed percent-encoding")
    if _SCHEME_PREFIX.match(raw):
        scheme = raw.split(":", 1)[0].lower()
        if scheme not in schemes:
            raise ValueError(f"unsupported scheme {scheme!r}")
        return
    if raw.startswith(("/", "?", "#")):
        return
    # A relative path may not carry a colon in its first segment.
    first_segment = re.split(r"[/?#]", raw, maxsplit=1)[0]
    if ":" in first_segment:
        raise ValueError("colon in first path segment")


def _canonicalize(url: str, schemes: AbstractSet[str]) -> str:
    if not url or not _SCHEME_PREFIX.match(url):
        raise ValueError("not an absolute URL")
    url = _backslashes_to_slashes(url, url.split(":", 1)[0])
    if _BAD_PERCENT.search(url):
        raise ValueError("malformed percent-encoding")

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in schemes:
        raise ValueError(f"unsupported scheme {scheme!r}")

    netloc = _canonical_netloc(parts, scheme)
    if not netloc and scheme != "file":
        raise ValueError("missing host")

    path = _remove_dot_segments(parts.path)
    if not path and netloc:
        path = "/"

    return urlunsplit(
        (
            scheme,
            netloc,
            quote(path, safe=_PATH_SAFE),
            quote(parts.query, safe=_QUERY_SAFE),
            quote(parts.fragment, safe=_QUERY_SAFE),
        )
    )


def _canonical_netloc(parts, scheme: str) -> str:
    if not parts.netloc:
        return ""
    host = parts.hostname or ""
    port = parts.port  # raises ValueError on a non-numeric or out-of-range port
    if _INVALID_HOST_CHARS.search(host):
        raise ValueError(f"invalid host {host!r}")
    if ":" in host:
        host = f"[{host}]"

    userinfo, _, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host}" if userinfo else host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"
    return netloc


def _remove_dot_segments(path: str) -> str:
    if not path:
        return path
    segments = path.split("/")
    output: list[str] = []
    for segment in segments:
        if segment == "..":
            if len(output) > 1:
                output.pop()
        elif segment != ".":
            output.append(segment)
    if segments[-1] in (".", ".."):
        output.append("")
    result = "/".join(output)
    if path.startswith("/") and not result.startswith("/"):
        result = "/" + result
    return result


def _backslashes_to_slashes(raw: str, base_scheme: str) -> str:
    """Rewrite ``\\`` as ``/`` before any query or fragment, for slash schemes.

    ``base_scheme`` applies when ``raw`` carries no scheme of its own.
    """
    if "\\" not in raw:
        return raw
    scheme = base_scheme
    if _SCHEME_PREFIX.match(raw):
        scheme = raw.split(":", 1)[0]
    if scheme.lower() not in _SLASH_SCHEMES:
        return raw
    cut = len(raw)
    for marker in ("?", "#"):
        index = raw.find(marker)
        if index != -1:
            cut = min(cut, index)
    return raw[:cut].replace("\\", "/") + raw[cut:]
