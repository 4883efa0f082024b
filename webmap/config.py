"""Runtime settings and crawl4ai run-configuration factories."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Optional

from crawl4ai import CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

from .resolver import DEFAULT_SCHEMES

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "webmap/0.1.0"
BACKENDS = ("http", "browser")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass
class MapperSettings:
    """Settings for fetching and graph keying.

    Attributes:
        fetch_timeout: Seconds before a fetch is abandoned as a transport error.
        user_agent: User-Agent header sent by the HTTP backend.
        concurrency: Root insertions allowed in flight during batch inserts.
        host_scoped_identity: Hash identities from (host, url) instead of the
            url alone, so the same URL found from two hosts is stored twice.
        backend: ``"http"`` (httpx) or ``"browser"`` (crawl4ai).
        allowed_schemes: URL schemes accepted by the resolver.
    """

    fetch_timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    concurrency: int = 3
    host_scoped_identity: bool = True
    backend: str = "http"
    allowed_schemes: frozenset[str] = DEFAULT_SCHEMES


def load_settings(**overrides: Any) -> MapperSettings:
    """Build settings from ``WEBMAP_*`` environment variables.

    Variables are read at call time. Keyword arguments that are not ``None``
    take precedence over the environment.

    Raises:
        TypeError: If an override names an unknown setting.
    """
    defaults = MapperSettings()
    settings = MapperSettings(
        fetch_timeout=_env_float("WEBMAP_FETCH_TIMEOUT", defaults.fetch_timeout),
        user_agent=os.getenv("WEBMAP_USER_AGENT") or defaults.user_agent,
        concurrency=_env_int("WEBMAP_CONCURRENCY", defaults.concurrency),
        host_scoped_identity=_env_bool(
            "WEBMAP_HOST_SCOPED_IDENTITY", defaults.host_scoped_identity
        ),
        backend=_env_choice("WEBMAP_BACKEND", BACKENDS, defaults.backend),
        allowed_schemes=_env_schemes("WEBMAP_ALLOWED_SCHEMES", defaults.allowed_schemes),
    )

    known = {f.name for f in fields(MapperSettings)}
    for name, value in overrides.items():
        if name not in known:
            raise TypeError(f"Unknown setting: {name}")
        if value is not None:
            setattr(settings, name, value)

    if settings.backend not in BACKENDS:
        raise ValueError(f"Unknown backend {settings.backend!r}; expected one of {BACKENDS}")
    settings.concurrency = max(1, int(settings.concurrency))
    return settings


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Invalid %s=%r; falling back to %s.", name, raw, default)
        return default
    if value <= 0:
        LOGGER.warning("Non-positive %s=%r; falling back to %s.", name, raw, default)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Invalid %s=%r; falling back to %s.", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    candidate = raw.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    LOGGER.warning("Invalid %s=%r; falling back to %s.", name, raw, default)
    return default


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    candidate = raw.strip().lower()
    if candidate in choices:
        return candidate
    LOGGER.warning("Invalid %s=%r; falling back to %s.", name, raw, default)
    return default


def _env_schemes(name: str, default: frozenset[str]) -> frozenset[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    schemes = frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
    return schemes or default


# ---------------------------------------------------------------------------
# Browser backend run configuration
# ---------------------------------------------------------------------------


@dataclass
class RunConfigOverrides:
    """Optional overrides for browser-rendered fetches."""

    wait_until: Optional[str] = None
    delay_before_return_html: Optional[float] = None
    cache_mode: Optional[str] = None


def _convert_cache_mode(value: Optional[str], default: CacheMode) -> CacheMode:
    if not value:
        return default
    candidate = value.strip().replace("CacheMode.", "")
    try:
        return CacheMode[candidate.upper()]
    except KeyError:
        pass
    try:
        return CacheMode(candidate.lower())
    except ValueError:
        LOGGER.warning(
            "Unknown cache_mode '%s'; falling back to %s.", value, default.name
        )
        return default


def _apply_overrides(config: CrawlerRunConfig, overrides: RunConfigOverrides) -> None:
    if overrides.wait_until is not None:
        config.wait_until = overrides.wait_until
    if overrides.delay_before_return_html is not None:
        config.delay_before_return_html = overrides.delay_before_return_html
    if overrides.cache_mode:
        config.cache_mode = _convert_cache_mode(overrides.cache_mode, config.cache_mode)


def build_fetch_run_config(
    *,
    timeout: float = 30.0,
    overrides: Optional[RunConfigOverrides] = None,
) -> CrawlerRunConfig:
    """RunConfig for fetching raw rendered HTML; no markdown, no filtering."""
    config = CrawlerRunConfig(
        verbose=False,
        cache_mode=CacheMode.BYPASS,
        wait_until="domcontentloaded",
        page_timeout=int(timeout * 1000),
        delay_before_return_html=0.1,
    )
    if overrides:
        _apply_overrides(config, overrides)
    return config
