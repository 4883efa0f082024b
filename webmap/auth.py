"""Authentication settings shared by the HTTP and browser fetch backends.

Example usage:

    from webmap.auth import AuthConfig

    # Session cookie
    auth = AuthConfig(
        cookies=[{"name": "sid", "value": "abc123", "domain": ".example.com"}]
    )

    # Bearer token header
    auth = AuthConfig(headers={"Authorization": "Bearer xyz"})

    # Playwright storage state exported from a logged-in browser
    auth = AuthConfig(storage_state="./auth_state.json")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from crawl4ai import BrowserConfig

LOGGER = logging.getLogger(__name__)

_SUPPORTED_FILE_KEYS = frozenset({"cookies", "headers", "storage_state"})


class AuthConfigError(ValueError):
    """Raised when auth settings cannot be loaded."""


@dataclass
class AuthConfig:
    """Credentials applied to every fetch.

    Attributes:
        cookies: Cookie dicts with 'name', 'value' and optionally 'domain'
            and 'path' keys.
        headers: Extra request headers (e.g. Authorization).
        storage_state: Path to a Playwright storage state JSON file.
        storage_state_data: Inline storage state (alternative to the path).
    """

    cookies: Optional[List[Dict[str, Any]]] = None
    headers: Optional[Dict[str, str]] = None
    storage_state: Optional[str] = None
    storage_state_data: Optional[Dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.cookies
            and not self.headers
            and not self.storage_state
            and not self.storage_state_data
        )

    def resolved_storage_state(self) -> Optional[Dict[str, Any]]:
        """Return the storage state from inline data or the configured file."""
        if self.storage_state_data:
            return self.storage_state_data
        if not self.storage_state:
            return None
        path = Path(self.storage_state).expanduser()
        if not path.is_file():
            raise AuthConfigError(f"Storage state file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise AuthConfigError(f"Storage state has invalid JSON: {path}") from exc
        LOGGER.info("Loaded storage state from %s", path)
        return data

    def all_cookies(self) -> List[Dict[str, Any]]:
        """Explicit cookies followed by the ones captured in the storage state."""
        cookies = list(self.cookies or [])
        state = self.resolved_storage_state() or {}
        cookies.extend(state.get("cookies") or [])
        return cookies

    def build_httpx_cookies(self) -> httpx.Cookies:
        jar = httpx.Cookies()
        for cookie in self.all_cookies():
            name = cookie.get("name")
            if not name:
                continue
            jar.set(
                name,
                str(cookie.get("value", "")),
                domain=cookie.get("domain") or "",
                path=cookie.get("path") or "/",
            )
        return jar


def build_browser_config(auth: Optional[AuthConfig] = None) -> BrowserConfig:
    """Build a crawl4ai BrowserConfig carrying the auth parameters."""
    if auth is None or auth.is_empty:
        return BrowserConfig(use_persistent_context=False)

    kwargs: Dict[str, Any] = {"use_persistent_context": False}
    if auth.cookies:
        kwargs["cookies"] = auth.cookies
        LOGGER.info("Auth: injecting %d cookie(s)", len(auth.cookies))
    if auth.headers:
        kwargs["headers"] = auth.headers
        LOGGER.info("Auth: injecting %d custom header(s)", len(auth.headers))
    resolved_state = auth.resolved_storage_state()
    if resolved_state:
        kwargs["storage_state"] = resolved_state
        LOGGER.info("Auth: using storage state")

    return BrowserConfig(**kwargs)


def load_auth_from_file(path: str) -> AuthConfig:
    """Load auth settings from a JSON object with optional
    'cookies', 'headers' and 'storage_state' keys.

    Raises:
        AuthConfigError: If the file is missing, not JSON, or has unknown keys.
    """
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise AuthConfigError(f"Auth config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise AuthConfigError(f"Auth config has invalid JSON: {config_path}") from exc

    if not isinstance(data, dict):
        raise AuthConfigError(f"Auth config must be a JSON object: {config_path}")
    unknown = sorted(set(data) - _SUPPORTED_FILE_KEYS)
    if unknown:
        raise AuthConfigError(f"Unsupported auth fields: {', '.join(unknown)}")

    return AuthConfig(
        cookies=data.get("cookies"),
        headers=data.get("headers"),
        storage_state=data.get("storage_state"),
    )


def load_auth_from_env() -> Optional[AuthConfig]:
    """Load auth settings from environment variables.

    Supported variables:
        WEBMAP_AUTH_FILE: Path to an auth config JSON file.
        WEBMAP_AUTH_STORAGE_STATE: Path to a storage state JSON file.
        WEBMAP_AUTH_COOKIES_FILE: Path to a JSON list of cookie dicts.

    Returns:
        AuthConfig if any variable is set, None otherwise.
    """
    auth_file = os.environ.get("WEBMAP_AUTH_FILE")
    if auth_file:
        return load_auth_from_file(auth_file)

    storage_state = os.environ.get("WEBMAP_AUTH_STORAGE_STATE")
    cookies_file = os.environ.get("WEBMAP_AUTH_COOKIES_FILE")
    if not storage_state and not cookies_file:
        return None

    cookies = None
    if cookies_file:
        path = Path(cookies_file).expanduser()
        if path.is_file():
            with open(path, "r", encoding="utf-8") as fh:
                cookies = json.load(fh)
            LOGGER.info("Loaded %d cookie(s) from %s", len(cookies), path)
        else:
            LOGGER.warning("Cookies file not found: %s", path)

    return AuthConfig(storage_state=storage_state, cookies=cookies)
