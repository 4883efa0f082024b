"""Locate and load the ``.env`` file used by the CLI entry points."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "webmap"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def load_config(
    *,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], object],
    cwd: Optional[Path] = None,
    config_dir: Path = CONFIG_DIR,
    config_env_file: Path = CONFIG_ENV_FILE,
) -> Optional[Path]:
    """Load ``.env`` settings and return the file used, if any.

    Search order:
    1. ``.env`` in the working directory
    2. ``~/.config/webmap/.env``

    When neither exists the packaged ``.env.example`` is copied to the user
    config directory and loaded.
    """
    local_env = (cwd or Path.cwd()) / ".env"
    if local_env.is_file():
        load_env(local_env)
        return local_env

    if config_env_file.is_file():
        load_env(config_env_file)
        return config_env_file

    example_file = Path(__file__).parent.parent / ".env.example"
    if not example_file.is_file():
        return None

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example_file, config_env_file)
    except OSError as exc:
        LOGGER.debug("Could not create %s: %s", config_env_file, exc)
        return None
    LOGGER.info(
        "Created config file at %s from .env.example. "
        "Edit it to change the WEBMAP_* defaults.",
        config_env_file,
    )
    load_env(config_env_file)
    return config_env_file
