"""Locate the project manifest and load the ``release-plz.toml`` configuration."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from relplz.config import Config
from relplz.manifest import MANIFEST_FILENAME

__all__ = [
    "CONFIG_FILENAMES",
    "ConfigError",
    "local_manifest",
    "parse_config",
    "first_file_contents",
]

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("release-plz.toml", ".release-plz.toml")


class ConfigError(Exception):
    """The configuration file is missing, unreadable or invalid."""


def local_manifest(project_manifest: str | os.PathLike[str] | None = None) -> Path:
    """The given manifest path, or ``Cargo.toml`` in the current directory."""
    if project_manifest is not None:
        return Path(project_manifest)
    return Path.cwd() / MANIFEST_FILENAME


def first_file_contents(
    paths: Iterable[str | os.PathLike[str]],
) -> tuple[str, Path] | None:
    """Contents and path of the first file in ``paths`` that exists.

    Returns ``None`` if none of them exists; any other read error is raised.
    """
    for candidate in paths:
        path = Path(candidate)
        try:
            return path.read_text(encoding="utf-8"), path
        except FileNotFoundError:
            continue
    return None


def parse_config(config_path: str | os.PathLike[str] | None = None) -> Config:
    """Load the configuration.

    With ``config_path`` the file must exist. Without it, ``release-plz.toml``
    and then ``.release-plz.toml`` are looked for in the current directory;
    if neither exists the default configuration is returned.
    """
    if config_path is not None:
        path = Path(config_path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"specified config does not exist at path {str(path)!r}") from None
        except OSError as exc:
            raise ConfigError(f"can't read {str(path)!r}: {exc!r}") from exc
    else:
        found = first_file_contents(CONFIG_FILENAMES)
        if found is None:
            logger.info("release-plz config file not found, using default configuration")
            return Config()
        text, path = found

    logger.info("using release-plz config file %s", path)
    try:
        return Config.from_toml(text)
    except ValueError as exc:
        shown = None if config_path is None else str(config_path)
        raise ConfigError(f"invalid config file {shown!r}: {exc}") from exc