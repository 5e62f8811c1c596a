"""Resolve the index URL of a Cargo registry from Cargo configuration files."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

__all__ = ["CRATES_IO_INDEX", "CRATES_IO_REGISTRY", "RegistryError", "registry_url", "cargo_home"]

CRATES_IO_INDEX = "https://github.com/rust-lang/crates.io-index"
CRATES_IO_REGISTRY = "crates-io"


class RegistryError(Exception):
    """The registry URL could not be determined."""


@dataclass
class _Source:
    registry: str | None = None
    replace_with: str | None = None


def _table(value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise RegistryError("Invalid cargo config")
    return value


def _optional_str(table: Mapping[str, Any], key: str) -> str | None:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise RegistryError("Invalid cargo config")
    return value


def _read_config(registries: dict[str, _Source], path: Path) -> None:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RegistryError(f"Failed to read cargo config {path}") from exc
    try:
        config = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise RegistryError("Invalid cargo config") from exc

    found: list[tuple[str, _Source]] = []
    for name, value in _table(config.get("registries", {})).items():
        found.append((name, _Source(registry=_optional_str(_table(value), "index"))))
    for name, value in _table(config.get("source", {})).items():
        entry = _table(value)
        found.append(
            (
                name,
                _Source(
                    registry=_optional_str(entry, "registry"),
                    replace_with=_optional_str(entry, "replace-with"),
                ),
            )
        )
    for name, source in found:
        registries.setdefault(name, source)


def _read_config_dir(registries: dict[str, _Source], directory: Path) -> None:
    legacy = directory / "config"
    if legacy.is_file():
        _read_config(registries, legacy)
        return
    modern = directory / "config.toml"
    if modern.is_file():
        _read_config(registries, modern)


def cargo_home() -> Path:
    """The Cargo home directory: ``$CARGO_HOME`` or ``~/.cargo``."""
    try:
        default = Path.home() / ".cargo"
    except RuntimeError as exc:
        raise RegistryError("Failed to read home directory") from exc
    env = os.environ.get("CARGO_HOME")
    return Path(env) if env is not None else default


def registry_url(manifest_path: str | os.PathLike[str], registry: str | None = None) -> str:
    """Index URL of ``registry`` (crates.io by default), following source replacement."""
    registries: dict[str, _Source] = {}
    work_dir = Path(manifest_path).parent
    for directory in (work_dir, *work_dir.parents):
        _read_config_dir(registries, directory / ".cargo")
    _read_config_dir(registries, cargo_home())

    if registry is None or registry == CRATES_IO_INDEX:
        source = registries.pop(CRATES_IO_REGISTRY, None) or _Source()
        if source.registry is None:
            source.registry = CRATES_IO_INDEX
    else:
        try:
            source = registries.pop(registry)
        except KeyError:
            raise RegistryError(f"The registry '{registry}' could not be found") from None

    while source.replace_with is not None:
        replace_with = source.replace_with
        try:
            source = registries.pop(replace_with)
        except KeyError:
            raise RegistryError(f"The source '{replace_with}' could not be found") from None
        if replace_with == CRATES_IO_INDEX and source.registry is None:
            source.registry = CRATES_IO_INDEX

    url = source.registry
    if url is None or not _is_valid_url(url):
        raise RegistryError("Invalid cargo config")
    return url


def _is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme) and url[: len(parts.scheme)].isascii() and (
        bool(parts.netloc) or bool(parts.path)
    )