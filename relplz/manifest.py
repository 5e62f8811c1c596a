"""Cargo manifests: dependency tables and in-place editing of ``Cargo.toml``."""

from __future__ import annotations

import enum
import os
import stat
from collections.abc import Iterator, Mapping, MutableMapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, ClassVar

import semver
import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Array, Table

__all__ = [
    "MANIFEST_FILENAME",
    "ManifestError",
    "DepKind",
    "DepTable",
    "Manifest",
    "LocalManifest",
    "find",
    "find_manifest_path",
]

MANIFEST_FILENAME = "Cargo.toml"


class ManifestError(Exception):
    """A manifest could not be found, read, parsed or written."""


class DepKind(enum.Enum):
    """Kind of a dependency."""

    NORMAL = "normal"
    DEVELOPMENT = "dev"
    BUILD = "build"


_KIND_TABLES = {
    DepKind.NORMAL: "dependencies",
    DepKind.DEVELOPMENT: "dev-dependencies",
    DepKind.BUILD: "build-dependencies",
}
_KIND_TABLE_NAMES = frozenset(_KIND_TABLES.values())


@dataclass(frozen=True)
class DepTable:
    """A dependency table: its kind and, optionally, its target platform."""

    kind: DepKind = DepKind.NORMAL
    target: str | None = None

    KINDS: ClassVar[tuple[DepTable, ...]]

    def kind_table(self) -> str:
        """Name of the manifest table holding dependencies of this kind."""
        return _KIND_TABLES[self.kind]

    def with_target(self, target: str) -> DepTable:
        """The same table restricted to ``target``."""
        return replace(self, target=str(target))


DepTable.KINDS = tuple(DepTable(kind) for kind in DepKind)


def _is_table_like(value: Any) -> bool:
    return isinstance(value, Mapping)


def _lookup(data: Any, *keys: str) -> Any:
    current = data
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _ensure_table(container: MutableMapping[str, Any], key: str) -> MutableMapping[str, Any]:
    if not _is_table_like(container.get(key)):
        container[key] = tomlkit.table()
    return container[key]


@dataclass
class Manifest:
    """A Cargo manifest held as an editable TOML document."""

    data: tomlkit.TOMLDocument

    @classmethod
    def parse(cls, text: str) -> Manifest:
        """Read a manifest from TOML text."""
        try:
            return cls(tomlkit.parse(text))
        except (TOMLKitError, ValueError) as exc:
            raise ManifestError("Manifest not valid TOML") from exc

    def get_sections(self) -> list[tuple[DepTable, Any]]:
        """All table-like sections that may contain dependencies."""
        sections: list[tuple[DepTable, Any]] = []
        targets = self.data.get("target")
        for table in DepTable.KINDS:
            name = table.kind_table()
            section = self.data.get(name)
            if _is_table_like(section):
                sections.append((table, section))
            if _is_table_like(targets):
                for target_name, target_table in targets.items():
                    dependencies = _lookup(target_table, name)
                    if _is_table_like(dependencies):
                        sections.append((table.with_target(target_name), dependencies))
        return sections

    def __str__(self) -> str:
        return self.data.as_string()


class _FeatureStatus(enum.IntEnum):
    NONE = 0
    DEP_FEATURE = 1
    FEATURE = 2


@dataclass
class LocalManifest:
    """A Cargo manifest stored in a local file."""

    path: Path
    manifest: Manifest

    @property
    def data(self) -> tomlkit.TOMLDocument:
        return self.manifest.data

    def get_sections(self) -> list[tuple[DepTable, Any]]:
        return self.manifest.get_sections()

    def __str__(self) -> str:
        return str(self.manifest)

    @classmethod
    def find(cls, path: str | os.PathLike[str] | None = None) -> LocalManifest:
        """Load the manifest at ``path``, or search for one from there or the cwd."""
        return cls.try_new(find(path).resolve())

    @classmethod
    def try_new(cls, path: str | os.PathLike[str]) -> LocalManifest:
        """Load the manifest at the absolute ``path``."""
        path = Path(path)
        if not path.is_absolute():
            raise ManifestError(f"can only edit absolute paths, got {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Failed to read manifest contents. Path: {str(path)!r}") from exc
        try:
            manifest = Manifest.parse(text)
        except ManifestError as exc:
            raise ManifestError("Unable to parse Cargo.toml") from exc
        return cls(path=path, manifest=manifest)

    def write(self) -> None:
        """Write the manifest back to its file."""
        try:
            self.path.write_text(self.data.as_string(), encoding="utf-8")
        except OSError as exc:
            raise ManifestError("Failed to write updated Cargo.toml") from exc

    def get_dependency_tables(self) -> Iterator[MutableMapping[str, Any]]:
        """Yield every editable dependency table, wherever it lives."""
        for key, value in self.data.items():
            if key in _KIND_TABLE_NAMES:
                if _is_table_like(value):
                    yield value
            elif key == "workspace":
                if not _is_table_like(value):
                    raise ManifestError("`workspace` is not a table")
                for inner_key, inner in value.items():
                    if inner_key == "dependencies" and _is_table_like(inner):
                        yield inner
            elif key == "target":
                if not _is_table_like(value):
                    raise ManifestError("`target` is not a table")
                for target_table in value.values():
                    if not _is_table_like(target_table):
                        continue
                    for inner_key, inner in target_table.items():
                        if inner_key in _KIND_TABLE_NAMES and _is_table_like(inner):
                            yield inner

    def get_workspace_dependency_table(self) -> MutableMapping[str, Any] | None:
        """The ``[workspace.dependencies]`` table, if present."""
        table = _lookup(self.data, "workspace", "dependencies")
        return table if _is_table_like(table) else None

    def set_package_version(self, version: semver.Version | str) -> None:
        """Override the package version."""
        _ensure_table(self.data, "package")["version"] = str(version)

    def version_is_inherited(self) -> bool:
        """``True`` if the package takes its version from the workspace."""
        value = _lookup(self.data, "package", "version", "workspace")
        return value is True

    def get_workspace_version(self) -> semver.Version | None:
        """The workspace version, if set and valid."""
        value = _lookup(self.data, "workspace", "package", "version")
        if not isinstance(value, str):
            return None
        try:
            return semver.Version.parse(str(value))
        except ValueError:
            return None

    def set_workspace_version(self, version: semver.Version | str) -> None:
        """Override the workspace version."""
        workspace = _ensure_table(self.data, "workspace")
        _ensure_table(workspace, "package")["version"] = str(version)

    def gc_dep(self, dep_key: str) -> None:
        """Remove feature activations of ``dep_key`` that are no longer valid."""
        status = self._dep_feature(dep_key)
        if status is _FeatureStatus.FEATURE:
            return
        features = self.data.get("features")
        if not isinstance(features, Table):
            return
        for activations in features.values():
            if isinstance(activations, Array):
                _remove_feature_activation(activations, dep_key, status)

    def _dep_feature(self, dep_key: str) -> _FeatureStatus:
        status = _FeatureStatus.NONE
        for _, table in self.get_sections():
            if not isinstance(table, Table) or dep_key not in table:
                continue
            if _lookup(table, dep_key, "optional") is True:
                return _FeatureStatus.FEATURE
            status = _FeatureStatus.DEP_FEATURE
        return status


def _remove_feature_activation(activations: Array, dep: str, status: _FeatureStatus) -> None:
    prefix = f"{dep}/"

    def matches(activation: str) -> bool:
        if status is _FeatureStatus.NONE:
            return activation == dep or activation.startswith(prefix)
        if status is _FeatureStatus.DEP_FEATURE:
            return activation == dep
        return False

    doomed = [idx for idx, item in enumerate(activations) if isinstance(item, str) and matches(str(item))]
    for idx in reversed(doomed):
        del activations[idx]


def find(specified: str | os.PathLike[str] | None = None) -> Path:
    """Return ``specified`` if it is a file, else search for a manifest from it or the cwd."""
    if specified is None:
        try:
            cwd = Path.cwd()
        except OSError as exc:
            raise ManifestError("Failed to get current directory") from exc
        return find_manifest_path(cwd)
    path = Path(specified)
    try:
        mode = os.stat(path).st_mode
    except OSError as exc:
        raise ManifestError("Failed to get cargo file metadata") from exc
    if stat.S_ISREG(mode):
        return path
    return find_manifest_path(path)


def find_manifest_path(directory: str | os.PathLike[str]) -> Path:
    """Search ``directory`` and its ancestors for ``Cargo.toml``."""
    directory = Path(directory)
    for candidate in (directory, *directory.parents):
        manifest = candidate / MANIFEST_FILENAME
        if manifest.exists():
            return manifest
    raise ManifestError(f"Unable to find Cargo.toml for {directory}")