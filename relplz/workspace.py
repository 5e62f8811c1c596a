"""Workspace packages as reported by ``cargo metadata``, plus test doubles."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from relplz.manifest import DepKind, ManifestError

__all__ = [
    "Dependency",
    "Package",
    "parse_metadata",
    "workspace_members",
    "FakeDependency",
    "FakePackage",
]

_KINDS_FROM_METADATA = {
    None: DepKind.NORMAL,
    "normal": DepKind.NORMAL,
    "dev": DepKind.DEVELOPMENT,
    "build": DepKind.BUILD,
}


@dataclass
class Dependency:
    """A dependency of a package."""

    name: str
    req: str
    kind: DepKind = DepKind.NORMAL
    optional: bool = False
    uses_default_features: bool = True
    features: list[str] = field(default_factory=list)
    path: Path | None = None
    rename: str | None = None
    target: str | None = None


@dataclass
class Package:
    """A package of a Cargo workspace."""

    name: str
    version: str
    id: str
    manifest_path: Path
    dependencies: list[Dependency] = field(default_factory=list)
    features: dict[str, list[str]] = field(default_factory=dict)
    targets: list[dict[str, Any]] = field(default_factory=list)


def _canonicalize_path(path: Path) -> Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return path


def _dependency_from_json(raw: Mapping[str, Any]) -> Dependency:
    kind = raw.get("kind")
    if kind not in _KINDS_FROM_METADATA:
        raise ManifestError(f"Invalid manifest: unknown dependency kind {kind!r}")
    path = raw.get("path")
    return Dependency(
        name=raw["name"],
        req=raw["req"],
        kind=_KINDS_FROM_METADATA[kind],
        optional=bool(raw.get("optional", False)),
        uses_default_features=bool(raw.get("uses_default_features", True)),
        features=list(raw.get("features", [])),
        path=None if path is None else _canonicalize_path(Path(path)),
        rename=raw.get("rename"),
        target=raw.get("target"),
    )


def _package_from_json(raw: Mapping[str, Any]) -> Package:
    return Package(
        name=raw["name"],
        version=raw["version"],
        id=raw["id"],
        manifest_path=_canonicalize_path(Path(raw["manifest_path"])),
        dependencies=[_dependency_from_json(dep) for dep in raw.get("dependencies", [])],
        features={key: list(value) for key, value in raw.get("features", {}).items()},
        targets=list(raw.get("targets", [])),
    )


def parse_metadata(metadata: str | bytes | Mapping[str, Any]) -> list[Package]:
    """Workspace members from ``cargo metadata`` output, with canonical paths."""
    if isinstance(metadata, (str, bytes)):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError as exc:
            raise ManifestError("Invalid manifest") from exc
    try:
        members = set(metadata["workspace_members"])
        return [
            _package_from_json(raw)
            for raw in metadata["packages"]
            if raw["id"] in members
        ]
    except (KeyError, TypeError) as exc:
        raise ManifestError("Invalid manifest") from exc


def workspace_members(manifest_path: str | os.PathLike[str] | None = None) -> list[Package]:
    """Run ``cargo metadata`` and return the members of the workspace."""
    cargo = os.environ.get("CARGO", "cargo")
    command = [cargo, "metadata", "--format-version", "1", "--no-deps"]
    if manifest_path is not None:
        command += ["--manifest-path", str(manifest_path)]
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise ManifestError("Invalid manifest") from exc
    if result.returncode != 0:
        raise ManifestError(f"Invalid manifest: {result.stderr.strip()}")
    return parse_metadata(result.stdout)


@dataclass(frozen=True)
class FakeDependency:
    """A minimal dependency for building test packages."""

    name: str
    kind: DepKind = DepKind.NORMAL

    def dev(self) -> FakeDependency:
        """The same dependency as a development dependency."""
        return replace(self, kind=DepKind.DEVELOPMENT)

    def to_dependency(self) -> Dependency:
        return Dependency(name=self.name, req="0.1.0", kind=self.kind)


@dataclass(frozen=True)
class FakePackage:
    """A minimal package for tests."""

    name: str
    dependencies: tuple[FakeDependency, ...] = ()

    def with_dependencies(self, dependencies: list[FakeDependency]) -> FakePackage:
        return replace(self, dependencies=tuple(dependencies))

    def to_package(self) -> Package:
        return Package(
            name=self.name,
            version="0.1.0",
            id=self.name,
            manifest_path=Path(f"{self.name}/Cargo.toml"),
            dependencies=[dep.to_dependency() for dep in self.dependencies],
        )