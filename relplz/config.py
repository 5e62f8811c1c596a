"""The ``release-plz.toml`` configuration: model, TOML reading and writing."""

from __future__ import annotations

import enum
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from urllib.parse import urlsplit

import tomlkit

__all__ = [
    "ReleaseType",
    "SemverCheck",
    "GitReleaseConfig",
    "ReleaseConfig",
    "PackageReleaseConfig",
    "PackageUpdateConfig",
    "PackageConfig",
    "PackageSpecificConfig",
    "PackageSpecificConfigWithName",
    "UpdateConfig",
    "CommonCmdConfig",
    "Workspace",
    "Config",
    "parse_duration",
]

DEFAULT_PUBLISH_TIMEOUT = "30m"

_Pairs = list[tuple[str, Any]]


class ReleaseType(enum.Enum):
    """Whether a git release is marked as ready for production."""

    PROD = "prod"
    PRE = "pre"
    AUTO = "auto"


class SemverCheck(enum.Enum):
    """Whether to run cargo-semver-checks."""

    YES = "yes"
    NO = "no"


def _opt_bool(table: Mapping[str, Any], key: str) -> bool | None:
    value = table.get(key)
    if value is not None and not isinstance(value, bool):
        raise ValueError(f"invalid type for `{key}`: expected a boolean")
    return value


def _opt_str(table: Mapping[str, Any], key: str) -> str | None:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"invalid type for `{key}`: expected a string")
    return value


def _opt_str_list(table: Mapping[str, Any], key: str) -> list[str] | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"invalid type for `{key}`: expected a list of strings")
    return list(value)


def _opt_release_type(table: Mapping[str, Any], key: str) -> ReleaseType | None:
    value = _opt_str(table, key)
    if value is None:
        return None
    try:
        return ReleaseType(value)
    except ValueError:
        allowed = ", ".join(f"`{t.value}`" for t in ReleaseType)
        raise ValueError(f"unknown variant `{value}` for `{key}`, expected one of {allowed}") from None


def _parse_url(value: str) -> str:
    parts = urlsplit(value)
    if not parts.scheme or not (parts.netloc or parts.path):
        raise ValueError(f"invalid url {value!r}")
    if parts.netloc and not parts.path and not parts.query and not parts.fragment:
        return value + "/"
    return value


def _or(value: Any, default: Any) -> Any:
    return default if value is None else value


@dataclass
class GitReleaseConfig:
    """Settings of the GitHub/Gitea/GitLab release."""

    enable: bool | None = None
    release_type: ReleaseType | None = None
    draft: bool | None = None

    def merge(self, default: GitReleaseConfig) -> GitReleaseConfig:
        """Fill unset values from ``default``."""
        return GitReleaseConfig(
            enable=_or(self.enable, default.enable),
            release_type=_or(self.release_type, default.release_type),
            draft=_or(self.draft, default.draft),
        )

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> GitReleaseConfig:
        return cls(
            enable=_opt_bool(table, "git_release_enable"),
            release_type=_opt_release_type(table, "git_release_type"),
            draft=_opt_bool(table, "git_release_draft"),
        )

    def _pairs(self) -> _Pairs:
        return [
            ("git_release_enable", self.enable),
            ("git_release_type", self.release_type),
            ("git_release_draft", self.draft),
        ]


@dataclass
class ReleaseConfig:
    """Settings of ``cargo publish``."""

    publish: bool | None = None
    allow_dirty: bool | None = None
    no_verify: bool | None = None

    def merge(self, default: ReleaseConfig) -> ReleaseConfig:
        """Fill unset values from ``default``."""
        return ReleaseConfig(
            publish=_or(self.publish, default.publish),
            allow_dirty=_or(self.allow_dirty, default.allow_dirty),
            no_verify=_or(self.no_verify, default.no_verify),
        )

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> ReleaseConfig:
        return cls(
            publish=_opt_bool(table, "publish"),
            allow_dirty=_opt_bool(table, "publish_allow_dirty"),
            no_verify=_opt_bool(table, "publish_no_verify"),
        )

    def _pairs(self) -> _Pairs:
        return [
            ("publish", self.publish),
            ("publish_allow_dirty", self.allow_dirty),
            ("publish_no_verify", self.no_verify),
        ]


@dataclass
class PackageReleaseConfig:
    """Options of the ``release`` command for one package."""

    git_release: GitReleaseConfig = field(default_factory=GitReleaseConfig)
    git_tag_enable: bool | None = None
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    def merge(self, default: PackageReleaseConfig) -> PackageReleaseConfig:
        """Fill unset values from ``default``."""
        return PackageReleaseConfig(
            git_release=self.git_release.merge(default.git_release),
            git_tag_enable=_or(self.git_tag_enable, default.git_tag_enable),
            release=self.release.merge(default.release),
        )

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> PackageReleaseConfig:
        return cls(
            git_release=GitReleaseConfig._from_table(table),
            git_tag_enable=_opt_bool(table, "git_tag_enable"),
            release=ReleaseConfig._from_table(table),
        )

    def _pairs(self) -> _Pairs:
        return [
            *self.git_release._pairs(),
            ("git_tag_enable", self.git_tag_enable),
            *self.release._pairs(),
        ]


@dataclass
class PackageUpdateConfig:
    """Options of the ``update`` command for one package."""

    semver_check: bool | None = None
    changelog_update: bool | None = None

    def merge(self, default: PackageUpdateConfig) -> PackageUpdateConfig:
        """Fill unset values from ``default``."""
        return PackageUpdateConfig(
            semver_check=_or(self.semver_check, default.semver_check),
            changelog_update=_or(self.changelog_update, default.changelog_update),
        )

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> PackageUpdateConfig:
        return cls(
            semver_check=_opt_bool(table, "semver_check"),
            changelog_update=_opt_bool(table, "changelog_update"),
        )

    def _pairs(self) -> _Pairs:
        return [
            ("semver_check", self.semver_check),
            ("changelog_update", self.changelog_update),
        ]


@dataclass
class PackageConfig:
    """Package options applied to every package by default."""

    update: PackageUpdateConfig = field(default_factory=PackageUpdateConfig)
    release: PackageReleaseConfig = field(default_factory=PackageReleaseConfig)

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> PackageConfig:
        return cls(
            update=PackageUpdateConfig._from_table(table),
            release=PackageReleaseConfig._from_table(table),
        )

    def _pairs(self) -> _Pairs:
        return [*self.update._pairs(), *self.release._pairs()]


@dataclass
class PackageSpecificConfig:
    """Options set in a ``[[package]]`` entry."""

    update: PackageUpdateConfig = field(default_factory=PackageUpdateConfig)
    release: PackageReleaseConfig = field(default_factory=PackageReleaseConfig)
    changelog_path: str | None = None
    changelog_include: list[str] | None = None

    def merge(self, default: PackageConfig) -> PackageSpecificConfig:
        """Fill unset values from the workspace defaults."""
        return PackageSpecificConfig(
            update=self.update.merge(default.update),
            release=self.release.merge(default.release),
            changelog_path=self.changelog_path,
            changelog_include=self.changelog_include,
        )

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> PackageSpecificConfig:
        return cls(
            update=PackageUpdateConfig._from_table(table),
            release=PackageReleaseConfig._from_table(table),
            changelog_path=_opt_str(table, "changelog_path"),
            changelog_include=_opt_str_list(table, "changelog_include"),
        )

    def _pairs(self) -> _Pairs:
        return [
            *self.update._pairs(),
            *self.release._pairs(),
            ("changelog_path", self.changelog_path),
            ("changelog_include", self.changelog_include),
        ]


@dataclass
class PackageSpecificConfigWithName:
    """A ``[[package]]`` entry: the package name and its options."""

    name: str
    config: PackageSpecificConfig = field(default_factory=PackageSpecificConfig)

    @classmethod
    def _from_table(cls, table: Any) -> PackageSpecificConfigWithName:
        if not isinstance(table, Mapping):
            raise ValueError("invalid type for `package` entry: expected a table")
        name = table.get("name")
        if not isinstance(name, str):
            raise ValueError("missing field `name` in `package` entry")
        return cls(name=name, config=PackageSpecificConfig._from_table(table))

    def _pairs(self) -> _Pairs:
        return [("name", self.name), *self.config._pairs()]


@dataclass
class UpdateConfig:
    """Workspace-wide options of the ``update`` command."""

    dependencies_update: bool | None = None
    changelog_config: str | None = None
    allow_dirty: bool | None = None

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> UpdateConfig:
        return cls(
            dependencies_update=_opt_bool(table, "dependencies_update"),
            changelog_config=_opt_str(table, "changelog_config"),
            allow_dirty=_opt_bool(table, "allow_dirty"),
        )

    def _pairs(self) -> _Pairs:
        return [
            ("dependencies_update", self.dependencies_update),
            ("changelog_config", self.changelog_config),
            ("allow_dirty", self.allow_dirty),
        ]


@dataclass
class CommonCmdConfig:
    """Options shared among commands."""

    repo_url: str | None = None

    @classmethod
    def _from_table(cls, table: Mapping[str, Any]) -> CommonCmdConfig:
        url = _opt_str(table, "repo_url")
        return cls(repo_url=None if url is None else _parse_url(url))

    def _pairs(self) -> _Pairs:
        return [("repo_url", self.repo_url)]


@dataclass
class Workspace:
    """The ``[workspace]`` section: global settings."""

    update: UpdateConfig = field(default_factory=UpdateConfig)
    pr_draft: bool = False
    pr_labels: list[str] = field(default_factory=list)
    common: CommonCmdConfig = field(default_factory=CommonCmdConfig)
    packages_defaults: PackageConfig = field(default_factory=PackageConfig)
    publish_timeout: str | None = None

    def publish_timeout_duration(self) -> timedelta:
        """The publish timeout; 30 minutes unless configured."""
        text = _or(self.publish_timeout, DEFAULT_PUBLISH_TIMEOUT)
        try:
            return parse_duration(text)
        except ValueError as exc:
            raise ValueError(f"invalid publish_timeout {text}") from exc

    @classmethod
    def _from_table(cls, table: Any) -> Workspace:
        if not isinstance(table, Mapping):
            raise ValueError("invalid type for `workspace`: expected a table")
        return cls(
            update=UpdateConfig._from_table(table),
            pr_draft=bool(_opt_bool(table, "pr_draft")),
            pr_labels=_opt_str_list(table, "pr_labels") or [],
            common=CommonCmdConfig._from_table(table),
            packages_defaults=PackageConfig._from_table(table),
            publish_timeout=_opt_str(table, "publish_timeout"),
        )

    def _pairs(self) -> _Pairs:
        return [
            *self.update._pairs(),
            ("pr_draft", self.pr_draft),
            ("pr_labels", self.pr_labels),
            *self.common._pairs(),
            *self.packages_defaults._pairs(),
            ("publish_timeout", self.publish_timeout),
        ]


def _format_value(value: Any) -> str:
    if isinstance(value, enum.Enum):
        value = value.value
    return tomlkit.item(value).as_string()


def _format_pairs(pairs: _Pairs) -> list[str]:
    return [f"{key} = {_format_value(value)}" for key, value in pairs if value is not None]


@dataclass
class Config:
    """The whole configuration file."""

    workspace: Workspace = field(default_factory=Workspace)
    package: list[PackageSpecificConfigWithName] = field(default_factory=list)

    @classmethod
    def from_toml(cls, text: str) -> Config:
        """Parse configuration from TOML text; ``ValueError`` if invalid."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"invalid TOML: {exc}") from exc
        unknown = set(data) - {"workspace", "package"}
        if unknown:
            raise ValueError(
                f"unknown field `{sorted(unknown)[0]}`, expected `workspace` or `package`"
            )
        packages = data.get("package", [])
        if not isinstance(packages, list):
            raise ValueError("invalid type for `package`: expected an array of tables")
        return cls(
            workspace=Workspace._from_table(data.get("workspace", {})),
            package=[PackageSpecificConfigWithName._from_table(p) for p in packages],
        )

    def to_toml(self) -> str:
        """Render the configuration as TOML text."""
        lines = ["[workspace]", *_format_pairs(self.workspace._pairs())]
        for package in self.package:
            lines += ["", "[[package]]", *_format_pairs(package._pairs())]
        return "\n".join(lines) + "\n"

    def packages(self) -> dict[str, PackageSpecificConfig]:
        """Package-specific configurations by package name."""
        return {p.name: p.config for p in self.package}


_DURATION_UNITS = {
    "y": timedelta(days=365),
    "year": timedelta(days=365),
    "mon": timedelta(days=30),
    "month": timedelta(days=30),
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "h": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "msec": timedelta(milliseconds=1),
    "millisecond": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "microsecond": timedelta(microseconds=1),
    "ns": timedelta(microseconds=0.001),
    "nanosecond": timedelta(microseconds=0.001),
}
_DURATION_PART_RE = re.compile(r"\s*(\d+)\s*([A-Za-zµ]*)\s*")


def parse_duration(text: str) -> timedelta:
    """Parse durations such as ``30m``, ``5s`` or ``1h30m``; a bare number is seconds."""
    if not text.strip():
        raise ValueError("empty duration")
    total = timedelta()
    position = 0
    while position < len(text):
        match = _DURATION_PART_RE.match(text, position)
        if match is None or match.end() == position:
            raise ValueError(f"invalid duration {text!r}")
        amount, unit = int(match[1]), match[2].lower()
        if unit.endswith("s") and unit[:-1] in _DURATION_UNITS and len(unit) > 3:
            unit = unit[:-1]
        if unit and unit not in _DURATION_UNITS:
            raise ValueError(f"unknown duration unit {match[2]!r} in {text!r}")
        total += amount * _DURATION_UNITS[unit or "s"]
        position = match.end()
    return total