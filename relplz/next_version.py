"""Compute the next semantic version from a list of commit messages.

The rules follow conventional commits and semantic versioning:

* no commits: the version is unchanged;
* a pre-release version only has its pre-release counter incremented;
* commits that are not conventional increment the patch;
* ``0.0.x`` versions always increment the patch;
* features increment the minor (the patch when the major is ``0``);
* breaking changes increment the major (the minor when the major is ``0``).

Build metadata is never modified.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import semver

__all__ = [
    "ConventionalCommit",
    "VersionIncrement",
    "parse_conventional_commit",
    "next_version",
    "increment_major",
    "increment_minor",
    "increment_patch",
    "increment_prerelease",
]

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\r\n]+)\))?"
    r"(?P<bang>!)?"
    r": (?P<summary>\S.*)$"
)
_FOOTER_RE = re.compile(r"^(?P<token>BREAKING CHANGE|[\w-]+)(?:: | #)(?P<value>.*)$")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_NUMERIC_RE = re.compile(r"\+?\d+")
_BREAKING_TOKENS = frozenset({"BREAKING CHANGE", "BREAKING-CHANGE"})
_U32_MAX = 2**32 - 1


@dataclass(frozen=True)
class ConventionalCommit:
    """A commit message that follows the conventional commits specification."""

    commit_type: str
    summary: str
    scope: str | None = None
    body: str | None = None
    footers: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    is_breaking_change: bool = False

    @property
    def is_feature(self) -> bool:
        return self.commit_type.lower() == "feat"


def _parse_footers(paragraph: str) -> tuple[tuple[str, str], ...] | None:
    lines = paragraph.splitlines()
    if not lines or not _FOOTER_RE.match(lines[0]):
        return None
    footers: list[list[str]] = []
    for line in lines:
        match = _FOOTER_RE.match(line)
        if match:
            footers.append([match["token"], match["value"]])
        else:
            footers[-1][1] += "\n" + line
    return tuple((token, value.strip()) for token, value in footers)


def parse_conventional_commit(message: str) -> ConventionalCommit:
    """Parse ``message`` as a conventional commit.

    Raises ``ValueError`` if the message does not follow the specification.
    """
    lines = message.strip().splitlines()
    if not lines:
        raise ValueError("empty commit message")
    header = _HEADER_RE.match(lines[0].rstrip())
    if header is None:
        raise ValueError(f"not a conventional commit: {lines[0]!r}")

    rest = "\n".join(lines[1:]).strip()
    paragraphs = _PARAGRAPH_SPLIT_RE.split(rest) if rest else []
    footers: tuple[tuple[str, str], ...] = ()
    if paragraphs:
        parsed = _parse_footers(paragraphs[-1].strip())
        if parsed is not None:
            footers = parsed
            paragraphs = paragraphs[:-1]
    body = "\n\n".join(p.strip() for p in paragraphs) or None

    breaking = header["bang"] is not None or any(
        token in _BREAKING_TOKENS for token, _ in footers
    )
    return ConventionalCommit(
        commit_type=header["type"],
        summary=header["summary"].strip(),
        scope=header["scope"],
        body=body,
        footers=footers,
        is_breaking_change=breaking,
    )


def _coerce(version: semver.Version | str) -> semver.Version:
    if isinstance(version, semver.Version):
        return version
    return semver.Version.parse(version)


def increment_major(version: semver.Version | str) -> semver.Version:
    """Increment the major number, resetting minor, patch and pre-release."""
    v = _coerce(version)
    return semver.Version(v.major + 1, 0, 0, None, v.build)


def increment_minor(version: semver.Version | str) -> semver.Version:
    """Increment the minor number, resetting patch and pre-release."""
    v = _coerce(version)
    return semver.Version(v.major, v.minor + 1, 0, None, v.build)


def increment_patch(version: semver.Version | str) -> semver.Version:
    """Increment the patch number, resetting the pre-release."""
    v = _coerce(version)
    return semver.Version(v.major, v.minor, v.patch + 1, None, v.build)


def _increment_last_identifier(release: str) -> str:
    left, sep, right = release.rpartition(".")
    if sep and _NUMERIC_RE.fullmatch(right) and int(right) <= _U32_MAX:
        return f"{left}.{int(right) + 1}"
    return f"{release}.1"


def increment_prerelease(version: semver.Version | str) -> semver.Version:
    """Increment the last numeric pre-release identifier, or append ``.1``."""
    v = _coerce(version)
    next_pre = _increment_last_identifier(v.prerelease or "")
    candidate = semver.Version(v.major, v.minor, v.patch, next_pre, v.build)
    try:
        return semver.Version.parse(str(candidate))
    except ValueError as exc:
        raise ValueError(f"pre-release increment failed for {v}") from exc


class VersionIncrement(enum.Enum):
    """Which part of a version to increment."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"

    @classmethod
    def from_commits(
        cls, current_version: semver.Version | str, commits: Iterable[str]
    ) -> VersionIncrement | None:
        """Decide the increment for ``commits``; ``None`` if there are none."""
        current = _coerce(current_version)
        messages = list(commits)
        if not messages:
            return None
        if current.prerelease:
            return cls.PRERELEASE
        parsed = []
        for message in messages:
            try:
                parsed.append(parse_conventional_commit(message))
            except ValueError:
                continue
        return cls._from_conventional_commits(current, parsed)

    @classmethod
    def breaking(cls, current_version: semver.Version | str) -> VersionIncrement:
        """The increment that accounts for a breaking change."""
        current = _coerce(current_version)
        if current.prerelease:
            return cls.PRERELEASE
        if current.major == 0 and current.minor == 0:
            return cls.PATCH
        if current.major == 0:
            return cls.MINOR
        return cls.MAJOR

    @classmethod
    def _from_conventional_commits(
        cls, current: semver.Version, commits: list[ConventionalCommit]
    ) -> VersionIncrement:
        has_feature = any(c.is_feature for c in commits)
        has_breaking = any(c.is_breaking_change for c in commits)
        if current.major != 0 and has_breaking:
            return cls.MAJOR
        if (current.major != 0 and has_feature) or (
            current.major == 0 and current.minor != 0 and has_breaking
        ):
            return cls.MINOR
        return cls.PATCH

    def bump(self, version: semver.Version | str) -> semver.Version:
        """Apply this increment to ``version``."""
        bumpers = {
            VersionIncrement.MAJOR: increment_major,
            VersionIncrement.MINOR: increment_minor,
            VersionIncrement.PATCH: increment_patch,
            VersionIncrement.PRERELEASE: increment_prerelease,
        }
        return bumpers[self](version)


def next_version(version: semver.Version | str, commits: Iterable[str]) -> semver.Version:
    """Return the version that follows ``version`` given ``commits``."""
    current = _coerce(version)
    increment = VersionIncrement.from_commits(current, commits)
    if increment is None:
        return current
    return increment.bump(current)