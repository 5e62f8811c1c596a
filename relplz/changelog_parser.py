"""Read the header and the latest release notes of a Keep-a-Changelog file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "ChangelogRelease",
    "ChangelogParser",
    "parse_header",
    "last_changes",
    "last_changes_from_str",
    "last_version_from_str",
    "last_release_from_str",
]

_FIRST_HEADER_RE = re.compile(
    r"^(# Changelog|# CHANGELOG|# changelog)(.*)"
    r"(## Unreleased|## \[Unreleased\]|## unreleased|## \[unreleased\])(.*?)(\n)",
    re.DOTALL,
)
_SECOND_HEADER_RE = re.compile(
    r"^(# Changelog|# CHANGELOG|# changelog)(.*?)(\n## )",
    re.DOTALL,
)

_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_VERSION_RE = re.compile(
    r"^\[?(?:v|Version |Release )?"
    r"(?P<version>\d+\.\d+\.\d+(?:-[\w.-]+)?(?:\+[\w.-]+)?|unreleased)"
    r"\]?(?=$|[\s(:\-])",
    re.IGNORECASE,
)


def parse_header(changelog: str) -> str | None:
    """The header at the start of a changelog, or ``None``.

    The header starts with ``# Changelog`` and ends with the
    ``## [Unreleased]`` line; without such a line it ends before the first
    ``## `` heading, which is not part of it.
    """
    match = _FIRST_HEADER_RE.match(changelog)
    if match:
        return match.group(0)
    match = _SECOND_HEADER_RE.match(changelog)
    if match:
        return match.group(1) + match.group(2)
    return None


@dataclass(frozen=True)
class _Release:
    version: str
    title: str
    notes: str


@dataclass(frozen=True)
class ChangelogRelease:
    """Title and notes of one release in a changelog."""

    title: str
    notes: str


def _headings(lines: list[str]) -> list[tuple[int, int, str]]:
    headings = []
    fence: str | None = None
    for index, line in enumerate(lines):
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        heading = _HEADING_RE.match(line)
        if heading:
            headings.append((index, len(heading.group(1)), (heading.group(2) or "").strip()))
    return headings


def _parse_releases(text: str) -> list[_Release]:
    lines = text.splitlines()
    headings = _headings(lines)
    level = next(
        (lvl for _, lvl, title in headings if _VERSION_RE.match(title)),
        None,
    )
    if level is None:
        raise ValueError("no release was found")

    releases: list[_Release] = []
    seen: set[str] = set()
    for position, (index, lvl, title) in enumerate(headings):
        if lvl != level:
            continue
        version_match = _VERSION_RE.match(title)
        if version_match is None:
            continue
        version = version_match.group("version")
        if version in seen:
            raise ValueError(f"multiple release notes for '{version}'")
        seen.add(version)
        end = next(
            (i for i, other_lvl, _ in headings[position + 1 :] if other_lvl <= level),
            len(lines),
        )
        notes = "\n".join(lines[index + 1 : end]).strip()
        releases.append(_Release(version=version, title=title, notes=notes))
    return releases


class ChangelogParser:
    """The releases of a changelog, newest first."""

    def __init__(self, changelog_text: str) -> None:
        try:
            self._releases = _parse_releases(changelog_text)
        except ValueError as exc:
            raise ValueError(f"can't parse changelog: {exc}") from exc

    def last_release(self) -> _Release | None:
        """The latest release, skipping an ``Unreleased`` section."""
        if not self._releases:
            return None
        first = self._releases[0]
        if "unreleased" in first.version.lower():
            return self._releases[1] if len(self._releases) > 1 else None
        return first


def last_changes(path: str | os.PathLike[str]) -> str | None:
    """Notes of the latest release in the changelog file at ``path``."""
    return last_changes_from_str(Path(path).read_text(encoding="utf-8"))


def last_changes_from_str(changelog: str) -> str | None:
    """Notes of the latest release in ``changelog``."""
    release = ChangelogParser(changelog).last_release()
    return None if release is None else release.notes


def last_version_from_str(changelog: str) -> str | None:
    """Version of the latest release in ``changelog``."""
    release = ChangelogParser(changelog).last_release()
    return None if release is None else release.version


def last_release_from_str(changelog: str) -> ChangelogRelease | None:
    """Title and notes of the latest release in ``changelog``."""
    release = ChangelogParser(changelog).last_release()
    if release is None:
        return None
    return ChangelogRelease(title=release.title, notes=release.notes)